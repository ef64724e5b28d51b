from sqlalchemy import Column, Integer, String
from .base import Base


class MotivationQuote(Base):
    __tablename__ = 'motivation_quotes'
    id = Column(Integer, primary_key=True)
    text = Column(String(512), nullable=False)
    author = Column(String(120), nullable=True)
    source = Column(String(120), nullable=True)
