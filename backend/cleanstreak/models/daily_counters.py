from sqlalchemy import Column, Integer, String, Boolean, Date, JSON, ForeignKey, UniqueConstraint
from .base import Base


class ChecklistDaily(Base):
    __tablename__ = 'checklist_daily'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    checked = Column(JSON, nullable=False, default=list)
    scored = Column(String(16), nullable=False, default='')  # '', 'complete', 'missed'

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_checklist_daily_user_date'),
    )


class BreathDaily(Base):
    __tablename__ = 'breath_daily'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    count = Column(Integer, nullable=False, default=0)
    scored = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_breath_daily_user_date'),
    )
