from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base


class MoneyEvent(Base):
    __tablename__ = 'money_events'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    amount_cents = Column(Integer, nullable=False)  # positive saved, negative spent
    type = Column(Enum('saved', 'spent', name='money_event_type'), nullable=False)
    note = Column(String(200), nullable=False, default='')
    date = Column(Date, nullable=False)
    # A daily log produces at most one money event
    related_log_id = Column(Integer, ForeignKey('daily_logs.id', ondelete='SET NULL'), nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship('User', back_populates='money_events')
