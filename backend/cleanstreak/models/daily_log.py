from sqlalchemy import Column, Integer, String, Boolean, Date, DateTime, Text, SmallInteger, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base


class DailyLog(Base):
    __tablename__ = 'daily_logs'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    date = Column(Date, nullable=False)
    # NULL until the day's clean/use status is submitted (journal-only rows)
    used = Column(Boolean, nullable=True)
    context = Column(String(255), nullable=True)
    paid = Column(Boolean, nullable=True)
    amount_cents = Column(Integer, nullable=True)
    journal = Column(Text, nullable=True)
    mood = Column(SmallInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship('User', back_populates='daily_logs')

    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uq_daily_logs_user_date'),
    )

    def __repr__(self) -> str:
        return f"<DailyLog user={self.user_id} date={self.date} used={self.used}>"
