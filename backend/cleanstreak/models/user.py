from sqlalchemy import Column, Integer, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base

_OWNED = dict(cascade='all, delete-orphan')


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, nullable=False)
    first_name = Column(String(80), nullable=True)
    last_name = Column(String(80), nullable=True)
    pin_hash = Column(String(255), nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    weekly_spend_cents = Column(Integer, default=0, nullable=False)
    start_date = Column(DateTime, nullable=True)  # quit start
    longest_streak_days = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    daily_logs = relationship('DailyLog', back_populates='user', **_OWNED)
    transactions = relationship('LedgerTransaction', back_populates='user', **_OWNED)
    money_events = relationship('MoneyEvent', back_populates='user', **_OWNED)
    prizes = relationship('Prize', back_populates='user', **_OWNED)
    purchases = relationship('Purchase', back_populates='user', **_OWNED)
    checklist_days = relationship('ChecklistDaily', **_OWNED)
    breath_days = relationship('BreathDaily', **_OWNED)

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "isAdmin": bool(self.is_admin),
            "hasPin": bool(self.pin_hash),
            "weeklySpendCents": self.weekly_spend_cents or 0,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "longestStreakDays": self.longest_streak_days or 0,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username!r}>"
