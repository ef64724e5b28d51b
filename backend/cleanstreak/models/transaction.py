from sqlalchemy import Column, Integer, String, Date, DateTime, Enum, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base


class LedgerTransaction(Base):
    """One signed point entry. Rows are never updated once written."""

    __tablename__ = 'transactions'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    points = Column(Integer, nullable=False)
    type = Column(Enum('earn', 'deduct', 'spend', name='transaction_type'), nullable=False)
    note = Column(String(200), nullable=False, default='')
    date = Column(Date, nullable=False)
    award_key = Column(String(64), nullable=False)
    related_log_id = Column(Integer, ForeignKey('daily_logs.id', ondelete='SET NULL'), nullable=True)
    # Plain reference: ledger rows outlive deleted prizes
    related_prize_id = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship('User', back_populates='transactions')

    __table_args__ = (
        UniqueConstraint('user_id', 'award_key', name='uq_transactions_user_award'),
        Index('idx_transactions_user_date', 'user_id', 'date'),
    )

    def __repr__(self) -> str:
        return f"<LedgerTransaction user={self.user_id} points={self.points} key={self.award_key!r}>"
