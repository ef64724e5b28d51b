from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from .base import Base


class Prize(Base):
    __tablename__ = 'prizes'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    cost_points = Column(Integer, nullable=False, default=0)
    active = Column(Boolean, nullable=False, default=True)  # purchasable
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship('User', back_populates='prizes')
    purchases = relationship(
        'Purchase',
        back_populates='prize',
        cascade='all, delete-orphan',
        order_by='Purchase.id',
    )

    def __repr__(self) -> str:
        return f"<Prize id={self.id} name={self.name!r} cost={self.cost_points} active={self.active}>"


class Purchase(Base):
    __tablename__ = 'purchases'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    prize_id = Column(Integer, ForeignKey('prizes.id', ondelete='CASCADE'), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship('User', back_populates='purchases')
    prize = relationship('Prize', back_populates='purchases')
