# moneytracker/models/transaction.py

from __future__ import annotations

from datetime import datetime
from sqlalchemy import Column, Integer, String, Float, ForeignKey, Date, DateTime
from sqlalchemy.orm import relationship

from moneytracker.models.user import Base

TX_TYPES = ("income", "expense")
PAYMENT_METHODS = ("cash", "card", "upi", "bank")
TX_STATUSES = ("completed", "pending")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    type = Column(String(10), nullable=False)           # 'income' | 'expense'
    amount = Column(Float, nullable=False)              # absolute value
    currency = Column(String(10), nullable=False, default="USD")
    category = Column(String(100), nullable=False)
    payment_method = Column(String(10), nullable=False, default="cash")
    notes = Column(String(255), nullable=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False, default="completed")

    # plain column, not a FK: history outlives a deleted rule
    recurring_id = Column(Integer, nullable=True, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="transactions")
