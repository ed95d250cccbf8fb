# moneytracker/models/recurring.py
from __future__ import annotations

from datetime import datetime
from sqlalchemy import (
    Boolean, Column, Date, DateTime, Float, ForeignKey, Index, Integer, String,
)
from sqlalchemy.orm import relationship

from moneytracker.models.user import Base

FREQUENCIES = ("daily", "weekly", "monthly", "yearly")
RULE_STATUSES = ("active", "paused", "completed", "cancelled")


class RecurringTransaction(Base):
    __tablename__ = "recurring_transactions"
    __table_args__ = (
        Index("ix_recurring_user_status", "user_id", "status"),
        Index("ix_recurring_next_status", "next_occurrence", "status"),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)

    # transaction template
    type = Column(String(10), nullable=False)            # "income" | "expense"
    amount = Column(Float, nullable=False)
    currency = Column(String(10), nullable=False, default="USD")
    category = Column(String(100), nullable=False)
    payment_method = Column(String(10), nullable=False, default="cash")
    notes = Column(String(255), nullable=False, default="")

    # schedule
    frequency = Column(String(10), nullable=False)       # daily | weekly | monthly | yearly
    interval = Column(Integer, nullable=False, default=1)
    day_of_month = Column(Integer, nullable=True)        # 1-31, -1 = last day of month
    day_of_week = Column(Integer, nullable=True)         # 0-6, Sunday = 0
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)               # inclusive
    next_occurrence = Column(Date, nullable=False, index=True)
    last_processed = Column(DateTime, nullable=True)

    status = Column(String(10), nullable=False, default="active", index=True)
    auto_approve = Column(Boolean, nullable=False, default=True)
    notify_user = Column(Boolean, nullable=False, default=True)
    total_occurrences = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("User", back_populates="recurring")
