# moneytracker/models/user.py
# Declares Base and the User model; every other model hangs off it.

from __future__ import annotations

from sqlalchemy import Column, Integer, BigInteger, String
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    telegram_id = Column(BigInteger, unique=True, index=True, nullable=False)
    username = Column(String(100), nullable=True)
    currency = Column(String(10), default="USD")

    transactions = relationship("Transaction", back_populates="user")
    recurring = relationship("RecurringTransaction", back_populates="user")
    goals = relationship("SavingsGoal", back_populates="user")
