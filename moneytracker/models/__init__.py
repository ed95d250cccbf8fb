# moneytracker/models/__init__.py
# Import every model so Base.metadata knows all tables.
from __future__ import annotations

from moneytracker.models.user import Base, User
from moneytracker.models.transaction import Transaction
from moneytracker.models.recurring import RecurringTransaction
from moneytracker.models.goal import SavingsGoal

__all__ = ["Base", "User", "Transaction", "RecurringTransaction", "SavingsGoal"]
