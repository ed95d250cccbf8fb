# moneytracker/repo/transactions.py
from __future__ import annotations

from datetime import date, datetime
from typing import Sequence

from sqlalchemy import and_, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from moneytracker.models.transaction import TX_STATUSES, TX_TYPES, Transaction


async def add_transaction(
    session: AsyncSession,
    user_id: int,
    type_: str,              # "income" | "expense"
    amount: float,
    category: str,
    on: date,
    currency: str = "USD",
    payment_method: str = "cash",
    notes: str | None = None,
    status: str = "completed",
    recurring_id: int | None = None,
) -> Transaction:
    if type_ not in TX_TYPES:
        raise ValueError(f"unknown transaction type: {type_!r}")
    if status not in TX_STATUSES:
        raise ValueError(f"unknown transaction status: {status!r}")
    tx = Transaction(
        user_id=user_id,
        type=type_,
        amount=abs(float(amount)),
        currency=currency,
        category=category,
        payment_method=payment_method,
        notes=notes,
        date=on,
        status=status,
        recurring_id=recurring_id,
        created_at=datetime.utcnow(),
    )
    session.add(tx)
    await session.flush()
    return tx


async def get_transactions_range(
    session: AsyncSession,
    user_id: int,
    start: date,
    end: date | None = None,
    type_: str | None = None,
) -> list[Transaction]:
    """User's transactions dated in [start, end], oldest first."""
    conds = [Transaction.user_id == user_id, Transaction.date >= start]
    if end is not None:
        conds.append(Transaction.date <= end)
    if type_ is not None:
        conds.append(Transaction.type == type_)
    q = await session.execute(
        select(Transaction).where(and_(*conds)).order_by(Transaction.date.asc(), Transaction.id.asc())
    )
    return list(q.scalars().all())


async def list_for_recurring(
    session: AsyncSession,
    user_id: int,
    recurring_id: int,
    offset: int = 0,
    limit: int = 10,
) -> tuple[Sequence[Transaction], int]:
    """One page of a rule's history (newest first) and the total count."""
    where = and_(Transaction.user_id == user_id, Transaction.recurring_id == recurring_id)
    q = await session.execute(
        select(Transaction)
        .where(where)
        .order_by(desc(Transaction.date), desc(Transaction.id))
        .offset(offset)
        .limit(limit)
    )
    total = await session.execute(select(func.count(Transaction.id)).where(where))
    return list(q.scalars().all()), int(total.scalar_one() or 0)


async def list_pending(session: AsyncSession, user_id: int) -> list[Transaction]:
    q = await session.execute(
        select(Transaction)
        .where(and_(Transaction.user_id == user_id, Transaction.status == "pending"))
        .order_by(Transaction.date.asc(), Transaction.id.asc())
    )
    return list(q.scalars().all())


async def confirm_pending(session: AsyncSession, user_id: int, tx_id: int) -> bool:
    q = await session.execute(select(Transaction).where(
        and_(Transaction.id == tx_id, Transaction.user_id == user_id)
    ))
    tx = q.scalar_one_or_none()
    if not tx or tx.status != "pending":
        return False
    tx.status = "completed"
    await session.flush()
    return True
