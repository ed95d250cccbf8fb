# -*- coding: utf-8 -*-
# moneytracker/repo/recurring.py
from __future__ import annotations

from datetime import date, datetime
from typing import Sequence

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from moneytracker.models.recurring import RecurringTransaction


async def create_recurring(session: AsyncSession, user_id: int, **fields) -> RecurringTransaction:
    rule = RecurringTransaction(user_id=user_id, **fields)
    session.add(rule)
    await session.flush()
    return rule


async def get_recurring(session: AsyncSession, user_id: int, rec_id: int) -> RecurringTransaction | None:
    q = await session.execute(select(RecurringTransaction).where(
        and_(RecurringTransaction.id == rec_id, RecurringTransaction.user_id == user_id)
    ))
    return q.scalar_one_or_none()


async def get_recurring_by_id(session: AsyncSession, rec_id: int) -> RecurringTransaction | None:
    """Unscoped lookup, for the scheduler only."""
    return await session.get(RecurringTransaction, rec_id)


async def list_for_user(
    session: AsyncSession,
    user_id: int,
    status: str | None = None,
) -> list[RecurringTransaction]:
    stmt = select(RecurringTransaction).where(RecurringTransaction.user_id == user_id)
    if status:
        stmt = stmt.where(RecurringTransaction.status == status)
    q = await session.execute(stmt.order_by(RecurringTransaction.next_occurrence.asc(), RecurringTransaction.id.asc()))
    return list(q.scalars().all())


async def due_recurring_ids(session: AsyncSession, today: date) -> Sequence[int]:
    """Ids of active rules whose next_occurrence <= today."""
    stmt = (
        select(RecurringTransaction.id)
        .where(RecurringTransaction.status == "active")
        .where(RecurringTransaction.next_occurrence <= today)
        .order_by(RecurringTransaction.next_occurrence.asc(), RecurringTransaction.id.asc())
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def claim_and_advance(
    session: AsyncSession,
    rec_id: int,
    expected_next: date,
    next_occurrence: date,
    status: str,
    created: int,
    processed_at: datetime,
) -> bool:
    """
    Move next_occurrence forward only if it still equals `expected_next`
    and the rule is still active. False means someone else got there first.
    """
    stmt = (
        update(RecurringTransaction)
        .where(RecurringTransaction.id == rec_id)
        .where(RecurringTransaction.next_occurrence == expected_next)
        .where(RecurringTransaction.status == "active")
        .values(
            next_occurrence=next_occurrence,
            status=status,
            total_occurrences=RecurringTransaction.total_occurrences + created,
            last_processed=processed_at.replace(tzinfo=None, microsecond=0),
        )
        .execution_options(synchronize_session=False)
    )
    res = await session.execute(stmt)
    return res.rowcount == 1


async def delete_recurring(session: AsyncSession, rec_id: int, user_id: int) -> bool:
    res = await session.execute(
        delete(RecurringTransaction)
        .where(and_(RecurringTransaction.id == rec_id, RecurringTransaction.user_id == user_id))
        .execution_options(synchronize_session=False)
    )
    return res.rowcount == 1


async def count_by_status(session: AsyncSession, user_id: int) -> dict[str, int]:
    q = await session.execute(
        select(RecurringTransaction.status, func.count(RecurringTransaction.id))
        .where(RecurringTransaction.user_id == user_id)
        .group_by(RecurringTransaction.status)
    )
    return {status: int(n) for status, n in q.all()}
