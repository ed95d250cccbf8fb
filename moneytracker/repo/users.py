# moneytracker/repo/users.py
from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from moneytracker.models.user import User


async def get_or_create_user(
    session: AsyncSession,
    tg_id: int,
    username: str | None = None,
    currency: str | None = None,
) -> User:
    q = await session.execute(select(User).where(User.telegram_id == tg_id))
    user = q.scalar_one_or_none()
    if user:
        if username and user.username != username:
            user.username = username
        return user
    user = User(telegram_id=tg_id, username=username, currency=currency or "USD")
    session.add(user)
    await session.flush()
    return user


async def get_user(session: AsyncSession, user_db_id: int) -> User | None:
    q = await session.execute(select(User).where(User.id == user_db_id))
    return q.scalar_one_or_none()
