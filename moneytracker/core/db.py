# moneytracker/core/db.py
# Async SQLAlchemy + session factory + schema bootstrap

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from moneytracker.core.config import settings


def make_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
    )


def make_sessionmaker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


# One engine per process
engine = make_engine(settings.database_url)

Session: async_sessionmaker[AsyncSession] = make_sessionmaker(engine)


@asynccontextmanager
async def session_scope(
    factory: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Unit of work:
    >>> async with session_scope() as s:
    ...     await s.execute(...)

    Commits on normal exit, rolls back and re-raises on error.
    """
    session: AsyncSession = (factory or Session)()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def init_db(bind: AsyncEngine | None = None) -> None:
    """
    Create tables on startup (no migrations).
    All models share the Base declared in moneytracker.models.user.
    """
    from moneytracker.models import Base  # registers every model
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
