from __future__ import annotations

import tempfile
import unittest

from moneytracker.core.db import init_db, make_engine, make_sessionmaker, session_scope
from moneytracker.repo.users import get_or_create_user

TELEGRAM_ID = 1001


class DatabaseTestCase(unittest.IsolatedAsyncioTestCase):
    """Fresh sqlite file per test with one user already created."""

    async def asyncSetUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.engine = make_engine(f"sqlite+aiosqlite:///{self._tmp.name}/test.db")
        await init_db(self.engine)
        self.factory = make_sessionmaker(self.engine)
        async with self.session() as s:
            user = await get_or_create_user(s, TELEGRAM_ID, "alice")
            self.user_id = user.id

    async def asyncTearDown(self) -> None:
        await self.engine.dispose()
        self._tmp.cleanup()

    def session(self):
        return session_scope(self.factory)
