# -*- coding: utf-8 -*-
# moneytracker/core/scheduler.py
from __future__ import annotations

import logging
from datetime import datetime

from aiogram import Bot
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from moneytracker.core.config import settings
from moneytracker.core.db import Session
from moneytracker.services.recurring import process_due_recurring

log = logging.getLogger(__name__)


def _utc_naive_now() -> datetime:
    # Always naive UTC so comparisons with DATE/DATETIME columns agree.
    return datetime.utcnow().replace(microsecond=0)


def _bot_notifier(bot: Bot):
    async def send(chat_id: int, text: str) -> None:
        await bot.send_message(chat_id=chat_id, text=text)
    return send


def start_scheduler(bot: Bot | None = None) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    notify = _bot_notifier(bot) if bot is not None else None

    @scheduler.scheduled_job(
        "interval",
        seconds=settings.recurring_tick_seconds,
        id="recurring_tick",
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.utcnow(),
    )
    async def tick_recurring() -> None:
        report = await process_due_recurring(Session, _utc_naive_now(), notify)
        if report.created:
            log.debug("recurring created=%s", report.created)

    scheduler.start()
    log.info("Scheduler started every=%ss", settings.recurring_tick_seconds)
    return scheduler
