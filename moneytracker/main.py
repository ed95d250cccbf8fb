# moneytracker/main.py
from __future__ import annotations

import asyncio
import logging
from contextlib import suppress

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.types import BotCommand

from moneytracker.core.config import settings
from moneytracker.core.db import engine, init_db
from moneytracker.core.logging import setup_logging
from moneytracker.core.scheduler import start_scheduler
from moneytracker.handlers import setup as setup_handlers


async def _set_bot_commands(bot: Bot) -> None:
    commands = [
        BotCommand(command="start", description="Start and onboarding"),
        BotCommand(command="help", description="What I can do"),
        BotCommand(command="recurring_help", description="Recurring transactions help"),
        BotCommand(command="recurring_list", description="List recurring rules"),
        BotCommand(command="recurring_stats", description="Monthly recurring totals"),
        BotCommand(command="pending", description="Transactions awaiting confirmation"),
        BotCommand(command="goals", description="Savings goals"),
        BotCommand(command="goal_add", description="Create a savings goal"),
    ]
    await bot.set_my_commands(commands)


async def main() -> None:
    setup_logging(settings.log_level)
    await init_db()

    bot = Bot(
        token=settings.bot_token,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )
    dp = Dispatcher()

    setup_handlers(dp)
    await _set_bot_commands(bot)

    scheduler = start_scheduler(bot)

    logging.info("Bot starting polling…")
    try:
        await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())
    finally:
        scheduler.shutdown(wait=False)
        with suppress(Exception):
            await bot.session.close()
        await engine.dispose()
        logging.info("Bot stopped.")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
