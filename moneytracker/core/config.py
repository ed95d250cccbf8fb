# moneytracker/core/config.py
# Config without magic: read .env, validate the minimum, expose a typed object.
from __future__ import annotations

import os
from dataclasses import dataclass
from dotenv import load_dotenv

# Environment variables from .env in the working directory.
# Example .env:
# BOT_TOKEN=123:ABC
# DATABASE_URL=sqlite+aiosqlite:///./moneytracker.db
# TZ=UTC
# RECURRING_TICK_SECONDS=60
load_dotenv()

_DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./moneytracker.db"


def _parse_positive_int(raw: str | None, default: int) -> int:
    if not raw or not raw.strip():
        return default
    value = int(raw.strip())
    if value <= 0:
        raise RuntimeError(f"expected a positive integer, got {raw!r}")
    return value


@dataclass(frozen=True)
class Settings:
    bot_token: str
    database_url: str
    tz: str
    log_level: str
    recurring_tick_seconds: int
    default_currency: str

    @staticmethod
    def load() -> "Settings":
        bot_token = os.getenv("BOT_TOKEN", "").strip()
        database_url = os.getenv("DATABASE_URL", "").strip() or _DEFAULT_DATABASE_URL
        tz = os.getenv("TZ", "UTC").strip() or "UTC"
        log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
        tick = _parse_positive_int(os.getenv("RECURRING_TICK_SECONDS"), 60)
        currency = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper() or "USD"

        if not bot_token:
            raise RuntimeError("BOT_TOKEN is not set in .env")
        return Settings(
            bot_token=bot_token,
            database_url=database_url,
            tz=tz,
            log_level=log_level,
            recurring_tick_seconds=tick,
            default_currency=currency,
        )


settings = Settings.load()
