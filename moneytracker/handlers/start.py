# moneytracker/handlers/start.py
# Onboarding (/start) and help (/help)

from __future__ import annotations

from aiogram import Router
from aiogram.filters import Command, CommandStart
from aiogram.types import Message

from moneytracker.core.config import settings
from moneytracker.core.db import session_scope
from moneytracker.repo.users import get_or_create_user

router = Router(name=__name__)

_HELP = (
    "📘 <b>Help</b>\n\n"
    "<b>Recurring transactions</b>\n"
    "/recurring_add, /recurring_edit, /recurring_list, /recurring_stats, /pending\n"
    "/recurring_help — full syntax\n\n"
    "<b>Savings goals</b>\n"
    "/goal_add &lt;target&gt; &lt;YYYY-MM-DD&gt; &lt;name&gt; — new goal\n"
    "/goals — all goals with progress\n"
    "/goal &lt;id&gt; — projection and suggestions\n"
    "/goal_save &lt;id&gt; &lt;amount&gt; — add (or withdraw with -) savings\n"
    "/goal_del &lt;id&gt; — delete a goal"
)


@router.message(CommandStart())
async def cmd_start(m: Message) -> None:
    async with session_scope() as s:
        await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
    await m.answer(
        "👋 Hi! I track recurring payments and savings goals.\n\n" + _HELP,
        parse_mode="HTML",
    )


@router.message(Command("help"))
async def cmd_help(m: Message) -> None:
    await m.answer(_HELP, parse_mode="HTML")
