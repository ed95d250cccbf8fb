# moneytracker/handlers/goals.py
# Savings goals: create, list, projection + suggestions, contributions

from __future__ import annotations

import re
from datetime import date, datetime
from html import escape

from aiogram import Router
from aiogram.filters import Command
from aiogram.types import Message

from moneytracker.core.config import settings
from moneytracker.core.db import session_scope
from moneytracker.repo.users import get_or_create_user
from moneytracker.services import goals as svc
from moneytracker.services.suggestions import suggest_for_goal

router = Router(name=__name__)

_AMOUNT_RE = re.compile(r"^[\+\-]?\d+(\.\d{1,2})?$")
_SAVED_RE = re.compile(r"^saved=(\d+(\.\d{1,2})?)$", re.IGNORECASE)

# how many projection rows to print before eliding the middle
_MAX_ROWS = 12


def _now() -> datetime:
    return datetime.utcnow().replace(microsecond=0)


def parse_goal_args(tail: str) -> dict:
    """"<target> <YYYY-MM-DD> <name...> [saved=N]" -> kwargs for create_goal."""
    parts = (tail or "").split()
    if len(parts) < 3:
        raise ValueError("Usage: /goal_add <target> <YYYY-MM-DD> <name> [saved=N]")
    if not _AMOUNT_RE.match(parts[0]) or parts[0].startswith(("+", "-")):
        raise ValueError("Target must be a positive amount, e.g. 5000 or 1250.50")
    try:
        deadline = date.fromisoformat(parts[1])
    except ValueError:
        raise ValueError("Deadline must be a date in YYYY-MM-DD format") from None

    current = 0.0
    name = []
    for tok in parts[2:]:
        m = _SAVED_RE.match(tok)
        if m:
            current = float(m.group(1))
        else:
            name.append(tok)
    if not name:
        raise ValueError("Goal name cannot be empty.")
    return dict(target_amount=float(parts[0]), deadline=deadline, name=" ".join(name), current_amount=current)


def progress_bar(pct: float, width: int = 10) -> str:
    """Display only: clamps to 0..100."""
    filled = round(max(0.0, min(100.0, pct)) / 100 * width)
    return "█" * filled + "░" * (width - filled)


def format_goal_line(goal, now: datetime) -> str:
    pct = svc.progress_percentage(goal)
    days = svc.days_remaining(goal, now)
    when = f"{days} days left" if days >= 0 else f"{-days} days overdue"
    return (
        f"#{goal.id} {escape(goal.name)}: {goal.current_amount:.2f}/{goal.target_amount:.2f} "
        f"{progress_bar(pct)} {pct:.0f}% | {when}"
    )


def format_projection(goal, proj: svc.GoalProjection) -> list[str]:
    lines = [
        f"🎯 <b>{escape(goal.name)}</b>",
        f"Progress: {proj.current_progress:.1f}% {progress_bar(proj.current_progress)}",
        f"Deadline: {goal.deadline.isoformat()} ({proj.days_remaining} days)",
        f"Monthly target: {proj.monthly_target:.2f}",
    ]
    points = proj.projection
    if points:
        lines += ["", "<b>Projection</b>"]
        row = "month {0.month}: {0.projected_amount:.2f} ({0.projected_progress:.0f}%)"
        if len(points) <= _MAX_ROWS:
            lines += [row.format(p) for p in points]
        else:
            lines += [row.format(p) for p in points[:_MAX_ROWS - 1]]
            lines += ["…", row.format(points[-1])]
    return lines


def _parse_id(text: str | None) -> int | None:
    parts = (text or "").split()
    if len(parts) != 2 or not parts[1].isdigit():
        return None
    return int(parts[1])


@router.message(Command("goal_add"))
async def cmd_goal_add(m: Message) -> None:
    args = (m.text or "").split(maxsplit=1)
    now = _now()
    try:
        params = parse_goal_args(args[1] if len(args) > 1 else "")
        async with session_scope() as s:
            user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
            goal = await svc.create_goal(s, user.id, now=now, **params)
    except ValueError as e:
        await m.answer(escape(str(e)))
        return
    await m.answer(
        f"🎯 Goal #{goal.id} created. Save {goal.monthly_target:.2f} per month to reach it.\n"
        f"{format_goal_line(goal, now)}"
    )


@router.message(Command("goals"))
async def cmd_goals(m: Message) -> None:
    now = _now()
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        goals = await svc.list_goals(s, user.id)
    if not goals:
        await m.answer("No goals yet. /goal_add <target> <YYYY-MM-DD> <name>")
        return
    lines = ["🎯 <b>Savings goals</b>", ""] + [format_goal_line(g, now) for g in goals]
    await m.answer("\n".join(lines), parse_mode="HTML")


@router.message(Command("goal"))
async def cmd_goal(m: Message) -> None:
    goal_id = _parse_id(m.text)
    if goal_id is None:
        await m.answer("Usage: /goal <id>")
        return
    now = _now()
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        goal = await svc.get_goal(s, user.id, goal_id)
        if goal is None:
            await m.answer("Goal not found.")
            return
        proj = svc.project(goal, now)
        advice = await suggest_for_goal(s, user.id, goal_id, now)

    lines = format_projection(goal, proj)
    if advice.suggestions:
        lines += ["", "<b>Suggestions</b>"]
        lines += [f"• {escape(sg.message)}" for sg in advice.suggestions]
    elif not advice.ok:
        lines += ["", "Suggestions are unavailable right now."]
    await m.answer("\n".join(lines), parse_mode="HTML")


@router.message(Command("goal_save"))
async def cmd_goal_save(m: Message) -> None:
    parts = (m.text or "").split()
    if len(parts) != 3 or not parts[1].isdigit() or not _AMOUNT_RE.match(parts[2]):
        await m.answer("Usage: /goal_save <id> <amount> (negative to withdraw)")
        return
    now = _now()
    try:
        async with session_scope() as s:
            user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
            goal = await svc.add_contribution(s, user.id, int(parts[1]), float(parts[2]), now)
    except ValueError as e:
        await m.answer(escape(str(e)))
        return
    if goal is None:
        await m.answer("Goal not found.")
        return
    await m.answer(format_goal_line(goal, now))


@router.message(Command("goal_del"))
async def cmd_goal_del(m: Message) -> None:
    goal_id = _parse_id(m.text)
    if goal_id is None:
        await m.answer("Usage: /goal_del <id>")
        return
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        ok = await svc.delete_goal(s, user.id, goal_id)
    await m.answer("Deleted." if ok else "Goal not found.")
