# moneytracker/handlers/recurring.py
from __future__ import annotations

import logging
import re
from datetime import date, datetime
from html import escape
from zoneinfo import ZoneInfo

from aiogram import F, Router
from aiogram.filters import Command
from aiogram.types import CallbackQuery, Message

from moneytracker.core.config import settings
from moneytracker.core.db import session_scope
from moneytracker.models.recurring import FREQUENCIES
from moneytracker.repo.transactions import confirm_pending, list_pending
from moneytracker.repo.users import get_or_create_user
from moneytracker.services import recurring as svc
from moneytracker.services.recurrence import LAST_DAY
from moneytracker.ui.keyboards import confirm_keyboard, rule_keyboard

log = logging.getLogger(__name__)

router = Router(name=__name__)

_HELP = (
    "Recurring transactions:\n"
    "/recurring_add <frequency> <+|-amount> <Category> [options] [notes]\n\n"
    "frequency: daily, weekly, monthly, yearly\n"
    "options:\n"
    "  every=N — every N days/weeks/months/years (default 1)\n"
    "  dom=1..31 or dom=last — day of month (monthly)\n"
    "  dow=0..6 — day of week, Sunday=0 (weekly)\n"
    "  start=YYYY-MM-DD, end=YYYY-MM-DD — schedule bounds (end inclusive)\n"
    "  pay=cash|card|upi|bank, cur=EUR\n"
    "  manual — created transactions wait for /pending confirmation\n"
    "  quiet — no notification when a transaction is created\n"
    "Examples:\n"
    "  /recurring_add monthly -950 Rent dom=1\n"
    "  /recurring_add weekly -20 Groceries dow=6 pay=card\n"
    "  /recurring_add monthly +3000 Salary dom=last manual\n\n"
    "/recurring_list — rules\n"
    "/recurring_pause <id>, /recurring_resume <id>, /recurring_cancel <id>\n"
    "/recurring_edit <id> amount=N cat=X pay=M end=YYYY-MM-DD|none manual|auto quiet|notify [notes]\n"
    "/recurring_skip <id> — skip the next occurrence\n"
    "/recurring_del <id> — delete (history is kept)\n"
    "/recurring_history <id> [page]\n"
    "/recurring_stats — monthly totals\n"
    "/pending — transactions waiting for confirmation"
)

_SUM_RE = re.compile(r"^[\+\-]\d+(\.\d{1,2})?$")
_OPT_RE = re.compile(r"^(every|dom|dow|start|end|pay|cur)=(\S+)$", re.IGNORECASE)


def _today() -> date:
    return datetime.now(ZoneInfo(settings.tz)).date()


def _int(key: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{key} must be a whole number") from None


def _date(key: str, raw: str) -> date:
    try:
        return date.fromisoformat(raw)
    except ValueError:
        raise ValueError(f"{key} must be a date in YYYY-MM-DD format") from None


def parse_recurring_args(tail: str, today: date) -> dict:
    """
    "<frequency> <+|-amount> <Category> [key=value ...] [manual] [quiet] [notes...]"
    -> keyword arguments for services.recurring.create_rule (currency may be None).
    """
    parts = (tail or "").split()
    if len(parts) < 3:
        raise ValueError(_HELP)

    frequency = parts[0].lower()
    if frequency not in FREQUENCIES:
        raise ValueError("Frequency must be daily, weekly, monthly or yearly")

    sum_token = parts[1]
    if not _SUM_RE.match(sum_token):
        raise ValueError("Amount needs a sign: +100 or -5.50")
    amount = float(sum_token[1:])
    type_ = "income" if sum_token.startswith("+") else "expense"

    out = dict(
        type_=type_, amount=amount, category=parts[2], frequency=frequency,
        start_date=today, interval=1, day_of_month=None, day_of_week=None,
        end_date=None, currency=None, payment_method="cash",
        auto_approve=True, notify_user=True,
    )
    notes = []
    for tok in parts[3:]:
        m = _OPT_RE.match(tok)
        if m:
            key, val = m.group(1).lower(), m.group(2)
            if key == "every":
                out["interval"] = _int(key, val)
            elif key == "dom":
                out["day_of_month"] = LAST_DAY if val.lower() == "last" else _int(key, val)
            elif key == "dow":
                out["day_of_week"] = _int(key, val)
            elif key == "start":
                out["start_date"] = _date(key, val)
            elif key == "end":
                out["end_date"] = _date(key, val)
            elif key == "pay":
                out["payment_method"] = val.lower()
            elif key == "cur":
                out["currency"] = val.upper()
        elif tok.lower() == "manual":
            out["auto_approve"] = False
        elif tok.lower() == "quiet":
            out["notify_user"] = False
        else:
            notes.append(tok)
    out["notes"] = " ".join(notes)
    return out


_EDIT_RE = re.compile(r"^(amount|cat|pay|end)=(\S+)$", re.IGNORECASE)
_EDIT_FLAGS = {
    "manual": ("auto_approve", False),
    "auto": ("auto_approve", True),
    "quiet": ("notify_user", False),
    "notify": ("notify_user", True),
}


def parse_edit_args(tail: str) -> tuple[int, dict]:
    """
    "<id> [amount=N] [cat=X] [pay=M] [end=YYYY-MM-DD|none] [manual|auto] [quiet|notify] [notes...]"
    -> (rule id, keyword arguments for services.recurring.update_rule).
    Leftover words replace the notes; "-" clears them.
    """
    parts = (tail or "").split()
    if len(parts) < 2 or not parts[0].isdigit():
        raise ValueError(
            "Usage: /recurring_edit <id> [amount=N] [cat=X] [pay=cash|card|upi|bank] "
            "[end=YYYY-MM-DD|none] [manual|auto] [quiet|notify] [notes]"
        )
    fields: dict = {}
    notes = []
    for tok in parts[1:]:
        m = _EDIT_RE.match(tok)
        if m:
            key, val = m.group(1).lower(), m.group(2)
            if key == "amount":
                try:
                    fields["amount"] = float(val)
                except ValueError:
                    raise ValueError("amount must be a number") from None
            elif key == "cat":
                fields["category"] = val
            elif key == "pay":
                fields["payment_method"] = val.lower()
            elif key == "end":
                fields["end_date"] = None if val.lower() == "none" else _date(key, val)
        elif tok.lower() in _EDIT_FLAGS:
            key, value = _EDIT_FLAGS[tok.lower()]
            fields[key] = value
        else:
            notes.append(tok)
    if notes:
        fields["notes"] = "" if notes == ["-"] else " ".join(notes)
    return int(parts[0]), fields


def describe_schedule(rule) -> str:
    every = rule.interval or 1
    unit = {"daily": "day", "weekly": "week", "monthly": "month", "yearly": "year"}[rule.frequency]
    text = f"every {unit}" if every == 1 else f"every {every} {unit}s"
    if rule.frequency == "weekly" and rule.day_of_week is not None:
        text += f" on {('Sun', 'Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat')[rule.day_of_week]}"
    if rule.frequency == "monthly" and rule.day_of_month:
        text += " on the last day" if rule.day_of_month == LAST_DAY else f" on day {rule.day_of_month}"
    if rule.end_date:
        text += f" until {rule.end_date.isoformat()}"
    return text


def format_rule(rule) -> str:
    sign = "+" if rule.type == "income" else "-"
    line = (
        f"#{rule.id}: {sign}{rule.amount:.2f} {rule.currency} {escape(rule.category)} | "
        f"{describe_schedule(rule)} | "
    )
    if rule.status in ("active", "paused"):
        line += f"next: {rule.next_occurrence.isoformat()} | "
    line += rule.status
    if not rule.auto_approve:
        line += " | manual"
    if rule.notes:
        line += f" | {escape(rule.notes)}"
    return line


def _parse_id(text: str | None) -> int | None:
    parts = (text or "").split()
    if len(parts) != 2 or not parts[1].isdigit():
        return None
    return int(parts[1])


@router.message(Command("recurring_help"))
async def cmd_recurring_help(m: Message) -> None:
    await m.answer(escape(_HELP))


@router.message(Command("recurring_add"))
async def cmd_recurring_add(m: Message) -> None:
    args = (m.text or "").split(maxsplit=1)
    try:
        params = parse_recurring_args(args[1] if len(args) > 1 else "", _today())
        async with session_scope() as s:
            user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
            params["currency"] = params["currency"] or user.currency or settings.default_currency
            rule = await svc.create_rule(s, user.id, **params)
    except ValueError as e:
        await m.answer(escape(str(e)))
        return
    await m.answer(
        f"♻️ Added rule {format_rule(rule)}",
        reply_markup=rule_keyboard(rule.id, rule.status),
    )


@router.message(Command("recurring_list"))
async def cmd_recurring_list(m: Message) -> None:
    parts = (m.text or "").split()
    status = parts[1].lower() if len(parts) > 1 else None
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        try:
            rules = await svc.list_rules(s, user.id, status)
        except ValueError as e:
            await m.answer(escape(str(e)))
            return

    if not rules:
        await m.answer("No rules yet. See /recurring_help")
        return
    lines = ["♻️ <b>Recurring transactions</b>", ""]
    lines += [format_rule(r) for r in rules]
    await m.answer("\n".join(lines), parse_mode="HTML")


async def _change(m: Message, action: str) -> None:
    rec_id = _parse_id(m.text)
    if rec_id is None:
        await m.answer(f"Usage: /recurring_{action} <id>")
        return
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        try:
            rule = await _apply(s, user.id, rec_id, action)
        except ValueError as e:
            await m.answer(escape(str(e)))
            return
    if rule is None:
        await m.answer("Rule not found.")
        return
    await m.answer(format_rule(rule))


async def _apply(s, user_id: int, rec_id: int, action: str):
    if action == "pause":
        return await svc.pause_rule(s, user_id, rec_id)
    if action == "resume":
        return await svc.resume_rule(s, user_id, rec_id, _today())
    if action == "cancel":
        return await svc.cancel_rule(s, user_id, rec_id)
    if action == "skip":
        return await svc.skip_next(s, user_id, rec_id)
    raise ValueError(f"Unknown action: {action}")


@router.message(Command("recurring_pause"))
async def cmd_recurring_pause(m: Message) -> None:
    await _change(m, "pause")


@router.message(Command("recurring_resume"))
async def cmd_recurring_resume(m: Message) -> None:
    await _change(m, "resume")


@router.message(Command("recurring_cancel"))
async def cmd_recurring_cancel(m: Message) -> None:
    await _change(m, "cancel")


@router.message(Command("recurring_skip"))
async def cmd_recurring_skip(m: Message) -> None:
    await _change(m, "skip")


@router.message(Command("recurring_edit"))
async def cmd_recurring_edit(m: Message) -> None:
    args = (m.text or "").split(maxsplit=1)
    try:
        rec_id, fields = parse_edit_args(args[1] if len(args) > 1 else "")
        async with session_scope() as s:
            user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
            rule = await svc.update_rule(s, user.id, rec_id, **fields)
    except ValueError as e:
        await m.answer(escape(str(e)))
        return
    if rule is None:
        await m.answer("Rule not found.")
        return
    await m.answer(f"✏️ Updated {format_rule(rule)}")


@router.message(Command("recurring_del"))
async def cmd_recurring_del(m: Message) -> None:
    rec_id = _parse_id(m.text)
    if rec_id is None:
        await m.answer("Usage: /recurring_del <id>")
        return
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        ok = await svc.delete_rule(s, user.id, rec_id)
    await m.answer("Deleted. Transactions it created are kept." if ok else "Rule not found.")


@router.message(Command("recurring_history"))
async def cmd_recurring_history(m: Message) -> None:
    parts = (m.text or "").split()
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts[1:]):
        await m.answer("Usage: /recurring_history <id> [page]")
        return
    rec_id = int(parts[1])
    page = int(parts[2]) if len(parts) == 3 else 1
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        hist = await svc.rule_history(s, user.id, rec_id, page=page)
    if hist is None:
        await m.answer("Rule not found.")
        return
    if not hist.transactions:
        await m.answer(f"Rule #{rec_id} has no transactions on page {hist.current_page}.")
        return
    lines = [f"📜 <b>Rule #{rec_id}</b> page {hist.current_page}/{hist.total_pages} ({hist.total_items} total)", ""]
    for tx in hist.transactions:
        sign = "+" if tx.type == "income" else "-"
        lines.append(f"{tx.date.isoformat()} {sign}{tx.amount:.2f} {tx.currency} — {tx.status}")
    await m.answer("\n".join(lines), parse_mode="HTML")


@router.message(Command("recurring_stats"))
async def cmd_recurring_stats(m: Message) -> None:
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        st = await svc.stats_summary(s, user.id)
        currency = user.currency
    await m.answer(
        "📊 <b>Recurring summary</b>\n\n"
        f"active: {st.active}, paused: {st.paused}, completed: {st.completed}, cancelled: {st.cancelled}\n"
        f"Monthly income: +{st.total_monthly_income:.2f} {currency}\n"
        f"Monthly expense: -{st.total_monthly_expense:.2f} {currency}",
        parse_mode="HTML",
    )


@router.message(Command("pending"))
async def cmd_pending(m: Message) -> None:
    async with session_scope() as s:
        user = await get_or_create_user(s, m.from_user.id, m.from_user.username, settings.default_currency)
        txs = await list_pending(s, user.id)
    if not txs:
        await m.answer("Nothing waiting for confirmation.")
        return
    pairs = []
    lines = ["⏳ <b>Pending transactions</b>", ""]
    for tx in txs:
        sign = "+" if tx.type == "income" else "-"
        label = f"{tx.date.isoformat()} {sign}{tx.amount:.2f}"
        lines.append(f"#{tx.id}: {label} {tx.currency} {escape(tx.category)}")
        pairs.append((label, tx.id))
    await m.answer("\n".join(lines), parse_mode="HTML", reply_markup=confirm_keyboard(pairs))


@router.callback_query(F.data.startswith("confirm:"))
async def cb_confirm(c: CallbackQuery) -> None:
    try:
        tx_id = int((c.data or "").split(":", 1)[1])
    except (IndexError, ValueError):
        await c.answer("Bad data")
        return
    async with session_scope() as s:
        user = await get_or_create_user(s, c.from_user.id, c.from_user.username, settings.default_currency)
        ok = await confirm_pending(s, user.id, tx_id)
    await c.answer("Confirmed" if ok else "Not found or already confirmed")


@router.callback_query(F.data.startswith("rec:"))
async def cb_rule(c: CallbackQuery) -> None:
    try:
        _, action, sid = (c.data or "").split(":", 2)
        rec_id = int(sid)
    except ValueError:
        await c.answer("Bad data")
        return
    async with session_scope() as s:
        user = await get_or_create_user(s, c.from_user.id, c.from_user.username, settings.default_currency)
        try:
            rule = await _apply(s, user.id, rec_id, action)
        except ValueError as e:
            await c.answer(str(e))
            return
    if rule is None:
        await c.answer("Rule not found")
        return
    markup = rule_keyboard(rule.id, rule.status) if rule.status in ("active", "paused") else None
    await c.message.edit_text(format_rule(rule), reply_markup=markup)
    await c.answer(rule.status)
