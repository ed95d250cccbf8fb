# -*- coding: utf-8 -*-
# moneytracker/services/recurring.py
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from html import escape
from typing import Awaitable, Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from moneytracker.core.db import session_scope
from moneytracker.models.recurring import RULE_STATUSES, RecurringTransaction
from moneytracker.models.transaction import Transaction
from moneytracker.repo import recurring as repo
from moneytracker.repo.transactions import add_transaction, list_for_recurring
from moneytracker.repo.users import get_user
from moneytracker.services.recurrence import (
    compute_next_occurrence,
    fast_forward,
    first_occurrence,
    monthly_equivalent,
    pending_occurrences,
    validate_rule,
)

log = logging.getLogger(__name__)

# (telegram chat id, text)
Notifier = Callable[[int, str], Awaitable[None]]


@dataclass
class TickReport:
    due: int = 0
    processed: int = 0
    created: int = 0
    skipped: int = 0
    errors: list[tuple[int, str]] = field(default_factory=list)
    duration_ms: int = 0


@dataclass
class Materialized:
    rule_id: int
    chat_id: int | None
    notify: bool
    transactions: list[Transaction]
    status: str


@dataclass
class HistoryPage:
    transactions: list[Transaction]
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int


@dataclass
class RecurringStats:
    active: int = 0
    paused: int = 0
    completed: int = 0
    cancelled: int = 0
    total_active: int = 0
    total_monthly_income: float = 0.0
    total_monthly_expense: float = 0.0


def _ensure_naive(dt: datetime) -> datetime:
    """Any datetime to naive UTC (tzinfo=None), matching the DateTime columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _notes_for(rule: RecurringTransaction) -> str:
    if rule.notes:
        return f"{rule.notes} (Recurring)"
    return "Auto-generated recurring transaction"


# --- rule management -------------------------------------------------------

async def create_rule(
    session: AsyncSession,
    user_id: int,
    type_: str,
    amount: float,
    category: str,
    frequency: str,
    start_date: date,
    interval: int = 1,
    day_of_month: int | None = None,
    day_of_week: int | None = None,
    end_date: date | None = None,
    currency: str = "USD",
    payment_method: str = "cash",
    notes: str = "",
    auto_approve: bool = True,
    notify_user: bool = True,
) -> RecurringTransaction:
    validate_rule(
        type_, amount, category, frequency, start_date,
        interval=interval, day_of_month=day_of_month, day_of_week=day_of_week,
        end_date=end_date, payment_method=payment_method,
    )
    first = first_occurrence(start_date, frequency, day_of_month, day_of_week)
    if end_date is not None and first > end_date:
        raise ValueError("No occurrence falls between the start and end dates.")

    rule = await repo.create_recurring(
        session, user_id,
        type=type_, amount=float(amount), currency=currency.upper(),
        category=category.strip(), payment_method=payment_method,
        notes=notes or "", frequency=frequency, interval=interval,
        day_of_month=day_of_month, day_of_week=day_of_week,
        start_date=start_date, end_date=end_date, next_occurrence=first,
        status="active", auto_approve=auto_approve, notify_user=notify_user,
        total_occurrences=0,
    )
    log.info("recurring_created id=%s user=%s freq=%s next=%s", rule.id, user_id, frequency, first)
    return rule


async def list_rules(session: AsyncSession, user_id: int, status: str | None = None) -> list[RecurringTransaction]:
    if status is not None and status not in RULE_STATUSES:
        raise ValueError(f"Status must be one of: {', '.join(RULE_STATUSES)}")
    return await repo.list_for_user(session, user_id, status)


async def get_rule(session: AsyncSession, user_id: int, rec_id: int) -> RecurringTransaction | None:
    return await repo.get_recurring(session, user_id, rec_id)


async def _transition(
    session: AsyncSession,
    user_id: int,
    rec_id: int,
    allowed: tuple[str, ...],
    to: str,
) -> RecurringTransaction | None:
    rule = await repo.get_recurring(session, user_id, rec_id)
    if rule is None:
        return None
    if rule.status not in allowed:
        raise ValueError(f"Rule #{rule.id} is {rule.status} and cannot become {to}.")
    rule.status = to
    await session.flush()
    log.info("recurring_status id=%s status=%s", rule.id, to)
    return rule


async def pause_rule(session: AsyncSession, user_id: int, rec_id: int) -> RecurringTransaction | None:
    return await _transition(session, user_id, rec_id, ("active",), "paused")


async def cancel_rule(session: AsyncSession, user_id: int, rec_id: int) -> RecurringTransaction | None:
    return await _transition(session, user_id, rec_id, ("active", "paused"), "cancelled")


async def resume_rule(
    session: AsyncSession,
    user_id: int,
    rec_id: int,
    today: date,
) -> RecurringTransaction | None:
    """
    paused -> active. Occurrences that fell inside the pause are dropped,
    not back-filled; a rule that ran past its end date while paused completes.
    """
    rule = await _transition(session, user_id, rec_id, ("paused",), "active")
    if rule is None:
        return None
    nxt = fast_forward(rule, today)
    if nxt.exhausted:
        rule.status = "completed"
    else:
        rule.next_occurrence = nxt.on
    await session.flush()
    return rule


async def skip_next(session: AsyncSession, user_id: int, rec_id: int) -> RecurringTransaction | None:
    """Move past the upcoming occurrence without creating a transaction."""
    rule = await repo.get_recurring(session, user_id, rec_id)
    if rule is None:
        return None
    if rule.status not in ("active", "paused"):
        raise ValueError(f"Rule #{rule.id} is {rule.status}; nothing to skip.")
    nxt = compute_next_occurrence(rule, rule.next_occurrence)
    if nxt.exhausted:
        rule.status = "completed"
    else:
        rule.next_occurrence = nxt.on
    await session.flush()
    log.info("recurring_skipped id=%s next=%s status=%s", rule.id, rule.next_occurrence, rule.status)
    return rule


EDITABLE_FIELDS = ("amount", "category", "payment_method", "notes", "end_date", "auto_approve", "notify_user")


async def update_rule(session: AsyncSession, user_id: int, rec_id: int, **fields) -> RecurringTransaction | None:
    """
    Edits the template and end date of a rule. Frequency, interval, anchor
    days and start date are fixed once created.

    An end date moved before the upcoming occurrence completes the rule.
    """
    unknown = sorted(set(fields) - set(EDITABLE_FIELDS))
    if unknown:
        raise ValueError(f"Cannot change: {', '.join(unknown)}")
    rule = await repo.get_recurring(session, user_id, rec_id)
    if rule is None:
        return None

    merged = {k: getattr(rule, k) for k in EDITABLE_FIELDS}
    merged.update(fields)
    validate_rule(
        rule.type, merged["amount"], merged["category"], rule.frequency, rule.start_date,
        interval=rule.interval, day_of_month=rule.day_of_month, day_of_week=rule.day_of_week,
        end_date=merged["end_date"], payment_method=merged["payment_method"],
    )

    for key, value in fields.items():
        if key == "amount":
            value = float(value)
        elif key == "category":
            value = value.strip()
        elif key == "notes":
            value = value or ""
        setattr(rule, key, value)

    end = rule.end_date
    if end is not None and rule.status in ("active", "paused") and rule.next_occurrence > end:
        rule.status = "completed"
    await session.flush()
    log.info("recurring_updated id=%s fields=%s status=%s", rule.id, ",".join(sorted(fields)), rule.status)
    return rule


async def delete_rule(session: AsyncSession, user_id: int, rec_id: int) -> bool:
    """Drops the rule only; transactions it already created stay."""
    return await repo.delete_recurring(session, rec_id, user_id)


async def rule_history(
    session: AsyncSession,
    user_id: int,
    rec_id: int,
    page: int = 1,
    limit: int = 10,
) -> HistoryPage | None:
    rule = await repo.get_recurring(session, user_id, rec_id)
    if rule is None:
        return None
    page = max(1, page)
    limit = max(1, limit)
    txs, total = await list_for_recurring(session, user_id, rec_id, offset=(page - 1) * limit, limit=limit)
    return HistoryPage(
        transactions=list(txs),
        current_page=page,
        total_pages=math.ceil(total / limit),
        total_items=total,
        items_per_page=limit,
    )


async def stats_summary(session: AsyncSession, user_id: int) -> RecurringStats:
    stats = RecurringStats()
    for status, n in (await repo.count_by_status(session, user_id)).items():
        if hasattr(stats, status):
            setattr(stats, status, n)

    active = await repo.list_for_user(session, user_id, "active")
    for rule in active:
        monthly = monthly_equivalent(rule)
        if rule.type == "income":
            stats.total_monthly_income += monthly
        else:
            stats.total_monthly_expense += monthly
    stats.total_active = len(active)
    stats.total_monthly_income = round(stats.total_monthly_income, 2)
    stats.total_monthly_expense = round(stats.total_monthly_expense, 2)
    return stats


# --- scheduler tick --------------------------------------------------------

async def _materialize_rule(session: AsyncSession, rec_id: int, now: datetime) -> Materialized | None:
    """
    Creates the transactions of one rule and advances it, inside the caller's
    unit of work. None means the rule was no longer due (or was claimed by
    another tick in the meantime).
    """
    rule = await repo.get_recurring_by_id(session, rec_id)
    if rule is None or rule.status != "active":
        return None

    dates, following = pending_occurrences(rule, now.date())
    if not dates and not following.exhausted:
        return None

    expected = rule.next_occurrence
    if following.exhausted:
        new_next = dates[-1] if dates else expected
        new_status = "completed"
    else:
        new_next = following.on
        new_status = "active"

    claimed = await repo.claim_and_advance(
        session, rule.id, expected, new_next, new_status, len(dates), now,
    )
    if not claimed:
        log.info("recurring_claim_lost id=%s expected=%s", rec_id, expected)
        return None

    status = "completed" if rule.auto_approve else "pending"
    created: list[Transaction] = []
    for d in dates:
        tx = await add_transaction(
            session,
            user_id=rule.user_id,
            type_=rule.type,
            amount=rule.amount,
            category=rule.category,
            on=d,
            currency=rule.currency,
            payment_method=rule.payment_method,
            notes=_notes_for(rule),
            status=status,
            recurring_id=rule.id,
        )
        created.append(tx)
        log.debug("recurring_tx id=%s tx=%s date=%s status=%s", rule.id, tx.id, d, status)

    if new_status == "completed":
        log.info("recurring_completed id=%s (reached end date)", rule.id)

    user = await get_user(session, rule.user_id)
    return Materialized(
        rule_id=rule.id,
        chat_id=user.telegram_id if user else None,
        notify=bool(rule.notify_user),
        transactions=created,
        status=new_status,
    )


def format_notification(m: Materialized) -> str:
    lines = [f"♻️ Recurring rule #{m.rule_id} created {len(m.transactions)} transaction(s):"]
    for tx in m.transactions:
        sign = "+" if tx.type == "income" else "-"
        pending = " (pending confirmation)" if tx.status == "pending" else ""
        lines.append(f"• {tx.date.isoformat()} {sign}{tx.amount:.2f} {tx.currency} {escape(tx.category)}{pending}")
    if m.status == "completed":
        lines.append("The rule reached its end date and is now completed.")
    return "\n".join(lines)


def format_failure(rule: RecurringTransaction) -> str:
    return (
        f"⚠️ Failed to process your {rule.frequency} {rule.type} for {escape(rule.category)} "
        f"(rule #{rule.id}). Please check the rule settings."
    )


async def _notify_failure(
    factory: async_sessionmaker[AsyncSession] | None,
    rec_id: int,
    notify: Notifier,
) -> None:
    """Tell the owner a rule failed; never raises."""
    try:
        async with session_scope(factory) as s:
            rule = await repo.get_recurring_by_id(s, rec_id)
            user = await get_user(s, rule.user_id) if rule is not None else None
            if rule is None or user is None:
                return
            chat_id, text = user.telegram_id, format_failure(rule)
        await notify(chat_id, text)
    except Exception:
        log.exception("recurring_error_notify_failed id=%s", rec_id)


async def process_due_recurring(
    factory: async_sessionmaker[AsyncSession] | None,
    now: datetime,
    notify: Notifier | None = None,
) -> TickReport:
    """
    One scheduling pass: materializes every active rule with
    next_occurrence <= today, catching up all missed occurrences.

    Each rule is its own unit of work; a failure rolls back that rule only
    and the pass moves on. Times are naive UTC.
    """
    started = time.monotonic()
    now = _ensure_naive(now).replace(microsecond=0)
    report = TickReport()

    async with session_scope(factory) as s:
        ids = await repo.due_recurring_ids(s, now.date())
    report.due = len(ids)
    if ids:
        log.info("recurring_due count=%s", len(ids))

    for rec_id in ids:
        try:
            async with session_scope(factory) as s:
                result = await _materialize_rule(s, rec_id, now)
        except Exception as e:
            log.exception("recurring_failed id=%s", rec_id)
            report.errors.append((rec_id, f"{e.__class__.__name__}: {e}"))
            if notify is not None:
                await _notify_failure(factory, rec_id, notify)
            continue

        if result is None:
            report.skipped += 1
            continue
        report.processed += 1
        report.created += len(result.transactions)

        if notify is not None and result.notify and result.chat_id and result.transactions:
            try:
                await notify(result.chat_id, format_notification(result))
            except Exception:
                log.exception("recurring_notify_failed id=%s", rec_id)

    report.duration_ms = int((time.monotonic() - started) * 1000)
    if ids:
        log.info(
            "recurring_tick processed=%s/%s created=%s skipped=%s errors=%s ms=%s",
            report.processed, report.due, report.created, report.skipped,
            len(report.errors), report.duration_ms,
        )
    return report
