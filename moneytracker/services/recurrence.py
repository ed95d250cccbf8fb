# -*- coding: utf-8 -*-
# moneytracker/services/recurrence.py
"""
Date arithmetic for recurring transactions.

Everything here is pure: no session, no clock. Callers pass the dates in,
which keeps the scheduler tick and the chat handlers on the same rules.

Weekdays follow the stored convention: Sunday = 0 … Saturday = 6.
"""
from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta

from moneytracker.models.recurring import FREQUENCIES
from moneytracker.models.transaction import TX_TYPES, PAYMENT_METHODS

LAST_DAY = -1

_MONTHLY_FACTOR = {
    "daily": 30.0,
    "weekly": 4.0,
    "monthly": 1.0,
    "yearly": 1.0 / 12.0,
}


@dataclass(frozen=True)
class NextOccurrence:
    """Result of advancing a rule by one step.

    ``on`` is None when the rule ran past its end date; ``status`` is then
    ``"completed"``. Exhaustion is a normal outcome, not an error.
    """
    on: date | None
    status: str

    @property
    def exhausted(self) -> bool:
        return self.on is None


def weekday(d: date) -> int:
    """Sunday-based weekday (0..6)."""
    return d.isoweekday() % 7


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def resolve_day(year: int, month: int, day: int) -> int:
    """-1 means the last day; anything else is clamped to the month length."""
    last = days_in_month(year, month)
    return last if day == LAST_DAY else min(day, last)


def add_months(d: date, n: int, day: int | None = None) -> date:
    """Shift d by n months (n may be negative), landing on `day` (default: d.day)."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return date(year, month, resolve_day(year, month, d.day if day is None else day))


def _anchor_day(rule, from_date: date) -> int:
    start = rule.start_date
    return start.day if start is not None else from_date.day


def _advance(rule, from_date: date) -> date:
    interval = rule.interval or 1
    freq = rule.frequency

    if freq == "daily":
        return from_date + timedelta(days=interval)

    if freq == "weekly":
        dow = rule.day_of_week
        if dow is not None and weekday(from_date) != dow:
            # not yet on the requested weekday: move forward to it, never back
            return from_date + timedelta(days=(dow - weekday(from_date)) % 7)
        return from_date + timedelta(weeks=interval)

    if freq == "monthly":
        day = rule.day_of_month or _anchor_day(rule, from_date)
        return add_months(from_date, interval, day)

    if freq == "yearly":
        year = from_date.year + interval
        day = resolve_day(year, from_date.month, _anchor_day(rule, from_date))
        return date(year, from_date.month, day)

    raise ValueError(f"unknown frequency: {freq!r}")


def compute_next_occurrence(rule, from_date: date) -> NextOccurrence:
    """
    Next scheduled date after `from_date` for `rule`.

    `rule` is anything with the RecurringTransaction schedule attributes
    (frequency, interval, day_of_month, day_of_week, start_date, end_date,
    status). The same (rule, from_date) pair always gives the same answer.
    """
    candidate = _advance(rule, from_date)
    if rule.end_date is not None and candidate > rule.end_date:
        return NextOccurrence(on=None, status="completed")
    return NextOccurrence(on=candidate, status=rule.status)


def pending_occurrences(rule, today: date) -> tuple[list[date], NextOccurrence]:
    """
    All occurrences from rule.next_occurrence up to and including `today`,
    plus the schedule position that follows them.

    After downtime this returns every missed date, not just the first one.
    """
    current: date = rule.next_occurrence
    if rule.end_date is not None and current > rule.end_date:
        return [], NextOccurrence(on=None, status="completed")

    due: list[date] = []
    following = NextOccurrence(on=current, status=rule.status)
    while current <= today:
        due.append(current)
        following = compute_next_occurrence(rule, current)
        if following.exhausted:
            break
        current = following.on
    return due, following


def first_occurrence(
    start_date: date,
    frequency: str,
    day_of_month: int | None = None,
    day_of_week: int | None = None,
) -> date:
    """Initial next_occurrence for a new rule; never earlier than start_date."""
    if frequency == "weekly" and day_of_week is not None:
        return start_date + timedelta(days=(day_of_week - weekday(start_date)) % 7)
    if frequency == "monthly" and day_of_month:
        candidate = start_date.replace(
            day=resolve_day(start_date.year, start_date.month, day_of_month)
        )
        if candidate < start_date:
            candidate = add_months(start_date, 1, day_of_month)
        return candidate
    return start_date


def monthly_equivalent(rule) -> float:
    """Approximate monthly amount of a rule (daily ×30, weekly ×4, yearly ÷12)."""
    factor = _MONTHLY_FACTOR.get(rule.frequency, 1.0)
    return float(rule.amount) * factor / max(1, rule.interval or 1)


def validate_rule(
    type_: str,
    amount: float,
    category: str,
    frequency: str,
    start_date: date | None,
    interval: int = 1,
    day_of_month: int | None = None,
    day_of_week: int | None = None,
    end_date: date | None = None,
    payment_method: str = "cash",
) -> None:
    """Boundary checks for a new or edited rule. Raises ValueError."""
    if type_ not in TX_TYPES:
        raise ValueError("Type must be either income or expense.")
    if amount is None or amount <= 0:
        raise ValueError("Amount must be positive.")
    if not (category or "").strip():
        raise ValueError("Category cannot be empty.")
    if frequency not in FREQUENCIES:
        raise ValueError("Frequency must be daily, weekly, monthly, or yearly.")
    if payment_method not in PAYMENT_METHODS:
        raise ValueError(f"Payment method must be one of: {', '.join(PAYMENT_METHODS)}.")
    if start_date is None:
        raise ValueError("Start date is required.")
    if interval is None or interval < 1:
        raise ValueError("Interval must be a positive integer.")
    if day_of_month is not None and not (day_of_month == LAST_DAY or 1 <= day_of_month <= 31):
        raise ValueError("Day of month must be 1..31 or -1 for the last day.")
    if day_of_week is not None and not 0 <= day_of_week <= 6:
        raise ValueError("Day of week must be 0..6 (Sunday = 0).")
    if end_date is not None and end_date < start_date:
        raise ValueError("End date cannot be before start date.")


def fast_forward(rule, today: date) -> NextOccurrence:
    """First schedule position on or after `today`, dropping everything before it."""
    current: date = rule.next_occurrence
    while current < today:
        following = compute_next_occurrence(rule, current)
        if following.exhausted:
            return following
        current = following.on
    if rule.end_date is not None and current > rule.end_date:
        return NextOccurrence(on=None, status="completed")
    return NextOccurrence(on=current, status=rule.status)
