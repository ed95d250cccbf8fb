# moneytracker/services/suggestions.py
"""
Heuristic advice for a savings goal.

Each rule is an independent function of (goal, spending summary, now) that
returns one Suggestion or None; `suggest` runs them in order. Nothing here
is an optimisation, just thresholds over the last three months of expenses.
"""
from __future__ import annotations

import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from typing import Callable, Iterable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from moneytracker.repo.goals import get_goal
from moneytracker.repo.transactions import get_transactions_range
from moneytracker.services.goals import days_remaining, progress_percentage
from moneytracker.services.recurrence import add_months

log = logging.getLogger(__name__)

LOOKBACK_MONTHS = 3
SET_ASIDE_SHARE = 0.2


@dataclass(frozen=True)
class Suggestion:
    type: str
    message: str
    action: str
    value: Optional[float] = None
    category: Optional[str] = None
    amount: Optional[float] = None

    def as_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass(frozen=True)
class SpendingSummary:
    window_start: date
    by_category: dict[str, float] = field(default_factory=dict)
    total: float = 0.0
    count: int = 0
    last_spent: dict[str, date] = field(default_factory=dict)

    @classmethod
    def from_transactions(cls, transactions: Iterable, now: datetime) -> "SpendingSummary":
        """Expenses dated on/after now - 3 calendar months, summed per category."""
        start = add_months(now.date(), -LOOKBACK_MONTHS)
        agg: dict[str, float] = defaultdict(float)
        total = 0.0
        count = 0
        last: dict[str, date] = {}
        for tx in transactions:
            if tx.type != "expense" or tx.date < start:
                continue
            amount = abs(float(tx.amount))
            agg[tx.category] += amount
            if tx.category not in last or tx.date > last[tx.category]:
                last[tx.category] = tx.date
            total += amount
            count += 1
        return cls(window_start=start, by_category=dict(agg), total=total, count=count, last_spent=last)

    @property
    def top_category(self) -> tuple[str, float] | None:
        if not self.by_category:
            return None
        # highest sum wins; on a tie the most recently spent category
        return max(self.by_category.items(), key=lambda kv: (kv[1], self.last_spent.get(kv[0], date.min)))

    @property
    def avg_monthly(self) -> float:
        return self.total / LOOKBACK_MONTHS


@dataclass
class SuggestionResult:
    ok: bool
    suggestions: list[Suggestion] = field(default_factory=list)
    error: str | None = None


Rule = Callable[..., Optional[Suggestion]]


def _remaining(goal) -> float:
    return float(goal.target_amount) - float(goal.current_amount)


def catch_up(goal, summary: SpendingSummary, now: datetime) -> Suggestion | None:
    progress = progress_percentage(goal)
    days = days_remaining(goal, now)
    if not (progress < 50 and days < 30):
        return None
    weeks = max(1, math.ceil(days / 7))
    weekly = _remaining(goal) / weeks
    return Suggestion(
        type="catch_up",
        message=(
            f"To meet your goal by {goal.deadline.strftime('%a %b %d %Y')}, "
            f"increase your weekly savings by {weekly:.2f}."
        ),
        action="increase_savings",
        value=weekly,
    )


def reduce_spending(goal, summary: SpendingSummary, now: datetime) -> Suggestion | None:
    top = summary.top_category
    if top is None:
        return None
    category, amount = top
    return Suggestion(
        type="spending_insight",
        message=(
            f"Your highest spending is in {category} ({amount:.2f} in 3 months). "
            "Consider reducing expenses here to boost savings."
        ),
        action="reduce_spending",
        category=category,
        amount=amount,
    )


def budget_tip(goal, summary: SpendingSummary, now: datetime) -> Suggestion | None:
    if summary.count == 0:
        return None
    avg = summary.avg_monthly
    return Suggestion(
        type="general_insight",
        message=(
            f"Your average monthly spending is {avg:.2f}. "
            f"Setting aside 20% could save {avg * SET_ASIDE_SHARE:.2f} monthly."
        ),
        action="budget_tip",
        value=avg * SET_ASIDE_SHARE,
    )


def motivation(goal, summary: SpendingSummary, now: datetime) -> Suggestion | None:
    progress = progress_percentage(goal)
    left = _remaining(goal)
    if progress >= 75:
        text = f"You're only {left:.2f} away from your goal! Keep it up!"
    elif progress >= 50:
        text = f"You're halfway there! {left:.2f} to go."
    else:
        return None
    return Suggestion(type="motivation", message=text, action="motivate")


RULES: tuple[Rule, ...] = (catch_up, reduce_spending, budget_tip, motivation)


def suggest(goal, summary: SpendingSummary, now: datetime, rules: Iterable[Rule] = RULES) -> list[Suggestion]:
    out = []
    for rule in rules:
        s = rule(goal, summary, now)
        if s is not None:
            out.append(s)
    return out


async def suggest_for_goal(
    session: AsyncSession,
    user_id: int,
    goal_id: int,
    now: datetime,
) -> SuggestionResult:
    """
    Loads the goal and the user's recent expenses and runs every rule.

    Never raises: failures are logged and come back as ok=False with an
    empty list, so callers that only show `.suggestions` behave as if
    there was simply nothing to suggest.
    """
    try:
        goal = await get_goal(session, user_id, goal_id)
        if goal is None:
            log.warning("suggestions_goal_missing user=%s goal=%s", user_id, goal_id)
            return SuggestionResult(ok=False, error="Savings goal not found")
        start = add_months(now.date(), -LOOKBACK_MONTHS)
        txs = await get_transactions_range(session, user_id, start, type_="expense")
        summary = SpendingSummary.from_transactions(txs, now)
        return SuggestionResult(ok=True, suggestions=suggest(goal, summary, now))
    except Exception as e:
        log.exception("suggestions_failed user=%s goal=%s", user_id, goal_id)
        return SuggestionResult(ok=False, error=f"{e.__class__.__name__}: {e}")
