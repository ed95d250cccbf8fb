# moneytracker/services/goals.py
"""
Savings goal progress and month-by-month projection.

progress_percentage and days_remaining are deliberately left unclamped:
a goal can read 120% or -5 days; display code clamps for progress bars.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time

from sqlalchemy.ext.asyncio import AsyncSession

from moneytracker.models.goal import SavingsGoal
from moneytracker.repo import goals as repo

log = logging.getLogger(__name__)

DAYS_PER_MONTH = 30


@dataclass(frozen=True)
class ProjectionPoint:
    month: int
    projected_amount: float
    projected_progress: float
    target_amount: float


@dataclass(frozen=True)
class GoalProjection:
    current_progress: float
    days_remaining: int
    months_remaining: int
    monthly_target: float
    projection: list[ProjectionPoint] = field(default_factory=list)


def progress_percentage(goal) -> float:
    return float(goal.current_amount) / float(goal.target_amount) * 100


def _days_until(deadline: date, now: datetime) -> int:
    delta = datetime.combine(deadline, time.min) - now
    return math.ceil(delta.total_seconds() / 86400)


def days_remaining(goal, now: datetime) -> int:
    return _days_until(goal.deadline, now)


def months_remaining(goal, now: datetime) -> int:
    return math.ceil(days_remaining(goal, now) / DAYS_PER_MONTH)


def compute_monthly_target(target: float, current: float, deadline: date, now: datetime) -> float:
    """Remaining amount spread over the months left (at least one)."""
    remaining = max(0.0, float(target) - float(current))
    months = max(1, math.ceil(_days_until(deadline, now) / DAYS_PER_MONTH))
    return round(remaining / months, 2)


def project(goal, now: datetime) -> GoalProjection:
    """
    Linear forecast assuming goal.monthly_target is saved every month.
    One point per month from 0 to months_remaining inclusive, capped at target.
    """
    target = float(goal.target_amount)
    current = float(goal.current_amount)
    monthly = float(goal.monthly_target or 0.0)
    days = days_remaining(goal, now)
    months = math.ceil(days / DAYS_PER_MONTH)

    points = []
    for i in range(0, months + 1):
        amount = min(target, current + monthly * i)
        points.append(ProjectionPoint(
            month=i,
            projected_amount=amount,
            projected_progress=amount / target * 100,
            target_amount=target,
        ))

    return GoalProjection(
        current_progress=progress_percentage(goal),
        days_remaining=days,
        months_remaining=months,
        monthly_target=monthly,
        projection=points,
    )


# --- persistence-backed operations ------------------------------------------

async def create_goal(
    session: AsyncSession,
    user_id: int,
    name: str,
    target_amount: float,
    deadline: date,
    now: datetime,
    current_amount: float = 0.0,
) -> SavingsGoal:
    if not (name or "").strip():
        raise ValueError("Goal name cannot be empty.")
    if target_amount is None or target_amount <= 0:
        raise ValueError("Target amount must be positive.")
    if current_amount < 0:
        raise ValueError("Current amount cannot be negative.")
    if deadline <= now.date():
        raise ValueError("Deadline must be in the future.")

    goal = await repo.add_goal(
        session, user_id,
        name=name.strip(),
        target_amount=float(target_amount),
        current_amount=float(current_amount),
        deadline=deadline,
        monthly_target=compute_monthly_target(target_amount, current_amount, deadline, now),
        created_at=now.replace(tzinfo=None, microsecond=0),
    )
    log.info("goal_created id=%s user=%s target=%.2f deadline=%s", goal.id, user_id, goal.target_amount, deadline)
    return goal


async def add_contribution(
    session: AsyncSession,
    user_id: int,
    goal_id: int,
    amount: float,
    now: datetime,
) -> SavingsGoal | None:
    """Adds (or, when negative, withdraws) money and recomputes monthly_target."""
    goal = await repo.get_goal(session, user_id, goal_id)
    if goal is None:
        return None
    if not amount:
        raise ValueError("Amount cannot be zero.")
    new_amount = float(goal.current_amount) + float(amount)
    if new_amount < 0:
        raise ValueError("Cannot withdraw more than has been saved.")
    goal.current_amount = round(new_amount, 2)
    goal.monthly_target = compute_monthly_target(goal.target_amount, goal.current_amount, goal.deadline, now)
    await session.flush()
    return goal


async def list_goals(session: AsyncSession, user_id: int) -> list[SavingsGoal]:
    return await repo.list_goals(session, user_id)


async def get_goal(session: AsyncSession, user_id: int, goal_id: int) -> SavingsGoal | None:
    return await repo.get_goal(session, user_id, goal_id)


async def delete_goal(session: AsyncSession, user_id: int, goal_id: int) -> bool:
    return await repo.delete_goal(session, user_id, goal_id)


async def goal_progress_data(
    session: AsyncSession,
    user_id: int,
    goal_id: int,
    now: datetime,
) -> GoalProjection | None:
    """Projection for one of the user's goals; None when missing or on a read error."""
    try:
        goal = await repo.get_goal(session, user_id, goal_id)
        if goal is None:
            return None
        return project(goal, now)
    except Exception:
        log.exception("goal_progress_failed user=%s goal=%s", user_id, goal_id)
        return None
