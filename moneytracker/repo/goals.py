# moneytracker/repo/goals.py
from __future__ import annotations

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from moneytracker.models.goal import SavingsGoal


async def add_goal(session: AsyncSession, user_id: int, **fields) -> SavingsGoal:
    goal = SavingsGoal(user_id=user_id, **fields)
    session.add(goal)
    await session.flush()
    return goal


async def get_goal(session: AsyncSession, user_id: int, goal_id: int) -> SavingsGoal | None:
    q = await session.execute(select(SavingsGoal).where(
        and_(SavingsGoal.id == goal_id, SavingsGoal.user_id == user_id)
    ))
    return q.scalar_one_or_none()


async def list_goals(session: AsyncSession, user_id: int) -> list[SavingsGoal]:
    q = await session.execute(
        select(SavingsGoal)
        .where(SavingsGoal.user_id == user_id)
        .order_by(SavingsGoal.deadline.asc(), SavingsGoal.id.asc())
    )
    return list(q.scalars().all())


async def delete_goal(session: AsyncSession, user_id: int, goal_id: int) -> bool:
    goal = await get_goal(session, user_id, goal_id)
    if not goal:
        return False
    await session.delete(goal)
    return True
