"""
Dashboard statistics for a single user.

Creation days are bucketed by UTC calendar date in Python so the same
numbers come out on every database backend.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from watchdo.models import ActionPlanEntry, User

COMPLETED_LIMIT = 20


@dataclass
class TaskBuckets:
    today: list[ActionPlanEntry] = field(default_factory=list)
    overdue: list[ActionPlanEntry] = field(default_factory=list)
    upcoming: list[ActionPlanEntry] = field(default_factory=list)
    completed: list[ActionPlanEntry] = field(default_factory=list)


def _utc_date(value: datetime) -> date:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).date()


async def task_buckets(session: AsyncSession, user: User, today: date | None = None) -> TaskBuckets:
    today = today or date.today()
    base = (
        select(ActionPlanEntry)
        .where(ActionPlanEntry.user_id == user.id, ActionPlanEntry.deadline.is_not(None))
        .options(selectinload(ActionPlanEntry.video))
    )
    pending = (
        await session.execute(
            base.where(ActionPlanEntry.achieved_at.is_(None)).order_by(ActionPlanEntry.deadline, ActionPlanEntry.id)
        )
    ).scalars().all()
    completed = (
        await session.execute(
            base.where(ActionPlanEntry.achieved_at.is_not(None))
            .order_by(ActionPlanEntry.achieved_at.desc())
            .limit(COMPLETED_LIMIT)
        )
    ).scalars().all()

    buckets = TaskBuckets(completed=list(completed))
    for entry in pending:
        if entry.deadline == today:
            buckets.today.append(entry)
        elif entry.deadline < today:
            buckets.overdue.append(entry)
        else:
            buckets.upcoming.append(entry)
    return buckets


async def _creation_dates(session: AsyncSession, user: User, since: datetime | None = None) -> list[date]:
    stmt = select(ActionPlanEntry.created_at).where(ActionPlanEntry.user_id == user.id)
    if since is not None:
        stmt = stmt.where(ActionPlanEntry.created_at >= since)
    return [_utc_date(value) for value in (await session.execute(stmt)).scalars().all()]


async def activity_counts(
    session: AsyncSession, user: User, days: int = 30, today: date | None = None
) -> dict[date, int]:
    """Entries created per day over the last `days` days."""
    today = today or datetime.now(timezone.utc).date()
    start = today - timedelta(days=days)
    since = datetime.combine(start, time.min, tzinfo=timezone.utc)
    counts = Counter(d for d in await _creation_dates(session, user, since) if d >= start)
    return dict(sorted(counts.items()))


async def current_streak(session: AsyncSession, user: User, today: date | None = None) -> int:
    """Consecutive creation days ending today, or yesterday if nothing was created today."""
    today = today or datetime.now(timezone.utc).date()
    active = set(await _creation_dates(session, user))
    if not active:
        return 0

    check = today
    if check not in active:
        check = today - timedelta(days=1)
        if check not in active:
            return 0

    streak = 0
    while check in active:
        streak += 1
        check -= timedelta(days=1)
    return streak


async def current_action_plan(session: AsyncSession, user: User) -> ActionPlanEntry | None:
    result = await session.execute(
        select(ActionPlanEntry)
        .where(ActionPlanEntry.user_id == user.id, ActionPlanEntry.achieved_at.is_(None))
        .options(selectinload(ActionPlanEntry.video))
        .order_by(ActionPlanEntry.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def total_entries(session: AsyncSession, user: User) -> int:
    return int(await session.scalar(select(func.count(ActionPlanEntry.id)).where(ActionPlanEntry.user_id == user.id)) or 0)
