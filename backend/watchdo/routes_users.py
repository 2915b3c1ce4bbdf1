from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from watchdo.db import get_session
from watchdo.models import User
from watchdo.routes_auth import require_user
from watchdo.routes_entries import entry_to_read
from watchdo.schemas import DashboardRead
from watchdo.services import user_stats
from watchdo.services.action_plans import ActionPlanService

router = APIRouter(prefix="/api/me", tags=["users"])

SessionDep = Depends(get_session)


@router.get("/dashboard", response_model=DashboardRead)
async def dashboard(session: AsyncSession = SessionDep, user: User = Depends(require_user)):
    """Task buckets by deadline, streak and 30-day activity for the signed-in user."""
    today = date.today()
    service = ActionPlanService(session)
    buckets = await user_stats.task_buckets(session, user, today)
    current = await user_stats.current_action_plan(session, user)

    async def _read(entries):
        return [await entry_to_read(service, e, user, today) for e in entries]

    return DashboardRead(
        current=await entry_to_read(service, current, user, today) if current else None,
        today=await _read(buckets.today),
        overdue=await _read(buckets.overdue),
        upcoming=await _read(buckets.upcoming),
        completed=await _read(buckets.completed),
        total_entries=await user_stats.total_entries(session, user),
        streak=await user_stats.current_streak(session, user, today),
        activity=await user_stats.activity_counts(session, user, days=30, today=today),
    )
