"""Platform-wide statistics for the admin dashboard."""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.ai.service import day_start
from codebro.database import store_operation
from codebro.db.models import Achievement, Challenge, Lesson, User, UserLesson

RECENT_USERS_DAYS = 7


@store_operation
async def get_platform_stats(db: AsyncSession, now: datetime) -> dict[str, int]:
    """Totals across the platform, computed in a single round trip."""
    query = select(
        select(func.count(User.id)).scalar_subquery().label("total_users"),
        select(func.count(Lesson.id)).scalar_subquery().label("total_lessons"),
        select(func.count(Challenge.id)).scalar_subquery().label("total_challenges"),
        select(func.count(Achievement.id)).scalar_subquery().label("total_achievements"),
        select(func.count(User.id))
        .where(User.created_at >= now - timedelta(days=RECENT_USERS_DAYS))
        .scalar_subquery()
        .label("recent_users"),
        select(func.coalesce(func.sum(User.points), 0)).scalar_subquery().label("total_points"),
        select(func.count(UserLesson.id))
        .where(UserLesson.status == "completed", UserLesson.completed_at >= day_start(now))
        .scalar_subquery()
        .label("lessons_completed_today"),
        select(func.count(User.id))
        .where(User.last_active_at >= now - timedelta(hours=24))
        .scalar_subquery()
        .label("active_users"),
    )
    row = (await db.execute(query)).mappings().one()
    return {key: int(value or 0) for key, value in row.items()}
