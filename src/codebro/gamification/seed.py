"""Default achievement definitions, inserted on startup when missing.

Existing rows are left untouched: definitions are edited through the content
tools, and re-seeding must not revert those edits.
"""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.db.models import Achievement

logger = logging.getLogger(__name__)

ACHIEVEMENT_SEED_DATA: list[dict] = [
    {
        "slug": "first_lesson",
        "name": "First Steps",
        "description": "Complete your first lesson",
        "icon": "footprints",
        "criteria_type": "lessons_completed",
        "criteria_value": 1,
        "points_reward": 10,
    },
    {
        "slug": "10_lessons",
        "name": "Getting the Hang of It",
        "description": "Complete 10 lessons",
        "icon": "book-open",
        "criteria_type": "lessons_completed",
        "criteria_value": 10,
        "points_reward": 50,
    },
    {
        "slug": "50_lessons",
        "name": "Bookworm",
        "description": "Complete 50 lessons",
        "icon": "library",
        "criteria_type": "lessons_completed",
        "criteria_value": 50,
        "points_reward": 200,
    },
    {
        "slug": "100_lessons",
        "name": "Centurion",
        "description": "Complete 100 lessons",
        "icon": "graduation-cap",
        "criteria_type": "lessons_completed",
        "criteria_value": 100,
        "points_reward": 500,
    },
    {
        "slug": "first_challenge",
        "name": "Problem Solver",
        "description": "Solve your first coding challenge",
        "icon": "puzzle",
        "criteria_type": "challenges_solved",
        "criteria_value": 1,
        "points_reward": 25,
    },
    {
        "slug": "challenge_solver",
        "name": "Challenge Crusher",
        "description": "Solve 10 coding challenges",
        "icon": "swords",
        "criteria_type": "challenges_solved",
        "criteria_value": 10,
        "points_reward": 150,
    },
    {
        "slug": "7_day_streak",
        "name": "On Fire",
        "description": "Keep a 7-day learning streak",
        "icon": "flame",
        "criteria_type": "streak_days",
        "criteria_value": 7,
        "points_reward": 100,
    },
    {
        "slug": "30_day_streak",
        "name": "Unstoppable",
        "description": "Keep a 30-day learning streak",
        "icon": "zap",
        "criteria_type": "streak_days",
        "criteria_value": 30,
        "points_reward": 400,
    },
    {
        "slug": "5000_points",
        "name": "High Scorer",
        "description": "Earn 5,000 points",
        "icon": "trophy",
        "criteria_type": "points_earned",
        "criteria_value": 5000,
        "points_reward": 250,
    },
]


async def seed_achievements(db: AsyncSession) -> int:
    """Insert any missing default achievements. Returns how many were new."""
    inserted = 0
    for data in ACHIEVEMENT_SEED_DATA:
        stmt = (
            pg_insert(Achievement)
            .values(**data)
            .on_conflict_do_nothing(index_elements=["slug"])
            .returning(Achievement.id)
        )
        result = await db.execute(stmt)
        if result.scalar_one_or_none() is not None:
            inserted += 1

    await db.commit()
    logger.info("Seeded %d new achievement definitions", inserted)
    return inserted
