"""Progress service: lesson/challenge completion flow.

award → atomic increment → level → streak tick → achievement unlocks.
"""

from __future__ import annotations

import dataclasses
import logging
from datetime import datetime

from codebro.errors import NotFound
from codebro.gamification.achievements import unlock_achievements
from codebro.gamification.levels import compute_level, compute_tier
from codebro.gamification.points import Action, award
from codebro.gamification.store import AchievementDef, GamificationStore, UserStats
from codebro.gamification.streaks import effective_streak, tick

logger = logging.getLogger(__name__)


def achievement_payload(achievement: AchievementDef) -> dict:
    return {
        "id": achievement.id,
        "slug": achievement.slug,
        "name": achievement.name,
        "description": achievement.description,
        "icon": achievement.icon,
        "criteria_type": achievement.criteria_type,
        "criteria_value": achievement.criteria_value,
        "points_reward": achievement.points_reward,
    }


async def _require_user(store: GamificationStore, user_id: str) -> UserStats:
    stats = await store.get_user_stats(user_id)
    if stats is None:
        raise NotFound("User not found")
    return stats


async def _apply_progress(
    store: GamificationStore,
    before: UserStats,
    points: int,
    now: datetime,
    lessons: int = 0,
    challenges: int = 0,
    streak_bonus: bool = False,
    definitions: list[AchievementDef] | None = None,
) -> dict:
    new_streak = tick(before.streak_count, before.last_active_at, now)
    bonus = 0
    if streak_bonus and new_streak > 1 and new_streak > before.streak_count:
        bonus = award(Action.STREAK_BONUS)

    stats = await store.apply_delta(before.user_id, points=points + bonus, lessons=lessons, challenges=challenges)
    if stats is None:
        raise NotFound("User not found")
    await store.set_streak(before.user_id, new_streak, now)
    stats = dataclasses.replace(stats, streak_count=new_streak, last_active_at=now)

    unlocked = await unlock_achievements(store, stats, now, definitions=definitions)
    await store.commit()

    level_info = compute_level(stats.points)
    return {
        "success": True,
        "already_completed": False,
        "points_earned": points,
        "streak_bonus": bonus,
        "total_points": stats.points,
        "lessons_completed": stats.lessons_completed,
        "challenges_solved": stats.challenges_solved,
        "level": level_info["level"],
        "points_to_next_level": level_info["points_to_next"],
        "tier": compute_tier(stats.points)["tier"],
        "streak": new_streak,
        "achievements_unlocked": [achievement_payload(a) for a in unlocked],
    }


def _already_done(stats: UserStats, now: datetime) -> dict:
    level_info = compute_level(stats.points)
    return {
        "success": True,
        "already_completed": True,
        "points_earned": 0,
        "streak_bonus": 0,
        "total_points": stats.points,
        "lessons_completed": stats.lessons_completed,
        "challenges_solved": stats.challenges_solved,
        "level": level_info["level"],
        "points_to_next_level": level_info["points_to_next"],
        "tier": compute_tier(stats.points)["tier"],
        "streak": effective_streak(stats.streak_count, stats.last_active_at, now),
        "achievements_unlocked": [],
    }


async def start_lesson(store: GamificationStore, user_id: str, lesson_id: str, now: datetime) -> dict:
    if await store.get_lesson(lesson_id) is None:
        raise NotFound("Lesson not found")
    await _require_user(store, user_id)
    status = await store.mark_lesson_started(user_id, lesson_id, now)
    await store.commit()
    return {"lesson_id": lesson_id, "status": status}


async def complete_lesson(
    store: GamificationStore,
    user_id: str,
    lesson_id: str,
    now: datetime,
    time_spent_minutes: int = 0,
    streak_bonus: bool = False,
    definitions: list[AchievementDef] | None = None,
) -> dict:
    """Complete a lesson once. Repeat completions return ``already_completed``."""
    lesson = await store.get_lesson(lesson_id)
    if lesson is None:
        raise NotFound("Lesson not found")
    before = await _require_user(store, user_id)

    if not await store.mark_lesson_completed(user_id, lesson_id, time_spent_minutes, now):
        await store.commit()
        return _already_done(before, now)

    points = award(Action.LESSON_COMPLETED, lesson.points_reward, difficulty=lesson.difficulty)
    logger.info("User %s completed lesson %s (+%d)", user_id, lesson_id, points)
    return await _apply_progress(
        store, before, points, now, lessons=1, streak_bonus=streak_bonus, definitions=definitions,
    )


async def solve_challenge(
    store: GamificationStore,
    user_id: str,
    challenge_id: str,
    now: datetime,
    solution: str | None = None,
    streak_bonus: bool = False,
    definitions: list[AchievementDef] | None = None,
) -> dict:
    """Record a solve; only the first solve of a challenge earns points."""
    challenge = await store.get_challenge(challenge_id)
    if challenge is None:
        raise NotFound("Challenge not found")
    before = await _require_user(store, user_id)

    if not await store.record_challenge_solve(user_id, challenge_id, solution, now):
        await store.commit()
        return _already_done(before, now)

    points = award(Action.CHALLENGE_SOLVED, challenge.points_reward)
    logger.info("User %s solved challenge %s (+%d)", user_id, challenge_id, points)
    return await _apply_progress(
        store, before, points, now, challenges=1, streak_bonus=streak_bonus, definitions=definitions,
    )


async def build_profile(store: GamificationStore, user_id: str, now: datetime) -> dict:
    stats = await _require_user(store, user_id)
    level_info = compute_level(stats.points)
    tier = compute_tier(stats.points)
    unlocked = await store.unlocked_achievements(user_id)
    return {
        "user_id": stats.user_id,
        "display_name": stats.display_name,
        "points": stats.points,
        "level": level_info["level"],
        "points_to_next_level": level_info["points_to_next"],
        "tier": tier["tier"],
        "tier_progress": tier["progress"],
        "next_tier": tier["next_tier"],
        "stats": {
            "achievements_unlocked": len(unlocked),
            "current_streak": effective_streak(stats.streak_count, stats.last_active_at, now),
            "lessons_completed": stats.lessons_completed,
            "challenges_solved": stats.challenges_solved,
        },
        "last_active_at": stats.last_active_at,
    }
