"""Achievement evaluation and unlocking."""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from datetime import datetime

from codebro.gamification.store import AchievementDef, GamificationStore, UserStats

logger = logging.getLogger(__name__)

CRITERIA_TYPES = frozenset({"lessons_completed", "points_earned", "challenges_solved", "streak_days"})


def is_satisfied(stats: UserStats, achievement: AchievementDef) -> bool:
    value = stats.stat_for(achievement.criteria_type)
    return value is not None and value >= achievement.criteria_value


def evaluate(
    user_id: str,
    stats: UserStats,
    definitions: Iterable[AchievementDef],
    already_unlocked: Collection[int] = (),
) -> list[AchievementDef]:
    """Return the definitions newly satisfied by ``stats``, ascending by id.

    Anything in ``already_unlocked`` is skipped, so feeding the result of one
    call back in as the unlocked set makes the next call return nothing new.
    Criteria are independent of each other; the order only makes the output
    deterministic.
    """
    if stats.user_id != user_id:
        msg = f"stats belong to {stats.user_id}, not {user_id}"
        raise ValueError(msg)

    seen: set[int] = set(already_unlocked)
    unlocked: list[AchievementDef] = []
    for achievement in sorted(definitions, key=lambda a: a.id):
        if achievement.id in seen:
            continue
        seen.add(achievement.id)
        if achievement.criteria_type not in CRITERIA_TYPES:
            logger.warning("Unknown criteria type %r on achievement %s", achievement.criteria_type, achievement.slug)
            continue
        if is_satisfied(stats, achievement):
            unlocked.append(achievement)
    return unlocked


async def unlock_achievements(
    store: GamificationStore,
    stats: UserStats,
    now: datetime,
    definitions: list[AchievementDef] | None = None,
) -> list[AchievementDef]:
    """Evaluate locked achievements for ``stats`` and persist each unlock.

    Each unlock is an independent idempotent insert: one failure is logged and
    skipped, and an insert that hits an existing record (a concurrent duplicate
    request got there first) is not reported as newly unlocked.
    """
    if definitions is None:
        definitions = await store.list_achievements()
    already = await store.unlocked_achievements(stats.user_id)
    candidates = evaluate(stats.user_id, stats, definitions, already_unlocked=already.keys())

    newly_unlocked: list[AchievementDef] = []
    for achievement in candidates:
        try:
            inserted = await store.insert_unlock(stats.user_id, achievement.id, now)
        except Exception:
            logger.warning(
                "Failed to persist unlock of %s for user %s", achievement.slug, stats.user_id, exc_info=True,
            )
            continue
        if inserted:
            newly_unlocked.append(achievement)

    if newly_unlocked:
        logger.info(
            "User %s unlocked %s", stats.user_id, ", ".join(a.slug for a in newly_unlocked),
        )
    return newly_unlocked
