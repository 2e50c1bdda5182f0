"""Point rewards per action.

A lesson or challenge with its own configured ``points_reward`` always wins;
the tables below are the fallback when the catalog entry has none.
"""

from __future__ import annotations

from enum import Enum


class Action(str, Enum):
    LESSON_COMPLETED = "lesson_completed"
    CHALLENGE_SOLVED = "challenge_solved"
    CERTIFICATE_EARNED = "certificate_earned"
    STREAK_BONUS = "streak_bonus"


POINTS: dict[Action, int] = {
    Action.LESSON_COMPLETED: 10,
    Action.CHALLENGE_SOLVED: 50,
    Action.CERTIFICATE_EARNED: 100,
    Action.STREAK_BONUS: 5,
}

LESSON_DIFFICULTY_POINTS: dict[str, int] = {
    "beginner": 10,
    "intermediate": 25,
    "advanced": 50,
}


def award(
    action: Action,
    reward: int | None = None,
    difficulty: str | None = None,
    multiplier: int = 1,
) -> int:
    """Return the point delta for an action. Never negative, never side-effecting.

    Args:
        action: What the user did.
        reward: The item's own configured reward, if any.
        difficulty: Lesson difficulty, used only when no reward is configured.
        multiplier: Scales the base value (e.g. double-points events).
    """
    if reward is not None:
        base = reward
    elif action is Action.LESSON_COMPLETED and difficulty in LESSON_DIFFICULTY_POINTS:
        base = LESSON_DIFFICULTY_POINTS[difficulty]
    else:
        base = POINTS[action]
    return max(0, base * multiplier)
