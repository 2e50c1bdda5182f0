"""Level and tier computation.

The numeric level is derived from points on every read and is never stored.
Tiers are the named buckets shown on profiles and achievement pages.
"""

from __future__ import annotations

POINTS_PER_LEVEL = 1000

TIER_THRESHOLDS: list[dict] = [
    {"threshold": 0, "name": "Novice"},
    {"threshold": 100, "name": "Apprentice"},
    {"threshold": 500, "name": "Intermediate"},
    {"threshold": 1000, "name": "Advanced"},
    {"threshold": 2000, "name": "Expert"},
    {"threshold": 5000, "name": "Master"},
]


def compute_level(points: int) -> dict:
    """Compute level info from cumulative points.

    ``level = points // 1000 + 1`` and ``points_to_next = level * 1000 - points``,
    so exactly 1000 points is level 2 with 1000 to go.
    """
    if points < 0:
        msg = f"points must be non-negative, got {points}"
        raise ValueError(msg)

    level = points // POINTS_PER_LEVEL + 1
    next_level_at = level * POINTS_PER_LEVEL
    return {
        "level": level,
        "points_into_level": points - (level - 1) * POINTS_PER_LEVEL,
        "points_to_next": next_level_at - points,
        "next_level_at": next_level_at,
    }


def _tier_index(points: int) -> int:
    index = 0
    for i, tier in enumerate(TIER_THRESHOLDS):
        if points >= tier["threshold"]:
            index = i
    return index


def tier_name(points: int) -> str:
    return TIER_THRESHOLDS[_tier_index(points)]["name"]


def progress_to_next_tier(points: int) -> int:
    """Percentage (0-100) of the way from the current tier to the next.

    Returns 100 at or above the top tier.
    """
    index = _tier_index(points)
    if index == len(TIER_THRESHOLDS) - 1:
        return 100
    low = TIER_THRESHOLDS[index]["threshold"]
    high = TIER_THRESHOLDS[index + 1]["threshold"]
    # Round half up; avoids banker's rounding at exact .5 boundaries
    return (200 * (points - low) + (high - low)) // (2 * (high - low))


def compute_tier(points: int) -> dict:
    index = _tier_index(max(points, 0))
    current = TIER_THRESHOLDS[index]
    upcoming = TIER_THRESHOLDS[index + 1] if index + 1 < len(TIER_THRESHOLDS) else None
    return {
        "tier": current["name"],
        "progress": progress_to_next_tier(max(points, 0)),
        "next_tier": upcoming["name"] if upcoming else None,
        "next_tier_at": upcoming["threshold"] if upcoming else None,
    }
