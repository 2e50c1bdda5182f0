"""Leaderboard computation: all-time totals or trailing-window sums.

Ranks are positional: after sorting by points descending (user id ascending
on ties) the row at index ``i`` gets rank ``i + 1``, so two users tied on 100
points at positions 1 and 2 are ranked 1 and 2. A requesting user outside the
returned page gets an out-of-band rank of ``1 + (users with strictly more
points)`` using the same metric as the page.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from codebro.gamification.store import CompletionEvent, GamificationStore, RankedUser

logger = logging.getLogger(__name__)

PERIODS = ("all-time", "weekly", "monthly")
COMPLETION_KINDS = ("lesson", "challenge")


def period_cutoff(period: str, now: datetime) -> datetime | None:
    """Start of the trailing window for ``period``; None for all-time."""
    if period == "all-time":
        return None
    if period == "weekly":
        return now - timedelta(days=7)
    if period == "monthly":
        year, month = (now.year, now.month - 1) if now.month > 1 else (now.year - 1, 12)
        day = min(now.day, calendar.monthrange(year, month)[1])
        return now.replace(year=year, month=month, day=day)
    raise ValueError(f"Unknown period: {period}")


def windowed_sum(events: Iterable[CompletionEvent], cutoff: datetime) -> int:
    return sum(e.points for e in events if e.completed_at >= cutoff)


def rank_entries(users: Iterable[RankedUser], limit: int | None = None) -> list[dict]:
    ordered = sorted(users, key=lambda u: (-u.points, u.user_id))
    if limit is not None:
        ordered = ordered[:limit]
    return [
        {
            "rank": idx + 1,
            "user_id": u.user_id,
            "display_name": u.display_name,
            "points": u.points,
        }
        for idx, u in enumerate(ordered)
    ]


def rank_of(points: int, all_points: Iterable[int]) -> int:
    return 1 + sum(1 for p in all_points if p > points)


async def _window_points(
    store: GamificationStore,
    user_id: str,
    kind: str,
    cutoff: datetime,
    semaphore: asyncio.Semaphore,
    timeout: float,
) -> int:
    """One fan-out sub-query. Failures and timeouts contribute 0."""
    async with semaphore:
        try:
            events = await asyncio.wait_for(store.completion_events(user_id, kind, cutoff), timeout)
        except Exception:
            logger.warning(
                "Windowed %s points unavailable for user %s; counting 0", kind, user_id, exc_info=True,
            )
            return 0
    return windowed_sum(events, cutoff)


async def compute_standings(
    store: GamificationStore,
    period: str,
    limit: int,
    now: datetime,
    concurrency: int = 10,
    timeout: float = 5.0,
) -> dict:
    """Ranked page for ``period``, without any per-viewer fields.

    For windowed periods the full ``windowed_points`` map is kept alongside the
    page so an off-page viewer can be ranked by the same metric.
    """
    cutoff = period_cutoff(period, now)
    if cutoff is None:
        top = await store.top_users(limit)
        return {"period": period, "entries": rank_entries(top, limit), "windowed_points": None}

    users = await store.list_users()
    semaphore = asyncio.Semaphore(max(1, concurrency))
    per_user = await asyncio.gather(*(
        asyncio.gather(*(
            _window_points(store, u.user_id, kind, cutoff, semaphore, timeout) for kind in COMPLETION_KINDS
        ))
        for u in users
    ))
    windowed = [
        RankedUser(u.user_id, u.display_name, sum(parts)) for u, parts in zip(users, per_user)
    ]
    return {
        "period": period,
        "entries": rank_entries(windowed, limit),
        "windowed_points": {u.user_id: u.points for u in windowed},
    }


async def personalize(
    store: GamificationStore,
    standings: dict,
    current_user_id: str | None,
) -> dict:
    """Flag the viewer's row and, if they are off the page, compute their rank."""
    entries = [
        {**entry, "is_current_user": current_user_id is not None and entry["user_id"] == current_user_id}
        for entry in standings["entries"]
    ]

    current_user_rank = None
    if current_user_id is not None and not any(e["is_current_user"] for e in entries):
        windowed = standings.get("windowed_points")
        if windowed is None:
            stats = await store.get_user_stats(current_user_id)
            if stats is not None:
                current_user_rank = {
                    "rank": await store.count_users_above(stats.points) + 1,
                    "user_id": current_user_id,
                    "display_name": stats.display_name,
                    "points": stats.points,
                    "is_current_user": True,
                }
        elif current_user_id in windowed:
            points = windowed[current_user_id]
            stats = await store.get_user_stats(current_user_id)
            current_user_rank = {
                "rank": rank_of(points, windowed.values()),
                "user_id": current_user_id,
                "display_name": stats.display_name if stats else "",
                "points": points,
                "is_current_user": True,
            }

    return {
        "leaderboard": entries,
        "current_user_rank": current_user_rank,
        "period": standings["period"],
        "total_entries": len(entries),
    }


async def build_leaderboard(
    store: GamificationStore,
    period: str,
    now: datetime,
    limit: int = 100,
    current_user_id: str | None = None,
    concurrency: int = 10,
    timeout: float = 5.0,
) -> dict:
    standings = await compute_standings(store, period, limit, now, concurrency=concurrency, timeout=timeout)
    return await personalize(store, standings, current_user_id)
