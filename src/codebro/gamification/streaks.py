"""Daily activity streaks.

Gaps are measured in calendar days between the recorded dates of the two
timestamps, with no timezone conversion: 23:59 yesterday and 00:01 today are
one day apart, 00:01 and 23:59 on the same date are zero days apart.
"""

from __future__ import annotations

from datetime import date, datetime


def _as_date(value: datetime | date) -> date:
    return value.date() if isinstance(value, datetime) else value


def days_between(earlier: datetime | date, later: datetime | date) -> int:
    """Whole calendar days from ``earlier`` to ``later``. Clock skew counts as 0."""
    return max(0, (_as_date(later) - _as_date(earlier)).days)


def tick(
    previous_streak: int,
    last_active_at: datetime | date | None,
    now: datetime | date,
    active_today: bool = True,
) -> int:
    """Return the new streak count after an activity check at ``now``.

    - same day: hold (a first activity starts the streak at 1)
    - next day: increment when active today, otherwise hold
    - gap of more than one day: restart at 1 when active today, else 0
    """
    if last_active_at is None:
        return 1 if active_today else 0

    gap = days_between(last_active_at, now)
    if gap == 0:
        return max(previous_streak, 1) if active_today else previous_streak
    if gap == 1:
        return previous_streak + 1 if active_today else previous_streak
    return 1 if active_today else 0


def effective_streak(
    streak_count: int,
    last_active_at: datetime | date | None,
    today: datetime | date,
) -> int:
    """Streak to display: a stored streak that has already lapsed shows as 0."""
    if last_active_at is None:
        return 0
    return streak_count if days_between(last_active_at, today) <= 1 else 0
