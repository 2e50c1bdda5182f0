"""Streak tracker tests: calendar-day gaps, no timezone conversion."""

from datetime import date, datetime, timedelta, timezone

from codebro.gamification.streaks import days_between, effective_streak, tick

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestDaysBetween:
    def test_same_day(self):
        assert days_between(NOW.replace(hour=0, minute=1), NOW.replace(hour=23, minute=59)) == 0

    def test_across_midnight(self):
        late = datetime(2026, 3, 14, 23, 59, tzinfo=timezone.utc)
        early = datetime(2026, 3, 15, 0, 1, tzinfo=timezone.utc)
        assert days_between(late, early) == 1

    def test_dates_accepted(self):
        assert days_between(date(2026, 3, 1), date(2026, 3, 4)) == 3

    def test_clock_skew_is_zero(self):
        assert days_between(NOW + timedelta(days=2), NOW) == 0


class TestTick:
    def test_first_activity(self):
        assert tick(0, None, NOW) == 1
        assert tick(0, None, NOW, active_today=False) == 0

    def test_yesterday_increments(self):
        assert tick(3, NOW - timedelta(days=1), NOW) == 4

    def test_yesterday_inactive_holds(self):
        assert tick(3, NOW - timedelta(days=1), NOW, active_today=False) == 3

    def test_same_day_holds(self):
        assert tick(3, NOW - timedelta(hours=2), NOW) == 3

    def test_same_day_starts_at_one(self):
        assert tick(0, NOW - timedelta(hours=2), NOW) == 1

    def test_three_day_gap_resets(self):
        assert tick(5, NOW - timedelta(days=3), NOW) == 1
        assert tick(5, NOW - timedelta(days=3), NOW, active_today=False) == 0

    def test_skewed_last_active_treated_as_same_day(self):
        assert tick(2, NOW + timedelta(days=1), NOW) == 2


class TestEffectiveStreak:
    def test_never_active(self):
        assert effective_streak(0, None, NOW) == 0

    def test_active_yesterday_keeps_streak(self):
        assert effective_streak(6, NOW - timedelta(days=1), NOW) == 6

    def test_lapsed_streak_shows_zero(self):
        assert effective_streak(6, NOW - timedelta(days=2), NOW) == 0
