"""Achievement evaluator tests."""

from __future__ import annotations

import pytest

from codebro.gamification.achievements import evaluate, unlock_achievements
from codebro.gamification.store import AchievementDef, UserStats

TEN_LESSONS = AchievementDef(id=2, slug="10_lessons", name="Ten", criteria_type="lessons_completed", criteria_value=10)
FIRST_LESSON = AchievementDef(id=1, slug="first_lesson", name="One", criteria_type="lessons_completed", criteria_value=1)
POINTS_5K = AchievementDef(id=9, slug="5000_points", name="5k", criteria_type="points_earned", criteria_value=5000)
STREAK_7 = AchievementDef(id=7, slug="7_day_streak", name="Week", criteria_type="streak_days", criteria_value=7)


def _stats(**kwargs) -> UserStats:
    return UserStats(user_id="u1", **kwargs)


class TestEvaluate:
    def test_threshold_not_met(self):
        assert evaluate("u1", _stats(lessons_completed=9), [TEN_LESSONS]) == []

    def test_threshold_met(self):
        assert evaluate("u1", _stats(lessons_completed=10), [TEN_LESSONS]) == [TEN_LESSONS]

    def test_each_criteria_type(self):
        stats = _stats(points=5000, streak_count=7, lessons_completed=1)
        result = evaluate("u1", stats, [POINTS_5K, STREAK_7, FIRST_LESSON])
        assert [a.slug for a in result] == ["first_lesson", "7_day_streak", "5000_points"]

    def test_sorted_by_id(self):
        result = evaluate("u1", _stats(lessons_completed=10), [TEN_LESSONS, FIRST_LESSON])
        assert [a.id for a in result] == [1, 2]

    def test_already_unlocked_skipped(self):
        result = evaluate("u1", _stats(lessons_completed=10), [TEN_LESSONS, FIRST_LESSON], already_unlocked={1})
        assert result == [TEN_LESSONS]

    def test_idempotent_when_fed_back(self):
        stats = _stats(lessons_completed=10)
        first = evaluate("u1", stats, [TEN_LESSONS, FIRST_LESSON])
        second = evaluate("u1", stats, [TEN_LESSONS, FIRST_LESSON], already_unlocked={a.id for a in first})
        assert second == []

    def test_duplicate_definitions_reported_once(self):
        result = evaluate("u1", _stats(lessons_completed=10), [TEN_LESSONS, TEN_LESSONS])
        assert result == [TEN_LESSONS]

    def test_unknown_criteria_ignored(self):
        odd = AchievementDef(id=5, slug="odd", name="Odd", criteria_type="certificates_earned", criteria_value=0)
        assert evaluate("u1", _stats(lessons_completed=10), [odd]) == []

    def test_user_mismatch_rejected(self):
        with pytest.raises(ValueError):
            evaluate("someone-else", _stats(), [FIRST_LESSON])


class TestUnlockAchievements:
    @pytest.mark.asyncio
    async def test_persists_new_unlocks(self, store, now):
        user_id = store.add_user(lessons=10)
        stats = await store.get_user_stats(user_id)
        unlocked = await unlock_achievements(store, stats, now)
        assert [a.slug for a in unlocked] == ["first_lesson", "10_lessons"]
        assert set(await store.unlocked_achievements(user_id)) == {a.id for a in unlocked}

    @pytest.mark.asyncio
    async def test_second_call_unlocks_nothing(self, store, now):
        user_id = store.add_user(lessons=10)
        stats = await store.get_user_stats(user_id)
        await unlock_achievements(store, stats, now)
        assert await unlock_achievements(store, stats, now) == []

    @pytest.mark.asyncio
    async def test_concurrent_insert_not_reported(self, store, now):
        """An insert that hits an existing row (another request won) is not newly unlocked."""
        user_id = store.add_user(lessons=1)
        stats = await store.get_user_stats(user_id)
        original = store.insert_unlock

        async def lose_race(uid, achievement_id, at):
            await original(uid, achievement_id, at)
            return False

        store.insert_unlock = lose_race
        assert await unlock_achievements(store, stats, now) == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, store, now):
        user_id = store.add_user(lessons=10)
        stats = await store.get_user_stats(user_id)
        original = store.insert_unlock

        async def flaky(uid, achievement_id, at):
            if achievement_id == 1:
                raise RuntimeError("constraint violation")
            return await original(uid, achievement_id, at)

        store.insert_unlock = flaky
        unlocked = await unlock_achievements(store, stats, now)
        assert [a.slug for a in unlocked] == ["10_lessons"]
