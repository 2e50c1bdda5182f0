"""Persistence contract for the gamification engine and its PostgreSQL implementation.

The engine never writes absolute counter values: stats change through
``apply_delta`` (a single ``UPDATE ... SET x = x + :d``) and unlocks through
``insert_unlock`` (``INSERT ... ON CONFLICT DO NOTHING``), so concurrent
requests for the same user cannot lose updates or double-unlock.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from codebro.database import store_operation
from codebro.db.models import (
    Achievement,
    Challenge,
    Lesson,
    User,
    UserAchievement,
    UserChallenge,
    UserLesson,
)
from codebro.gamification.points import Action, award

CRITERIA_FIELDS: dict[str, str] = {
    "lessons_completed": "lessons_completed",
    "points_earned": "points",
    "challenges_solved": "challenges_solved",
    "streak_days": "streak_count",
}


@dataclass(frozen=True)
class UserStats:
    user_id: str
    points: int = 0
    lessons_completed: int = 0
    challenges_solved: int = 0
    streak_count: int = 0
    last_active_at: datetime | None = None
    display_name: str = ""

    def stat_for(self, criteria_type: str) -> int | None:
        """The stat an achievement criterion compares against, or None if unknown."""
        field = CRITERIA_FIELDS.get(criteria_type)
        return getattr(self, field) if field else None


@dataclass(frozen=True)
class AchievementDef:
    id: int
    slug: str
    name: str
    criteria_type: str
    criteria_value: int
    points_reward: int = 0
    description: str = ""
    icon: str | None = None


@dataclass(frozen=True)
class CatalogItem:
    """A lesson or challenge as far as rewards are concerned."""

    id: str
    title: str
    points_reward: int | None = None
    difficulty: str | None = None


@dataclass(frozen=True)
class CompletionEvent:
    completed_at: datetime
    points: int


@dataclass(frozen=True)
class RankedUser:
    user_id: str
    display_name: str
    points: int


class GamificationStore(Protocol):
    async def get_user_stats(self, user_id: str) -> UserStats | None: ...

    async def apply_delta(
        self, user_id: str, points: int = 0, lessons: int = 0, challenges: int = 0,
    ) -> UserStats | None: ...

    async def set_streak(self, user_id: str, streak_count: int, last_active_at: datetime) -> None: ...

    async def list_achievements(self) -> list[AchievementDef]: ...

    async def unlocked_achievements(self, user_id: str) -> dict[int, datetime]: ...

    async def insert_unlock(self, user_id: str, achievement_id: int, unlocked_at: datetime) -> bool: ...

    async def get_lesson(self, lesson_id: str) -> CatalogItem | None: ...

    async def get_challenge(self, challenge_id: str) -> CatalogItem | None: ...

    async def mark_lesson_started(self, user_id: str, lesson_id: str, now: datetime) -> str: ...

    async def mark_lesson_completed(
        self, user_id: str, lesson_id: str, time_spent_minutes: int, now: datetime,
    ) -> bool: ...

    async def record_challenge_solve(
        self, user_id: str, challenge_id: str, solution: str | None, now: datetime,
    ) -> bool: ...

    async def top_users(self, limit: int) -> list[RankedUser]: ...

    async def list_users(self) -> list[RankedUser]: ...

    async def completion_events(self, user_id: str, kind: str, since: datetime) -> list[CompletionEvent]: ...

    async def count_users_above(self, points: int) -> int: ...

    async def commit(self) -> None: ...


def display_name_for(user: User) -> str:
    if user.full_name:
        return user.full_name
    if user.username:
        return user.username
    if user.email:
        return user.email.split("@", 1)[0]
    return "Anonymous"


def _stats_from_user(user: User) -> UserStats:
    return UserStats(
        user_id=user.id,
        points=user.points,
        lessons_completed=user.total_lessons_completed,
        challenges_solved=user.total_challenges_solved,
        streak_count=user.streak_count,
        last_active_at=user.last_active_at,
        display_name=display_name_for(user),
    )


class SqlGamificationStore:
    """Store backed by the request's ``AsyncSession``.

    ``completion_events`` is called concurrently by the leaderboard fan-out, so
    it opens its own session from ``session_factory`` when one is given and
    otherwise serializes on the request session. SQLAlchemy errors leave every
    method as ``UpstreamFailure``.
    """

    def __init__(
        self,
        db: AsyncSession,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.db = db
        self.session_factory = session_factory
        self._db_lock = asyncio.Lock()

    @asynccontextmanager
    async def _reader(self) -> AsyncIterator[AsyncSession]:
        if self.session_factory is not None:
            async with self.session_factory() as session:
                yield session
        else:
            async with self._db_lock:
                yield self.db

    # --- Users ---

    @store_operation
    async def get_user_stats(self, user_id: str) -> UserStats | None:
        user = await self.db.get(User, user_id)
        return _stats_from_user(user) if user else None

    @store_operation
    async def apply_delta(
        self, user_id: str, points: int = 0, lessons: int = 0, challenges: int = 0,
    ) -> UserStats | None:
        result = await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(
                points=User.points + points,
                total_lessons_completed=User.total_lessons_completed + lessons,
                total_challenges_solved=User.total_challenges_solved + challenges,
                updated_at=func.now(),
            )
            .returning(
                User.id,
                User.points,
                User.total_lessons_completed,
                User.total_challenges_solved,
                User.streak_count,
                User.last_active_at,
            )
            .execution_options(synchronize_session=False)
        )
        row = result.one_or_none()
        if row is None:
            return None
        return UserStats(
            user_id=row.id,
            points=row.points,
            lessons_completed=row.total_lessons_completed,
            challenges_solved=row.total_challenges_solved,
            streak_count=row.streak_count,
            last_active_at=row.last_active_at,
        )

    @store_operation
    async def set_streak(self, user_id: str, streak_count: int, last_active_at: datetime) -> None:
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(streak_count=streak_count, last_active_at=last_active_at)
            .execution_options(synchronize_session=False)
        )

    # --- Achievements ---

    @store_operation
    async def list_achievements(self) -> list[AchievementDef]:
        result = await self.db.execute(select(Achievement).order_by(Achievement.id))
        return [
            AchievementDef(
                id=a.id,
                slug=a.slug,
                name=a.name,
                criteria_type=a.criteria_type,
                criteria_value=a.criteria_value,
                points_reward=a.points_reward,
                description=a.description,
                icon=a.icon,
            )
            for a in result.scalars()
        ]

    @store_operation
    async def unlocked_achievements(self, user_id: str) -> dict[int, datetime]:
        result = await self.db.execute(
            select(UserAchievement.achievement_id, UserAchievement.unlocked_at)
            .where(UserAchievement.user_id == user_id)
        )
        return {row.achievement_id: row.unlocked_at for row in result}

    @store_operation
    async def insert_unlock(self, user_id: str, achievement_id: int, unlocked_at: datetime) -> bool:
        """Insert the unlock record. Returns False if it already existed.

        Runs in a savepoint so a failed insert leaves the outer transaction usable.
        """
        stmt = (
            pg_insert(UserAchievement)
            .values(user_id=user_id, achievement_id=achievement_id, unlocked_at=unlocked_at)
            .on_conflict_do_nothing(constraint="user_achievements_user_achievement_key")
            .returning(UserAchievement.id)
        )
        async with self.db.begin_nested():
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none() is not None

    # --- Catalog & progress ---

    @store_operation
    async def get_lesson(self, lesson_id: str) -> CatalogItem | None:
        lesson = await self.db.get(Lesson, lesson_id)
        if lesson is None:
            return None
        return CatalogItem(
            id=lesson.id, title=lesson.title, points_reward=lesson.points_reward, difficulty=lesson.level,
        )

    @store_operation
    async def get_challenge(self, challenge_id: str) -> CatalogItem | None:
        challenge = await self.db.get(Challenge, challenge_id)
        if challenge is None or challenge.status != "active":
            return None
        return CatalogItem(
            id=challenge.id,
            title=challenge.title,
            points_reward=challenge.points_reward,
            difficulty=challenge.difficulty,
        )

    @store_operation
    async def mark_lesson_started(self, user_id: str, lesson_id: str, now: datetime) -> str:
        """Create or touch the progress row; returns the resulting status."""
        stmt = pg_insert(UserLesson).values(
            user_id=user_id, lesson_id=lesson_id, status="in_progress", started_at=now, updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="user_lessons_user_lesson_key",
            set_={"updated_at": now},
        ).returning(UserLesson.status)
        result = await self.db.execute(stmt)
        return result.scalar_one()

    @store_operation
    async def mark_lesson_completed(
        self, user_id: str, lesson_id: str, time_spent_minutes: int, now: datetime,
    ) -> bool:
        """Transition the lesson to completed. False if it was already completed."""
        stmt = pg_insert(UserLesson).values(
            user_id=user_id,
            lesson_id=lesson_id,
            status="completed",
            started_at=now,
            completed_at=now,
            time_spent_minutes=time_spent_minutes,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            constraint="user_lessons_user_lesson_key",
            set_={
                "status": "completed",
                "completed_at": now,
                "time_spent_minutes": UserLesson.time_spent_minutes + time_spent_minutes,
                "updated_at": now,
            },
            where=UserLesson.status != "completed",
        ).returning(UserLesson.id)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none() is not None

    @store_operation
    async def record_challenge_solve(
        self, user_id: str, challenge_id: str, solution: str | None, now: datetime,
    ) -> bool:
        """Count the attempt and mark solved. True only for the first solve."""
        attempt = pg_insert(UserChallenge).values(
            user_id=user_id,
            challenge_id=challenge_id,
            status="attempted",
            attempts=1,
            best_solution=solution,
            updated_at=now,
        )
        attempt = attempt.on_conflict_do_update(
            constraint="user_challenges_user_challenge_key",
            set_={
                "attempts": UserChallenge.attempts + 1,
                "best_solution": func.coalesce(attempt.excluded.best_solution, UserChallenge.best_solution),
                "updated_at": now,
            },
        )
        await self.db.execute(attempt)

        solved = await self.db.execute(
            update(UserChallenge)
            .where(
                UserChallenge.user_id == user_id,
                UserChallenge.challenge_id == challenge_id,
                UserChallenge.status != "solved",
            )
            .values(status="solved", solved_at=now)
            .returning(UserChallenge.id)
            .execution_options(synchronize_session=False)
        )
        return solved.scalar_one_or_none() is not None

    # --- Leaderboard reads ---

    @store_operation
    async def top_users(self, limit: int) -> list[RankedUser]:
        result = await self.db.execute(
            select(User).order_by(User.points.desc(), User.id.asc()).limit(limit)
        )
        return [RankedUser(u.id, display_name_for(u), u.points) for u in result.scalars()]

    @store_operation
    async def list_users(self) -> list[RankedUser]:
        result = await self.db.execute(select(User).order_by(User.id.asc()))
        return [RankedUser(u.id, display_name_for(u), u.points) for u in result.scalars()]

    @store_operation
    async def completion_events(self, user_id: str, kind: str, since: datetime) -> list[CompletionEvent]:
        """Completion events at or after ``since``, joined to the points they were worth."""
        if kind == "lesson":
            stmt = (
                select(UserLesson.completed_at, Lesson.points_reward, Lesson.level)
                .join(Lesson, UserLesson.lesson_id == Lesson.id)
                .where(
                    UserLesson.user_id == user_id,
                    UserLesson.status == "completed",
                    UserLesson.completed_at >= since,
                )
            )
            action = Action.LESSON_COMPLETED
        elif kind == "challenge":
            stmt = (
                select(UserChallenge.solved_at, Challenge.points_reward, Challenge.difficulty)
                .join(Challenge, UserChallenge.challenge_id == Challenge.id)
                .where(
                    UserChallenge.user_id == user_id,
                    UserChallenge.status == "solved",
                    UserChallenge.solved_at >= since,
                )
            )
            action = Action.CHALLENGE_SOLVED
        else:
            raise ValueError(f"Unknown completion kind: {kind}")

        async with self._reader() as session:
            rows = (await session.execute(stmt)).all()
        return [
            CompletionEvent(completed_at=row[0], points=award(action, row[1], difficulty=row[2]))
            for row in rows
        ]

    @store_operation
    async def count_users_above(self, points: int) -> int:
        result = await self.db.execute(
            select(func.count()).select_from(User).where(User.points > points)
        )
        return result.scalar_one()

    @store_operation
    async def commit(self) -> None:
        await self.db.commit()
