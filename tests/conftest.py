"""Shared test fixtures.

The API runs against in-memory stores and cache, so no PostgreSQL or Redis
is needed. ``tests/integration`` brings its own database fixtures.
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import jwt
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from codebro.ai.router import get_usage_store
from codebro.ai.service import Reservation
from codebro.cache import MemoryCache, get_cache
from codebro.config import get_settings
from codebro.database import get_session
from codebro.dependencies import get_store, get_user_directory, utcnow
from codebro.gamification.points import Action, award
from codebro.gamification.seed import ACHIEVEMENT_SEED_DATA
from codebro.gamification.store import (
    AchievementDef,
    CatalogItem,
    CompletionEvent,
    RankedUser,
    UserStats,
)
from codebro.main import create_app
from codebro.users.store import PROFILE_FIELDS, UserRecord

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class FakeStore:
    """In-memory GamificationStore with the same once-only semantics as the SQL store."""

    def __init__(self) -> None:
        self.users: dict[str, dict] = {}
        self.lessons: dict[str, CatalogItem] = {}
        self.challenges: dict[str, CatalogItem] = {}
        self.achievements: list[AchievementDef] = []
        self.unlocks: dict[tuple[str, int], datetime] = {}
        self.lesson_progress: dict[tuple[str, str], dict] = {}
        self.challenge_progress: dict[tuple[str, str], dict] = {}
        self.commits = 0

    # --- Setup helpers ---

    def add_user(
        self,
        user_id: str | None = None,
        points: int = 0,
        lessons: int = 0,
        challenges: int = 0,
        streak: int = 0,
        last_active_at: datetime | None = None,
        name: str | None = None,
    ) -> str:
        user_id = user_id or str(uuid.uuid4())
        self.users[user_id] = {
            "points": points,
            "lessons": lessons,
            "challenges": challenges,
            "streak": streak,
            "last_active_at": last_active_at,
            "name": name or f"user-{user_id[:8]}",
        }
        return user_id

    def add_lesson(self, points_reward: int | None = None, difficulty: str = "beginner") -> str:
        lesson_id = str(uuid.uuid4())
        self.lessons[lesson_id] = CatalogItem(lesson_id, "Lesson", points_reward, difficulty)
        return lesson_id

    def add_challenge(self, points_reward: int | None = None) -> str:
        challenge_id = str(uuid.uuid4())
        self.challenges[challenge_id] = CatalogItem(challenge_id, "Challenge", points_reward, "easy")
        return challenge_id

    def add_completion(self, user_id: str, lesson_id: str, at: datetime) -> None:
        self.lesson_progress[(user_id, lesson_id)] = {"status": "completed", "completed_at": at}

    def add_solve(self, user_id: str, challenge_id: str, at: datetime) -> None:
        self.challenge_progress[(user_id, challenge_id)] = {"status": "solved", "solved_at": at, "attempts": 1}

    def _stats(self, user_id: str) -> UserStats:
        u = self.users[user_id]
        return UserStats(
            user_id=user_id,
            points=u["points"],
            lessons_completed=u["lessons"],
            challenges_solved=u["challenges"],
            streak_count=u["streak"],
            last_active_at=u["last_active_at"],
            display_name=u["name"],
        )

    # --- GamificationStore ---

    async def get_user_stats(self, user_id: str) -> UserStats | None:
        return self._stats(user_id) if user_id in self.users else None

    async def apply_delta(self, user_id: str, points: int = 0, lessons: int = 0, challenges: int = 0):
        if user_id not in self.users:
            return None
        u = self.users[user_id]
        u["points"] += points
        u["lessons"] += lessons
        u["challenges"] += challenges
        return self._stats(user_id)

    async def set_streak(self, user_id: str, streak_count: int, last_active_at: datetime) -> None:
        self.users[user_id]["streak"] = streak_count
        self.users[user_id]["last_active_at"] = last_active_at

    async def list_achievements(self) -> list[AchievementDef]:
        return sorted(self.achievements, key=lambda a: a.id)

    async def unlocked_achievements(self, user_id: str) -> dict[int, datetime]:
        return {aid: at for (uid, aid), at in self.unlocks.items() if uid == user_id}

    async def insert_unlock(self, user_id: str, achievement_id: int, unlocked_at: datetime) -> bool:
        if (user_id, achievement_id) in self.unlocks:
            return False
        self.unlocks[(user_id, achievement_id)] = unlocked_at
        return True

    async def get_lesson(self, lesson_id: str) -> CatalogItem | None:
        return self.lessons.get(lesson_id)

    async def get_challenge(self, challenge_id: str) -> CatalogItem | None:
        return self.challenges.get(challenge_id)

    async def mark_lesson_started(self, user_id: str, lesson_id: str, now: datetime) -> str:
        row = self.lesson_progress.setdefault((user_id, lesson_id), {"status": "in_progress", "completed_at": None})
        return row["status"]

    async def mark_lesson_completed(self, user_id: str, lesson_id: str, time_spent_minutes: int, now: datetime) -> bool:
        row = self.lesson_progress.get((user_id, lesson_id))
        if row is not None and row["status"] == "completed":
            return False
        self.lesson_progress[(user_id, lesson_id)] = {"status": "completed", "completed_at": now}
        return True

    async def record_challenge_solve(self, user_id: str, challenge_id: str, solution: str | None, now: datetime) -> bool:
        row = self.challenge_progress.setdefault(
            (user_id, challenge_id), {"status": "attempted", "solved_at": None, "attempts": 0},
        )
        row["attempts"] += 1
        if row["status"] == "solved":
            return False
        row["status"] = "solved"
        row["solved_at"] = now
        return True

    async def top_users(self, limit: int) -> list[RankedUser]:
        ranked = sorted(self.users, key=lambda uid: (-self.users[uid]["points"], uid))
        return [RankedUser(uid, self.users[uid]["name"], self.users[uid]["points"]) for uid in ranked[:limit]]

    async def list_users(self) -> list[RankedUser]:
        return [RankedUser(uid, self.users[uid]["name"], self.users[uid]["points"]) for uid in sorted(self.users)]

    async def completion_events(self, user_id: str, kind: str, since: datetime) -> list[CompletionEvent]:
        events = []
        if kind == "lesson":
            for (uid, lesson_id), row in self.lesson_progress.items():
                if uid == user_id and row["status"] == "completed" and row["completed_at"] >= since:
                    lesson = self.lessons[lesson_id]
                    points = award(Action.LESSON_COMPLETED, lesson.points_reward, difficulty=lesson.difficulty)
                    events.append(CompletionEvent(row["completed_at"], points))
        elif kind == "challenge":
            for (uid, challenge_id), row in self.challenge_progress.items():
                if uid == user_id and row["status"] == "solved" and row["solved_at"] >= since:
                    challenge = self.challenges[challenge_id]
                    events.append(CompletionEvent(row["solved_at"], award(Action.CHALLENGE_SOLVED, challenge.points_reward)))
        else:
            raise ValueError(f"Unknown completion kind: {kind}")
        return events

    async def count_users_above(self, points: int) -> int:
        return sum(1 for u in self.users.values() if u["points"] > points)

    async def commit(self) -> None:
        self.commits += 1


class FakeUsageStore:
    def __init__(self) -> None:
        self.records: list[dict] = []
        self.fail_on_record = False
        self._next_id = 1

    async def count_since(self, user_id: str, since: datetime) -> int:
        return sum(1 for r in self.records if r["user_id"] == user_id and r["at"] >= since)

    async def reserve(
        self, user_id: str, model: str, at: datetime, since: datetime, limit: int,
    ) -> Reservation | None:
        used = await self.count_since(user_id, since)
        if used >= limit:
            return None
        self.records.append({"id": self._next_id, "user_id": user_id, "model": model, "at": at, "tokens_used": 0})
        self._next_id += 1
        return Reservation(usage_id=self._next_id - 1, used=used + 1)

    async def record_tokens(self, usage_id: int, tokens_used: int) -> None:
        if self.fail_on_record:
            raise RuntimeError("update failed")
        for r in self.records:
            if r["id"] == usage_id:
                r["tokens_used"] = tokens_used

    async def release(self, usage_id: int) -> None:
        self.records = [r for r in self.records if r["id"] != usage_id]


class FakeUserDirectory:
    """In-memory UserDirectory; usernames are unique like the users table."""

    def __init__(self) -> None:
        self.users: dict[str, UserRecord] = {}
        self.commits = 0

    def add(self, user_id: str | None = None, **fields) -> str:
        user_id = user_id or str(uuid.uuid4())
        fields.setdefault("created_at", NOW)
        self.users[user_id] = UserRecord(id=user_id, **fields)
        return user_id

    async def username_taken(self, username: str, exclude_user_id: str) -> bool:
        return any(u.username == username and u.id != exclude_user_id for u in self.users.values())

    async def update_profile(self, user_id: str, changes: dict, now: datetime) -> UserRecord | None:
        if user_id not in self.users:
            return None
        values = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        self.users[user_id] = dataclasses.replace(self.users[user_id], **values)
        return self.users[user_id]

    async def search(self, term: str, limit: int) -> list[UserRecord]:
        needle = term.lower()
        hits = [
            u for u in self.users.values()
            if any(needle in (value or "").lower() for value in (u.username, u.full_name, u.email))
        ]
        return sorted(hits, key=lambda u: (-u.points, u.id))[:limit]

    async def page(self, offset: int, limit: int) -> tuple[list[UserRecord], int]:
        newest = sorted(self.users.values(), key=lambda u: u.id)
        newest.sort(key=lambda u: u.created_at, reverse=True)
        return newest[offset:offset + limit], len(newest)

    async def delete(self, user_id: str) -> bool:
        return self.users.pop(user_id, None) is not None

    async def commit(self) -> None:
        self.commits += 1


class FakeResult:
    def __init__(self, row: dict) -> None:
        self._row = row

    def mappings(self) -> FakeResult:
        return self

    def one(self) -> dict:
        return self._row

    def scalar(self) -> int:
        return 1


class FakeSession:
    """Stands in for AsyncSession where endpoints run a single aggregate query."""

    def __init__(self, row: dict | None = None) -> None:
        self.row = row or {}
        self.executed: list = []
        self.error: Exception | None = None

    async def execute(self, statement):  # noqa: ANN001
        self.executed.append(statement)
        if self.error is not None:
            raise self.error
        return FakeResult(self.row)


def seed_definitions() -> list[AchievementDef]:
    return [AchievementDef(id=i, **data) for i, data in enumerate(ACHIEVEMENT_SEED_DATA, start=1)]


def make_token(
    user_id: str,
    role: str | None = None,
    expires_in: int = 3600,
    secret: str | None = None,
    audience: str = "authenticated",
) -> str:
    settings = get_settings()
    payload = {
        "sub": user_id,
        "email": f"{user_id[:8]}@example.com",
        "aud": audience,
        "exp": int(time.time()) + expires_in,
    }
    if role is not None:
        payload["app_role"] = role
    return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)


def auth_headers(user_id: str, role: str | None = None) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, role=role)}"}


@pytest.fixture
def headers_for():
    """Build bearer headers for a user id (optionally with a role claim)."""
    return auth_headers


@pytest.fixture
def token_for():
    return make_token


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def store() -> FakeStore:
    fake = FakeStore()
    fake.achievements = seed_definitions()
    return fake


@pytest.fixture
def usage_store() -> FakeUsageStore:
    return FakeUsageStore()


@pytest.fixture
def directory() -> FakeUserDirectory:
    return FakeUserDirectory()


@pytest.fixture
def fake_session() -> FakeSession:
    return FakeSession(
        {
            "total_users": 3,
            "total_lessons": 12,
            "total_challenges": 4,
            "total_achievements": 9,
            "recent_users": 2,
            "total_points": 1570,
            "lessons_completed_today": 5,
            "active_users": 1,
        }
    )


@pytest_asyncio.fixture
async def client(
    store: FakeStore,
    usage_store: FakeUsageStore,
    fake_session: FakeSession,
    directory: FakeUserDirectory,
    now: datetime,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client wired to in-memory dependencies."""
    app = create_app()
    cache = MemoryCache()

    async def _session():
        yield fake_session

    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_usage_store] = lambda: usage_store
    app.dependency_overrides[get_user_directory] = lambda: directory
    app.dependency_overrides[utcnow] = lambda: now

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

