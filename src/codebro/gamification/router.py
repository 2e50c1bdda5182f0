"""Gamification API endpoints: achievements, progress, leaderboard, profile."""

from __future__ import annotations

import dataclasses
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from codebro.auth.dependencies import get_current_identity, get_optional_identity
from codebro.auth.jwt import Identity
from codebro.cache import Cache, cached, get_cache
from codebro.config import Settings, get_settings
from codebro.dependencies import get_store, utcnow
from codebro.gamification import service
from codebro.gamification.leaderboard import compute_standings, personalize
from codebro.gamification.levels import POINTS_PER_LEVEL, TIER_THRESHOLDS
from codebro.gamification.schemas import (
    AchievementsResponse,
    AchievementStatusResponse,
    ChallengeSolveRequest,
    LeaderboardResponse,
    LessonCompleteRequest,
    LessonStartResponse,
    Period,
    ProfileResponse,
    ProgressResponse,
    TierEntry,
    TiersResponse,
)
from codebro.gamification.store import AchievementDef, GamificationStore

router = APIRouter(prefix="/api/v1", tags=["Gamification"])

ACHIEVEMENTS_CACHE_KEY = "achievements:definitions"


async def load_definitions(
    store: GamificationStore, cache: Cache, settings: Settings,
) -> list[AchievementDef]:
    """Achievement definitions, cached as plain dicts so any backend can hold them."""

    async def fetch() -> list[dict]:
        return [dataclasses.asdict(a) for a in await store.list_achievements()]

    rows = await cached(cache, ACHIEVEMENTS_CACHE_KEY, settings.cache_ttl_achievements_seconds, fetch)
    return [AchievementDef(**row) for row in rows]


# ── Public endpoints ──


@router.get("/tiers", response_model=TiersResponse)
async def list_tiers():
    """Named tiers and the points-per-level constant."""
    return TiersResponse(
        points_per_level=POINTS_PER_LEVEL,
        tiers=[TierEntry(name=t["name"], threshold=t["threshold"]) for t in TIER_THRESHOLDS],
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    period: Period = Query("all-time"),
    limit: int | None = Query(None, ge=1),
    identity: Identity | None = Depends(get_optional_identity),
    store: GamificationStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(utcnow),
):
    """Ranked leaderboard. The ranked page is cached; viewer fields are not."""
    limit = min(limit or settings.leaderboard_default_limit, settings.leaderboard_max_limit)

    async def fetch() -> dict:
        return await compute_standings(
            store,
            period,
            limit,
            now,
            concurrency=settings.leaderboard_fanout_concurrency,
            timeout=settings.leaderboard_fanout_timeout_seconds,
        )

    standings = await cached(cache, f"leaderboard:{period}:{limit}", settings.cache_ttl_leaderboard_seconds, fetch)
    return await personalize(store, standings, identity.user_id if identity else None)


# ── Authenticated endpoints ──


@router.get("/achievements", response_model=AchievementsResponse)
async def list_achievements(
    identity: Identity = Depends(get_current_identity),
    store: GamificationStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
):
    """All achievements with the caller's unlock status, highest reward first."""
    definitions = await load_definitions(store, cache, settings)
    unlocked = await store.unlocked_achievements(identity.user_id)

    items = [
        AchievementStatusResponse(
            **service.achievement_payload(a),
            unlocked=a.id in unlocked,
            unlocked_at=unlocked.get(a.id),
        )
        for a in sorted(definitions, key=lambda a: (-a.points_reward, a.id))
    ]
    return AchievementsResponse(
        achievements=items,
        total_unlocked=sum(1 for item in items if item.unlocked),
        total_achievements=len(items),
    )


@router.post("/lessons/{lesson_id}/start", response_model=LessonStartResponse)
async def start_lesson(
    lesson_id: UUID,
    identity: Identity = Depends(get_current_identity),
    store: GamificationStore = Depends(get_store),
    now: datetime = Depends(utcnow),
):
    return await service.start_lesson(store, identity.user_id, str(lesson_id), now)


@router.post("/lessons/{lesson_id}/complete", response_model=ProgressResponse)
async def complete_lesson(
    lesson_id: UUID,
    body: LessonCompleteRequest | None = None,
    identity: Identity = Depends(get_current_identity),
    store: GamificationStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(utcnow),
):
    """Complete a lesson: award points, tick the streak, unlock achievements."""
    body = body or LessonCompleteRequest()
    return await service.complete_lesson(
        store,
        identity.user_id,
        str(lesson_id),
        now,
        time_spent_minutes=body.time_spent_minutes,
        streak_bonus=settings.streak_bonus_enabled,
        definitions=await load_definitions(store, cache, settings),
    )


@router.post("/challenges/{challenge_id}/solve", response_model=ProgressResponse)
async def solve_challenge(
    challenge_id: UUID,
    body: ChallengeSolveRequest | None = None,
    identity: Identity = Depends(get_current_identity),
    store: GamificationStore = Depends(get_store),
    cache: Cache = Depends(get_cache),
    settings: Settings = Depends(get_settings),
    now: datetime = Depends(utcnow),
):
    """Record a verified solve. Only the first solve earns points."""
    body = body or ChallengeSolveRequest()
    return await service.solve_challenge(
        store,
        identity.user_id,
        str(challenge_id),
        now,
        solution=body.solution,
        streak_bonus=settings.streak_bonus_enabled,
        definitions=await load_definitions(store, cache, settings),
    )


@router.get("/users/me/profile", response_model=ProfileResponse)
async def get_my_profile(
    identity: Identity = Depends(get_current_identity),
    store: GamificationStore = Depends(get_store),
    now: datetime = Depends(utcnow),
):
    """Profile stats with derived level, tier and effective streak."""
    return await service.build_profile(store, identity.user_id, now)
