"""Pydantic request and response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


# --- Requests ---


class LessonCompleteRequest(BaseModel):
    time_spent_minutes: int = Field(0, ge=0, le=24 * 60)


class ChallengeSolveRequest(BaseModel):
    solution: str | None = Field(None, max_length=100_000)


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str = ""
    icon: str | None = None
    criteria_type: str
    criteria_value: int
    points_reward: int


class AchievementStatusResponse(AchievementResponse):
    unlocked: bool = False
    unlocked_at: datetime | None = None


class AchievementsResponse(BaseModel):
    achievements: list[AchievementStatusResponse]
    total_unlocked: int
    total_achievements: int


# --- Progress ---


class LessonStartResponse(BaseModel):
    lesson_id: str
    status: str


class ProgressResponse(BaseModel):
    success: bool = True
    already_completed: bool = False
    points_earned: int
    streak_bonus: int = 0
    total_points: int
    lessons_completed: int
    challenges_solved: int
    level: int
    points_to_next_level: int
    tier: str
    streak: int
    achievements_unlocked: list[AchievementResponse] = []


# --- Leaderboard ---


Period = Literal["all-time", "weekly", "monthly"]


class LeaderboardEntry(BaseModel):
    rank: int
    user_id: str
    display_name: str
    points: int
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    leaderboard: list[LeaderboardEntry]
    current_user_rank: LeaderboardEntry | None = None
    period: Period
    total_entries: int


# --- Levels & profile ---


class TierEntry(BaseModel):
    name: str
    threshold: int


class TiersResponse(BaseModel):
    points_per_level: int
    tiers: list[TierEntry]


class ProfileStats(BaseModel):
    achievements_unlocked: int
    current_streak: int
    lessons_completed: int
    challenges_solved: int


class ProfileResponse(BaseModel):
    user_id: str
    display_name: str
    points: int
    level: int
    points_to_next_level: int
    tier: str
    tier_progress: int
    next_tier: str | None = None
    stats: ProfileStats
    last_active_at: datetime | None = None
