"""Pydantic schemas for user profile, search and admin listing endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

USERNAME_PATTERN = r"^[A-Za-z0-9_]{3,32}$"


class ProfileUpdateRequest(BaseModel):
    """Fields left out are unchanged; an explicit null clears the field."""

    full_name: str | None = Field(None, max_length=128)
    username: str | None = Field(None, pattern=USERNAME_PATTERN)
    bio: str | None = Field(None, max_length=280)
    avatar_url: str | None = Field(None, max_length=512)


class UserSummary(BaseModel):
    id: str
    full_name: str | None = None
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    points: int
    level: int
    streak_count: int
    total_lessons_completed: int
    total_challenges_solved: int
    created_at: datetime | None = None


class UserProfile(UserSummary):
    email: str | None = None


class AdminUser(UserProfile):
    role: str


class UserSearchResponse(BaseModel):
    users: list[UserSummary]
    count: int


class UserPageResponse(BaseModel):
    users: list[AdminUser]
    total: int
    page: int
    limit: int
    total_pages: int


class DeleteUserResponse(BaseModel):
    success: bool
