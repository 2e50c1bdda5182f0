"""Admin endpoints."""

from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.admin.service import get_platform_stats
from codebro.auth.dependencies import require_role
from codebro.auth.jwt import Identity
from codebro.database import get_session
from codebro.dependencies import get_user_directory, utcnow
from codebro.users import service as users_service
from codebro.users.schemas import DeleteUserResponse, UserPageResponse
from codebro.users.store import UserDirectory

router = APIRouter(prefix="/api/v1/admin", tags=["Admin"])


class PlatformStats(BaseModel):
    total_users: int
    total_lessons: int
    total_challenges: int
    total_achievements: int
    recent_users: int
    total_points: int
    lessons_completed_today: int
    active_users: int


class StatsResponse(BaseModel):
    stats: PlatformStats


@router.get("/stats", response_model=StatsResponse)
async def platform_stats(
    _admin: Identity = Depends(require_role("admin")),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(utcnow),
):
    """Platform totals. Requires the admin role claim."""
    return {"stats": await get_platform_stats(db, now)}


@router.get("/users", response_model=UserPageResponse)
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    _admin: Identity = Depends(require_role("admin")),
    directory: UserDirectory = Depends(get_user_directory),
):
    """All users, newest first, with their derived level."""
    return await users_service.list_users_page(directory, page, limit)


@router.delete("/users/{user_id}", response_model=DeleteUserResponse)
async def delete_user(
    user_id: UUID,
    _admin: Identity = Depends(require_role("admin")),
    directory: UserDirectory = Depends(get_user_directory),
):
    """Delete a user and everything that belongs to them."""
    return await users_service.delete_user(directory, str(user_id))
