"""Shared FastAPI dependencies."""

from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.database import get_session, get_session_factory
from codebro.gamification.store import GamificationStore, SqlGamificationStore
from codebro.users.store import SqlUserDirectory, UserDirectory


async def get_store(db: AsyncSession = Depends(get_session)) -> GamificationStore:
    """Request-scoped store; fan-out reads get their own sessions."""
    return SqlGamificationStore(db, session_factory=get_session_factory())


async def get_user_directory(db: AsyncSession = Depends(get_session)) -> UserDirectory:
    return SqlUserDirectory(db)


def utcnow() -> datetime:
    """Current time (dependency so tests can pin the clock)."""
    return datetime.now(timezone.utc)
