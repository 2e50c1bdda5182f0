"""User directory: profile edits, search and the admin listing."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.database import store_operation
from codebro.db.models import User
from codebro.errors import ValidationError

PROFILE_FIELDS = ("full_name", "username", "bio", "avatar_url")


@dataclass(frozen=True)
class UserRecord:
    id: str
    email: str | None = None
    full_name: str | None = None
    username: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    role: str = "user"
    points: int = 0
    streak_count: int = 0
    total_lessons_completed: int = 0
    total_challenges_solved: int = 0
    created_at: datetime | None = None


class UserDirectory(Protocol):
    async def username_taken(self, username: str, exclude_user_id: str) -> bool: ...

    async def update_profile(self, user_id: str, changes: dict[str, Any], now: datetime) -> UserRecord | None: ...

    async def search(self, term: str, limit: int) -> list[UserRecord]: ...

    async def page(self, offset: int, limit: int) -> tuple[list[UserRecord], int]: ...

    async def delete(self, user_id: str) -> bool: ...

    async def commit(self) -> None: ...


def _record(user: User) -> UserRecord:
    return UserRecord(
        id=user.id,
        email=user.email,
        full_name=user.full_name,
        username=user.username,
        bio=user.bio,
        avatar_url=user.avatar_url,
        role=user.role,
        points=user.points,
        streak_count=user.streak_count,
        total_lessons_completed=user.total_lessons_completed,
        total_challenges_solved=user.total_challenges_solved,
        created_at=user.created_at,
    )


def like_pattern(term: str) -> str:
    """``%term%`` with LIKE wildcards in ``term`` matched literally."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SqlUserDirectory:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @store_operation
    async def username_taken(self, username: str, exclude_user_id: str) -> bool:
        result = await self.db.execute(
            select(User.id).where(User.username == username, User.id != exclude_user_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    @store_operation
    async def update_profile(self, user_id: str, changes: dict[str, Any], now: datetime) -> UserRecord | None:
        values = {k: v for k, v in changes.items() if k in PROFILE_FIELDS}
        try:
            async with self.db.begin_nested():
                result = await self.db.execute(
                    update(User)
                    .where(User.id == user_id)
                    .values(**values, updated_at=now)
                    .returning(User)
                    .execution_options(synchronize_session=False, populate_existing=True)
                )
                user = result.scalar_one_or_none()
        except IntegrityError as exc:
            # Lost a race on the unique username.
            raise ValidationError("Username already taken") from exc
        return _record(user) if user else None

    @store_operation
    async def search(self, term: str, limit: int) -> list[UserRecord]:
        pattern = like_pattern(term)
        result = await self.db.execute(
            select(User)
            .where(
                or_(
                    User.username.ilike(pattern, escape="\\"),
                    User.full_name.ilike(pattern, escape="\\"),
                    User.email.ilike(pattern, escape="\\"),
                )
            )
            .order_by(User.points.desc(), User.id.asc())
            .limit(limit)
        )
        return [_record(u) for u in result.scalars()]

    @store_operation
    async def page(self, offset: int, limit: int) -> tuple[list[UserRecord], int]:
        total = (await self.db.execute(select(func.count()).select_from(User))).scalar_one()
        result = await self.db.execute(
            select(User).order_by(User.created_at.desc(), User.id.asc()).offset(offset).limit(limit)
        )
        return [_record(u) for u in result.scalars()], total

    @store_operation
    async def delete(self, user_id: str) -> bool:
        """Delete the user; progress, unlocks and AI usage go with it (ON DELETE CASCADE)."""
        result = await self.db.execute(delete(User).where(User.id == user_id).returning(User.id))
        return result.scalar_one_or_none() is not None

    @store_operation
    async def commit(self) -> None:
        await self.db.commit()
