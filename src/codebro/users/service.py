"""Profile edits, user search and admin user management."""

from __future__ import annotations

import dataclasses
import math
from datetime import datetime
from typing import Any

from codebro.errors import NotFound, ValidationError
from codebro.gamification.levels import compute_level
from codebro.users.store import UserDirectory, UserRecord

SEARCH_LIMIT = 20


def user_payload(user: UserRecord) -> dict[str, Any]:
    """Record fields plus the level derived from points."""
    return {**dataclasses.asdict(user), "level": compute_level(user.points)["level"]}


async def update_profile(
    directory: UserDirectory, user_id: str, changes: dict[str, Any], now: datetime,
) -> dict[str, Any]:
    """Apply the provided profile fields. ``None`` clears a field."""
    username = changes.get("username")
    if username is not None and await directory.username_taken(username, user_id):
        raise ValidationError("Username already taken")

    user = await directory.update_profile(user_id, changes, now)
    if user is None:
        raise NotFound("User not found")
    await directory.commit()
    return user_payload(user)


async def search_users(directory: UserDirectory, query: str) -> dict[str, Any]:
    term = query.strip()
    if not term:
        raise ValidationError("Search query is required")
    users = await directory.search(term, SEARCH_LIMIT)
    return {"users": [user_payload(u) for u in users], "count": len(users)}


async def list_users_page(directory: UserDirectory, page: int, limit: int) -> dict[str, Any]:
    """Newest users first, ``limit`` per page (pages start at 1)."""
    users, total = await directory.page((page - 1) * limit, limit)
    return {
        "users": [user_payload(u) for u in users],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": math.ceil(total / limit),
    }


async def delete_user(directory: UserDirectory, user_id: str) -> dict[str, bool]:
    if not await directory.delete(user_id):
        raise NotFound("User not found")
    await directory.commit()
    return {"success": True}
