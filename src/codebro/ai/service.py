"""AI assistant with a per-user daily message quota.

The quota window starts at midnight UTC of the current calendar day, the same
calendar-day rule the streak tracker uses. A message takes its quota slot
before the model is asked, so concurrent requests cannot overrun the limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Protocol

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from codebro.database import store_operation
from codebro.db.models import AIUsage, User
from codebro.errors import NotFound, RateLimited, ValidationError

logger = logging.getLogger(__name__)


def day_start(now: datetime) -> datetime:
    """Midnight UTC of ``now``'s calendar day (naive input is taken as UTC)."""
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)


@dataclass(frozen=True)
class Reservation:
    usage_id: int
    used: int  # messages in the window, this one included


class UsageStore(Protocol):
    async def count_since(self, user_id: str, since: datetime) -> int: ...

    async def reserve(
        self, user_id: str, model: str, at: datetime, since: datetime, limit: int,
    ) -> Reservation | None: ...

    async def record_tokens(self, usage_id: int, tokens_used: int) -> None: ...

    async def release(self, usage_id: int) -> None: ...


class Responder(Protocol):
    async def reply(self, message: str) -> str: ...


class PlaceholderResponder:
    """Echo responder used until a model provider is wired in."""

    async def reply(self, message: str) -> str:
        return (
            f'I received your message: "{message}". This is a placeholder response; '
            "a production deployment would forward it to a language model."
        )


class SqlUsageStore:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @store_operation
    async def count_since(self, user_id: str, since: datetime) -> int:
        result = await self.db.execute(
            select(func.count(AIUsage.id)).where(AIUsage.user_id == user_id, AIUsage.created_at >= since)
        )
        return result.scalar_one()

    @store_operation
    async def reserve(
        self, user_id: str, model: str, at: datetime, since: datetime, limit: int,
    ) -> Reservation | None:
        """Insert a usage row if the user is under ``limit``; None when the quota is spent.

        The user's row is locked ``FOR UPDATE`` so the count and the insert are
        serialized per user; the lock is released by the commit, after the new
        row is visible.
        """
        try:
            locked = await self.db.execute(select(User.id).where(User.id == user_id).with_for_update())
            if locked.scalar_one_or_none() is None:
                raise NotFound("User not found")
            used = (
                await self.db.execute(
                    select(func.count(AIUsage.id)).where(AIUsage.user_id == user_id, AIUsage.created_at >= since)
                )
            ).scalar_one()
            if used >= limit:
                await self.db.rollback()
                return None
            usage = AIUsage(user_id=user_id, message_count=1, tokens_used=0, model_used=model, created_at=at)
            self.db.add(usage)
            await self.db.flush()
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return Reservation(usage_id=usage.id, used=used + 1)

    @store_operation
    async def record_tokens(self, usage_id: int, tokens_used: int) -> None:
        await self.db.execute(
            update(AIUsage).where(AIUsage.id == usage_id).values(tokens_used=tokens_used)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

    @store_operation
    async def release(self, usage_id: int) -> None:
        await self.db.execute(
            delete(AIUsage).where(AIUsage.id == usage_id).execution_options(synchronize_session=False)
        )
        await self.db.commit()


class AssistantService:
    def __init__(self, usage: UsageStore, responder: Responder, daily_limit: int, model_name: str) -> None:
        self.usage = usage
        self.responder = responder
        self.daily_limit = daily_limit
        self.model_name = model_name

    async def get_usage(self, user_id: str, now: datetime) -> dict:
        start = day_start(now)
        used = await self.usage.count_since(user_id, start)
        return {
            "used": used,
            "remaining": max(0, self.daily_limit - used),
            "limit": self.daily_limit,
            "resets_at": start + timedelta(days=1),
        }

    async def chat(self, user_id: str, message: str, now: datetime) -> dict:
        """Answer one message. Raises ``RateLimited`` once today's quota is used up."""
        if not message or not message.strip():
            raise ValidationError("Message is required")

        reservation = await self.usage.reserve(user_id, self.model_name, now, day_start(now), self.daily_limit)
        if reservation is None:
            raise RateLimited(
                "Daily limit reached",
                limit_reached=True,
                remaining=0,
                limit=self.daily_limit,
            )

        try:
            response = await self.responder.reply(message)
        except Exception:
            # No answer, no charge.
            await self.usage.release(reservation.usage_id)
            raise

        # Simplified token count: characters in and out.
        try:
            await self.usage.record_tokens(reservation.usage_id, len(message) + len(response))
        except Exception:
            logger.warning("Failed to record AI token usage for user %s", user_id, exc_info=True)

        return {
            "response": response,
            "remaining": max(0, self.daily_limit - reservation.used),
            "limit": self.daily_limit,
        }
