"""Pluggable TTL cache.

Call sites depend on the ``Cache`` protocol only. The process-wide instance is
created in the app lifespan (``init_cache``) and injected with the
``get_cache`` dependency, so swapping the in-process store for Redis is a
configuration change.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

from redis.asyncio import Redis
from redis.exceptions import RedisError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Cache(Protocol):
    async def get(self, key: str) -> Any | None: ...  # noqa: ANN401

    async def set(self, key: str, value: Any, ttl: int) -> None: ...  # noqa: ANN401

    async def delete(self, key: str) -> None: ...

    async def clear(self, prefix: str = "") -> None: ...


class MemoryCache:
    """In-process cache. Expired entries are dropped lazily on read."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[Any, float]] = {}

    async def get(self, key: str) -> Any | None:  # noqa: ANN401
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            return None
        return value

    async def set(self, key: str, value: Any, ttl: int) -> None:  # noqa: ANN401
        self._entries[key] = (value, self._clock() + ttl)

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def clear(self, prefix: str = "") -> None:
        if not prefix:
            self._entries.clear()
            return
        for key in [k for k in self._entries if k.startswith(prefix)]:
            del self._entries[key]


class RedisCache:
    """Redis-backed cache; values are stored as JSON with ``SET EX``.

    Redis errors degrade to cache misses so a flaky cache never fails a request.
    """

    def __init__(self, redis: Redis, namespace: str = "cache:") -> None:
        self.redis = redis
        self.namespace = namespace

    async def get(self, key: str) -> Any | None:  # noqa: ANN401
        try:
            raw = await self.redis.get(self.namespace + key)
        except RedisError:
            logger.warning("Cache read failed for %s", key, exc_info=True)
            return None
        return json.loads(raw) if raw is not None else None

    async def set(self, key: str, value: Any, ttl: int) -> None:  # noqa: ANN401
        try:
            await self.redis.set(self.namespace + key, json.dumps(value, default=str), ex=ttl)
        except RedisError:
            logger.warning("Cache write failed for %s", key, exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(self.namespace + key)
        except RedisError:
            logger.warning("Cache delete failed for %s", key, exc_info=True)

    async def clear(self, prefix: str = "") -> None:
        try:
            keys = [k async for k in self.redis.scan_iter(match=f"{self.namespace}{prefix}*")]
            if keys:
                await self.redis.delete(*keys)
        except RedisError:
            logger.warning("Cache clear failed for prefix %r", prefix, exc_info=True)


async def cached(cache: Cache, key: str, ttl: int, fetch: Callable[[], Awaitable[T]]) -> T:
    """Return the cached value for ``key`` or compute, store and return it."""
    hit = await cache.get(key)
    if hit is not None:
        return hit
    value = await fetch()
    await cache.set(key, value, ttl)
    return value


_cache: Cache | None = None


def init_cache(backend: str, redis: Redis | None = None) -> Cache:
    """Create the process-wide cache for the configured backend."""
    global _cache  # noqa: PLW0603
    if backend == "redis":
        if redis is None:
            msg = "Redis cache backend requires an initialized Redis client"
            raise RuntimeError(msg)
        _cache = RedisCache(redis)
    elif backend == "memory":
        _cache = MemoryCache()
    else:
        msg = f"Unknown cache backend: {backend}"
        raise ValueError(msg)
    return _cache


async def close_cache() -> None:
    global _cache  # noqa: PLW0603
    if isinstance(_cache, MemoryCache):
        await _cache.clear()
    _cache = None


def get_cache() -> Cache:
    """Get the process-wide cache (FastAPI dependency)."""
    if _cache is None:
        msg = "Cache not initialized. Call init_cache() first."
        raise RuntimeError(msg)
    return _cache
