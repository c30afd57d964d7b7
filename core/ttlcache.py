"""Expiring key-value store -- one capability, two interchangeable backends.

Both backends give identical observable semantics:

- :meth:`TTLCache.get` returns ``None`` for a key that was never set or whose
  time-to-live has elapsed; it only raises on backend failure.
- :meth:`TTLCache.set` overwrites the value and restarts its time-to-live.

:class:`InMemoryTTLCache` keeps everything in process and expires lazily on
read, with a periodic sweep on write.  :class:`RedisTTLCache` delegates expiry
to the Redis server (``SET … EX``).
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import Callable, Protocol, runtime_checkable

from redis.asyncio import Redis

from core.logger import TgrouteLogger

logger = TgrouteLogger.get_logger()


@runtime_checkable
class TTLCache(Protocol):
    """Get-or-absent string store with per-key expiry."""

    async def get(self, key: str) -> str | None: ...  # noqa: E704

    async def set(self, key: str, value: str, ttl: timedelta) -> None: ...  # noqa: E704


def ttl_seconds(ttl: timedelta) -> int:
    """Whole seconds of *ttl*, never below one (Redis rejects ``EX 0``)."""
    return max(1, int(ttl.total_seconds()))


class InMemoryTTLCache:
    """Process-local :class:`TTLCache` guarded by an :class:`asyncio.Lock`.

    *clock* returns monotonic seconds and exists so tests can move time
    forward without sleeping.
    """

    _SWEEP_INTERVAL: float = 1.0

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self._items: dict[str, tuple[str, float]] = {}
        self._last_sweep = clock()

    async def get(self, key: str) -> str | None:
        async with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            value, expires_at = item
            if expires_at <= self._clock():
                del self._items[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        async with self._lock:
            now = self._clock()
            self._items[key] = (value, now + ttl.total_seconds())
            if now - self._last_sweep >= self._SWEEP_INTERVAL:
                self._sweep(now)

    def _sweep(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._items.items() if expires_at <= now]
        for key in expired:
            del self._items[key]
        self._last_sweep = now
        if expired:
            logger.debug("Swept expired cache entries", extra={"count": len(expired)})

    def __len__(self) -> int:
        return len(self._items)


class RedisTTLCache:
    """Networked :class:`TTLCache` on top of a ``redis.asyncio`` client."""

    def __init__(self, client: Redis) -> None:
        self._client = client

    async def get(self, key: str) -> str | None:
        value = await self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: timedelta) -> None:
        await self._client.set(key, value, ex=ttl_seconds(ttl))
