"""Per-group append / drain list of opaque strings, with two backends.

Items come back in insertion order.  :meth:`Queue.pop_all` returns every item
of a group and leaves the group empty in one step, so an item is drained by
exactly one caller.
"""

from __future__ import annotations

import asyncio
import time
from datetime import timedelta
from typing import Callable, Protocol, runtime_checkable

from redis.asyncio import Redis

from core.ttlcache import ttl_seconds


@runtime_checkable
class Queue(Protocol):
    async def push(self, group: str, item: str) -> None: ...  # noqa: E704

    async def pop(self, group: str) -> str | None: ...  # noqa: E704

    async def pop_all(self, group: str) -> list[str]: ...  # noqa: E704


class InMemoryQueue:
    """Process-local :class:`Queue` guarded by an :class:`asyncio.Lock`.

    Like :class:`RedisQueue`, every push refreshes the group's expiry to
    *ttl*; an expired group reads as empty and is dropped on access.  *clock*
    returns monotonic seconds so tests can move time forward.
    """

    def __init__(self, ttl: timedelta = timedelta(hours=24), clock: Callable[[], float] = time.monotonic) -> None:
        self._ttl = ttl
        self._clock = clock
        self._lock = asyncio.Lock()
        self._groups: dict[str, tuple[list[str], float]] = {}

    async def push(self, group: str, item: str) -> None:
        async with self._lock:
            items = self._live_items(group)
            items.append(item)
            self._groups[group] = (items, self._clock() + ttl_seconds(self._ttl))

    async def pop(self, group: str) -> str | None:
        async with self._lock:
            items = self._live_items(group)
            if not items:
                self._groups.pop(group, None)
                return None
            return items.pop(0)

    async def pop_all(self, group: str) -> list[str]:
        async with self._lock:
            items = self._live_items(group)
            self._groups.pop(group, None)
            return items

    def _live_items(self, group: str) -> list[str]:
        entry = self._groups.get(group)
        if entry is None:
            return []
        items, expires_at = entry
        if expires_at <= self._clock():
            del self._groups[group]
            return []
        return items

    def __len__(self) -> int:
        return len(self._groups)


class RedisQueue:
    """Networked :class:`Queue` backed by a Redis list per group.

    Every push refreshes the group's expiry to *ttl*, so an abandoned group
    disappears on its own.
    """

    def __init__(self, client: Redis, ttl: timedelta = timedelta(hours=24)) -> None:
        self._client = client
        self._ttl = ttl

    async def push(self, group: str, item: str) -> None:
        # Ordered within the batch, not transactional across it.
        async with self._client.pipeline(transaction=False) as pipe:
            pipe.rpush(group, item)
            pipe.expire(group, ttl_seconds(self._ttl))
            await pipe.execute()

    async def pop(self, group: str) -> str | None:
        value = await self._client.lpop(group)
        if value is None:
            return None
        return _decode(value)

    async def pop_all(self, group: str) -> list[str]:
        async with self._client.pipeline(transaction=True) as pipe:
            pipe.lrange(group, 0, -1)
            pipe.delete(group)
            items, _ = await pipe.execute()
        return [_decode(v) for v in items or []]


def _decode(value: str | bytes) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value
