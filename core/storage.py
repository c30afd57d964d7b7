"""Backend selection -- the only place that decides in-process vs. Redis."""

from __future__ import annotations

from datetime import timedelta

from redis.asyncio import Redis

from core.logger import TgrouteLogger
from core.queue import InMemoryQueue, Queue, RedisQueue
from core.ttlcache import InMemoryTTLCache, RedisTTLCache, TTLCache

logger = TgrouteLogger.get_logger()


def build_storage(
    redis_url: str | None = None,
    queue_ttl: timedelta = timedelta(hours=24),
) -> tuple[TTLCache, Queue]:
    """Return a matching ``(cache, queue)`` pair.

    A *redis_url* selects the networked backends sharing one connection pool;
    otherwise both live in process.
    """
    if redis_url:
        client = Redis.from_url(redis_url, decode_responses=True)
        logger.info("Using Redis storage backend", extra={"backend": "redis"})
        return RedisTTLCache(client), RedisQueue(client, ttl=queue_ttl)

    logger.info("Using in-process storage backend", extra={"backend": "memory"})
    return InMemoryTTLCache(), InMemoryQueue(ttl=queue_ttl)
