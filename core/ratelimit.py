"""Fixed-window counters stored in a :class:`~core.ttlcache.TTLCache`.

The get → increment → set sequence is not atomic: two concurrent checks for
the same key can both read the same count and let one extra call through.
Callers that need a hard limit must serialise themselves.
"""

from __future__ import annotations

from datetime import timedelta

from core.keys import COMMAND_RATE_LIMIT
from core.logger import TgrouteLogger
from core.ttlcache import TTLCache, ttl_seconds

logger = TgrouteLogger.get_logger()


class RateLimiter:
    """Counts calls per key and refuses them once *rate* is reached."""

    def __init__(self, cache: TTLCache) -> None:
        self._cache = cache

    async def check_and_count(self, key: str, rate: int, per: timedelta) -> tuple[int, bool]:
        """Count one call against *key*.

        Returns ``(current_count, allowed)``.  A refused call is not counted.
        Each accepted call restarts the window, so the counter resets to zero
        once *per* has elapsed since the last accepted call.  A non-positive
        window disables limiting.

        Raises:
            Exception: Whatever the backing store raises on I/O failure.
        """
        if per <= timedelta(0):
            return 0, True

        raw = await self._cache.get(key)
        try:
            count = int(raw) if raw else 0
        except ValueError:
            logger.warning("Corrupt rate limit counter, resetting", extra={"key": key, "value": raw})
            count = 0

        if count >= rate:
            logger.debug("Rate limit reached", extra={"key": key, "count": count, "rate": rate})
            return count, False

        count += 1
        await self._cache.set(key, str(count), timedelta(seconds=ttl_seconds(per)))
        return count, True

    async def check_command(
        self,
        chat_id: int,
        command: str,
        rate: int,
        per: timedelta,
        platform: str = "telegram",
    ) -> tuple[int, bool]:
        """:meth:`check_and_count` under the per-chat command key."""
        return await self.check_and_count(COMMAND_RATE_LIMIT.format(command, platform, chat_id), rate, per)
