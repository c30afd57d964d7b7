"""Core building blocks -- logging, i18n, storage keys and storage backends.

This package is framework-agnostic. It must NEVER import from ``tgroute/`` or ``sdk/``.
"""

from core.i18n import I18n
from core.logger import TgrouteLogger
from core.queue import InMemoryQueue, Queue, RedisQueue
from core.ratelimit import RateLimiter
from core.storage import build_storage
from core.ttlcache import InMemoryTTLCache, RedisTTLCache, TTLCache

__all__ = [
    "I18n",
    "TgrouteLogger",
    "Queue",
    "InMemoryQueue",
    "RedisQueue",
    "RateLimiter",
    "build_storage",
    "TTLCache",
    "InMemoryTTLCache",
    "RedisTTLCache",
]
