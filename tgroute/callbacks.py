"""Callback action registry: short tokens for inline buttons, payloads kept server side.

A button's ``callback_data`` only carries ``"<route hash>;<action data hash>"``.
The route hash identifies the handler registered with
``on_callback_query(route, …)``; the action data hash addresses the JSON
payload stored under ``callback_query/button_data/{route}/{hash}`` for
:data:`config.CALLBACK_DATA_TTL`.  Identical payloads on the same route share a
token and a stored entry.
"""

from __future__ import annotations

import dataclasses
import hashlib
from datetime import timedelta
from typing import Any

from pydantic import TypeAdapter

from core.keys import CALLBACK_QUERY_DATA
from core.logger import TgrouteLogger
from core.ttlcache import TTLCache
from tgroute.errors import CallbackDataStoreError

logger = TgrouteLogger.get_logger()

TOKEN_SEPARATOR = ";"
HASH_LENGTH = 16
NOP_ROUTE = "nop"

_PAYLOAD_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


def _short_sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()[:HASH_LENGTH]


def route_hash(route: str) -> str:
    """First 16 hex characters of SHA-256(*route*)."""
    return _short_sha256(route.encode("utf-8"))


def action_data_hash(data: str) -> str:
    """First 16 hex characters of SHA-256 of the serialized payload."""
    return _short_sha256(data.encode("utf-8"))


def serialize_payload(payload: Any) -> str:
    """Compact JSON for *payload*; Pydantic models and dataclasses are supported."""
    return _PAYLOAD_ADAPTER.dump_json(payload).decode("utf-8")


@dataclasses.dataclass(frozen=True, slots=True)
class CallbackToken:
    """The only datum round-tripped through the client as callback data."""

    route_hash: str
    action_data_hash: str

    def __str__(self) -> str:
        return f"{self.route_hash}{TOKEN_SEPARATOR}{self.action_data_hash}"

    @classmethod
    def parse(cls, data: str) -> CallbackToken | None:
        """Split *data*; ``None`` unless it is exactly two non-empty parts."""
        parts = data.split(TOKEN_SEPARATOR)
        if len(parts) != 2 or not parts[0] or not parts[1]:
            return None
        return cls(parts[0], parts[1])


class CallbackActions:
    """Stores and resolves callback payloads in a :class:`~core.ttlcache.TTLCache`."""

    def __init__(self, cache: TTLCache, ttl: timedelta = timedelta(hours=24)) -> None:
        self._cache = cache
        self.ttl = ttl

    async def assign(self, route: str, payload: Any) -> str:
        """Persist *payload* for *route* and return the callback token.

        Raises:
            CallbackDataStoreError: The store write failed; the exception still
                carries the token so an already-built keyboard stays valid.
        """
        data = serialize_payload(payload)
        token = CallbackToken(route_hash(route), action_data_hash(data))

        try:
            await self._cache.set(CALLBACK_QUERY_DATA.format(route, token.action_data_hash), data, self.ttl)
        except Exception as exc:
            logger.error(
                "Failed to store callback query data",
                extra={"route": route, "route_hash": token.route_hash, "action_data_hash": token.action_data_hash, "error": str(exc)},
            )
            raise CallbackDataStoreError(str(token), route) from exc

        logger.debug(
            "Assigned callback query data for route",
            extra={"route": route, "route_hash": token.route_hash, "action_data_hash": token.action_data_hash, "data": data},
        )
        return str(token)

    async def fetch(self, route: str, data_hash: str) -> str | None:
        """Return the stored JSON payload, or ``None`` if absent or expired.

        Backend failures propagate to the caller.
        """
        return await self._cache.get(CALLBACK_QUERY_DATA.format(route, data_hash))
