"""Tests for callback tokens, hashing and payload storage."""

import hashlib
import json
import sys
import os
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest
from fakeredis import FakeAsyncRedis, FakeServer
from pydantic import BaseModel

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.ttlcache import InMemoryTTLCache, RedisTTLCache
from tgroute.callbacks import (
    CallbackActions,
    CallbackToken,
    action_data_hash,
    route_hash,
    serialize_payload,
)
from tgroute.errors import CallbackDataStoreError


class Confirm(BaseModel):
    id: int


# ── Hashing ──────────────────────────────────────────────────────────────────


class TestHashes:
    def test_route_hash_is_sha256_prefix(self) -> None:
        expected = hashlib.sha256(b"confirm").hexdigest()[:16]
        assert route_hash("confirm") == expected
        assert len(route_hash("confirm")) == 16

    def test_action_data_hash_is_sha256_prefix(self) -> None:
        assert action_data_hash('{"id":42}') == hashlib.sha256(b'{"id":42}').hexdigest()[:16]

    def test_distinct_routes(self) -> None:
        assert route_hash("confirm") != route_hash("cancel")

    def test_distinct_payloads(self) -> None:
        assert action_data_hash(serialize_payload({"id": 1})) != action_data_hash(serialize_payload({"id": 2}))


class TestSerializePayload:
    def test_compact_json(self) -> None:
        assert serialize_payload({"id": 42}) == '{"id":42}'

    def test_model(self) -> None:
        assert serialize_payload(Confirm(id=42)) == '{"id":42}'

    def test_empty_string(self) -> None:
        assert serialize_payload("") == '""'


# ── Tokens ───────────────────────────────────────────────────────────────────


class TestCallbackToken:
    def test_str(self) -> None:
        assert str(CallbackToken("aaaa", "bbbb")) == "aaaa;bbbb"

    def test_parse(self) -> None:
        assert CallbackToken.parse("aaaa;bbbb") == CallbackToken("aaaa", "bbbb")

    @pytest.mark.parametrize("data", ["", "aaaa", "aaaa;", ";bbbb", "a;b;c", ";"])
    def test_parse_invalid(self, data: str) -> None:
        assert CallbackToken.parse(data) is None


# ── CallbackActions ──────────────────────────────────────────────────────────


class TestCallbackActions:
    """assign() then fetch() returns the same payload on both backends."""

    @pytest.fixture(params=["memory", "redis"])
    def cache(self, request):
        if request.param == "memory":
            return InMemoryTTLCache()
        return RedisTTLCache(FakeAsyncRedis(server=FakeServer(), decode_responses=True))

    @pytest.mark.asyncio
    async def test_round_trip(self, cache) -> None:
        actions = CallbackActions(cache, timedelta(hours=24))

        token = await actions.assign("confirm", {"id": 42})
        parsed = CallbackToken.parse(token)

        assert parsed is not None
        assert parsed.route_hash == route_hash("confirm")
        stored = await actions.fetch("confirm", parsed.action_data_hash)
        assert json.loads(stored) == {"id": 42}

    @pytest.mark.asyncio
    async def test_same_payload_same_token(self, cache) -> None:
        actions = CallbackActions(cache)
        assert await actions.assign("confirm", {"id": 1}) == await actions.assign("confirm", {"id": 1})

    @pytest.mark.asyncio
    async def test_storage_key_layout(self, cache) -> None:
        actions = CallbackActions(cache)
        token = await actions.assign("confirm", Confirm(id=7))
        data_hash = token.split(";")[1]

        assert await cache.get(f"callback_query/button_data/confirm/{data_hash}") == '{"id":7}'

    @pytest.mark.asyncio
    async def test_fetch_unknown_hash(self, cache) -> None:
        assert await CallbackActions(cache).fetch("confirm", "0000000000000000") is None

    @pytest.mark.asyncio
    async def test_expired_payload_is_absent(self) -> None:
        now = [0.0]
        cache = InMemoryTTLCache(clock=lambda: now[0])
        actions = CallbackActions(cache, timedelta(seconds=30))
        token = await actions.assign("confirm", {"id": 1})

        now[0] = 31.0
        assert await actions.fetch("confirm", token.split(";")[1]) is None

    @pytest.mark.asyncio
    async def test_store_failure_still_carries_token(self) -> None:
        cache = AsyncMock()
        cache.set.side_effect = ConnectionError("redis down")
        actions = CallbackActions(cache)

        with pytest.raises(CallbackDataStoreError) as exc_info:
            await actions.assign("confirm", {"id": 42})

        expected = f"{route_hash('confirm')};{action_data_hash(json.dumps({'id': 42}, separators=(',', ':')))}"
        assert exc_info.value.token == expected
        assert exc_info.value.route == "confirm"
        assert isinstance(exc_info.value.__cause__, ConnectionError)
