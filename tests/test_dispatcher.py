"""Tests for update routing, the callback query protocol and fault isolation."""

import logging
import sys
import os
from unittest.mock import AsyncMock

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.i18n import I18n
from core.queue import InMemoryQueue
from core.ttlcache import InMemoryTTLCache
from sdk.client import TelegramClient
from sdk.models import Message, Update
from tgroute.botapi import BotAPI
from tgroute.callbacks import route_hash
from tgroute.context import Context
from tgroute.dispatcher import Dispatcher
from tgroute.errors import ExceptionError, MessageError
from tgroute.responses import EditMessageResponse

USER = {"id": 42, "is_bot": False, "first_name": "Alice", "language_code": "en"}
CHAT = {"id": 1000, "type": "group", "title": "Test"}
INVALID_TEXT = (
    "Sorry, this operation cannot be performed as it is invalid. "
    "Please initiate another session of operation and try again."
)


# ── Fixtures ─────────────────────────────────────────────────────────────────


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture()
def client() -> AsyncMock:
    client = AsyncMock(spec=TelegramClient)
    client.send_message.return_value = Message.model_validate({"message_id": 77, "date": 0, "chat": CHAT, "text": "ok"})
    client.edit_message_text.return_value = None
    return client


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def bot(client, clock) -> BotAPI:
    return BotAPI(client, InMemoryTTLCache(clock), InMemoryQueue())


@pytest.fixture()
def dispatcher() -> Dispatcher:
    return Dispatcher(I18n())


def _message(**fields) -> dict:
    return {"message_id": 1, "date": 0, "chat": CHAT, "from": USER, **fields}


def _text_update(text: str, update_id: int = 1) -> Update:
    return Update.model_validate({"update_id": update_id, "message": _message(text=text)})


def _callback_update(data: str, with_message: bool = True) -> Update:
    query = {"id": "cb1", "from": USER, "chat_instance": "x", "data": data}
    if with_message:
        query["message"] = _message(message_id=10)
    return Update.model_validate({"update_id": 2, "callback_query": query})


def _errors(caplog) -> list[logging.LogRecord]:
    return [r for r in caplog.records if r.levelno >= logging.ERROR]


# ── Commands ─────────────────────────────────────────────────────────────────


class TestCommandDispatch:
    """``/name`` messages reach exactly the handler registered for ``name``."""

    @pytest.mark.asyncio
    async def test_ping_pong(self, dispatcher, bot, client) -> None:
        calls = []

        @dispatcher.command("ping")
        async def ping(ctx):
            calls.append(ctx)
            return ctx.new_message("pong")

        await dispatcher.dispatch(bot, _text_update("/ping"))
        await dispatcher.join()

        assert len(calls) == 1
        client.send_message.assert_awaited_once_with(1000, "pong", parse_mode=None, reply_to_message_id=None, reply_markup=None)

    @pytest.mark.asyncio
    async def test_command_addressed_to_bot(self, dispatcher, bot) -> None:
        calls = []

        async def ping(ctx):
            calls.append(ctx.update.update_id)

        dispatcher.on_command("ping", None, ping)
        await dispatcher.dispatch(bot, _text_update("/ping@my_bot now"))
        await dispatcher.join()

        assert calls == [1]

    @pytest.mark.asyncio
    async def test_unknown_command_ignored(self, dispatcher, bot, client, caplog) -> None:
        await dispatcher.dispatch(bot, _text_update("/nope"))
        await dispatcher.join()

        client.send_message.assert_not_awaited()
        assert _errors(caplog) == []

    @pytest.mark.asyncio
    async def test_plain_text_ignored(self, dispatcher, bot, client) -> None:
        called = AsyncMock(return_value=None)
        dispatcher.on_command("ping", None, called)

        await dispatcher.dispatch(bot, _text_update("ping"))
        await dispatcher.join()

        called.assert_not_awaited()
        client.send_message.assert_not_awaited()


# ── Handler results ──────────────────────────────────────────────────────────


class TestHandlerResults:
    """Responses and handler errors are turned into Bot API calls."""

    @pytest.mark.asyncio
    async def test_message_error_replies(self, dispatcher, bot, client) -> None:
        @dispatcher.command("strict")
        async def strict(ctx):
            raise MessageError("Reply to a message first").with_reply(ctx.update.message).with_parse_mode_html()

        await dispatcher.dispatch(bot, _text_update("/strict"))
        await dispatcher.join()

        client.send_message.assert_awaited_once_with(
            1000, "Reply to a message first", parse_mode="HTML", reply_to_message_id=1, reply_markup=None
        )

    @pytest.mark.asyncio
    async def test_message_error_edit(self, dispatcher, bot, client) -> None:
        @dispatcher.command("strict")
        async def strict(ctx):
            raise MessageError("Edited").with_edit(ctx.update.message)

        await dispatcher.dispatch(bot, _text_update("/strict"))
        await dispatcher.join()

        client.edit_message_text.assert_awaited_once_with(1000, 1, "Edited", parse_mode=None, reply_markup=None)
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exception_error_logged_and_replied(self, dispatcher, bot, client, caplog) -> None:
        @dispatcher.command("fetch")
        async def fetch(ctx):
            raise ExceptionError(RuntimeError("upstream down")).with_message("Try later")

        await dispatcher.dispatch(bot, _text_update("/fetch"))
        await dispatcher.join()

        client.send_message.assert_awaited_once()
        assert client.send_message.await_args.args[1] == "Try later"
        record = next(r for r in _errors(caplog) if r.getMessage() == "Handler failed with an exception")
        assert record.exc_info is not None

    @pytest.mark.asyncio
    async def test_exception_error_without_message_is_silent(self, dispatcher, bot, client) -> None:
        @dispatcher.command("fetch")
        async def fetch(ctx):
            raise ExceptionError(RuntimeError("upstream down"))

        await dispatcher.dispatch(bot, _text_update("/fetch"))
        await dispatcher.join()

        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_edit_response(self, dispatcher, bot, client) -> None:
        @dispatcher.command("edit")
        async def edit(ctx):
            return EditMessageResponse(1000, 5, text="changed")

        await dispatcher.dispatch(bot, _text_update("/edit"))
        await dispatcher.join()

        client.edit_message_text.assert_awaited_once_with(1000, 5, "changed", parse_mode=None, reply_markup=None)

    @pytest.mark.asyncio
    async def test_delete_later_response(self, dispatcher, bot) -> None:
        @dispatcher.command("temp")
        async def temp(ctx):
            return ctx.new_message("temporary").with_delete_later(ctx.update.sent_from().id)

        await dispatcher.dispatch(bot, _text_update("/temp"))
        await dispatcher.join()

        assert await bot.queue.pop_all("session/delete_later_messages_for_actor/42") == ["1000;77"]


# ── Fault isolation ──────────────────────────────────────────────────────────


class TestFaultIsolation:
    """A crashing handler is logged and never affects other updates."""

    @pytest.mark.asyncio
    async def test_crash_does_not_block_next_update(self, dispatcher, bot, client, caplog) -> None:
        @dispatcher.command("boom")
        async def boom(ctx):
            raise RuntimeError("kaboom")

        @dispatcher.command("ping")
        async def ping(ctx):
            return ctx.new_message("pong")

        await dispatcher.dispatch(bot, _text_update("/boom", update_id=1))
        await dispatcher.dispatch(bot, _text_update("/ping", update_id=2))
        await dispatcher.join()

        client.send_message.assert_awaited_once()
        assert client.send_message.await_args.args[1] == "pong"
        crash = next(r for r in _errors(caplog) if r.getMessage() == "Exception recovered from dispatched task")
        assert crash.exc_info is not None
        assert crash.update_id == 1

    @pytest.mark.asyncio
    async def test_failing_middleware_does_not_stop_dispatch(self, dispatcher, bot, client, caplog) -> None:
        async def broken(ctx):
            raise ValueError("bad middleware")

        dispatcher.use(broken)

        @dispatcher.command("ping")
        async def ping(ctx):
            return ctx.new_message("pong")

        await dispatcher.dispatch(bot, _text_update("/ping"))
        await dispatcher.join()

        client.send_message.assert_awaited_once()
        assert any(r.getMessage() == "Middleware failed" for r in _errors(caplog))


# ── Middleware ───────────────────────────────────────────────────────────────


class TestMiddleware:
    @pytest.mark.asyncio
    async def test_runs_in_order_with_fresh_contexts(self, dispatcher, bot) -> None:
        seen = []

        async def first(ctx):
            seen.append(("first", ctx))
            ctx.abort()

        async def second(ctx):
            seen.append(("second", ctx))

        dispatcher.use(first)
        dispatcher.use(second)

        @dispatcher.command("ping")
        async def ping(ctx):
            seen.append(("handler", ctx))

        await dispatcher.dispatch(bot, _text_update("/ping"))
        await dispatcher.join()

        assert [name for name, _ in seen] == ["first", "second", "handler"]
        contexts = [ctx for _, ctx in seen]
        assert len({id(c) for c in contexts}) == 3
        # abort is advisory: the handler still ran, with its own context.
        assert not contexts[2].is_aborted()


# ── Broadcast update types ───────────────────────────────────────────────────


class TestBroadcast:
    """Every handler registered for the type runs, even if one fails."""

    @pytest.mark.asyncio
    async def test_channel_post_all_handlers(self, dispatcher, bot) -> None:
        calls = []

        async def first(ctx):
            calls.append("first")
            ctx.abort()
            raise RuntimeError("first failed")

        async def second(ctx):
            calls.append("second")

        dispatcher.on_channel_post(first)
        dispatcher.on_channel_post(second)

        update = Update.model_validate({"update_id": 3, "channel_post": {"message_id": 1, "date": 0, "chat": {"id": -5, "type": "channel"}}})
        await dispatcher.dispatch(bot, update)
        await dispatcher.join()

        assert sorted(calls) == ["first", "second"]

    @pytest.mark.asyncio
    async def test_handlers_share_one_context(self, dispatcher, bot) -> None:
        seen = []

        async def first(ctx):
            seen.append(ctx)
            ctx.abort()

        async def second(ctx):
            seen.append(ctx)

        dispatcher.on_channel_post(first)
        dispatcher.on_channel_post(second)

        update = Update.model_validate({"update_id": 9, "channel_post": {"message_id": 1, "date": 0, "chat": {"id": -5, "type": "channel"}}})
        await dispatcher.dispatch(bot, update)
        await dispatcher.join()

        assert len(seen) == 2
        assert seen[0] is seen[1]
        assert seen[1].is_aborted()

    @pytest.mark.asyncio
    async def test_new_chat_member_handlers(self, dispatcher, bot) -> None:
        joined, left = [], []

        async def on_join(ctx):
            joined.append([u.id for u in ctx.update.message.new_chat_members])

        async def on_leave(ctx):
            left.append(ctx.update.message.left_chat_member.id)

        dispatcher.on_new_chat_member(on_join)
        dispatcher.on_left_chat_member(on_leave)

        await dispatcher.dispatch(bot, Update.model_validate({"update_id": 4, "message": _message(new_chat_members=[USER])}))
        await dispatcher.join()

        assert joined == [[42]]
        assert left == []

        await dispatcher.dispatch(bot, Update.model_validate({"update_id": 5, "message": _message(left_chat_member=USER)}))
        await dispatcher.join()

        assert joined == [[42]]
        assert left == [42]

    @pytest.mark.asyncio
    async def test_my_chat_member_runs_handlers_for_channel_leave(self, dispatcher, bot, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")
        calls = []

        async def on_member(ctx):
            calls.append(ctx.update.my_chat_member.new_chat_member.status)

        dispatcher.on_my_chat_member(on_member)
        update = Update.model_validate({
            "update_id": 6,
            "my_chat_member": {
                "chat": {"id": -9, "type": "channel", "title": "News"},
                "from": USER,
                "date": 0,
                "old_chat_member": {"user": USER, "status": "administrator"},
                "new_chat_member": {"user": USER, "status": "left"},
            },
        })
        await dispatcher.dispatch(bot, update)
        await dispatcher.join()

        assert calls == ["left"]
        assert any(r.getMessage() == "Left channel" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_migration_from_runs_and_migration_to_only_logs(self, dispatcher, bot, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")
        calls = []

        async def on_migrate(ctx):
            calls.append(ctx.update.message.migrate_from_chat_id)

        dispatcher.on_chat_migration_from(on_migrate)

        await dispatcher.dispatch(bot, Update.model_validate({"update_id": 7, "message": _message(migrate_to_chat_id=-100)}))
        await dispatcher.join()
        assert calls == []
        assert any(r.getMessage() == "Group migrated to supergroup" for r in caplog.records)

        await dispatcher.dispatch(bot, Update.model_validate({"update_id": 8, "message": _message(migrate_from_chat_id=-5)}))
        await dispatcher.join()
        assert calls == [-5]


# ── Unsupported / unknown ────────────────────────────────────────────────────


class TestUnsupported:
    @pytest.mark.asyncio
    async def test_edited_message_logged_at_debug(self, dispatcher, bot, client, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")

        await dispatcher.dispatch(bot, Update.model_validate({"update_id": 9, "edited_message": _message(text="/ping")}))
        await dispatcher.join()

        record = next(r for r in caplog.records if r.getMessage() == "edited message is not supported yet")
        assert record.levelno == logging.DEBUG
        client.send_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_update(self, dispatcher, bot, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")

        await dispatcher.dispatch(bot, Update(update_id=10))

        assert any("unknown update type" in r.getMessage() for r in caplog.records)
        assert _errors(caplog) == []


# ── Callback query protocol ──────────────────────────────────────────────────


class TestCallbackQuery:
    """Token → route → stored payload → handler."""

    @pytest.mark.asyncio
    async def test_confirm_round_trip(self, dispatcher, bot, client) -> None:
        received = []

        @dispatcher.callback_query("confirm")
        async def confirm(ctx):
            received.append(ctx.bind_callback_payload(dict))

        token = await bot.assign_one_callback_query_data("confirm", {"id": 42})
        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        assert received == [{"id": 42}]
        client.edit_message_text.assert_not_awaited()
        client.answer_callback_query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_retriggered_button_resolves_again(self, dispatcher, bot) -> None:
        received = []

        @dispatcher.callback_query("confirm")
        async def confirm(ctx):
            received.append(ctx.bind_callback_payload(dict)["id"])

        token = await bot.assign_one_callback_query_data("confirm", {"id": 1})
        for _ in range(2):
            await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        assert received == [1, 1]

    @pytest.mark.asyncio
    async def test_unknown_route_is_silent(self, dispatcher, bot, client, caplog) -> None:
        await dispatcher.dispatch(bot, _callback_update("00000000;00000000"))
        await dispatcher.join()

        assert client.mock_calls == []
        missing = [r for r in _errors(caplog) if "missing route" in r.getMessage()]
        assert len(missing) == 1
        assert missing[0].route_hash == "00000000"

    @pytest.mark.asyncio
    async def test_expired_payload_notifies_once(self, dispatcher, bot, client, clock, caplog) -> None:
        handler = AsyncMock(return_value=None)
        dispatcher.on_callback_query("confirm", handler)

        token = await bot.assign_one_callback_query_data("confirm", {"id": 42})
        clock.now += 24 * 60 * 60 + 1

        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        handler.assert_not_awaited()
        client.edit_message_text.assert_awaited_once_with(1000, 10, INVALID_TEXT, parse_mode=None, reply_markup=None)
        assert any("missing action data" in r.getMessage() for r in _errors(caplog))

    @pytest.mark.asyncio
    async def test_malformed_token_notifies(self, dispatcher, bot, client) -> None:
        await dispatcher.dispatch(bot, _callback_update("not-a-token"))
        await dispatcher.join()

        client.edit_message_text.assert_awaited_once_with(1000, 10, INVALID_TEXT, parse_mode=None, reply_markup=None)

    @pytest.mark.asyncio
    async def test_invalid_inline_callback_answers_query(self, dispatcher, bot, client) -> None:
        dispatcher.on_callback_query("confirm", AsyncMock(return_value=None))

        await dispatcher.dispatch(bot, _callback_update(f"{route_hash('confirm')};ffffffffffffffff", with_message=False))
        await dispatcher.join()

        client.answer_callback_query.assert_awaited_once_with("cb1", text=INVALID_TEXT, show_alert=True)
        client.edit_message_text.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notice_ignores_sender_locale(self, dispatcher, bot, client) -> None:
        update = _callback_update("bad")
        update.callback_query.from_field.language_code = "zh-hans"

        await dispatcher.dispatch(bot, update)
        await dispatcher.join()

        assert client.edit_message_text.await_args.args[2] == INVALID_TEXT

    @pytest.mark.asyncio
    async def test_missing_handler_notifies(self, dispatcher, bot, client) -> None:
        dispatcher.on_callback_query("confirm", AsyncMock(return_value=None))
        del dispatcher._callback_handlers[route_hash("confirm")]
        token = await bot.assign_one_callback_query_data("confirm", {"id": 1})

        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        client.edit_message_text.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_store_failure_stops_without_reply(self, dispatcher, client, caplog) -> None:
        cache = AsyncMock()
        cache.get.side_effect = ConnectionError("redis down")
        bot = BotAPI(client, cache, InMemoryQueue())
        handler = AsyncMock(return_value=None)
        dispatcher.on_callback_query("confirm", handler)

        await dispatcher.dispatch(bot, _callback_update(f"{route_hash('confirm')};abcdabcdabcdabcd"))
        await dispatcher.join()

        handler.assert_not_awaited()
        assert client.mock_calls == []
        assert any(r.getMessage() == "Failed to fetch the callback query action data for handler" for r in _errors(caplog))

    @pytest.mark.asyncio
    async def test_handler_response_is_sent(self, dispatcher, bot, client) -> None:
        @dispatcher.callback_query("confirm")
        async def confirm(ctx):
            payload = ctx.bind_callback_payload(dict)
            return ctx.new_edit_message_text(ctx.update.callback_query.message.message_id, f"Deleted {payload['id']}")

        token = await bot.assign_one_callback_query_data("confirm", {"id": 42})
        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        client.edit_message_text.assert_awaited_once_with(1000, 10, "Deleted 42", parse_mode=None, reply_markup=None)

    @pytest.mark.asyncio
    async def test_nop_button(self, dispatcher, bot, client, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")
        token = await bot.assign_one_nop_callback_query_data()

        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        assert client.mock_calls == []
        assert _errors(caplog) == []
        assert any(r.getMessage() == "Callback query dispatched" for r in caplog.records)

    @pytest.mark.asyncio
    async def test_exactly_one_trace_line(self, dispatcher, bot, caplog) -> None:
        caplog.set_level(logging.DEBUG, logger="tgroute")
        dispatcher.on_callback_query("confirm", AsyncMock(return_value=None))
        token = await bot.assign_one_callback_query_data("confirm", {"id": 3})
        caplog.clear()

        await dispatcher.dispatch(bot, _callback_update(token))
        await dispatcher.join()

        traces = [r for r in caplog.records if getattr(r, "route_hash", None) == route_hash("confirm")]
        assert len(traces) == 1
        assert traces[0].route == "confirm"


class TestMissingPayloadGuards:
    """Routing helpers return quietly when the expected sub-payload is absent."""

    @pytest.mark.asyncio
    async def test_helpers_tolerate_empty_update(self, dispatcher, bot, client) -> None:
        ctx = Context(bot, Update(update_id=11), dispatcher.i18n)

        dispatcher._dispatch_message(ctx)
        dispatcher._log_my_chat_member(ctx)
        await dispatcher._dispatch_callback_query(ctx)
        await dispatcher.join()

        assert client.mock_calls == []


class TestRegistration:
    def test_route_collision_rejected(self, dispatcher) -> None:
        dispatcher.on_callback_query("confirm", AsyncMock())
        dispatcher._callback_routes[route_hash("other")] = "something-else"
        with pytest.raises(ValueError):
            dispatcher.on_callback_query("other", AsyncMock())

    def test_reregistering_same_route_replaces_handler(self, dispatcher) -> None:
        first, second = AsyncMock(), AsyncMock()
        dispatcher.on_callback_query("confirm", first)
        dispatcher.on_callback_query("confirm", second)
        assert dispatcher.callback_handler(route_hash("confirm")) is second

    def test_builtins_registered(self, dispatcher) -> None:
        for name in ("help", "cancel", "start"):
            assert dispatcher.command_handler(name) is not None
        assert dispatcher.callback_route(route_hash("nop")) == "nop"
