"""Update dispatcher -- classify each update and run the handlers it matches.

Handlers never run on the caller's stack: every match is spawned as its own
:func:`asyncio.create_task`, wrapped in :meth:`Dispatcher._guarded` so an
exception in one handler is logged with its traceback and affects nothing
else.  Each update is handled at most once; nothing is retried.
"""

from __future__ import annotations

import asyncio
from typing import Any, Coroutine, Optional

import config
from core.i18n import FALLBACK_LOCALE, I18n
from core.logger import TgrouteLogger
from sdk.models import CallbackQuery, Update
from tgroute.botapi import BotAPI
from tgroute.callbacks import NOP_ROUTE, CallbackToken
from tgroute.commands import BuiltinCommands, basic_group_name
from tgroute.context import Context
from tgroute.handler import Handler, run_handler
from tgroute.registry import BROADCAST_TYPES, HandlerRegistry
from tgroute.types import ChatType, MemberStatus, UpdateType

logger = TgrouteLogger.get_logger()

_CALLBACK = "system.dispatch.callback_query"

_UNSUPPORTED: dict[UpdateType, str] = {
    UpdateType.EDITED_MESSAGE: "edited message",
    UpdateType.EDITED_CHANNEL_POST: "edited channel post",
    UpdateType.INLINE_QUERY: "inline query",
    UpdateType.CHOSEN_INLINE_RESULT: "chosen inline result",
    UpdateType.SHIPPING_QUERY: "shipping query",
    UpdateType.PRE_CHECKOUT_QUERY: "pre checkout query",
    UpdateType.POLL: "poll",
    UpdateType.POLL_ANSWER: "poll answer",
    UpdateType.CHAT_MEMBER: "chat member",
    UpdateType.CHAT_JOIN_REQUEST: "chat join request",
}


async def _nop(ctx: Context) -> None:
    return None


class Dispatcher(HandlerRegistry):
    """Routes updates to the handlers registered on it.

    Usage::

        dispatcher = Dispatcher()

        @dispatcher.command("ping", help=lambda ctx: "Ping the bot")
        async def ping(ctx):
            return ctx.new_message("pong")

        await dispatcher.dispatch(bot_api, update)
    """

    def __init__(self, i18n: Optional[I18n] = None) -> None:
        super().__init__()
        self.i18n = i18n or I18n(config.DEFAULT_LOCALE)
        self._tasks: set[asyncio.Task[None]] = set()

        self.builtins = BuiltinCommands(self)
        self.on_command_group(basic_group_name, self.builtins.commands())
        self.on_callback_query(NOP_ROUTE, _nop)

    # ── task boundary ────────────────────────────────────────────────────

    def spawn(self, coro: Coroutine[Any, Any, None], **extra: Any) -> asyncio.Task[None]:
        """Run *coro* on its own task; *extra* is attached to the failure log."""
        task = asyncio.create_task(self._guarded(coro, extra))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @staticmethod
    async def _guarded(coro: Coroutine[Any, Any, None], extra: dict[str, Any]) -> None:
        try:
            await coro
        except Exception:
            logger.exception("Exception recovered from dispatched task", extra=extra)

    async def join(self) -> None:
        """Wait until every spawned task, including ones spawned meanwhile, is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _run(self, ctx: Context, handler: Handler) -> asyncio.Task[None]:
        return self.spawn(
            run_handler(ctx, handler),
            update_id=ctx.update.update_id,
            update_type=ctx.update_type.value,
            handler=getattr(handler, "__qualname__", repr(handler)),
        )

    # ── entry point ──────────────────────────────────────────────────────

    async def dispatch(self, bot: BotAPI, update: Update) -> None:
        """Route one *update*.  Returns once its handlers are spawned."""
        for middleware in self.middlewares():
            try:
                await middleware(Context(bot, update, self.i18n))
            except Exception:
                logger.exception("Middleware failed", extra={"update_id": update.update_id})

        ctx = Context(bot, update, self.i18n)
        update_type = ctx.update_type

        if update_type == UpdateType.MESSAGE:
            self._dispatch_message(ctx)
        elif update_type == UpdateType.CALLBACK_QUERY:
            await self._dispatch_callback_query(ctx)
        elif update_type == UpdateType.MY_CHAT_MEMBER:
            self._log_my_chat_member(ctx)
            self._broadcast(ctx, update_type)
        elif update_type in BROADCAST_TYPES:
            self._log_broadcast(ctx, update_type)
            self._broadcast(ctx, update_type)
        elif update_type == UpdateType.CHAT_MIGRATION_TO:
            message = update.message
            if message is None:
                return
            logger.debug(
                "Group migrated to supergroup",
                extra={"update_id": update.update_id, "chat_id": message.chat.id, "migrate_to_chat_id": message.migrate_to_chat_id},
            )
        elif update_type in _UNSUPPORTED:
            logger.debug(f"{_UNSUPPORTED[update_type]} is not supported yet", extra={"update_id": update.update_id})
        else:
            logger.debug("Unable to dispatch update due to unknown update type", extra={"update_id": update.update_id})

    # ── messages ─────────────────────────────────────────────────────────

    def _dispatch_message(self, ctx: Context) -> None:
        message = ctx.update.message
        if message is None:
            return
        sender = message.from_field

        logger.debug(
            "Processing message",
            extra={
                "update_id": ctx.update.update_id,
                "chat_id": message.chat.id,
                "chat_type": message.chat.type,
                "from_id": sender.id if sender else None,
                "text": (message.text or "<empty or contains medias>")[:80],
            },
        )

        command = message.command()
        if not command:
            return
        handler = self.command_handler(command)
        if handler is None:
            logger.debug("No command matched", extra={"update_id": ctx.update.update_id, "command": command})
            return
        self._run(ctx, handler)

    # ── broadcast types ──────────────────────────────────────────────────

    def _broadcast(self, ctx: Context, update_type: UpdateType) -> None:
        for handler in self.handlers_for(update_type):
            self._run(ctx, handler)

    def _log_broadcast(self, ctx: Context, update_type: UpdateType) -> None:
        update = ctx.update
        message = update.message or update.channel_post
        extra: dict[str, Any] = {"update_id": update.update_id, "update_type": update_type.value}
        if message is not None:
            extra["chat_id"] = message.chat.id
            extra["chat_title"] = message.chat.title
            if message.new_chat_members:
                extra["member_ids"] = [u.id for u in message.new_chat_members]
            if message.left_chat_member is not None:
                extra["member_id"] = message.left_chat_member.id
            if message.migrate_from_chat_id:
                extra["migrate_from_chat_id"] = message.migrate_from_chat_id
        logger.debug("Dispatching update to registered handlers", extra=extra)

    def _log_my_chat_member(self, ctx: Context) -> None:
        change = ctx.update.my_chat_member
        if change is None:
            return
        old_status, new_status = change.old_chat_member.status, change.new_chat_member.status
        extra = {
            "update_id": ctx.update.update_id,
            "chat_id": change.chat.id,
            "chat_type": change.chat.type,
            "from_id": change.from_field.id,
            "old_status": old_status,
            "new_status": new_status,
        }
        logger.debug("Bot membership changed", extra=extra)

        if change.chat.type == ChatType.CHANNEL.value:
            if new_status == MemberStatus.ADMINISTRATOR.value:
                logger.info("Joined channel", extra=extra)
            else:
                logger.info("Left channel", extra=extra)

    # ── callback queries ─────────────────────────────────────────────────

    async def _dispatch_callback_query(self, ctx: Context) -> None:
        query = ctx.update.callback_query
        if query is None:
            return

        data = query.data or ""
        route, route_hash, action_data_hash, action_data = "", "", "", ""
        try:
            token = CallbackToken.parse(data)
            if token is None:
                await self._notify_invalid_callback(ctx.bot, query)
                return
            route_hash, action_data_hash = token.route_hash, token.action_data_hash

            route = self.callback_route(route_hash) or ""
            if not route:
                return

            handler = self.callback_handler(route_hash)
            if handler is None:
                await self._notify_invalid_callback(ctx.bot, query)
                return

            try:
                action_data = await ctx.bot.callbacks.fetch(route, action_data_hash) or ""
            except Exception as exc:
                logger.error(
                    "Failed to fetch the callback query action data for handler",
                    exc_info=exc,
                    extra={"route": route, "route_hash": route_hash, "action_data_hash": action_data_hash},
                )
                return
            if not action_data:
                await self._notify_invalid_callback(ctx.bot, query)
                return

            ctx._bind_callback_data(action_data)
            self._run(ctx, handler)
        finally:
            self._trace_callback_query(query, route, route_hash, action_data_hash, action_data)

    async def _notify_invalid_callback(self, bot: BotAPI, query: CallbackQuery) -> None:
        # Default locale, not the sender's.
        text = self.i18n.translate(f"{_CALLBACK}.invalid_action_data.try_again", self.i18n.default_locale)
        if query.message is not None:
            await bot.may_edit_message_text(query.message.chat.id, query.message.message_id, text)
        else:
            await bot.may_answer_callback_query(query.id, text=text, show_alert=True)

    def _trace_callback_query(self, query: CallbackQuery, route: str, route_hash: str, action_data_hash: str, action_data: str) -> None:
        extra: dict[str, Any] = {
            "route": route,
            "route_hash": route_hash,
            "action_data_hash": action_data_hash,
            "callback_data": query.data,
            "from_id": query.from_field.id,
        }
        if query.message is not None:
            extra["chat_id"] = query.message.chat.id
            extra["chat_type"] = query.message.chat.type

        if not route:
            logger.error(self._diagnostic("error_missing_route"), extra=extra)
        elif not action_data:
            logger.error(self._diagnostic("error_missing_action_data"), extra=extra)
        else:
            logger.debug("Callback query dispatched", extra={**extra, "action_data": action_data})

    def _diagnostic(self, name: str) -> str:
        error = self.i18n.translate(f"{_CALLBACK}.{name}.error", FALLBACK_LOCALE)
        solution = self.i18n.translate(f"{_CALLBACK}.{name}.solution", FALLBACK_LOCALE)
        return f"{error}\n\n{solution}"
