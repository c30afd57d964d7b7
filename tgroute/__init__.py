"""tgroute -- update dispatch, callback routing and handler helpers for Telegram bots.

Usage::

    from tgroute import Bot, Dispatcher

    dispatcher = Dispatcher()

    @dispatcher.command("ping", help=lambda ctx: "Ping the bot")
    async def ping(ctx):
        return ctx.new_message("pong")

    asyncio.run(Bot.from_config(dispatcher).run())
"""

from tgroute.bot import Bot
from tgroute.botapi import BotAPI
from tgroute.callbacks import CallbackActions, CallbackToken
from tgroute.context import Context, classify_update
from tgroute.dispatcher import Dispatcher
from tgroute.errors import (
    CallbackDataStoreError,
    CallbackPayloadError,
    CallbackPayloadMismatchError,
    CallbackPayloadMissingError,
    ExceptionError,
    MessageError,
)
from tgroute.registry import Command, CommandGroup
from tgroute.responses import EditMessageResponse, MessageResponse, Response
from tgroute.types import ChatType, MemberStatus, UpdateType

__all__ = [
    "Bot",
    "BotAPI",
    "CallbackActions",
    "CallbackToken",
    "Context",
    "classify_update",
    "Dispatcher",
    "CallbackDataStoreError",
    "CallbackPayloadError",
    "CallbackPayloadMismatchError",
    "CallbackPayloadMissingError",
    "ExceptionError",
    "MessageError",
    "Command",
    "CommandGroup",
    "EditMessageResponse",
    "MessageResponse",
    "Response",
    "ChatType",
    "MemberStatus",
    "UpdateType",
]
