"""The handler boundary: run one handler and deliver what it produced.

A handler is ``async def handler(ctx) -> Response | None``.  Besides
returning a :class:`~tgroute.responses.Response` it may raise:

- :class:`~tgroute.errors.MessageError`: its text is sent to the user;
- :class:`~tgroute.errors.ExceptionError`: the wrapped error is logged with
  its traceback and the optional message is sent to the user.

Anything else escapes :func:`run_handler` and is caught by the dispatcher's
task boundary.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional, Union

from core.logger import TgrouteLogger
from tgroute.context import Context
from tgroute.errors import ExceptionError, MessageError
from tgroute.responses import Response

logger = TgrouteLogger.get_logger()

Handler = Callable[[Context], Awaitable[Optional[Response]]]


async def run_handler(ctx: Context, handler: Handler) -> None:
    """Await *handler* for *ctx* and send its response or error reply."""
    try:
        response = await handler(ctx)
    except MessageError as exc:
        await _reply_with_error(ctx, exc, exc.message)
        return
    except ExceptionError as exc:
        logger.error(
            "Handler failed with an exception",
            exc_info=exc.err,
            extra={"update_id": ctx.update.update_id, "handler": _name(handler), "error": str(exc.err)},
        )
        if exc.message:
            await _reply_with_error(ctx, exc, exc.message)
        return

    if response is not None:
        await response.send(ctx.bot)


async def _reply_with_error(ctx: Context, exc: Union[MessageError, ExceptionError], text: str) -> None:
    if exc.edit_message is not None:
        await ctx.bot.may_edit_message_text(
            exc.edit_message.chat.id,
            exc.edit_message.message_id,
            text,
            parse_mode=exc.parse_mode,
            reply_markup=exc.reply_markup,
        )
        return

    chat = ctx.update.from_chat()
    if chat is None:
        logger.warning("Cannot reply to an update without a chat", extra={"update_id": ctx.update.update_id, "text": text})
        return

    message = await ctx.bot.may_send_message(
        chat.id,
        text,
        parse_mode=exc.parse_mode,
        reply_to_message_id=exc.reply_to_message_id,
        reply_markup=exc.reply_markup,
    )
    if message is not None and exc.delete_later_for_user_id:
        await ctx.bot.push_one_delete_later_message(
            exc.delete_later_for_user_id,
            exc.delete_later_chat_id or message.chat.id,
            message.message_id,
        )


def _name(handler: Handler) -> str:
    return getattr(handler, "__qualname__", repr(handler))
