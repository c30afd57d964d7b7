"""Example bot: ``/ping`` answers ``pong``; ``/delete`` asks for confirmation.

Run with ``BOT_TOKEN`` set (``.env`` is read too)::

    python main.py
"""

import asyncio

from pydantic import BaseModel

from core.logger import TgrouteLogger
from sdk.models import InlineKeyboardButton, InlineKeyboardMarkup
from tgroute import Bot, Context, Dispatcher, MessageError

logger = TgrouteLogger.get_logger()

dispatcher = Dispatcher()


class ConfirmDelete(BaseModel):
    id: int


@dispatcher.command("ping", help=lambda ctx: "Ping the bot")
async def handle_ping(ctx: Context):
    return ctx.new_message("pong")


@dispatcher.command("delete", help=lambda ctx: "Delete the message you reply to")
async def handle_delete(ctx: Context):
    message = ctx.update.message
    if message is None or message.reply_to_message is None:
        raise MessageError("Reply to the message you want to delete.").with_reply(message)

    confirm = await ctx.bot.assign_one_callback_query_data("confirm", ConfirmDelete(id=message.reply_to_message.message_id))
    cancel = await ctx.bot.assign_one_nop_callback_query_data()
    markup = InlineKeyboardMarkup(inline_keyboard=[[
        InlineKeyboardButton(text="Delete", callback_data=confirm),
        InlineKeyboardButton(text="Keep", callback_data=cancel),
    ]])
    return ctx.new_message("Delete that message?").with_reply(message).with_reply_markup(markup)


@dispatcher.callback_query("confirm")
async def handle_confirm(ctx: Context):
    payload = ctx.bind_callback_payload(ConfirmDelete)
    query = ctx.update.callback_query
    await ctx.bot.may_request("deleteMessage", {"chat_id": ctx.chat_id, "message_id": payload.id})
    logger.info("Deleted message on request", extra={"chat_id": ctx.chat_id, "message_id": payload.id})
    if query is not None and query.message is not None:
        return ctx.new_edit_message_text(query.message.message_id, "Deleted.")
    return None


async def main() -> None:
    bot = Bot.from_config(dispatcher)
    try:
        await bot.run()
    finally:
        TgrouteLogger().cleanup()


if __name__ == "__main__":
    asyncio.run(main())
