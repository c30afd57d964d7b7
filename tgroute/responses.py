"""Replies a handler returns for the framework to deliver.

A handler may return ``None`` (nothing to send) or a :class:`Response`; the
handler boundary in :mod:`tgroute.handler` calls :meth:`Response.send` with the
:class:`~tgroute.botapi.BotAPI` of the dispatch.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING, Optional, Protocol, runtime_checkable

from sdk.models import InlineKeyboardMarkup, Message
from tgroute.errors import PARSE_MODE_HTML

if TYPE_CHECKING:
    from tgroute.botapi import BotAPI


@runtime_checkable
class Response(Protocol):
    async def send(self, bot: "BotAPI") -> Optional[Message]: ...  # noqa: E704


@dataclasses.dataclass
class MessageResponse:
    """A new text message for *chat_id*."""

    chat_id: int
    text: str
    reply_to_message_id: Optional[int] = None
    parse_mode: Optional[str] = None
    reply_markup: Optional[InlineKeyboardMarkup] = None
    delete_later_for_user_id: int = 0
    delete_later_chat_id: int = 0

    def with_reply(self, message: Optional[Message]) -> "MessageResponse":
        if message is not None:
            self.reply_to_message_id = message.message_id
        return self

    def with_parse_mode_html(self) -> "MessageResponse":
        self.parse_mode = PARSE_MODE_HTML
        return self

    def with_reply_markup(self, reply_markup: InlineKeyboardMarkup) -> "MessageResponse":
        self.reply_markup = reply_markup
        return self

    def with_delete_later(self, user_id: int, chat_id: int = 0) -> "MessageResponse":
        """Queue the sent message for *user_id*'s next delete-later cleanup.

        *chat_id* defaults to the chat the message lands in.
        """
        self.delete_later_for_user_id = user_id
        self.delete_later_chat_id = chat_id
        return self

    async def send(self, bot: "BotAPI") -> Optional[Message]:
        message = await bot.may_send_message(
            self.chat_id,
            self.text,
            parse_mode=self.parse_mode,
            reply_to_message_id=self.reply_to_message_id,
            reply_markup=self.reply_markup,
        )
        if message is not None and self.delete_later_for_user_id:
            await bot.push_one_delete_later_message(
                self.delete_later_for_user_id,
                self.delete_later_chat_id or message.chat.id,
                message.message_id,
            )
        return message


@dataclasses.dataclass
class EditMessageResponse:
    """An edit of an existing message.

    With *text* set the message text (and optionally its markup) is replaced;
    with only *reply_markup* set just the inline keyboard is.
    """

    chat_id: int
    message_id: int
    text: Optional[str] = None
    reply_markup: Optional[InlineKeyboardMarkup] = None
    parse_mode: Optional[str] = None

    def with_parse_mode_html(self) -> "EditMessageResponse":
        self.parse_mode = PARSE_MODE_HTML
        return self

    def with_reply_markup(self, reply_markup: InlineKeyboardMarkup) -> "EditMessageResponse":
        self.reply_markup = reply_markup
        return self

    async def send(self, bot: "BotAPI") -> Optional[Message]:
        if self.text is None:
            return await bot.may_edit_message_reply_markup(self.chat_id, self.message_id, self.reply_markup)
        return await bot.may_edit_message_text(
            self.chat_id,
            self.message_id,
            self.text,
            parse_mode=self.parse_mode,
            reply_markup=self.reply_markup,
        )
