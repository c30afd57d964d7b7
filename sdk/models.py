"""Pydantic data models for the subset of the Telegram Bot API the dispatcher reads.

Every class corresponds to a Bot API object.  Fields the framework never
inspects are left out; unknown keys in incoming JSON are ignored, so newer
API payloads still validate.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class ResponseParameters(BaseModel):
    """Contains information about why a request was unsuccessful."""

    migrate_to_chat_id: Optional[int] = None
    retry_after: Optional[int] = None

    model_config = {"populate_by_name": True}


class User(BaseModel):
    """This object represents a Telegram user or bot."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None

    model_config = {"populate_by_name": True}


class Chat(BaseModel):
    """This object represents a chat."""

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class MessageEntity(BaseModel):
    """This object represents one special entity in a text message. For example, hashtags, usernames, URLs, etc."""

    type: str
    offset: int
    length: int
    url: Optional[str] = None
    user: Optional["User"] = None
    language: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardButton(BaseModel):
    """This object represents one button of an inline keyboard. You **must** use exactly one of the optional fields."""

    text: str
    url: Optional[str] = None
    callback_data: Optional[str] = None
    switch_inline_query: Optional[str] = None
    switch_inline_query_current_chat: Optional[str] = None
    pay: Optional[bool] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardMarkup(BaseModel):
    """This object represents an inline keyboard that appears right next to the message it belongs to."""

    inline_keyboard: List[List["InlineKeyboardButton"]] = Field(default_factory=list)

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """This object represents a message."""

    message_id: int
    date: int
    chat: "Chat"
    from_field: Optional["User"] = Field(None, alias="from")
    sender_chat: Optional["Chat"] = None
    reply_to_message: Optional["Message"] = None
    edit_date: Optional[int] = None
    text: Optional[str] = None
    entities: Optional[List["MessageEntity"]] = None
    caption: Optional[str] = None
    new_chat_members: Optional[List["User"]] = None
    left_chat_member: Optional["User"] = None
    new_chat_title: Optional[str] = None
    group_chat_created: Optional[bool] = None
    supergroup_chat_created: Optional[bool] = None
    channel_chat_created: Optional[bool] = None
    migrate_to_chat_id: Optional[int] = None
    migrate_from_chat_id: Optional[int] = None
    reply_markup: Optional["InlineKeyboardMarkup"] = None

    model_config = {"populate_by_name": True}

    def is_command(self) -> bool:
        """True when the text starts with a ``/command`` token."""
        if self.entities:
            first = self.entities[0]
            if first.type == "bot_command" and first.offset == 0:
                return True
        return bool(self.text) and self.text.startswith("/") and len(self.text) > 1

    def command_with_at(self) -> str:
        """The leading command without the slash, keeping any ``@botname``."""
        if not self.is_command() or self.text is None:
            return ""
        if self.entities and self.entities[0].type == "bot_command":
            token = self.text[1:self.entities[0].length]
        else:
            token = self.text.split(maxsplit=1)[0][1:]
        return token

    def command(self) -> str:
        """The leading command without the slash or ``@botname`` (``""`` if none)."""
        return self.command_with_at().split("@", 1)[0]

    def command_arguments(self) -> str:
        """Everything after the leading command token, stripped."""
        if not self.is_command() or self.text is None:
            return ""
        parts = self.text.split(maxsplit=1)
        return parts[1].strip() if len(parts) > 1 else ""


class CallbackQuery(BaseModel):
    """This object represents an incoming callback query from a callback button in an inline keyboard."""

    id: str
    from_field: "User" = Field(..., alias="from")
    chat_instance: str
    message: Optional["Message"] = None
    inline_message_id: Optional[str] = None
    data: Optional[str] = None
    game_short_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineQuery(BaseModel):
    """This object represents an incoming inline query."""

    id: str
    from_field: "User" = Field(..., alias="from")
    query: str
    offset: str
    chat_type: Optional[str] = None

    model_config = {"populate_by_name": True}


class ChosenInlineResult(BaseModel):
    """Represents a result of an inline query that was chosen by the user and sent to their chat partner."""

    result_id: str
    from_field: "User" = Field(..., alias="from")
    query: str
    inline_message_id: Optional[str] = None

    model_config = {"populate_by_name": True}


class ShippingQuery(BaseModel):
    """This object contains information about an incoming shipping query."""

    id: str
    from_field: "User" = Field(..., alias="from")
    invoice_payload: str

    model_config = {"populate_by_name": True}


class PreCheckoutQuery(BaseModel):
    """This object contains information about an incoming pre-checkout query."""

    id: str
    from_field: "User" = Field(..., alias="from")
    currency: str
    total_amount: int
    invoice_payload: str

    model_config = {"populate_by_name": True}


class PollOption(BaseModel):
    """This object contains information about one answer option in a poll."""

    text: str
    voter_count: int

    model_config = {"populate_by_name": True}


class Poll(BaseModel):
    """This object contains information about a poll."""

    id: str
    question: str
    options: List["PollOption"]
    total_voter_count: int
    is_closed: bool
    is_anonymous: bool
    type: str
    allows_multiple_answers: bool

    model_config = {"populate_by_name": True}


class PollAnswer(BaseModel):
    """This object represents an answer of a user in a non-anonymous poll."""

    poll_id: str
    user: Optional["User"] = None
    option_ids: List[int]

    model_config = {"populate_by_name": True}


class ChatMember(BaseModel):
    """This object contains information about one member of a chat."""

    user: "User"
    status: str
    custom_title: Optional[str] = None
    is_anonymous: Optional[bool] = None
    until_date: Optional[int] = None

    model_config = {"populate_by_name": True}


class ChatMemberUpdated(BaseModel):
    """This object represents changes in the status of a chat member."""

    chat: "Chat"
    from_field: "User" = Field(..., alias="from")
    date: int
    old_chat_member: "ChatMember"
    new_chat_member: "ChatMember"

    model_config = {"populate_by_name": True}


class ChatJoinRequest(BaseModel):
    """Represents a join request sent to a chat."""

    chat: "Chat"
    from_field: "User" = Field(..., alias="from")
    user_chat_id: Optional[int] = None
    date: int
    bio: Optional[str] = None

    model_config = {"populate_by_name": True}


class WebhookInfo(BaseModel):
    """Contains information about the current status of a webhook."""

    url: str
    has_custom_certificate: bool
    pending_update_count: int
    ip_address: Optional[str] = None
    last_error_date: Optional[int] = None
    last_error_message: Optional[str] = None
    max_connections: Optional[int] = None
    allowed_updates: Optional[List[str]] = None

    model_config = {"populate_by_name": True}

    def is_set(self) -> bool:
        return bool(self.url)


class Update(BaseModel):
    """This object represents an incoming update. At most **one** of the optional parameters can be present in any given update."""

    update_id: int
    message: Optional["Message"] = None
    edited_message: Optional["Message"] = None
    channel_post: Optional["Message"] = None
    edited_channel_post: Optional["Message"] = None
    inline_query: Optional["InlineQuery"] = None
    chosen_inline_result: Optional["ChosenInlineResult"] = None
    callback_query: Optional["CallbackQuery"] = None
    shipping_query: Optional["ShippingQuery"] = None
    pre_checkout_query: Optional["PreCheckoutQuery"] = None
    poll: Optional["Poll"] = None
    poll_answer: Optional["PollAnswer"] = None
    my_chat_member: Optional["ChatMemberUpdated"] = None
    chat_member: Optional["ChatMemberUpdated"] = None
    chat_join_request: Optional["ChatJoinRequest"] = None

    model_config = {"populate_by_name": True}

    def sent_from(self) -> Optional["User"]:
        """The user that caused this update, if the payload carries one."""
        if self.message is not None:
            return self.message.from_field
        if self.edited_message is not None:
            return self.edited_message.from_field
        for payload in (
            self.callback_query,
            self.inline_query,
            self.chosen_inline_result,
            self.shipping_query,
            self.pre_checkout_query,
            self.my_chat_member,
            self.chat_member,
            self.chat_join_request,
        ):
            if payload is not None:
                return payload.from_field
        if self.poll_answer is not None:
            return self.poll_answer.user
        return None

    def from_chat(self) -> Optional["Chat"]:
        """The chat this update happened in, if any."""
        for message in (self.message, self.edited_message, self.channel_post, self.edited_channel_post):
            if message is not None:
                return message.chat
        if self.callback_query is not None and self.callback_query.message is not None:
            return self.callback_query.message.chat
        for payload in (self.my_chat_member, self.chat_member, self.chat_join_request):
            if payload is not None:
                return payload.chat
        return None

    def callback_data(self) -> str:
        """Raw ``callback_query.data`` (``""`` for other updates)."""
        if self.callback_query is None:
            return ""
        return self.callback_query.data or ""
