"""Enumerations shared across the dispatch layer."""

from enum import Enum


class UpdateType(str, Enum):
    """Classification of an inbound update; see :func:`tgroute.context.classify_update`."""

    UNKNOWN = "unknown"
    MESSAGE = "message"
    EDITED_MESSAGE = "edited_message"
    CHANNEL_POST = "channel_post"
    EDITED_CHANNEL_POST = "edited_channel_post"
    INLINE_QUERY = "inline_query"
    CHOSEN_INLINE_RESULT = "chosen_inline_result"
    CALLBACK_QUERY = "callback_query"
    SHIPPING_QUERY = "shipping_query"
    PRE_CHECKOUT_QUERY = "pre_checkout_query"
    POLL = "poll"
    POLL_ANSWER = "poll_answer"
    MY_CHAT_MEMBER = "my_chat_member"
    CHAT_MEMBER = "chat_member"
    LEFT_CHAT_MEMBER = "left_chat_member"
    NEW_CHAT_MEMBERS = "new_chat_members"
    CHAT_JOIN_REQUEST = "chat_join_request"
    CHAT_MIGRATION_FROM = "chat_migration_from"
    CHAT_MIGRATION_TO = "chat_migration_to"


class MemberStatus(str, Enum):
    CREATOR = "creator"
    ADMINISTRATOR = "administrator"
    MEMBER = "member"
    RESTRICTED = "restricted"
    LEFT = "left"
    KICKED = "kicked"


class ChatType(str, Enum):
    PRIVATE = "private"
    GROUP = "group"
    SUPERGROUP = "supergroup"
    CHANNEL = "channel"
