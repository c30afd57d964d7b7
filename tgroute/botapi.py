"""BotAPI -- what handlers use to talk to Telegram and to the shared stores.

Wraps :class:`~sdk.client.TelegramClient` with:

- the ``may_*`` family, which logs and swallows platform and transport errors
  so a failed reply never fails the handler;
- callback data assignment (:mod:`tgroute.callbacks`);
- the per-user delete-later queue;
- command rate limiting and chat membership checks.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Iterable, Optional, Union

import requests

import config
from core.keys import SESSION_DELETE_LATER_MESSAGES_FOR_ACTOR
from core.logger import TgrouteLogger
from core.queue import Queue
from core.ratelimit import RateLimiter
from core.ttlcache import TTLCache
from sdk.client import ReplyMarkup, TelegramClient
from sdk.exceptions import APIException
from sdk.models import Message, User
from tgroute.callbacks import NOP_ROUTE, CallbackActions
from tgroute.types import MemberStatus

logger = TgrouteLogger.get_logger()

_MAY_ERRORS = (APIException, requests.RequestException)

GROUP_ANONYMOUS_BOT_ID = 1087968824
_CANNOT_INITIATE_CHAT = "Forbidden: bot can't initiate conversation with a user"
_BOT_BLOCKED = "Forbidden: bot was blocked by the user"


def is_cannot_initiate_chat_error(exc: BaseException | None) -> bool:
    """True for the 403 Telegram returns when a user never started the bot."""
    return isinstance(exc, APIException) and exc.error_code == 403 and exc.description == _CANNOT_INITIATE_CHAT


def is_bot_blocked_error(exc: BaseException | None) -> bool:
    """True for the 403 Telegram returns when the user blocked the bot."""
    return isinstance(exc, APIException) and exc.error_code == 403 and exc.description == _BOT_BLOCKED


def is_group_anonymous_bot(user: Optional[User]) -> bool:
    """True for the service account Telegram substitutes for anonymous group admins."""
    if user is None:
        return False
    return (
        user.id == GROUP_ANONYMOUS_BOT_ID
        and user.is_bot
        and user.username == "GroupAnonymousBot"
        and user.first_name == "Group"
    )


class BotAPI:
    """Handler-facing facade over the Telegram client and the storage backends."""

    def __init__(
        self,
        client: TelegramClient,
        cache: TTLCache,
        queue: Queue,
        callback_data_ttl: timedelta = config.CALLBACK_DATA_TTL,
    ) -> None:
        self.client = client
        self.cache = cache
        self.queue = queue
        self.callbacks = CallbackActions(cache, callback_data_ttl)
        self.rate_limiter = RateLimiter(cache)
        self._me: Optional[User] = None

    async def me(self) -> User:
        """The bot's own user, fetched once with ``getMe``."""
        if self._me is None:
            self._me = await self.client.get_me()
        return self._me

    # ------------------------------------------------------------------
    #  "may" helpers: log and swallow failures
    # ------------------------------------------------------------------

    async def may_send_message(
        self,
        chat_id: Union[int, str],
        text: str,
        parse_mode: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Optional[Message]:
        try:
            return await self.client.send_message(
                chat_id,
                text,
                parse_mode=parse_mode,
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
            )
        except _MAY_ERRORS as exc:
            logger.error("failed to send message to telegram", extra={"chat_id": chat_id, "api_endpoint": "sendMessage", "error": str(exc)})
            return None

    async def may_edit_message_text(
        self,
        chat_id: Union[int, str],
        message_id: int,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Optional[Message]:
        try:
            return await self.client.edit_message_text(
                chat_id,
                message_id,
                text,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            )
        except _MAY_ERRORS as exc:
            logger.error(
                "failed to edit message text",
                extra={"chat_id": chat_id, "message_id": message_id, "api_endpoint": "editMessageText", "error": str(exc)},
            )
            return None

    async def may_edit_message_reply_markup(
        self,
        chat_id: Union[int, str],
        message_id: int,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Optional[Message]:
        try:
            return await self.client.edit_message_reply_markup(chat_id, message_id, reply_markup=reply_markup)
        except _MAY_ERRORS as exc:
            logger.error(
                "failed to edit message reply markup",
                extra={"chat_id": chat_id, "message_id": message_id, "api_endpoint": "editMessageReplyMarkup", "error": str(exc)},
            )
            return None

    async def may_answer_callback_query(self, callback_query_id: str, text: Optional[str] = None, show_alert: Optional[bool] = None) -> bool:
        try:
            return await self.client.answer_callback_query(callback_query_id, text=text, show_alert=show_alert)
        except _MAY_ERRORS as exc:
            logger.error(
                "failed to answer callback query",
                extra={"callback_query_id": callback_query_id, "api_endpoint": "answerCallbackQuery", "error": str(exc)},
            )
            return False

    async def may_request(self, endpoint: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """Call any Bot API *endpoint*; ``None`` on failure."""
        try:
            return await self.client.request(endpoint, payload)
        except _MAY_ERRORS as exc:
            logger.error(
                "failed to send request to telegram endpoint: " + endpoint,
                extra={"api_endpoint": endpoint, "request": payload, "error": str(exc)},
            )
            return None

    # ------------------------------------------------------------------
    #  Membership
    # ------------------------------------------------------------------

    async def is_bot_administrator(self, chat_id: int) -> bool:
        """Whether the bot itself is an administrator of *chat_id*.

        Raises:
            APIException: If ``getChatMember`` fails.
        """
        me = await self.me()
        member = await self.client.get_chat_member(chat_id, me.id)
        return member.status == MemberStatus.ADMINISTRATOR.value

    async def is_user_member_status(self, chat_id: int, user_id: int, statuses: Iterable[MemberStatus]) -> bool:
        """Whether *user_id*'s status in *chat_id* is one of *statuses*."""
        member = await self.client.get_chat_member(chat_id, user_id)
        return member.status in {MemberStatus(s).value for s in statuses}

    # ------------------------------------------------------------------
    #  Delete later
    # ------------------------------------------------------------------

    async def push_one_delete_later_message(self, for_user_id: int, chat_id: int, message_id: int) -> None:
        """Remember a message to delete on *for_user_id*'s next cleanup.

        Any zero id makes this a no-op.  Queue failures are logged and re-raised.
        """
        if not for_user_id or not chat_id or not message_id:
            return

        try:
            await self.queue.push(SESSION_DELETE_LATER_MESSAGES_FOR_ACTOR.format(for_user_id), f"{chat_id};{message_id}")
        except Exception as exc:
            logger.error(
                "failed to push one delete later message for user",
                extra={"from_id": for_user_id, "chat_id": chat_id, "message_id": message_id, "error": str(exc)},
            )
            raise

        logger.debug("pushed one delete later message for user", extra={"from_id": for_user_id, "chat_id": chat_id, "message_id": message_id})

    async def delete_all_delete_later_messages(self, for_user_id: int) -> int:
        """Drain *for_user_id*'s queue and delete every message in it.

        Malformed entries are skipped.  Returns the number of delete requests
        issued.
        """
        if not for_user_id:
            return 0

        issued = 0
        for entry in await self.queue.pop_all(SESSION_DELETE_LATER_MESSAGES_FOR_ACTOR.format(for_user_id)):
            pair = entry.split(";")
            if len(pair) != 2:
                continue
            try:
                chat_id, message_id = int(pair[0]), int(pair[1])
            except ValueError:
                continue
            if not chat_id or not message_id:
                continue

            await self.may_request("deleteMessage", {"chat_id": chat_id, "message_id": message_id})
            issued += 1
            logger.debug("deleted one delete later message for user", extra={"from_id": for_user_id, "chat_id": chat_id, "message_id": message_id})

        return issued

    # ------------------------------------------------------------------
    #  Callback data
    # ------------------------------------------------------------------

    async def assign_one_callback_query_data(self, route: str, payload: Any) -> str:
        """Store *payload* for *route* and return the token for ``callback_data``.

        Raises:
            CallbackDataStoreError: The store write failed; ``exc.token`` is
                the best-effort token.
        """
        return await self.callbacks.assign(route, payload)

    async def assign_one_nop_callback_query_data(self) -> str:
        """Token for a button that does nothing when pressed."""
        return await self.callbacks.assign(NOP_ROUTE, "")

    # ------------------------------------------------------------------
    #  Rate limiting
    # ------------------------------------------------------------------

    async def rate_limit_for_command(self, chat_id: int, command: str, rate: int, per: timedelta) -> tuple[int, bool]:
        """Count one *command* call in *chat_id*; returns ``(count, allowed)``."""
        return await self.rate_limiter.check_command(chat_id, command, rate, per)
