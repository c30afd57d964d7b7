"""Per-update dispatch state handed to every handler.

One :class:`Context` is built for each dispatched update and is never shared
with another update.  Handlers may pass it into nested coroutines or worker
threads, so the mutable fields (the abort flag and the bound callback
payload) are guarded by a lock.
"""

from __future__ import annotations

import threading
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Iterable, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from core.i18n import FALLBACK_LOCALE, I18n
from core.logger import TgrouteLogger
from sdk.models import InlineKeyboardMarkup, Update
from tgroute.errors import CallbackPayloadMismatchError, CallbackPayloadMissingError
from tgroute.responses import EditMessageResponse, MessageResponse
from tgroute.types import MemberStatus, UpdateType

if TYPE_CHECKING:
    from tgroute.botapi import BotAPI

logger = TgrouteLogger.get_logger()

T = TypeVar("T")


def classify_update(update: Update) -> UpdateType:
    """Return the single :class:`UpdateType` describing *update*.

    For ``message`` the service-message shapes win over a plain message, in
    this order: new members, left member, migrated from, migrated to.
    """
    message = update.message
    if message is not None:
        if message.new_chat_members is not None:
            return UpdateType.NEW_CHAT_MEMBERS
        if message.left_chat_member is not None:
            return UpdateType.LEFT_CHAT_MEMBER
        if message.migrate_from_chat_id:
            return UpdateType.CHAT_MIGRATION_FROM
        if message.migrate_to_chat_id:
            return UpdateType.CHAT_MIGRATION_TO
        return UpdateType.MESSAGE
    if update.edited_message is not None:
        return UpdateType.EDITED_MESSAGE
    if update.channel_post is not None:
        return UpdateType.CHANNEL_POST
    if update.edited_channel_post is not None:
        return UpdateType.EDITED_CHANNEL_POST
    if update.inline_query is not None:
        return UpdateType.INLINE_QUERY
    if update.chosen_inline_result is not None:
        return UpdateType.CHOSEN_INLINE_RESULT
    if update.callback_query is not None:
        return UpdateType.CALLBACK_QUERY
    if update.shipping_query is not None:
        return UpdateType.SHIPPING_QUERY
    if update.pre_checkout_query is not None:
        return UpdateType.PRE_CHECKOUT_QUERY
    if update.poll is not None:
        return UpdateType.POLL
    if update.poll_answer is not None:
        return UpdateType.POLL_ANSWER
    if update.my_chat_member is not None:
        return UpdateType.MY_CHAT_MEMBER
    if update.chat_member is not None:
        return UpdateType.CHAT_MEMBER
    if update.chat_join_request is not None:
        return UpdateType.CHAT_JOIN_REQUEST
    return UpdateType.UNKNOWN


class Context:
    """Everything a handler needs about the update it is serving.

    Attributes:
        bot: The :class:`~tgroute.botapi.BotAPI` for replies and storage.
        update: The inbound update; treat it as read-only.
        i18n: Catalogue used by :meth:`t`.
    """

    def __init__(self, bot: "BotAPI", update: Update, i18n: I18n) -> None:
        self.bot = bot
        self.update = update
        self.i18n = i18n

        self._lock = threading.Lock()
        self._aborted = False
        self._callback_payload: Optional[str] = None

    @property
    def update_type(self) -> UpdateType:
        return classify_update(self.update)

    @property
    def chat_id(self) -> int:
        """Id of the chat this update happened in.

        Raises:
            ValueError: The update carries no chat (inline queries, polls …).
        """
        chat = self.update.from_chat()
        if chat is None:
            raise ValueError(f"update {self.update.update_id} has no chat")
        return chat.id

    # ── abort ────────────────────────────────────────────────────────────

    def abort(self) -> None:
        """Flag this update as handled.  Advisory: the dispatcher does not read it."""
        with self._lock:
            self._aborted = True

    def is_aborted(self) -> bool:
        with self._lock:
            return self._aborted

    # ── i18n ─────────────────────────────────────────────────────────────

    def language(self) -> str:
        """The sender's ``language_code``, or the fallback locale."""
        sender = self.update.sent_from()
        if sender is None or not sender.language_code:
            logger.debug("No sender language code, falling back", extra={"update_id": self.update.update_id, "locale": FALLBACK_LOCALE})
            return FALLBACK_LOCALE
        return sender.language_code

    def t(self, key: str, **args: Any) -> str:
        """Translate *key* into the sender's language."""
        return self.i18n.translate(key, self.language(), **args)

    # ── callback payload ─────────────────────────────────────────────────

    def _bind_callback_data(self, data: str) -> bool:
        """Attach the resolved callback payload.  Only the first call binds."""
        with self._lock:
            if self.update.callback_query is None or self._callback_payload is not None:
                return False
            self._callback_payload = data
            return True

    def bind_callback_payload(self, model: type[T]) -> T:
        """Deserialize the payload of the pressed button into *model*.

        *model* may be anything pydantic can validate: a ``BaseModel``, a
        dataclass, a ``TypedDict``, ``dict`` …

        Raises:
            CallbackPayloadMissingError: Not inside a resolved callback dispatch.
            CallbackPayloadMismatchError: The payload does not validate as *model*.
        """
        with self._lock:
            data = self._callback_payload

        if not data:
            raise CallbackPayloadMissingError("no callback payload is bound to this context")
        try:
            return TypeAdapter(model).validate_json(data)
        except ValidationError as exc:
            raise CallbackPayloadMismatchError(f"callback payload does not match {model!r}: {exc}") from exc

    # ── shortcuts ────────────────────────────────────────────────────────

    async def is_bot_administrator(self) -> bool:
        return await self.bot.is_bot_administrator(self.chat_id)

    async def is_user_member_status(self, user_id: int, statuses: Iterable[MemberStatus]) -> bool:
        return await self.bot.is_user_member_status(self.chat_id, user_id, statuses)

    async def rate_limit_for_command(self, command: str, rate: int, per: timedelta) -> tuple[int, bool]:
        return await self.bot.rate_limit_for_command(self.chat_id, command, rate, per)

    def new_message(self, text: str) -> MessageResponse:
        return MessageResponse(self.chat_id, text)

    def new_message_reply_to(self, text: str, reply_to_message_id: int) -> MessageResponse:
        return MessageResponse(self.chat_id, text, reply_to_message_id=reply_to_message_id)

    def new_edit_message_text(self, message_id: int, text: str) -> EditMessageResponse:
        return EditMessageResponse(self.chat_id, message_id, text=text)

    def new_edit_message_text_and_reply_markup(self, message_id: int, text: str, reply_markup: InlineKeyboardMarkup) -> EditMessageResponse:
        return EditMessageResponse(self.chat_id, message_id, text=text, reply_markup=reply_markup)

    def new_edit_message_reply_markup(self, message_id: int, reply_markup: InlineKeyboardMarkup) -> EditMessageResponse:
        return EditMessageResponse(self.chat_id, message_id, reply_markup=reply_markup)
