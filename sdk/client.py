"""TelegramClient -- async service layer over the Bot API endpoints the framework uses.

HTTP calls use the ``requests`` library; every blocking call is offloaded via
:func:`asyncio.to_thread` so the event loop is never blocked.  Responses are
validated into Pydantic models from :mod:`sdk.models`.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel

from sdk.exceptions import APIException
from sdk.models import Chat, ChatMember, InlineKeyboardMarkup, Message, User, WebhookInfo

ReplyMarkup = Union[InlineKeyboardMarkup, Dict[str, Any]]


def _dump(value: Any) -> Any:
    """Serialise Pydantic models into the JSON shape the Bot API expects."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, exclude_none=True)
    return value


class TelegramClient:
    """Client-side service layer for the Telegram Bot API.

    Each public coroutine corresponds to a Bot API endpoint.  Non-2xx
    responses and ``{"ok": false}`` bodies raise :class:`APIException`;
    transport failures surface as :class:`requests.RequestException`.
    """

    _DEFAULT_TIMEOUT: int = 10

    def __init__(self, base_url: str, timeout: int = _DEFAULT_TIMEOUT) -> None:
        """Create a new client bound to *base_url*.

        Args:
            base_url: Full Bot API base URL (e.g. ``https://api.telegram.org/bot<token>``).
            timeout: Default request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _post(self, endpoint: str, payload: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Send a POST request and return the parsed JSON body.

        Raises:
            APIException: If the response status code is not 2xx or the body is not ``ok``.
            requests.RequestException: On transport-level failures.
        """
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        response = requests.post(url, json=payload, timeout=timeout or self._timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok or not body.get("ok", False):
            raise APIException(response.status_code, body)
        return body

    async def request(self, endpoint: str, payload: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """Call any Bot API *endpoint* and return its ``result`` field."""
        clean = {k: _dump(v) for k, v in (payload or {}).items() if v is not None}
        body = await asyncio.to_thread(self._post, endpoint, clean, timeout)
        return body.get("result")

    # ------------------------------------------------------------------
    #  Endpoints
    # ------------------------------------------------------------------

    async def get_me(self) -> User:
        """A simple method for testing your bot's authentication token. Returns basic information about the bot."""
        return User.model_validate(await self.request("getMe"))

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 0, allowed_updates: Optional[List[str]] = None) -> List[Dict[str, Any]]:
        """Receive incoming updates using long polling.

        Raw dicts are returned so the caller can validate (and skip) each
        update individually.
        """
        payload: Dict[str, Any] = {"offset": offset, "timeout": timeout, "allowed_updates": allowed_updates}
        return await self.request("getUpdates", payload, timeout=timeout + self._timeout) or []

    async def get_webhook_info(self) -> WebhookInfo:
        """Get current webhook status."""
        return WebhookInfo.model_validate(await self.request("getWebhookInfo"))

    async def delete_webhook(self, drop_pending_updates: Optional[bool] = None) -> bool:
        """Remove webhook integration if you decide to switch back to getUpdates."""
        return bool(await self.request("deleteWebhook", {"drop_pending_updates": drop_pending_updates}))

    async def send_message(
        self,
        chat_id: Union[int, str],
        text: str,
        parse_mode: Optional[str] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Message:
        """Send a text message. On success, the sent Message is returned."""
        payload = {
            "chat_id": chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "reply_to_message_id": reply_to_message_id,
            "reply_markup": reply_markup,
        }
        return Message.model_validate(await self.request("sendMessage", payload))

    async def edit_message_text(
        self,
        chat_id: Union[int, str],
        message_id: int,
        text: str,
        parse_mode: Optional[str] = None,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Optional[Message]:
        """Edit text messages. Returns the edited Message, or ``None`` when Telegram answers ``True``."""
        payload = {
            "chat_id": chat_id,
            "message_id": message_id,
            "text": text,
            "parse_mode": parse_mode,
            "reply_markup": reply_markup,
        }
        result = await self.request("editMessageText", payload)
        return Message.model_validate(result) if isinstance(result, dict) else None

    async def edit_message_reply_markup(
        self,
        chat_id: Union[int, str],
        message_id: int,
        reply_markup: Optional[ReplyMarkup] = None,
    ) -> Optional[Message]:
        """Edit only the reply markup of a message."""
        payload = {"chat_id": chat_id, "message_id": message_id, "reply_markup": reply_markup}
        result = await self.request("editMessageReplyMarkup", payload)
        return Message.model_validate(result) if isinstance(result, dict) else None

    async def delete_message(self, chat_id: Union[int, str], message_id: int) -> bool:
        """Delete a message, including service messages."""
        return bool(await self.request("deleteMessage", {"chat_id": chat_id, "message_id": message_id}))

    async def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None, show_alert: Optional[bool] = None) -> bool:
        """Send an answer to a callback query so the client's spinner disappears."""
        payload = {"callback_query_id": callback_query_id, "text": text, "show_alert": show_alert}
        return bool(await self.request("answerCallbackQuery", payload))

    async def get_chat(self, chat_id: Union[int, str]) -> Chat:
        """Get up to date information about the chat."""
        return Chat.model_validate(await self.request("getChat", {"chat_id": chat_id}))

    async def get_chat_member(self, chat_id: Union[int, str], user_id: int) -> ChatMember:
        """Get information about a member of a chat."""
        return ChatMember.model_validate(await self.request("getChatMember", {"chat_id": chat_id, "user_id": user_id}))
