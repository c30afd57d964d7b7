"""Telegram Bot API SDK -- Pydantic models, async service client, and exceptions.

Usage::

    from sdk import TelegramClient, APIException
    from sdk.models import Update, Message, CallbackQuery
"""

from sdk.client import TelegramClient
from sdk.exceptions import APIException

__all__ = [
    "TelegramClient",
    "APIException",
]
