"""Long-polling receive loop.

:meth:`Bot.run` pulls updates with ``getUpdates`` and hands each one to the
dispatcher on its own task, so a slow handler never holds up intake.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

import config
from core.logger import TgrouteLogger
from core.storage import build_storage
from sdk.client import TelegramClient
from sdk.exceptions import APIException
from sdk.models import Update
from tgroute.botapi import BotAPI
from tgroute.dispatcher import Dispatcher

logger = TgrouteLogger.get_logger()


class Bot:
    """Feeds updates from Telegram into a :class:`~tgroute.dispatcher.Dispatcher`."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        api: BotAPI,
        poll_timeout: int = config.POLL_TIMEOUT,
        retry_delay: float = 5.0,
        allowed_updates: Optional[List[str]] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.api = api
        self.poll_timeout = poll_timeout
        self.retry_delay = retry_delay
        self.allowed_updates = allowed_updates
        self.offset: Optional[int] = None
        self._stopped = asyncio.Event()

    @classmethod
    def from_config(cls, dispatcher: Dispatcher) -> "Bot":
        """Build a bot from :mod:`config` (token, endpoint, storage backend).

        Raises:
            EnvironmentError: If ``BOT_TOKEN`` is not set.
        """
        if not config.BOT_TOKEN:
            raise EnvironmentError("BOT_TOKEN environment variable is not set or is empty.")

        cache, queue = build_storage(config.REDIS_URL, queue_ttl=config.DELETE_LATER_TTL)
        api = BotAPI(TelegramClient(config.BASE_URL), cache, queue, callback_data_ttl=config.CALLBACK_DATA_TTL)
        return cls(dispatcher, api)

    def feed(self, raw: Dict[str, Any]) -> Optional[asyncio.Task[None]]:
        """Validate one raw update and spawn its dispatch.

        Invalid updates are logged and skipped; the offset still moves past them.
        """
        update_id = raw.get("update_id")
        if isinstance(update_id, int):
            self.offset = max(self.offset or 0, update_id + 1)

        try:
            update = Update.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Failed to parse update into SDK model", extra={"update_id": update_id, "error": str(exc)})
            return None

        return self.dispatcher.spawn(self.dispatcher.dispatch(self.api, update), update_id=update.update_id)

    async def run(self) -> None:
        """Poll until :meth:`stop` is called.  In-flight handlers are left running."""
        me = await self.api.me()
        logger.info("Bot is running. Polling for updates...", extra={"bot_id": me.id, "username": me.username})
        await self._drop_webhook()

        self._stopped.clear()
        while not self._stopped.is_set():
            try:
                updates = await self.api.client.get_updates(self.offset, timeout=self.poll_timeout, allowed_updates=self.allowed_updates)
            except (APIException, requests.RequestException) as exc:
                logger.warning(f"getUpdates failed, retrying in {self.retry_delay} s", extra={"api_endpoint": "getUpdates", "error": str(exc)})
                await self._sleep(self.retry_delay)
                continue

            if updates:
                logger.debug("Received updates", extra={"count": len(updates)})
            for raw in updates:
                self.feed(raw)

        logger.info("Stopped polling for updates", extra={"offset": self.offset})

    def stop(self) -> None:
        """Stop intake after the current poll returns."""
        self._stopped.set()

    async def _sleep(self, delay: float) -> None:
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=delay)
        except asyncio.TimeoutError:
            pass

    async def _drop_webhook(self) -> None:
        """Long polling and a webhook are exclusive; remove a leftover webhook."""
        info = await self.api.client.get_webhook_info()
        if not info.is_set():
            return
        if info.last_error_date:
            logger.error("Previous webhook reported an error", extra={"url": info.url, "last_message": info.last_error_message})
        await self.api.client.delete_webhook(drop_pending_updates=True)
        logger.info("Deleted previously set webhook", extra={"url": info.url})
