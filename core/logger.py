"""TgrouteLogger -- one JSON logger for the whole framework.

Every record is written as a single JSON line to stdout and, unless
``LOG_DIR`` is set to an empty string, to ``<LOG_DIR>/tgroute.log`` with size
based rotation.  The level comes from ``LOG_LEVEL`` (default ``INFO``).
"""

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any, Optional

LOGGER_NAME = "tgroute"

# Attributes every LogRecord carries; anything else arrived through ``extra``.
_RECORD_ATTRS: frozenset[str] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None))
) | {"message", "asctime", "taskName"}


class _JsonFormatter(logging.Formatter):
    """Render a record as one JSON object.

    The fixed keys are ``timestamp``, ``level``, ``logger``, ``message``,
    ``module`` and ``func_name``.  Dispatch context passed as ``extra`` is
    merged in at the top level::

        logger.debug("Callback query dispatched", extra={"route": "confirm", "route_hash": "9f86d081884c7d65"})
        # {"timestamp": "…", "level": "DEBUG", …, "route": "confirm", "route_hash": "9f86d081884c7d65"}

    ``logger.exception`` (or ``exc_info=``) adds the formatted traceback under
    ``exc_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func_name": record.funcName,
        }
        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            entry["stack_info"] = self.formatStack(record.stack_info)

        entry.update(_extras(record, exclude=entry))
        return json.dumps(entry, ensure_ascii=False, default=str)


def _extras(record: logging.LogRecord, exclude: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RECORD_ATTRS and k not in exclude}


def _level_from_env() -> int:
    """Resolve ``LOG_LEVEL`` (a name such as ``DEBUG``) to a logging level."""
    level = logging.getLevelName(os.environ.get("LOG_LEVEL", "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


class TgrouteLogger:
    """Process-wide singleton owning the ``tgroute`` logger and its handlers.

    Usage::

        from core.logger import TgrouteLogger

        logger = TgrouteLogger.get_logger()
        logger.info("Bot is running", extra={"bot_id": 7})
    """

    _instance: Optional["TgrouteLogger"] = None
    _logger: Optional[logging.Logger] = None

    _LOG_FILE: str = "tgroute.log"
    _MAX_BYTES: int = 5 * 1024 * 1024  # 5 MB
    _BACKUP_COUNT: int = 5

    def __new__(cls, level: int | None = None) -> "TgrouteLogger":
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._configure(_level_from_env() if level is None else level)
            cls._instance = instance
        return cls._instance

    def _configure(self, level: int) -> None:
        self._logger = logging.getLogger(LOGGER_NAME)
        self._logger.setLevel(level)
        # A reloaded module must not attach a second set of handlers.
        if self._logger.handlers:
            return

        formatter = _JsonFormatter()
        for handler in self._handlers():
            handler.setLevel(level)
            handler.setFormatter(formatter)
            self._logger.addHandler(handler)

    def _handlers(self) -> list[logging.Handler]:
        handlers: list[logging.Handler] = [logging.StreamHandler()]

        log_dir = os.environ.get("LOG_DIR", "logs")
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
            handlers.append(RotatingFileHandler(
                os.path.join(log_dir, self._LOG_FILE),
                maxBytes=self._MAX_BYTES,
                backupCount=self._BACKUP_COUNT,
                encoding="utf-8",
            ))
        return handlers

    @staticmethod
    def get_logger(level: int | None = None) -> logging.Logger:
        """Return the shared logger, creating it on first use.

        *level* only matters on the very first call.
        """
        instance = TgrouteLogger(level)
        assert instance._logger is not None
        return instance._logger

    def cleanup(self) -> None:
        """Flush, close and detach every handler (call once at shutdown)."""
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)
