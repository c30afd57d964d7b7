"""Application configuration -- environment variables and derived constants.

Loads the bot token, API endpoint, storage backend and callback/queue
lifetimes from the environment via ``python-dotenv``.  All values are
resolved at import time so other modules can ``from config import …``
without repeated lookups.
"""

# ── stdlib ───────────────────────────────────────────────────────────────────
import os
from datetime import timedelta

# ── third-party ──────────────────────────────────────────────────────────────
from dotenv import load_dotenv

# ── core ─────────────────────────────────────────────────────────────────────
from core.logger import TgrouteLogger

# ── Environment bootstrap ────────────────────────────────────────────────────
load_dotenv()

# ── Logger (used for startup diagnostics at the bottom of this module) ───────
logger = TgrouteLogger.get_logger()


# ── Helper functions (private) ───────────────────────────────────────────────


def _seconds(name: str, default: int) -> timedelta:
    """Read a positive integer number of seconds from *name* as a timedelta.

    Missing, non-numeric or non-positive values fall back to *default*.
    """
    raw = os.environ.get(name, "").strip()
    if not raw:
        return timedelta(seconds=default)
    try:
        value = int(raw)
    except ValueError:
        logger.warning("Invalid integer in environment, using default", extra={"env": name, "value": raw, "default": default})
        return timedelta(seconds=default)
    if value <= 0:
        return timedelta(seconds=default)
    return timedelta(seconds=value)


def _int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except ValueError:
        return default


# ── Public constants ─────────────────────────────────────────────────────────

BOT_TOKEN: str | None = os.environ.get("BOT_TOKEN") or os.environ.get("TELEGRAM_BOT_TOKEN")
API_ENDPOINT: str = os.environ.get("API_ENDPOINT", "https://api.telegram.org").rstrip("/")
BASE_URL: str = f"{API_ENDPOINT}/bot{BOT_TOKEN or ''}"
REDIS_URL: str | None = os.environ.get("REDIS_URL") or None

# Lifetime of payloads attached to inline buttons.
CALLBACK_DATA_TTL: timedelta = _seconds("CALLBACK_DATA_TTL_SECONDS", 24 * 60 * 60)
# Lifetime of a per-actor delete-later list on the networked backend.
DELETE_LATER_TTL: timedelta = _seconds("DELETE_LATER_TTL_SECONDS", 24 * 60 * 60)

DEFAULT_LOCALE: str = os.environ.get("DEFAULT_LOCALE", "en")
POLL_TIMEOUT: int = _int("POLL_TIMEOUT", 60)


# ── Startup diagnostics ─────────────────────────────────────────────────────

if BOT_TOKEN:
    logger.info("Config loaded: BOT_TOKEN is set, BASE_URL ready")
else:
    logger.warning("Config loaded: BOT_TOKEN is NOT set")

if REDIS_URL:
    logger.info("REDIS_URL configured, networked storage backend selected")
else:
    logger.info("REDIS_URL not configured, in-process storage backend selected")
