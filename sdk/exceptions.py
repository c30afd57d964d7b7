"""Exception hierarchy for the Telegram SDK layer."""

from typing import Any, Dict, Optional


class APIException(Exception):
    """Raised for non-2xx (or ``ok: false``) responses from the Telegram Bot API.

    Attributes:
        status_code: HTTP status code returned by the API.
        response_body: Raw response body as a dict, when available.
    """

    def __init__(self, status_code: int, response_body: Optional[Dict[str, Any]] = None) -> None:
        """Initialise with the HTTP status code and optional body."""
        self.status_code = status_code
        self.response_body = response_body or {}
        description = self.response_body.get("description", "Unknown error")
        super().__init__(f"API error {status_code}: {description}")

    @property
    def error_code(self) -> int:
        """Telegram's own ``error_code``, falling back to the HTTP status."""
        return int(self.response_body.get("error_code", self.status_code))

    @property
    def description(self) -> str:
        return str(self.response_body.get("description", ""))
