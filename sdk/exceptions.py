"""Exception hierarchy for the ForwardMe Telegram SDK."""

from typing import Any, Dict, Optional


class APIException(Exception):
    """Base exception for non-2xx responses from the Telegram Bot API.

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


class InvalidCredentialError(Exception):
    """Raised when Telegram rejects a bot token (``getMe`` fails).

    Attributes:
        token_hint: Redacted form of the rejected token, safe to log or show.
        reason: Human-readable cause reported by the transport or API.
    """

    def __init__(self, token_hint: str, reason: str) -> None:
        self.token_hint = token_hint
        self.reason = reason
        super().__init__(f"Invalid bot token {token_hint}: {reason}")
