"""Telegram Bot API SDK — Pydantic models, clients, and exceptions.

Usage::

    from sdk import AsyncTelegramClient, InvalidCredentialError
    from sdk.models import Message, Update
"""

from sdk.client import AsyncTelegramClient, PlatformClient, TelegramClient, redact_token
from sdk.exceptions import APIException, InvalidCredentialError

__all__ = [
    "AsyncTelegramClient",
    "PlatformClient",
    "TelegramClient",
    "redact_token",
    "APIException",
    "InvalidCredentialError",
]
