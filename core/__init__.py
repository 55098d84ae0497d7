"""Core relay state — persistence, ban/appeal bookkeeping, and logging.

This package is transport-agnostic. It must NEVER import from ``relay/`` or ``sdk/``.
"""

from core.bans import APPEAL_LIMIT, AppealOutcome, BanBook, BanKey, BanState
from core.logger import ForwardMeLogger
from core.store import BotRecord, BotStore, StoreError

__all__ = [
    "APPEAL_LIMIT",
    "AppealOutcome",
    "BanBook",
    "BanKey",
    "BanState",
    "ForwardMeLogger",
    "BotRecord",
    "BotStore",
    "StoreError",
]
