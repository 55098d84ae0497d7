"""Relay application layer — bot registry, polling workers, routing and handlers.

This package may import from ``core/`` and ``sdk/`` only.
"""

from relay.manager import BotInstance, BotManager, RegistrationCancelled
from relay.manager_bot import ManagerBot
from relay.router import ReplyIndex, Router
from relay.worker import PollWorker

__all__ = [
    # Lifecycle
    "BotManager",
    "BotInstance",
    "RegistrationCancelled",
    "ManagerBot",
    # Per-bot pipeline
    "PollWorker",
    "Router",
    "ReplyIndex",
]
