"""Ban and appeal bookkeeping per ``(bot token, user id)``.

A user moves ``CLEAR → BLOCKED`` when the operator bans them and back to
``CLEAR`` on unban, which also resets their appeal counter.  A blocked user
may appeal up to :data:`APPEAL_LIMIT` times; once the counter reaches the
limit they are ``PERMANENTLY_BLOCKED`` until the operator unbans them.  The
"awaiting appeal text" step is not stored here: it belongs to the worker
that asked the user for the text.

Every query re-reads the store.  Mutations for one key are serialized
through a per-key :class:`asyncio.Lock`.
"""

import asyncio
import contextlib
import enum
from collections import Counter
from typing import AsyncIterator, NamedTuple

from core.logger import ForwardMeLogger
from core.store import BotStore

logger = ForwardMeLogger.get_logger()

APPEAL_LIMIT: int = 3


class BanKey(NamedTuple):
    token: str
    user_id: int


class BanState(enum.Enum):
    CLEAR = "clear"
    BLOCKED = "blocked"
    PERMANENTLY_BLOCKED = "permanently_blocked"


class AppealOutcome(NamedTuple):
    """Result of :meth:`BanBook.submit_appeal`."""

    count: int
    exhausted: bool


class BanBook:
    """Async facade over :class:`~core.store.BotStore` ban/appeal fields.

    Store calls run in a thread so the event loop keeps pumping other bots.
    The appeal counter is clamped at *appeal_limit*.
    """

    def __init__(self, store: BotStore, appeal_limit: int = APPEAL_LIMIT) -> None:
        self._store = store
        self.appeal_limit = appeal_limit
        self._locks: dict[BanKey, asyncio.Lock] = {}
        self._lock_users: Counter[BanKey] = Counter()

    @contextlib.asynccontextmanager
    async def _serialized(self, token: str, user_id: int) -> AsyncIterator[None]:
        """Hold the lock of one key; the entry is dropped once nobody uses it."""
        key = BanKey(token, user_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if self._lock_users[key] == 0:
                del self._lock_users[key]
                del self._locks[key]

    # ── Queries ──────────────────────────────────────────────────────────

    async def is_blocked(self, token: str, user_id: int) -> bool:
        return await asyncio.to_thread(self._store.is_blocked, token, user_id)

    async def get_appeal_count(self, token: str, user_id: int) -> int:
        return await asyncio.to_thread(self._store.get_appeal_count, token, user_id)

    async def list_blocked(self, token: str) -> list[int]:
        return await asyncio.to_thread(self._store.list_blocked, token)

    async def state(self, token: str, user_id: int) -> BanState:
        """Return the persisted state of *user_id* on bot *token*."""
        if not await self.is_blocked(token, user_id):
            return BanState.CLEAR
        if await self.get_appeal_count(token, user_id) >= self.appeal_limit:
            return BanState.PERMANENTLY_BLOCKED
        return BanState.BLOCKED

    # ── Mutations ────────────────────────────────────────────────────────

    async def block(self, token: str, user_id: int) -> bool:
        """Ban *user_id*. Returns ``False`` if they were already blocked.

        Raises:
            core.store.StoreError: If the store rejects the write.
        """
        async with self._serialized(token, user_id):
            added = await asyncio.to_thread(self._store.add_blocked, token, user_id)
        logger.info("User blocked" if added else "User already blocked",
                    extra={"user_id": user_id, "changed": added})
        return added

    async def unblock(self, token: str, user_id: int) -> bool:
        """Lift the ban on *user_id* and reset their appeal counter.

        Returns ``False`` if they were not blocked (the counter is reset
        regardless).
        """
        async with self._serialized(token, user_id):
            removed = await asyncio.to_thread(self._store.remove_blocked, token, user_id)
        logger.info("User unblocked" if removed else "User was not blocked",
                    extra={"user_id": user_id, "changed": removed})
        return removed

    async def increment_appeal_count(self, token: str, user_id: int) -> int:
        """Add one appeal to *user_id*'s counter (clamped) and return it."""
        async with self._serialized(token, user_id):
            return await asyncio.to_thread(
                self._store.increment_appeal_count, token, user_id, self.appeal_limit
            )

    async def submit_appeal(self, token: str, user_id: int) -> AppealOutcome:
        """Record one consumed appeal and report whether the cap is now reached."""
        count = await self.increment_appeal_count(token, user_id)
        exhausted = count >= self.appeal_limit
        logger.info("Appeal recorded", extra={"user_id": user_id, "appeal_count": count, "exhausted": exhausted})
        return AppealOutcome(count, exhausted)
