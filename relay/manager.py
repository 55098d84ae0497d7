"""Registry of running relay bots and their lifecycle.

:class:`BotManager` owns the token → :class:`BotInstance` map, the only
state shared between workers.  The map is guarded by one lock that is held
for the in-memory update only; credential checks and store calls happen
outside it.  Two concurrent registrations of the same new token may both
reach the store; the primary key on ``token`` lets exactly one insert win
and the registry check under the lock lets exactly one worker start.  A
registration that overlaps a deregistration of the same token is abandoned
(:class:`RegistrationCancelled`) so no worker runs without its record.
"""

import asyncio
import dataclasses
from typing import Callable

from core.bans import BanBook
from core.logger import ForwardMeLogger
from core.store import BotStore, StoreError
from relay.router import Router
from relay.worker import PollWorker
from sdk.client import AsyncTelegramClient, PlatformClient, redact_token
from sdk.exceptions import InvalidCredentialError

logger = ForwardMeLogger.get_logger()

ClientFactory = Callable[[str], PlatformClient]


class RegistrationCancelled(Exception):
    """Raised by :meth:`BotManager.register` when the token was deregistered meanwhile."""

    def __init__(self, token_hint: str) -> None:
        self.token_hint = token_hint
        super().__init__(f"Bot {token_hint} was deleted while it was being registered")


@dataclasses.dataclass(slots=True)
class BotInstance:
    """A running relay bot."""
    token: str
    creator_id: int
    client: PlatformClient
    router: Router
    worker: PollWorker
    username: str | None = None

    @property
    def token_hint(self) -> str:
        return self.client.token_hint


class BotManager:
    """Registers, runs and removes relay bots."""

    def __init__(
        self,
        store: BotStore,
        bans: BanBook | None = None,
        client_factory: ClientFactory = AsyncTelegramClient,
        poll_timeout: int = 60,
        retry_delay: float = 5.0,
    ) -> None:
        self._store = store
        self._bans = bans or BanBook(store)
        self._client_factory = client_factory
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._bots: dict[str, BotInstance] = {}
        self._creators: dict[str, int] = {}
        # Bumped by deregister; a registration that saw an older value is stale.
        self._generations: dict[str, int] = {}
        self._lock = asyncio.Lock()

    # ── Lookups ──────────────────────────────────────────────────────────

    async def get(self, token: str) -> BotInstance | None:
        async with self._lock:
            return self._bots.get(token)

    async def creator_of(self, token: str) -> int | None:
        async with self._lock:
            return self._creators.get(token)

    async def owner_of(self, token: str) -> int | None:
        """Operator of *token*, from the registry or else the store."""
        creator_id = await self.creator_of(token)
        if creator_id is not None:
            return creator_id
        record = await asyncio.to_thread(self._store.get_by_token, token)
        return record.creator_id if record is not None else None

    async def tokens_for(self, creator_id: int) -> list[str]:
        async with self._lock:
            return [token for token, cid in self._creators.items() if cid == creator_id]

    def __len__(self) -> int:
        return len(self._bots)

    # ── Lifecycle ────────────────────────────────────────────────────────

    async def register(self, token: str, creator_id: int) -> BotInstance:
        """Validate *token*, persist it if new, and start its worker.

        Re-registering a persisted token keeps the stored operator.  If the
        token is already running, the running instance is returned.

        Raises:
            InvalidCredentialError: If Telegram rejects the token; nothing
                is persisted and no worker is started.
            StoreError: If the registration cannot be persisted.
            RegistrationCancelled: If the token was deregistered while this
                call was in progress; its record is removed again.
        """
        token_hint = redact_token(token)
        logger.info("Registering bot", extra={"bot": token_hint, "creator_id": creator_id})
        async with self._lock:
            generation = self._generations.get(token, 0)

        client = self._client_factory(token)
        inserted = False
        try:
            me = await client.validate_credential()
            record = await asyncio.to_thread(self._store.get_by_token, token)
            if record is None:
                inserted = await asyncio.to_thread(self._store.insert, token, creator_id)
                if not inserted:
                    logger.info("Concurrent registration won the insert", extra={"bot": token_hint})
                    record = await asyncio.to_thread(self._store.get_by_token, token)
            else:
                logger.info("Bot already persisted, not rewriting", extra={"bot": token_hint})
        except (InvalidCredentialError, StoreError) as exc:
            logger.warning("Bot registration failed", extra={"bot": token_hint, "error": str(exc)})
            client.close()
            raise

        if record is not None:
            creator_id = record.creator_id

        async with self._lock:
            cancelled = self._generations.get(token, 0) != generation
            existing = self._bots.get(token)
            if existing is None and not cancelled:
                router = Router(token, creator_id, client, self._bans)
                worker = PollWorker(client, router.handle_update, self._poll_timeout, self._retry_delay)
                instance = BotInstance(token, creator_id, client, router, worker, me.username)
                self._bots[token] = instance
                self._creators[token] = creator_id
                worker.start()

        if cancelled and existing is None:
            logger.warning("Bot deregistered during registration, not starting", extra={"bot": token_hint})
            client.close()
            if inserted:
                await asyncio.to_thread(self._store.delete, token)
            raise RegistrationCancelled(token_hint)

        if existing is not None:
            logger.info("Bot already running", extra={"bot": token_hint})
            client.close()
            return existing

        logger.info("Bot registered and started", extra={"bot": token_hint, "creator_id": creator_id, "username": me.username})
        return instance

    async def deregister(self, token: str) -> bool:
        """Remove *token* from the registry and the store, and stop its worker.

        Returns ``True`` if the bot was running or persisted.

        Raises:
            StoreError: If the persisted record cannot be deleted.  The
                worker is stopped regardless.
        """
        token_hint = redact_token(token)
        async with self._lock:
            instance = self._bots.pop(token, None)
            self._creators.pop(token, None)
            self._generations[token] = self._generations.get(token, 0) + 1

        try:
            deleted = await asyncio.to_thread(self._store.delete, token)
        finally:
            if instance is not None:
                await self._teardown(instance)

        logger.info("Bot deregistered", extra={"bot": token_hint, "was_running": instance is not None, "was_persisted": deleted})
        return instance is not None or deleted

    async def load_from_store(self) -> int:
        """Start a worker for every persisted bot. Returns how many started.

        A bot whose token is no longer accepted is logged and skipped; its
        record is kept so a transient outage does not wipe registrations.
        """
        records = await asyncio.to_thread(self._store.list_bots)
        logger.info("Loading bots from store", extra={"count": len(records)})
        started = 0
        for token, creator_id in records:
            try:
                await self.register(token, creator_id)
            except (InvalidCredentialError, StoreError, RegistrationCancelled) as exc:
                logger.error("Failed to start persisted bot", extra={"bot": redact_token(token), "error": str(exc)})
                continue
            started += 1
        logger.info("Persisted bots loaded", extra={"started": started, "total": len(records)})
        return started

    async def shutdown(self) -> None:
        """Stop every worker; persisted records are kept."""
        async with self._lock:
            instances = list(self._bots.values())
            self._bots.clear()
            self._creators.clear()
        await asyncio.gather(*(self._teardown(instance) for instance in instances))
        logger.info("All bots stopped", extra={"count": len(instances)})

    @staticmethod
    async def _teardown(instance: BotInstance) -> None:
        await instance.worker.stop()
        instance.client.close()
