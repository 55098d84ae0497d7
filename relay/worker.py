"""Long-polling worker — one asyncio task per running bot.

The worker long-polls its :class:`~sdk.client.PlatformClient`, validates
each raw update into an :class:`~sdk.models.Update` and awaits the handler
for it before touching the next one, so a bot's updates are handled
strictly in the order Telegram delivered them.  Different bots' workers run
concurrently and never wait on each other.

:meth:`PollWorker.stop` is the cancellation path: it sets the stop signal,
cancels a long poll that is in flight (an update already being handled is
allowed to finish), and waits for the task to exit.
"""

import asyncio
import contextlib
from typing import Any, Awaitable, Callable

import requests
from pydantic import ValidationError

from core.logger import ForwardMeLogger
from sdk.client import PlatformClient
from sdk.exceptions import APIException
from sdk.models import Update

logger = ForwardMeLogger.get_logger()

UpdateHandler = Callable[[Update], Awaitable[None]]


class PollWorker:
    """Pumps one bot's updates into *handler*, sequentially."""

    def __init__(
        self,
        client: PlatformClient,
        handler: UpdateHandler,
        poll_timeout: int = 60,
        retry_delay: float = 5.0,
    ) -> None:
        self.client = client
        self._handler = handler
        self._poll_timeout = poll_timeout
        self._retry_delay = retry_delay
        self._offset: int | None = None
        self._stop = asyncio.Event()
        self._polling = False
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task[None]:
        """Spawn the polling task on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=f"poll-{self.client.token_hint}")
        return self._task

    async def stop(self) -> None:
        """Signal the worker to stop and wait until it has exited."""
        self._stop.set()
        task = self._task
        if task is None or task.done():
            return
        if self._polling:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Worker stopped", extra={"bot": self.client.token_hint})

    async def run(self) -> None:
        """Poll until :meth:`stop` is called."""
        logger.info("Worker started", extra={"bot": self.client.token_hint, "poll_timeout": self._poll_timeout})
        while not self._stop.is_set():
            batch = await self._receive()
            if batch is None:
                await self._backoff()
                continue
            if batch:
                logger.debug("Received updates", extra={"bot": self.client.token_hint, "count": len(batch)})
            for raw in batch:
                if self._stop.is_set():
                    break
                await self._dispatch(raw)

    async def _receive(self) -> list[dict[str, Any]] | None:
        """One long poll. Returns ``None`` on failure."""
        self._polling = True
        try:
            return await self.client.receive_next(self._offset, self._poll_timeout)
        except (APIException, requests.RequestException) as exc:
            logger.warning("getUpdates failed, retrying", extra={"bot": self.client.token_hint, "error": str(exc), "retry_in": self._retry_delay})
            return None
        finally:
            self._polling = False

    async def _backoff(self) -> None:
        with contextlib.suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._stop.wait(), timeout=self._retry_delay)

    async def _dispatch(self, raw: dict[str, Any]) -> None:
        """Validate and handle one raw update; never raises."""
        update_id = raw.get("update_id")
        if isinstance(update_id, int):
            self._offset = update_id + 1
        try:
            update = Update.model_validate(raw)
        except ValidationError as exc:
            logger.warning("Failed to parse update", extra={"bot": self.client.token_hint, "update_id": update_id, "error": str(exc)})
            return
        try:
            await self._handler(update)
        except Exception:
            logger.exception("Update handler failed", extra={"bot": self.client.token_hint, "update_id": update_id})
