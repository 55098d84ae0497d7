"""ForwardMe entrypoint — start the manager bot and every persisted relay bot.

Run with ``python main.py``.  Stops cleanly on SIGINT / SIGTERM: every
worker's long poll is cancelled and its HTTP session closed; registrations
and ban lists stay in the database for the next start.
"""

import asyncio
import signal

from config import (
    ADMIN_IDS,
    API_BASE_URL,
    DATABASE_PATH,
    LOG_LEVEL,
    MANAGER_BOT_TOKEN,
    POLL_RETRY_DELAY,
    POLL_TIMEOUT,
)
from core.bans import BanBook
from core.logger import ForwardMeLogger
from core.store import BotStore
from relay.manager import BotManager
from relay.manager_bot import ManagerBot
from relay.worker import PollWorker
from sdk.client import AsyncTelegramClient

logger = ForwardMeLogger.get_logger()


async def run() -> None:
    """Wire the components together and serve until a shutdown signal.

    Raises:
        EnvironmentError: If ``MANAGER_BOT_TOKEN`` is not set.
        sdk.exceptions.InvalidCredentialError: If Telegram rejects it.
    """
    if not MANAGER_BOT_TOKEN:
        raise EnvironmentError("MANAGER_BOT_TOKEN environment variable is not set or is empty.")

    store = BotStore(DATABASE_PATH)
    manager = BotManager(
        store,
        BanBook(store),
        client_factory=lambda token: AsyncTelegramClient(token, api_url=API_BASE_URL),
        poll_timeout=POLL_TIMEOUT,
        retry_delay=POLL_RETRY_DELAY,
    )

    manager_client = AsyncTelegramClient(MANAGER_BOT_TOKEN, api_url=API_BASE_URL)
    me = await manager_client.validate_credential()
    logger.info("Manager bot authenticated", extra={"username": me.username})

    await manager.load_from_store()

    manager_bot = ManagerBot(manager, manager_client, ADMIN_IDS, own_token=MANAGER_BOT_TOKEN)
    manager_worker = PollWorker(manager_client, manager_bot.handle_update, POLL_TIMEOUT, POLL_RETRY_DELAY)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops do not support signal handlers; Ctrl+C still
            # raises KeyboardInterrupt out of asyncio.run().
            pass

    manager_worker.start()
    logger.info("ForwardMe is running", extra={"bots": len(manager)})
    try:
        await stop.wait()
    finally:
        logger.info("Shutting down")
        await manager_worker.stop()
        manager_client.close()
        await manager.shutdown()


def main() -> None:
    ForwardMeLogger.set_level(LOG_LEVEL)
    try:
        asyncio.run(run())
    finally:
        ForwardMeLogger().cleanup()


if __name__ == "__main__":
    main()
