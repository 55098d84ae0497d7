"""Tests for the long-polling worker."""

import asyncio
import sys
import os
import threading
from unittest.mock import patch

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from conftest import FakeClient
from relay.worker import PollWorker
from sdk.client import AsyncTelegramClient
from sdk.exceptions import APIException


def _raw_update(update_id: int, text: str = "hi") -> dict:
    return {
        "update_id": update_id,
        "message": {
            "message_id": update_id,
            "date": 0,
            "chat": {"id": 42, "type": "private"},
            "from": {"id": 42, "is_bot": False, "first_name": "Alice"},
            "text": text,
        },
    }


class TestPollWorker:

    @pytest.mark.asyncio
    async def test_updates_handled_in_order(self, fake_client, eventually) -> None:
        seen: list[int] = []

        async def handler(update) -> None:
            # Later updates finish faster; order must still hold.
            await asyncio.sleep(0.01 * (13 - update.update_id))
            seen.append(update.update_id)

        worker = PollWorker(fake_client, handler, poll_timeout=1, retry_delay=0.01)
        fake_client.batches.put_nowait([_raw_update(10), _raw_update(11), _raw_update(12)])
        worker.start()
        await eventually(lambda: len(seen) == 3)
        await worker.stop()

        assert seen == [10, 11, 12]
        assert fake_client.offsets == [None, 13]

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_poll(self, fake_client, eventually) -> None:
        worker = PollWorker(fake_client, lambda update: asyncio.sleep(0), poll_timeout=60)
        worker.start()
        await eventually(lambda: len(fake_client.offsets) == 1)
        assert worker.running is True

        await asyncio.wait_for(worker.stop(), timeout=1)
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_stop_before_start_is_noop(self, fake_client) -> None:
        worker = PollWorker(fake_client, lambda update: asyncio.sleep(0))
        await worker.stop()
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_failed_poll_is_retried(self, fake_client, eventually) -> None:
        seen: list[int] = []

        async def handler(update) -> None:
            seen.append(update.update_id)

        worker = PollWorker(fake_client, handler, poll_timeout=1, retry_delay=0.01)
        fake_client.batches.put_nowait(APIException(502, {"description": "Bad Gateway"}))
        fake_client.batches.put_nowait([_raw_update(1)])
        worker.start()
        await eventually(lambda: seen == [1])
        await worker.stop()
        assert fake_client.offsets[:2] == [None, None]

    @pytest.mark.asyncio
    async def test_handler_error_does_not_stop_worker(self, fake_client, eventually) -> None:
        seen: list[int] = []

        async def handler(update) -> None:
            if update.update_id == 1:
                raise RuntimeError("boom")
            seen.append(update.update_id)

        worker = PollWorker(fake_client, handler, poll_timeout=1)
        fake_client.batches.put_nowait([_raw_update(1), _raw_update(2)])
        worker.start()
        await eventually(lambda: seen == [2])
        assert worker.running is True
        await worker.stop()

    @pytest.mark.asyncio
    async def test_unparseable_update_is_skipped(self, fake_client, eventually) -> None:
        seen: list[int] = []

        async def handler(update) -> None:
            seen.append(update.update_id)

        worker = PollWorker(fake_client, handler, poll_timeout=1)
        fake_client.batches.put_nowait([{"update_id": 5, "message": {"text": "no chat"}}, _raw_update(6)])
        worker.start()
        await eventually(lambda: seen == [6])
        await eventually(lambda: len(fake_client.offsets) == 2)
        await worker.stop()
        assert fake_client.offsets == [None, 7]

    @pytest.mark.asyncio
    async def test_workers_do_not_block_each_other(self, eventually) -> None:
        slow_client, fast_client = FakeClient("1:slow"), FakeClient("2:fast")
        release = asyncio.Event()
        fast_seen: list[int] = []

        async def slow_handler(update) -> None:
            await release.wait()

        async def fast_handler(update) -> None:
            fast_seen.append(update.update_id)

        slow = PollWorker(slow_client, slow_handler, poll_timeout=1)
        fast = PollWorker(fast_client, fast_handler, poll_timeout=1)
        slow_client.batches.put_nowait([_raw_update(1)])
        fast_client.batches.put_nowait([_raw_update(2)])
        slow.start()
        fast.start()

        await eventually(lambda: fast_seen == [2])
        release.set()
        await asyncio.gather(slow.stop(), fast.stop())

    @pytest.mark.asyncio
    async def test_idle_long_polls_do_not_starve_other_calls(self, bans) -> None:
        """More idle polls than default-executor threads must not delay store calls."""
        release = threading.Event()

        def blocking_get_updates(offset=None, timeout=0, allowed_updates=None):
            release.wait(5)
            return {"ok": True, "result": []}

        clients = [AsyncTelegramClient(f"{i}:SECRET") for i in range(40)]
        workers = [PollWorker(c, lambda update: asyncio.sleep(0), poll_timeout=60) for c in clients]
        try:
            with patch("sdk.client.TelegramClient.get_updates", side_effect=blocking_get_updates):
                for worker in workers:
                    worker.start()
                await asyncio.sleep(0.1)

                assert await asyncio.wait_for(bans.is_blocked("0:SECRET", 42), timeout=1) is False
                await asyncio.wait_for(asyncio.gather(*(w.stop() for w in workers)), timeout=1)
        finally:
            release.set()
            for client in clients:
                client.close()
