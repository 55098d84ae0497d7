"""Shared fixtures: a temporary SQLite store and an in-memory Telegram fake."""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.bans import BanBook
from core.store import BotStore
from sdk.client import redact_token
from sdk.exceptions import InvalidCredentialError
from sdk.models import Chat, Message, User


class FakeClient:
    """In-memory stand-in for :class:`sdk.client.AsyncTelegramClient`.

    Tests feed raw update batches through :attr:`batches`; everything the
    relay sends is recorded in :attr:`sent`, :attr:`forwards` and
    :attr:`acks`.
    """

    def __init__(self, token: str, valid: bool = True, username: str = "relay_bot") -> None:
        self.token = token
        self.token_hint = redact_token(token)
        self.valid = valid
        self.username = username
        self.batches: asyncio.Queue = asyncio.Queue()
        self.offsets: list = []
        self.sent: list[tuple[int, str, list | None]] = []
        self.forwards: list[tuple[int, int, int]] = []
        self.acks: list[str] = []
        self.closed = False
        self._next_id = 1000

    def _message(self, chat_id: int, **fields) -> Message:
        self._next_id += 1
        return Message(message_id=self._next_id, date=0, chat=Chat(id=chat_id, type="private"), **fields)

    def texts_to(self, chat_id: int) -> list[str]:
        return [text for cid, text, _ in self.sent if cid == chat_id]

    async def validate_credential(self) -> User:
        if not self.valid:
            raise InvalidCredentialError(self.token_hint, "API error 401: Unauthorized")
        return User(id=1, is_bot=True, first_name="Relay", username=self.username)

    async def receive_next(self, offset, timeout):
        self.offsets.append(offset)
        batch = await self.batches.get()
        if isinstance(batch, Exception):
            raise batch
        return batch

    async def send_text(self, chat_id, text):
        self.sent.append((chat_id, text, None))
        return self._message(chat_id, text=text)

    async def send_with_actions(self, chat_id, text, actions):
        self.sent.append((chat_id, text, list(actions)))
        return self._message(chat_id, text=text)

    async def forward(self, chat_id, from_chat_id, message_id):
        self.forwards.append((chat_id, from_chat_id, message_id))
        # Users with forwarding privacy: Telegram omits the original sender.
        return self._message(chat_id, forward_date=0)

    async def acknowledge_callback(self, callback_query_id, text=None):
        self.acks.append(callback_query_id)
        return True

    def close(self) -> None:
        self.closed = True


async def _eventually(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until *predicate()* holds or *timeout* expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture()
def store(tmp_path):
    """A fresh SQLite store in a temporary directory."""
    return BotStore(tmp_path / "bots.db")


@pytest.fixture()
def bans(store):
    return BanBook(store)


@pytest.fixture()
def fake_client():
    """A single fake client, for router and worker tests."""
    return FakeClient("123456:SECRET")


@pytest.fixture()
def clients():
    """Factory for :class:`BotManager`: one FakeClient per created client.

    Tokens listed in ``factory.invalid`` are rejected on validation.
    """
    created: list[FakeClient] = []

    def factory(token: str) -> FakeClient:
        client = FakeClient(token, valid=token not in factory.invalid)
        created.append(client)
        return client

    factory.invalid = set()
    factory.created = created
    return factory


@pytest.fixture()
def eventually():
    return _eventually
