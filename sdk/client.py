"""Telegram Bot API client — the relay's Platform Client.

:class:`TelegramClient` is a thin synchronous wrapper over ``requests`` for
the handful of endpoints the relay needs.  :class:`AsyncTelegramClient`
offloads those calls to threads, parses results into Pydantic models, and
implements the :class:`PlatformClient` capability set the relay core depends
on.  Sends are best-effort: failures are logged and reported as ``None`` /
``False``, never retried.  Long polls run on a daemon thread of their own,
outside the event loop's default executor.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

import requests
from pydantic import ValidationError

from sdk.exceptions import APIException, InvalidCredentialError
from sdk.models import InlineKeyboardButton, InlineKeyboardMarkup, Message, User

# Child of the application logger so records share its JSON handlers.
_sdk_logger = logging.getLogger("forwardme.sdk")

DEFAULT_API_URL: str = "https://api.telegram.org"

# (button text, callback_data)
Action = Tuple[str, str]


def redact_token(token: str) -> str:
    """Return a log-safe form of a bot token (``123456:***``).

    The numeric bot id before the colon is public; the secret part is not.
    """
    bot_id, sep, _secret = token.partition(":")
    if not sep or not bot_id:
        return "***"
    return f"{bot_id}:***"


def _in_daemon_thread(name: str, func: Any, *args: Any, **kwargs: Any) -> asyncio.Future:
    """Run *func* on a new daemon thread and return a future for its result.

    Unlike :func:`asyncio.to_thread`, the call does not occupy a slot of the
    loop's default executor, and a call abandoned by cancellation is neither
    joined by ``asyncio.run`` nor at interpreter exit.
    """
    loop = asyncio.get_running_loop()
    future = loop.create_future()

    def _settle(result: Any, error: Optional[BaseException]) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(result)

    def _target() -> None:
        result, error = None, None
        try:
            result = func(*args, **kwargs)
        except Exception as exc:
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, result, error)
        except RuntimeError:
            # Loop already closed; nobody is waiting for this poll.
            pass

    threading.Thread(target=_target, name=name, daemon=True).start()
    return future


class TelegramClient:
    """Synchronous client for the Telegram Bot API endpoints used by the relay.

    Each public method corresponds to a Bot API endpoint and returns the
    decoded JSON body.  Non-2xx responses and ``"ok": false`` bodies raise
    :class:`APIException`.
    """

    _DEFAULT_TIMEOUT: int = 10

    def __init__(self, base_url: str, timeout: int = _DEFAULT_TIMEOUT) -> None:
        """Create a new client bound to *base_url*.

        Args:
            base_url: Full Bot API base URL (e.g. ``https://api.telegram.org/bot<token>``).
            timeout: Default request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()

    # ------------------------------------------------------------------
    #  Internal helpers
    # ------------------------------------------------------------------

    def _post(
        self,
        endpoint: str,
        payload: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Send a POST request and return the parsed JSON body.

        Raises:
            APIException: If the response status code is not 2xx or the body
                reports ``"ok": false``.
            requests.RequestException: On transport-level failures.
        """
        url = f"{self._base_url}/{endpoint.lstrip('/')}"
        response = self._session.post(url, json=payload, timeout=timeout or self._timeout)
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {"description": f"unexpected response body: {body!r:.200}"}
        if not response.ok or not body.get("ok", False):
            raise APIException(response.status_code, body)
        return body

    # ------------------------------------------------------------------
    #  Endpoints
    # ------------------------------------------------------------------

    def get_me(self) -> Dict[str, Any]:
        """A simple method for testing your bot's authentication token."""
        return self._post("getMe")

    def get_updates(
        self,
        offset: Optional[int] = None,
        timeout: int = 0,
        allowed_updates: Optional[List[str]] = None,
    ) -> Dict[str, Any]:
        """Receive incoming updates using long polling.

        The HTTP timeout is stretched past the long-poll *timeout* so the
        server, not the socket, ends an idle poll.
        """
        payload: Dict[str, Any] = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        if allowed_updates is not None:
            payload["allowed_updates"] = allowed_updates
        return self._post("getUpdates", payload, timeout=timeout + self._timeout)

    def send_message(
        self,
        chat_id: Union[int, str],
        text: str,
        reply_markup: Optional[Dict[str, Any]] = None,
        reply_to_message_id: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Send a text message."""
        payload: Dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if reply_to_message_id is not None:
            payload["reply_to_message_id"] = reply_to_message_id
        return self._post("sendMessage", payload)

    def forward_message(
        self,
        chat_id: Union[int, str],
        from_chat_id: Union[int, str],
        message_id: int,
    ) -> Dict[str, Any]:
        """Forward a message of any kind."""
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "from_chat_id": from_chat_id,
            "message_id": message_id,
        }
        return self._post("forwardMessage", payload)

    def answer_callback_query(self, callback_query_id: str, text: Optional[str] = None) -> Dict[str, Any]:
        """Answer a callback query sent from an inline keyboard."""
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text is not None:
            payload["text"] = text
        return self._post("answerCallbackQuery", payload)

    def close(self) -> None:
        """Release the pooled HTTP connections."""
        self._session.close()


class PlatformClient(Protocol):
    """Capabilities the relay core needs from a messaging platform."""

    token_hint: str

    async def validate_credential(self) -> User: ...  # noqa: E704

    async def receive_next(self, offset: Optional[int], timeout: int) -> List[Dict[str, Any]]: ...  # noqa: E704

    async def send_text(self, chat_id: int, text: str) -> Optional[Message]: ...  # noqa: E704

    async def send_with_actions(self, chat_id: int, text: str, actions: Sequence[Action]) -> Optional[Message]: ...  # noqa: E704

    async def forward(self, chat_id: int, from_chat_id: int, message_id: int) -> Optional[Message]: ...  # noqa: E704

    async def acknowledge_callback(self, callback_query_id: str, text: Optional[str] = None) -> bool: ...  # noqa: E704

    def close(self) -> None: ...  # noqa: E704


class AsyncTelegramClient:
    """Async, best-effort :class:`PlatformClient` for one bot token."""

    def __init__(self, token: str, api_url: str = DEFAULT_API_URL, timeout: int = 10) -> None:
        self.token_hint = redact_token(token)
        self._client = TelegramClient(f"{api_url.rstrip('/')}/bot{token}", timeout=timeout)

    async def _call(self, endpoint: str, func: Any, *args: Any, **kwargs: Any) -> Optional[Dict[str, Any]]:
        """Run *func* in a thread; log and swallow API or transport failures."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except APIException as exc:
            _sdk_logger.warning(f"{endpoint} rejected", extra={"bot": self.token_hint, "api_endpoint": endpoint, "status_code": exc.status_code, "api_response": exc.response_body})
        except requests.RequestException as exc:
            _sdk_logger.error(f"{endpoint} request error", extra={"bot": self.token_hint, "api_endpoint": endpoint, "error": str(exc)})
        return None

    @staticmethod
    def _message_from(body: Optional[Dict[str, Any]]) -> Optional[Message]:
        if body is None:
            return None
        try:
            return Message.model_validate(body.get("result") or {})
        except ValidationError as exc:
            _sdk_logger.warning("Unparseable message in API response", extra={"error": str(exc)})
            return None

    async def validate_credential(self) -> User:
        """Check the token with ``getMe`` and return the bot's own user.

        Raises:
            InvalidCredentialError: If Telegram rejects the token or cannot
                be reached.
        """
        try:
            body = await asyncio.to_thread(self._client.get_me)
            me = User.model_validate(body.get("result") or {})
        except APIException as exc:
            raise InvalidCredentialError(self.token_hint, str(exc)) from exc
        except requests.RequestException as exc:
            raise InvalidCredentialError(self.token_hint, f"Telegram unreachable: {exc}") from exc
        except ValidationError as exc:
            raise InvalidCredentialError(self.token_hint, "unexpected getMe response") from exc
        _sdk_logger.info("Bot token validated", extra={"bot": self.token_hint, "username": me.username})
        return me

    async def receive_next(self, offset: Optional[int], timeout: int) -> List[Dict[str, Any]]:
        """Long-poll for the next batch of raw updates.

        Raises:
            APIException: If Telegram answers with an error.
            requests.RequestException: On transport-level failures.
        """
        body = await _in_daemon_thread(
            f"poll-{self.token_hint}", self._client.get_updates, offset=offset, timeout=timeout,
        )
        return body.get("result", [])

    async def send_text(self, chat_id: int, text: str) -> Optional[Message]:
        body = await self._call("sendMessage", self._client.send_message, chat_id, text)
        return self._message_from(body)

    async def send_with_actions(self, chat_id: int, text: str, actions: Sequence[Action]) -> Optional[Message]:
        """Send *text* with one row of inline buttons built from *actions*."""
        markup = InlineKeyboardMarkup(
            inline_keyboard=[[InlineKeyboardButton(text=label, callback_data=data) for label, data in actions]]
        )
        body = await self._call(
            "sendMessage", self._client.send_message, chat_id, text,
            reply_markup=markup.model_dump(exclude_none=True),
        )
        return self._message_from(body)

    async def forward(self, chat_id: int, from_chat_id: int, message_id: int) -> Optional[Message]:
        body = await self._call("forwardMessage", self._client.forward_message, chat_id, from_chat_id, message_id)
        return self._message_from(body)

    async def acknowledge_callback(self, callback_query_id: str, text: Optional[str] = None) -> bool:
        """Acknowledge a callback query so the spinner disappears for the user."""
        body = await self._call("answerCallbackQuery", self._client.answer_callback_query, callback_query_id, text)
        return body is not None

    def close(self) -> None:
        self._client.close()
