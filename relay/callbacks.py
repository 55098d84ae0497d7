"""Callback-query handlers for inline keyboard buttons on relay bots.

Button payloads have the form ``<action>:<user_id>``:

* ``ban`` / ``unban`` — sent from the operator's "user started the bot"
  notice; honoured only when pressed by the operator.
* ``appeal`` — sent from a blocked user's notice; honoured only when pressed
  by that user.

Every query is acknowledged first so the client's spinner disappears.
Malformed or unauthorised payloads are logged and ignored.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.bans import BanState
from core.logger import ForwardMeLogger
from core.store import StoreError
from relay import texts
from sdk.models import CallbackQuery

if TYPE_CHECKING:
    from relay.router import Router

logger = ForwardMeLogger.get_logger()

BAN = "ban"
UNBAN = "unban"
APPEAL = "appeal"


def encode(action: str, user_id: int) -> str:
    """Build callback data for *action* on *user_id*."""
    return f"{action}:{user_id}"


def decode(data: str | None) -> tuple[str, int] | None:
    """Parse ``action:user_id`` callback data, or return ``None`` if malformed."""
    if not data:
        return None
    action, sep, raw_id = data.partition(":")
    if not sep or action not in (BAN, UNBAN, APPEAL):
        return None
    try:
        return action, int(raw_id)
    except ValueError:
        return None


async def handle_callback_query(router: Router, callback_query: CallbackQuery) -> None:
    """Dispatch one button press on a relay bot."""
    await router.client.acknowledge_callback(callback_query.id)

    presser_id = callback_query.from_field.id
    parsed = decode(callback_query.data)
    if parsed is None:
        logger.warning("Malformed callback data ignored", extra={"bot": router.token_hint, "user_id": presser_id, "data": callback_query.data})
        return
    action, subject_id = parsed
    logger.info("Callback query received", extra={"bot": router.token_hint, "user_id": presser_id, "action": action, "target_id": subject_id})

    if action in (BAN, UNBAN):
        if presser_id != router.creator_id:
            logger.warning("Non-operator pressed a moderation button", extra={"bot": router.token_hint, "user_id": presser_id, "action": action})
            return
        await _handle_moderation(router, action, subject_id)
    else:
        if presser_id != subject_id:
            logger.warning("Appeal button pressed by another user", extra={"bot": router.token_hint, "user_id": presser_id, "target_id": subject_id})
            return
        await _handle_appeal_trigger(router, subject_id)


async def _handle_moderation(router: Router, action: str, user_id: int) -> None:
    try:
        if action == BAN:
            changed = await router.bans.block(router.token, user_id)
            template = texts.BANNED if changed else texts.ALREADY_BANNED
        else:
            changed = await router.bans.unblock(router.token, user_id)
            router.awaiting_appeal.discard(user_id)
            template = texts.UNBANNED if changed else texts.NOT_BANNED
    except StoreError as exc:
        logger.error("Moderation button failed", extra={"bot": router.token_hint, "action": action, "target_id": user_id, "error": str(exc)})
        await router.client.send_text(router.creator_id, texts.STORE_FAILURE)
        return
    await router.client.send_text(router.creator_id, template.format(user_id=user_id))


async def _handle_appeal_trigger(router: Router, user_id: int) -> None:
    """Arm the appeal session for *user_id* if they may still appeal."""
    state = await router.bans.state(router.token, user_id)
    if state is BanState.PERMANENTLY_BLOCKED:
        await router.client.send_text(user_id, texts.PERMANENT_BLOCK_NOTICE)
        return
    if state is BanState.CLEAR:
        await router.client.send_text(user_id, texts.NOT_BLOCKED)
        return
    if await router.client.send_text(user_id, texts.APPEAL_PROMPT) is None:
        logger.warning("Appeal prompt not delivered, session not armed", extra={"bot": router.token_hint, "user_id": user_id})
        return
    router.awaiting_appeal.add(user_id)
    logger.info("Awaiting appeal text", extra={"bot": router.token_hint, "user_id": user_id})
