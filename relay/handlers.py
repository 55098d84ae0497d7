"""Operator command handlers for relay bots.

Each function handles one slash-command sent by a bot's operator and is
invoked by :class:`relay.router.Router` through :data:`operator_commands`.
Replies always go to the operator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.logger import ForwardMeLogger
from core.store import StoreError
from relay import texts
from relay.commands import CommandRegistry
from sdk.models import Message

if TYPE_CHECKING:
    from relay.router import Router

logger = ForwardMeLogger.get_logger()

operator_commands: CommandRegistry[Router] = CommandRegistry()


def _parse_user_id(raw: str) -> int | None:
    try:
        return int(raw.split()[0])
    except (ValueError, IndexError):
        return None


async def _target_from(router: Router, message: Message, command: str) -> int | None:
    """Parse the ``<user_id>`` argument, answering the operator on bad input."""
    args = message.command_args
    if not args:
        await router.client.send_text(router.creator_id, texts.USAGE.format(command=command))
        return None
    target_id = _parse_user_id(args)
    if target_id is None:
        await router.client.send_text(router.creator_id, texts.INVALID_USER_ID.format(value=args))
    return target_id


@operator_commands.register("/ban", description="Ban a user")
async def handle_ban(router: Router, message: Message) -> None:
    """Handle /ban <user_id>."""
    target_id = await _target_from(router, message, "/ban")
    if target_id is None:
        return
    logger.info("Operator invoked /ban", extra={"bot": router.token_hint, "target_id": target_id, "command": "/ban"})
    try:
        added = await router.bans.block(router.token, target_id)
    except StoreError as exc:
        logger.error("Failed to ban user", extra={"bot": router.token_hint, "target_id": target_id, "error": str(exc)})
        await router.client.send_text(router.creator_id, texts.STORE_FAILURE)
        return
    template = texts.BANNED if added else texts.ALREADY_BANNED
    await router.client.send_text(router.creator_id, template.format(user_id=target_id))


@operator_commands.register("/unban", description="Lift a ban and reset appeals")
async def handle_unban(router: Router, message: Message) -> None:
    """Handle /unban <user_id>."""
    target_id = await _target_from(router, message, "/unban")
    if target_id is None:
        return
    logger.info("Operator invoked /unban", extra={"bot": router.token_hint, "target_id": target_id, "command": "/unban"})
    try:
        removed = await router.bans.unblock(router.token, target_id)
    except StoreError as exc:
        logger.error("Failed to unban user", extra={"bot": router.token_hint, "target_id": target_id, "error": str(exc)})
        await router.client.send_text(router.creator_id, texts.STORE_FAILURE)
        return
    router.awaiting_appeal.discard(target_id)
    template = texts.UNBANNED if removed else texts.NOT_BANNED
    await router.client.send_text(router.creator_id, template.format(user_id=target_id))


@operator_commands.register("/getbans", description="List banned users")
async def handle_getbans(router: Router, message: Message) -> None:
    """Handle /getbans — send the current ban list to the operator."""
    try:
        blocked = await router.bans.list_blocked(router.token)
    except StoreError as exc:
        logger.error("Failed to read ban list", extra={"bot": router.token_hint, "error": str(exc)})
        await router.client.send_text(router.creator_id, texts.STORE_FAILURE)
        return
    if not blocked:
        await router.client.send_text(router.creator_id, texts.NO_BANS)
        return
    users = ", ".join(str(uid) for uid in blocked)
    await router.client.send_text(router.creator_id, texts.BAN_LIST.format(users=users))


@operator_commands.register("/help", description="Show operator commands")
async def handle_help(router: Router, message: Message) -> None:
    await router.client.send_text(router.creator_id, texts.OPERATOR_HELP)
