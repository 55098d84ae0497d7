"""The manager bot — the administrative surface of the whole relay.

Anyone may ``/newbot <token>`` to start relaying through their own bot; the
chat that sent the command becomes that bot's operator.  ``/deletebot`` is
limited to the bot's operator and the configured admins.
"""

from __future__ import annotations

from typing import Iterable

from core.logger import ForwardMeLogger
from core.store import StoreError
from relay import texts
from relay.commands import CommandRegistry
from relay.manager import BotManager, RegistrationCancelled
from sdk.client import PlatformClient, redact_token
from sdk.exceptions import InvalidCredentialError
from sdk.models import Message, Update

logger = ForwardMeLogger.get_logger()

manager_commands: CommandRegistry[ManagerBot] = CommandRegistry()


class ManagerBot:
    """Routes the manager bot's updates to :data:`manager_commands`."""

    def __init__(
        self,
        manager: BotManager,
        client: PlatformClient,
        admin_ids: Iterable[int] = (),
        own_token: str | None = None,
    ) -> None:
        self.manager = manager
        self.client = client
        self.admin_ids = frozenset(admin_ids)
        self.own_token = own_token

    async def handle_update(self, update: Update) -> None:
        message = update.message
        if message is None or message.from_field is None:
            return
        command = message.command
        if command is None:
            return
        logger.info("Manager command received", extra={"user_id": message.from_field.id, "chat_id": message.chat.id, "command": command})
        if not await manager_commands.dispatch(command, self, message):
            await self.client.send_text(message.chat.id, texts.MANAGER_HELP)


@manager_commands.register("/start", description="Show usage")
@manager_commands.register("/help", description="Show usage")
async def handle_help(bot: ManagerBot, message: Message) -> None:
    await bot.client.send_text(message.chat.id, texts.MANAGER_HELP)


@manager_commands.register("/newbot", description="Start relaying through your bot")
async def handle_newbot(bot: ManagerBot, message: Message) -> None:
    """Handle /newbot <token> — register the token with the sender's chat as operator."""
    chat_id = message.chat.id
    token = message.command_args
    if not token:
        await bot.client.send_text(chat_id, texts.NEWBOT_USAGE)
        return
    if token == bot.own_token:
        await bot.client.send_text(chat_id, texts.BOT_CREATE_FAILED.format(reason="that is the manager bot's own token"))
        return

    already_running = await bot.manager.get(token) is not None
    try:
        instance = await bot.manager.register(token, chat_id)
    except InvalidCredentialError as exc:
        await bot.client.send_text(chat_id, texts.BOT_CREATE_FAILED.format(reason=exc.reason))
        return
    except StoreError as exc:
        logger.error("Store failure during /newbot", extra={"bot": redact_token(token), "error": str(exc)})
        await bot.client.send_text(chat_id, texts.BOT_CREATE_FAILED.format(reason="storage error"))
        return
    except RegistrationCancelled:
        await bot.client.send_text(chat_id, texts.BOT_CREATE_FAILED.format(reason="the bot was deleted while it was being added"))
        return

    if already_running:
        await bot.client.send_text(chat_id, texts.BOT_ALREADY_RUNNING.format(token_hint=instance.token_hint))
    else:
        await bot.client.send_text(chat_id, texts.BOT_CREATED.format(username=instance.username or instance.token_hint))


@manager_commands.register("/deletebot", description="Stop and remove a bot")
async def handle_deletebot(bot: ManagerBot, message: Message) -> None:
    """Handle /deletebot <token> — only the bot's operator or an admin may delete it."""
    chat_id = message.chat.id
    token = message.command_args
    if not token:
        await bot.client.send_text(chat_id, texts.DELETEBOT_USAGE)
        return
    token_hint = redact_token(token)

    creator_id = await bot.manager.owner_of(token)
    requester = message.from_field.id if message.from_field else chat_id
    if creator_id is not None and chat_id != creator_id and requester not in bot.admin_ids:
        logger.warning("Unauthorised /deletebot attempt", extra={"bot": token_hint, "user_id": requester})
        await bot.client.send_text(chat_id, texts.BOT_DELETE_DENIED)
        return

    try:
        removed = await bot.manager.deregister(token)
    except StoreError as exc:
        logger.error("Store failure during /deletebot", extra={"bot": token_hint, "error": str(exc)})
        await bot.client.send_text(chat_id, texts.BOT_DELETE_FAILED.format(reason="storage error"))
        return
    template = texts.BOT_DELETED if removed else texts.BOT_NOT_FOUND
    await bot.client.send_text(chat_id, template.format(token_hint=token_hint))


@manager_commands.register("/mybots", description="List your bots")
async def handle_mybots(bot: ManagerBot, message: Message) -> None:
    chat_id = message.chat.id
    tokens = await bot.manager.tokens_for(chat_id)
    if not tokens:
        await bot.client.send_text(chat_id, texts.NO_BOTS)
        return
    lines = []
    for token in tokens:
        instance = await bot.manager.get(token)
        name = f"@{instance.username}" if instance and instance.username else redact_token(token)
        lines.append(f"• {name} ({redact_token(token)})")
    await bot.client.send_text(chat_id, texts.MY_BOTS.format(bots="\n".join(lines)))
