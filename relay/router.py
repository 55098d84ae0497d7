"""Per-bot update router.

Classifies each update a relay bot receives and acts on it:

* messages from end users are relayed to the operator, unless the user is
  blocked (then they get a block notice) or has an appeal pending (then the
  message is consumed as the appeal text);
* messages from the operator are either commands (see
  :mod:`relay.handlers`) or replies to forwarded messages, which are routed
  back to the original sender;
* button presses go to :mod:`relay.callbacks`.

One :class:`Router` belongs to exactly one worker, so its pending-appeal
set and reply index need no locking.
"""

from collections import OrderedDict

from core.bans import BanBook, BanState
from core.logger import ForwardMeLogger
from relay import callbacks, texts
from relay.handlers import operator_commands
from sdk.client import PlatformClient
from sdk.models import Message, Update

logger = ForwardMeLogger.get_logger()


class ReplyIndex:
    """Bounded map from forwarded-copy message id to the original sender id.

    Telegram hides ``forward_from`` for users with forwarding privacy
    enabled, so the router remembers who each forwarded copy came from.
    Oldest entries are evicted first.
    """

    def __init__(self, max_size: int = 10_000) -> None:
        self._max_size = max_size
        self._senders: OrderedDict[int, int] = OrderedDict()

    def remember(self, forwarded_message_id: int, sender_id: int) -> None:
        self._senders[forwarded_message_id] = sender_id
        self._senders.move_to_end(forwarded_message_id)
        while len(self._senders) > self._max_size:
            self._senders.popitem(last=False)

    def lookup(self, forwarded_message_id: int) -> int | None:
        return self._senders.get(forwarded_message_id)

    def __len__(self) -> int:
        return len(self._senders)


class Router:
    """Relay logic for one bot instance."""

    def __init__(
        self,
        token: str,
        creator_id: int,
        client: PlatformClient,
        bans: BanBook,
    ) -> None:
        self.token = token
        self.creator_id = creator_id
        self.client = client
        self.bans = bans
        self.token_hint = client.token_hint
        self.awaiting_appeal: set[int] = set()
        self.replies = ReplyIndex()

    async def handle_update(self, update: Update) -> None:
        """Route a single update. Updates of other kinds are ignored."""
        if update.callback_query is not None:
            await callbacks.handle_callback_query(self, update.callback_query)
            return
        if update.message is None:
            logger.debug("Update has no message, skipping", extra={"bot": self.token_hint, "update_id": update.update_id})
            return
        await self.handle_message(update.message)

    async def handle_message(self, message: Message) -> None:
        sender = message.from_field
        if sender is None:
            logger.debug("Message without sender, skipping", extra={"bot": self.token_hint, "message_id": message.message_id})
            return

        if sender.id in self.awaiting_appeal:
            self.awaiting_appeal.discard(sender.id)
            if await self.bans.is_blocked(self.token, sender.id):
                await self._submit_appeal(message, sender.id)
                return
            logger.info("Appeal session dropped, user no longer blocked", extra={"bot": self.token_hint, "user_id": sender.id})

        if sender.id == self.creator_id:
            await self._handle_operator_message(message)
        else:
            await self._handle_user_message(message, sender.id)

    # ── Operator side ────────────────────────────────────────────────────

    async def _handle_operator_message(self, message: Message) -> None:
        command = message.command
        if command and await operator_commands.dispatch(command, self, message):
            return
        if message.reply_to_message is not None:
            await self._handle_reply(message)
            return
        logger.debug("Operator message is neither a command nor a reply", extra={"bot": self.token_hint, "message_id": message.message_id})

    async def _handle_reply(self, message: Message) -> None:
        """Deliver the operator's reply to the sender of the replied-to message."""
        original = message.reply_to_message
        target_id = self.replies.lookup(original.message_id) or original.forwarded_sender_id
        if target_id is None:
            logger.info("Reply target has no forwarding information, dropped", extra={"bot": self.token_hint, "message_id": original.message_id})
            return
        if not message.text:
            logger.info("Non-text operator reply, dropped", extra={"bot": self.token_hint, "user_id": target_id})
            return
        if await self.client.send_text(target_id, message.text) is not None:
            logger.info("Reply delivered", extra={"bot": self.token_hint, "user_id": target_id})

    # ── End-user side ────────────────────────────────────────────────────

    async def _handle_user_message(self, message: Message, user_id: int) -> None:
        state = await self.bans.state(self.token, user_id)
        if state is BanState.PERMANENTLY_BLOCKED:
            logger.info("Permanently blocked user wrote, not forwarded", extra={"bot": self.token_hint, "user_id": user_id})
            await self.client.send_text(user_id, texts.PERMANENT_BLOCK_NOTICE)
            return
        if state is BanState.BLOCKED:
            logger.info("Blocked user wrote, not forwarded", extra={"bot": self.token_hint, "user_id": user_id})
            await self.client.send_with_actions(
                user_id,
                texts.BLOCKED_NOTICE,
                [(texts.APPEAL_BUTTON, callbacks.encode(callbacks.APPEAL, user_id))],
            )
            return

        if message.command == "/start":
            await self._announce_new_user(message, user_id)
            return

        forwarded = await self.client.forward(self.creator_id, message.chat.id, message.message_id)
        if forwarded is None:
            return
        self.replies.remember(forwarded.message_id, user_id)
        logger.info("Message forwarded", extra={"bot": self.token_hint, "user_id": user_id, "forwarded_id": forwarded.message_id})

    async def _announce_new_user(self, message: Message, user_id: int) -> None:
        """Tell the operator a user started the bot, with Ban/Unban buttons."""
        name = message.from_field.display_name if message.from_field else str(user_id)
        await self.client.send_with_actions(
            self.creator_id,
            texts.USER_STARTED.format(name=name, user_id=user_id),
            [
                (texts.BAN_BUTTON, callbacks.encode(callbacks.BAN, user_id)),
                (texts.UNBAN_BUTTON, callbacks.encode(callbacks.UNBAN, user_id)),
            ],
        )

    async def _submit_appeal(self, message: Message, user_id: int) -> None:
        """Consume *message* as the pending appeal of *user_id*."""
        appeal_text = message.text or message.caption or "(no text)"
        outcome = await self.bans.submit_appeal(self.token, user_id)
        await self.client.send_text(
            self.creator_id,
            texts.APPEAL_RECEIVED.format(
                user_id=user_id, count=outcome.count, limit=self.bans.appeal_limit, text=appeal_text,
            ),
        )
        if outcome.exhausted:
            await self.client.send_text(user_id, texts.APPEAL_LIMIT_REACHED)
        else:
            remaining = self.bans.appeal_limit - outcome.count
            await self.client.send_text(user_id, texts.APPEAL_SENT.format(remaining=remaining))
