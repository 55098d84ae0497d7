"""Generic command registry — slash-command → handler mapping.

Each bot surface (the per-bot operator commands and the manager bot) owns
one :class:`CommandRegistry` instance and binds its handlers with the
``@register`` decorator, so the command word, its ``/help`` description and
the handler live in one place.

Handlers receive a *context* object (the surface that owns the registry)
and the triggering :class:`~sdk.models.Message`.
"""

from __future__ import annotations

import dataclasses
from typing import Awaitable, Callable, Generic, TypeVar

from sdk.models import Message

C = TypeVar("C")  # context passed to every handler

Handler = Callable[[C, Message], Awaitable[None]]


@dataclasses.dataclass(frozen=True, slots=True)
class CommandEntry(Generic[C]):
    """Metadata for a single registered slash-command."""
    command: str              # e.g. "/ban"
    description: str          # shown in /help
    handler: Handler          # the async callable


class CommandRegistry(Generic[C]):
    """Command registry, generic over the handler context type *C*.

    Usage::

        operator_commands: CommandRegistry[Router] = CommandRegistry()

        @operator_commands.register("/getbans", description="List banned users")
        async def handle_getbans(router: Router, message: Message) -> None: ...

        # In the router:
        await operator_commands.dispatch(message.command, router, message)
    """

    def __init__(self) -> None:
        self._entries: dict[str, CommandEntry[C]] = {}

    def register(self, command: str, *, description: str) -> Callable[[Handler], Handler]:
        """Decorator that registers *handler* for *command*."""
        def decorator(func: Handler) -> Handler:
            self._entries[command] = CommandEntry(
                command=command,
                description=description,
                handler=func,
            )
            return func
        return decorator

    def get(self, command: str) -> CommandEntry[C] | None:
        """Return the entry for *command*, or ``None``."""
        return self._entries.get(command)

    def entries(self) -> dict[str, CommandEntry[C]]:
        """Return a copy of all registered commands."""
        return dict(self._entries)

    async def dispatch(self, command: str, context: C, message: Message) -> bool:
        """Look up *command* and invoke its handler.

        Returns ``True`` if a handler was found and called, ``False`` otherwise.
        """
        entry = self.get(command)
        if entry is None:
            return False
        await entry.handler(context, message)
        return True
