"""Pydantic data models for the subset of the Telegram Bot API the relay uses.

Every class corresponds to an object in the Bot API reference.  Unknown
fields sent by Telegram are ignored, so the models tolerate API additions.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """This object represents a Telegram user or bot."""

    id: int
    is_bot: bool
    first_name: str
    last_name: Optional[str] = None
    username: Optional[str] = None
    language_code: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def display_name(self) -> str:
        """``@username`` when set, otherwise the full name."""
        if self.username:
            return f"@{self.username}"
        return " ".join(part for part in (self.first_name, self.last_name) if part)


class Chat(BaseModel):
    """This object represents a chat."""

    id: int
    type: str
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class MessageOrigin(BaseModel):
    """Origin of a forwarded message (Bot API 7.0+ replacement for ``forward_from``)."""

    type: str
    date: int
    sender_user: Optional["User"] = None
    sender_user_name: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardButton(BaseModel):
    """One button of an inline keyboard."""

    text: str
    url: Optional[str] = None
    callback_data: Optional[str] = None

    model_config = {"populate_by_name": True}


class InlineKeyboardMarkup(BaseModel):
    """An inline keyboard that appears right next to the message it belongs to."""

    inline_keyboard: List[List["InlineKeyboardButton"]]

    model_config = {"populate_by_name": True}


class Message(BaseModel):
    """This object represents a message."""

    message_id: int
    date: int
    chat: "Chat"
    from_field: Optional["User"] = Field(None, alias="from")
    forward_from: Optional["User"] = None
    forward_origin: Optional["MessageOrigin"] = None
    forward_date: Optional[int] = None
    reply_to_message: Optional["Message"] = None
    text: Optional[str] = None
    caption: Optional[str] = None
    reply_markup: Optional["InlineKeyboardMarkup"] = None

    model_config = {"populate_by_name": True}

    @property
    def forwarded_sender_id(self) -> Optional[int]:
        """Id of the user this message was forwarded from, when Telegram discloses it."""
        if self.forward_origin is not None and self.forward_origin.sender_user is not None:
            return self.forward_origin.sender_user.id
        if self.forward_from is not None:
            return self.forward_from.id
        return None

    @property
    def command(self) -> Optional[str]:
        """Slash-command of the message (``/ban@MyBot 1`` → ``/ban``), if any."""
        if not self.text or not self.text.startswith("/"):
            return None
        return self.text.split()[0].split("@")[0].lower()

    @property
    def command_args(self) -> str:
        """Text after the command word, stripped."""
        if not self.text:
            return ""
        parts = self.text.split(maxsplit=1)
        return parts[1].strip() if len(parts) > 1 else ""


class CallbackQuery(BaseModel):
    """An incoming callback query from a callback button in an inline keyboard."""

    id: str
    from_field: "User" = Field(..., alias="from")
    chat_instance: str
    message: Optional["Message"] = None
    inline_message_id: Optional[str] = None
    data: Optional[str] = None

    model_config = {"populate_by_name": True}


class Update(BaseModel):
    """An incoming update. At most **one** of the optional parameters is present."""

    update_id: int
    message: Optional["Message"] = None
    edited_message: Optional["Message"] = None
    callback_query: Optional["CallbackQuery"] = None

    model_config = {"populate_by_name": True}
