"""Tests for the Pydantic Telegram models."""

import sys
import os

import pytest
from pydantic import ValidationError

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from sdk.models import CallbackQuery, InlineKeyboardButton, InlineKeyboardMarkup, Message, Update, User


def _message(**fields) -> Message:
    data = {"message_id": 1, "date": 0, "chat": {"id": 42, "type": "private"}}
    data.update(fields)
    return Message.model_validate(data)


# ── User ─────────────────────────────────────────────────────────────────────


class TestUserModel:

    def test_minimal_user(self) -> None:
        u = User(id=1, is_bot=False, first_name="Alice")
        assert u.username is None

    def test_64_bit_id(self) -> None:
        u = User(id=9_007_199_254_740_991, is_bot=False, first_name="Big")
        assert u.id == 9_007_199_254_740_991

    def test_display_name(self) -> None:
        assert User(id=1, is_bot=False, first_name="Alice", username="alice").display_name == "@alice"
        assert User(id=1, is_bot=False, first_name="Alice", last_name="Smith").display_name == "Alice Smith"


# ── Message ──────────────────────────────────────────────────────────────────


class TestMessageModel:

    def test_from_alias(self) -> None:
        m = _message(**{"from": {"id": 7, "is_bot": False, "first_name": "Bob"}})
        assert m.from_field.id == 7

    def test_missing_chat_raises(self) -> None:
        with pytest.raises(ValidationError):
            Message.model_validate({"message_id": 1, "date": 0})

    def test_command(self) -> None:
        assert _message(text="/ban 42").command == "/ban"
        assert _message(text="/Ban@RelayBot 42").command == "/ban"
        assert _message(text="hello").command is None
        assert _message().command is None

    def test_command_args(self) -> None:
        assert _message(text="/ban   42  ").command_args == "42"
        assert _message(text="/getbans").command_args == ""

    def test_forwarded_sender_from_origin(self) -> None:
        m = _message(forward_origin={
            "type": "user",
            "date": 0,
            "sender_user": {"id": 42, "is_bot": False, "first_name": "Alice"},
        })
        assert m.forwarded_sender_id == 42

    def test_forwarded_sender_from_legacy_field(self) -> None:
        m = _message(forward_from={"id": 43, "is_bot": False, "first_name": "Bob"})
        assert m.forwarded_sender_id == 43

    def test_hidden_user_has_no_sender(self) -> None:
        m = _message(forward_origin={"type": "hidden_user", "date": 0, "sender_user_name": "Anon"})
        assert m.forwarded_sender_id is None

    def test_nested_reply(self) -> None:
        m = _message(text="hi", reply_to_message={"message_id": 9, "date": 0, "chat": {"id": 100, "type": "private"}})
        assert m.reply_to_message.message_id == 9


# ── Update / CallbackQuery ───────────────────────────────────────────────────


class TestUpdateModel:

    def test_minimal_update(self) -> None:
        u = Update(update_id=1)
        assert u.message is None
        assert u.callback_query is None

    def test_unknown_fields_ignored(self) -> None:
        u = Update.model_validate({"update_id": 1, "poll": {"id": "x"}})
        assert u.update_id == 1

    def test_callback_query(self) -> None:
        u = Update.model_validate({
            "update_id": 2,
            "callback_query": {
                "id": "cb",
                "from": {"id": 42, "is_bot": False, "first_name": "Alice"},
                "chat_instance": "ci",
                "data": "appeal:42",
            },
        })
        assert u.callback_query.from_field.id == 42
        assert u.callback_query.data == "appeal:42"

    def test_callback_query_requires_sender(self) -> None:
        with pytest.raises(ValidationError):
            CallbackQuery.model_validate({"id": "cb", "chat_instance": "ci"})


class TestInlineKeyboardMarkup:

    def test_dump_excludes_unset(self) -> None:
        markup = InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text="Ban", callback_data="ban:1")]])
        assert markup.model_dump(exclude_none=True) == {
            "inline_keyboard": [[{"text": "Ban", "callback_data": "ban:1"}]]
        }
