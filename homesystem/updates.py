"""Telegram update objects and the helpers that locate chats, messages and users in them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping


@dataclass(frozen=True)
class User:
    id: int
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> "User":
        return cls(
            id=int(data["id"]),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            username=data.get("username", ""),
        )


@dataclass(frozen=True)
class Chat:
    id: int
    first_name: str = ""
    last_name: str = ""
    username: str = ""

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> "Chat":
        return cls(
            id=int(data["id"]),
            first_name=data.get("first_name", ""),
            last_name=data.get("last_name", ""),
            username=data.get("username", ""),
        )


@dataclass(frozen=True)
class Message:
    id: int
    chat: Chat
    text: str = ""
    from_user: User | None = None

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> "Message":
        sender = data.get("from")
        return cls(
            id=int(data["message_id"]),
            chat=Chat._from_dict(data["chat"]),
            text=data.get("text", ""),
            from_user=User._from_dict(sender) if sender else None,
        )


@dataclass(frozen=True)
class CallbackQuery:
    id: str
    from_user: User
    data: str = ""
    message: Message | None = None

    @classmethod
    def _from_dict(cls, data: Mapping[str, Any]) -> "CallbackQuery":
        message = data.get("message")
        return cls(
            id=str(data.get("id", "")),
            from_user=User._from_dict(data["from"]),
            data=data.get("data", ""),
            message=Message._from_dict(message) if message else None,
        )


@dataclass(frozen=True)
class Update:
    message: Message | None = None
    callback_query: CallbackQuery | None = None
    update_id: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Update":
        """Build an update from its Bot API JSON form."""
        message = data.get("message")
        query = data.get("callback_query")
        return cls(
            message=Message._from_dict(message) if message else None,
            callback_query=CallbackQuery._from_dict(query) if query else None,
            update_id=int(data.get("update_id", 0)),
        )


def get_chat_message(update: Update) -> Message:
    """The message an update carries, or the one its callback button belongs to."""
    if update.message is not None:
        return update.message
    if update.callback_query is not None and update.callback_query.message is not None:
        return update.callback_query.message
    raise ValueError("update carries no message")


def get_chat_and_msg_id(update: Update) -> tuple[int, int]:
    """The chat id and message id of the update's message."""
    message = get_chat_message(update)
    return message.chat.id, message.id


def get_user_id(update: Update) -> int:
    """The id of the user who pressed the button or sent the message."""
    if update.callback_query is not None:
        return update.callback_query.from_user.id
    if update.message is not None and update.message.from_user is not None:
        return update.message.from_user.id
    raise ValueError("update carries no user")