"""Per-chat record of the messages a conversation has exchanged."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class MsgType(str, Enum):
    """Who sent a message: the user or the bot."""

    USER = "USER"
    BOT = "BOT"


@dataclass(frozen=True)
class StoredMessage:
    id: int
    text: str
    msg_type: MsgType


class MessageStorage:
    """Messages kept per Telegram chat, in the order they were added."""

    def __init__(self) -> None:
        self._messages: dict[int, list[StoredMessage]] = {}

    def add(self, tg_id: int, message: StoredMessage) -> None:
        """Append a message to the chat's record."""
        self._messages.setdefault(tg_id, []).append(message)

    def get_all(self, tg_id: int) -> list[StoredMessage]:
        """A copy of the chat's messages; empty when none were stored."""
        return list(self._messages.get(tg_id, ()))

    def clear_all(self, tg_id: int) -> None:
        """Forget every message of the chat."""
        self._messages.pop(tg_id, None)