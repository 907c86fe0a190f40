"""A small Telegram bot client: handler routing, Bot API calls and inline keyboards."""

from __future__ import annotations

import json
import logging
import secrets
import string
import threading
import urllib.error
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from homesystem.updates import Message, Update

log = logging.getLogger(__name__)

PARSE_MODE_HTML = "HTML"
CONFIRM_YES = "yes"
CONFIRM_NO = "no"

_PREFIX_ALPHABET = string.ascii_letters + string.digits

Transport = Callable[[str, dict], Any]
Handler = Callable[[Update], Any]


class TelegramError(Exception):
    """The Bot API refused a request or could not be reached."""


class HandlerType(Enum):
    MESSAGE_TEXT = "message_text"
    CALLBACK_QUERY_DATA = "callback_query_data"


class MatchType(Enum):
    EXACT = "exact"
    PREFIX = "prefix"
    CONTAINS = "contains"


@dataclass(frozen=True)
class InlineButton:
    text: str
    callback_data: str


Keyboard = Sequence[Sequence[InlineButton]]


class HttpTransport:
    """Sends Bot API methods as JSON POST requests to base_url."""

    def __init__(self, token: str, base_url: str, timeout: float = 60.0) -> None:
        self._token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def __call__(self, method: str, params: dict) -> Any:
        request = urllib.request.Request(
            f"{self.base_url}/bot{self._token}/{method}",
            data=json.dumps(params).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )
        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                payload = json.loads(response.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            try:
                payload = json.loads(exc.read().decode("utf-8"))
            except ValueError:
                raise TelegramError(str(exc)) from exc
        except urllib.error.URLError as exc:
            raise TelegramError(str(exc)) from exc
        if not payload.get("ok"):
            raise TelegramError(payload.get("description", f"{method} failed"))
        return payload.get("result")


@dataclass(frozen=True)
class _Route:
    handler_type: HandlerType
    pattern: str
    match_type: MatchType
    handler: Handler

    def matches(self, update: Update) -> bool:
        if self.handler_type is HandlerType.MESSAGE_TEXT:
            if update.message is None:
                return False
            value = update.message.text
        else:
            if update.callback_query is None:
                return False
            value = update.callback_query.data
        if self.match_type is MatchType.EXACT:
            return value == self.pattern
        if self.match_type is MatchType.PREFIX:
            return value.startswith(self.pattern)
        return self.pattern in value


def _markup(rows: Keyboard) -> dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": button.text, "callback_data": button.callback_data} for button in row]
            for row in rows
        ]
    }


def _to_message(result: Any) -> Message | None:
    if isinstance(result, Mapping) and "message_id" in result:
        return Update.from_dict({"message": result}).message
    return None


class Bot:
    """Routes incoming updates to registered handlers and calls the Bot API."""

    def __init__(self, transport: Transport) -> None:
        self._transport = transport
        self._routes: dict[str, _Route] = {}

    def register_handler(
        self, handler_type: HandlerType, pattern: str, match_type: MatchType, handler: Handler
    ) -> str:
        """Register handler and return its id; earlier registrations win."""
        handler_id = random_prefix(16)
        self._routes[handler_id] = _Route(handler_type, pattern, match_type, handler)
        return handler_id

    def process_update(self, update: Update) -> bool:
        """Run the first handler matching update; False when none matches."""
        for route in self._routes.values():
            if route.matches(update):
                route.handler(update)
                return True
        return False

    def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: Keyboard | None = None,
        parse_mode: str | None = None,
    ) -> Message | None:
        """Send text to a chat and return the message that was sent."""
        params: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            params["reply_markup"] = _markup(reply_markup)
        if parse_mode is not None:
            params["parse_mode"] = parse_mode
        return _to_message(self._transport("sendMessage", params))

    def edit_message_text(
        self, chat_id: int, message_id: int, text: str, reply_markup: Keyboard | None = None
    ) -> Message | None:
        """Replace the text, and optionally the keyboard, of a sent message."""
        params: dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        if reply_markup is not None:
            params["reply_markup"] = _markup(reply_markup)
        return _to_message(self._transport("editMessageText", params))

    def delete_message(self, chat_id: int, message_id: int) -> bool:
        """Delete one message from a chat."""
        return bool(self._transport("deleteMessage", {"chat_id": chat_id, "message_id": message_id}))

    def delete_messages(self, chat_id: int, message_ids: Sequence[int]) -> bool:
        """Delete several messages from a chat at once."""
        return bool(
            self._transport("deleteMessages", {"chat_id": chat_id, "message_ids": list(message_ids)})
        )

    def run_polling(self, stop: threading.Event | None = None, timeout: int = 30) -> None:
        """Fetch updates by long polling and dispatch them until stop is set."""
        stop = stop or threading.Event()
        offset = 0
        while not stop.is_set():
            try:
                updates = self._transport("getUpdates", {"offset": offset, "timeout": timeout}) or []
            except TelegramError as exc:
                log.warning("getUpdates failed: %s", exc)
                stop.wait(1)
                continue
            for raw in updates:
                update = Update.from_dict(raw)
                offset = max(offset, update.update_id + 1)
                try:
                    self.process_update(update)
                except Exception:
                    log.exception("handler failed for update %s", update.update_id)


def random_prefix(length: int = 16) -> str:
    """A random string of ASCII letters and digits, used to tag callback data."""
    if length < 0:
        raise ValueError("length must not be negative")
    return "".join(secrets.choice(_PREFIX_ALPHABET) for _ in range(length))


def start_keyboard(prefix: str) -> list[list[InlineButton]]:
    """The single button that starts a survey."""
    return [[InlineButton("Все понятно", prefix)]]


def confirm_keyboard(prefix: str) -> list[list[InlineButton]]:
    """Yes and no buttons that confirm a survey's answers."""
    return [[InlineButton("Да", prefix + CONFIRM_YES), InlineButton("Нет", prefix + CONFIRM_NO)]]


def menu_keyboard() -> list[list[InlineButton]]:
    """The main menu."""
    return [
        [InlineButton("Записки 📅", "open_notes"), InlineButton("Профиль 🤖", "open_profile")],
        [InlineButton("Учет совместных расходов 💸", "/expense_accounting")],
    ]


def notes_keyboard() -> list[list[InlineButton]]:
    """Actions on notes."""
    return [
        [InlineButton("Добавить запись 📄", "add_note")],
        [],
        [InlineButton("Просмотреть все записки 🗄️", "show_all_notes")],
        [],
        [InlineButton("Назад к меню 🤙", "open_menu")],
    ]


def profile_keyboard() -> list[list[InlineButton]]:
    """Actions under the profile view."""
    return [[InlineButton("Закрыть ❌", "close_profile"), InlineButton("Вызов меню 🤙", "open_menu")]]