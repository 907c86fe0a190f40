"""Persistent record of each user's last command and the dispatcher of free-text input."""

from __future__ import annotations

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from homesystem.messaging import PARSE_MODE_HTML, Bot
from homesystem.updates import Update, get_chat_and_msg_id

log = logging.getLogger(__name__)

_CREATE_TABLE = """
create table if not exists user_action (
    id integer primary key autoincrement,
    telegram_user_id integer not null,
    need_user_input integer not null,
    last_sent_message_id integer not null,
    command_name text not null,
    is_running integer not null
)
"""
_COLUMNS = "id, telegram_user_id, need_user_input, last_sent_message_id, command_name, is_running"
_SELECT_BY_TG_ID = f"select {_COLUMNS} from user_action where telegram_user_id = ? order by id limit 1"
_INSERT_ACTION = (
    "insert into user_action (telegram_user_id, need_user_input, last_sent_message_id, "
    "command_name, is_running) values (?, ?, ?, ?, ?)"
)
_UPDATE_BY_TG_ID = (
    "update user_action set need_user_input = ?, last_sent_message_id = ?, command_name = ?, "
    "is_running = ? where telegram_user_id = ?"
)
_UPDATE_STATE_BY_TG_ID = (
    "update user_action set need_user_input = ?, last_sent_message_id = ?, is_running = ? "
    "where telegram_user_id = ?"
)


@dataclass(frozen=True)
class UserAction:
    id: int
    telegram_user_id: int
    need_user_input: bool
    last_sent_message_id: int
    command_name: str
    is_running: bool


class BaseCommand(ABC):
    """A bot command that can take over the user's free-text input."""

    name: str = ""

    @abstractmethod
    def register_handler(self) -> Any:
        """Register the command's handlers with the bot."""

    @abstractmethod
    def proceed_user_answer(self, update: Update) -> None:
        """Handle text the user typed while the command waits for input."""

    @abstractmethod
    def clear_state(self, chat_id: int) -> None:
        """Forget whatever the command kept for the chat."""


class SqliteActionRepository:
    """Stores the last action of each Telegram user in an SQLite table."""

    def __init__(self, database: str | os.PathLike[str] | sqlite3.Connection = ":memory:") -> None:
        if isinstance(database, sqlite3.Connection):
            self._conn = database
        else:
            self._conn = sqlite3.connect(database)
        with self._conn:
            self._conn.execute(_CREATE_TABLE)

    def __enter__(self) -> "SqliteActionRepository":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def save_or_update(
        self,
        telegram_user_id: int,
        user_input: bool,
        last_sent_message_id: int,
        command_name: str,
        is_running: bool,
    ) -> UserAction:
        """Record the user's action, creating the row on first use."""
        with self._conn:
            existing = self._conn.execute(_SELECT_BY_TG_ID, (telegram_user_id,)).fetchone()
            if existing is not None:
                self._conn.execute(
                    _UPDATE_BY_TG_ID,
                    (user_input, last_sent_message_id, command_name, is_running, telegram_user_id),
                )
            else:
                self._conn.execute(
                    _INSERT_ACTION,
                    (telegram_user_id, user_input, last_sent_message_id, command_name, is_running),
                )
        saved = self.get_by_tg_id(telegram_user_id)
        assert saved is not None
        return saved

    def update(
        self,
        telegram_user_id: int,
        need_user_input: bool,
        last_sent_message_id: int,
        is_running: bool,
    ) -> None:
        """Change the input and running flags of the user's action, keeping its command."""
        with self._conn:
            self._conn.execute(
                _UPDATE_STATE_BY_TG_ID,
                (need_user_input, last_sent_message_id, is_running, telegram_user_id),
            )

    def get_by_tg_id(self, telegram_user_id: int) -> UserAction | None:
        """The user's recorded action, or None if there is none."""
        row = self._conn.execute(_SELECT_BY_TG_ID, (telegram_user_id,)).fetchone()
        if row is None:
            return None
        return UserAction(
            id=row[0],
            telegram_user_id=row[1],
            need_user_input=bool(row[2]),
            last_sent_message_id=row[3],
            command_name=row[4],
            is_running=bool(row[5]),
        )

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()


class ActionDispatcher:
    """Routes the user's free text to the command that last asked for it."""

    def __init__(self, repository: SqliteActionRepository, bot: Bot, unnecessary_action_text: str) -> None:
        self.repository = repository
        self.bot = bot
        self.unnecessary_action_text = unnecessary_action_text
        self._commands: dict[str, BaseCommand] = {}

    def add_command(self, command: BaseCommand) -> None:
        """Make command reachable under its name."""
        self._commands[command.name] = command

    def log(self, tg_id: int, command_name: str, user_input: bool, is_running: bool) -> UserAction:
        """Record that the user runs command_name and whether it waits for input."""
        return self.repository.save_or_update(tg_id, user_input, 0, command_name, is_running)

    def proceed(self, update: Update) -> None:
        """Pass the text on to the waiting command, or tell the user none is waiting."""
        user_id, _ = get_chat_and_msg_id(update)
        action = self.repository.get_by_tg_id(user_id)
        command_name = action.command_name if action is not None else ""
        command = self._commands.get(command_name)
        if action is None or not action.need_user_input:
            self.bot.send_message(
                user_id, self.unnecessary_action_text % command_name, parse_mode=PARSE_MODE_HTML
            )
            if command is not None:
                self.log(user_id, command.name, False, False)
                command.clear_state(user_id)
            return
        if command is None:
            raise LookupError(f"unknown command: {command_name!r}")
        command.proceed_user_answer(update)