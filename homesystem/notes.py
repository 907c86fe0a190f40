"""Notes kept per Telegram user: storage, the save/get/delete use cases and response bodies."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping

from homesystem.errors import ActionError, MarshallError, NotFoundError, wrap_error

_CREATE_TABLE = """
create table if not exists note (
    id integer primary key autoincrement,
    account_id integer,
    telegram_id integer not null,
    name text not null,
    link text not null default '',
    description text not null default ''
)
"""
_COLUMNS = "id, account_id, telegram_id, name, link, description"
_SELECT_BY_NAME = f"select {_COLUMNS} from note where name = ? order by id limit 1"
_SELECT_BY_ID = f"select {_COLUMNS} from note where id = ?"
_SELECT_BY_TG_ID = f"select {_COLUMNS} from note where telegram_id = ? order by id"
_INSERT_NOTE = (
    "insert into note (account_id, telegram_id, name, link, description) values (?, ?, ?, ?, ?)"
)
_DELETE_BY_TG_ID = "delete from note where telegram_id = ?"


@dataclass(frozen=True)
class Note:
    id: int
    account_id: int | None
    telegram_id: int
    name: str
    link: str
    description: str


@dataclass(frozen=True)
class CreateNoteDto:
    tg_id: int
    name: str
    description: str
    link: str


def string_or_default(value: str | None, default: str) -> str:
    """value itself, or default when value is None."""
    return value if value is not None else default


def fetch_one(connection: sqlite3.Connection, query: str, action: str, *args: Any) -> Any:
    """The single row of query; raises ActionError wrapping NotFoundError when there is none."""
    try:
        row = connection.execute(query, args).fetchone()
    except sqlite3.Error as exc:
        raise wrap_error(action, exc) from exc
    if row is None:
        raise wrap_error(action, NotFoundError())
    return row


def fetch_all(connection: sqlite3.Connection, query: str, action: str, *args: Any) -> list[Any]:
    """Every row of query; an empty list when there is none."""
    try:
        return connection.execute(query, args).fetchall()
    except sqlite3.Error as exc:
        raise wrap_error(action, exc) from exc


def execute(connection: sqlite3.Connection, query: str, action: str, *args: Any) -> sqlite3.Cursor:
    """Run a statement in its own transaction and return its cursor."""
    try:
        with connection:
            return connection.execute(query, args)
    except sqlite3.Error as exc:
        raise wrap_error(action, exc) from exc


def _note(row: Any) -> Note:
    return Note(
        id=row[0],
        account_id=row[1],
        telegram_id=row[2],
        name=row[3],
        link=row[4],
        description=row[5],
    )


class NoteRepository:
    """Notes kept in the note table of an SQLite database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection
        with self._conn:
            self._conn.execute(_CREATE_TABLE)

    def exist_by_name(self, name: str) -> Note:
        """The first note with this name; raises ActionError wrapping NotFoundError otherwise."""
        return _note(fetch_one(self._conn, _SELECT_BY_NAME, "NoteRepository.ExistByName", name))

    def save(self, note: Note) -> Note:
        """Insert the note and return it as stored, with its new id."""
        cursor = execute(
            self._conn,
            _INSERT_NOTE,
            "NoteRepository.Save",
            note.account_id,
            note.telegram_id,
            note.name,
            note.link,
            note.description,
        )
        return _note(fetch_one(self._conn, _SELECT_BY_ID, "NoteRepository.Save", cursor.lastrowid))

    def get_notes_by_tg_id(self, tg_id: int) -> list[Note]:
        """Every note of the Telegram user, oldest first."""
        rows = fetch_all(self._conn, _SELECT_BY_TG_ID, "NoteRepository.GetNotesByTgId", tg_id)
        return [_note(row) for row in rows]

    def delete_notes_by_tg_id(self, tg_id: int) -> int:
        """Delete every note of the Telegram user and return how many went."""
        cursor = execute(self._conn, _DELETE_BY_TG_ID, "NoteRepository.DeleteNotesByTgId", tg_id)
        return cursor.rowcount


class NoteService:
    """Saves, lists and deletes the notes of Telegram users."""

    def __init__(self, repository: NoteRepository) -> None:
        self.repository = repository

    def save(self, dto: CreateNoteDto) -> Note:
        """The existing note with the dto's name, or a new one made from the dto."""
        try:
            return self.repository.exist_by_name(dto.name)
        except ActionError as exc:
            if not isinstance(exc.cause, NotFoundError):
                raise
        return self.repository.save(
            Note(
                id=0,
                account_id=None,
                telegram_id=dto.tg_id,
                name=dto.name,
                link=dto.link,
                description=dto.description,
            )
        )

    def get_by_tg_id(self, tg_id: int) -> list[Note]:
        """Every note of the Telegram user."""
        return self.repository.get_notes_by_tg_id(tg_id)

    def delete_by_tg_id(self, tg_id: int) -> None:
        """Delete every note of the Telegram user."""
        self.repository.delete_notes_by_tg_id(tg_id)


def dto_from_request(data: Mapping[str, Any]) -> CreateNoteDto:
    """The dto of a create-note request body; raises MarshallError when a field is missing."""
    missing = [key for key in ("tgId", "name", "description", "link") if data.get(key) is None]
    if missing:
        raise MarshallError(f"ошибка маршалинга: нет полей {', '.join(missing)}")
    try:
        tg_id = int(data["tgId"])
    except (TypeError, ValueError) as exc:
        raise MarshallError() from exc
    return CreateNoteDto(
        tg_id=tg_id,
        name=str(data["name"]),
        description=str(data["description"]),
        link=str(data["link"]),
    )


def _meta(path: str, now: datetime | None) -> dict[str, str]:
    moment = datetime.now() if now is None else now
    return {"path": path, "timestamp": str(moment)}


def _note_payload(note: Note) -> dict[str, Any]:
    return {"description": note.description, "id": note.id, "link": note.link, "name": note.name}


def present_note(note: Note, path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for one note."""
    return {"payload": _note_payload(note), "meta": _meta(path, now)}


def present_notes(notes: list[Note], path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for a list of notes."""
    return {"payload": [_note_payload(note) for note in notes], "meta": _meta(path, now)}