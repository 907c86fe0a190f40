"""Shared-expense boards: domain records, preparation steps, SQL storage and presenters."""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from homesystem.errors import ConflictError, NotFoundError

log = logging.getLogger(__name__)

CREATE_BOARD = "create_board"
GET_BOARDS = "get_boards"

_BOARD_COLUMNS = "id, owner_id, name, currency, is_active"
_INSERT_BOARD = "insert into board (owner_id, name, currency) values (?, ?, ?)"
_SELECT_BOARD_BY_ID = f"select {_BOARD_COLUMNS} from board where id = ?"
_SELECT_ALL_BY_OWNER_ID = f"select {_BOARD_COLUMNS} from board where owner_id = ? order by id"
_SELECT_ID_BY_TG_USER_ID = "select id from participant where telegram_id = ?"

Preparer = Callable[[Any], Any]


@dataclass(frozen=True)
class Board:
    id: int
    owner_id: int
    name: str
    currency: str
    is_active: bool = True


@dataclass(frozen=True)
class BoardParticipant:
    board_id: int
    participant_id: int
    joined_at_utc: datetime


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Currency:
    id: int
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Expense:
    id: int
    title: str
    participant_id: int
    board_id: int
    amount: float
    created_at_utc: datetime
    category_id: int


@dataclass(frozen=True)
class ExpenseShare:
    expense_id: int
    participant_id: int
    share_amount: float


@dataclass(frozen=True)
class Participant:
    id: int
    keycloak_user_id: str
    telegram_id: int
    created_at_utc: datetime
    display_name: str = ""
    username: str = ""
    is_active: bool = True


@dataclass(frozen=True)
class CreateBoardRequest:
    """A request to create a board for a Telegram user; owner_id is filled in by preparation."""

    tg_user_id: int
    name: str
    currency: str
    owner_id: int = 0


class PrepareRegistry:
    """Named preparation steps that turn raw input into what a use case expects."""

    def __init__(self) -> None:
        self._preparers: dict[str, Preparer] = {}

    def register(self, name: str, preparer: Preparer) -> None:
        """Register preparer under name, replacing any earlier one."""
        self._preparers[name] = preparer

    def prepare(self, name: str, value: Any) -> Any:
        """Run the preparer registered under name on value."""
        preparer = self._preparers.get(name)
        if preparer is None:
            raise LookupError(f"preparer {name!r} not found")
        return preparer(value)


def make_create_board_preparer(participant_repo: "SqlParticipantRepository") -> Preparer:
    """A preparer that sets the owner of a board request from the user's participant id."""

    def prepare(value: Any) -> CreateBoardRequest:
        if not isinstance(value, CreateBoardRequest):
            raise TypeError("invalid input type for CreateBoardPreparer")
        owner_id = participant_repo.get_id_by_tg_user_id(value.tg_user_id)
        return dataclasses.replace(value, owner_id=owner_id)

    return prepare


def make_get_boards_preparer(participant_repo: "SqlParticipantRepository") -> Preparer:
    """A preparer that turns a Telegram user id into the participant id."""

    def prepare(value: Any) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("invalid input type for GetBoardsPreparer")
        return participant_repo.get_id_by_tg_user_id(value)

    return prepare


def _board(row: tuple) -> Board:
    return Board(
        id=row[0], owner_id=row[1], name=row[2], currency=row[3], is_active=bool(row[4])
    )


class SqlBoardRepository:
    """Boards kept in the board table of an SQL database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    def get_all_by_owner_id(self, owner_id: int) -> list[Board]:
        """Every board of the owner; raises NotFoundError when there is none."""
        rows = self._conn.execute(_SELECT_ALL_BY_OWNER_ID, (owner_id,)).fetchall()
        if not rows:
            raise NotFoundError()
        return [_board(row) for row in rows]

    def save_and_flush(self, request: CreateBoardRequest) -> Board:
        """Insert a board for request.owner_id and return the stored row."""
        try:
            with self._conn:
                cursor = self._conn.execute(
                    _INSERT_BOARD, (request.owner_id, request.name, request.currency)
                )
                row = self._conn.execute(_SELECT_BOARD_BY_ID, (cursor.lastrowid,)).fetchone()
        except sqlite3.IntegrityError as exc:
            if "UNIQUE" in str(exc).upper():
                log.warning("SqlBoardRepository.save_and_flush conflict: %s", exc)
                raise ConflictError() from exc
            raise
        return _board(row)


class SqlParticipantRepository:
    """Participants kept in the participant table of an SQL database."""

    def __init__(self, connection: sqlite3.Connection) -> None:
        self._conn = connection

    def get_id_by_tg_user_id(self, user_id: int) -> int:
        """The participant id of the Telegram user; raises NotFoundError if unknown."""
        row = self._conn.execute(_SELECT_ID_BY_TG_USER_ID, (user_id,)).fetchone()
        if row is None:
            raise NotFoundError()
        return row[0]


class BoardDelegate:
    """Creates and lists boards, preparing each request through the registry."""

    def __init__(
        self,
        board_repo: SqlBoardRepository,
        participant_repo: SqlParticipantRepository,
        registry: PrepareRegistry,
    ) -> None:
        self.board_repo = board_repo
        self.registry = registry
        registry.register(CREATE_BOARD, make_create_board_preparer(participant_repo))
        registry.register(GET_BOARDS, make_get_boards_preparer(participant_repo))

    def create_and_return_board(self, request: CreateBoardRequest) -> Board:
        """Create a board owned by the request's user and return it."""
        prepared = self.registry.prepare(CREATE_BOARD, request)
        return self.board_repo.save_and_flush(prepared)

    def all(self, tg_user_id: int) -> list[Board]:
        """Every board owned by the Telegram user."""
        owner_id = self.registry.prepare(GET_BOARDS, tg_user_id)
        return self.board_repo.get_all_by_owner_id(owner_id)


def _meta(path: str, now: datetime | None) -> dict[str, str]:
    moment = datetime.now() if now is None else now
    return {"path": path, "timestamp": str(moment)}


def _board_payload(board: Board) -> dict[str, Any]:
    return {"currency": board.currency, "name": board.name, "owner": board.owner_id}


def present_board(board: Board, path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for one created board."""
    return {"meta": _meta(path, now), "payload": _board_payload(board)}


def present_boards(boards: list[Board], path: str, now: datetime | None = None) -> dict[str, Any]:
    """The response body for a list of boards."""
    return {"meta": _meta(path, now), "payload": [_board_payload(board) for board in boards]}