import sqlite3
from datetime import datetime

import pytest

from homesystem.boards import (
    Board,
    BoardDelegate,
    CreateBoardRequest,
    PrepareRegistry,
    SqlBoardRepository,
    SqlParticipantRepository,
    make_create_board_preparer,
    make_get_boards_preparer,
    present_board,
    present_boards,
)
from homesystem.errors import ConflictError, NotFoundError

SCHEMA = """
create table participant (
    id integer primary key autoincrement,
    keycloak_user_id text not null unique,
    telegram_id integer not null unique
);
create table board (
    id integer primary key autoincrement,
    owner_id integer not null,
    name text not null,
    currency text not null,
    is_active integer not null default 1,
    unique (owner_id, name)
);
"""


@pytest.fixture
def conn():
    connection = sqlite3.connect(":memory:")
    connection.executescript(SCHEMA)
    yield connection
    connection.close()


def add_participant(conn, keycloak_id, tg_id):
    with conn:
        return conn.execute(
            "insert into participant (keycloak_user_id, telegram_id) values (?, ?)", (keycloak_id, tg_id)
        ).lastrowid


@pytest.fixture
def delegate(conn):
    return BoardDelegate(SqlBoardRepository(conn), SqlParticipantRepository(conn), PrepareRegistry())


def test_registry_runs_named_preparer():
    registry = PrepareRegistry()
    registry.register("double", lambda value: value * 2)
    assert registry.prepare("double", 21) == 42


def test_registry_missing_preparer():
    with pytest.raises(LookupError, match="preparer 'x' not found"):
        PrepareRegistry().prepare("x", 1)


def test_participant_lookup(conn):
    pid = add_participant(conn, "kc-1", 500)
    repo = SqlParticipantRepository(conn)
    assert repo.get_id_by_tg_user_id(500) == pid
    with pytest.raises(NotFoundError):
        repo.get_id_by_tg_user_id(501)


def test_create_board_preparer_fills_owner(conn):
    pid = add_participant(conn, "kc-1", 500)
    prepare = make_create_board_preparer(SqlParticipantRepository(conn))
    request = CreateBoardRequest(tg_user_id=500, name="Trip", currency="RUB")
    prepared = prepare(request)
    assert prepared.owner_id == pid
    assert prepared.name == "Trip"
    assert request.owner_id == 0


def test_preparers_reject_wrong_input(conn):
    repo = SqlParticipantRepository(conn)
    with pytest.raises(TypeError):
        make_create_board_preparer(repo)(500)
    with pytest.raises(TypeError):
        make_get_boards_preparer(repo)("500")


def test_get_boards_preparer_unknown_user(conn):
    with pytest.raises(NotFoundError):
        make_get_boards_preparer(SqlParticipantRepository(conn))(999)


def test_save_and_list_boards(conn):
    repo = SqlBoardRepository(conn)
    first = repo.save_and_flush(CreateBoardRequest(tg_user_id=1, name="A", currency="RUB", owner_id=3))
    second = repo.save_and_flush(CreateBoardRequest(tg_user_id=1, name="B", currency="USD", owner_id=3))
    assert first.owner_id == 3 and first.is_active is True
    assert repo.get_all_by_owner_id(3) == [first, second]


def test_list_empty_raises(conn):
    with pytest.raises(NotFoundError):
        SqlBoardRepository(conn).get_all_by_owner_id(3)


def test_duplicate_board_conflicts(conn):
    repo = SqlBoardRepository(conn)
    request = CreateBoardRequest(tg_user_id=1, name="A", currency="RUB", owner_id=3)
    repo.save_and_flush(request)
    with pytest.raises(ConflictError):
        repo.save_and_flush(request)


def test_delegate_creates_and_lists(conn, delegate):
    pid = add_participant(conn, "kc-1", 700)
    board = delegate.create_and_return_board(CreateBoardRequest(tg_user_id=700, name="Home", currency="EUR"))
    assert board.owner_id == pid
    assert delegate.all(700) == [board]


def test_delegate_unknown_user(delegate):
    with pytest.raises(NotFoundError):
        delegate.create_and_return_board(CreateBoardRequest(tg_user_id=1, name="X", currency="RUB"))
    with pytest.raises(NotFoundError):
        delegate.all(1)


def test_present_board():
    now = datetime(2024, 1, 2, 3, 4, 5)
    board = Board(id=1, owner_id=9, name="Trip", currency="RUB")
    body = present_board(board, "/boards", now)
    assert body == {
        "meta": {"path": "/boards", "timestamp": str(now)},
        "payload": {"currency": "RUB", "name": "Trip", "owner": 9},
    }


def test_present_boards_keeps_order():
    now = datetime(2024, 1, 2)
    boards = [Board(1, 9, "A", "RUB"), Board(2, 9, "B", "USD")]
    body = present_boards(boards, "/boards/9", now)
    assert [item["name"] for item in body["payload"]] == ["A", "B"]
    assert body["meta"]["path"] == "/boards/9"
    assert present_boards([], "/p", now)["payload"] == []