import logging
from datetime import datetime
from http import HTTPStatus

import pytest

from homesystem.errors import (
    ActionError,
    AppError,
    ConflictError,
    MarshallError,
    NotFoundError,
    ValidationError,
    error_response,
    error_status,
    fail,
    wrap_error,
)


def test_default_messages():
    assert str(NotFoundError()) == "запись не найдена"
    assert str(ValidationError()) == "ошибка валидации"
    assert str(MarshallError()) == "ошибка маршалинга"


def test_wrap_error_keeps_action_and_cause():
    cause = RuntimeError("boom")
    wrapped = wrap_error("select notes", cause)
    assert isinstance(wrapped, ActionError)
    assert wrapped.action == "select notes"
    assert wrapped.__cause__ is cause
    assert str(wrapped).startswith("select notes")
    assert str(wrapped).endswith(str(cause))


@pytest.mark.parametrize(
    "err, status",
    [
        (NotFoundError(), HTTPStatus.NOT_FOUND),
        (ValidationError(), HTTPStatus.BAD_REQUEST),
        (MarshallError(), HTTPStatus.BAD_REQUEST),
        (ConflictError(), HTTPStatus.CONFLICT),
        (RuntimeError("x"), HTTPStatus.INTERNAL_SERVER_ERROR),
    ],
)
def test_error_status(err, status):
    assert error_status(err) == status


def test_status_found_through_wrapping():
    wrapped = wrap_error("outer", wrap_error("inner", NotFoundError()))
    assert error_status(wrapped) == HTTPStatus.NOT_FOUND


def test_error_response_for_known_error():
    now = datetime(2024, 5, 1, 12, 0, 0)
    err = NotFoundError()
    status, body = error_response(err, "/notes/1", now)
    assert status == HTTPStatus.NOT_FOUND
    assert body["errorCode"] == int(status)
    assert body["description"] == str(err)
    assert body["meta"] == {"path": "/notes/1", "timestamp": str(now)}


def test_error_response_hides_unknown_error():
    status, body = error_response(RuntimeError("db password leaked"), "/notes")
    assert status == HTTPStatus.INTERNAL_SERVER_ERROR
    assert body["description"] == "Oops... что-то пошло не так"


def test_fail_logs_and_returns_error(caplog):
    cause = ValueError("bad input")
    with caplog.at_level(logging.ERROR, logger="homesystem.errors"):
        error = fail("cannot save", cause)
    assert isinstance(error, AppError)
    assert error.__cause__ is cause
    assert "cannot save" in str(error)
    assert "Wrapped: " in str(error)
    assert str(error) in caplog.text