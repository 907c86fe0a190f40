"""Application errors and their mapping onto HTTP error responses."""

from __future__ import annotations

import logging
from datetime import datetime
from http import HTTPStatus
from typing import Any, Iterator

log = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Oops... что-то пошло не так"


class AppError(Exception):
    """Base class of the errors raised by the services."""

    default_message = "application error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(self.default_message if message is None else message)


class NotFoundError(AppError):
    """The requested row does not exist."""

    default_message = "запись не найдена"


class ValidationError(AppError):
    """The request failed validation."""

    default_message = "ошибка валидации"


class MarshallError(AppError):
    """The request body could not be decoded."""

    default_message = "ошибка маршалинга"


class ConflictError(AppError):
    """The row conflicts with an existing one."""

    default_message = "конфликт данных"


class ActionError(AppError):
    """An error raised while performing a named action."""

    def __init__(self, action: str, cause: BaseException) -> None:
        super().__init__(f"{action}: {cause}")
        self.action = action
        self.cause = cause
        self.__cause__ = cause


def wrap_error(action: str, err: BaseException) -> ActionError:
    """Wrap err with the action during which it happened."""
    return ActionError(action, err)


def _chain(err: BaseException) -> Iterator[BaseException]:
    seen: set[int] = set()
    current: BaseException | None = err
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def _matches(err: BaseException, kind: type[BaseException]) -> bool:
    return any(isinstance(item, kind) for item in _chain(err))


def error_status(err: BaseException) -> HTTPStatus:
    """The HTTP status that err is reported with."""
    if _matches(err, NotFoundError):
        return HTTPStatus.NOT_FOUND
    if _matches(err, MarshallError) or _matches(err, ValidationError):
        return HTTPStatus.BAD_REQUEST
    if _matches(err, ConflictError):
        return HTTPStatus.CONFLICT
    return HTTPStatus.INTERNAL_SERVER_ERROR


def error_response(
    err: BaseException, path: str, now: datetime | None = None
) -> tuple[HTTPStatus, dict[str, Any]]:
    """Build the status and JSON body of the error response for a request to path."""
    log.error("%s", err)
    status = error_status(err)
    description = GENERIC_ERROR_MESSAGE if status == HTTPStatus.INTERNAL_SERVER_ERROR else str(err)
    moment = datetime.now() if now is None else now
    body = {
        "description": description,
        "errorCode": int(status),
        "meta": {"path": path, "timestamp": str(moment)},
    }
    return status, body


def fail(msg: str, err: BaseException) -> AppError:
    """Log msg together with err and return an error carrying both."""
    text = f"{msg}. Wrapped: {err}"
    log.error(text)
    error = AppError(text)
    error.__cause__ = err
    return error