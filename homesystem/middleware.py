"""WSGI middleware: bearer-token checks, trace ids and request/response logging."""

from __future__ import annotations

import io
import json
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Iterable
from urllib.parse import parse_qs

log = logging.getLogger(__name__)

ALLOWED_PATHS = ("/docs", "/public", "/spec")
TRACE_ID_KEY = "traceId"
LOGGER_KEY = "logger"
UNAUTHORIZED_MESSAGE = "unauthorized"

WsgiApp = Callable[[dict, Callable], Iterable[bytes]]


def is_allowed(path: str) -> bool:
    """Whether path may be served without a token."""
    return any(allowed in path for allowed in ALLOWED_PATHS)


def _unauthorized(environ: dict, start_response: Callable) -> list[bytes]:
    body = json.dumps(
        {
            "description": UNAUTHORIZED_MESSAGE,
            "errorCode": 401,
            "meta": {"path": environ.get("PATH_INFO", ""), "timestamp": str(datetime.now())},
        }
    ).encode("utf-8")
    start_response(
        "401 Unauthorized",
        [("Content-Type", "application/json"), ("Content-Length", str(len(body)))],
    )
    return [body]


class TokenIntrospectionMiddleware:
    """Rejects requests whose bearer token the introspection callable does not report active."""

    def __init__(self, app: WsgiApp, introspect: Callable[[str], Any]) -> None:
        self.app = app
        self.introspect = introspect

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        if not is_allowed(environ.get("PATH_INFO", "")):
            header = environ.get("HTTP_AUTHORIZATION", "")
            if not header.startswith("Bearer "):
                return _unauthorized(environ, start_response)
            token = header[len("Bearer "):]
            try:
                active = bool(self.introspect(token))
            except Exception as exc:
                log.warning("token introspection failed: %s", exc)
                active = False
            if not active:
                return _unauthorized(environ, start_response)
        return self.app(environ, start_response)


class TraceMiddleware:
    """Gives each request a trace id and a logger that carries it."""

    def __init__(self, app: WsgiApp, logger: logging.Logger | None = None) -> None:
        self.app = app
        self.logger = logger or log

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        trace_id = environ.get("HTTP_X_TRACE_ID") or str(uuid.uuid4())
        environ[TRACE_ID_KEY] = trace_id
        environ[LOGGER_KEY] = logging.LoggerAdapter(self.logger, {TRACE_ID_KEY: trace_id})
        return self.app(environ, start_response)


def _client_ip(environ: dict) -> str:
    forwarded = environ.get("HTTP_X_FORWARDED_FOR", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return environ.get("REMOTE_ADDR", "")


class RequestLogMiddleware:
    """Logs method, path, bodies, status and duration of every request."""

    def __init__(self, app: WsgiApp, logger: logging.Logger | None = None) -> None:
        self.app = app
        self.logger = logger or log

    def __call__(self, environ: dict, start_response: Callable) -> Iterable[bytes]:
        started = time.monotonic()
        try:
            length = int(environ.get("CONTENT_LENGTH") or 0)
        except ValueError:
            length = 0
        stream = environ.get("wsgi.input")
        request_body = stream.read(length) if stream is not None and length > 0 else b""
        environ["wsgi.input"] = io.BytesIO(request_body)

        status_line = ""
        response_body: list[bytes] = []

        def capture(status: str, headers: list, exc_info: Any = None) -> Callable[[bytes], Any]:
            nonlocal status_line
            status_line = status
            write = start_response(status, headers, exc_info) if exc_info else start_response(status, headers)

            def tee(data: bytes) -> Any:
                response_body.append(data)
                return write(data)

            return tee

        result = self.app(environ, capture)
        output: list[bytes] = []
        try:
            for chunk in result:
                output.append(chunk)
                response_body.append(chunk)
        finally:
            close = getattr(result, "close", None)
            if close is not None:
                close()

        routing_args = environ.get("wsgiorg.routing_args", ((), {}))
        self.logger.info(
            "HTTP request",
            extra={
                "http": {
                    "method": environ.get("REQUEST_METHOD", ""),
                    "path": environ.get("PATH_INFO", ""),
                    "query": parse_qs(environ.get("QUERY_STRING", "")),
                    "path_params": dict(routing_args[1]),
                    "request_body": request_body,
                    "status": int(status_line.split()[0]) if status_line else 0,
                    "response_body": b"".join(response_body),
                    "duration": time.monotonic() - started,
                    "client_ip": _client_ip(environ),
                }
            },
        )
        return output