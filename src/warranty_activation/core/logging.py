from __future__ import annotations

import contextvars
import json
import logging
import os
import time
import uuid
from datetime import datetime, timezone
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

SERVICE_LOGGER = "warranty_activation"

# Correlation ids stamped onto every event emitted while they are bound.
_CONTEXT: dict[str, contextvars.ContextVar[str | None]] = {
    name: contextvars.ContextVar(name, default=None)
    for name in ("request_id", "user_id", "celery_task_id", "reconcile_run_id")
}

_configured = False


def _utc_ts(created: float) -> str:
    return (
        datetime.fromtimestamp(created, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class JsonFormatter(logging.Formatter):
    """One JSON object per line; event fields sit at the top level."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": _utc_ts(record.created),
            "level": record.levelname,
            "logger": record.name,
            "event": getattr(record, "event", None) or record.getMessage(),
        }
        payload.update(getattr(record, "fields", None) or {})
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=True)


def configure_logging() -> None:
    global _configured  # noqa: PLW0603
    if _configured:
        return
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger(SERVICE_LOGGER)
    root.setLevel(level)
    root.handlers = [handler]
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(name)


def _bind(name: str, value: str | None) -> contextvars.Token:
    return _CONTEXT[name].set(value)


def _unbind(name: str, token: contextvars.Token) -> None:
    _CONTEXT[name].reset(token)


def set_user_context(user_id: str | None) -> None:
    # Reset along with the request id when the request ends.
    _CONTEXT["user_id"].set(user_id)


def set_task_context(task_id: str | None) -> contextvars.Token:
    return _bind("celery_task_id", task_id)


def reset_task_context(token: contextvars.Token) -> None:
    _unbind("celery_task_id", token)


def set_run_context(run_id: str | None) -> contextvars.Token:
    return _bind("reconcile_run_id", run_id)


def reset_run_context(token: contextvars.Token) -> None:
    _unbind("reconcile_run_id", token)


def _event_fields(fields: dict[str, Any]) -> dict[str, Any]:
    merged = {name: var.get() for name, var in _CONTEXT.items()}
    merged.update(fields)
    return {key: value for key, value in merged.items() if value is not None}


def log_event(
    logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any
) -> None:
    logger.log(level, event, extra={"event": event, "fields": _event_fields(fields)})


def log_exception(logger: logging.Logger, event: str, **fields: Any) -> None:
    """Like ``log_event`` at ERROR, with the active traceback attached."""
    logger.error(
        event, exc_info=True, extra={"event": event, "fields": _event_fields(fields)}
    )


def monotonic_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds an ``x-request-id`` per request and logs its outcome."""

    async def dispatch(self, request: Request, call_next) -> Response:
        logger = get_logger(__name__)
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
        request_token = _bind("request_id", request_id)
        user_token = _bind("user_id", None)
        start = time.monotonic()
        try:
            response = await call_next(request)
        except Exception:
            log_exception(
                logger,
                "http.request.error",
                method=request.method,
                path=request.url.path,
                duration_ms=monotonic_ms(start),
            )
            raise
        else:
            response.headers["x-request-id"] = request_id
            log_event(
                logger,
                "http.request.finish",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=monotonic_ms(start),
            )
            return response
        finally:
            _unbind("user_id", user_token)
            _unbind("request_id", request_token)
