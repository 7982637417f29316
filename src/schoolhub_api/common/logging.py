"""Process logging for the SchoolHub API.

Log lines are events (``realtime.connected``, ``maintenance.tick.completed``)
whose fields travel in ``extra``. Two renderings exist:

* ``console``: ``<time> <LEVEL> <logger> [cid=<id>] <event> key=value ...``
* ``json``: one object per line for log shippers.

The correlation id of the current HTTP request is kept in a context variable
bound by :class:`~schoolhub_api.common.middleware.RequestContextMiddleware`.
"""

from __future__ import annotations

import json
import logging
from contextvars import ContextVar
from datetime import UTC, datetime
from typing import Any

from schoolhub_api.settings import Settings

_correlation_id: ContextVar[str | None] = ContextVar("schoolhub_correlation_id", default=None)

# LogRecord attributes that are never treated as event fields.
_RESERVED = frozenset(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "correlation_id",
    "color_message",
}

# Third-party loggers routed through the root handler.
_FOREIGN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "alembic", "sqlalchemy")

_HANDLER_NAME = "schoolhub"


def _event_fields(record: logging.LogRecord) -> dict[str, Any]:
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in _RESERVED and not key.startswith("_")
    }


class _SchoolHubFormatter(logging.Formatter):
    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=UTC)
        return f"{stamp:%Y-%m-%dT%H:%M:%S}.{int(record.msecs):03d}Z"

    @staticmethod
    def correlation_of(record: logging.LogRecord) -> str:
        return getattr(record, "correlation_id", None) or _correlation_id.get() or "-"


class ConsoleLogFormatter(_SchoolHubFormatter):
    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)-5s %(name)s [cid=%(correlation_id)s] %(message)s"
        )

    def format(self, record: logging.LogRecord) -> str:
        record.correlation_id = self.correlation_of(record)
        line = super().format(record)
        fields = sorted(_event_fields(record).items())
        if not fields:
            return line
        rendered = " ".join(f"{key}={'null' if value is None else value}" for key, value in fields)
        return f"{line} {rendered}"


class JsonLogFormatter(_SchoolHubFormatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "service": "schoolhub-api",
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": self.correlation_of(record),
            **_event_fields(record),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, separators=(",", ":"))


def setup_logging(settings: Settings) -> None:
    """Install one stream handler on the root logger, replacing earlier ones.

    Calling it again (tests, ``schoolhub`` subcommands) reconfigures in place.
    """

    level = getattr(logging, settings.effective_log_level)
    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)
    formatter = JsonLogFormatter() if settings.log_format == "json" else ConsoleLogFormatter()
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [h for h in root.handlers if h.get_name() != _HANDLER_NAME]
    root.addHandler(handler)
    root.setLevel(level)

    for name in _FOREIGN_LOGGERS:
        foreign = logging.getLogger(name)
        foreign.handlers.clear()
        foreign.propagate = True
        foreign.disabled = False
        foreign.setLevel(level if name.startswith("uvicorn") else logging.NOTSET)

    # SQL traces are opt-in via SCHOOLHUB_DATABASE_LOG_LEVEL.
    sql_level = getattr(logging, settings.database_log_level or "WARNING")
    logging.getLogger("sqlalchemy").setLevel(sql_level)

    if not settings.access_log_enabled:
        access = logging.getLogger("uvicorn.access")
        access.propagate = False
        access.disabled = True


def bind_request_context(correlation_id: str | None) -> None:
    _correlation_id.set(correlation_id)


def clear_request_context() -> None:
    _correlation_id.set(None)


def log_context(
    *,
    user_id: str | None = None,
    role: Any = None,
    class_id: str | None = None,
    connection_id: str | None = None,
    **extra: Any,
) -> dict[str, Any]:
    """Build the ``extra`` mapping for an event log line.

    The common identity fields are normalised (roles logged by value) and
    omitted when ``None``; any other keyword is passed through unchanged::

        logger.info(
            "announcements.create.success",
            extra=log_context(user_id=principal.id, role=principal.role, announcement_id=row.id),
        )
    """

    context: dict[str, Any] = {}
    for key, value in (
        ("user_id", user_id),
        ("role", getattr(role, "value", role)),
        ("class_id", class_id),
        ("connection_id", connection_id),
    ):
        if value is not None:
            context[key] = str(value)
    context.update(extra)
    return context


__all__ = [
    "ConsoleLogFormatter",
    "JsonLogFormatter",
    "bind_request_context",
    "clear_request_context",
    "log_context",
    "setup_logging",
]
