"""JSON logging for the API and the sync engine."""

from __future__ import annotations

import json
import logging
import logging.config
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Iterator

CAPTURE_WARNINGS_ENV_VAR = "COAUTHOR_CAPTURE_WARNINGS"

_BOUND_FIELDS: ContextVar[dict[str, Any]] = ContextVar("coauthor_log_fields", default={})

# Structured fields the services attach through ``extra=`` or ``log_context``.
LOG_FIELDS = (
    "service",
    "book_id",
    "chapter_id",
    "entry_id",
    "mutation_id",
    "operation",
    "version",
    "method",
    "route",
    "status_code",
    "latency_ms",
    "update_count",
    "created_count",
    "deleted_count",
    "superseded",
    "entries",
    "skip_chapter_sync",
    "backend",
    "action",
    "detail",
    "error",
)


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    return str(value)


class ContextFilter(logging.Filter):
    """Copy fields bound with :func:`log_context` onto each record.

    Values passed explicitly through ``extra=`` win over bound ones.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self.service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _BOUND_FIELDS.get().items():
            if not hasattr(record, key):
                setattr(record, key, value)
        if getattr(record, "service", None) is None:
            record.service = self.service_name
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line with the known structured fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in LOG_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                payload[key] = _jsonable(value)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True)


def setup_logging(
    service_name: str,
    level: str | int = "INFO",
    *,
    capture_warnings: bool | None = None,
) -> None:
    """Send every log record of the process to stdout as JSON.

    Calling it again replaces the previous configuration.
    """

    handler = {
        "class": "logging.StreamHandler",
        "stream": sys.stdout,
        "formatter": "json",
        "filters": ["context"],
    }
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": JsonFormatter}},
            "filters": {"context": {"()": ContextFilter, "service_name": service_name}},
            "handlers": {"stdout": handler},
            "root": {"level": level, "handlers": ["stdout"]},
            "loggers": {
                name: {"handlers": ["stdout"], "level": level, "propagate": False}
                for name in ("uvicorn", "uvicorn.error", "uvicorn.access")
            },
        }
    )

    if capture_warnings is None:
        capture_warnings = os.getenv(CAPTURE_WARNINGS_ENV_VAR, "").strip().lower() in {
            "1",
            "true",
            "yes",
        }
    logging.captureWarnings(capture_warnings)


@contextmanager
def log_context(**fields: Any) -> Iterator[None]:
    """Bind ``fields`` to every record logged inside the block.

    A ``None`` value unbinds a field inherited from an outer block.
    """

    bound = {**_BOUND_FIELDS.get(), **fields}
    token = _BOUND_FIELDS.set({key: value for key, value in bound.items() if value is not None})
    try:
        yield
    finally:
        _BOUND_FIELDS.reset(token)
