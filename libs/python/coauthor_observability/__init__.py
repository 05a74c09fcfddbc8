"""Shared observability helpers used across Book Co-Author services."""

from .logging import setup_logging, log_context
from .metrics import (
    setup_fastapi_metrics,
    observe_sync_duration,
    record_coalesced_flush,
    record_sync_failure,
)

__all__ = [
    "setup_logging",
    "log_context",
    "setup_fastapi_metrics",
    "observe_sync_duration",
    "record_coalesced_flush",
    "record_sync_failure",
]
