"""Structured logging and sync metrics."""

from __future__ import annotations

import json
import logging
import logging.config

import pytest
from prometheus_client import REGISTRY

from coauthor_observability import log_context, record_coalesced_flush, record_sync_failure
from coauthor_observability.logging import (
    CAPTURE_WARNINGS_ENV_VAR,
    LOG_FIELDS,
    ContextFilter,
    JsonFormatter,
    setup_logging,
)


def _record(message: str, **extra) -> logging.LogRecord:
    record = logging.LogRecord("coauthor.test", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def _render(record: logging.LogRecord, service: str = "outline-sync") -> dict:
    ContextFilter(service).filter(record)
    return json.loads(JsonFormatter().format(record))


def test_log_context_fields_are_rendered() -> None:
    with log_context(book_id="b-1", operation="resync", mutation_id=None):
        payload = _render(_record("Resync applied", update_count=3))

    assert payload["message"] == "Resync applied"
    assert payload["service"] == "outline-sync"
    assert payload["book_id"] == "b-1"
    assert payload["operation"] == "resync"
    assert payload["update_count"] == 3
    assert "mutation_id" not in payload


def test_nested_context_restores_outer_values() -> None:
    with log_context(book_id="outer", operation="reorder"):
        with log_context(operation="save_outline"):
            inner = _render(_record("inner"))
        outer = _render(_record("outer"))
    after = _render(_record("after"))

    assert (inner["book_id"], inner["operation"]) == ("outer", "save_outline")
    assert outer["operation"] == "reorder"
    assert "book_id" not in after


def test_unserialisable_whitelisted_values_are_stringified() -> None:
    payload = _render(_record("Chapter deleted", chapter_id=object()))
    assert payload["chapter_id"].startswith("<object object")


def test_structured_fields_do_not_shadow_record_attributes() -> None:
    reserved = set(vars(_record(""))) | {"message", "asctime"}
    assert reserved.isdisjoint(LOG_FIELDS)


@pytest.mark.parametrize(("value", "expected"), [("1", True), ("yes", True), ("", False), ("off", False)])
def test_setup_logging_reads_capture_warnings_from_env(
    monkeypatch: pytest.MonkeyPatch, value: str, expected: bool
) -> None:
    captured: list[bool] = []
    monkeypatch.setattr(logging.config, "dictConfig", lambda config: None)
    monkeypatch.setattr(logging, "captureWarnings", captured.append)
    monkeypatch.setenv(CAPTURE_WARNINGS_ENV_VAR, value)

    setup_logging("outline-sync")

    assert CAPTURE_WARNINGS_ENV_VAR == "COAUTHOR_CAPTURE_WARNINGS"
    assert captured == [expected]


def test_sync_failure_counter_increments() -> None:
    before = REGISTRY.get_sample_value("coauthor_sync_failures_total", {"kind": "batch"}) or 0.0
    record_sync_failure("batch")
    assert REGISTRY.get_sample_value("coauthor_sync_failures_total", {"kind": "batch"}) == before + 1


def test_coalesced_flush_counts_superseded_payloads() -> None:
    labels = {"result": "superseded"}
    before = REGISTRY.get_sample_value("coauthor_reorder_payloads_total", labels) or 0.0
    record_coalesced_flush(superseded=2)
    assert REGISTRY.get_sample_value("coauthor_reorder_payloads_total", labels) == before + 2
