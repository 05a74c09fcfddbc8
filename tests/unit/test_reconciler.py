"""Full and single-entry resync against a recording backend."""

from __future__ import annotations

import logging

import pytest

from coauthor_backend import BackendRequestError, TransientConflictError
from coauthor_store import InMemoryBookRepository

from services.outline_sync.app.content import PLACEHOLDER_OVERVIEW
from services.outline_sync.app.reconciler import Reconciler, verify_alignment

from tests.utils.backends import RecordingBackend
from tests.utils.books import contents_by_id, outline_rows, seed_book

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def repository() -> InMemoryBookRepository:
    return InMemoryBookRepository()


@pytest.fixture
def backend(repository: InMemoryBookRepository) -> RecordingBackend:
    return RecordingBackend(repository)


async def test_aligned_book_only_confirms_orders(repository, backend) -> None:
    detail = seed_book(repository, ["X", "Y", "Z", "W"])

    report = await Reconciler(backend).resync(detail.book.id, outline_rows(["X", "Y", "Z", "W"]))

    assert backend.names() == ["batch_update_chapters"]
    assert report.warnings == []
    assert [(chapter.id, chapter.order, chapter.title) for chapter in report.final.chapters] == [
        (chapter.id, chapter.order, chapter.title) for chapter in detail.chapters
    ]


async def test_growth_creates_missing_chapters_after_batch(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B", "C"])

    report = await Reconciler(backend).resync(detail.book.id, outline_rows(["A", "B", "D", "E", "C"]))

    assert backend.names() == ["batch_update_chapters", "create_chapter", "create_chapter"]
    created = backend.payloads("create_chapter")
    assert [(request.order, request.title) for request in created] == [(4, "Chapter 3: E"), (5, "Conclusion: C")]
    assert "About E" in created[0].content
    assert "<li>E first point</li>" in created[0].content
    final = report.final
    assert [chapter.title for chapter in final.chapters] == [
        "Introduction: A",
        "Chapter 1: B",
        "Chapter 2: D",
        "Chapter 3: E",
        "Conclusion: C",
    ]
    for chapter_id, content in contents_by_id(detail).items():
        assert contents_by_id(final)[chapter_id] == content
    assert report.warnings == []


async def test_resync_logs_counts_at_info(repository, backend, caplog: pytest.LogCaptureFixture) -> None:
    detail = seed_book(repository, ["A", "B", "C"])

    with caplog.at_level(logging.INFO):
        report = await Reconciler(backend).resync(detail.book.id, outline_rows(["A", "B", "D", "E", "C"]))

    assert not report.failed
    (record,) = [record for record in caplog.records if record.getMessage() == "Resync applied"]
    assert record.created_count == 2
    assert record.deleted_count == 0


async def test_shrink_deletes_highest_orders_first(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B", "C", "D", "E"])

    report = await Reconciler(backend).resync(detail.book.id, outline_rows(["A", "B", "E"]))

    assert backend.names() == ["batch_update_chapters", "delete_chapter", "delete_chapter"]
    assert backend.payloads("delete_chapter") == [detail.chapters[4].id, detail.chapters[3].id]
    assert [chapter.order for chapter in report.final.chapters] == [1, 2, 3]
    assert report.final.chapters[2].title == "Conclusion: E"
    assert report.final.chapters[2].content == "<p>C draft</p>"


async def test_empty_book_skips_batch(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"], chapter_titles=[])

    report = await Reconciler(backend, seed_content=False).resync(detail.book.id, outline_rows(["A", "B"]))

    assert backend.names() == ["create_chapter", "create_chapter"]
    assert [chapter.content for chapter in report.final.chapters] == ["", ""]
    assert report.batch_sent is False


async def test_batch_failure_skips_structural_changes(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"])
    backend.fail_next("batch_update_chapters", BackendRequestError("boom", status_code=500))

    report = await Reconciler(backend).resync(detail.book.id, outline_rows(["B", "A", "C"]))

    assert report.failed
    assert backend.names() == ["batch_update_chapters"]
    assert repository.get_book(detail.book.id).chapters == detail.chapters


async def test_transient_create_failure_is_skipped(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"])
    backend.fail_next("create_chapter", TransientConflictError("taken", status_code=409))

    report = await Reconciler(backend).resync(detail.book.id, outline_rows(["A", "B", "C", "D"]))

    assert not report.failed
    assert len(report.skipped) == 1
    assert [chapter.order for chapter in report.created] == [4]
    assert any("Expected 4 chapters, found 3" in warning for warning in report.warnings)
    assert any("not contiguous" in warning for warning in report.warnings)


async def test_sync_entry_retitles_without_touching_content(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"])
    rows = outline_rows(["A", "Harbours"])

    warnings = await Reconciler(backend).sync_entry(detail.book.id, rows, 1)

    assert warnings == []
    ((chapter_id, request),) = backend.payloads("update_chapter")
    assert chapter_id == detail.chapters[1].id
    assert request.model_dump(exclude_none=True) == {"title": "Conclusion: Harbours"}
    assert repository.get_book(detail.book.id).chapters[1].content == "<p>B draft</p>"


async def test_sync_entry_creates_missing_chapter(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"], chapter_titles=["A"])
    rows = outline_rows(["A", "B"])
    rows[1] = rows[1].model_copy(update={"description": ""})

    await Reconciler(backend).sync_entry(detail.book.id, rows, 1)

    (request,) = backend.payloads("create_chapter")
    assert request.order == 2
    assert PLACEHOLDER_OVERVIEW in request.content


async def test_sync_entry_gap_falls_back_to_full_resync(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B", "C", "D", "E"], chapter_titles=["A", "B", "C"])
    rows = outline_rows(["A", "B", "C", "D", "Finale"])

    warnings = await Reconciler(backend).sync_entry(detail.book.id, rows, 4)

    assert warnings == []
    assert [request.order for request in backend.payloads("create_chapter")] == [4, 5]
    stored = repository.get_book(detail.book.id)
    assert [chapter.order for chapter in stored.chapters] == [1, 2, 3, 4, 5]
    assert stored.chapters[4].title == "Conclusion: Finale"
    for chapter_id, content in contents_by_id(detail).items():
        assert contents_by_id(stored)[chapter_id] == content


async def test_sync_entry_failure_becomes_warning(repository, backend) -> None:
    detail = seed_book(repository, ["A", "B"])
    backend.fail_next("list_chapters", BackendRequestError("offline"))

    warnings = await Reconciler(backend).sync_entry(detail.book.id, outline_rows(["A", "B"]), 0)

    assert len(warnings) == 1
    assert "offline" in warnings[0]


def test_verify_alignment_reports_title_drift(repository) -> None:
    detail = seed_book(repository, ["A", "B"], chapter_titles=["A", "Old"])
    warnings = verify_alignment(detail, outline_rows(["A", "B"]))
    assert warnings == ["Chapter 2 is titled 'Conclusion: Old', expected 'Conclusion: B'"]
