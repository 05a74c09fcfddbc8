"""Bring the persisted chapters into positional agreement with an outline."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Sequence
from uuid import UUID

from coauthor_backend.base import BookBackend
from coauthor_backend.exceptions import BackendError
from coauthor_observability import log_context, observe_sync_duration, record_sync_failure
from coauthor_schemas.enums import FailureKind
from coauthor_schemas.models.book import BookDetail, Chapter
from coauthor_schemas.models.payloads import ChapterCreateRequest, ChapterUpdateRequest
from coauthor_schemas.ordering import OutlineRow, desired_title, plan_reconciliation

from .content import content_factory
from .models import ResyncReport

logger = logging.getLogger(__name__)


class Reconciler:
    """Full and single-entry chapter synchronisation against a backend.

    Writes always go batch first, then creates in ascending order, then deletes
    from the highest order down, so the order sequence never holds a duplicate
    outside the batch's own transaction.
    """

    def __init__(self, backend: BookBackend, *, seed_content: bool = True) -> None:
        self._backend = backend
        self._seed = content_factory(seed_content)

    async def resync(self, book_id: UUID, rows: Sequence[OutlineRow]) -> ResyncReport:
        report = ResyncReport()
        start = perf_counter()
        with log_context(book_id=str(book_id), operation="resync"):
            try:
                await self._run(book_id, rows, report)
            finally:
                outcome = "failure" if report.failed else ("partial" if report.skipped else "success")
                observe_sync_duration("resync", perf_counter() - start, outcome=outcome)
        return report

    async def _run(self, book_id: UUID, rows: Sequence[OutlineRow], report: ResyncReport) -> None:
        try:
            chapters = await self._backend.list_chapters(book_id)
        except BackendError as exc:
            logger.warning("Could not load chapters for resync", extra={"error": str(exc)})
            record_sync_failure(FailureKind.HARD.value)
            report.error = exc
            return

        plan = plan_reconciliation(rows, chapters, seed_content=self._seed)

        # Nothing overlaps when either side is empty; the store rejects empty batches.
        if plan.updates:
            try:
                await self._backend.batch_update_chapters(book_id, plan.updates)
            except BackendError as exc:
                logger.warning(
                    "Chapter batch failed; skipping structural changes",
                    extra={"update_count": len(plan.updates), "error": str(exc)},
                )
                record_sync_failure(FailureKind.BATCH.value)
                report.error = exc
                return
            report.batch_sent = True

        for request in plan.creates:
            try:
                report.created.append(await self._backend.create_chapter(book_id, request))
            except BackendError as exc:
                self._skip(report, f"create chapter at order {request.order}", exc)

        for chapter in plan.deletes:
            try:
                await self._backend.delete_chapter(book_id, chapter.id)
                report.deleted.append(chapter.id)
            except BackendError as exc:
                self._skip(report, f"delete chapter {chapter.id}", exc)

        logger.info(
            "Resync applied",
            extra={
                "update_count": len(plan.updates),
                "created_count": len(report.created),
                "deleted_count": len(report.deleted),
            },
        )
        await self._verify(book_id, rows, report)

    async def sync_entry(
        self, book_id: UUID, rows: Sequence[OutlineRow], position: int
    ) -> list[str]:
        """Best-effort sync of the single chapter at ``position``.

        Retitles the chapter at ``order = position + 1`` without touching its
        content. A missing chapter is created only when it would be appended
        right after the last one; any larger gap falls back to :meth:`resync`.
        Failures are returned as warnings.
        """

        total = len(rows)
        title = desired_title(rows[position], position, total)
        with log_context(book_id=str(book_id), operation="sync_entry"):
            try:
                chapters = await self._backend.list_chapters(book_id)
                target = next((chapter for chapter in chapters if chapter.order == position + 1), None)
                if target is not None:
                    if target.title != title:
                        await self._backend.update_chapter(
                            book_id, target.id, ChapterUpdateRequest(title=title)
                        )
                    return []
                if position == len(chapters):
                    content = self._seed(rows[position]) if self._seed else ""
                    await self._backend.create_chapter(
                        book_id,
                        ChapterCreateRequest(title=title, content=content, order=position + 1),
                    )
                    return []
                logger.warning(
                    "Chapter list has a gap, running full resync",
                    extra={"entries": total, "detail": f"{len(chapters)} chapters"},
                )
            except BackendError as exc:
                logger.warning("Single chapter sync skipped", extra={"error": str(exc)})
                record_sync_failure(FailureKind.TRANSIENT.value)
                return [f"Chapter {position + 1} was not synced: {exc}"]

        report = await self.resync(book_id, rows)
        warnings = [*report.skipped, *report.warnings]
        if report.error is not None:
            warnings.append(f"Chapters were not resynced: {report.error}")
        return warnings

    async def _verify(self, book_id: UUID, rows: Sequence[OutlineRow], report: ResyncReport) -> None:
        try:
            final = await self._backend.get_book(book_id)
        except BackendError as exc:
            report.warnings.append(f"Could not verify chapters after resync: {exc}")
            return
        report.final = final
        report.warnings.extend(verify_alignment(final, rows))
        for warning in report.warnings:
            logger.warning("Resync verification mismatch", extra={"detail": warning})

    @staticmethod
    def _skip(report: ResyncReport, action: str, exc: BackendError) -> None:
        logger.warning(
            "Transient sync error; continuing",
            extra={"action": action, "error": str(exc)},
        )
        record_sync_failure(FailureKind.TRANSIENT.value)
        report.skipped.append(f"{action}: {exc}")


def verify_alignment(detail: BookDetail, rows: Sequence[OutlineRow]) -> list[str]:
    """Describe every way ``detail.chapters`` differs from the outline ``rows``."""

    chapters: list[Chapter] = sorted(detail.chapters, key=lambda chapter: chapter.order)
    warnings: list[str] = []
    if len(chapters) != len(rows):
        warnings.append(f"Expected {len(rows)} chapters, found {len(chapters)}")
    if not detail.has_contiguous_chapters():
        warnings.append(
            "Chapter orders are not contiguous: " + ", ".join(str(chapter.order) for chapter in chapters)
        )
    total = len(rows)
    for index, (chapter, row) in enumerate(zip(chapters, rows)):
        expected = desired_title(row, index, total)
        if chapter.title != expected:
            warnings.append(f"Chapter {chapter.order} is titled {chapter.title!r}, expected {expected!r}")
    return warnings
