"""Book session facade called by UI event handlers."""

from __future__ import annotations

import logging
from dataclasses import replace
from time import perf_counter
from typing import Iterable, Optional, Sequence
from uuid import UUID

from coauthor_backend.base import BookBackend
from coauthor_backend.config import BackendConfig
from coauthor_backend.exceptions import BackendError, TransientConflictError
from coauthor_observability import log_context, observe_sync_duration, record_sync_failure
from coauthor_schemas.enums import FailureKind, MutationStatus
from coauthor_schemas.models.book import BookDetail, Chapter, OutlineEntry
from coauthor_schemas.models.payloads import OutlineEntryInput

from . import mutations
from .cache import OptimisticCache
from .coalescer import ReorderCoalescer
from .models import (
    BatchChapters,
    BookSnapshot,
    MutationOutcome,
    MutationResult,
    PatchOutlineEntry,
    ReorderChapters,
    ReorderPayload,
    ResyncChapters,
    SaveOutline,
)
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

DELETE_CHAPTER_ALERT = "Failed to delete chapter. Please try again."
DELETE_BOOK_ALERT = "Failed to delete book. Please try again."


class BookSession:
    """One author's editing session on one book.

    Every public mutation updates the cache synchronously before its first
    network call and resolves to a :class:`MutationOutcome`; backend errors are
    logged, folded into the outcome and never raised to the caller.
    """

    def __init__(
        self,
        backend: BookBackend,
        detail: BookDetail,
        *,
        config: Optional[BackendConfig] = None,
    ) -> None:
        self._config = config or BackendConfig()
        self._backend = backend
        self.book_id = detail.book.id
        self.cache = OptimisticCache(detail)
        self.reconciler = Reconciler(backend, seed_content=self._config.seed_chapter_content)
        self.coalescer = ReorderCoalescer(
            self._send_reorder, delay_seconds=self._config.reorder_debounce_seconds
        )
        self.deleted = False

    @classmethod
    async def open(
        cls, backend: BookBackend, book_id: UUID, *, config: Optional[BackendConfig] = None
    ) -> "BookSession":
        detail = await backend.get_book(book_id)
        return cls(backend, detail, config=config)

    # Reads -------------------------------------------------------------------

    @property
    def snapshot(self) -> BookSnapshot:
        return self.cache.snapshot

    @property
    def entries(self) -> list[OutlineEntry]:
        return self.cache.snapshot.entries

    @property
    def chapters(self) -> list[Chapter]:
        return self.cache.snapshot.chapters

    @property
    def suggestions(self) -> list[str]:
        return self.cache.snapshot.suggestions

    # Incremental reorder -----------------------------------------------------

    def move_entry(self, from_index: int, to_index: int) -> MutationOutcome:
        """Move an outline entry; persisted later by the coalescer.

        Must be called from a running event loop. The returned outcome is
        ``pending``; :meth:`status_of` reports the final state once sent.
        """

        try:
            result = mutations.move_entry(self.cache.snapshot.detail, from_index, to_index)
        except ValueError as exc:
            return self._refused(exc)
        if not result.calls:
            return MutationOutcome(None, MutationStatus.CONFIRMED, self.cache.version)

        mutation_id = self.cache.apply(result, label="move_entry")
        call = result.call_of(ReorderChapters)
        self.coalescer.submit(replace(call.payload, mutation_id=mutation_id))
        return MutationOutcome(mutation_id, MutationStatus.PENDING, self.cache.version)

    async def flush(self) -> None:
        """Send any pending reorder now."""

        await self.coalescer.flush()

    async def _send_reorder(self, payload: ReorderPayload) -> None:
        if payload.mutation_id is not None and (
            self.cache.status_of(payload.mutation_id) == MutationStatus.REJECTED
        ):
            return
        start = perf_counter()
        outcome = "failure"
        with log_context(
            book_id=str(self.book_id), operation="reorder", mutation_id=str(payload.mutation_id)
        ):
            try:
                if payload.updates:
                    try:
                        await self._backend.batch_update_chapters(self.book_id, payload.updates)
                    except BackendError as exc:
                        # The outline is not saved after a failed batch.
                        record_sync_failure(FailureKind.BATCH.value)
                        await self._handle_failure(payload.mutation_id, exc, "Reorder batch failed")
                        return
                try:
                    await self._backend.save_outline(self.book_id, payload.outline)
                except BackendError as exc:
                    await self._handle_failure(
                        payload.mutation_id, exc, "Outline save after reorder failed"
                    )
                    return
                outcome = "success"
            finally:
                observe_sync_duration("reorder", perf_counter() - start, outcome=outcome)
            if payload.mutation_id is not None:
                self.cache.confirm(payload.mutation_id)
            logger.info("Reorder persisted", extra={"update_count": len(payload.updates)})

    # Structural edits --------------------------------------------------------

    async def insert_entry(
        self,
        index: int,
        *,
        custom_title: Optional[str] = None,
        description: str = "",
        key_points: Iterable[str] = (),
    ) -> MutationOutcome:
        try:
            result = mutations.insert_entry(
                self.cache.snapshot.detail,
                index,
                custom_title=custom_title,
                description=description,
                key_points=key_points,
            )
        except ValueError as exc:
            return self._refused(exc)
        return await self._run_structural(result, "insert_entry")

    async def delete_entry(self, index: int) -> MutationOutcome:
        try:
            result = mutations.delete_entry(self.cache.snapshot.detail, index)
        except ValueError as exc:
            return self._refused(exc)
        return await self._run_structural(result, "delete_entry")

    async def replace_outline(
        self, rows: Sequence[OutlineEntryInput], suggestions: Optional[Sequence[str]] = None
    ) -> MutationOutcome:
        try:
            result = mutations.replace_outline(self.cache.snapshot.detail, rows, suggestions)
        except ValueError as exc:
            return self._refused(exc)
        return await self._run_structural(result, "replace_outline")

    async def resync(self) -> MutationOutcome:
        """Re-run the full chapter resync against the current outline."""

        detail = self.cache.snapshot.detail
        outline = mutations.outline_of(detail)
        result = MutationResult(
            detail=detail,
            calls=(ResyncChapters(mutations.outline_payload(outline.entries, outline.suggestions)),),
        )
        return await self._run_structural(result, "resync")

    async def _run_structural(self, result: MutationResult, label: str) -> MutationOutcome:
        mutation_id = self.cache.apply(result, label=label)
        call = result.call_of(ResyncChapters)

        with log_context(book_id=str(self.book_id), operation=label, mutation_id=str(mutation_id)):
            await self.coalescer.flush()
            if self.cache.status_of(mutation_id) == MutationStatus.REJECTED:
                return self._outcome(mutation_id, ["An earlier reorder failed; changes were reverted"])

            report = await self.reconciler.resync(self.book_id, call.outline.entries)
            warnings = [*report.skipped, *report.warnings]
            if report.error is not None:
                await self._handle_failure(mutation_id, report.error, "Chapter resync failed")
                return self._outcome(mutation_id, [*warnings, str(report.error)])

            try:
                await self._backend.save_outline(self.book_id, call.outline)
            except BackendError as exc:
                await self._handle_failure(mutation_id, exc, "Outline save after resync failed")
                return self._outcome(mutation_id, [*warnings, str(exc)])

            self.cache.confirm(mutation_id)
            warnings.extend(await self._revalidate())
        return self._outcome(mutation_id, warnings)

    async def edit_entry(
        self,
        entry_id: UUID,
        *,
        custom_title: str,
        description: Optional[str] = None,
        key_points: Optional[Iterable[str]] = None,
    ) -> MutationOutcome:
        """Edit one outline row, then retitle or create its chapter."""

        try:
            result = mutations.edit_entry(
                self.cache.snapshot.detail,
                entry_id,
                custom_title=custom_title,
                description=description,
                key_points=key_points,
            )
        except ValueError as exc:
            return self._refused(exc)
        mutation_id = self.cache.apply(result, label="edit_entry")
        call = result.call_of(PatchOutlineEntry)

        with log_context(
            book_id=str(self.book_id),
            operation="edit_entry",
            mutation_id=str(mutation_id),
            entry_id=str(entry_id),
        ):
            await self.coalescer.flush()
            try:
                await self._backend.update_outline_entry(self.book_id, call.patch)
            except BackendError as exc:
                await self._handle_failure(mutation_id, exc, "Outline entry update failed")
                return self._outcome(mutation_id, [str(exc)])

            rows = mutations.outline_of(result.detail).entries
            warnings = await self.reconciler.sync_entry(self.book_id, rows, call.position)
            self.cache.confirm(mutation_id)
        return self._outcome(mutation_id, warnings)

    # Suggestions -------------------------------------------------------------

    async def add_suggestion(self, text: str) -> MutationOutcome:
        try:
            result = mutations.add_suggestion(self.cache.snapshot.detail, text)
        except ValueError as exc:
            return self._refused(exc)
        return await self._save_outline(result, "add_suggestion")

    async def edit_suggestion(self, index: int, text: str) -> MutationOutcome:
        try:
            result = mutations.edit_suggestion(self.cache.snapshot.detail, index, text)
        except ValueError as exc:
            return self._refused(exc)
        return await self._save_outline(result, "edit_suggestion")

    async def delete_suggestion(self, index: int) -> MutationOutcome:
        try:
            result = mutations.delete_suggestion(self.cache.snapshot.detail, index)
        except ValueError as exc:
            return self._refused(exc)
        return await self._save_outline(result, "delete_suggestion")

    async def _save_outline(self, result: MutationResult, label: str) -> MutationOutcome:
        mutation_id = self.cache.apply(result, label=label)
        call = result.call_of(SaveOutline)
        with log_context(book_id=str(self.book_id), operation=label, mutation_id=str(mutation_id)):
            await self.coalescer.flush()
            try:
                await self._backend.save_outline(self.book_id, call.outline)
            except BackendError as exc:
                await self._handle_failure(mutation_id, exc, "Outline save failed")
                return self._outcome(mutation_id, [str(exc)])
            self.cache.confirm(mutation_id)
        return self._outcome(mutation_id)

    # Direct chapter and book actions ----------------------------------------

    async def delete_chapter(self, chapter_id: UUID) -> MutationOutcome:
        """Delete a chapter, then renumber the survivors in one batch.

        The cache is only touched after the server accepted the delete; a
        rejected delete leaves everything as it was and carries an alert.
        """

        with log_context(
            book_id=str(self.book_id), operation="delete_chapter", chapter_id=str(chapter_id)
        ):
            await self.coalescer.flush()
            try:
                await self._backend.delete_chapter(self.book_id, chapter_id)
            except BackendError as exc:
                logger.warning("Chapter delete rejected", extra={"error": str(exc)})
                return MutationOutcome(
                    None, MutationStatus.REJECTED, self.cache.version, [str(exc)], DELETE_CHAPTER_ALERT
                )

            try:
                result = mutations.remove_chapter(self.cache.snapshot.detail, chapter_id)
            except ValueError:
                warnings = await self._revalidate()
                return MutationOutcome(None, MutationStatus.CONFIRMED, self.cache.version, warnings)

            mutation_id = self.cache.apply(result, label="delete_chapter")
            for call in result.calls_of(BatchChapters):
                try:
                    await self._backend.batch_update_chapters(self.book_id, call.updates)
                except BackendError as exc:
                    logger.warning("Renumbering after delete failed", extra={"error": str(exc)})
                    record_sync_failure(FailureKind.BATCH.value)
                    self.cache.confirm(mutation_id)
                    warnings = [str(exc), *await self._revalidate()]
                    return self._outcome(mutation_id, warnings)
            self.cache.confirm(mutation_id)
        return self._outcome(mutation_id)

    async def delete_book(self) -> MutationOutcome:
        with log_context(book_id=str(self.book_id), operation="delete_book"):
            try:
                await self._backend.delete_book(self.book_id)
            except BackendError as exc:
                logger.warning("Book delete rejected", extra={"error": str(exc)})
                return MutationOutcome(
                    None, MutationStatus.REJECTED, self.cache.version, [str(exc)], DELETE_BOOK_ALERT
                )
            await self.coalescer.aclose()
            self.deleted = True
            logger.info("Book deleted")
        return MutationOutcome(None, MutationStatus.CONFIRMED, self.cache.version)

    # Lifecycle ---------------------------------------------------------------

    async def refresh(self) -> BookSnapshot:
        """Replace the cached view with server truth."""

        detail = await self._backend.get_book(self.book_id)
        return self.cache.revalidate(detail)

    def status_of(self, mutation_id: UUID) -> Optional[MutationStatus]:
        return self.cache.status_of(mutation_id)

    async def drain(self) -> None:
        await self.coalescer.drain()

    async def aclose(self) -> None:
        """Persist any pending reorder and stop the coalescer."""

        if not self.deleted:
            await self.coalescer.flush()
        await self.coalescer.aclose()

    # Internals ---------------------------------------------------------------

    async def _handle_failure(
        self, mutation_id: Optional[UUID], exc: BackendError, message: str
    ) -> None:
        """Keep the optimistic view on transient conflicts, otherwise fall back to server truth."""

        if isinstance(exc, TransientConflictError):
            logger.warning(message, extra={"error": str(exc), "status_code": exc.status_code})
            record_sync_failure(FailureKind.TRANSIENT.value)
            return
        logger.error(message, extra={"error": str(exc), "status_code": exc.status_code})
        record_sync_failure(FailureKind.HARD.value)
        if mutation_id is not None:
            self.cache.reject(mutation_id)
            self._discard_rejected_reorder()
        await self._revalidate()

    def _discard_rejected_reorder(self) -> None:
        # A queued reorder carries the state of every move before it, including
        # the one just rejected, so it must not reach the server.
        pending = self.coalescer.pending
        if pending is not None and self.cache.status_of(pending.mutation_id) == MutationStatus.REJECTED:
            self.coalescer.discard()
            logger.info(
                "Dropped queued reorder after rejection",
                extra={"mutation_id": str(pending.mutation_id)},
            )

    async def _revalidate(self) -> list[str]:
        try:
            await self.refresh()
        except BackendError as exc:
            logger.warning("Revalidation failed", extra={"error": str(exc)})
            return [f"Could not refresh from server: {exc}"]
        return []

    def _outcome(self, mutation_id: UUID, warnings: Optional[list[str]] = None) -> MutationOutcome:
        status = self.cache.status_of(mutation_id) or MutationStatus.PENDING
        return MutationOutcome(mutation_id, status, self.cache.version, list(warnings or []))

    def _refused(self, exc: ValueError) -> MutationOutcome:
        logger.info("Mutation refused", extra={"error": str(exc)})
        return MutationOutcome(None, MutationStatus.REJECTED, self.cache.version, [str(exc)])
