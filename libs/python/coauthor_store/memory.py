"""In-process repository used by tests, local sessions and demos."""

from __future__ import annotations

import logging
import threading
from typing import Sequence
from uuid import UUID

from coauthor_schemas.models.book import (
    Book,
    BookDetail,
    BookSummary,
    Chapter,
    Outline,
    utcnow,
)
from coauthor_schemas.models.payloads import (
    BookCreateRequest,
    BookUpdateRequest,
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)
from coauthor_schemas.ordering import plan_reconciliation
from coauthor_schemas.status import calculate_book_status
from coauthor_schemas.utils.validators import count_words_in_html

from .base import (
    BookRepository,
    build_outline_entries,
    check_batch,
    next_chapter_order,
    patch_outline_entries,
)
from .exceptions import (
    BookNotFoundError,
    ChapterNotFoundError,
    OrderConflictError,
    OutlineEntryNotFoundError,
)

logger = logging.getLogger(__name__)


class InMemoryBookRepository(BookRepository):
    """Dictionary backed repository.

    Each public method holds one lock for its whole duration and validates
    before mutating, which gives the same all-or-nothing behaviour as a
    database transaction.
    """

    name = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._books: dict[UUID, Book] = {}
        self._outlines: dict[UUID, Outline] = {}
        self._chapters: dict[UUID, Chapter] = {}

    # Books -----------------------------------------------------------------

    def create_book(self, payload: BookCreateRequest) -> Book:
        book = Book(**payload.model_dump())
        with self._lock:
            self._books[book.id] = book
        return book

    def list_books(self) -> list[BookSummary]:
        with self._lock:
            summaries = []
            for book in self._books.values():
                chapters = self._chapters_of(book.id)
                summaries.append(
                    BookSummary(
                        id=book.id,
                        title=book.title,
                        status=book.status,
                        chapter_count=len(chapters),
                        total_word_count=sum(chapter.word_count for chapter in chapters),
                        updated_at=book.updated_at,
                    )
                )
        return sorted(summaries, key=lambda summary: summary.updated_at, reverse=True)

    def get_book(self, book_id: UUID) -> BookDetail:
        with self._lock:
            book = self._require_book(book_id)
            return BookDetail(
                book=book,
                outline=self._outlines.get(book_id),
                chapters=self._chapters_of(book_id),
            )

    def update_book(self, book_id: UUID, payload: BookUpdateRequest) -> Book:
        with self._lock:
            book = self._require_book(book_id)
            changes = payload.model_dump(exclude_unset=True)
            if changes.get("status") is None:
                changes["status"] = calculate_book_status(
                    len(self._chapters_of(book_id)), book.status
                )
            changes["updated_at"] = utcnow()
            updated = book.model_copy(update=changes)
            self._books[book_id] = updated
            return updated

    def delete_book(self, book_id: UUID) -> None:
        with self._lock:
            self._require_book(book_id)
            for chapter in self._chapters_of(book_id):
                del self._chapters[chapter.id]
            self._outlines.pop(book_id, None)
            del self._books[book_id]

    # Chapters --------------------------------------------------------------

    def list_chapters(self, book_id: UUID) -> list[Chapter]:
        with self._lock:
            self._require_book(book_id)
            return self._chapters_of(book_id)

    def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        with self._lock:
            self._require_book(book_id)
            orders = [chapter.order for chapter in self._chapters_of(book_id)]
            order = payload.order if payload.order is not None else next_chapter_order(orders)
            if order in orders:
                raise OrderConflictError(f"Order {order} is already taken")
            chapter = Chapter.authored(
                book_id=book_id, title=payload.title, order=order, content=payload.content
            )
            self._chapters[chapter.id] = chapter
            self._refresh_status(book_id)
            return chapter

    def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        with self._lock:
            self._require_book(book_id)
            chapter = self._require_chapter(book_id, chapter_id)
            now = utcnow()
            changes: dict[str, object] = {"updated_at": now}
            if payload.title is not None:
                changes["title"] = payload.title
            if payload.content is not None:
                changes["content"] = payload.content
                changes["word_count"] = count_words_in_html(payload.content)
            if payload.order is not None and payload.order != chapter.order:
                holder = next(
                    (
                        other
                        for other in self._chapters_of(book_id)
                        if other.order == payload.order
                    ),
                    None,
                )
                if holder is not None:
                    self._chapters[holder.id] = holder.model_copy(
                        update={"order": chapter.order, "updated_at": now}
                    )
                changes["order"] = payload.order
            updated = chapter.model_copy(update=changes)
            self._chapters[chapter_id] = updated
            self._touch(book_id)
            return updated

    def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        with self._lock:
            self._require_book(book_id)
            chapters = self._chapters_of(book_id)
            check_batch({chapter.id: chapter.order for chapter in chapters}, updates)
            self._apply_updates(updates)
            self._touch(book_id)
            logger.debug(
                "Applied chapter batch", extra={"book_id": str(book_id), "update_count": len(updates)}
            )
            return self._chapters_of(book_id)

    def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        with self._lock:
            self._require_book(book_id)
            self._require_chapter(book_id, chapter_id)
            del self._chapters[chapter_id]
            self._refresh_status(book_id)

    def delete_all_chapters(self, book_id: UUID) -> int:
        with self._lock:
            self._require_book(book_id)
            chapters = self._chapters_of(book_id)
            for chapter in chapters:
                del self._chapters[chapter.id]
            self._refresh_status(book_id)
            return len(chapters)

    # Outline ---------------------------------------------------------------

    def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        with self._lock:
            self._require_book(book_id)
            entries = build_outline_entries(payload.entries)
            existing = self._outlines.get(book_id)
            outline = Outline(
                book_id=book_id,
                entries=entries,
                suggestions=list(payload.suggestions),
                **({"id": existing.id} if existing else {}),
            )
            if not payload.skip_chapter_sync:
                self._sync_chapters(book_id, outline)
            self._outlines[book_id] = outline
            self._touch(book_id)
            return outline

    def update_outline_entry(self, book_id: UUID, payload: OutlineEntryPatchRequest) -> Outline:
        with self._lock:
            self._require_book(book_id)
            outline = self._outlines.get(book_id)
            entries = patch_outline_entries(outline.entries, payload) if outline else None
            if outline is None or entries is None:
                raise OutlineEntryNotFoundError(f"Outline entry {payload.entry_id} not found")
            updated = outline.model_copy(update={"entries": entries, "updated_at": utcnow()})
            self._outlines[book_id] = updated
            return updated

    def delete_outline(self, book_id: UUID) -> None:
        with self._lock:
            self._require_book(book_id)
            self._outlines.pop(book_id, None)

    # Internals -------------------------------------------------------------

    def _sync_chapters(self, book_id: UUID, outline: Outline) -> None:
        plan = plan_reconciliation(outline.entries, self._chapters_of(book_id))
        if plan.updates:
            self._apply_updates(plan.updates)
        for request in plan.creates:
            chapter = Chapter.authored(
                book_id=book_id, title=request.title, order=request.order, content=request.content
            )
            self._chapters[chapter.id] = chapter
        for chapter in plan.deletes:
            del self._chapters[chapter.id]
        self._refresh_status(book_id)

    def _apply_updates(self, updates: Sequence[ChapterOrderUpdate]) -> None:
        now = utcnow()
        for update in updates:
            chapter = self._chapters[update.id]
            changes: dict[str, object] = {"order": update.order, "updated_at": now}
            if update.title is not None:
                changes["title"] = update.title
            self._chapters[update.id] = chapter.model_copy(update=changes)

    def _chapters_of(self, book_id: UUID) -> list[Chapter]:
        return sorted(
            (chapter for chapter in self._chapters.values() if chapter.book_id == book_id),
            key=lambda chapter: chapter.order,
        )

    def _require_book(self, book_id: UUID) -> Book:
        book = self._books.get(book_id)
        if book is None:
            raise BookNotFoundError(f"Book {book_id} not found")
        return book

    def _require_chapter(self, book_id: UUID, chapter_id: UUID) -> Chapter:
        chapter = self._chapters.get(chapter_id)
        if chapter is None or chapter.book_id != book_id:
            raise ChapterNotFoundError(f"Chapter {chapter_id} not found")
        return chapter

    def _refresh_status(self, book_id: UUID) -> None:
        book = self._books[book_id]
        status = calculate_book_status(len(self._chapters_of(book_id)), book.status)
        self._books[book_id] = book.model_copy(update={"status": status, "updated_at": utcnow()})

    def _touch(self, book_id: UUID) -> None:
        book = self._books[book_id]
        self._books[book_id] = book.model_copy(update={"updated_at": utcnow()})
