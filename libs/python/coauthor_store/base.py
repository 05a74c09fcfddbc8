"""Repository interface shared by the Postgres and in-memory stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Mapping, Sequence
from uuid import UUID, uuid4

from coauthor_schemas.models.book import (
    Book,
    BookDetail,
    BookSummary,
    Chapter,
    Outline,
    OutlineEntry,
)
from coauthor_schemas.models.payloads import (
    BookCreateRequest,
    BookUpdateRequest,
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryInput,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)
from coauthor_schemas.ordering import desired_title
from coauthor_schemas.titles import extract_custom_title
from coauthor_schemas.utils.validators import clean_key_points

from .exceptions import InvalidBatchError, OrderConflictError


class BookRepository(ABC):
    """Persistence for books, outlines and chapters.

    Every method is one atomic write or one consistent read. Chapter orders of
    a book are unique after every successful call; a call that would break that
    raises :class:`OrderConflictError` and leaves the store untouched.
    """

    name: str

    def initialise(self) -> None:
        """Create whatever storage the repository needs. No-op by default."""

    @abstractmethod
    def create_book(self, payload: BookCreateRequest) -> Book:
        """Persist a new book in ``DRAFT`` status."""

    @abstractmethod
    def list_books(self) -> list[BookSummary]:
        """Return summaries ordered by most recently updated first."""

    @abstractmethod
    def get_book(self, book_id: UUID) -> BookDetail:
        """Return the book with its outline and chapters sorted by order."""

    @abstractmethod
    def update_book(self, book_id: UUID, payload: BookUpdateRequest) -> Book:
        """Update simple fields; status is re-evaluated unless supplied."""

    @abstractmethod
    def delete_book(self, book_id: UUID) -> None:
        """Delete the book together with its outline and chapters."""

    @abstractmethod
    def list_chapters(self, book_id: UUID) -> list[Chapter]:
        """Return the book's chapters sorted by order."""

    @abstractmethod
    def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        """Create a chapter at ``payload.order`` or after the current last one."""

    @abstractmethod
    def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        """Edit one chapter; an order change swaps with the current holder."""

    @abstractmethod
    def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        """Apply every order/title update atomically or none of them."""

    @abstractmethod
    def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        """Delete one chapter. Survivors keep their orders."""

    @abstractmethod
    def delete_all_chapters(self, book_id: UUID) -> int:
        """Delete every chapter of the book and return how many were removed."""

    @abstractmethod
    def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        """Replace the outline, syncing chapters unless ``skip_chapter_sync``."""

    @abstractmethod
    def update_outline_entry(self, book_id: UUID, payload: OutlineEntryPatchRequest) -> Outline:
        """Edit a single outline entry in place."""

    @abstractmethod
    def delete_outline(self, book_id: UUID) -> None:
        """Remove the book's outline if it has one."""


def check_batch(
    current_orders: Mapping[UUID, int],
    updates: Sequence[ChapterOrderUpdate],
) -> dict[UUID, int]:
    """Validate a reorder batch against the book's current orders.

    Args:
        current_orders: ``chapter id -> order`` for every chapter of the book.
        updates: Requested updates.

    Returns:
        The resulting ``chapter id -> order`` mapping for the whole book.

    Raises:
        InvalidBatchError: When the batch is empty, repeats an id or references a
            chapter outside the book.
        OrderConflictError: When two chapters would end up sharing an order.
    """

    if not updates:
        raise InvalidBatchError("Batch contains no updates")
    ids = [update.id for update in updates]
    if len(set(ids)) != len(ids):
        raise InvalidBatchError("Batch repeats a chapter id")
    foreign = [str(chapter_id) for chapter_id in ids if chapter_id not in current_orders]
    if foreign:
        raise InvalidBatchError(f"Chapters do not belong to this book: {', '.join(foreign)}")

    final_orders = dict(current_orders)
    for update in updates:
        final_orders[update.id] = update.order
    check_unique_orders(final_orders.values())
    return final_orders


def check_unique_orders(orders: Iterable[int]) -> None:
    seen: set[int] = set()
    for order in orders:
        if order in seen:
            raise OrderConflictError(f"Order {order} would be held by more than one chapter")
        seen.add(order)


def build_outline_entries(inputs: Sequence[OutlineEntryInput]) -> list[OutlineEntry]:
    """Turn submitted rows into stored entries with freshly derived full titles."""

    total = len(inputs)
    entries: list[OutlineEntry] = []
    for position, row in enumerate(inputs):
        title = desired_title(row, position, total)
        entries.append(
            OutlineEntry(
                id=row.id or uuid4(),
                title=title,
                custom_title=extract_custom_title(title),
                description=row.description,
                key_points=clean_key_points(row.key_points),
            )
        )
    return entries


def patch_outline_entries(
    entries: Sequence[OutlineEntry], payload: OutlineEntryPatchRequest
) -> list[OutlineEntry] | None:
    """Return ``entries`` with the patched row replaced, or ``None`` if it is absent."""

    patched: list[OutlineEntry] = []
    found = False
    for entry in entries:
        if entry.id != payload.entry_id:
            patched.append(entry)
            continue
        found = True
        update: dict[str, object] = {
            "title": payload.title,
            "custom_title": extract_custom_title(payload.title),
        }
        if payload.description is not None:
            update["description"] = payload.description
        if payload.key_points is not None:
            update["key_points"] = list(payload.key_points)
        patched.append(entry.model_copy(update=update))
    return patched if found else None


def next_chapter_order(orders: Iterable[int]) -> int:
    return max(orders, default=0) + 1


__all__ = [
    "BookRepository",
    "build_outline_entries",
    "check_batch",
    "check_unique_orders",
    "next_chapter_order",
    "patch_outline_entries",
]
