"""Core interface for the persisted outline and chapter stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence
from uuid import UUID

from coauthor_schemas.models.book import BookDetail, Chapter, Outline
from coauthor_schemas.models.payloads import (
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)


class BookBackend(ABC):
    """Asynchronous boundary the sync engine talks to.

    Implementations raise :class:`~coauthor_backend.exceptions.TransientConflictError`
    for missing or contended targets and
    :class:`~coauthor_backend.exceptions.BackendRequestError` for everything else.
    """

    name: str

    @abstractmethod
    async def get_book(self, book_id: UUID) -> BookDetail:
        """Return the authoritative book, outline and chapters."""

    @abstractmethod
    async def list_chapters(self, book_id: UUID) -> list[Chapter]:
        """Return chapters sorted by order."""

    @abstractmethod
    async def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        """Apply an atomic reorder/retitle batch."""

    @abstractmethod
    async def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        """Create one chapter."""

    @abstractmethod
    async def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        """Edit one chapter."""

    @abstractmethod
    async def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        """Delete one chapter."""

    @abstractmethod
    async def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        """Replace the whole outline."""

    @abstractmethod
    async def update_outline_entry(
        self, book_id: UUID, payload: OutlineEntryPatchRequest
    ) -> Outline:
        """Edit one outline entry."""

    @abstractmethod
    async def delete_book(self, book_id: UUID) -> None:
        """Delete the book and everything it owns."""

    async def aclose(self) -> None:
        """Release held resources. No-op by default."""
