"""In-process backend wrapping a repository directly.

Used for offline sessions and tests; it maps store errors onto the same
backend taxonomy the HTTP backend derives from status codes.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Sequence
from uuid import UUID

from coauthor_schemas.models.book import BookDetail, Chapter, Outline
from coauthor_schemas.models.payloads import (
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)
from coauthor_store.base import BookRepository
from coauthor_store.exceptions import (
    BookNotFoundError,
    ChapterNotFoundError,
    InvalidBatchError,
    OrderConflictError,
    OutlineEntryNotFoundError,
    StoreError,
)
from coauthor_store.memory import InMemoryBookRepository

from .base import BookBackend
from .exceptions import BackendRequestError, TransientConflictError

_NOT_FOUND = (BookNotFoundError, ChapterNotFoundError, OutlineEntryNotFoundError)


@contextmanager
def _translate_store_errors() -> Iterator[None]:
    try:
        yield
    except _NOT_FOUND as exc:
        raise TransientConflictError(str(exc), status_code=404) from exc
    except OrderConflictError as exc:
        raise TransientConflictError(str(exc), status_code=409) from exc
    except InvalidBatchError as exc:
        raise BackendRequestError(str(exc), status_code=400) from exc
    except StoreError as exc:
        raise BackendRequestError(str(exc), status_code=500) from exc


class LocalBookBackend(BookBackend):
    name = "local"

    def __init__(self, repository: BookRepository | None = None) -> None:
        self.repository = repository or InMemoryBookRepository()

    async def get_book(self, book_id: UUID) -> BookDetail:
        with _translate_store_errors():
            return self.repository.get_book(book_id)

    async def list_chapters(self, book_id: UUID) -> list[Chapter]:
        with _translate_store_errors():
            return self.repository.list_chapters(book_id)

    async def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        with _translate_store_errors():
            return self.repository.batch_update_chapters(book_id, updates)

    async def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        with _translate_store_errors():
            return self.repository.create_chapter(book_id, payload)

    async def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        with _translate_store_errors():
            return self.repository.update_chapter(book_id, chapter_id, payload)

    async def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        with _translate_store_errors():
            self.repository.delete_chapter(book_id, chapter_id)

    async def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        with _translate_store_errors():
            return self.repository.save_outline(book_id, payload)

    async def update_outline_entry(
        self, book_id: UUID, payload: OutlineEntryPatchRequest
    ) -> Outline:
        with _translate_store_errors():
            return self.repository.update_outline_entry(book_id, payload)

    async def delete_book(self, book_id: UUID) -> None:
        with _translate_store_errors():
            self.repository.delete_book(book_id)
