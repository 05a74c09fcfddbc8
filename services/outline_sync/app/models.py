"""Value types passed between the cache, the coalescer and the session."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, TypeVar, Union
from uuid import UUID

from coauthor_backend.exceptions import BackendError
from coauthor_schemas.enums import MutationStatus
from coauthor_schemas.models.book import BookDetail, Chapter, Outline, OutlineEntry
from coauthor_schemas.models.payloads import (
    ChapterOrderUpdate,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)


@dataclass(frozen=True, slots=True)
class BookSnapshot:
    """Immutable view of a book at one cache version."""

    version: int
    detail: BookDetail

    @property
    def outline(self) -> Outline:
        return self.detail.outline or Outline(book_id=self.detail.book.id)

    @property
    def entries(self) -> list[OutlineEntry]:
        return self.outline.entries

    @property
    def chapters(self) -> list[Chapter]:
        return self.detail.chapters

    @property
    def suggestions(self) -> list[str]:
        return self.outline.suggestions


@dataclass(frozen=True, slots=True)
class ReorderPayload:
    """Latest desired order of the whole chapter list plus the outline to persist after it."""

    updates: tuple[ChapterOrderUpdate, ...]
    outline: OutlineSaveRequest
    mutation_id: Optional[UUID] = None


@dataclass(frozen=True, slots=True)
class ReorderChapters:
    payload: ReorderPayload


@dataclass(frozen=True, slots=True)
class BatchChapters:
    """Send ``updates`` as one atomic batch right away, without coalescing."""

    updates: tuple[ChapterOrderUpdate, ...]


@dataclass(frozen=True, slots=True)
class ResyncChapters:
    """Run a full resync against ``outline.entries``, then save the outline."""

    outline: OutlineSaveRequest


@dataclass(frozen=True, slots=True)
class SaveOutline:
    outline: OutlineSaveRequest


@dataclass(frozen=True, slots=True)
class PatchOutlineEntry:
    patch: OutlineEntryPatchRequest
    position: int


PendingCall = Union[ReorderChapters, BatchChapters, ResyncChapters, SaveOutline, PatchOutlineEntry]
CallT = TypeVar("CallT", bound=PendingCall)


@dataclass(frozen=True, slots=True)
class MutationResult:
    """Next book state plus the remote calls needed to persist it."""

    detail: BookDetail
    calls: tuple[PendingCall, ...] = ()

    def calls_of(self, kind: type[CallT]) -> list[CallT]:
        return [call for call in self.calls if isinstance(call, kind)]

    def call_of(self, kind: type[CallT]) -> CallT:
        matches = self.calls_of(kind)
        if len(matches) != 1:
            raise TypeError(f"Expected exactly one {kind.__name__} call, got {len(matches)}")
        return matches[0]


@dataclass(slots=True)
class MutationOutcome:
    """Resolved result handed back to UI handlers; never an exception."""

    mutation_id: Optional[UUID]
    status: MutationStatus
    version: int
    warnings: list[str] = field(default_factory=list)
    alert: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status != MutationStatus.REJECTED


@dataclass(slots=True)
class ResyncReport:
    """What a full resync did and what it could not do."""

    batch_sent: bool = False
    created: list[Chapter] = field(default_factory=list)
    deleted: list[UUID] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: Optional[BackendError] = None
    final: Optional[BookDetail] = None

    @property
    def failed(self) -> bool:
        return self.error is not None
