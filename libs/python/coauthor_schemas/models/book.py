"""Domain models describing books, outlines and chapters."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import BookStatus
from ..utils.validators import count_words_in_html, ensure_contiguous_orders


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Book(BaseModel):
    """Aggregate root owning one outline and an ordered chapter collection."""

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=300)
    genre: Optional[str] = Field(None, max_length=120)
    target_audience: Optional[str] = Field(None, max_length=300)
    custom_instructions: Optional[str] = Field(
        None, description="Free-text authoring instructions passed to the assistant"
    )
    status: BookStatus = Field(default=BookStatus.DRAFT)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class OutlineEntry(BaseModel):
    """One table-of-contents row.

    ``title`` is the derived full title ("Chapter 2: Tides"); ``custom_title`` is
    the user-entered suffix that survives moves.
    """

    id: UUID = Field(default_factory=uuid4)
    title: str = Field(..., min_length=1, max_length=300)
    custom_title: str = Field(default="", max_length=300)
    description: str = Field(default="")
    key_points: list[str] = Field(default_factory=list)


class Outline(BaseModel):
    """Ordered outline entries plus the writing-tip suggestions."""

    id: UUID = Field(default_factory=uuid4)
    book_id: UUID
    entries: list[OutlineEntry] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=utcnow)


class Chapter(BaseModel):
    """Persisted, independently authored content unit."""

    id: UUID = Field(default_factory=uuid4)
    book_id: UUID
    title: str = Field(..., min_length=1, max_length=300)
    content: str = Field(default="")
    order: int = Field(..., ge=1)
    word_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def authored(
        cls,
        *,
        book_id: UUID,
        title: str,
        order: int,
        content: str = "",
        chapter_id: UUID | None = None,
    ) -> "Chapter":
        """Build a chapter whose word count is derived from ``content``."""

        extra = {"id": chapter_id} if chapter_id is not None else {}
        return cls(
            book_id=book_id,
            title=title,
            content=content,
            order=order,
            word_count=count_words_in_html(content),
            **extra,
        )


class BookDetail(BaseModel):
    """Full read of a book used for resync and post-write verification."""

    model_config = ConfigDict(frozen=True)

    book: Book
    outline: Optional[Outline] = None
    chapters: list[Chapter] = Field(default_factory=list)

    @field_validator("chapters")
    @classmethod
    def sort_by_order(cls, chapters: list[Chapter]) -> list[Chapter]:
        # A single chapter delete leaves a gap until the caller renumbers, so
        # contiguity is checked by the reconciler rather than here.
        return sorted(chapters, key=lambda chapter: chapter.order)

    @property
    def total_word_count(self) -> int:
        return sum(chapter.word_count for chapter in self.chapters)

    def has_contiguous_chapters(self) -> bool:
        try:
            ensure_contiguous_orders(chapter.order for chapter in self.chapters)
        except ValueError:
            return False
        return True


class BookSummary(BaseModel):
    """Lightweight listing row for dashboards."""

    id: UUID
    title: str
    status: BookStatus
    chapter_count: int = Field(..., ge=0)
    total_word_count: int = Field(..., ge=0)
    updated_at: datetime
