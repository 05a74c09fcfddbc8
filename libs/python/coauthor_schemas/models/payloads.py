"""Request and response payloads exchanged with the Book Co-Author API."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from ..enums import BookStatus
from ..utils.validators import clean_key_points
from .book import Chapter, Outline, OutlineEntry


class ChapterOrderUpdate(BaseModel):
    """Single row of an atomic reorder/retitle batch. Content is never part of it."""

    id: UUID
    order: int = Field(..., ge=1)
    title: Optional[str] = Field(None, min_length=1, max_length=300)


class ChapterBatchUpdateRequest(BaseModel):
    updates: list[ChapterOrderUpdate] = Field(default_factory=list)

    @field_validator("updates")
    @classmethod
    def validate_unique_targets(cls, updates: list[ChapterOrderUpdate]) -> list[ChapterOrderUpdate]:
        ids = [update.id for update in updates]
        if len(set(ids)) != len(ids):
            raise ValueError("Each chapter may appear only once in a batch")
        orders = [update.order for update in updates]
        if len(set(orders)) != len(orders):
            raise ValueError("Target orders within a batch must be unique")
        return updates


class ChapterBatchUpdateResponse(BaseModel):
    success: bool = True
    chapters: list[Chapter] = Field(default_factory=list)


class ChapterCreateRequest(BaseModel):
    title: str = Field(..., max_length=300)
    content: str = Field(default="")
    order: Optional[int] = Field(None, ge=1)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Chapter title is required")
        return value


class ChapterUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=300)
    content: Optional[str] = None
    order: Optional[int] = Field(None, ge=1)

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Chapter title cannot be blank")
        return value


class OutlineEntryInput(BaseModel):
    """Outline row as submitted by the client; position is its list index.

    ``id`` is kept when supplied so entry identity survives a full save.
    """

    id: Optional[UUID] = None
    title: str = Field(..., min_length=1, max_length=300)
    custom_title: Optional[str] = Field(None, max_length=300)
    description: str = Field(default="")
    key_points: list[str] = Field(default_factory=list)

    @classmethod
    def from_entry(cls, entry: OutlineEntry) -> "OutlineEntryInput":
        return cls(
            id=entry.id,
            title=entry.title,
            custom_title=entry.custom_title,
            description=entry.description,
            key_points=list(entry.key_points),
        )


class OutlineSaveRequest(BaseModel):
    entries: list[OutlineEntryInput] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    skip_chapter_sync: bool = Field(
        default=False,
        description="True when the caller already reconciled chapters against this outline",
    )


class OutlineSaveResponse(BaseModel):
    success: bool = True
    outline: Outline


class OutlineEntryPatchRequest(BaseModel):
    entry_id: UUID
    title: str = Field(..., max_length=300)
    description: Optional[str] = None
    key_points: Optional[list[str]] = None

    @field_validator("title")
    @classmethod
    def validate_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Entry title is required")
        return value

    @field_validator("key_points")
    @classmethod
    def validate_key_points(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return value
        return clean_key_points(value)


class BookCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=300)
    genre: Optional[str] = Field(None, max_length=120)
    target_audience: Optional[str] = Field(None, max_length=300)
    custom_instructions: Optional[str] = None


class BookUpdateRequest(BaseModel):
    title: Optional[str] = Field(None, max_length=300)
    genre: Optional[str] = Field(None, max_length=120)
    target_audience: Optional[str] = Field(None, max_length=300)
    custom_instructions: Optional[str] = None
    status: Optional[BookStatus] = None


class DeletedCountResponse(BaseModel):
    message: str
    deleted_count: int = Field(..., ge=0)
