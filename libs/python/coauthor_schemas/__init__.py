"""Shared schema definitions for the Book Co-Author services."""

from .enums import BookStatus, FailureKind, MutationStatus
from .models.book import Book, BookDetail, BookSummary, Chapter, Outline, OutlineEntry
from .models.payloads import (
    BookCreateRequest,
    BookUpdateRequest,
    ChapterBatchUpdateRequest,
    ChapterBatchUpdateResponse,
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    DeletedCountResponse,
    OutlineEntryInput,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
    OutlineSaveResponse,
)
from .ordering import ReconciliationPlan, plan_reconciliation
from .titles import chapter_prefix, extract_custom_title, full_title, retitle_entries

__all__ = [
    "Book",
    "BookCreateRequest",
    "BookDetail",
    "BookStatus",
    "BookSummary",
    "BookUpdateRequest",
    "Chapter",
    "ChapterBatchUpdateRequest",
    "ChapterBatchUpdateResponse",
    "ChapterCreateRequest",
    "ChapterOrderUpdate",
    "ChapterUpdateRequest",
    "DeletedCountResponse",
    "FailureKind",
    "MutationStatus",
    "Outline",
    "OutlineEntry",
    "OutlineEntryInput",
    "OutlineEntryPatchRequest",
    "OutlineSaveRequest",
    "OutlineSaveResponse",
    "ReconciliationPlan",
    "chapter_prefix",
    "extract_custom_title",
    "full_title",
    "plan_reconciliation",
    "retitle_entries",
]
