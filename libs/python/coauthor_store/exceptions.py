"""Custom exceptions raised by book repositories."""

from __future__ import annotations


class StoreError(RuntimeError):
    """Base error raised for persistence failures."""


class BookNotFoundError(StoreError):
    """Raised when the referenced book does not exist."""


class ChapterNotFoundError(StoreError):
    """Raised when a chapter id is unknown or belongs to another book."""


class OutlineEntryNotFoundError(StoreError):
    """Raised when an outline entry id is not part of the book's outline."""


class OrderConflictError(StoreError):
    """Raised when a write would leave two chapters of a book with the same order."""


class InvalidBatchError(StoreError):
    """Raised when a reorder batch is empty or references foreign chapters."""


class StoreConfigError(StoreError):
    """Raised when repository configuration is missing or invalid."""
