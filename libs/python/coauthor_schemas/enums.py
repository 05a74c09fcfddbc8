"""Enum definitions shared across the API and the sync engine."""

from __future__ import annotations

from enum import Enum


class BookStatus(str, Enum):
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    PUBLISHED = "PUBLISHED"


class MutationStatus(str, Enum):
    """Lifecycle of an optimistic mutation."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    BATCH = "batch"
    HARD = "hard"
