"""Book status transitions driven by chapter count."""

from __future__ import annotations

from typing import Optional

from .enums import BookStatus

_STICKY_STATUSES = {BookStatus.COMPLETED, BookStatus.PUBLISHED}


def calculate_book_status(chapter_count: int, current: Optional[BookStatus] = None) -> BookStatus:
    """Return the status implied by the chapter count.

    Completed and published books are never downgraded automatically.
    """

    if current in _STICKY_STATUSES:
        return current
    if chapter_count > 0:
        return BookStatus.IN_PROGRESS
    return BookStatus.DRAFT
