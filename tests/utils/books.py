"""Builders for books with outlines and chapters in a repository."""

from __future__ import annotations

from typing import Optional, Sequence

from coauthor_schemas.models.book import BookDetail
from coauthor_schemas.models.payloads import (
    BookCreateRequest,
    ChapterCreateRequest,
    OutlineEntryInput,
    OutlineSaveRequest,
)
from coauthor_schemas.titles import full_title
from coauthor_store.base import BookRepository


def outline_rows(custom_titles: Sequence[str]) -> list[OutlineEntryInput]:
    total = len(custom_titles)
    return [
        OutlineEntryInput(
            title=full_title(position, total, custom),
            custom_title=custom,
            description=f"About {custom}",
            key_points=[f"{custom} first point", f"{custom} second point"],
        )
        for position, custom in enumerate(custom_titles)
    ]


def seed_book(
    repository: BookRepository,
    custom_titles: Sequence[str],
    *,
    chapter_titles: Optional[Sequence[str]] = None,
    suggestions: Sequence[str] = (),
) -> BookDetail:
    """Create a book whose outline holds ``custom_titles``.

    One chapter per entry of ``chapter_titles`` (defaulting to ``custom_titles``)
    is created with distinct authored content ``<p>{custom} draft</p>``.
    """

    book = repository.create_book(BookCreateRequest(title="Tidal Atlas", genre="Non-fiction"))
    repository.save_outline(
        book.id,
        OutlineSaveRequest(
            entries=outline_rows(custom_titles),
            suggestions=list(suggestions),
            skip_chapter_sync=True,
        ),
    )
    titles = custom_titles if chapter_titles is None else chapter_titles
    total = len(titles)
    for position, custom in enumerate(titles):
        repository.create_chapter(
            book.id,
            ChapterCreateRequest(
                title=full_title(position, total, custom),
                content=f"<p>{custom} draft</p>",
                order=position + 1,
            ),
        )
    return repository.get_book(book.id)


def contents_by_id(detail: BookDetail) -> dict:
    return {chapter.id: chapter.content for chapter in detail.chapters}
