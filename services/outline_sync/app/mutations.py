"""Pure outline/chapter mutations.

Every function takes the current :class:`BookDetail` and returns the next one
together with the remote calls that persist it. Nothing here performs I/O or
touches shared state; invalid arguments raise ``ValueError`` before any state
is produced.
"""

from __future__ import annotations

from typing import Iterable, Optional, Sequence
from uuid import UUID

from coauthor_schemas.models.book import BookDetail, Chapter, Outline, OutlineEntry, utcnow
from coauthor_schemas.models.payloads import (
    ChapterOrderUpdate,
    OutlineEntryInput,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)
from coauthor_schemas.ordering import move_item, renumbered_updates
from coauthor_schemas.titles import DEFAULT_CUSTOM_TITLE, full_title, retitle_entries
from coauthor_schemas.utils.validators import clean_key_points

from .models import (
    BatchChapters,
    MutationResult,
    PatchOutlineEntry,
    ReorderChapters,
    ReorderPayload,
    ResyncChapters,
    SaveOutline,
)


def outline_of(detail: BookDetail) -> Outline:
    return detail.outline or Outline(book_id=detail.book.id)


def outline_payload(
    entries: Sequence[OutlineEntry], suggestions: Sequence[str], *, skip_chapter_sync: bool = True
) -> OutlineSaveRequest:
    return OutlineSaveRequest(
        entries=[OutlineEntryInput.from_entry(entry) for entry in entries],
        suggestions=list(suggestions),
        skip_chapter_sync=skip_chapter_sync,
    )


def project_chapters(chapters: Sequence[Chapter], entries: Sequence[OutlineEntry]) -> list[Chapter]:
    """Predict the chapter list a full resync will produce for ``entries``.

    Chapters are paired with entries by position: the first ``len(entries)``
    chapters take ``order = i + 1`` and the entry's title, surplus chapters are
    dropped. Chapters still to be created are not represented until the server
    assigns them ids.
    """

    ordered = sorted(chapters, key=lambda chapter: chapter.order)
    return [
        chapter.model_copy(update={"order": index + 1, "title": entries[index].title})
        for index, chapter in enumerate(ordered[: len(entries)])
    ]


def _with(detail: BookDetail, *, entries=None, suggestions=None, chapters=None) -> BookDetail:
    outline = outline_of(detail)
    outline_update: dict[str, object] = {"updated_at": utcnow()}
    if entries is not None:
        outline_update["entries"] = list(entries)
    if suggestions is not None:
        outline_update["suggestions"] = list(suggestions)
    update: dict[str, object] = {"outline": outline.model_copy(update=outline_update)}
    if chapters is not None:
        update["chapters"] = list(chapters)
    return detail.model_copy(update=update)


def _check_index(index: int, size: int, *, label: str) -> None:
    if not 0 <= index < size:
        raise ValueError(f"{label} index {index} is out of range for {size} items")


# Reordering ------------------------------------------------------------------


def move_entry(detail: BookDetail, from_index: int, to_index: int) -> MutationResult:
    """Move one outline entry and mirror the splice onto the chapter list."""

    entries = outline_of(detail).entries
    _check_index(from_index, len(entries), label="Source")
    _check_index(to_index, len(entries), label="Target")
    if from_index == to_index:
        return MutationResult(detail=detail)

    moved_entries = retitle_entries(move_item(entries, from_index, to_index))
    chapters = sorted(detail.chapters, key=lambda chapter: chapter.order)
    # With fewer chapters than entries, a move touching an index past the last
    # chapter leaves chapters in place and only retitles them. The next full
    # resync pairs them with the outline again.
    if from_index < len(chapters) and to_index < len(chapters):
        chapters = move_item(chapters, from_index, to_index)
    mirrored = [
        chapter.model_copy(
            update={
                "order": index + 1,
                "title": moved_entries[index].title if index < len(moved_entries) else chapter.title,
            }
        )
        for index, chapter in enumerate(chapters)
    ]

    payload = ReorderPayload(
        updates=tuple(
            ChapterOrderUpdate(id=chapter.id, order=chapter.order, title=chapter.title)
            for chapter in mirrored
        ),
        outline=outline_payload(moved_entries, outline_of(detail).suggestions),
    )
    return MutationResult(
        detail=_with(detail, entries=moved_entries, chapters=mirrored),
        calls=(ReorderChapters(payload),),
    )


# Structural edits ------------------------------------------------------------


def _structural(detail: BookDetail, entries: list[OutlineEntry], suggestions=None) -> MutationResult:
    retitled = retitle_entries(entries)
    suggestions = outline_of(detail).suggestions if suggestions is None else list(suggestions)
    return MutationResult(
        detail=_with(
            detail,
            entries=retitled,
            suggestions=suggestions,
            chapters=project_chapters(detail.chapters, retitled),
        ),
        calls=(ResyncChapters(outline_payload(retitled, suggestions)),),
    )


def insert_entry(
    detail: BookDetail,
    index: int,
    *,
    custom_title: Optional[str] = None,
    description: str = "",
    key_points: Iterable[str] = (),
) -> MutationResult:
    """Insert a new entry so that it ends up at ``index``."""

    entries = list(outline_of(detail).entries)
    _check_index(index, len(entries) + 1, label="Insert")
    custom = (custom_title or "").strip() or DEFAULT_CUSTOM_TITLE
    entries.insert(
        index,
        OutlineEntry(
            title=full_title(index, len(entries) + 1, custom),
            custom_title=custom,
            description=description,
            key_points=clean_key_points(key_points),
        ),
    )
    return _structural(detail, entries)


def delete_entry(detail: BookDetail, index: int) -> MutationResult:
    entries = list(outline_of(detail).entries)
    _check_index(index, len(entries), label="Entry")
    del entries[index]
    return _structural(detail, entries)


def replace_outline(
    detail: BookDetail,
    rows: Sequence[OutlineEntryInput],
    suggestions: Optional[Sequence[str]] = None,
) -> MutationResult:
    """Swap in a whole new outline, e.g. a freshly generated one."""

    entries = [
        OutlineEntry(
            **({"id": row.id} if row.id else {}),
            title=row.title,
            custom_title=(row.custom_title or "").strip(),
            description=row.description,
            key_points=clean_key_points(row.key_points),
        )
        for row in rows
    ]
    return _structural(detail, entries, suggestions)


def edit_entry(
    detail: BookDetail,
    entry_id: UUID,
    *,
    custom_title: str,
    description: Optional[str] = None,
    key_points: Optional[Iterable[str]] = None,
) -> MutationResult:
    """Edit one entry in place; its position and every other entry are unchanged."""

    entries = outline_of(detail).entries
    position = next((index for index, entry in enumerate(entries) if entry.id == entry_id), None)
    if position is None:
        raise ValueError(f"Outline entry {entry_id} is not in this outline")
    custom = custom_title.strip()
    if not custom:
        raise ValueError("Entry title cannot be blank")

    title = full_title(position, len(entries), custom)
    update: dict[str, object] = {"title": title, "custom_title": custom}
    if description is not None:
        update["description"] = description
    cleaned = clean_key_points(key_points) if key_points is not None else None
    if cleaned is not None:
        update["key_points"] = cleaned
    edited = list(entries)
    edited[position] = entries[position].model_copy(update=update)

    chapters = [
        chapter.model_copy(update={"title": title}) if chapter.order == position + 1 else chapter
        for chapter in detail.chapters
    ]
    patch = OutlineEntryPatchRequest(
        entry_id=entry_id, title=title, description=description, key_points=cleaned
    )
    return MutationResult(
        detail=_with(detail, entries=edited, chapters=chapters),
        calls=(PatchOutlineEntry(patch=patch, position=position),),
    )


# Suggestions -----------------------------------------------------------------


def _clean_suggestion(text: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValueError("Suggestion text cannot be blank")
    return cleaned


def _suggestions_result(detail: BookDetail, suggestions: list[str]) -> MutationResult:
    entries = outline_of(detail).entries
    return MutationResult(
        detail=_with(detail, suggestions=suggestions),
        calls=(SaveOutline(outline_payload(entries, suggestions)),),
    )


def add_suggestion(detail: BookDetail, text: str) -> MutationResult:
    suggestions = [*outline_of(detail).suggestions, _clean_suggestion(text)]
    return _suggestions_result(detail, suggestions)


def edit_suggestion(detail: BookDetail, index: int, text: str) -> MutationResult:
    suggestions = list(outline_of(detail).suggestions)
    _check_index(index, len(suggestions), label="Suggestion")
    suggestions[index] = _clean_suggestion(text)
    return _suggestions_result(detail, suggestions)


def delete_suggestion(detail: BookDetail, index: int) -> MutationResult:
    suggestions = list(outline_of(detail).suggestions)
    _check_index(index, len(suggestions), label="Suggestion")
    del suggestions[index]
    return _suggestions_result(detail, suggestions)


# Chapters --------------------------------------------------------------------


def remove_chapter(detail: BookDetail, chapter_id: UUID) -> MutationResult:
    """Drop a chapter the server already deleted and close the gap it left."""

    survivors = [chapter for chapter in detail.chapters if chapter.id != chapter_id]
    if len(survivors) == len(detail.chapters):
        raise ValueError(f"Chapter {chapter_id} is not in this book")

    updates = renumbered_updates(survivors, outline_of(detail).entries)
    by_id = {chapter.id: chapter for chapter in survivors}
    renumbered = [
        by_id[update.id].model_copy(update={"order": update.order, "title": update.title})
        for update in updates
    ]
    calls = (BatchChapters(tuple(updates)),) if updates else ()
    return MutationResult(detail=_with(detail, chapters=renumbered), calls=calls)


__all__ = [
    "add_suggestion",
    "delete_entry",
    "delete_suggestion",
    "edit_entry",
    "edit_suggestion",
    "insert_entry",
    "move_entry",
    "outline_of",
    "outline_payload",
    "project_chapters",
    "remove_chapter",
    "replace_outline",
]
