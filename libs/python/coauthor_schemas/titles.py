"""Positional chapter titles derived from an entry's place in the outline."""

from __future__ import annotations

from typing import Sequence

from .models.book import OutlineEntry

DEFAULT_CUSTOM_TITLE = "New Chapter"
INTRODUCTION_PREFIX = "Introduction:"
CONCLUSION_PREFIX = "Conclusion:"


def chapter_prefix(position: int, total: int) -> str:
    """Return the semantic label for ``position`` in an outline of ``total`` entries."""

    if position == 0:
        return INTRODUCTION_PREFIX
    if position == total - 1:
        return CONCLUSION_PREFIX
    return f"Chapter {position}:"


def full_title(position: int, total: int, custom_title: str | None) -> str:
    custom = (custom_title or "").strip() or DEFAULT_CUSTOM_TITLE
    return f"{chapter_prefix(position, total)} {custom}"


def extract_custom_title(title: str) -> str:
    """Strip everything up to and including the first colon."""

    colon_index = title.find(":")
    if colon_index == -1:
        return title.strip()
    return title[colon_index + 1 :].strip()


def custom_title_of(entry: OutlineEntry) -> str:
    return entry.custom_title.strip() or extract_custom_title(entry.title)


def retitle_entries(entries: Sequence[OutlineEntry]) -> list[OutlineEntry]:
    """Recompute every full title for the current sequence.

    A pure map over ``entries``: new entry objects are returned and the input is
    left untouched.
    """

    total = len(entries)
    retitled: list[OutlineEntry] = []
    for position, entry in enumerate(entries):
        custom = custom_title_of(entry)
        retitled.append(
            entry.model_copy(
                update={
                    "custom_title": custom,
                    "title": full_title(position, total, custom),
                    "key_points": list(entry.key_points),
                }
            )
        )
    return retitled


__all__ = [
    "DEFAULT_CUSTOM_TITLE",
    "chapter_prefix",
    "custom_title_of",
    "extract_custom_title",
    "full_title",
    "retitle_entries",
]
