"""Content rules for chapters created from outline entries.

Existing chapter content is never rewritten here or anywhere else in the sync
engine; only chapters that do not exist yet receive content, and only once.
"""

from __future__ import annotations

from html import escape
from typing import Callable, Optional

from coauthor_schemas.ordering import OutlineRow

PLACEHOLDER_OVERVIEW = "This chapter needs content."


def seed_chapter_content(row: OutlineRow) -> str:
    """Build the starter HTML for a new chapter from its outline row."""

    overview = escape(row.description.strip()) if row.description.strip() else PLACEHOLDER_OVERVIEW
    key_points = "".join(
        f"<li>{escape(point.strip())}</li>" for point in row.key_points if point.strip()
    )
    return (
        f"<p><strong>Chapter Overview:</strong> {overview}</p>\n\n"
        "<h2>Key Topics to Cover:</h2>\n"
        f"<ul>\n{key_points}\n</ul>\n\n"
        "<p><em>This chapter is ready for writing. Click here to start adding your content...</em></p>"
    )


def content_factory(seed: bool) -> Optional[Callable[[OutlineRow], str]]:
    """Return the content builder for new chapters, or ``None`` for empty chapters."""

    return seed_chapter_content if seed else None
