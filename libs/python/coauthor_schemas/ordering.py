"""Pure planning helpers that keep chapters aligned with the outline.

Both the API's canonical chapter sync and the client-side reconciler use
:func:`plan_reconciliation`, so the two paths can never disagree on which
chapter lands at which position.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol, Sequence, TypeVar

from .models.book import Chapter
from .models.payloads import ChapterCreateRequest, ChapterOrderUpdate
from .titles import extract_custom_title, full_title

TEMP_ORDER_OFFSET = 1_000_000

T = TypeVar("T")


class OutlineRow(Protocol):
    title: str
    description: str
    key_points: list[str]


@dataclass(slots=True)
class ReconciliationPlan:
    """Operations that make a chapter list match an outline one-to-one."""

    updates: list[ChapterOrderUpdate] = field(default_factory=list)
    creates: list[ChapterCreateRequest] = field(default_factory=list)
    deletes: list[Chapter] = field(default_factory=list)
    unchanged: int = 0

    @property
    def is_aligned(self) -> bool:
        return not self.creates and not self.deletes and self.unchanged == len(self.updates)


def desired_title(row: OutlineRow, position: int, total: int) -> str:
    custom = (getattr(row, "custom_title", None) or "").strip() or extract_custom_title(row.title)
    return full_title(position, total, custom)


def plan_reconciliation(
    rows: Sequence[OutlineRow],
    chapters: Sequence[Chapter],
    *,
    seed_content: Optional[Callable[[OutlineRow], str]] = None,
) -> ReconciliationPlan:
    """Diff ``rows`` against ``chapters`` by position.

    Args:
        rows: Desired outline, in order.
        chapters: Current chapters in any order; they are paired by ascending
            ``order``.
        seed_content: Builds content for chapters that do not exist yet. Existing
            chapters never receive content from the plan.

    Returns:
        The reorder/retitle batch for the overlapping prefix, the chapters to
        create (ascending order) and the chapters to delete (highest order first).
    """

    ordered = sorted(chapters, key=lambda chapter: chapter.order)
    total = len(rows)
    overlap = min(total, len(ordered))
    plan = ReconciliationPlan()

    for index in range(overlap):
        chapter = ordered[index]
        title = desired_title(rows[index], index, total)
        plan.updates.append(ChapterOrderUpdate(id=chapter.id, order=index + 1, title=title))
        if chapter.order == index + 1 and chapter.title == title:
            plan.unchanged += 1

    for index in range(overlap, total):
        row = rows[index]
        plan.creates.append(
            ChapterCreateRequest(
                title=desired_title(row, index, total),
                content=seed_content(row) if seed_content else "",
                order=index + 1,
            )
        )

    plan.deletes = list(reversed(ordered[total:]))
    return plan


def temporary_orders(count: int, min_order: int) -> list[int]:
    """Return ``count`` distinct orders strictly below every live order."""

    base = min(min_order, 1) - TEMP_ORDER_OFFSET
    return [base - index for index in range(count)]


def move_item(items: Sequence[T], from_index: int, to_index: int) -> list[T]:
    """Remove the item at ``from_index`` and insert it at ``to_index``."""

    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return moved


def renumbered_updates(
    chapters: Sequence[Chapter],
    rows: Sequence[OutlineRow] = (),
) -> list[ChapterOrderUpdate]:
    """Close gaps in ``chapters`` and re-derive titles where the outline covers them."""

    ordered = sorted(chapters, key=lambda chapter: chapter.order)
    total = len(rows)
    updates: list[ChapterOrderUpdate] = []
    for index, chapter in enumerate(ordered):
        title = desired_title(rows[index], index, total) if index < total else chapter.title
        updates.append(ChapterOrderUpdate(id=chapter.id, order=index + 1, title=title))
    return updates


__all__ = [
    "ReconciliationPlan",
    "TEMP_ORDER_OFFSET",
    "desired_title",
    "move_item",
    "plan_reconciliation",
    "renumbered_updates",
    "temporary_orders",
]
