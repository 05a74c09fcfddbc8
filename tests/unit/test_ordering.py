"""Tests for the pure chapter reconciliation planner."""

from uuid import uuid4

from coauthor_schemas.models.book import Chapter
from coauthor_schemas.ordering import (
    TEMP_ORDER_OFFSET,
    move_item,
    plan_reconciliation,
    renumbered_updates,
    temporary_orders,
)

from tests.utils.books import outline_rows

BOOK_ID = uuid4()


def _chapters(titles: list[str]) -> list[Chapter]:
    return [
        Chapter(book_id=BOOK_ID, title=title, content=f"<p>body {index}</p>", order=index + 1)
        for index, title in enumerate(titles)
    ]


def test_aligned_outline_still_plans_full_batch() -> None:
    rows = outline_rows(["X", "Y", "Z", "W"])
    chapters = _chapters(["Introduction: X", "Chapter 1: Y", "Chapter 2: Z", "Conclusion: W"])

    plan = plan_reconciliation(rows, chapters)

    assert len(plan.updates) == 4
    assert plan.is_aligned
    assert not plan.creates and not plan.deletes


def test_growth_creates_only_missing_positions() -> None:
    rows = outline_rows(["A", "B", "D", "E", "C"])
    chapters = _chapters(["Introduction: A", "Chapter 1: B", "Conclusion: C"])

    plan = plan_reconciliation(rows, chapters, seed_content=lambda row: f"<p>{row.description}</p>")

    assert [(update.order, update.title) for update in plan.updates] == [
        (1, "Introduction: A"),
        (2, "Chapter 1: B"),
        (3, "Chapter 2: D"),
    ]
    assert [(create.order, create.title) for create in plan.creates] == [
        (4, "Chapter 3: E"),
        (5, "Conclusion: C"),
    ]
    assert plan.creates[0].content == "<p>About E</p>"
    assert plan.deletes == []


def test_shrink_deletes_highest_orders_first() -> None:
    rows = outline_rows(["A", "B", "C"])
    chapters = _chapters(["Introduction: A", "Chapter 1: B", "Chapter 2: C", "Chapter 3: D", "Conclusion: E"])

    plan = plan_reconciliation(rows, list(reversed(chapters)))

    assert [update.id for update in plan.updates] == [chapter.id for chapter in chapters[:3]]
    assert plan.updates[2].title == "Conclusion: C"
    assert [chapter.order for chapter in plan.deletes] == [5, 4]


def test_empty_outline_deletes_everything() -> None:
    chapters = _chapters(["Introduction: A", "Conclusion: B"])

    plan = plan_reconciliation([], chapters)

    assert plan.updates == []
    assert [chapter.order for chapter in plan.deletes] == [2, 1]


def test_plan_never_carries_content_for_existing_chapters() -> None:
    rows = outline_rows(["A", "B"])
    chapters = _chapters(["Conclusion: B", "Introduction: A"])

    plan = plan_reconciliation(rows, chapters, seed_content=lambda row: "SEED")

    assert all("content" not in update.model_dump(exclude_none=True) for update in plan.updates)
    assert plan.creates == []


def test_temporary_orders_sit_below_live_range() -> None:
    orders = temporary_orders(3, 1)
    assert len(set(orders)) == 3
    assert max(orders) == 1 - TEMP_ORDER_OFFSET
    assert all(order < 1 for order in orders)


def test_move_item_splices_without_mutating_input() -> None:
    items = ["a", "b", "c", "d"]
    assert move_item(items, 2, 0) == ["c", "a", "b", "d"]
    assert move_item(items, 0, 3) == ["b", "c", "d", "a"]
    assert items == ["a", "b", "c", "d"]


def test_renumbered_updates_close_gaps() -> None:
    chapters = _chapters(["Introduction: A", "Chapter 1: B", "Chapter 2: C", "Conclusion: D"])
    survivors = [chapters[0], chapters[2], chapters[3]]
    rows = outline_rows(["A", "C"])

    updates = renumbered_updates(survivors, rows)

    assert [update.order for update in updates] == [1, 2, 3]
    assert [update.title for update in updates] == ["Introduction: A", "Conclusion: C", "Conclusion: D"]
