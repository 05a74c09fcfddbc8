"""Reusable validation and text helpers."""

from __future__ import annotations

import re
from typing import Iterable

_TAG_PATTERN = re.compile(r"<[^>]*>")
_WHITESPACE_PATTERN = re.compile(r"\s+")
_ENTITIES = (
    ("&nbsp;", " "),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
)


class OrderSequenceError(ValueError):
    """Raised when chapter orders are not a contiguous ``1..N`` run."""


def extract_text_from_html(html: str | None) -> str:
    """Return the visible text of an HTML fragment with whitespace collapsed."""

    if not html:
        return ""
    text = _TAG_PATTERN.sub(" ", html)
    for entity, replacement in _ENTITIES:
        text = text.replace(entity, replacement)
    return _WHITESPACE_PATTERN.sub(" ", text).strip()


def count_words_in_html(html: str | None) -> int:
    """Count whitespace separated words in the visible text of ``html``."""

    plain = extract_text_from_html(html)
    if not plain:
        return 0
    return len([word for word in plain.split(" ") if word])


def ensure_contiguous_orders(orders: Iterable[int], *, field_name: str = "order") -> list[int]:
    """Validate that ``orders`` is exactly ``1..N`` once sorted.

    Args:
        orders: Order values of a book's chapters in any sequence.
        field_name: Name used in the raised error message.

    Returns:
        The sorted order values when validation succeeds.

    Raises:
        OrderSequenceError: On duplicates or gaps.
    """

    values = sorted(orders)
    expected = list(range(1, len(values) + 1))
    if values != expected:
        raise OrderSequenceError(
            f"{field_name} values must be contiguous starting at 1: got {values}"
        )
    return values


def clean_key_points(points: Iterable[str]) -> list[str]:
    return [point.strip() for point in points if point and point.strip()]
