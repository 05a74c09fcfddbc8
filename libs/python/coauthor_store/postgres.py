"""Postgres repository built on a psycopg connection pool."""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
from uuid import UUID, uuid4

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from coauthor_schemas.enums import BookStatus
from coauthor_schemas.models.book import Book, BookDetail, BookSummary, Chapter, Outline
from coauthor_schemas.models.payloads import (
    BookCreateRequest,
    BookUpdateRequest,
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
)
from coauthor_schemas.ordering import plan_reconciliation, temporary_orders
from coauthor_schemas.status import calculate_book_status
from coauthor_schemas.utils.validators import count_words_in_html

from .base import (
    BookRepository,
    build_outline_entries,
    check_batch,
    next_chapter_order,
    patch_outline_entries,
)
from .config import StoreConfig
from .exceptions import (
    BookNotFoundError,
    ChapterNotFoundError,
    OrderConflictError,
    OutlineEntryNotFoundError,
)

logger = logging.getLogger(__name__)

SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS books (
    id UUID PRIMARY KEY,
    title TEXT NOT NULL,
    genre TEXT,
    target_audience TEXT,
    custom_instructions TEXT,
    status TEXT NOT NULL DEFAULT 'DRAFT',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS outlines (
    id UUID PRIMARY KEY,
    book_id UUID NOT NULL UNIQUE REFERENCES books(id) ON DELETE CASCADE,
    entries JSONB NOT NULL DEFAULT '[]'::jsonb,
    suggestions JSONB NOT NULL DEFAULT '[]'::jsonb,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS chapters (
    id UUID PRIMARY KEY,
    book_id UUID NOT NULL REFERENCES books(id) ON DELETE CASCADE,
    title TEXT NOT NULL,
    content TEXT NOT NULL DEFAULT '',
    "order" INTEGER NOT NULL,
    word_count INTEGER NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    CONSTRAINT chapters_book_order_key UNIQUE (book_id, "order")
);

CREATE INDEX IF NOT EXISTS idx_chapters_book_id ON chapters(book_id);
"""

_CHAPTER_COLUMNS = 'id, book_id, title, content, "order", word_count, created_at, updated_at'


class PostgresBookRepository(BookRepository):
    """Repository that runs every public call inside one transaction.

    The book row is locked with ``SELECT ... FOR UPDATE`` before any chapter or
    outline write, so concurrent writers to the same book are serialised.
    """

    name = "postgres"

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    @classmethod
    def from_config(cls, config: StoreConfig) -> "PostgresBookRepository":
        pool = ConnectionPool(
            config.conninfo,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            open=True,
        )
        return cls(pool)

    def initialise(self) -> None:
        with self._cursor() as cur:
            cur.execute(SCHEMA_DDL)
        logger.info("Database schema ensured")

    @contextmanager
    def _cursor(self) -> Iterator[psycopg.Cursor[dict[str, Any]]]:
        with self._pool.connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                try:
                    yield cur
                except psycopg.errors.UniqueViolation as exc:
                    raise OrderConflictError("Chapter order is already taken") from exc
            conn.commit()

    # Books -----------------------------------------------------------------

    def create_book(self, payload: BookCreateRequest) -> Book:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO books (id, title, genre, target_audience, custom_instructions, status)
                VALUES (%s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    uuid4(),
                    payload.title,
                    payload.genre,
                    payload.target_audience,
                    payload.custom_instructions,
                    BookStatus.DRAFT.value,
                ),
            )
            row = cur.fetchone()
        return Book(**row)

    def list_books(self) -> list[BookSummary]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT b.id, b.title, b.status, b.updated_at,
                       COUNT(c.id) AS chapter_count,
                       COALESCE(SUM(c.word_count), 0) AS total_word_count
                FROM books b
                LEFT JOIN chapters c ON c.book_id = b.id
                GROUP BY b.id
                ORDER BY b.updated_at DESC
                """
            )
            rows = cur.fetchall()
        return [BookSummary(**row) for row in rows]

    def get_book(self, book_id: UUID) -> BookDetail:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM books WHERE id = %s", (book_id,))
            book_row = cur.fetchone()
            if not book_row:
                raise BookNotFoundError(f"Book {book_id} not found")
            cur.execute("SELECT * FROM outlines WHERE book_id = %s", (book_id,))
            outline_row = cur.fetchone()
            chapters = self._fetch_chapters(cur, book_id)
        return BookDetail(
            book=Book(**book_row),
            outline=Outline(**outline_row) if outline_row else None,
            chapters=chapters,
        )

    def update_book(self, book_id: UUID, payload: BookUpdateRequest) -> Book:
        with self._cursor() as cur:
            book = Book(**self._lock_book(cur, book_id))
            changes = payload.model_dump(exclude_unset=True)
            if changes.get("status") is None:
                changes["status"] = calculate_book_status(
                    self._count_chapters(cur, book_id), book.status
                )
            updated = book.model_copy(update=changes)
            cur.execute(
                """
                UPDATE books
                SET title = %s,
                    genre = %s,
                    target_audience = %s,
                    custom_instructions = %s,
                    status = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (
                    updated.title,
                    updated.genre,
                    updated.target_audience,
                    updated.custom_instructions,
                    BookStatus(updated.status).value,
                    book_id,
                ),
            )
            row = cur.fetchone()
        return Book(**row)

    def delete_book(self, book_id: UUID) -> None:
        with self._cursor() as cur:
            cur.execute("DELETE FROM books WHERE id = %s", (book_id,))
            if cur.rowcount == 0:
                raise BookNotFoundError(f"Book {book_id} not found")

    # Chapters --------------------------------------------------------------

    def list_chapters(self, book_id: UUID) -> list[Chapter]:
        with self._cursor() as cur:
            cur.execute("SELECT id FROM books WHERE id = %s", (book_id,))
            if not cur.fetchone():
                raise BookNotFoundError(f"Book {book_id} not found")
            return self._fetch_chapters(cur, book_id)

    def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        with self._cursor() as cur:
            book_row = self._lock_book(cur, book_id)
            orders = [chapter.order for chapter in self._fetch_chapters(cur, book_id)]
            order = payload.order if payload.order is not None else next_chapter_order(orders)
            if order in orders:
                raise OrderConflictError(f"Order {order} is already taken")
            chapter = self._insert_chapter(cur, book_id, payload.title, payload.content, order)
            self._refresh_status(cur, book_id, book_row["status"])
        return chapter

    def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        with self._cursor() as cur:
            self._lock_book(cur, book_id)
            chapters = self._fetch_chapters(cur, book_id)
            chapter = next((item for item in chapters if item.id == chapter_id), None)
            if chapter is None:
                raise ChapterNotFoundError(f"Chapter {chapter_id} not found")

            order = chapter.order
            if payload.order is not None and payload.order != chapter.order:
                order = payload.order
                holder = next((item for item in chapters if item.order == payload.order), None)
                if holder is not None:
                    (parking,) = temporary_orders(1, min(item.order for item in chapters))
                    self._set_order(cur, chapter.id, parking)
                    self._set_order(cur, holder.id, chapter.order)

            content = payload.content if payload.content is not None else chapter.content
            cur.execute(
                f"""
                UPDATE chapters
                SET title = %s,
                    content = %s,
                    word_count = %s,
                    "order" = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING {_CHAPTER_COLUMNS}
                """,
                (
                    payload.title if payload.title is not None else chapter.title,
                    content,
                    count_words_in_html(content) if payload.content is not None else chapter.word_count,
                    order,
                    chapter_id,
                ),
            )
            row = cur.fetchone()
            self._touch(cur, book_id)
        return Chapter(**row)

    def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        with self._cursor() as cur:
            self._lock_book(cur, book_id)
            self._apply_batch(cur, self._fetch_chapters(cur, book_id), updates)
            self._touch(cur, book_id)
            chapters = self._fetch_chapters(cur, book_id)
        logger.debug(
            "Applied chapter batch", extra={"book_id": str(book_id), "update_count": len(updates)}
        )
        return chapters

    def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        with self._cursor() as cur:
            book_row = self._lock_book(cur, book_id)
            cur.execute(
                "DELETE FROM chapters WHERE id = %s AND book_id = %s", (chapter_id, book_id)
            )
            if cur.rowcount == 0:
                raise ChapterNotFoundError(f"Chapter {chapter_id} not found")
            self._refresh_status(cur, book_id, book_row["status"])

    def delete_all_chapters(self, book_id: UUID) -> int:
        with self._cursor() as cur:
            book_row = self._lock_book(cur, book_id)
            cur.execute("DELETE FROM chapters WHERE book_id = %s", (book_id,))
            deleted = cur.rowcount
            self._refresh_status(cur, book_id, book_row["status"])
        return deleted

    # Outline ---------------------------------------------------------------

    def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        entries = build_outline_entries(payload.entries)
        with self._cursor() as cur:
            book_row = self._lock_book(cur, book_id)
            cur.execute(
                """
                INSERT INTO outlines (id, book_id, entries, suggestions, updated_at)
                VALUES (%s, %s, %s::jsonb, %s::jsonb, NOW())
                ON CONFLICT (book_id) DO UPDATE
                SET entries = EXCLUDED.entries,
                    suggestions = EXCLUDED.suggestions,
                    updated_at = NOW()
                RETURNING *
                """,
                (
                    uuid4(),
                    book_id,
                    json.dumps([entry.model_dump(mode="json") for entry in entries]),
                    json.dumps(list(payload.suggestions)),
                ),
            )
            outline = Outline(**cur.fetchone())
            if not payload.skip_chapter_sync:
                self._sync_chapters(cur, book_id, outline)
                self._refresh_status(cur, book_id, book_row["status"])
            else:
                self._touch(cur, book_id)
        return outline

    def update_outline_entry(self, book_id: UUID, payload: OutlineEntryPatchRequest) -> Outline:
        with self._cursor() as cur:
            self._lock_book(cur, book_id)
            cur.execute("SELECT * FROM outlines WHERE book_id = %s FOR UPDATE", (book_id,))
            row = cur.fetchone()
            entries = patch_outline_entries(Outline(**row).entries, payload) if row else None
            if entries is None:
                raise OutlineEntryNotFoundError(f"Outline entry {payload.entry_id} not found")
            cur.execute(
                """
                UPDATE outlines
                SET entries = %s::jsonb, updated_at = NOW()
                WHERE book_id = %s
                RETURNING *
                """,
                (json.dumps([entry.model_dump(mode="json") for entry in entries]), book_id),
            )
            updated = cur.fetchone()
        return Outline(**updated)

    def delete_outline(self, book_id: UUID) -> None:
        with self._cursor() as cur:
            self._lock_book(cur, book_id)
            cur.execute("DELETE FROM outlines WHERE book_id = %s", (book_id,))

    # Internals -------------------------------------------------------------

    def _lock_book(self, cur: psycopg.Cursor, book_id: UUID) -> dict[str, Any]:
        cur.execute("SELECT * FROM books WHERE id = %s FOR UPDATE", (book_id,))
        row = cur.fetchone()
        if not row:
            raise BookNotFoundError(f"Book {book_id} not found")
        return row

    def _fetch_chapters(self, cur: psycopg.Cursor, book_id: UUID) -> list[Chapter]:
        cur.execute(
            f'SELECT {_CHAPTER_COLUMNS} FROM chapters WHERE book_id = %s ORDER BY "order" ASC',
            (book_id,),
        )
        return [Chapter(**row) for row in cur.fetchall()]

    def _count_chapters(self, cur: psycopg.Cursor, book_id: UUID) -> int:
        cur.execute("SELECT COUNT(*) AS total FROM chapters WHERE book_id = %s", (book_id,))
        row = cur.fetchone()
        return int(row["total"]) if row else 0

    def _insert_chapter(
        self, cur: psycopg.Cursor, book_id: UUID, title: str, content: str, order: int
    ) -> Chapter:
        cur.execute(
            f"""
            INSERT INTO chapters (id, book_id, title, content, "order", word_count)
            VALUES (%s, %s, %s, %s, %s, %s)
            RETURNING {_CHAPTER_COLUMNS}
            """,
            (uuid4(), book_id, title, content, order, count_words_in_html(content)),
        )
        return Chapter(**cur.fetchone())

    def _set_order(self, cur: psycopg.Cursor, chapter_id: UUID, order: int) -> None:
        cur.execute(
            'UPDATE chapters SET "order" = %s, updated_at = NOW() WHERE id = %s',
            (order, chapter_id),
        )

    def _apply_batch(
        self,
        cur: psycopg.Cursor,
        chapters: Sequence[Chapter],
        updates: Sequence[ChapterOrderUpdate],
    ) -> None:
        check_batch({chapter.id: chapter.order for chapter in chapters}, updates)
        parking = temporary_orders(len(updates), min(chapter.order for chapter in chapters))
        # Park every moved chapter outside the live range first so the final
        # writes never trip the (book_id, order) unique constraint.
        for update, temporary in zip(updates, parking):
            self._set_order(cur, update.id, temporary)
        for update in updates:
            cur.execute(
                """
                UPDATE chapters
                SET "order" = %s, title = COALESCE(%s, title), updated_at = NOW()
                WHERE id = %s
                """,
                (update.order, update.title, update.id),
            )

    def _sync_chapters(self, cur: psycopg.Cursor, book_id: UUID, outline: Outline) -> None:
        chapters = self._fetch_chapters(cur, book_id)
        plan = plan_reconciliation(outline.entries, chapters)
        if plan.updates:
            self._apply_batch(cur, chapters, plan.updates)
        for request in plan.creates:
            self._insert_chapter(cur, book_id, request.title, request.content, request.order)
        for chapter in plan.deletes:
            cur.execute("DELETE FROM chapters WHERE id = %s", (chapter.id,))
        logger.info(
            "Synchronised chapters with outline",
            extra={
                "book_id": str(book_id),
                "update_count": len(plan.updates),
                "created_count": len(plan.creates),
                "deleted_count": len(plan.deletes),
            },
        )

    def _refresh_status(self, cur: psycopg.Cursor, book_id: UUID, current: str) -> None:
        status = calculate_book_status(self._count_chapters(cur, book_id), BookStatus(current))
        cur.execute(
            "UPDATE books SET status = %s, updated_at = NOW() WHERE id = %s",
            (status.value, book_id),
        )

    def _touch(self, cur: psycopg.Cursor, book_id: UUID) -> None:
        cur.execute("UPDATE books SET updated_at = NOW() WHERE id = %s", (book_id,))
