"""HTTP backend error mapping and a round trip through the real API app."""

from __future__ import annotations

import json
from uuid import uuid4

import httpx
import pytest

from apps.api.app.main import app, get_repository
from coauthor_backend import (
    BackendConfig,
    BackendRequestError,
    HttpBookBackend,
    TransientConflictError,
)
from coauthor_schemas import ChapterOrderUpdate, ChapterUpdateRequest, OutlineSaveRequest
from coauthor_store import InMemoryBookRepository

from tests.utils.books import outline_rows, seed_book

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture
def anyio_backend():
    return "asyncio"


def _backend(handler) -> HttpBookBackend:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://test")
    return HttpBookBackend(BackendConfig(api_url="http://test"), client=client)


@pytest.mark.parametrize("status_code", [404, 409])
async def test_missing_or_contended_targets_are_transient(status_code: int) -> None:
    backend = _backend(lambda request: httpx.Response(status_code, json={"detail": "gone"}))

    with pytest.raises(TransientConflictError) as excinfo:
        await backend.delete_chapter(uuid4(), uuid4())

    assert excinfo.value.status_code == status_code
    assert "gone" in str(excinfo.value)


async def test_server_errors_are_request_errors() -> None:
    backend = _backend(lambda request: httpx.Response(500, text="boom"))

    with pytest.raises(BackendRequestError) as excinfo:
        await backend.list_chapters(uuid4())

    assert excinfo.value.status_code == 500


async def test_transport_failure_is_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = _backend(handler)

    with pytest.raises(BackendRequestError) as excinfo:
        await backend.get_book(uuid4())

    assert excinfo.value.status_code is None


async def test_update_chapter_sends_only_set_fields() -> None:
    seen: list[dict] = []
    book_id, chapter_id = uuid4(), uuid4()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(
            200,
            json={
                "id": str(chapter_id),
                "book_id": str(book_id),
                "title": "Conclusion: Sea",
                "content": "<p>kept</p>",
                "order": 2,
                "word_count": 1,
            },
        )

    backend = _backend(handler)
    chapter = await backend.update_chapter(book_id, chapter_id, ChapterUpdateRequest(title="Conclusion: Sea"))

    assert seen == [{"title": "Conclusion: Sea"}]
    assert chapter.content == "<p>kept</p>"


async def test_round_trip_against_api() -> None:
    repository = InMemoryBookRepository()
    detail = seed_book(repository, ["A", "B"])
    a, b = detail.chapters
    app.dependency_overrides[get_repository] = lambda: repository
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")
    backend = HttpBookBackend(client=client)
    try:
        chapters = await backend.batch_update_chapters(
            detail.book.id,
            [
                ChapterOrderUpdate(id=b.id, order=1, title="Introduction: B"),
                ChapterOrderUpdate(id=a.id, order=2, title="Conclusion: A"),
            ],
        )
        outline = await backend.save_outline(
            detail.book.id,
            OutlineSaveRequest(entries=outline_rows(["B", "A"]), skip_chapter_sync=True),
        )
        fetched = await backend.get_book(detail.book.id)
        with pytest.raises(TransientConflictError):
            await backend.delete_chapter(detail.book.id, uuid4())
    finally:
        await backend.aclose()
        app.dependency_overrides.clear()

    assert [chapter.id for chapter in chapters] == [b.id, a.id]
    assert [entry.custom_title for entry in outline.entries] == ["B", "A"]
    assert [chapter.content for chapter in fetched.chapters] == ["<p>B draft</p>", "<p>A draft</p>"]
