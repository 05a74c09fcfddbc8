"""HTTP surface tests for the book API using the in-memory repository."""

from __future__ import annotations

from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from apps.api.app.main import app, get_repository
from coauthor_store import InMemoryBookRepository

from tests.utils.books import outline_rows, seed_book


@pytest.fixture
def repository() -> InMemoryBookRepository:
    return InMemoryBookRepository()


@pytest.fixture
def client(repository: InMemoryBookRepository):
    app.dependency_overrides[get_repository] = lambda: repository
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_create_and_list_books(client: TestClient) -> None:
    response = client.post("/books", json={"title": "Tidal Atlas", "genre": "Non-fiction"})
    assert response.status_code == 201
    book = response.json()
    assert book["status"] == "DRAFT"

    listing = client.get("/books").json()
    assert [row["id"] for row in listing] == [book["id"]]
    assert listing[0]["chapter_count"] == 0


def test_unknown_book_is_404(client: TestClient) -> None:
    missing = uuid4()
    assert client.get(f"/books/{missing}").status_code == 404
    assert client.delete(f"/books/{missing}").status_code == 404
    assert client.get(f"/books/{missing}/chapters").status_code == 404


def test_create_chapter_defaults_to_next_order(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B"])

    response = client.post(
        f"/books/{detail.book.id}/chapters", json={"title": "Appendix", "content": "<p>a b c</p>"}
    )

    assert response.status_code == 201
    assert response.json()["order"] == 3
    assert response.json()["word_count"] == 3


def test_create_chapter_order_collision_is_409(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B"])
    response = client.post(f"/books/{detail.book.id}/chapters", json={"title": "Dup", "order": 1})
    assert response.status_code == 409


def test_batch_update_reorders(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B"])
    a, b = detail.chapters

    response = client.patch(
        f"/books/{detail.book.id}/chapters",
        json={
            "updates": [
                {"id": str(b.id), "order": 1, "title": "Introduction: B"},
                {"id": str(a.id), "order": 2, "title": "Conclusion: A"},
            ]
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert [(row["id"], row["order"]) for row in body["chapters"]] == [(str(b.id), 1), (str(a.id), 2)]


def test_batch_rejections(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B"])
    a, _ = detail.chapters
    url = f"/books/{detail.book.id}/chapters"

    assert client.patch(url, json={"updates": []}).status_code == 400
    assert client.patch(url, json={"updates": [{"id": str(uuid4()), "order": 1}]}).status_code == 400
    assert client.patch(url, json={"updates": [{"id": str(a.id), "order": 2}]}).status_code == 409
    assert client.patch(url, json={"updates": [{"id": str(a.id), "order": 0}]}).status_code == 422


def test_put_chapter_swaps_orders(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B", "C"])
    a, _, c = detail.chapters

    response = client.put(f"/books/{detail.book.id}/chapters/{c.id}", json={"order": 1})

    assert response.status_code == 200
    orders = {row["id"]: row["order"] for row in client.get(f"/books/{detail.book.id}/chapters").json()}
    assert orders[str(a.id)] == 3
    assert orders[str(c.id)] == 1


def test_save_outline_syncs_chapters(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B"])
    rows = [row.model_dump(mode="json") for row in outline_rows(["A", "B", "C"])]

    response = client.post(f"/books/{detail.book.id}/outline", json={"entries": rows, "suggestions": ["Vary pace"]})

    assert response.status_code == 200
    assert response.json()["outline"]["suggestions"] == ["Vary pace"]
    chapters = client.get(f"/books/{detail.book.id}/chapters").json()
    assert [row["title"] for row in chapters] == ["Introduction: A", "Chapter 1: B", "Conclusion: C"]
    assert chapters[0]["content"] == "<p>A draft</p>"


def test_patch_unknown_outline_entry_is_404(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A"])
    response = client.patch(
        f"/books/{detail.book.id}/outline", json={"entry_id": str(uuid4()), "title": "Introduction: X"}
    )
    assert response.status_code == 404


def test_delete_all_chapters_reports_count(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A", "B", "C"])

    response = client.delete(f"/books/{detail.book.id}/chapters")

    assert response.json() == {"message": "All chapters deleted", "deleted_count": 3}
    assert client.get(f"/books/{detail.book.id}").json()["book"]["status"] == "DRAFT"


def test_delete_book(client: TestClient, repository: InMemoryBookRepository) -> None:
    detail = seed_book(repository, ["A"])
    assert client.delete(f"/books/{detail.book.id}").status_code == 204
    assert client.get(f"/books/{detail.book.id}").status_code == 404


def test_metrics_endpoint_counts_requests(client: TestClient) -> None:
    client.get("/health")
    body = client.get("/metrics").text
    assert "coauthor_http_requests_total" in body
