"""Backend that talks to the Book Co-Author API over HTTP."""

from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Optional, Sequence
from uuid import UUID

import httpx

from coauthor_schemas.models.book import BookDetail, Chapter, Outline
from coauthor_schemas.models.payloads import (
    ChapterBatchUpdateRequest,
    ChapterBatchUpdateResponse,
    ChapterCreateRequest,
    ChapterOrderUpdate,
    ChapterUpdateRequest,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
    OutlineSaveResponse,
)

from .base import BookBackend
from .config import BackendConfig
from .exceptions import BackendRequestError, TransientConflictError

logger = logging.getLogger(__name__)

_TRANSIENT_STATUSES = {404, 409}


class HttpBookBackend(BookBackend):
    name = "http"

    def __init__(
        self,
        config: BackendConfig | None = None,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._config = config or BackendConfig()
        self._client = client or httpx.AsyncClient(
            base_url=self._config.api_url, timeout=self._config.timeout_seconds
        )

    async def get_book(self, book_id: UUID) -> BookDetail:
        data = await self._request("GET", f"/books/{book_id}")
        return BookDetail.model_validate(data)

    async def list_chapters(self, book_id: UUID) -> list[Chapter]:
        data = await self._request("GET", f"/books/{book_id}/chapters")
        return [Chapter.model_validate(item) for item in data]

    async def batch_update_chapters(
        self, book_id: UUID, updates: Sequence[ChapterOrderUpdate]
    ) -> list[Chapter]:
        payload = ChapterBatchUpdateRequest(updates=list(updates))
        data = await self._request(
            "PATCH", f"/books/{book_id}/chapters", json=payload.model_dump(mode="json")
        )
        return ChapterBatchUpdateResponse.model_validate(data).chapters

    async def create_chapter(self, book_id: UUID, payload: ChapterCreateRequest) -> Chapter:
        data = await self._request(
            "POST", f"/books/{book_id}/chapters", json=payload.model_dump(mode="json")
        )
        return Chapter.model_validate(data)

    async def update_chapter(
        self, book_id: UUID, chapter_id: UUID, payload: ChapterUpdateRequest
    ) -> Chapter:
        data = await self._request(
            "PUT",
            f"/books/{book_id}/chapters/{chapter_id}",
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        return Chapter.model_validate(data)

    async def delete_chapter(self, book_id: UUID, chapter_id: UUID) -> None:
        await self._request("DELETE", f"/books/{book_id}/chapters/{chapter_id}")

    async def save_outline(self, book_id: UUID, payload: OutlineSaveRequest) -> Outline:
        data = await self._request(
            "POST", f"/books/{book_id}/outline", json=payload.model_dump(mode="json")
        )
        return OutlineSaveResponse.model_validate(data).outline

    async def update_outline_entry(
        self, book_id: UUID, payload: OutlineEntryPatchRequest
    ) -> Outline:
        data = await self._request(
            "PATCH",
            f"/books/{book_id}/outline",
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        return OutlineSaveResponse.model_validate(data).outline

    async def delete_book(self, book_id: UUID) -> None:
        await self._request("DELETE", f"/books/{book_id}")

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, *, json: Any = None) -> Any:
        start = perf_counter()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise BackendRequestError(f"{method} {path} failed: {exc}") from exc

        latency_ms = round((perf_counter() - start) * 1000, 2)
        logger.debug(
            "Backend request completed",
            extra={
                "method": method,
                "route": path,
                "status_code": response.status_code,
                "latency_ms": latency_ms,
            },
        )

        if response.status_code in _TRANSIENT_STATUSES:
            raise TransientConflictError(
                f"{method} {path} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        if response.is_error:
            raise BackendRequestError(
                f"{method} {path} returned {response.status_code}: {_error_detail(response)}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict) and "detail" in body:
        return str(body["detail"])
    return str(body)[:200]
