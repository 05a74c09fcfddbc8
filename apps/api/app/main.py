"""Book, outline and chapter API for the Book Co-Author stack."""
from __future__ import annotations

import logging
import os
from typing import Any, Callable, Optional, TypeVar
from uuid import UUID

from fastapi import Depends, FastAPI, HTTPException, Response, status
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from coauthor_observability import log_context, setup_fastapi_metrics, setup_logging
from coauthor_schemas.models.book import Book, BookDetail, BookSummary, Chapter
from coauthor_schemas.models.payloads import (
    BookCreateRequest,
    BookUpdateRequest,
    ChapterBatchUpdateRequest,
    ChapterBatchUpdateResponse,
    ChapterCreateRequest,
    ChapterUpdateRequest,
    DeletedCountResponse,
    OutlineEntryPatchRequest,
    OutlineSaveRequest,
    OutlineSaveResponse,
)
from coauthor_store import (
    BookNotFoundError,
    BookRepository,
    ChapterNotFoundError,
    InvalidBatchError,
    OrderConflictError,
    OutlineEntryNotFoundError,
    RepositoryFactory,
)

ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("COAUTHOR_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

SERVICE_NAME = "api"
setup_logging(SERVICE_NAME)
logger = logging.getLogger(__name__)

T = TypeVar("T")

_REPOSITORY: Optional[BookRepository] = None


def get_repository() -> BookRepository:
    """Return the process-wide repository selected by ``COAUTHOR_STORE``."""

    global _REPOSITORY
    if _REPOSITORY is None:
        _REPOSITORY = RepositoryFactory.create()
        logger.info("Repository initialised", extra={"backend": _REPOSITORY.name})
    return _REPOSITORY


async def _call(func: Callable[..., T], *args: Any) -> T:
    """Run a blocking repository call and map store errors to HTTP errors."""

    try:
        return await run_in_threadpool(func, *args)
    except BookNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found") from exc
    except ChapterNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found") from exc
    except OutlineEntryNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail="Outline entry not found"
        ) from exc
    except OrderConflictError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except InvalidBatchError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


app = FastAPI(title="Book Co-Author API", version="0.1.0")
setup_fastapi_metrics(app, service_name=SERVICE_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def _on_startup() -> None:
    get_repository().initialise()


@app.get("/health", tags=["health"])
def health() -> dict[str, str]:
    """Simple readiness check."""

    return {"status": "ok"}


# Books -----------------------------------------------------------------------


@app.get("/books", response_model=list[BookSummary], tags=["books"])
async def list_books(repository: BookRepository = Depends(get_repository)) -> list[BookSummary]:
    return await _call(repository.list_books)


@app.post("/books", response_model=Book, status_code=status.HTTP_201_CREATED, tags=["books"])
async def create_book(
    payload: BookCreateRequest,
    repository: BookRepository = Depends(get_repository),
) -> Book:
    book = await _call(repository.create_book, payload)
    logger.info("Book created", extra={"book_id": str(book.id)})
    return book


@app.get("/books/{book_id}", response_model=BookDetail, tags=["books"])
async def get_book(book_id: UUID, repository: BookRepository = Depends(get_repository)) -> BookDetail:
    return await _call(repository.get_book, book_id)


@app.patch("/books/{book_id}", response_model=Book, tags=["books"])
async def update_book(
    book_id: UUID,
    payload: BookUpdateRequest,
    repository: BookRepository = Depends(get_repository),
) -> Book:
    return await _call(repository.update_book, book_id, payload)


@app.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["books"])
async def delete_book(book_id: UUID, repository: BookRepository = Depends(get_repository)) -> Response:
    with log_context(book_id=str(book_id), operation="delete_book"):
        await _call(repository.delete_book, book_id)
        logger.info("Book deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Chapters --------------------------------------------------------------------


@app.get("/books/{book_id}/chapters", response_model=list[Chapter], tags=["chapters"])
async def list_chapters(
    book_id: UUID, repository: BookRepository = Depends(get_repository)
) -> list[Chapter]:
    return await _call(repository.list_chapters, book_id)


@app.post(
    "/books/{book_id}/chapters",
    response_model=Chapter,
    status_code=status.HTTP_201_CREATED,
    tags=["chapters"],
)
async def create_chapter(
    book_id: UUID,
    payload: ChapterCreateRequest,
    repository: BookRepository = Depends(get_repository),
) -> Chapter:
    return await _call(repository.create_chapter, book_id, payload)


@app.patch("/books/{book_id}/chapters", response_model=ChapterBatchUpdateResponse, tags=["chapters"])
async def batch_update_chapters(
    book_id: UUID,
    payload: ChapterBatchUpdateRequest,
    repository: BookRepository = Depends(get_repository),
) -> ChapterBatchUpdateResponse:
    with log_context(
        book_id=str(book_id), operation="batch_update", update_count=len(payload.updates)
    ):
        chapters = await _call(repository.batch_update_chapters, book_id, payload.updates)
        logger.info("Chapter batch applied")
    return ChapterBatchUpdateResponse(success=True, chapters=chapters)


@app.delete("/books/{book_id}/chapters", response_model=DeletedCountResponse, tags=["chapters"])
async def delete_all_chapters(
    book_id: UUID, repository: BookRepository = Depends(get_repository)
) -> DeletedCountResponse:
    deleted = await _call(repository.delete_all_chapters, book_id)
    return DeletedCountResponse(message="All chapters deleted", deleted_count=deleted)


@app.put("/books/{book_id}/chapters/{chapter_id}", response_model=Chapter, tags=["chapters"])
async def update_chapter(
    book_id: UUID,
    chapter_id: UUID,
    payload: ChapterUpdateRequest,
    repository: BookRepository = Depends(get_repository),
) -> Chapter:
    return await _call(repository.update_chapter, book_id, chapter_id, payload)


@app.delete(
    "/books/{book_id}/chapters/{chapter_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["chapters"],
)
async def delete_chapter(
    book_id: UUID,
    chapter_id: UUID,
    repository: BookRepository = Depends(get_repository),
) -> Response:
    with log_context(book_id=str(book_id), chapter_id=str(chapter_id), operation="delete_chapter"):
        await _call(repository.delete_chapter, book_id, chapter_id)
        logger.info("Chapter deleted")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Outline ---------------------------------------------------------------------


@app.post("/books/{book_id}/outline", response_model=OutlineSaveResponse, tags=["outline"])
async def save_outline(
    book_id: UUID,
    payload: OutlineSaveRequest,
    repository: BookRepository = Depends(get_repository),
) -> OutlineSaveResponse:
    with log_context(book_id=str(book_id), operation="save_outline"):
        outline = await _call(repository.save_outline, book_id, payload)
        logger.info(
            "Outline saved",
            extra={"entries": len(outline.entries), "skip_chapter_sync": payload.skip_chapter_sync},
        )
    return OutlineSaveResponse(success=True, outline=outline)


@app.patch("/books/{book_id}/outline", response_model=OutlineSaveResponse, tags=["outline"])
async def update_outline_entry(
    book_id: UUID,
    payload: OutlineEntryPatchRequest,
    repository: BookRepository = Depends(get_repository),
) -> OutlineSaveResponse:
    outline = await _call(repository.update_outline_entry, book_id, payload)
    return OutlineSaveResponse(success=True, outline=outline)


@app.delete("/books/{book_id}/outline", status_code=status.HTTP_204_NO_CONTENT, tags=["outline"])
async def delete_outline(book_id: UUID, repository: BookRepository = Depends(get_repository)) -> Response:
    await _call(repository.delete_outline, book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
