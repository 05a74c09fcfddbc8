"""Configuration models and helpers for backend selection."""

from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

BACKEND_ENV_VAR = "COAUTHOR_BACKEND"
DEFAULT_BACKEND = "http"
DEFAULT_API_URL = "http://localhost:8000"


class BackendConfig(BaseModel):
    """Backend selection plus the sync engine's tunables."""

    model_config = ConfigDict(frozen=True)

    name: Literal["http", "local"] = DEFAULT_BACKEND
    api_url: str = DEFAULT_API_URL
    timeout_seconds: float = Field(10.0, gt=0)
    reorder_debounce_ms: int = Field(
        500, ge=0, description="Quiet period before a coalesced reorder is sent"
    )
    seed_chapter_content: bool = Field(
        True, description="Fill newly created chapters from the entry's description and key points"
    )

    @property
    def reorder_debounce_seconds(self) -> float:
        return self.reorder_debounce_ms / 1000


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in {"true", "1", "yes", "on"}


def load_backend_config() -> BackendConfig:
    """Load configuration from environment variables.

    Environment variables used:
        COAUTHOR_BACKEND (``http`` or ``local``, default ``http``)
        COAUTHOR_API_URL
        COAUTHOR_API_TIMEOUT (seconds)
        COAUTHOR_REORDER_DEBOUNCE_MS
        COAUTHOR_SEED_CHAPTER_CONTENT (boolean)

    Raises:
        ValidationError: If a value is malformed.
    """

    return BackendConfig(
        name=os.getenv(BACKEND_ENV_VAR, DEFAULT_BACKEND).strip().lower(),
        api_url=os.getenv("COAUTHOR_API_URL", DEFAULT_API_URL).rstrip("/"),
        timeout_seconds=os.getenv("COAUTHOR_API_TIMEOUT", "10"),
        reorder_debounce_ms=os.getenv("COAUTHOR_REORDER_DEBOUNCE_MS", "500"),
        seed_chapter_content=_parse_bool(os.getenv("COAUTHOR_SEED_CHAPTER_CONTENT", "true")),
    )
