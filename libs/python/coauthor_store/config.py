"""Configuration for selecting and connecting a book repository."""

from __future__ import annotations

import os
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

STORE_ENV_VAR = "COAUTHOR_STORE"
DEFAULT_STORE = "postgres"


class StoreConfig(BaseModel):
    """Repository backend plus Postgres pool sizing."""

    model_config = ConfigDict(frozen=True)

    backend: Literal["postgres", "memory"] = DEFAULT_STORE
    database_url: Optional[str] = None
    pool_min_size: int = Field(1, ge=1)
    pool_max_size: int = Field(10, ge=1)

    @model_validator(mode="after")
    def validate_pool_bounds(self) -> "StoreConfig":
        if self.pool_max_size < self.pool_min_size:
            raise ValueError("COAUTHOR_DB_POOL_MAX must be >= COAUTHOR_DB_POOL_MIN")
        return self

    @property
    def conninfo(self) -> Optional[str]:
        # psycopg connection URLs do not use SQLAlchemy's driver suffix.
        return self.database_url.replace("+psycopg", "") if self.database_url else None


def load_store_config() -> StoreConfig:
    """Load repository configuration from environment variables.

    Environment variables used:
        COAUTHOR_STORE (``postgres`` or ``memory``, default ``postgres``)
        DATABASE_URL (required for ``postgres``)
        COAUTHOR_DB_POOL_MIN (optional, default 1)
        COAUTHOR_DB_POOL_MAX (optional, default 10)

    Raises:
        ValidationError: If a value is missing or malformed.
    """

    return StoreConfig(
        backend=os.getenv(STORE_ENV_VAR, DEFAULT_STORE).strip().lower(),
        database_url=os.getenv("DATABASE_URL") or None,
        pool_min_size=os.getenv("COAUTHOR_DB_POOL_MIN", "1"),
        pool_max_size=os.getenv("COAUTHOR_DB_POOL_MAX", "10"),
    )
