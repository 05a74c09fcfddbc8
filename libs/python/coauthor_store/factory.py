"""Factory utilities for instantiating repositories."""

from __future__ import annotations

from .base import BookRepository
from .config import StoreConfig, load_store_config
from .exceptions import StoreConfigError
from .memory import InMemoryBookRepository
from .postgres import PostgresBookRepository


class RepositoryFactory:
    """Factory for creating repositories based on configuration."""

    @staticmethod
    def create(config: StoreConfig | None = None) -> BookRepository:
        if config is None:
            config = load_store_config()
        if config.backend == "memory":
            return InMemoryBookRepository()
        if config.backend == "postgres":
            if not config.conninfo:
                raise StoreConfigError("DATABASE_URL environment variable is required")
            return PostgresBookRepository.from_config(config)
        raise StoreConfigError(f"Unknown store backend: {config.backend}")
