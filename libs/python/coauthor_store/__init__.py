"""Book, outline and chapter persistence."""

from .base import BookRepository
from .config import StoreConfig, load_store_config
from .exceptions import (
    BookNotFoundError,
    ChapterNotFoundError,
    InvalidBatchError,
    OrderConflictError,
    OutlineEntryNotFoundError,
    StoreConfigError,
    StoreError,
)
from .factory import RepositoryFactory
from .memory import InMemoryBookRepository
from .postgres import PostgresBookRepository

__all__ = [
    "BookNotFoundError",
    "BookRepository",
    "ChapterNotFoundError",
    "InMemoryBookRepository",
    "InvalidBatchError",
    "OrderConflictError",
    "OutlineEntryNotFoundError",
    "PostgresBookRepository",
    "RepositoryFactory",
    "StoreConfig",
    "StoreConfigError",
    "StoreError",
    "load_store_config",
]
