"""Factory utilities for instantiating backends."""

from __future__ import annotations

from coauthor_store.base import BookRepository

from .base import BookBackend
from .config import BackendConfig, load_backend_config
from .exceptions import BackendConfigError
from .http import HttpBookBackend
from .local import LocalBookBackend


class BackendFactory:
    """Factory for creating backends based on configuration."""

    @staticmethod
    def create(
        config: BackendConfig | None = None,
        *,
        repository: BookRepository | None = None,
    ) -> BookBackend:
        if config is None:
            config = load_backend_config()
        if config.name == "http":
            return HttpBookBackend(config)
        if config.name == "local":
            return LocalBookBackend(repository)
        raise BackendConfigError(f"Unknown backend: {config.name}")
