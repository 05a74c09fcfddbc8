"""Custom exceptions raised by book backends."""

from __future__ import annotations

from typing import Optional


class BackendError(RuntimeError):
    """Base error raised for backend failures."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientConflictError(BackendError):
    """The target was missing or contended (404/409); the local view stays as is."""


class BackendRequestError(BackendError):
    """Any other rejection or transport failure; callers fall back to server truth."""


class BackendConfigError(BackendError):
    """Raised when configuration is missing or invalid."""
