"""Client-side access to the persisted outline and chapter stores."""

from .base import BookBackend
from .config import BackendConfig, load_backend_config
from .exceptions import (
    BackendConfigError,
    BackendError,
    BackendRequestError,
    TransientConflictError,
)
from .factory import BackendFactory
from .http import HttpBookBackend
from .local import LocalBookBackend

__all__ = [
    "BackendConfig",
    "BackendConfigError",
    "BackendError",
    "BackendFactory",
    "BackendRequestError",
    "BookBackend",
    "HttpBookBackend",
    "LocalBookBackend",
    "TransientConflictError",
    "load_backend_config",
]
