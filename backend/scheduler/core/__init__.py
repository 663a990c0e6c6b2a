from .config import settings
from .errors import (
    AuthorizationError,
    ConflictError,
    ConflictKind,
    InvalidInputError,
    SchedulerError,
    StoreError,
)
from .logging_config import setup_logging

__all__ = [
    "settings",
    "setup_logging",
    "AuthorizationError",
    "ConflictError",
    "ConflictKind",
    "InvalidInputError",
    "SchedulerError",
    "StoreError",
]
