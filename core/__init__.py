"""
Core module for Atelier Dispatch.

Contains fundamental infrastructure components:
- exceptions: Custom exception hierarchy
- remote_store: HTTP client for the remote atelier aggregate
"""

from .exceptions import (
    AtelierDispatchError,
    NotFoundError,
    OrderNotFoundError,
    WorkstationNotFoundError,
    AtelierNotFoundError,
    UnauthorizedError,
    ValidationError,
    InvalidStatusError,
    InvalidTransitionError,
    StoreUnavailableError,
)

__all__ = [
    "AtelierDispatchError",
    "NotFoundError",
    "OrderNotFoundError",
    "WorkstationNotFoundError",
    "AtelierNotFoundError",
    "UnauthorizedError",
    "ValidationError",
    "InvalidStatusError",
    "InvalidTransitionError",
    "StoreUnavailableError",
]
