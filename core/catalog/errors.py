"""Error taxonomy raised by the catalog core.

Every error carries an ``error_type`` used by the web layer to pick a status
code and to render ``{"error": {"type": ..., "message": ...}}`` payloads.
"""

from __future__ import annotations


class CatalogError(Exception):
    """Base class for all catalog failures."""

    error_type = "catalog_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(CatalogError):
    """Input shape or bounds are invalid; the caller can fix and resubmit."""

    error_type = "validation"


class Unauthenticated(CatalogError):
    """No actor is attached to the request."""

    error_type = "unauthenticated"

    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class Forbidden(CatalogError):
    """The actor does not own the book it is trying to change."""

    error_type = "forbidden"

    def __init__(self, message: str = "You do not own this book") -> None:
        super().__init__(message)


class NotFound(CatalogError):
    """A referenced book or asset does not exist."""

    error_type = "not_found"


class StorageFailure(CatalogError):
    """The asset store could not complete an operation."""

    error_type = "storage_failure"


class RepositoryFailure(CatalogError):
    """The metadata store could not complete an operation."""

    error_type = "repository_failure"


__all__ = [
    "CatalogError",
    "Forbidden",
    "NotFound",
    "RepositoryFailure",
    "StorageFailure",
    "Unauthenticated",
    "ValidationError",
]
