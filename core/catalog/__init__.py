"""Catalog domain: book types, validation, errors and query evaluation."""

from .errors import (
    CatalogError,
    Forbidden,
    NotFound,
    RepositoryFailure,
    StorageFailure,
    Unauthenticated,
    ValidationError,
)
from .query import CatalogQueryEngine, apply_filter
from .types import (
    AssetUpload,
    Book,
    BookFields,
    BookFilter,
    CatalogStats,
    CoverAsset,
    FileAsset,
    Namespace,
    NewBook,
    OwnedBy,
    PublicScope,
    ReconcileReport,
    Scope,
    StoredAsset,
)
from .validation import KNOWN_CATEGORIES, known_categories, parse_price, validate_fields

__all__ = [
    "AssetUpload",
    "Book",
    "BookFields",
    "BookFilter",
    "CatalogError",
    "CatalogQueryEngine",
    "CatalogStats",
    "CoverAsset",
    "FileAsset",
    "Forbidden",
    "KNOWN_CATEGORIES",
    "Namespace",
    "NewBook",
    "NotFound",
    "OwnedBy",
    "PublicScope",
    "ReconcileReport",
    "RepositoryFailure",
    "Scope",
    "StorageFailure",
    "StoredAsset",
    "Unauthenticated",
    "ValidationError",
    "apply_filter",
    "known_categories",
    "parse_price",
    "validate_fields",
]
