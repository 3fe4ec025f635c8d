from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Namespace(str, Enum):
    """Logical partitions of the asset store."""

    COVERS = "covers"
    FILES = "files"


@dataclass(frozen=True)
class CoverAsset:
    locator: str


@dataclass(frozen=True)
class FileAsset:
    """Downloadable book file; all three fields are always populated."""

    locator: str
    original_file_name: str
    size_in_bytes: int

    def __post_init__(self) -> None:
        if not self.locator or not self.original_file_name:
            raise ValueError("File asset requires a locator and a file name")
        if self.size_in_bytes < 0:
            raise ValueError("File asset size must be non-negative")


@dataclass(frozen=True)
class BookFields:
    """Writer-editable text fields of a book."""

    name: str
    category: str
    price: Decimal
    description: str


@dataclass(frozen=True)
class Book:
    id: str
    owner_id: str
    name: str
    category: str
    price: Decimal
    description: str
    cover: CoverAsset | None
    file: FileAsset | None
    created_at: datetime
    updated_at: datetime

    @property
    def fields(self) -> BookFields:
        return BookFields(
            name=self.name,
            category=self.category,
            price=self.price,
            description=self.description,
        )

    @property
    def is_downloadable(self) -> bool:
        return self.file is not None


@dataclass(frozen=True)
class NewBook:
    """Fully formed record handed to the repository for insertion."""

    id: str
    owner_id: str
    fields: BookFields
    cover: CoverAsset | None
    file: FileAsset | None


@dataclass(frozen=True)
class AssetUpload:
    """Bytes received from a client together with their declared identity."""

    data: bytes
    filename: str = ""
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class StoredAsset:
    locator: str
    size: int
    stored_at: datetime


@dataclass(frozen=True)
class CatalogStats:
    total_books: int
    total_value: Decimal
    distinct_category_count: int


@dataclass(frozen=True)
class PublicScope:
    """Every book, regardless of owner."""


@dataclass(frozen=True)
class OwnedBy:
    actor_id: str


Scope = PublicScope | OwnedBy


@dataclass(frozen=True)
class BookFilter:
    search: str | None = None
    category: str | None = None
    min_price: Decimal | None = None
    max_price: Decimal | None = None


@dataclass
class ReconcileReport:
    scanned: int = 0
    referenced: int = 0
    too_recent: int = 0
    deleted: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    dry_run: bool = False

    def as_dict(self) -> dict[str, object]:
        return {
            "scanned": self.scanned,
            "referenced": self.referenced,
            "too_recent": self.too_recent,
            "deleted": list(self.deleted),
            "failed": list(self.failed),
            "dry_run": self.dry_run,
        }


__all__ = [
    "AssetUpload",
    "Book",
    "BookFields",
    "BookFilter",
    "CatalogStats",
    "CoverAsset",
    "FileAsset",
    "Namespace",
    "NewBook",
    "OwnedBy",
    "PublicScope",
    "ReconcileReport",
    "Scope",
    "StoredAsset",
]
