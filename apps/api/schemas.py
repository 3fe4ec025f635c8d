from __future__ import annotations

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from core.catalog import Book, BookFields, CatalogStats


class LoginRequest(BaseModel):
    email: str
    password: str


class BookForm(BaseModel):
    """Text fields submitted with a create or edit form."""

    name: str | None = Field(default=None, description="Book name")
    category: str | None = Field(default=None, description="Book category")
    price: str | None = Field(default=None, description="Price in USD, two decimals")
    description: str | None = Field(default=None, description="Book description")

    def is_empty(self) -> bool:
        return all(value is None for value in (self.name, self.category, self.price, self.description))

    def to_fields(self) -> BookFields:
        """Return fields for validation; missing values are left blank."""

        return BookFields(
            name=self.name or "",
            category=self.category or "",
            price=self.price or "",  # type: ignore[arg-type]
            description=self.description or "",
        )


def _isoformat(value: Any) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _price(value: Decimal) -> str:
    return f"{value:.2f}"


def serialize_book(book: Book, *, cover_url: str | None = None, file_url: str | None = None) -> dict[str, Any]:
    file_payload: dict[str, Any] | None = None
    if book.file is not None:
        file_payload = {
            "name": book.file.original_file_name,
            "size": book.file.size_in_bytes,
            "url": file_url,
            "download_url": f"/books/{book.id}/download",
        }
    return {
        "id": book.id,
        "owner_id": book.owner_id,
        "name": book.name,
        "category": book.category,
        "price": _price(book.price),
        "description": book.description,
        "cover_url": cover_url,
        "file": file_payload,
        "created_at": _isoformat(book.created_at),
        "updated_at": _isoformat(book.updated_at),
    }


def serialize_stats(stats: CatalogStats) -> dict[str, Any]:
    return {
        "total_books": stats.total_books,
        "total_value": _price(stats.total_value),
        "distinct_category_count": stats.distinct_category_count,
    }


__all__ = [
    "BookForm",
    "LoginRequest",
    "serialize_book",
    "serialize_stats",
]
