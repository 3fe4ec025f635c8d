"""Durable book record store backed by SQLAlchemy."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

import structlog
from core.catalog import (
    Book,
    CoverAsset,
    FileAsset,
    NewBook,
    NotFound,
    RepositoryFailure,
)

from . import models
from .session import session_scope

log = structlog.get_logger(__name__)

_IMMUTABLE_FIELDS = frozenset({"id", "owner_id", "created_at", "updated_at"})
_PATCHABLE_FIELDS = frozenset({"name", "category", "price", "description", "cover", "file"})


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _row_to_book(row: models.Book) -> Book:
    file_parts = (row.file_locator, row.file_name, row.file_size)
    if all(part is None for part in file_parts):
        file_asset = None
    elif any(part is None for part in file_parts):
        raise RepositoryFailure(f"Book {row.id} has partial file metadata")
    else:
        file_asset = FileAsset(
            locator=row.file_locator,  # type: ignore[arg-type]
            original_file_name=row.file_name,  # type: ignore[arg-type]
            size_in_bytes=int(row.file_size),  # type: ignore[arg-type]
        )
    return Book(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        category=row.category,
        price=row.price,
        description=row.description,
        cover=CoverAsset(row.cover_locator) if row.cover_locator else None,
        file=file_asset,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _apply_cover(row: models.Book, cover: CoverAsset | None) -> None:
    row.cover_locator = cover.locator if cover is not None else None


def _apply_file(row: models.Book, file_asset: FileAsset | None) -> None:
    if file_asset is None:
        row.file_locator = None
        row.file_name = None
        row.file_size = None
        return
    row.file_locator = file_asset.locator
    row.file_name = file_asset.original_file_name
    row.file_size = file_asset.size_in_bytes


class CatalogRepository:
    """Book records keyed by id.

    Ownership is not checked here; callers enforce it. Every read returns a
    detached :class:`~core.catalog.types.Book` snapshot and every database
    error surfaces as :class:`~core.catalog.errors.RepositoryFailure`.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self.session_factory = session_factory

    @contextmanager
    def _scope(self, operation: str) -> Iterator[Session]:
        try:
            with session_scope(self.session_factory) as session:
                yield session
        except SQLAlchemyError as exc:
            log.error("catalog.repository_failed", operation=operation, error=str(exc))
            raise RepositoryFailure(f"Catalog store unavailable during {operation}") from exc

    def _get_row(self, session: Session, book_id: str) -> models.Book:
        row = session.get(models.Book, book_id)
        if row is None:
            raise NotFound(f"Book {book_id} not found")
        return row

    def insert(self, record: NewBook) -> Book:
        now = models.utcnow()
        with self._scope("insert") as session:
            row = models.Book(
                id=record.id,
                owner_id=record.owner_id,
                name=record.fields.name,
                category=record.fields.category,
                price=record.fields.price,
                description=record.fields.description,
                created_at=now,
                updated_at=now,
            )
            _apply_cover(row, record.cover)
            _apply_file(row, record.file)
            session.add(row)
            session.flush()
            return _row_to_book(row)

    def get_by_id(self, book_id: str) -> Book:
        with self._scope("get") as session:
            return _row_to_book(self._get_row(session, book_id))

    def update_by_id(self, book_id: str, patch: Mapping[str, Any]) -> Book:
        forbidden = _IMMUTABLE_FIELDS.intersection(patch)
        if forbidden:
            raise ValueError(f"Cannot patch immutable fields: {sorted(forbidden)}")
        unknown = set(patch) - _PATCHABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown book fields: {sorted(unknown)}")

        with self._scope("update") as session:
            row = self._get_row(session, book_id)
            for key, value in patch.items():
                if key == "cover":
                    _apply_cover(row, value)
                elif key == "file":
                    _apply_file(row, value)
                else:
                    setattr(row, key, value)
            previous = _aware(row.updated_at)
            now = models.utcnow()
            if now <= previous:
                now = previous + timedelta(microseconds=1)
            row.updated_at = now
            session.flush()
            return _row_to_book(row)

    def delete_by_id(self, book_id: str) -> None:
        with self._scope("delete") as session:
            row = self._get_row(session, book_id)
            session.delete(row)

    def list_by_owner(self, owner_id: str) -> list[Book]:
        stmt = (
            select(models.Book)
            .where(models.Book.owner_id == owner_id)
            .order_by(models.Book.created_at.desc(), models.Book.id.asc())
        )
        with self._scope("list_by_owner") as session:
            return [_row_to_book(row) for row in session.scalars(stmt)]

    def list_all(self) -> list[Book]:
        stmt = select(models.Book).order_by(models.Book.created_at.desc(), models.Book.id.asc())
        with self._scope("list_all") as session:
            return [_row_to_book(row) for row in session.scalars(stmt)]


__all__ = ["CatalogRepository"]
