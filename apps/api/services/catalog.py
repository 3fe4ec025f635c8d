"""Book catalog orchestration: ownership, asset workflow and statistics."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any

import structlog
from apps.api.db.repositories import CatalogRepository
from apps.api.metrics import CATALOG_OPERATIONS, ORPHANED_ASSETS
from core.catalog import (
    AssetUpload,
    Book,
    BookFields,
    BookFilter,
    CatalogQueryEngine,
    CatalogStats,
    CoverAsset,
    FileAsset,
    Forbidden,
    Namespace,
    NewBook,
    NotFound,
    ReconcileReport,
    RepositoryFailure,
    Scope,
    StorageFailure,
    Unauthenticated,
    known_categories,
    validate_fields,
)
from core.catalog.validation import validate_book_file

from .assets import AssetStore

log = structlog.get_logger(__name__)


def _new_book_id() -> str:
    return uuid.uuid4().hex


class BookCatalogService:
    """Coordinates the repository and the asset store for writer actions.

    Asset uploads always happen before the metadata write that references
    them. Releasing superseded or deleted assets is best-effort: a failure is
    logged as an orphan and never undoes the metadata change.
    """

    def __init__(
        self,
        repository: CatalogRepository,
        assets: AssetStore,
        *,
        extra_categories: Iterable[str] | None = None,
        id_factory: Callable[[], str] = _new_book_id,
    ) -> None:
        self.repository = repository
        self.assets = assets
        self.categories = known_categories(extra_categories)
        self._id_factory = id_factory
        self.queries = CatalogQueryEngine(repository.list_all, repository.list_by_owner)

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _require_actor(actor_id: str | None) -> str:
        if not actor_id:
            raise Unauthenticated()
        return actor_id

    def _load_owned(self, actor_id: str | None, book_id: str) -> Book:
        actor = self._require_actor(actor_id)
        record = self.repository.get_by_id(book_id)
        if record.owner_id != actor:
            log.warning("catalog.forbidden", book_id=book_id, actor_id=actor)
            CATALOG_OPERATIONS.labels(operation="ownership", outcome="forbidden").inc()
            raise Forbidden()
        return record

    def _upload_cover(self, upload: AssetUpload, association: str) -> CoverAsset:
        locator = self.assets.put(
            Namespace.COVERS,
            upload.data,
            upload.content_type,
            association,
            filename=upload.filename or None,
        )
        return CoverAsset(locator)

    def _upload_file(self, upload: AssetUpload, association: str) -> FileAsset:
        locator = self.assets.put(
            Namespace.FILES,
            upload.data,
            upload.content_type,
            association,
            filename=upload.filename,
        )
        return FileAsset(
            locator=locator,
            original_file_name=upload.filename.strip(),
            size_in_bytes=upload.size,
        )

    def _release(self, locator: str, *, book_id: str, reason: str) -> bool:
        """Delete an asset, logging (not raising) when that fails."""

        try:
            self.assets.delete(locator)
        except Exception as exc:
            self._orphaned([locator], book_id=book_id, reason=reason, error=str(exc))
            return False
        return True

    def _orphaned(
        self, locators: Iterable[str], *, book_id: str, reason: str, error: str | None = None
    ) -> None:
        for locator in locators:
            ORPHANED_ASSETS.labels(namespace=locator.split("/", 1)[0]).inc()
            log.warning(
                "catalog.asset_orphaned",
                locator=locator,
                book_id=book_id,
                reason=reason,
                error=error,
            )

    def _record(self, operation: str, outcome: str) -> None:
        CATALOG_OPERATIONS.labels(operation=operation, outcome=outcome).inc()

    # -- writer operations -------------------------------------------------

    def create(
        self,
        actor_id: str | None,
        fields: BookFields,
        cover: AssetUpload | None = None,
        file: AssetUpload | None = None,
    ) -> Book:
        actor = self._require_actor(actor_id)
        clean = validate_fields(fields, categories=self.categories)
        book_file = validate_book_file(file)
        book_id = self._id_factory()

        uploaded: list[str] = []
        try:
            cover_asset = self._upload_cover(cover, book_id) if cover is not None else None
            if cover_asset is not None:
                uploaded.append(cover_asset.locator)
            file_asset = self._upload_file(book_file, book_id)
            uploaded.append(file_asset.locator)
        except StorageFailure:
            self._record("create", "storage_failure")
            for locator in uploaded:
                self._release(locator, book_id=book_id, reason="create_aborted")
            raise

        try:
            book = self.repository.insert(
                NewBook(id=book_id, owner_id=actor, fields=clean, cover=cover_asset, file=file_asset)
            )
        except RepositoryFailure:
            self._record("create", "repository_failure")
            self._orphaned(uploaded, book_id=book_id, reason="metadata_write_failed")
            raise

        self._record("create", "ok")
        log.info(
            "catalog.created",
            book_id=book.id,
            owner_id=actor,
            has_cover=cover_asset is not None,
            file_size=file_asset.size_in_bytes,
        )
        return book

    def update(
        self,
        actor_id: str | None,
        book_id: str,
        fields: BookFields | None = None,
        cover: AssetUpload | None = None,
        file: AssetUpload | None = None,
    ) -> Book:
        existing = self._load_owned(actor_id, book_id)
        patch: dict[str, Any] = {}
        if fields is not None:
            clean = validate_fields(fields, categories=self.categories)
            patch.update(
                name=clean.name,
                category=clean.category,
                price=clean.price,
                description=clean.description,
            )
        if file is not None:
            validate_book_file(file)

        uploaded: list[str] = []
        superseded: list[str] = []
        try:
            if cover is not None:
                new_cover = self._upload_cover(cover, book_id)
                uploaded.append(new_cover.locator)
                patch["cover"] = new_cover
                if existing.cover is not None:
                    superseded.append(existing.cover.locator)
            if file is not None:
                new_file = self._upload_file(file, book_id)
                uploaded.append(new_file.locator)
                patch["file"] = new_file
                if existing.file is not None:
                    superseded.append(existing.file.locator)
        except StorageFailure:
            self._record("update", "storage_failure")
            for locator in uploaded:
                self._release(locator, book_id=book_id, reason="update_aborted")
            raise

        try:
            book = self.repository.update_by_id(book_id, patch)
        except RepositoryFailure:
            self._record("update", "repository_failure")
            self._orphaned(uploaded, book_id=book_id, reason="metadata_write_failed")
            raise

        for locator in superseded:
            self._release(locator, book_id=book_id, reason="replaced")

        self._record("update", "ok")
        log.info(
            "catalog.updated",
            book_id=book_id,
            fields_changed=fields is not None,
            cover_replaced=cover is not None,
            file_replaced=file is not None,
        )
        return book

    def delete(self, actor_id: str | None, book_id: str) -> None:
        existing = self._load_owned(actor_id, book_id)
        if existing.cover is not None:
            self._release(existing.cover.locator, book_id=book_id, reason="book_deleted")
        if existing.file is not None:
            self._release(existing.file.locator, book_id=book_id, reason="book_deleted")
        self.repository.delete_by_id(book_id)
        self._record("delete", "ok")
        log.info("catalog.deleted", book_id=book_id, owner_id=existing.owner_id)

    # -- public reads ------------------------------------------------------

    def get_public(self, book_id: str) -> Book:
        return self.repository.get_by_id(book_id)

    def open_file(self, book_id: str) -> tuple[FileAsset, bytes]:
        book = self.get_public(book_id)
        if book.file is None:
            raise NotFound(f"Book {book_id} has no downloadable file")
        return book.file, self.assets.get(book.file.locator)

    def open_cover(self, book_id: str) -> tuple[CoverAsset, bytes]:
        book = self.get_public(book_id)
        if book.cover is None:
            raise NotFound(f"Book {book_id} has no cover image")
        return book.cover, self.assets.get(book.cover.locator)

    def query(self, scope: Scope, book_filter: BookFilter | None = None) -> list[Book]:
        return self.queries.query(scope, book_filter)

    def compute_stats(self, owner_id: str) -> CatalogStats:
        books = self.repository.list_by_owner(owner_id)
        total_value = sum((book.price for book in books), Decimal("0.00"))
        return CatalogStats(
            total_books=len(books),
            total_value=total_value,
            distinct_category_count=len({book.category for book in books}),
        )

    def list_categories(self, owner_id: str) -> list[str]:
        return sorted({book.category for book in self.repository.list_by_owner(owner_id)})

    # -- maintenance -------------------------------------------------------

    def reconcile_orphans(
        self,
        *,
        min_age: timedelta = timedelta(hours=1),
        dry_run: bool = False,
        now: datetime | None = None,
    ) -> ReconcileReport:
        """Delete stored assets that no book references.

        Assets younger than ``min_age`` are kept because an upload may still be
        waiting for its metadata write.
        """

        referenced: set[str] = set()
        for book in self.repository.list_all():
            if book.cover is not None:
                referenced.add(book.cover.locator)
            if book.file is not None:
                referenced.add(book.file.locator)

        cutoff = (now or datetime.now(timezone.utc)) - min_age
        report = ReconcileReport(dry_run=dry_run)
        for namespace in Namespace:
            for asset in self.assets.list(namespace):
                report.scanned += 1
                if asset.locator in referenced:
                    report.referenced += 1
                    continue
                if asset.stored_at > cutoff:
                    report.too_recent += 1
                    continue
                if dry_run:
                    report.deleted.append(asset.locator)
                    continue
                try:
                    self.assets.delete(asset.locator)
                except StorageFailure as exc:
                    log.warning("catalog.reconcile_failed", locator=asset.locator, error=str(exc))
                    report.failed.append(asset.locator)
                else:
                    report.deleted.append(asset.locator)

        log.info(
            "catalog.reconciled",
            scanned=report.scanned,
            deleted=len(report.deleted),
            failed=len(report.failed),
            dry_run=dry_run,
        )
        return report

    def asset_url(self, locator: str | None) -> str | None:
        if not locator:
            return None
        return self.assets.url_for(locator)


__all__ = ["BookCatalogService"]
