"""Composition of the catalog service used by the routers."""

from __future__ import annotations

from functools import lru_cache

from apps.api.db.repositories import CatalogRepository
from apps.api.db.session import SessionLocal
from apps.api.services import BookCatalogService, LocalAssetStore
from core.config import settings


@lru_cache(maxsize=1)
def get_catalog_service() -> BookCatalogService:
    return BookCatalogService(
        CatalogRepository(SessionLocal),
        LocalAssetStore.from_settings(),
        extra_categories=settings.extra_categories,
    )


__all__ = ["get_catalog_service"]
