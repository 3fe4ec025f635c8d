"""Service helpers package for API business logic."""

from .assets import AssetStore, LocalAssetStore
from .catalog import BookCatalogService

__all__ = ["AssetStore", "BookCatalogService", "LocalAssetStore"]
