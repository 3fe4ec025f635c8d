"""Writer dashboard: the signed-in writer's own books, stats and categories."""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends

from apps.api.auth import require_actor
from apps.api.deps import get_catalog_service
from apps.api.routes.books import book_filter_params, present
from apps.api.schemas import serialize_stats
from apps.api.services import BookCatalogService
from core.catalog import BookFilter, OwnedBy

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

Service = Annotated[BookCatalogService, Depends(get_catalog_service)]
Actor = Annotated[str, Depends(require_actor)]


@router.get("/books")
def my_books(
    service: Service,
    actor_id: Actor,
    book_filter: Annotated[BookFilter, Depends(book_filter_params)],
) -> dict[str, Any]:
    books = service.query(OwnedBy(actor_id), book_filter)
    return {"total": len(books), "books": [present(service, book) for book in books]}


@router.get("/stats")
def my_stats(service: Service, actor_id: Actor) -> dict[str, Any]:
    return serialize_stats(service.compute_stats(actor_id))


@router.get("/categories")
def my_categories(service: Service, actor_id: Actor) -> dict[str, Any]:
    return {"categories": service.list_categories(actor_id)}


__all__ = ["router"]
