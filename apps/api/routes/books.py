"""Router exposing public browsing and writer book management."""

from __future__ import annotations

from decimal import Decimal
from typing import Annotated, Any
from urllib.parse import quote

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, Request, Response, UploadFile, status
from starlette.concurrency import run_in_threadpool

from apps.api.auth import current_actor_id, require_actor
from apps.api.deps import get_catalog_service
from apps.api.schemas import BookForm, serialize_book
from apps.api.services import BookCatalogService
from apps.api.services.assets import guess_media_type
from core.catalog import AssetUpload, Book, BookFilter, PublicScope

router = APIRouter(tags=["books"])

log = structlog.get_logger(__name__)

Service = Annotated[BookCatalogService, Depends(get_catalog_service)]


def book_filter_params(
    search: Annotated[str | None, Query(max_length=255)] = None,
    category: Annotated[str | None, Query(max_length=64)] = None,
    min_price: Annotated[Decimal | None, Query(ge=0)] = None,
    max_price: Annotated[Decimal | None, Query(ge=0)] = None,
) -> BookFilter:
    return BookFilter(search=search, category=category, min_price=min_price, max_price=max_price)


def book_form_fields(
    name: Annotated[str | None, Form()] = None,
    category: Annotated[str | None, Form()] = None,
    price: Annotated[str | None, Form()] = None,
    description: Annotated[str | None, Form()] = None,
) -> BookForm:
    return BookForm(name=name, category=category, price=price, description=description)


async def read_upload(upload: UploadFile | None) -> AssetUpload | None:
    """Turn a multipart file into an :class:`AssetUpload`; empty inputs count as absent."""

    if upload is None:
        return None
    data = await upload.read()
    await upload.close()
    filename = upload.filename or ""
    if not filename and not data:
        return None
    return AssetUpload(
        data=data,
        filename=filename,
        content_type=upload.content_type or "application/octet-stream",
    )


def present(service: BookCatalogService, book: Book) -> dict[str, Any]:
    return serialize_book(
        book,
        cover_url=service.asset_url(book.cover.locator if book.cover else None),
        file_url=service.asset_url(book.file.locator if book.file else None),
    )


def _attachment(filename: str) -> str:
    fallback = filename.encode("ascii", "ignore").decode("ascii").replace('"', "") or "download"
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename)}"


@router.get("/categories")
def categories(service: Service) -> dict[str, Any]:
    return {"categories": list(service.categories)}


@router.get("/books")
def list_books(
    service: Service,
    book_filter: Annotated[BookFilter, Depends(book_filter_params)],
) -> dict[str, Any]:
    books = service.query(PublicScope(), book_filter)
    return {"total": len(books), "books": [present(service, book) for book in books]}


@router.get("/books/{book_id}")
def get_book(book_id: str, request: Request, service: Service) -> dict[str, Any]:
    book = service.get_public(book_id)
    payload = present(service, book)
    payload["is_owner"] = current_actor_id(request) == book.owner_id
    payload["downloadable"] = book.is_downloadable
    return {"book": payload}


@router.get("/books/{book_id}/download")
def download_book(book_id: str, service: Service) -> Response:
    book_file, data = service.open_file(book_id)
    log.info("books.download", book_id=book_id, size=len(data))
    return Response(
        data,
        media_type=guess_media_type(book_file.original_file_name),
        headers={"content-disposition": _attachment(book_file.original_file_name)},
    )


@router.get("/books/{book_id}/cover")
def book_cover(book_id: str, service: Service) -> Response:
    cover, data = service.open_cover(book_id)
    return Response(
        data,
        media_type=guess_media_type(cover.locator),
        headers={"cache-control": "public, max-age=300"},
    )


@router.get("/assets/{namespace}/{key}")
def serve_asset(namespace: str, key: str, service: Service) -> Response:
    locator = f"{namespace}/{key}"
    data = service.assets.get(locator)
    return Response(data, media_type=guess_media_type(locator))


@router.post("/books", status_code=status.HTTP_201_CREATED)
async def create_book(
    service: Service,
    actor_id: Annotated[str, Depends(require_actor)],
    form: Annotated[BookForm, Depends(book_form_fields)],
    file: Annotated[UploadFile | None, File()] = None,
    cover: Annotated[UploadFile | None, File()] = None,
) -> dict[str, Any]:
    book_file = await read_upload(file)
    cover_image = await read_upload(cover)
    book = await run_in_threadpool(
        service.create, actor_id, form.to_fields(), cover_image, book_file
    )
    return {"book": present(service, book)}


@router.put("/books/{book_id}")
async def update_book(
    book_id: str,
    service: Service,
    actor_id: Annotated[str, Depends(require_actor)],
    form: Annotated[BookForm, Depends(book_form_fields)],
    file: Annotated[UploadFile | None, File()] = None,
    cover: Annotated[UploadFile | None, File()] = None,
) -> dict[str, Any]:
    book_file = await read_upload(file)
    cover_image = await read_upload(cover)
    fields = None if form.is_empty() else form.to_fields()
    book = await run_in_threadpool(
        service.update, actor_id, book_id, fields, cover_image, book_file
    )
    return {"book": present(service, book)}


@router.delete("/books/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_book(
    book_id: str,
    service: Service,
    actor_id: Annotated[str, Depends(require_actor)],
) -> Response:
    service.delete(actor_id, book_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["book_filter_params", "present", "read_upload", "router"]
