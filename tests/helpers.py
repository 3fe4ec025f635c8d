# tests/helpers.py
from __future__ import annotations

import itertools
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from core.catalog import (
    AssetUpload,
    BookFields,
    Namespace,
    NotFound,
    StorageFailure,
    StoredAsset,
)


class MemoryAssetStore:
    """In-memory asset store that records every call.

    ``fail_put`` makes uploads into the listed namespaces raise
    ``StorageFailure``; ``fail_delete`` does the same for every delete.
    """

    def __init__(
        self,
        *,
        fail_put: set[Namespace] | None = None,
        fail_delete: bool = False,
    ) -> None:
        self.objects: dict[str, bytes] = {}
        self.stored_at: dict[str, datetime] = {}
        self.puts: list[tuple[Namespace, str]] = []
        self.deletes: list[str] = []
        self.fail_put = set(fail_put or ())
        self.fail_delete = fail_delete
        self._sequence = itertools.count(1)

    def put(
        self,
        namespace: Namespace,
        data: bytes,
        mime_hint: str,
        association_key: str,
        *,
        filename: str | None = None,
    ) -> str:
        namespace = Namespace(namespace)
        if namespace in self.fail_put:
            raise StorageFailure(f"{namespace.value} bucket unavailable")
        locator = f"{namespace.value}/{association_key}-{next(self._sequence)}"
        self.objects[locator] = data
        self.stored_at[locator] = datetime(2000, 1, 1, tzinfo=timezone.utc)
        self.puts.append((namespace, locator))
        return locator

    def get(self, locator: str) -> bytes:
        try:
            return self.objects[locator]
        except KeyError as exc:
            raise NotFound(f"Asset {locator} not found") from exc

    def delete(self, locator: str) -> None:
        self.deletes.append(locator)
        if self.fail_delete:
            raise StorageFailure("delete rejected")
        self.objects.pop(locator, None)

    def url_for(self, locator: str) -> str:
        return f"/assets/{locator}"

    def list(self, namespace: Namespace) -> list[StoredAsset]:
        prefix = f"{Namespace(namespace).value}/"
        return [
            StoredAsset(locator=locator, size=len(data), stored_at=self.stored_at[locator])
            for locator, data in sorted(self.objects.items())
            if locator.startswith(prefix)
        ]


def make_fields(**overrides: Any) -> BookFields:
    values: dict[str, Any] = {
        "name": "Dune",
        "category": "Science Fiction",
        "price": Decimal("12.50"),
        "description": "A desert planet and its spice.",
    }
    values.update(overrides)
    return BookFields(**values)


def make_file(name: str = "dune.pdf", data: bytes = b"%PDF-1.4 dune") -> AssetUpload:
    return AssetUpload(data=data, filename=name, content_type="application/pdf")


def make_cover(data: bytes = b"\x89PNG\r\n\x1a\ncover", name: str = "cover.png") -> AssetUpload:
    return AssetUpload(data=data, filename=name, content_type="image/png")
