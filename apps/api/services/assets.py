"""Filesystem-backed asset store for cover images and book files."""

from __future__ import annotations

import mimetypes
import os
import re
import secrets
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol

import structlog
from core.catalog import Namespace, NotFound, StorageFailure, StoredAsset
from core.config import settings

log = structlog.get_logger(__name__)

_ASSOCIATION_RE = re.compile(r"[^A-Za-z0-9_.-]+")
_KEY_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
_MAX_ASSOCIATION_LENGTH = 64


class AssetStore(Protocol):
    """Capability consumed by the catalog service."""

    def put(
        self,
        namespace: Namespace,
        data: bytes,
        mime_hint: str,
        association_key: str,
        *,
        filename: str | None = None,
    ) -> str: ...

    def get(self, locator: str) -> bytes: ...

    def delete(self, locator: str) -> None: ...

    def url_for(self, locator: str) -> str: ...

    def list(self, namespace: Namespace) -> list[StoredAsset]: ...


def _sanitize_association(value: str) -> str:
    cleaned = _ASSOCIATION_RE.sub("-", value or "").strip("-._")
    return cleaned[:_MAX_ASSOCIATION_LENGTH] or "asset"


def _extension_for(mime_hint: str, filename: str | None = None) -> str:
    if filename:
        suffix = PurePosixPath(filename).suffix.lower()
        if suffix and _KEY_RE.match(suffix[1:]):
            return suffix
    guessed = mimetypes.guess_extension((mime_hint or "").split(";", 1)[0].strip())
    return guessed or ""


def build_key(association_key: str, extension: str = "") -> str:
    """Return a storage key that never repeats for the same association."""

    millis = int(time.time() * 1000)
    token = secrets.token_hex(6)
    return f"{_sanitize_association(association_key)}-{millis}-{token}{extension}"


def split_locator(locator: str) -> tuple[Namespace, str]:
    try:
        raw_namespace, key = locator.split("/", 1)
        namespace = Namespace(raw_namespace)
    except ValueError as exc:
        raise NotFound(f"Unknown asset locator: {locator}") from exc
    if not _KEY_RE.match(key):
        raise NotFound(f"Unknown asset locator: {locator}")
    return namespace, key


class LocalAssetStore:
    """Stores each namespace in its own directory below ``root``.

    Locators have the form ``"{namespace}/{key}"``. Covers must be images;
    both namespaces enforce a size quota.
    """

    def __init__(
        self,
        root: Path | str,
        *,
        base_url: str = "/assets",
        max_cover_bytes: int | None = None,
        max_file_bytes: int | None = None,
    ) -> None:
        self.root = Path(root).expanduser()
        self.base_url = base_url.rstrip("/")
        self.limits = {
            Namespace.COVERS: max_cover_bytes,
            Namespace.FILES: max_file_bytes,
        }

    @classmethod
    def from_settings(cls) -> LocalAssetStore:
        upload_dir = settings.upload_dir
        if not upload_dir:
            raise StorageFailure("Upload directory not configured")
        return cls(
            upload_dir,
            base_url=settings.asset_base_url,
            max_cover_bytes=settings.max_cover_bytes,
            max_file_bytes=settings.max_file_bytes,
        )

    def _namespace_dir(self, namespace: Namespace) -> Path:
        return self.root / namespace.value

    def _path_for(self, locator: str) -> Path:
        namespace, key = split_locator(locator)
        return self._namespace_dir(namespace) / key

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
        if namespace is Namespace.COVERS and not (mime_hint or "").lower().startswith("image/"):
            raise StorageFailure(f"Cover must be an image, got {mime_hint or 'unknown type'}")
        limit = self.limits.get(namespace)
        if limit is not None and len(data) > limit:
            raise StorageFailure(
                f"Asset exceeds the {namespace.value} quota of {limit} bytes"
            )

        key = build_key(association_key, _extension_for(mime_hint, filename))
        target_dir = self._namespace_dir(namespace)
        target = target_dir / key
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target_dir, prefix=".upload-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            log.warning("assets.store_failed", namespace=namespace.value, error=str(exc))
            raise StorageFailure(f"Unable to store {namespace.value} asset") from exc

        locator = f"{namespace.value}/{key}"
        log.info("assets.stored", locator=locator, size=len(data))
        return locator

    def get(self, locator: str) -> bytes:
        path = self._path_for(locator)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFound(f"Asset {locator} not found") from exc
        except OSError as exc:
            raise StorageFailure(f"Unable to read asset {locator}") from exc

    def exists(self, locator: str) -> bool:
        try:
            return self._path_for(locator).is_file()
        except NotFound:
            return False

    def delete(self, locator: str) -> None:
        try:
            path = self._path_for(locator)
        except NotFound:
            return
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageFailure(f"Unable to delete asset {locator}") from exc
        log.info("assets.deleted", locator=locator)

    def url_for(self, locator: str) -> str:
        return f"{self.base_url}/{locator}"

    def list(self, namespace: Namespace) -> list[StoredAsset]:
        namespace = Namespace(namespace)
        directory = self._namespace_dir(namespace)
        if not directory.exists():
            return []
        assets: list[StoredAsset] = []
        try:
            for path in sorted(directory.iterdir()):
                if not path.is_file() or path.name.startswith("."):
                    continue
                stat = path.stat()
                assets.append(
                    StoredAsset(
                        locator=f"{namespace.value}/{path.name}",
                        size=stat.st_size,
                        stored_at=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                    )
                )
        except OSError as exc:
            raise StorageFailure(f"Unable to list {namespace.value} assets") from exc
        return assets


def guess_media_type(locator: str) -> str:
    media_type, _ = mimetypes.guess_type(locator)
    return media_type or "application/octet-stream"


__all__ = [
    "AssetStore",
    "LocalAssetStore",
    "build_key",
    "guess_media_type",
    "split_locator",
]
