from __future__ import annotations

from pathlib import Path

import pytest

from apps.api.services.assets import LocalAssetStore, build_key, guess_media_type, split_locator
from core.catalog import Namespace, NotFound, StorageFailure


def test_put_get_and_url(asset_store: LocalAssetStore, tmp_path: Path) -> None:
    locator = asset_store.put(Namespace.FILES, b"book bytes", "application/pdf", "book-1", filename="Dune.PDF")

    assert locator.startswith("files/book-1-")
    assert locator.endswith(".pdf")
    assert asset_store.get(locator) == b"book bytes"
    assert (tmp_path / "uploads" / locator).read_bytes() == b"book bytes"
    assert asset_store.url_for(locator) == f"/assets/{locator}"


def test_repeated_uploads_for_same_association_never_collide(asset_store: LocalAssetStore) -> None:
    locators = {
        asset_store.put(Namespace.COVERS, b"img", "image/png", "book-1") for _ in range(20)
    }

    assert len(locators) == 20


def test_namespaces_are_separate_directories(asset_store: LocalAssetStore, tmp_path: Path) -> None:
    cover = asset_store.put(Namespace.COVERS, b"img", "image/jpeg", "book-1")
    book_file = asset_store.put(Namespace.FILES, b"doc", "application/epub+zip", "book-1", filename="a.epub")

    assert (tmp_path / "uploads" / "covers" / cover.split("/", 1)[1]).is_file()
    assert (tmp_path / "uploads" / "files" / book_file.split("/", 1)[1]).is_file()
    assert [asset.locator for asset in asset_store.list(Namespace.COVERS)] == [cover]
    assert [asset.locator for asset in asset_store.list(Namespace.FILES)] == [book_file]


def test_cover_must_be_an_image(asset_store: LocalAssetStore) -> None:
    with pytest.raises(StorageFailure):
        asset_store.put(Namespace.COVERS, b"text", "text/plain", "book-1")

    assert asset_store.list(Namespace.COVERS) == []


def test_quota_is_enforced_per_namespace(asset_store: LocalAssetStore) -> None:
    with pytest.raises(StorageFailure):
        asset_store.put(Namespace.COVERS, b"x" * 1025, "image/png", "book-1")

    asset_store.put(Namespace.FILES, b"x" * 1025, "application/pdf", "book-1")
    with pytest.raises(StorageFailure):
        asset_store.put(Namespace.FILES, b"x" * 4097, "application/pdf", "book-1")


def test_delete_is_idempotent(asset_store: LocalAssetStore) -> None:
    locator = asset_store.put(Namespace.FILES, b"doc", "application/pdf", "book-1")

    asset_store.delete(locator)
    asset_store.delete(locator)

    assert not asset_store.exists(locator)
    with pytest.raises(NotFound):
        asset_store.get(locator)


def test_unknown_or_malicious_locators_are_not_found(asset_store: LocalAssetStore) -> None:
    for locator in ("files/../secret", "posters/abc.png", "covers/", "no-namespace"):
        with pytest.raises(NotFound):
            asset_store.get(locator)
        asset_store.delete(locator)


def test_association_key_is_sanitised() -> None:
    key = build_key("../weird id/", ".png")

    assert "/" not in key
    assert key.endswith(".png")
    assert split_locator(f"covers/{key}") == (Namespace.COVERS, key)


def test_missing_upload_dir_is_a_storage_failure(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("UPLOAD_DIR", "")

    with pytest.raises(StorageFailure):
        LocalAssetStore.from_settings()


def test_guess_media_type() -> None:
    assert guess_media_type("covers/a-1-ff.png") == "image/png"
    assert guess_media_type("files/a-1-ff") == "application/octet-stream"


@pytest.mark.parametrize("association", ["_draft", "..", "", "-_-"])
def test_any_association_key_yields_a_retrievable_locator(
    asset_store: LocalAssetStore, association: str
) -> None:
    locator = asset_store.put(Namespace.FILES, b"draft", "application/pdf", association)

    assert asset_store.get(locator) == b"draft"
    asset_store.delete(locator)
    assert not asset_store.exists(locator)
    assert asset_store.list(Namespace.FILES) == []


def test_association_key_is_trimmed_of_leading_underscores(asset_store: LocalAssetStore) -> None:
    locator = asset_store.put(Namespace.FILES, b"draft", "application/pdf", "_draft")

    assert locator.startswith("files/draft-")
