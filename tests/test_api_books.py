from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from apps.api.deps import get_catalog_service
from apps.api.main import app
from apps.api.services import BookCatalogService

PDF = ("dune.pdf", b"%PDF-1.4 dune", "application/pdf")
PNG = ("cover.png", b"\x89PNG\r\n\x1a\ncover", "image/png")


def _form(**overrides: str) -> dict[str, str]:
    data = {
        "name": "Dune",
        "category": "Science Fiction",
        "price": "12.50",
        "description": "A desert planet and its spice.",
    }
    data.update(overrides)
    return data


@pytest.fixture
def client(service: BookCatalogService) -> Iterator[TestClient]:
    app.dependency_overrides[get_catalog_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def _create(client: TestClient, **overrides: str) -> dict:
    response = client.post("/books", data=_form(**overrides), files={"file": PDF, "cover": PNG})
    assert response.status_code == 201, response.text
    return response.json()["book"]


def test_health_and_metrics(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    assert client.get("/ready").json() == {"status": "ready"}

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "api_requests_total" in metrics.text


def test_categories_are_listed(client: TestClient) -> None:
    categories = client.get("/categories").json()["categories"]

    assert "Fiction" in categories
    assert "Drama" in categories


def test_create_and_browse(client: TestClient) -> None:
    book = _create(client)

    assert book["price"] == "12.50"
    assert book["owner_id"] == "writer-alice"
    assert book["file"]["name"] == "dune.pdf"
    assert book["file"]["download_url"] == f"/books/{book['id']}/download"
    assert book["cover_url"].startswith("/assets/covers/")

    listing = client.get("/books", params={"category": "Science Fiction", "min_price": "10", "max_price": "15"})
    assert listing.status_code == 200
    assert [item["id"] for item in listing.json()["books"]] == [book["id"]]
    assert client.get("/books", params={"category": "Drama"}).json()["total"] == 0

    detail = client.get(f"/books/{book['id']}").json()["book"]
    assert detail["downloadable"] is True
    assert detail["is_owner"] is False


def test_download_and_cover(client: TestClient) -> None:
    book = _create(client)

    download = client.get(f"/books/{book['id']}/download")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 dune"
    assert download.headers["content-type"] == "application/pdf"
    assert 'filename="dune.pdf"' in download.headers["content-disposition"]

    cover = client.get(f"/books/{book['id']}/cover")
    assert cover.status_code == 200
    assert cover.content.startswith(b"\x89PNG")

    asset = client.get(book["cover_url"])
    assert asset.status_code == 200
    assert asset.content == cover.content


def test_validation_errors_use_error_payload(client: TestClient) -> None:
    response = client.post("/books", data=_form(price="abc"), files={"file": PDF})
    assert response.status_code == 400
    assert response.json() == {"error": {"type": "validation", "message": "price must be a number"}}

    huge_price = client.post("/books", data=_form(price="1e30"), files={"file": PDF})
    assert huge_price.status_code == 400
    assert huge_price.json()["error"]["message"] == "price must not exceed 99999.99"

    missing_file = client.post("/books", data=_form())
    assert missing_file.status_code == 400
    assert missing_file.json()["error"]["message"] == "file required"

    bad_query = client.get("/books", params={"min_price": "-1"})
    assert bad_query.status_code == 400
    assert bad_query.json()["error"]["type"] == "validation"


def test_unknown_book_is_not_found(client: TestClient) -> None:
    for path in ("/books/missing", "/books/missing/download", "/assets/files/nothing-here.pdf"):
        response = client.get(path)
        assert response.status_code == 404
        assert response.json()["error"]["type"] == "not_found"


def test_cover_only_update_and_delete(client: TestClient) -> None:
    book = _create(client)

    updated = client.put(f"/books/{book['id']}", files={"cover": ("new.png", b"\x89PNG\r\n\x1a\nnew", "image/png")})
    assert updated.status_code == 200, updated.text
    payload = updated.json()["book"]
    assert payload["name"] == book["name"]
    assert payload["file"] == book["file"]
    assert payload["cover_url"] != book["cover_url"]
    assert payload["created_at"] == book["created_at"]
    assert payload["updated_at"] > book["updated_at"]

    deleted = client.delete(f"/books/{book['id']}")
    assert deleted.status_code == 204
    assert client.get(f"/books/{book['id']}").status_code == 404


def test_non_image_cover_is_a_storage_failure(client: TestClient) -> None:
    response = client.post(
        "/books",
        data=_form(),
        files={"file": PDF, "cover": ("cover.txt", b"not an image", "text/plain")},
    )

    assert response.status_code == 503
    assert response.json()["error"]["type"] == "storage_failure"
    assert client.get("/books").json()["total"] == 0


def test_dashboard_is_scoped_to_the_writer(client: TestClient, service: BookCatalogService) -> None:
    from tests.helpers import make_fields, make_file

    _create(client, price="10.00")
    _create(client, price="5.50", category="Drama")
    service.create("writer-bob", make_fields(category="Horror"), file=make_file())

    owned = client.get("/dashboard/books").json()
    assert owned["total"] == 2

    stats = client.get("/dashboard/stats").json()
    assert stats == {"total_books": 2, "total_value": "15.50", "distinct_category_count": 2}

    categories = client.get("/dashboard/categories").json()["categories"]
    assert categories == ["Drama", "Science Fiction"]


def test_login_cookie_requires_csrf_header(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AUTH_REQUIRED", "true")

    anonymous = client.post("/books", data=_form(), files={"file": PDF})
    assert anonymous.status_code == 401
    assert anonymous.json()["error"]["type"] == "unauthenticated"

    login = client.post("/auth/login", json={"email": "bob@example.com", "password": "builder"})
    assert login.status_code == 200
    token = login.headers["x-csrf-token"]
    assert login.json()["user"]["id"] == "writer-bob"

    no_csrf = client.post("/books", data=_form(), files={"file": PDF})
    assert no_csrf.status_code == 403

    created = client.post("/books", data=_form(), files={"file": PDF}, headers={"x-csrf-token": token})
    assert created.status_code == 201
    book = created.json()["book"]
    assert book["owner_id"] == "writer-bob"

    detail = client.get(f"/books/{book['id']}").json()["book"]
    assert detail["is_owner"] is True

    me = client.get("/me")
    assert me.json()["id"] == "writer-bob"


def test_other_writer_gets_forbidden(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    book = _create(client)
    monkeypatch.setenv("AUTH_REQUIRED", "true")
    login = client.post("/auth/login", json={"email": "bob@example.com", "password": "builder"})
    headers = {"x-csrf-token": login.headers["x-csrf-token"]}

    response = client.delete(f"/books/{book['id']}", headers=headers)

    assert response.status_code == 403
    assert response.json()["error"] == {"type": "forbidden", "message": "You do not own this book"}
    assert client.get(f"/books/{book['id']}").status_code == 200


def test_bad_credentials_are_rejected(client: TestClient) -> None:
    response = client.post("/auth/login", json={"email": "bob@example.com", "password": "nope"})

    assert response.status_code == 401
    assert response.json()["error"]["type"] == "unauthenticated"
