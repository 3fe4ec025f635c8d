import os
import sys
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

os.environ.setdefault("LOG_FILE", "stdout")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from apps.api.db import models  # noqa: E402
from apps.api.db.init import init_db  # noqa: E402
from apps.api.db.repositories import CatalogRepository  # noqa: E402
from apps.api.db.session import build_engine, build_sessionmaker  # noqa: E402
from apps.api.services import BookCatalogService, LocalAssetStore  # noqa: E402
from tests.helpers import MemoryAssetStore  # noqa: E402


@pytest.fixture
def engine() -> Iterator[Engine]:
    test_engine = build_engine("sqlite:///:memory:")
    init_db(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_sessionmaker(engine)


@pytest.fixture
def repository(session_factory: sessionmaker[Session]) -> CatalogRepository:
    return CatalogRepository(session_factory)


@pytest.fixture
def asset_store(tmp_path: Path) -> LocalAssetStore:
    return LocalAssetStore(
        tmp_path / "uploads",
        base_url="/assets",
        max_cover_bytes=1024,
        max_file_bytes=4096,
    )


@pytest.fixture
def memory_assets() -> MemoryAssetStore:
    return MemoryAssetStore()


@pytest.fixture
def service(repository: CatalogRepository, asset_store: LocalAssetStore) -> BookCatalogService:
    return BookCatalogService(repository, asset_store)


class FakeClock:
    """Deterministic replacement for ``models.utcnow``."""

    def __init__(self) -> None:
        self.now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(models, "utcnow", fake)
    return fake
