"""Utilities for initializing the catalog database."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.engine import Engine

from . import models  # noqa: F401 - ensure models are imported for metadata
from .base import Base
from .session import engine


def _ensure_directory_exists(db_engine: Engine) -> None:
    url = getattr(db_engine, "url", None)
    if url is None:
        return
    if url.get_backend_name() != "sqlite":  # pragma: no cover - non-sqlite envs
        return
    database = url.database
    if not database or database == ":memory:":
        return
    path = Path(database)
    if not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)


def init_db(db_engine: Engine | None = None) -> None:
    target = db_engine if db_engine is not None else engine
    _ensure_directory_exists(target)
    Base.metadata.create_all(bind=target)


__all__ = ["init_db"]
