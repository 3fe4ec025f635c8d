"""Alembic environment for the catalog database."""

from __future__ import annotations

from logging.config import fileConfig

from alembic import context
from apps.api.db import models  # noqa: F401 - registers the books table
from apps.api.db.base import Base
from apps.api.db.init import _ensure_directory_exists
from apps.api.db.session import build_engine
from core.config import settings

config = context.config
config.set_main_option("sqlalchemy.url", settings.database_url)

target_metadata = Base.metadata

if config.config_file_name is not None:  # pragma: no cover - startup config
    fileConfig(config.config_file_name, disable_existing_loggers=False)


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def run_migrations_offline() -> None:
    url = settings.database_url
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        render_as_batch=_is_sqlite(url),
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = build_engine(settings.database_url)
    _ensure_directory_exists(connectable)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            render_as_batch=connection.dialect.name == "sqlite",
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()
    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:  # pragma: no cover - requires DB connection
    run_migrations_online()
