from __future__ import annotations

import json
from datetime import timedelta

import click

from apps.api.db.init import init_db
from apps.api.deps import get_catalog_service
from core.config import settings
from utils.logging import configure_logging


@click.group(help="Maintenance tasks for the Bookstall catalog.")
def main() -> None:
    configure_logging()


@main.command("init-db", help="Create the catalog tables if they do not exist.")
def init_db_command() -> None:
    init_db()
    click.echo(json.dumps({"status": "ok", "database_url": settings.database_url}))


@main.command("sweep-orphans", help="Delete stored assets that no book references.")
@click.option(
    "--min-age",
    type=click.IntRange(min=0),
    default=None,
    help="Only consider assets older than this many seconds (default: ORPHAN_MIN_AGE_SECONDS)",
)
@click.option("--dry-run", is_flag=True, default=False, help="Report orphans without deleting them")
def sweep_orphans(min_age: int | None, dry_run: bool) -> None:
    seconds = settings.orphan_min_age_seconds if min_age is None else min_age
    report = get_catalog_service().reconcile_orphans(
        min_age=timedelta(seconds=seconds),
        dry_run=dry_run,
    )
    click.echo(json.dumps(report.as_dict(), ensure_ascii=False))
    if report.failed:
        raise SystemExit(1)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
