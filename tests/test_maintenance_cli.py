from __future__ import annotations

import json
import os
from datetime import timedelta

import pytest
from click.testing import CliRunner

import cli.maintenance_cli as maintenance_cli
from apps.api.services import BookCatalogService, LocalAssetStore
from core.catalog import Namespace, ReconcileReport


class _RecordingService:
    def __init__(self) -> None:
        self.calls: list[dict[str, object]] = []

    def reconcile_orphans(self, *, min_age: timedelta, dry_run: bool) -> ReconcileReport:
        self.calls.append({"min_age": min_age, "dry_run": dry_run})
        return ReconcileReport(scanned=3, referenced=2, deleted=["files/ghost-1"], dry_run=dry_run)


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(maintenance_cli, "configure_logging", lambda: None)


def _last_json_line(output: str) -> dict:
    return json.loads(output.strip().splitlines()[-1])


def test_sweep_uses_configured_min_age(monkeypatch: pytest.MonkeyPatch) -> None:
    recording = _RecordingService()
    monkeypatch.setattr(maintenance_cli, "get_catalog_service", lambda: recording)
    monkeypatch.setenv("ORPHAN_MIN_AGE_SECONDS", "120")

    result = CliRunner().invoke(maintenance_cli.main, ["sweep-orphans", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert recording.calls == [{"min_age": timedelta(seconds=120), "dry_run": True}]
    report = _last_json_line(result.stdout)
    assert report["deleted"] == ["files/ghost-1"]
    assert report["dry_run"] is True


def test_sweep_deletes_unreferenced_assets(
    monkeypatch: pytest.MonkeyPatch, service: BookCatalogService, asset_store: LocalAssetStore
) -> None:
    stray = asset_store.put(Namespace.COVERS, b"img", "image/png", "ghost")
    stray_path = asset_store.root / stray
    os.utime(stray_path, (stray_path.stat().st_atime, stray_path.stat().st_mtime - 60))
    monkeypatch.setattr(maintenance_cli, "get_catalog_service", lambda: service)

    result = CliRunner().invoke(maintenance_cli.main, ["sweep-orphans", "--min-age", "0"])

    assert result.exit_code == 0, result.output
    assert _last_json_line(result.stdout)["deleted"] == [stray]
    assert not asset_store.exists(stray)


def test_init_db_command(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[bool] = []
    monkeypatch.setattr(maintenance_cli, "init_db", lambda: calls.append(True))

    result = CliRunner().invoke(maintenance_cli.main, ["init-db"])

    assert result.exit_code == 0, result.output
    assert calls == [True]
    assert _last_json_line(result.stdout)["status"] == "ok"
