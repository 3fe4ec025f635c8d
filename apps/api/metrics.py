"""Prometheus collectors shared by the API and the catalog service."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from prometheus_client import REGISTRY, Counter, Histogram


def _existing(name: str, kind: type[Any]) -> Any | None:
    collector = REGISTRY._names_to_collectors.get(name)
    if isinstance(collector, kind):
        return collector
    return None


def _counter(name: str, documentation: str, labelnames: Sequence[str]) -> Counter:
    existing = _existing(name, Counter) or _existing(f"{name}_total", Counter)
    if existing is not None:
        return existing
    return Counter(name, documentation, labelnames=tuple(labelnames))


def _histogram(name: str, documentation: str, labelnames: Sequence[str]) -> Histogram:
    existing = _existing(name, Histogram)
    if existing is not None:
        return existing
    return Histogram(name, documentation, labelnames=tuple(labelnames))


REQUEST_COUNTER = _counter(
    "api_requests_total",
    "Total number of API requests",
    ("path", "method", "status"),
)
REQUEST_LATENCY = _histogram(
    "api_request_latency_seconds",
    "Latency of API requests in seconds",
    ("path", "method"),
)
ERROR_COUNTER = _counter(
    "api_errors_total",
    "Total number of API errors",
    ("path", "method"),
)
CATALOG_OPERATIONS = _counter(
    "catalog_operations_total",
    "Catalog operations by outcome",
    ("operation", "outcome"),
)
ORPHANED_ASSETS = _counter(
    "catalog_orphaned_assets_total",
    "Assets left unreferenced after a failed best-effort cleanup",
    ("namespace",),
)


__all__ = [
    "CATALOG_OPERATIONS",
    "ERROR_COUNTER",
    "ORPHANED_ASSETS",
    "REQUEST_COUNTER",
    "REQUEST_LATENCY",
]
