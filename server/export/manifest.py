"""Manifest writer and replay utilities."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from io import BytesIO, StringIO
from zipfile import ZIP_DEFLATED, ZipFile

from server.catalog import EclipseCatalog
from server.ingest.eclipse_catalog import CatalogReport
from server.models import Eclipse


@dataclass(slots=True)
class ExportBundle:
    manifest: dict
    zip_bytes: bytes


def build_manifest(
    catalog: EclipseCatalog,
    *,
    app_version: str,
    schema_version: int,
    report: CatalogReport | None = None,
) -> dict:
    manifest = {
        "schema_version": schema_version,
        "app_version": app_version,
        "created_utc": datetime.now(UTC).isoformat(),
        "source": {
            "name": report.source_name if report else None,
            "hash": report.content_hash if report else None,
            "diagnostics": report.diagnostics.to_dict() if report else None,
        },
        "provenance": [event.to_dict() for event in report.provenance] if report else [],
        "eclipses": [eclipse.to_dict() for eclipse in catalog.all()],
    }
    return manifest


def _write_summary_csv(catalog: EclipseCatalog) -> bytes:
    buffer = StringIO()
    catalog.to_frame().to_csv(buffer)
    return buffer.getvalue().encode("utf-8")


def export_catalog(
    catalog: EclipseCatalog,
    *,
    app_version: str,
    schema_version: int,
    report: CatalogReport | None = None,
) -> ExportBundle:
    manifest = build_manifest(
        catalog,
        app_version=app_version,
        schema_version=schema_version,
        report=report,
    )

    buffer = BytesIO()
    with ZipFile(buffer, mode="w", compression=ZIP_DEFLATED) as archive:
        archive.writestr("manifest.json", json.dumps(manifest, indent=2))
        archive.writestr("eclipses.csv", _write_summary_csv(catalog))

    return ExportBundle(manifest=manifest, zip_bytes=buffer.getvalue())


def replay_manifest(manifest: Mapping[str, object]) -> EclipseCatalog:
    raw_eclipses = manifest.get("eclipses", [])
    eclipses: list[Eclipse] = []
    if not isinstance(raw_eclipses, Sequence):
        return EclipseCatalog()
    for item in raw_eclipses:
        if not isinstance(item, Mapping):  # pragma: no cover - manifest validation guard
            continue
        eclipses.append(Eclipse.from_dict(dict(item)))
    return EclipseCatalog.from_eclipses(eclipses)


__all__ = ["ExportBundle", "build_manifest", "export_catalog", "replay_manifest"]
