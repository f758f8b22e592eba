"""Command-line entry point: load the eclipse catalog and print a summary."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from app.state.catalog_loader import CatalogLoader
from server.errors import CatalogError
from server.export.manifest import export_catalog
from server.ingest.sources import path_source

_ROOT = Path(__file__).resolve().parents[1]


@dataclass(slots=True)
class AppConfig:
    app_version: str
    schema_version: int
    settings: dict[str, Any]
    root: Path

    @property
    def catalog_path(self) -> Path:
        raw = Path(str((self.settings.get("catalog") or {}).get("path", "")))
        return raw if raw.is_absolute() else self.root / raw

    @property
    def catalog_encoding(self) -> str:
        return str((self.settings.get("catalog") or {}).get("encoding", "utf-8"))

    @property
    def timeout_s(self) -> float | None:
        value = (self.settings.get("loader") or {}).get("timeout_s")
        return float(value) if value is not None else None

    @property
    def log_level(self) -> str:
        return str((self.settings.get("logging") or {}).get("level", "INFO")).upper()


def load_config(root: Path | None = None) -> AppConfig:
    root = root or _ROOT
    version_payload = json.loads((root / "app" / "config" / "version.json").read_text())
    settings_payload = yaml.safe_load((root / "app" / "config" / "settings.yaml").read_text()) or {}
    return AppConfig(
        app_version=version_payload["app_version"],
        schema_version=int(version_payload["schema_version"]),
        settings=settings_payload,
        root=root,
    )


def build_loader(config: AppConfig, catalog_path: Path | None = None) -> CatalogLoader:
    source = path_source(catalog_path or config.catalog_path, encoding=config.catalog_encoding)
    return CatalogLoader(source, timeout_s=config.timeout_s)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Decode the solar eclipse catalog")
    parser.add_argument("--catalog", type=Path, help="catalog CSV (defaults to settings.yaml)")
    parser.add_argument("--log-level", default=None, help="logging level (defaults to settings.yaml)")
    parser.add_argument("--export", type=Path, help="write a zip bundle (manifest plus CSV summary) here")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    config = load_config()
    level = (args.log_level or config.log_level).upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format="%(levelname)s: %(message)s")

    loader = build_loader(config, args.catalog)
    try:
        catalog = asyncio.run(loader.load())
    except CatalogError as exc:
        logging.error("catalog load failed: %s", exc)
        return 1

    if args.export is not None:
        bundle = export_catalog(
            catalog,
            app_version=config.app_version,
            schema_version=config.schema_version,
            report=loader.report,
        )
        args.export.write_bytes(bundle.zip_bytes)
        logging.info("exported %d eclipses to %s", len(catalog), args.export)

    for eclipse in catalog.all():
        print(
            f"{eclipse.id:>5}  {eclipse.time:%Y-%m-%d %H:%M:%S}  {eclipse.type.code:<2}  "
            f"saros {eclipse.saros:>3}  plate {eclipse.canon_plate_number:>3}  "
            f"{eclipse.location.latitude:+7.2f} {eclipse.location.longitude:+8.2f}"
        )
    return 0


if __name__ == "__main__":
    sys.exit(main())
