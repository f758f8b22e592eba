"""Catalog text sources: files on disk or in-memory payloads."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from server.errors import ResourceUnavailable


@dataclass(frozen=True, slots=True)
class CatalogSource:
    """A named, lazily-read supplier of raw catalog bytes."""

    name: str
    reader: Callable[[], bytes]
    encoding: str = "utf-8"

    def read_bytes(self) -> bytes:
        return self.reader()


def path_source(path: Path | str, *, encoding: str = "utf-8") -> CatalogSource:
    resolved = Path(path).expanduser()
    return CatalogSource(name=resolved.name, reader=resolved.read_bytes, encoding=encoding)


def bytes_source(payload: bytes | str, name: str = "memory", *, encoding: str = "utf-8") -> CatalogSource:
    data = payload.encode(encoding) if isinstance(payload, str) else bytes(payload)
    return CatalogSource(name=name, reader=lambda: data, encoding=encoding)


def read_source_text(source: CatalogSource) -> str:
    """Read and decode the full catalog text, or raise :class:`ResourceUnavailable`."""

    try:
        raw = source.read_bytes()
    except Exception as exc:
        raise ResourceUnavailable(f"Cannot read catalog {source.name!r}: {exc}") from exc
    if not raw:
        raise ResourceUnavailable(f"Catalog {source.name!r} is empty")
    try:
        text = raw.decode(source.encoding)
    except (UnicodeDecodeError, LookupError) as exc:
        raise ResourceUnavailable(
            f"Catalog {source.name!r} is not valid {source.encoding} text: {exc}"
        ) from exc
    # Some exports prepend a byte-order mark to the header row.
    text = text.removeprefix("\ufeff")
    if not text.strip():
        raise ResourceUnavailable(f"Catalog {source.name!r} contains no text")
    return text


__all__ = ["CatalogSource", "bytes_source", "path_source", "read_source_text"]
