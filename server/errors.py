"""Exception types raised while loading the eclipse catalog."""

from __future__ import annotations


class CatalogError(RuntimeError):
    """Base class for catalog loading failures."""


class ResourceUnavailable(CatalogError):
    """Raised when the catalog text cannot be obtained or decoded as text."""


class RecordDecodeError(CatalogError):
    """A structurally required field of one record could not be decoded."""

    def __init__(self, field_index: int, reason: str, record: str | None = None) -> None:
        self.field_index = field_index
        self.reason = reason
        self.record = record
        super().__init__(f"field {field_index}: {reason}")


class MalformedRecordError(RecordDecodeError):
    """The record has fewer fields than the decoder requires."""


class CatalogLoadTimeout(CatalogError):
    """Raised when a catalog load does not finish before its deadline."""


__all__ = [
    "CatalogError",
    "CatalogLoadTimeout",
    "MalformedRecordError",
    "RecordDecodeError",
    "ResourceUnavailable",
]
