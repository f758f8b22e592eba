"""Decode the NASA solar-eclipse catalog (Besselian elements CSV export).

Rows are comma-delimited with a header row. Which fields a row carries depends
on its eclipse type: partial eclipses have no central line, so sun altitude,
path width and central duration are meaningless for them. Fields fall into
two groups. Structural fields (date, type code, decimal location, catalog
number) must decode or the row is skipped. Every other numeric field falls
back to zero and is counted in :class:`DecodeDiagnostics`.
"""

from __future__ import annotations

import hashlib
import logging
import math
from collections import Counter
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from datetime import MAXYEAR, MINYEAR, UTC, datetime, timedelta

from server.catalog import EclipseCatalog
from server.errors import MalformedRecordError, RecordDecodeError
from server.models import (
    AXIS_COEFFICIENTS,
    POSITION_COEFFICIENTS,
    Eclipse,
    EclipseType,
    GeoCoordinate,
    ProvenanceEvent,
    Ray3D,
)

_LOGGER = logging.getLogger(__name__)

DELIMITER = ","
QUOTE = '"'

# A complete row has FULL_FIELD_COUNT fields; rows down to MIN_FIELD_COUNT
# still decode with their trailing coefficients zero-filled.
MIN_FIELD_COUNT = 40
FULL_FIELD_COUNT = 45

_YEAR, _MONTH, _DAY, _TIME_OF_DAY = 0, 1, 2, 3
_DELTA_T = 4
_LUNA, _SAROS = 5, 6
_TYPE = 7
_GAMMA, _MAGNITUDE = 8, 9
# 10 and 11 are the sexagesimal display forms of latitude/longitude.
_LATITUDE, _LONGITUDE = 12, 13
_SUN_ALTITUDE, _SUN_AZIMUTH = 14, 15
_PATH_WIDTH = 16
# 17 is the "04m28s" display form of the duration.
_DURATION = 18
_CATALOG_NUMBER = 19
# 20 (canon plate) and 21 (Julian date) are derivable and ignored.
_T0 = 22
_X, _Y = 23, 27
_DECLINATION, _HOUR_ANGLE = 31, 34
_PENUMBRAL_RADIUS, _UMBRAL_RADIUS = 37, 40
_TAN_F1, _TAN_F2 = 43, 44


@dataclass(slots=True)
class DecodeDiagnostics:
    """Counters collected while folding records into a catalog."""

    rows_total: int = 0
    rows_decoded: int = 0
    rows_skipped: int = 0
    duplicates: int = 0
    fallbacks: Counter[str] = field(default_factory=Counter)
    errors: list[RecordDecodeError] = field(default_factory=list)

    @property
    def fallback_total(self) -> int:
        return sum(self.fallbacks.values())

    def to_dict(self) -> dict[str, object]:
        return {
            "rows_total": self.rows_total,
            "rows_decoded": self.rows_decoded,
            "rows_skipped": self.rows_skipped,
            "duplicates": self.duplicates,
            "fallbacks": dict(self.fallbacks),
        }


@dataclass(slots=True)
class CatalogReport:
    source_name: str
    content_hash: str | None
    diagnostics: DecodeDiagnostics
    provenance: list[ProvenanceEvent] = field(default_factory=list)


@dataclass(slots=True)
class CatalogBuild:
    catalog: EclipseCatalog
    report: CatalogReport


def _split_lines(text: str) -> Iterator[str]:
    # Only "\n" ends a row; a trailing "\r" from CRLF exports is dropped.
    start = 0
    while True:
        end = text.find("\n", start)
        if end == -1:
            yield text[start:].removesuffix("\r")
            return
        yield text[start:end].removesuffix("\r")
        start = end + 1


def iter_records(text: str) -> Iterator[str]:
    """Yield data rows, dropping the header row and blank lines."""

    lines = _split_lines(text)
    next(lines, None)
    for line in lines:
        if line.strip():
            yield line


def _strip_quotes(token: str) -> str:
    if len(token) >= 2 and token[0] == QUOTE and token[-1] == QUOTE:
        return token[1:-1]
    return token


def tokenize(record: str) -> list[str]:
    """Split a row on commas and drop one outer quote pair from each field."""

    return [_strip_quotes(token) for token in record.split(DELIMITER)]


def _parse_float(token: str | None) -> float | None:
    if token is None:
        return None
    try:
        value = float(token)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


def _parse_int(token: str | None) -> int | None:
    if token is None:
        return None
    try:
        return int(token.strip())
    except ValueError:
        return None


@dataclass(slots=True)
class _FieldReader:
    tokens: Sequence[str]
    record: str | None
    diagnostics: DecodeDiagnostics | None

    def token(self, index: int) -> str | None:
        if index < len(self.tokens):
            return self.tokens[index]
        return None

    def fail(self, index: int, reason: str) -> RecordDecodeError:
        return RecordDecodeError(index, reason, self.record)

    def required_int(self, index: int, name: str) -> int:
        token = self.token(index)
        value = _parse_int(token)
        if value is None:
            raise self.fail(index, f"{name} is not an integer: {token!r}")
        return value

    def required_float(self, index: int, name: str) -> float:
        token = self.token(index)
        value = _parse_float(token)
        if value is None:
            raise self.fail(index, f"{name} is not a number: {token!r}")
        return value

    def _fallback(self, index: int, name: str, default: float | int) -> None:
        if self.diagnostics is not None:
            self.diagnostics.fallbacks[name] += 1
        _LOGGER.debug(
            "field %d (%s) unparseable (%r), using %r", index, name, self.token(index), default
        )

    def optional_float(self, index: int, name: str) -> float:
        value = _parse_float(self.token(index))
        if value is None:
            self._fallback(index, name, 0.0)
            return 0.0
        return value

    def optional_int(self, index: int, name: str) -> int:
        value = _parse_int(self.token(index))
        if value is None:
            self._fallback(index, name, 0)
            return 0
        return value

    def coefficients(self, start: int, count: int, name: str) -> list[float]:
        return [self.optional_float(start + offset, f"{name}[{offset}]") for offset in range(count)]


def _assemble_time(reader: _FieldReader) -> datetime:
    year = reader.required_int(_YEAR, "year")
    month = reader.required_int(_MONTH, "month")
    day = reader.required_int(_DAY, "day")
    clock_token = (reader.token(_TIME_OF_DAY) or "").strip()
    try:
        clock = datetime.strptime(clock_token, "%H:%M:%S")
    except ValueError:
        raise reader.fail(_TIME_OF_DAY, f"time of greatest eclipse is not HH:MM:SS: {clock_token!r}") from None
    if not MINYEAR <= year <= MAXYEAR:
        raise reader.fail(_YEAR, f"year {year} is outside {MINYEAR}..{MAXYEAR}")
    if not 1 <= month <= 12:
        raise reader.fail(_MONTH, f"month {month} is outside 1..12")
    try:
        date = datetime(year, month, day, tzinfo=UTC)
    except ValueError as exc:
        raise reader.fail(_DAY, f"invalid date {year}-{month}-{day}: {exc}") from None
    return date + timedelta(hours=clock.hour, minutes=clock.minute, seconds=clock.second)


def _uncorrected(reader: _FieldReader, time: datetime, why: str) -> datetime:
    if reader.diagnostics is not None:
        reader.diagnostics.fallbacks["delta_t"] += 1
    _LOGGER.debug("Delta T %r %s, time left uncorrected", reader.token(_DELTA_T), why)
    return time


def _apply_delta_t(reader: _FieldReader, time: datetime) -> datetime:
    delta_t = _parse_float(reader.token(_DELTA_T))
    if delta_t is None:
        return _uncorrected(reader, time, "is unparseable")
    try:
        return time + timedelta(seconds=delta_t)
    except OverflowError:
        return _uncorrected(reader, time, f"overflows {time:%Y-%m-%d}")


def _eclipse_type(reader: _FieldReader) -> EclipseType:
    token = reader.token(_TYPE) or ""
    try:
        return EclipseType.from_code(token)
    except ValueError as exc:
        raise reader.fail(_TYPE, str(exc)) from None


def decode_record(
    tokens: Sequence[str],
    *,
    record: str | None = None,
    diagnostics: DecodeDiagnostics | None = None,
) -> Eclipse:
    """Decode one tokenized row into an :class:`Eclipse`.

    Raises :class:`RecordDecodeError` when a structural field is unusable and
    :class:`MalformedRecordError` when the row is too short to decode at all.
    """

    if len(tokens) < MIN_FIELD_COUNT:
        raise MalformedRecordError(
            len(tokens),
            f"expected at least {MIN_FIELD_COUNT} fields, found {len(tokens)}",
            record,
        )
    reader = _FieldReader(tokens, record, diagnostics)

    time = _apply_delta_t(reader, _assemble_time(reader))
    luna = reader.optional_int(_LUNA, "luna")
    saros = reader.optional_int(_SAROS, "saros")
    eclipse_type = _eclipse_type(reader)
    gamma = reader.optional_float(_GAMMA, "gamma")
    magnitude = reader.optional_float(_MAGNITUDE, "magnitude")
    location = GeoCoordinate(
        latitude=reader.required_float(_LATITUDE, "latitude"),
        longitude=reader.required_float(_LONGITUDE, "longitude"),
    )

    altitude: float | None = None
    path_width: float | None = None
    duration: float | None = None
    if eclipse_type.has_central_path:
        altitude = reader.optional_float(_SUN_ALTITUDE, "sun_altitude")
        path_width = reader.optional_float(_PATH_WIDTH, "path_width")
        duration = reader.optional_float(_DURATION, "duration")
    azimuth = reader.optional_float(_SUN_AZIMUTH, "sun_azimuth")

    catalog_number = reader.required_int(_CATALOG_NUMBER, "catalog number")

    return Eclipse(
        time=time,
        luna=luna,
        saros=saros,
        type=eclipse_type,
        gamma=gamma,
        magnitude=magnitude,
        location=location,
        sun_position=Ray3D(azimuth=azimuth, altitude=altitude),
        path_width_km=path_width,
        duration_s=duration,
        id=catalog_number,
        t0=reader.optional_float(_T0, "t0"),
        x_coefficients=reader.coefficients(_X, POSITION_COEFFICIENTS, "x"),
        y_coefficients=reader.coefficients(_Y, POSITION_COEFFICIENTS, "y"),
        axis_declination_coefficients=reader.coefficients(_DECLINATION, AXIS_COEFFICIENTS, "d"),
        axis_hour_angle_coefficients=reader.coefficients(_HOUR_ANGLE, AXIS_COEFFICIENTS, "mu"),
        penumbral_radius_coefficients=reader.coefficients(_PENUMBRAL_RADIUS, AXIS_COEFFICIENTS, "l1"),
        umbral_radius_coefficients=reader.coefficients(_UMBRAL_RADIUS, AXIS_COEFFICIENTS, "l2"),
        tan_penumbral_axis_angle=reader.optional_float(_TAN_F1, "tan_f1"),
        tan_umbral_axis_angle=reader.optional_float(_TAN_F2, "tan_f2"),
    )


def build_catalog(
    records: Iterable[str],
    *,
    source_name: str = "memory",
    content_hash: str | None = None,
) -> CatalogBuild:
    """Decode every record and key the results by catalog number.

    Later records replace earlier ones with the same number. Records with a
    structural problem are logged and skipped.
    """

    diagnostics = DecodeDiagnostics()
    entries: dict[int, Eclipse] = {}
    for ordinal, record in enumerate(records, start=1):
        diagnostics.rows_total += 1
        try:
            eclipse = decode_record(tokenize(record), record=record, diagnostics=diagnostics)
        except RecordDecodeError as exc:
            diagnostics.rows_skipped += 1
            diagnostics.errors.append(exc)
            _LOGGER.warning(
                "%s: skipping record %d (field %d): %s", source_name, ordinal, exc.field_index, exc.reason
            )
            continue
        if eclipse.id in entries:
            diagnostics.duplicates += 1
            _LOGGER.debug("%s: record %d replaces catalog number %d", source_name, ordinal, eclipse.id)
        entries[eclipse.id] = eclipse
        diagnostics.rows_decoded += 1

    catalog = EclipseCatalog(entries)
    provenance = [
        ProvenanceEvent(
            step="ingest_eclipse_catalog",
            parameters={
                "source": source_name,
                "hash": content_hash,
                "rows_total": diagnostics.rows_total,
                "rows_decoded": diagnostics.rows_decoded,
                "rows_skipped": diagnostics.rows_skipped,
                "duplicates": diagnostics.duplicates,
                "fallbacks": diagnostics.fallback_total,
                "eclipses": len(catalog),
            },
        )
    ]
    _LOGGER.info(
        "%s: %d eclipses from %d records (%d skipped, %d duplicates, %d field fallbacks)",
        source_name,
        len(catalog),
        diagnostics.rows_total,
        diagnostics.rows_skipped,
        diagnostics.duplicates,
        diagnostics.fallback_total,
    )
    report = CatalogReport(
        source_name=source_name,
        content_hash=content_hash,
        diagnostics=diagnostics,
        provenance=provenance,
    )
    return CatalogBuild(catalog=catalog, report=report)


def load_catalog_text(text: str, *, source_name: str = "memory") -> CatalogBuild:
    """Run the full split, tokenize, decode and fold pipeline over catalog text."""

    content_hash = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return build_catalog(iter_records(text), source_name=source_name, content_hash=content_hash)


__all__ = [
    "CatalogBuild",
    "CatalogReport",
    "DecodeDiagnostics",
    "FULL_FIELD_COUNT",
    "MIN_FIELD_COUNT",
    "build_catalog",
    "decode_record",
    "iter_records",
    "load_catalog_text",
    "tokenize",
]
