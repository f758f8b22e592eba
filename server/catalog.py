"""Read-only, queryable collection of decoded eclipses keyed by catalog number."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from datetime import datetime
from types import MappingProxyType

import pandas as pd

from server.models import Eclipse, EclipseKind

_FRAME_COLUMNS = (
    "id",
    "time",
    "type",
    "kind",
    "hybrid",
    "luna",
    "saros",
    "gamma",
    "magnitude",
    "latitude",
    "longitude",
    "sun_azimuth",
    "sun_altitude",
    "path_width_km",
    "duration_s",
    "canon_plate_number",
)


class EclipseCatalog(Mapping[int, Eclipse]):
    """Immutable mapping from catalog number to :class:`Eclipse`."""

    __slots__ = ("_entries",)

    def __init__(self, entries: Mapping[int, Eclipse] | None = None) -> None:
        self._entries: Mapping[int, Eclipse] = MappingProxyType(dict(entries or {}))

    @classmethod
    def from_eclipses(cls, eclipses: Iterable[Eclipse]) -> EclipseCatalog:
        """Key eclipses by id; the last one wins when ids repeat."""

        entries: dict[int, Eclipse] = {}
        for eclipse in eclipses:
            entries[eclipse.id] = eclipse
        return cls(entries)

    def __getitem__(self, key: int) -> Eclipse:
        return self._entries[key]

    def __iter__(self) -> Iterator[int]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"EclipseCatalog({len(self)} eclipses)"

    def by_id(self, eclipse_id: int) -> Eclipse | None:
        return self._entries.get(eclipse_id)

    def all(self) -> tuple[Eclipse, ...]:
        """Every eclipse in chronological order."""

        return tuple(sorted(self._entries.values(), key=lambda item: (item.time, item.id)))

    def of_kind(self, kind: EclipseKind | str) -> tuple[Eclipse, ...]:
        wanted = EclipseKind(kind)
        return tuple(eclipse for eclipse in self.all() if eclipse.type.kind is wanted)

    def by_saros(self, saros: int) -> tuple[Eclipse, ...]:
        return tuple(eclipse for eclipse in self.all() if eclipse.saros == saros)

    def between(self, start: datetime, end: datetime) -> tuple[Eclipse, ...]:
        """Eclipses with ``start <= time <= end``; both bounds must be timezone-aware."""

        if start.tzinfo is None or end.tzinfo is None:
            raise ValueError("between() requires timezone-aware datetimes")
        return tuple(eclipse for eclipse in self.all() if start <= eclipse.time <= end)

    def to_frame(self) -> pd.DataFrame:
        """Tabulate the scalar fields, one row per eclipse, indexed by id."""

        rows = [
            {
                "id": eclipse.id,
                "time": eclipse.time,
                "type": eclipse.type.code,
                "kind": eclipse.type.kind.value,
                "hybrid": eclipse.type.hybrid.value if eclipse.type.hybrid else None,
                "luna": eclipse.luna,
                "saros": eclipse.saros,
                "gamma": eclipse.gamma,
                "magnitude": eclipse.magnitude,
                "latitude": eclipse.location.latitude,
                "longitude": eclipse.location.longitude,
                "sun_azimuth": eclipse.sun_position.azimuth,
                "sun_altitude": eclipse.sun_position.altitude,
                "path_width_km": eclipse.path_width_km,
                "duration_s": eclipse.duration_s,
                "canon_plate_number": eclipse.canon_plate_number,
            }
            for eclipse in self.all()
        ]
        return pd.DataFrame(rows, columns=list(_FRAME_COLUMNS)).set_index("id")


__all__ = ["EclipseCatalog"]
