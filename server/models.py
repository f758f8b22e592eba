"""Shared data models for solar eclipses and ingest provenance."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import numpy as np

POSITION_COEFFICIENTS = 4
AXIS_COEFFICIENTS = 3


class HybridSubtype(str, Enum):
    """Where along the path a hybrid eclipse is total."""

    START_TOTAL = "start_total"
    END_TOTAL = "end_total"
    START_END_ANNULAR = "start_end_annular"


class EclipseKind(str, Enum):
    TOTAL = "total"
    ANNULAR = "annular"
    PARTIAL = "partial"
    HYBRID = "hybrid"


@dataclass(frozen=True, slots=True)
class EclipseType:
    """Eclipse classification; ``hybrid`` is set only for hybrid eclipses."""

    kind: EclipseKind
    hybrid: HybridSubtype | None = None

    def __post_init__(self) -> None:
        if (self.kind is EclipseKind.HYBRID) != (self.hybrid is not None):
            raise ValueError("hybrid subtype is required for, and only for, hybrid eclipses")

    @classmethod
    def total(cls) -> EclipseType:
        return cls(EclipseKind.TOTAL)

    @classmethod
    def annular(cls) -> EclipseType:
        return cls(EclipseKind.ANNULAR)

    @classmethod
    def partial(cls) -> EclipseType:
        return cls(EclipseKind.PARTIAL)

    @classmethod
    def hybrid_of(cls, subtype: HybridSubtype) -> EclipseType:
        return cls(EclipseKind.HYBRID, subtype)

    @classmethod
    def from_code(cls, code: str) -> EclipseType:
        """Parse a catalog type code such as ``Tm``, ``A-``, ``Pb`` or ``H2``.

        Only the first character selects the kind; for hybrids the second
        character picks the subtype and a bare ``H`` is annular at both ends.
        """

        code = code.strip()
        if not code:
            raise ValueError("empty eclipse type code")
        match code[0]:
            case "P":
                return cls.partial()
            case "A":
                return cls.annular()
            case "T":
                return cls.total()
            case "H":
                qualifier = code[1:2]
                if qualifier == "2":
                    return cls.hybrid_of(HybridSubtype.START_TOTAL)
                if qualifier == "3":
                    return cls.hybrid_of(HybridSubtype.END_TOTAL)
                return cls.hybrid_of(HybridSubtype.START_END_ANNULAR)
        raise ValueError(f"unknown eclipse type code {code!r}")

    @property
    def is_partial(self) -> bool:
        return self.kind is EclipseKind.PARTIAL

    @property
    def has_central_path(self) -> bool:
        """True when the catalog lists altitude, path width and duration."""

        match self.kind:
            case EclipseKind.PARTIAL:
                return False
            case EclipseKind.TOTAL | EclipseKind.ANNULAR | EclipseKind.HYBRID:
                return True
        raise ValueError(f"unhandled eclipse kind {self.kind!r}")

    @property
    def code(self) -> str:
        """Catalog-style type code (``T``, ``A``, ``P``, ``H``, ``H2``, ``H3``)."""

        match self.kind:
            case EclipseKind.TOTAL:
                return "T"
            case EclipseKind.ANNULAR:
                return "A"
            case EclipseKind.PARTIAL:
                return "P"
            case EclipseKind.HYBRID:
                match self.hybrid:
                    case HybridSubtype.START_TOTAL:
                        return "H2"
                    case HybridSubtype.END_TOTAL:
                        return "H3"
                    case _:
                        return "H"
        raise ValueError(f"unhandled eclipse kind {self.kind!r}")

    def __str__(self) -> str:
        if self.hybrid is not None:
            return f"{self.kind.value} ({self.hybrid.value})"
        return self.kind.value


@dataclass(frozen=True, slots=True)
class Ray3D:
    """Sun position at greatest eclipse, in degrees."""

    azimuth: float
    altitude: float | None = None


@dataclass(frozen=True, slots=True)
class GeoCoordinate:
    latitude: float  # decimal degrees, north positive
    longitude: float  # decimal degrees, east positive


def _coefficients(values: Any, length: int, name: str) -> np.ndarray:
    array = np.array(values, dtype=np.float64)
    if array.shape != (length,):
        raise ValueError(f"{name} must hold exactly {length} values, got shape {array.shape}")
    array.setflags(write=False)
    return array


# Field name -> expected length for every Besselian coefficient group.
COEFFICIENT_GROUPS: dict[str, int] = {
    "x_coefficients": POSITION_COEFFICIENTS,
    "y_coefficients": POSITION_COEFFICIENTS,
    "axis_declination_coefficients": AXIS_COEFFICIENTS,
    "axis_hour_angle_coefficients": AXIS_COEFFICIENTS,
    "penumbral_radius_coefficients": AXIS_COEFFICIENTS,
    "umbral_radius_coefficients": AXIS_COEFFICIENTS,
}


@dataclass(frozen=True, slots=True, eq=False)
class Eclipse:
    """One solar eclipse from the catalog, with its Besselian elements.

    ``time`` is the catalog instant of greatest eclipse with Delta-T added.
    Coefficient groups are read-only float64 arrays: ``x``/``y`` hold four
    terms, the axis declination (d), hour angle (mu), penumbral radius (L1)
    and umbral radius (L2) groups hold three.
    """

    time: datetime
    luna: int
    saros: int
    type: EclipseType
    gamma: float  # distance from shadow axis to Earth's centre, Earth radii
    magnitude: float
    location: GeoCoordinate
    sun_position: Ray3D
    path_width_km: float | None
    duration_s: float | None
    id: int
    t0: float
    x_coefficients: np.ndarray
    y_coefficients: np.ndarray
    axis_declination_coefficients: np.ndarray
    axis_hour_angle_coefficients: np.ndarray
    penumbral_radius_coefficients: np.ndarray
    umbral_radius_coefficients: np.ndarray
    tan_penumbral_axis_angle: float  # tan(f1)
    tan_umbral_axis_angle: float  # tan(f2)

    def __post_init__(self) -> None:
        for name, length in COEFFICIENT_GROUPS.items():
            object.__setattr__(self, name, _coefficients(getattr(self, name), length, name))
        central = (self.sun_position.altitude, self.path_width_km, self.duration_s)
        if self.type.has_central_path:
            if any(value is None for value in central):
                raise ValueError(
                    f"eclipse {self.id}: {self.type} requires altitude, path width and duration"
                )
        elif any(value is not None for value in central):
            raise ValueError(
                f"eclipse {self.id}: partial eclipses carry no altitude, path width or duration"
            )

    @property
    def canon_plate_number(self) -> int:
        """Plate index in NASA's printed eclipse canon."""

        return ((self.id - 1) // 20) + 1

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "time": self.time.isoformat(),
            "luna": self.luna,
            "saros": self.saros,
            "type": self.type.code,
            "gamma": self.gamma,
            "magnitude": self.magnitude,
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
            "sun_azimuth": self.sun_position.azimuth,
            "sun_altitude": self.sun_position.altitude,
            "path_width_km": self.path_width_km,
            "duration_s": self.duration_s,
            "t0": self.t0,
            "tan_penumbral_axis_angle": self.tan_penumbral_axis_angle,
            "tan_umbral_axis_angle": self.tan_umbral_axis_angle,
        }
        for name in COEFFICIENT_GROUPS:
            payload[name] = getattr(self, name).tolist()
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Eclipse:
        time = datetime.fromisoformat(payload["time"])
        if time.tzinfo is None:
            time = time.replace(tzinfo=UTC)
        altitude = payload.get("sun_altitude")
        return cls(
            time=time,
            luna=int(payload.get("luna", 0)),
            saros=int(payload.get("saros", 0)),
            type=EclipseType.from_code(str(payload["type"])),
            gamma=float(payload.get("gamma", 0.0)),
            magnitude=float(payload.get("magnitude", 0.0)),
            location=GeoCoordinate(
                latitude=float(payload["latitude"]),
                longitude=float(payload["longitude"]),
            ),
            sun_position=Ray3D(
                azimuth=float(payload.get("sun_azimuth", 0.0)),
                altitude=float(altitude) if altitude is not None else None,
            ),
            path_width_km=_optional_float(payload.get("path_width_km")),
            duration_s=_optional_float(payload.get("duration_s")),
            id=int(payload["id"]),
            t0=float(payload.get("t0", 0.0)),
            x_coefficients=payload["x_coefficients"],
            y_coefficients=payload["y_coefficients"],
            axis_declination_coefficients=payload["axis_declination_coefficients"],
            axis_hour_angle_coefficients=payload["axis_hour_angle_coefficients"],
            penumbral_radius_coefficients=payload["penumbral_radius_coefficients"],
            umbral_radius_coefficients=payload["umbral_radius_coefficients"],
            tan_penumbral_axis_angle=float(payload.get("tan_penumbral_axis_angle", 0.0)),
            tan_umbral_axis_angle=float(payload.get("tan_umbral_axis_angle", 0.0)),
        )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)


@dataclass(slots=True)
class ProvenanceEvent:
    """Record a deterministic step applied while building a catalog."""

    step: str
    parameters: dict[str, Any] = field(default_factory=dict)
    note: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict[str, Any]:
        return {
            "step": self.step,
            "parameters": self.parameters,
            "note": self.note,
            "timestamp": self.timestamp.isoformat(),
        }


__all__ = [
    "AXIS_COEFFICIENTS",
    "COEFFICIENT_GROUPS",
    "Eclipse",
    "EclipseKind",
    "EclipseType",
    "GeoCoordinate",
    "HybridSubtype",
    "POSITION_COEFFICIENTS",
    "ProvenanceEvent",
    "Ray3D",
]
