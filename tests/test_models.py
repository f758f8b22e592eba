from __future__ import annotations

import dataclasses

import numpy as np
import pytest

from server.ingest.eclipse_catalog import decode_record, tokenize
from server.models import Eclipse, EclipseKind, EclipseType, HybridSubtype, Ray3D


def _eclipse(record: str) -> Eclipse:
    return decode_record(tokenize(record), record=record)


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("T", EclipseType.total()),
        ("Tm", EclipseType.total()),
        ("A-", EclipseType.annular()),
        ("Pe", EclipseType.partial()),
        ("H", EclipseType.hybrid_of(HybridSubtype.START_END_ANNULAR)),
        ("H2", EclipseType.hybrid_of(HybridSubtype.START_TOTAL)),
        ("H3", EclipseType.hybrid_of(HybridSubtype.END_TOTAL)),
    ],
)
def test_type_codes(code: str, expected: EclipseType) -> None:
    assert EclipseType.from_code(code) == expected


def test_unknown_type_code_is_rejected() -> None:
    with pytest.raises(ValueError):
        EclipseType.from_code("Q")
    with pytest.raises(ValueError):
        EclipseType.from_code("   ")


def test_type_code_round_trip() -> None:
    for code in ("T", "A", "P", "H", "H2", "H3"):
        assert EclipseType.from_code(code).code == code


def test_hybrid_requires_subtype() -> None:
    with pytest.raises(ValueError):
        EclipseType(EclipseKind.HYBRID)
    with pytest.raises(ValueError):
        EclipseType(EclipseKind.TOTAL, HybridSubtype.END_TOTAL)


def test_central_path_by_kind() -> None:
    assert not EclipseType.partial().has_central_path
    assert EclipseType.total().has_central_path
    assert EclipseType.annular().has_central_path
    assert EclipseType.hybrid_of(HybridSubtype.START_TOTAL).has_central_path


def test_partial_eclipse_rejects_central_fields(row) -> None:
    eclipse = _eclipse(row({7: '"P"'}))
    with pytest.raises(ValueError):
        dataclasses.replace(eclipse, sun_position=Ray3D(azimuth=10.0, altitude=5.0))


def test_central_eclipse_requires_central_fields(row) -> None:
    eclipse = _eclipse(row())
    with pytest.raises(ValueError):
        dataclasses.replace(eclipse, path_width_km=None)


def test_coefficient_lengths_are_enforced(row) -> None:
    eclipse = _eclipse(row())
    with pytest.raises(ValueError):
        dataclasses.replace(eclipse, x_coefficients=[1.0, 2.0, 3.0])
    with pytest.raises(ValueError):
        dataclasses.replace(eclipse, umbral_radius_coefficients=[1.0, 2.0, 3.0, 4.0])


def test_eclipse_is_immutable(row) -> None:
    eclipse = _eclipse(row())
    with pytest.raises(dataclasses.FrozenInstanceError):
        eclipse.id = 1  # type: ignore[misc]
    with pytest.raises(ValueError):
        eclipse.x_coefficients[0] = 1.0


def test_to_dict_and_back(row) -> None:
    eclipse = _eclipse(row({7: '"H3"'}))
    restored = Eclipse.from_dict(eclipse.to_dict())

    assert restored.to_dict() == eclipse.to_dict()
    assert restored.type == EclipseType.hybrid_of(HybridSubtype.END_TOTAL)
    assert restored.time == eclipse.time
    np.testing.assert_array_equal(restored.y_coefficients, eclipse.y_coefficients)
