"""Tests for decoding single catalog rows."""

from __future__ import annotations

from datetime import UTC, datetime

import numpy as np
import pytest

from server.errors import MalformedRecordError, RecordDecodeError
from server.ingest.eclipse_catalog import DecodeDiagnostics, decode_record, tokenize
from server.models import EclipseKind, HybridSubtype


def _decode(record: str, diagnostics: DecodeDiagnostics | None = None):
    return decode_record(tokenize(record), record=record, diagnostics=diagnostics)


def test_decodes_total_eclipse(row) -> None:
    eclipse = _decode(row())

    assert eclipse.id == 9560
    assert eclipse.time == datetime(2024, 4, 8, 18, 19, 43, tzinfo=UTC)
    assert eclipse.luna == 303
    assert eclipse.saros == 139
    assert eclipse.type.kind is EclipseKind.TOTAL
    assert eclipse.gamma == pytest.approx(0.3431)
    assert eclipse.magnitude == pytest.approx(1.0566)
    assert eclipse.location.latitude == pytest.approx(25.29)
    assert eclipse.location.longitude == pytest.approx(-104.14)
    assert eclipse.sun_position.azimuth == pytest.approx(147.0)
    assert eclipse.sun_position.altitude == pytest.approx(70.0)
    assert eclipse.path_width_km == pytest.approx(198.0)
    assert eclipse.duration_s == pytest.approx(268.0)
    assert eclipse.t0 == pytest.approx(18.0)
    np.testing.assert_allclose(
        eclipse.x_coefficients, [-0.318244, 0.5117116, 0.0000326, -0.0000084]
    )
    np.testing.assert_allclose(eclipse.umbral_radius_coefficients, [-0.010272, 0.0000615, -0.0000127])
    assert eclipse.tan_penumbral_axis_angle == pytest.approx(0.0046683)
    assert eclipse.tan_umbral_axis_angle == pytest.approx(0.0046450)


def test_type_code_with_qualifier_decodes_to_total(row) -> None:
    eclipse = _decode(row({7: '"Tm"'}))
    assert eclipse.type.kind is EclipseKind.TOTAL
    assert eclipse.type.hybrid is None
    assert eclipse.sun_position.altitude is not None
    assert eclipse.path_width_km is not None
    assert eclipse.duration_s is not None


@pytest.mark.parametrize(
    ("code", "subtype"),
    [
        ("H2", HybridSubtype.START_TOTAL),
        ("H3", HybridSubtype.END_TOTAL),
        ("Hm", HybridSubtype.START_END_ANNULAR),
        ("H", HybridSubtype.START_END_ANNULAR),
    ],
)
def test_hybrid_subtypes(row, code: str, subtype: HybridSubtype) -> None:
    eclipse = _decode(row({7: f'"{code}"'}))
    assert eclipse.type.kind is EclipseKind.HYBRID
    assert eclipse.type.hybrid is subtype


def test_partial_ignores_central_fields(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row({7: '"Pb"', 14: "abc", 16: "--", 18: "n/a"}), diagnostics)

    assert eclipse.type.kind is EclipseKind.PARTIAL
    assert eclipse.sun_position.altitude is None
    assert eclipse.path_width_km is None
    assert eclipse.duration_s is None
    assert eclipse.sun_position.azimuth == pytest.approx(147.0)
    assert diagnostics.fallback_total == 0


def test_central_fields_fall_back_to_zero_for_non_partial(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row({7: '"A"', 14: "abc", 16: "", 18: "-"}), diagnostics)

    assert eclipse.sun_position.altitude == 0.0
    assert eclipse.path_width_km == 0.0
    assert eclipse.duration_s == 0.0
    assert diagnostics.fallbacks["sun_altitude"] == 1
    assert diagnostics.fallbacks["path_width"] == 1
    assert diagnostics.fallbacks["duration"] == 1


def test_canon_plate_number_is_derived_from_id(row) -> None:
    eclipse = _decode(row({19: "4796"}))
    assert eclipse.canon_plate_number == 240


def test_unparseable_delta_t_leaves_time_uncorrected(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row({4: "unknown"}), diagnostics)
    assert eclipse.time == datetime(2024, 4, 8, 18, 18, 29, tzinfo=UTC)
    assert diagnostics.fallbacks["delta_t"] == 1


def test_overflowing_delta_t_is_counted_as_fallback(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row({4: "1e15"}), diagnostics)
    assert eclipse.time == datetime(2024, 4, 8, 18, 18, 29, tzinfo=UTC)
    assert diagnostics.fallbacks["delta_t"] == 1


def test_fractional_delta_t_is_added_in_seconds(row) -> None:
    eclipse = _decode(row({4: "-1.5"}))
    assert eclipse.time == datetime(2024, 4, 8, 18, 18, 27, 500000, tzinfo=UTC)


def test_descriptive_fields_fall_back(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row({5: "x", 6: "", 8: "nan", 9: "?", 15: "inf"}), diagnostics)
    assert eclipse.luna == 0
    assert eclipse.saros == 0
    assert eclipse.gamma == 0.0
    assert eclipse.magnitude == 0.0
    assert eclipse.sun_position.azimuth == 0.0
    assert diagnostics.fallback_total == 5


@pytest.mark.parametrize(
    ("overrides", "field_index"),
    [
        ({0: "year"}, 0),
        ({0: "0"}, 0),
        ({1: "13"}, 1),
        ({2: "31"}, 2),
        ({3: '"18:18"'}, 3),
        ({7: '"X"'}, 7),
        ({7: '""'}, 7),
        ({12: '"25.3N"'}, 12),
        ({13: ""}, 13),
        ({19: "cat"}, 19),
    ],
)
def test_structural_fields_reject_the_record(row, overrides: dict[int, str], field_index: int) -> None:
    record = row(overrides)
    with pytest.raises(RecordDecodeError) as excinfo:
        _decode(record)
    assert excinfo.value.field_index == field_index
    assert excinfo.value.record == record
    assert excinfo.value.reason


def test_short_rows_are_malformed(row) -> None:
    record = row(length=39)
    with pytest.raises(MalformedRecordError) as excinfo:
        _decode(record)
    assert excinfo.value.field_index == 39


def test_missing_trailing_coefficients_are_zero_filled(row) -> None:
    diagnostics = DecodeDiagnostics()
    eclipse = _decode(row(length=42), diagnostics)

    assert eclipse.umbral_radius_coefficients.shape == (3,)
    np.testing.assert_allclose(eclipse.umbral_radius_coefficients, [-0.010272, 0.0000615, 0.0])
    assert eclipse.tan_penumbral_axis_angle == 0.0
    assert eclipse.tan_umbral_axis_angle == 0.0
    assert diagnostics.fallbacks["l2[2]"] == 1
    assert diagnostics.fallbacks["tan_f1"] == 1
    assert diagnostics.fallbacks["tan_f2"] == 1


def test_coefficient_arrays_have_fixed_lengths(row) -> None:
    eclipse = _decode(row({7: '"P"'}, length=40))
    assert eclipse.x_coefficients.shape == (4,)
    assert eclipse.y_coefficients.shape == (4,)
    for group in (
        eclipse.axis_declination_coefficients,
        eclipse.axis_hour_angle_coefficients,
        eclipse.penumbral_radius_coefficients,
        eclipse.umbral_radius_coefficients,
    ):
        assert group.shape == (3,)
        assert group.dtype == np.float64
