from __future__ import annotations

import sys
from collections.abc import Callable
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

SAMPLE_CATALOG = ROOT / "data" / "examples" / "filtered_eclipses.csv"

HEADER = (
    "year,month,day,td_ge,dt,luna_num,saros_num,ecl_type,gamma,ecl_mag,lat_ge,lng_ge,"
    "lat_dd_ge,lng_dd_ge,sun_alt,sun_azm,path_width,central_duration,duration_secs,cat_no,"
    "canon_plate,julian_date,t0,x0,x1,x2,x3,y0,y1,y2,y3,d0,d1,d2,mu0,mu1,mu2,"
    "l10,l11,l12,l20,l21,l22,tan_f1,tan_f2"
)

# 2024 April 08 total eclipse.
BASE_TOKENS = (
    "2024", "4", "8", '"18:18:29"', "74", "303", "139", '"T"', "0.3431", "1.0566",
    '"25.3N"', '"104.1W"', "25.29", "-104.14", "70", "147", "198", '"04m28s"', "268", "9560",
    "478", "2460409.263524", "18.0",
    "-0.318244", "0.5117116", "0.0000326", "-0.0000084",
    "0.219764", "0.2709589", "-0.0000595", "-0.0000047",
    "7.58620", "0.014844", "-0.000002",
    "89.59122", "15.004080", "0.000000",
    "0.535814", "0.0000618", "-0.0000128",
    "-0.010272", "0.0000615", "-0.0000127",
    "0.0046683", "0.0046450",
)


def make_row(overrides: dict[int, str] | None = None, *, length: int | None = None) -> str:
    tokens = list(BASE_TOKENS)
    for index, value in (overrides or {}).items():
        tokens[index] = value
    if length is not None:
        tokens = tokens[:length]
    return ",".join(tokens)


@pytest.fixture
def row() -> Callable[..., str]:
    return make_row


@pytest.fixture
def catalog_text() -> Callable[..., str]:
    def _build(*rows: str) -> str:
        return "\n".join([HEADER, *rows]) + "\n"

    return _build


@pytest.fixture
def sample_catalog_path() -> Path:
    return SAMPLE_CATALOG
