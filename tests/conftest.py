"""Shared reference element sets for the test suite."""

from __future__ import annotations

import pytest

from orbitedge.core.catalog import TrackedObject
from orbitedge.core.tle import TLE

ISS_NAME = "ISS (ZARYA)"
ISS_LINE1 = "1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997"
ISS_LINE2 = "2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592"

CSS_LINE1 = "1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993"
CSS_LINE2 = "2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157015"

HST_LINE1 = "1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9990"
HST_LINE2 = "2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912"

GEO_LINE1 = "1 36516U 10012A   24045.39583333  .00000112  00000-0  00000+0 0  9990"
GEO_LINE2 = "2 36516   0.0254 268.0254 0000567 142.5432 240.3076  1.00271953 50780"

# Very low, high-drag object that re-enters within a few days of epoch
DECAYER_LINE1 = "1 99001U 24001A   24045.50000000  .00500000  00000-0  10000-1 0  9993"
DECAYER_LINE2 = "2 99001  51.6000 100.0000 0005000  90.0000 270.0000 16.20000000000017"

NOAA18_LINE1 = "1 28654U 05018A   24045.52083333  .00000149  00000-0  10834-3 0  9994"
NOAA18_LINE2 = "2 28654  98.9710 100.7890 0014048 313.6230  46.3750 14.12905012970120"

EXTRA_PAIRS = [
    ("1 43013U 17073A   24045.50000000  .00000020  00000-0  25000-4 0  9992",
     "2 43013  98.7000  80.0000 0001000  90.0000 270.0000 14.19500000320009"),
    ("1 39084U 13008A   24045.50000000  .00000300  00000-0  70000-4 0  9990",
     "2 39084  98.2000 120.0000 0001200 100.0000 260.0000 14.57100000580001"),
    ("1 44713U 19074A   24045.50000000  .00002000  00000-0  13000-3 0  9999",
     "2 44713  53.0500 150.0000 0001400  85.0000 275.0000 15.06400000230003"),
]


@pytest.fixture
def iss_tle() -> TLE:
    return TLE.from_lines(ISS_LINE1, ISS_LINE2, name=ISS_NAME)


@pytest.fixture
def css_tle() -> TLE:
    return TLE.from_lines(CSS_LINE1, CSS_LINE2, name="CSS (TIANHE)")


@pytest.fixture
def hst_tle() -> TLE:
    return TLE.from_lines(HST_LINE1, HST_LINE2, name="HST")


@pytest.fixture
def geo_tle() -> TLE:
    return TLE.from_lines(GEO_LINE1, GEO_LINE2, name="GEO SAT")


@pytest.fixture
def decayer_tle() -> TLE:
    return TLE.from_lines(DECAYER_LINE1, DECAYER_LINE2, name="DECAYER")


@pytest.fixture
def iss_object(iss_tle: TLE) -> TrackedObject:
    return TrackedObject.from_tle(iss_tle)


@pytest.fixture
def css_object(css_tle: TLE) -> TrackedObject:
    return TrackedObject.from_tle(css_tle)
