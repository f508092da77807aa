"""Tests for time scales and the inertial to geodetic conversion."""
from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from orbitedge.core.geodesy import as_utc, gmst, inertial_to_geodetic, julian_date, wrap_longitude
from orbitedge.utils.constants import EARTH_FLATTENING, EARTH_RADIUS_KM

POLAR_RADIUS_KM = EARTH_RADIUS_KM * (1.0 - EARTH_FLATTENING)


class TestTime:
    def test_naive_taken_as_utc(self) -> None:
        naive = datetime(2024, 2, 14, 12, 0)
        assert as_utc(naive) == datetime(2024, 2, 14, 12, 0, tzinfo=timezone.utc)

    def test_offset_converted(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        t = datetime(2024, 2, 14, 14, 0, tzinfo=plus_two)
        assert as_utc(t).hour == 12
        assert as_utc(t).tzinfo == timezone.utc

    def test_julian_date_j2000(self) -> None:
        jd, fr = julian_date(datetime(2000, 1, 1, 12, 0, tzinfo=timezone.utc))
        assert jd + fr == pytest.approx(2451545.0)

    def test_gmst_range(self) -> None:
        start = datetime(2024, 2, 14, tzinfo=timezone.utc)
        for hours in range(0, 48, 5):
            theta = gmst(start + timedelta(hours=hours))
            assert 0.0 <= theta < 2 * math.pi

    def test_gmst_advances_one_sidereal_day(self) -> None:
        t = datetime(2024, 2, 14, 6, 0, tzinfo=timezone.utc)
        sidereal_day = timedelta(seconds=86164.0905)
        delta = (gmst(t + sidereal_day) - gmst(t)) % (2 * math.pi)
        assert min(delta, 2 * math.pi - delta) < 1e-4


class TestWrapLongitude:
    @pytest.mark.parametrize("raw, expected", [
        (0.0, 0.0),
        (179.999, 179.999),
        (180.0, -180.0),
        (-180.0, -180.0),
        (540.0, -180.0),
        (-190.0, 170.0),
        (370.0, 10.0),
    ])
    def test_scalar(self, raw: float, expected: float) -> None:
        assert wrap_longitude(raw) == pytest.approx(expected)

    def test_tiny_negative_stays_in_range(self) -> None:
        wrapped = wrap_longitude(-1e-15)
        assert -180.0 <= wrapped < 180.0

    def test_array(self) -> None:
        wrapped = wrap_longitude(np.array([-720.0, -181.0, 0.0, 181.0, 720.0]))
        assert np.all(wrapped >= -180.0)
        assert np.all(wrapped < 180.0)
        assert wrapped[1] == pytest.approx(179.0)
        assert wrapped[3] == pytest.approx(-179.0)


class TestInertialToGeodetic:
    def test_equator_surface(self) -> None:
        lat, lon, alt = inertial_to_geodetic([EARTH_RADIUS_KM, 0.0, 0.0], 0.0)
        assert lat[0] == pytest.approx(0.0, abs=1e-9)
        assert lon[0] == pytest.approx(0.0, abs=1e-9)
        assert alt[0] == pytest.approx(0.0, abs=1e-6)

    def test_pole(self) -> None:
        lat, _, alt = inertial_to_geodetic([0.0, 0.0, POLAR_RADIUS_KM + 100.0], 0.0)
        assert lat[0] == pytest.approx(90.0)
        assert alt[0] == pytest.approx(100.0, abs=1e-6)

    def test_earth_rotation_shifts_longitude(self) -> None:
        _, lon, _ = inertial_to_geodetic([EARTH_RADIUS_KM + 400.0, 0.0, 0.0], math.radians(90.0))
        assert lon[0] == pytest.approx(-90.0)

    def test_vectorized(self) -> None:
        positions = np.array([
            [EARTH_RADIUS_KM + 500.0, 0.0, 0.0],
            [0.0, -(EARTH_RADIUS_KM + 500.0), 0.0],
        ])
        lat, lon, alt = inertial_to_geodetic(positions, np.zeros(2))
        assert lat.shape == lon.shape == alt.shape == (2,)
        np.testing.assert_allclose(alt, [500.0, 500.0], atol=1e-6)
        assert lon[1] == pytest.approx(-90.0)

    def test_geodetic_latitude_exceeds_geocentric(self) -> None:
        r = EARTH_RADIUS_KM + 400.0
        geocentric = math.radians(45.0)
        position = [r * math.cos(geocentric), 0.0, r * math.sin(geocentric)]
        lat, _, _ = inertial_to_geodetic(position, 0.0)
        assert 45.0 < lat[0] < 45.3
