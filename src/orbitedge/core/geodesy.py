"""Time scales and Earth-frame conversions.

Julian dates and Greenwich Mean Sidereal Time come from the sgp4
library; the inertial to geodetic conversion uses the WGS-84 ellipsoid.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray
from sgp4.api import jday
from sgp4.propagation import gstime

from orbitedge.utils.constants import EARTH_FLATTENING, EARTH_RADIUS_KM

_E2 = EARTH_FLATTENING * (2.0 - EARTH_FLATTENING)
_LATITUDE_ITERATIONS = 10


def as_utc(t: datetime) -> datetime:
    """Return ``t`` as an aware UTC datetime (naive values are taken as UTC)."""
    if t.tzinfo is None:
        return t.replace(tzinfo=timezone.utc)
    return t.astimezone(timezone.utc)


def julian_date(t: datetime) -> tuple[float, float]:
    """Split Julian date ``(jd, fraction)`` for a datetime."""
    t = as_utc(t)
    return jday(t.year, t.month, t.day, t.hour, t.minute, t.second + t.microsecond / 1e6)


def gmst(t: datetime) -> float:
    """Greenwich Mean Sidereal Time in radians, in [0, 2π)."""
    jd, fr = julian_date(t)
    return gstime(jd + fr)


def gmst_many(times: Sequence[datetime]) -> NDArray[np.float64]:
    return np.array([gmst(t) for t in times], dtype=np.float64)


def wrap_longitude(lon_deg: ArrayLike) -> NDArray[np.float64] | float:
    """Wrap longitudes into [-180, 180)."""
    wrapped = np.mod(np.asarray(lon_deg, dtype=np.float64) + 180.0, 360.0) - 180.0
    # np.mod can round a tiny negative input up to exactly 360
    wrapped = np.where(wrapped >= 180.0, wrapped - 360.0, wrapped)
    if wrapped.ndim == 0:
        return float(wrapped)
    return wrapped


def inertial_to_geodetic(
    position_km: ArrayLike, theta_rad: ArrayLike
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
    """Convert inertial positions to geodetic latitude, longitude and altitude.

    Args:
        position_km: Position(s) of shape (3,) or (n, 3) in the inertial frame.
        theta_rad: Greenwich sidereal angle(s) of shape () or (n,).

    Returns:
        Tuple of arrays ``(lat_deg, lon_deg, alt_km)`` each of shape (n,).
        Longitude is wrapped to [-180, 180).
    """
    r = np.atleast_2d(np.asarray(position_km, dtype=np.float64))
    theta = np.broadcast_to(np.asarray(theta_rad, dtype=np.float64), (r.shape[0],))
    x, y, z = r[:, 0], r[:, 1], r[:, 2]

    lon = np.degrees(np.arctan2(y, x) - theta)
    p = np.hypot(x, y)

    lat = np.arctan2(z, p)
    for _ in range(_LATITUDE_ITERATIONS):
        sin_lat = np.sin(lat)
        c = 1.0 / np.sqrt(1.0 - _E2 * sin_lat ** 2)
        lat = np.arctan2(z + EARTH_RADIUS_KM * c * _E2 * sin_lat, p)

    sin_lat = np.sin(lat)
    alt = p * np.cos(lat) + z * sin_lat - EARTH_RADIUS_KM * np.sqrt(1.0 - _E2 * sin_lat ** 2)

    return np.degrees(lat), np.asarray(wrap_longitude(lon)), alt

