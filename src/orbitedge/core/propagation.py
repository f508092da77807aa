"""Orbital propagation.

Two models are available:

* ``PropagationModel.SECULAR`` (default): a simplified general
  perturbations model. Mean elements are recovered from the TLE mean
  motion, advanced with first-order J2 secular rates on RAAN, argument
  of perigee and mean anomaly, and decayed through the SGP4 ``C1`` drag
  term driven by B*. Deep-space orbits (period >= 225 min) also get
  lunar and solar secular rates. Kepler's equation is solved by
  Newton-Raphson. No short-period terms are applied.
* ``PropagationModel.SGP4``: the full SGP4/SDP4 implementation from the
  sgp4 library, built from the raw TLE lines.

Both are deterministic. Positions are in the TEME inertial frame.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from sgp4.api import SGP4_ERRORS

from orbitedge.core.geodesy import as_utc, gmst_many, inertial_to_geodetic, julian_date
from orbitedge.core.tle import TLE
from orbitedge.utils.constants import (
    DEEP_SPACE_PERIOD_MIN,
    EARTH_FLATTENING,
    EARTH_RADIUS_KM,
    KEPLER_MAX_ITERATIONS,
    KEPLER_TOLERANCE_RAD,
    MOON_NODE_RATE_DEG_DAY,
    MOON_PERIGEE_RATE_DEG_DAY,
    SUN_NODE_RATE_DEG_DAY,
    SUN_PERIGEE_RATE_DEG_DAY,
    WGS72_J2 as J2,
    WGS72_MU_KM3_S2 as MU,
    WGS72_RADIUS_KM as RE,
)

logger = logging.getLogger(__name__)

# sqrt(GM) in Earth radii^1.5 per minute
XKE = 60.0 / math.sqrt(RE ** 3 / MU)
TWO_PI = 2.0 * math.pi
POLAR_RADIUS_KM = EARTH_RADIUS_KM * (1.0 - EARTH_FLATTENING)

_OK = 0
_DECAYED = 1
_DIVERGED = 2

_SGP4_DECAYED_CODE = 6


class PropagationModel(Enum):
    """Propagation models."""

    SECULAR = "secular"
    SGP4 = "sgp4"


class PropagationError(ValueError):
    """Propagation of an element set failed."""

    def __init__(self, message: str, norad_id: int | None = None) -> None:
        super().__init__(message)
        self.norad_id = norad_id


class DecayedError(PropagationError):
    """The object has re-entered; its altitude would be negative."""


class NumericDivergenceError(PropagationError):
    """The propagation did not converge to a finite state."""


@dataclass(frozen=True, eq=False)
class StateVector:
    """Position and velocity in the TEME frame plus the geodetic sub-point.

    Attributes:
        epoch: Time of this state vector (UTC).
        position_km: [x, y, z] position in km.
        velocity_km_s: [vx, vy, vz] velocity in km/s.
        latitude_deg: Geodetic latitude (WGS-84).
        longitude_deg: Longitude wrapped to [-180, 180).
        altitude_km: Height above the WGS-84 ellipsoid.
        norad_id: Catalog number of the propagated object, if known.
    """

    epoch: datetime
    position_km: NDArray[np.float64]  # shape (3,)
    velocity_km_s: NDArray[np.float64]  # shape (3,)
    latitude_deg: float
    longitude_deg: float
    altitude_km: float
    norad_id: int | None = None

    @property
    def speed_km_s(self) -> float:
        return float(np.linalg.norm(self.velocity_km_s))

    def to_dict(self) -> dict:
        return {
            "norad_id": self.norad_id,
            "epoch": self.epoch.isoformat(),
            "position_km": [float(c) for c in self.position_km],
            "velocity_km_s": [float(c) for c in self.velocity_km_s],
            "latitude_deg": self.latitude_deg,
            "longitude_deg": self.longitude_deg,
            "altitude_km": self.altitude_km,
        }


@dataclass(frozen=True)
class _MeanElements:
    """Brouwer mean elements and secular rates, in Earth radii and minutes."""

    n0: float
    a0: float
    e0: float
    i0: float
    raan0: float
    argp0: float
    m0: float
    mdot: float
    argpdot: float
    nodedot: float
    cc1: float


def _drag_coefficient(a0: float, e0: float, n0: float, con41: float, bstar: float) -> float:
    """SGP4 ``C1`` secular drag coefficient (per minute)."""
    s = 78.0 / RE + 1.0
    qoms24 = ((120.0 - 78.0) / RE) ** 4
    perigee_km = (a0 * (1.0 - e0) - 1.0) * RE
    if perigee_km < 156.0:
        s_km = 20.0 if perigee_km < 98.0 else perigee_km - 78.0
        qoms24 = ((120.0 - s_km) / RE) ** 4
        s = s_km / RE + 1.0

    tsi = 1.0 / (a0 - s)
    eta = a0 * e0 * tsi
    etasq = eta * eta
    eeta = e0 * eta
    psisq = abs(1.0 - etasq)
    coef1 = qoms24 * tsi ** 4 / psisq ** 3.5
    cc2 = coef1 * n0 * (
        a0 * (1.0 + 1.5 * etasq + eeta * (4.0 + etasq))
        + 0.375 * J2 * tsi / psisq * con41 * (8.0 + 3.0 * etasq * (8.0 + etasq))
    )
    return bstar * cc2


def _mean_elements(tle: TLE) -> _MeanElements:
    """Recover mean elements from a TLE and compute secular rates.

    Raises:
        DecayedError: If the mean perigee is already inside the Earth.
    """
    no_kozai = tle.mean_motion_rev_per_day * TWO_PI / 1440.0
    e0 = tle.eccentricity
    i0 = math.radians(tle.inclination_deg)
    cosio = math.cos(i0)
    cosio2 = cosio * cosio
    omeosq = 1.0 - e0 * e0
    rteosq = math.sqrt(omeosq)
    con41 = 3.0 * cosio2 - 1.0

    # Kozai to Brouwer mean motion
    ak = (XKE / no_kozai) ** (2.0 / 3.0)
    d1 = 0.75 * J2 * con41 / (rteosq * omeosq)
    delta = d1 / (ak * ak)
    adel = ak * (1.0 - delta * delta - delta * (1.0 / 3.0 + 134.0 * delta * delta / 81.0))
    delta = d1 / (adel * adel)
    n0 = no_kozai / (1.0 + delta)
    a0 = (XKE / n0) ** (2.0 / 3.0)

    if a0 * (1.0 - e0) <= 1.0:
        raise DecayedError(f"NORAD {tle.norad_id} has its mean perigee below the surface", tle.norad_id)

    jp = J2 / (a0 * omeosq) ** 2
    mdot = n0 * (1.0 + 0.75 * jp * rteosq * con41)
    argpdot = 0.75 * jp * n0 * (5.0 * cosio2 - 1.0)
    nodedot = -1.5 * jp * n0 * cosio

    if TWO_PI / n0 >= DEEP_SPACE_PERIOD_MIN:
        sin2 = 1.0 - cosio2
        rev_per_day = tle.mean_motion_rev_per_day
        node_rate = (MOON_NODE_RATE_DEG_DAY + SUN_NODE_RATE_DEG_DAY) * cosio / rev_per_day
        argp_rate = (MOON_PERIGEE_RATE_DEG_DAY + SUN_PERIGEE_RATE_DEG_DAY) * (4.0 - 5.0 * sin2) / rev_per_day
        nodedot += math.radians(node_rate) / 1440.0
        argpdot += math.radians(argp_rate) / 1440.0

    return _MeanElements(
        n0=n0,
        a0=a0,
        e0=e0,
        i0=i0,
        raan0=math.radians(tle.raan_deg),
        argp0=math.radians(tle.arg_perigee_deg),
        m0=math.radians(tle.mean_anomaly_deg),
        mdot=mdot,
        argpdot=argpdot,
        nodedot=nodedot,
        cc1=_drag_coefficient(a0, e0, n0, con41, tle.bstar),
    )


def solve_kepler(
    mean_anomaly: NDArray[np.float64], eccentricity: float
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Solve M = E - e sin E for the eccentric anomaly by Newton-Raphson.

    Iteration stops when every correction is at most ``KEPLER_TOLERANCE_RAD``
    or after ``KEPLER_MAX_ITERATIONS`` steps.

    Returns:
        Tuple of (eccentric_anomaly, converged_mask).
    """
    m = np.asarray(mean_anomaly, dtype=np.float64)
    ecc_anomaly = m.copy() if eccentricity < 0.8 else np.full_like(m, math.pi)
    converged = np.zeros(m.shape, dtype=np.bool_)

    for _ in range(KEPLER_MAX_ITERATIONS):
        f = ecc_anomaly - eccentricity * np.sin(ecc_anomaly) - m
        fp = 1.0 - eccentricity * np.cos(ecc_anomaly)
        step = f / fp
        ecc_anomaly = ecc_anomaly - step
        converged = np.abs(step) <= KEPLER_TOLERANCE_RAD
        if converged.all():
            break

    return ecc_anomaly, converged & np.isfinite(ecc_anomaly)


def _minutes_since_epoch(tle: TLE, times: Sequence[datetime]) -> NDArray[np.float64]:
    return np.array([(as_utc(t) - tle.epoch).total_seconds() / 60.0 for t in times], dtype=np.float64)


def _propagate_secular(
    tle: TLE, times: Sequence[datetime]
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.int8]]:
    n = len(times)
    try:
        el = _mean_elements(tle)
    except DecayedError:
        return np.full((n, 3), np.nan), np.full((n, 3), np.nan), np.full(n, _DECAYED, dtype=np.int8)

    t = _minutes_since_epoch(tle, times)
    status = np.zeros(n, dtype=np.int8)

    tempa = 1.0 - el.cc1 * t
    mean_anomaly = np.mod(el.m0 + el.mdot * t + 1.5 * el.cc1 * el.n0 * t * t, TWO_PI)
    argp = el.argp0 + el.argpdot * t
    node = el.raan0 + el.nodedot * t

    # A non-positive drag factor means the drag model has run the orbit into the ground
    safe_tempa = np.where(tempa > 0.0, tempa, np.nan)
    am = el.a0 * safe_tempa ** 2
    decayed = ~(am * (1.0 - el.e0) > 1.0)
    status[decayed] = _DECAYED

    ecc_anomaly, converged = solve_kepler(mean_anomaly, el.e0)
    status[(~converged) & (status == _OK)] = _DIVERGED

    a_km = am * RE
    cos_e = np.cos(ecc_anomaly)
    sin_e = np.sin(ecc_anomaly)
    root = math.sqrt(1.0 - el.e0 * el.e0)
    radius = a_km * (1.0 - el.e0 * cos_e)
    xp = a_km * (cos_e - el.e0)
    yp = a_km * root * sin_e
    vfac = np.sqrt(MU * a_km) / radius
    vxp = -vfac * sin_e
    vyp = vfac * root * cos_e

    cos_o, sin_o = np.cos(node), np.sin(node)
    cos_w, sin_w = np.cos(argp), np.sin(argp)
    cos_i, sin_i = math.cos(el.i0), math.sin(el.i0)
    p_vec = np.stack([cos_o * cos_w - sin_o * sin_w * cos_i,
                      sin_o * cos_w + cos_o * sin_w * cos_i,
                      sin_w * sin_i], axis=-1)
    q_vec = np.stack([-cos_o * sin_w - sin_o * cos_w * cos_i,
                      -sin_o * sin_w + cos_o * cos_w * cos_i,
                      cos_w * sin_i], axis=-1)

    r = xp[:, None] * p_vec + yp[:, None] * q_vec
    v = vxp[:, None] * p_vec + vyp[:, None] * q_vec

    bad = status != _OK
    r[bad] = np.nan
    v[bad] = np.nan
    return r, v, status


def _propagate_sgp4(
    tle: TLE, times: Sequence[datetime]
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.int8], NDArray[np.int8]]:
    satrec = tle.to_satrec()
    dates = [julian_date(t) for t in times]
    jd = np.array([d[0] for d in dates], dtype=np.float64)
    fr = np.array([d[1] for d in dates], dtype=np.float64)
    codes, r, v = satrec.sgp4_array(jd, fr)

    codes = np.asarray(codes, dtype=np.int8)
    status = np.where(codes == 0, _OK, np.where(codes == _SGP4_DECAYED_CODE, _DECAYED, _DIVERGED)).astype(np.int8)
    r = np.array(r, dtype=np.float64)
    v = np.array(v, dtype=np.float64)
    r[status != _OK] = np.nan
    v[status != _OK] = np.nan
    return r, v, status, codes


def _propagate_arrays(
    tle: TLE, times: Sequence[datetime], model: PropagationModel
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.int8], NDArray[np.int8] | None]:
    if model is PropagationModel.SECULAR:
        r, v, status = _propagate_secular(tle, times)
        return r, v, status, None
    if model is PropagationModel.SGP4:
        return _propagate_sgp4(tle, times)
    raise ValueError(f"Unknown propagation model: {model}")


def _error_for(tle: TLE, at: datetime, status: int, code: int | None) -> PropagationError:
    if status == _DECAYED:
        return DecayedError(f"NORAD {tle.norad_id} has decayed by {at.isoformat()}", tle.norad_id)
    detail = SGP4_ERRORS.get(int(code), "unknown error") if code is not None else "Kepler iteration did not converge"
    return NumericDivergenceError(
        f"Propagation failed for NORAD {tle.norad_id} at {at.isoformat()}: {detail}", tle.norad_id
    )


def _read_only(a: NDArray[np.float64]) -> NDArray[np.float64]:
    a = a.copy()
    a.flags.writeable = False
    return a


def propagate_many(
    tle: TLE,
    times: Sequence[datetime],
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> list[StateVector]:
    """Propagate a single TLE to multiple times.

    Args:
        tle: A parsed TLE object.
        times: UTC datetimes to propagate to.
        model: Propagation model.

    Returns:
        One StateVector per requested time.

    Raises:
        DecayedError: If the object has re-entered at any requested time.
        NumericDivergenceError: If any propagation fails to converge.
    """
    if not times:
        return []
    times = [as_utc(t) for t in times]
    r, v, status, codes = _propagate_arrays(tle, times, model)

    ok = status == _OK
    lat = np.full(len(times), np.nan)
    lon = np.full(len(times), np.nan)
    alt = np.full(len(times), np.nan)
    if ok.any():
        theta = gmst_many([t for t, good in zip(times, ok) if good])
        lat[ok], lon[ok], alt[ok] = inertial_to_geodetic(r[ok], theta)
        status[ok & (alt < 0.0)] = _DECAYED

    failed = np.flatnonzero(status != _OK)
    if failed.size:
        idx = int(failed[0])
        error = _error_for(tle, times[idx], int(status[idx]), None if codes is None else int(codes[idx]))
        logger.warning("%s", error)
        raise error

    logger.debug("Propagated NORAD %d to %d times", tle.norad_id, len(times))
    return [
        StateVector(
            epoch=t,
            position_km=_read_only(r[k]),
            velocity_km_s=_read_only(v[k]),
            latitude_deg=float(lat[k]),
            longitude_deg=float(lon[k]),
            altitude_km=float(alt[k]),
            norad_id=tle.norad_id,
        )
        for k, t in enumerate(times)
    ]


def propagate(
    tle: TLE,
    at: datetime,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> StateVector:
    """Propagate a TLE to a single time.

    Raises:
        DecayedError: If the object has re-entered by ``at``.
        NumericDivergenceError: If Kepler's equation does not converge.
    """
    return propagate_many(tle, [at], model=model)[0]


def ephemeris(
    tle: TLE,
    start: datetime,
    hours: float = 24.0,
    step_minutes: float = 10.0,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> list[StateVector]:
    """Sample a predicted track from ``start`` every ``step_minutes``.

    The window is half-open: ``hours * 60 / step_minutes`` samples.
    """
    if step_minutes <= 0:
        raise ValueError("step_minutes must be positive")
    count = int(round(hours * 60.0 / step_minutes))
    times = [start + timedelta(minutes=k * step_minutes) for k in range(count)]
    return propagate_many(tle, times, model=model)


def propagate_positions(
    tle: TLE,
    times: Sequence[datetime],
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> tuple[NDArray[np.float64], NDArray[np.bool_]]:
    """Propagate one TLE over many times without geodetic conversion.

    Failed samples are flagged instead of raised, which suits screening.

    Returns:
        Tuple of:
            - states: Array of shape (n, 6) with [x,y,z,vx,vy,vz] in km, km/s
            - valid_mask: Boolean array of shape (n,), False where decayed or diverged
    """
    if not len(times):
        return np.empty((0, 6), dtype=np.float64), np.empty(0, dtype=np.bool_)
    r, v, status, _ = _propagate_arrays(tle, times, model)
    states = np.empty((len(times), 6), dtype=np.float64)
    states[:, 0:3] = r
    states[:, 3:6] = v
    valid = (status == _OK) & (np.linalg.norm(np.nan_to_num(r), axis=1) > POLAR_RADIUS_KM)
    return states, valid
