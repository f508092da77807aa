from __future__ import annotations

"""Physical constants and default thresholds for orbital mechanics.

Distances in km, times in seconds unless otherwise noted.
"""

# --- Earth parameters (WGS-72, used by the propagator) ---
WGS72_RADIUS_KM: float = 6378.135
"""Equatorial radius of Earth in km (WGS-72)."""

WGS72_MU_KM3_S2: float = 398600.8
"""Earth gravitational parameter (GM) in km³/s² (WGS-72)."""

WGS72_J2: float = 0.001082616
"""Earth J2 oblateness coefficient (WGS-72)."""

# --- Earth parameters (WGS-84, used for geodetic conversion) ---
EARTH_RADIUS_KM: float = 6378.137
"""Equatorial radius of Earth in km."""

EARTH_FLATTENING: float = 1.0 / 298.257223563
"""Flattening of the WGS-84 ellipsoid."""

EARTH_MU_KM3_S2: float = 398600.4418
"""Earth gravitational parameter (GM) in km³/s²."""

EARTH_ROTATION_RAD_S: float = 7.2921150e-5
"""Earth rotation rate in rad/s."""

MINUTES_PER_DAY: float = 1440.0

# --- Propagation ---
DEEP_SPACE_PERIOD_MIN: float = 225.0
"""Orbital period at or above which the deep-space branch applies."""

KEPLER_TOLERANCE_RAD: float = 1e-8
"""Convergence tolerance for Kepler's equation."""

KEPLER_MAX_ITERATIONS: int = 10
"""Newton-Raphson iteration cap for Kepler's equation."""

MOON_NODE_RATE_DEG_DAY: float = -0.00338
"""Lunar secular RAAN rate coefficient (times cos i / n[rev/day])."""

SUN_NODE_RATE_DEG_DAY: float = -0.00154
"""Solar secular RAAN rate coefficient (times cos i / n[rev/day])."""

MOON_PERIGEE_RATE_DEG_DAY: float = 0.00169
"""Lunar secular perigee rate coefficient (times (4 - 5 sin² i) / n)."""

SUN_PERIGEE_RATE_DEG_DAY: float = 0.00077
"""Solar secular perigee rate coefficient (times (4 - 5 sin² i) / n)."""

# --- Default screening settings ---
DEFAULT_SCREENING_HORIZON_HOURS: float = 48.0
"""Default forward window for closest-approach search in hours."""

DEFAULT_SCREENING_STEP_SECONDS: float = 60.0
"""Default sampling interval for closest-approach search in seconds."""

DEFAULT_MISS_DISTANCE_KM: float = 10.0
"""Default distance threshold for snapshot and prefilter screening in km."""

PROBABILITY_CUTOFF_RATIO: float = 10.0
"""Separation / combined radius ratio beyond which probability is zero."""

# --- Common hard-body radii (km) ---
HARD_BODY_RADIUS_DEBRIS_KM: float = 0.001
"""Hard-body radius for debris fragments in km."""

HARD_BODY_RADIUS_SATELLITE_KM: float = 0.005
"""Hard-body radius for typical satellites in km."""

HARD_BODY_RADIUS_ROCKET_BODY_KM: float = 0.02
"""Hard-body radius for upper stages and large structures in km."""

# --- Risk level thresholds (probability, strictly greater than) ---
CRITICAL_PROBABILITY: float = 0.1
HIGH_PROBABILITY: float = 0.01
MEDIUM_PROBABILITY: float = 0.001

# --- Compliance ---
COMPLIANT_SCORE: float = 80.0
"""Scores at or above this are compliant."""

WARNING_SCORE: float = 60.0
"""Scores at or above this (and below COMPLIANT_SCORE) are warnings."""

DISPOSAL_LIFETIME_YEARS: float = 25.0
"""Maximum post-mission orbital lifetime (25-year rule)."""

REENTRY_ALTITUDE_KM: float = 100.0
"""Altitude treated as re-entry for lifetime estimation."""

DRAG_COEFFICIENT: float = 2.2
"""Drag coefficient assumed when deriving area-to-mass from B*."""

BSTAR_REFERENCE_DENSITY: float = 0.15696615
"""Reference density in kg/(m²·Earth radius) relating B* to ballistic coefficient."""

COMPLIANCE_REVIEW_DAYS: int = 30
"""Interval until a compliance record should be reviewed again."""

# --- Orbit regime boundaries ---
LEO_MAX_ALT_KM: float = 2000.0
"""Maximum altitude for Low Earth Orbit in km."""

GEO_ALT_KM: float = 35786.0
"""Geostationary orbit altitude in km."""
