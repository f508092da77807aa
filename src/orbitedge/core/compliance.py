"""Debris-mitigation compliance evaluation (ISO 24113 style).

Four requirements are scored 0-100 against an object's orbit. Two of
them depend on design facts a TLE cannot carry (explosion prevention,
collision-avoidance capability), and disposal may depend on active
deorbit capability. Those facts are passed in as :class:`DesignFlags`;
a flag left as ``None`` yields a ``cannot-evaluate`` record for the
requirement that needs it instead of a guessed score.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Sequence

import numpy as np
from scipy.integrate import quad

from orbitedge.core.catalog import TrackedObject
from orbitedge.core.propagation import StateVector
from orbitedge.utils.constants import (
    BSTAR_REFERENCE_DENSITY,
    COMPLIANCE_REVIEW_DAYS,
    COMPLIANT_SCORE,
    DISPOSAL_LIFETIME_YEARS,
    DRAG_COEFFICIENT,
    EARTH_MU_KM3_S2,
    EARTH_RADIUS_KM,
    GEO_ALT_KM,
    LEO_MAX_ALT_KM,
    REENTRY_ALTITUDE_KM,
    WARNING_SCORE,
)

logger = logging.getLogger(__name__)

STANDARD = "ISO 24113"

SECONDS_PER_YEAR = 365.25 * 86400.0

# Exponential atmosphere, Vallado Table 8-4: base altitude (km),
# base density (kg/m³), scale height (km)
_BASE_ALT_KM = np.array([
    0.0, 25, 30, 40, 50, 60, 70, 80, 90, 100, 110, 120, 130, 140, 150, 180,
    200, 250, 300, 350, 400, 450, 500, 600, 700, 800, 900, 1000,
])
_BASE_DENSITY = np.array([
    1.225, 3.899e-2, 1.774e-2, 3.972e-3, 1.057e-3, 3.206e-4, 8.770e-5, 1.905e-5,
    3.396e-6, 5.297e-7, 9.661e-8, 2.438e-8, 8.484e-9, 3.845e-9, 2.070e-9, 5.464e-10,
    2.789e-10, 7.248e-11, 2.418e-11, 9.518e-12, 3.725e-12, 1.585e-12, 6.967e-13,
    1.454e-13, 3.614e-14, 1.170e-14, 5.245e-15, 3.019e-15,
])
_SCALE_HEIGHT_KM = np.array([
    7.249, 6.349, 6.682, 7.554, 8.382, 7.714, 6.549, 5.799, 5.382, 5.877, 7.263,
    9.473, 12.636, 16.149, 22.523, 29.740, 37.105, 45.546, 53.628, 53.298, 58.515,
    60.828, 63.822, 71.835, 88.667, 124.64, 181.05, 268.00,
])


class ComplianceStatus(Enum):
    COMPLIANT = "compliant"
    WARNING = "warning"
    NON_COMPLIANT = "non-compliant"
    CANNOT_EVALUATE = "cannot-evaluate"


class MetadataMissingError(ValueError):
    """A requirement needs a design flag that was not supplied."""


@dataclass(frozen=True)
class DesignFlags:
    """Design facts that orbital elements cannot provide.

    Every flag must be given explicitly; ``None`` means "unknown" and the
    requirements that depend on it are reported as not evaluable.

    Attributes:
        explosion_prevention: Passivation / break-up prevention measures are in place.
        active_deorbit: The object can actively deorbit at end of mission.
        maneuverable: The object can perform collision-avoidance maneuvers.
        area_to_mass_m2_kg: Cross-section area over mass. When ``None`` the
            ballistic coefficient is derived from the TLE B* term.
    """

    explosion_prevention: bool | None
    active_deorbit: bool | None
    maneuverable: bool | None
    area_to_mass_m2_kg: float | None = None


@dataclass(frozen=True)
class Requirement:
    requirement_id: str
    title: str
    description: str
    weight: float


@dataclass(frozen=True)
class ComplianceRecord:
    """One evaluation of one requirement.

    Attributes:
        requirement_id: Requirement identifier, e.g. ``ISO-24113-4.3``.
        status: Compliance status.
        score: Score in [0, 100], or None when the requirement could not be evaluated.
        rationale: Human-readable explanation.
        weight: Relative weight of the requirement in aggregate scores.
        checked_at: Time of the state the evaluation used.
        next_review: When the evaluation should be repeated.
        standard: Standard the requirement belongs to.
    """

    requirement_id: str
    status: ComplianceStatus
    score: float | None
    rationale: str
    weight: float
    checked_at: datetime
    next_review: datetime
    standard: str = STANDARD

    def to_dict(self) -> dict:
        return {
            "standard": self.standard,
            "requirement_id": self.requirement_id,
            "status": self.status.value,
            "score": self.score,
            "rationale": self.rationale,
            "weight": self.weight,
            "checked_at": self.checked_at.isoformat(),
            "next_review": self.next_review.isoformat(),
        }


REQUIREMENTS: tuple[Requirement, ...] = (
    Requirement(
        "ISO-24113-4.1",
        "Limitation of debris released during normal operations",
        "Minimize debris release during mission operations",
        20.0,
    ),
    Requirement(
        "ISO-24113-4.2",
        "Minimization of break-up potential during operational phases",
        "Reduce probability of accidental explosions",
        25.0,
    ),
    Requirement(
        "ISO-24113-4.3",
        "Post-mission disposal",
        "Ensure proper disposal within 25 years",
        30.0,
    ),
    Requirement(
        "ISO-24113-4.4",
        "Prevention of on-orbit collisions",
        "Maintain collision avoidance capabilities",
        25.0,
    ),
)


def status_for_score(score: float) -> ComplianceStatus:
    """Status from a score: >= 80 compliant, >= 60 warning, else non-compliant."""
    if score >= COMPLIANT_SCORE:
        return ComplianceStatus.COMPLIANT
    elif score >= WARNING_SCORE:
        return ComplianceStatus.WARNING
    return ComplianceStatus.NON_COMPLIANT


def atmospheric_density(altitude_km: float) -> float:
    """Exponential-model atmospheric density in kg/m³."""
    h = max(altitude_km, 0.0)
    idx = int(np.searchsorted(_BASE_ALT_KM, h, side="right")) - 1
    return float(_BASE_DENSITY[idx] * math.exp((_BASE_ALT_KM[idx] - h) / _SCALE_HEIGHT_KM[idx]))


def _decay_rate_km_per_year(altitude_km: float, ballistic_m2_kg: float) -> float:
    """Radial decay rate induced by drag at ``altitude_km`` for a circular orbit."""
    r_m = (EARTH_RADIUS_KM + altitude_km) * 1000.0
    mu_m3_s2 = EARTH_MU_KM3_S2 * 1e9
    dr_m_s = atmospheric_density(altitude_km) * ballistic_m2_kg * math.sqrt(mu_m3_s2 * r_m)
    return dr_m_s * SECONDS_PER_YEAR / 1000.0


def ballistic_from_bstar(bstar: float) -> float:
    """Cd·A/m in m²/kg implied by a B* drag term."""
    return 2.0 * bstar / BSTAR_REFERENCE_DENSITY


def estimate_decay_years(perigee_altitude_km: float, ballistic_m2_kg: float) -> float:
    """Natural orbital lifetime from perigee altitude down to re-entry.

    Integrates dt = dh / (dh/dt) with the exponential atmosphere. Perigees
    above LEO return ``inf``.

    Args:
        perigee_altitude_km: Current perigee altitude.
        ballistic_m2_kg: Ballistic coefficient Cd·A/m.

    Raises:
        ValueError: If the ballistic coefficient is not positive.
    """
    if ballistic_m2_kg <= 0:
        raise ValueError(f"Ballistic coefficient must be positive, got {ballistic_m2_kg}")
    if perigee_altitude_km <= REENTRY_ALTITUDE_KM:
        return 0.0
    if perigee_altitude_km > LEO_MAX_ALT_KM:
        return math.inf

    breaks = [h for h in _BASE_ALT_KM if REENTRY_ALTITUDE_KM < h < perigee_altitude_km]
    years, _ = quad(
        lambda h: 1.0 / _decay_rate_km_per_year(h, ballistic_m2_kg),
        REENTRY_ALTITUDE_KM,
        perigee_altitude_km,
        points=breaks or None,
        limit=200,
    )
    return years


def _debris_release(obj: TrackedObject, state: StateVector, design: DesignFlags) -> tuple[float, str]:
    alt = state.altitude_km
    if alt < 600.0:
        return 90.0, f"Operating altitude {alt:.0f} km: released debris decays naturally within years"
    if alt < LEO_MAX_ALT_KM:
        return 70.0, f"Operating altitude {alt:.0f} km: released debris would persist in crowded LEO shells"
    if abs(alt - GEO_ALT_KM) <= 200.0:
        return 80.0, f"Operating altitude {alt:.0f} km lies in the GEO protected region"
    return 90.0, f"Operating altitude {alt:.0f} km is outside the LEO and GEO protected regions"


def _break_up(obj: TrackedObject, state: StateVector, design: DesignFlags) -> tuple[float, str]:
    if design.explosion_prevention is None:
        raise MetadataMissingError("explosion_prevention flag is required for break-up assessment")
    if design.explosion_prevention:
        return 90.0, "Design includes explosion prevention and passivation measures"
    return 40.0, "No explosion prevention or passivation measures declared"


def _disposal(obj: TrackedObject, state: StateVector, design: DesignFlags) -> tuple[float, str]:
    if design.area_to_mass_m2_kg is not None:
        ballistic = DRAG_COEFFICIENT * design.area_to_mass_m2_kg
    elif obj.elements.bstar > 0:
        ballistic = ballistic_from_bstar(obj.elements.bstar)
    else:
        raise MetadataMissingError("area_to_mass_m2_kg is required when B* is not positive")

    perigee = obj.elements.perigee_altitude_km
    years = estimate_decay_years(perigee, ballistic)
    lifetime = "over 1000" if years > 1000 else f"{years:.1f}"

    if years <= DISPOSAL_LIFETIME_YEARS:
        score = 100.0 - 20.0 * years / DISPOSAL_LIFETIME_YEARS
        return score, f"Perigee {perigee:.0f} km allows natural decay in {lifetime} years"
    if design.active_deorbit is None:
        raise MetadataMissingError(
            f"active_deorbit flag is required: natural decay takes {lifetime} years"
        )
    if design.active_deorbit:
        return 85.0, f"Natural decay takes {lifetime} years; active deorbit capability covers the 25-year rule"
    score = max(WARNING_SCORE, COMPLIANT_SCORE - 1.0 - 10.0 * math.log10(years / DISPOSAL_LIFETIME_YEARS))
    return score, f"Natural decay takes {lifetime} years, beyond the 25-year rule, with no active deorbit capability"


def _collision_avoidance(obj: TrackedObject, state: StateVector, design: DesignFlags) -> tuple[float, str]:
    if design.maneuverable is None:
        raise MetadataMissingError("maneuverable flag is required for collision-avoidance assessment")
    if design.maneuverable:
        return 95.0, "Object has collision avoidance maneuver capability"
    return 50.0, "Object cannot maneuver to avoid collisions"


_EVALUATORS: dict[str, Callable[[TrackedObject, StateVector, DesignFlags], tuple[float, str]]] = {
    "ISO-24113-4.1": _debris_release,
    "ISO-24113-4.2": _break_up,
    "ISO-24113-4.3": _disposal,
    "ISO-24113-4.4": _collision_avoidance,
}


def evaluate(obj: TrackedObject, state: StateVector, design: DesignFlags) -> list[ComplianceRecord]:
    """Evaluate every requirement for one object.

    Args:
        obj: The tracked object.
        state: Its current propagated state.
        design: Caller-supplied design facts.

    Returns:
        One record per requirement, in requirement order.
    """
    checked_at = state.epoch
    next_review = checked_at + timedelta(days=COMPLIANCE_REVIEW_DAYS)
    records = []

    for requirement in REQUIREMENTS:
        try:
            score, rationale = _EVALUATORS[requirement.requirement_id](obj, state, design)
        except MetadataMissingError as exc:
            logger.warning("Cannot evaluate %s for NORAD %d: %s", requirement.requirement_id, obj.object_id, exc)
            records.append(ComplianceRecord(
                requirement_id=requirement.requirement_id,
                status=ComplianceStatus.CANNOT_EVALUATE,
                score=None,
                rationale=f"Cannot evaluate: {exc}",
                weight=requirement.weight,
                checked_at=checked_at,
                next_review=next_review,
            ))
            continue

        score = min(100.0, max(0.0, score))
        records.append(ComplianceRecord(
            requirement_id=requirement.requirement_id,
            status=status_for_score(score),
            score=round(score, 2),
            rationale=rationale,
            weight=requirement.weight,
            checked_at=checked_at,
            next_review=next_review,
        ))

    logger.debug("Compliance for NORAD %d: %s", obj.object_id,
                 ", ".join(f"{r.requirement_id}={r.status.value}" for r in records))
    return records


def compliance_score(records: Sequence[ComplianceRecord]) -> float | None:
    """Weighted mean score of the evaluable records, or None if there are none."""
    scored = [r for r in records if r.score is not None]
    total_weight = sum(r.weight for r in scored)
    if not scored or total_weight <= 0:
        return None
    return sum(r.score * r.weight for r in scored) / total_weight
