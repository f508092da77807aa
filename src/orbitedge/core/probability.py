"""Collision probability proxy and risk classification.

The probability here is a distance-based proxy: without tracking
covariance there is no miss-distance distribution to integrate, so the
estimate is a fixed Gaussian-shaped fall-off in units of the combined
hard-body radius. It is deterministic, monotonic in separation, and
labelled low-confidence on every event that carries it.
"""

from __future__ import annotations

import logging
import math
from enum import Enum

from orbitedge.utils.constants import (
    CRITICAL_PROBABILITY,
    HIGH_PROBABILITY,
    MEDIUM_PROBABILITY,
    PROBABILITY_CUTOFF_RATIO,
)

logger = logging.getLogger(__name__)

PROBABILITY_MODEL = "hard-body-distance-proxy"
"""Label attached to every probability produced by :func:`collision_probability`."""


class RiskLevel(Enum):
    """Categorical risk levels, ordered by severity."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self]


_RANKS = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2, RiskLevel.CRITICAL: 3}

_ACTIONS = {
    RiskLevel.CRITICAL: "immediate avoidance maneuver",
    RiskLevel.HIGH: "prepare maneuver, monitor closely",
    RiskLevel.MEDIUM: "enhanced monitoring",
    RiskLevel.LOW: "continue normal monitoring",
}


def collision_probability(
    separation_km: float,
    combined_radius_km: float,
    cutoff_ratio: float = PROBABILITY_CUTOFF_RATIO,
) -> float:
    """Distance-based collision probability proxy.

    ``P = exp(-0.5 * (d / R)^2)`` for ``d <= cutoff_ratio * R``, else 0, where
    ``d`` is the separation and ``R`` the combined hard-body radius. Never
    increases as separation grows.

    Args:
        separation_km: Minimum separation between the two objects.
        combined_radius_km: Sum of the two hard-body radii.
        cutoff_ratio: Separation / radius ratio beyond which P is 0.

    Raises:
        ValueError: If the combined radius is not positive or the separation
            is negative.
    """
    if combined_radius_km <= 0:
        raise ValueError(f"Combined hard-body radius must be positive, got {combined_radius_km}")
    if separation_km < 0:
        raise ValueError(f"Separation must be non-negative, got {separation_km}")

    ratio = separation_km / combined_radius_km
    if ratio > cutoff_ratio:
        return 0.0
    return min(1.0, max(0.0, math.exp(-0.5 * ratio * ratio)))


def risk_level(probability: float) -> RiskLevel:
    """Classify a probability. Each threshold value belongs to the higher level."""
    if probability >= CRITICAL_PROBABILITY:
        return RiskLevel.CRITICAL
    elif probability >= HIGH_PROBABILITY:
        return RiskLevel.HIGH
    elif probability >= MEDIUM_PROBABILITY:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def recommended_action(level: RiskLevel) -> str:
    return _ACTIONS[level]
