"""Overall risk assessment for a tracked object.

Combines conjunction events and compliance records into one score
(0-100, higher is safer), an overall risk level and an ordered list of
recommendations.
"""
from __future__ import annotations

import logging
import math
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Iterable, Sequence

from orbitedge.core.batch import BatchResult, ObjectFailure, fan_out
from orbitedge.core.catalog import TrackedObject
from orbitedge.core.compliance import (
    ComplianceRecord,
    ComplianceStatus,
    DesignFlags,
    compliance_score,
    evaluate,
)
from orbitedge.core.geodesy import as_utc
from orbitedge.core.probability import RiskLevel
from orbitedge.core.propagation import PropagationModel, propagate
from orbitedge.core.screening import ConjunctionEvent, screen
from orbitedge.utils.constants import (
    DEFAULT_MISS_DISTANCE_KM,
    DEFAULT_SCREENING_HORIZON_HOURS,
    DEFAULT_SCREENING_STEP_SECONDS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskAssessment:
    """Top-level assessment of one object.

    Attributes:
        object_id: Catalog number of the assessed object.
        overall_risk: Overall risk level.
        risk_score: 0-100, higher is safer.
        collision_score: 0-100 score from the worst conjunction probability.
        compliance_score: Weighted compliance score, None if nothing could be evaluated.
        conjunctions: Conjunction events, most probable first.
        compliance: One record per requirement.
        recommendations: Ordered recommendation strings.
        assessed_at: Reference time of the assessment.
        screening_failures: Catalog objects excluded from conjunction scoring.
    """

    object_id: int
    overall_risk: RiskLevel
    risk_score: float
    collision_score: float
    compliance_score: float | None
    conjunctions: list[ConjunctionEvent]
    compliance: list[ComplianceRecord]
    recommendations: list[str]
    assessed_at: datetime
    screening_failures: list[ObjectFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "object_id": self.object_id,
            "overall_risk": self.overall_risk.value,
            "risk_score": self.risk_score,
            "collision_score": self.collision_score,
            "compliance_score": self.compliance_score,
            "conjunctions": [e.to_dict() for e in self.conjunctions],
            "compliance": [r.to_dict() for r in self.compliance],
            "recommendations": list(self.recommendations),
            "assessed_at": self.assessed_at.isoformat(),
            "screening_failures": [f.to_dict() for f in self.screening_failures],
        }


def _collision_score(events: Sequence[ConjunctionEvent]) -> float:
    if not events:
        return 100.0
    highest = max(e.probability for e in events)
    return max(0.0, 100.0 - highest * 1000.0)


def _level_for_score(score: float) -> RiskLevel:
    if score < 40:
        return RiskLevel.CRITICAL
    elif score < 60:
        return RiskLevel.HIGH
    elif score < 80:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _recommendations(
    events: Sequence[ConjunctionEvent],
    records: Sequence[ComplianceRecord],
    risk_score: float,
) -> list[str]:
    recommendations: list[str] = []

    severe = [e for e in events if e.risk_level in (RiskLevel.HIGH, RiskLevel.CRITICAL)]
    if severe:
        recommendations.append("Implement immediate collision avoidance procedures for high-risk debris encounters")

    medium = [e for e in events if e.risk_level is RiskLevel.MEDIUM]
    if len(medium) > 2:
        recommendations.append("Increase monitoring frequency due to multiple medium-risk collision scenarios")

    non_compliant = [r for r in records if r.status is ComplianceStatus.NON_COMPLIANT]
    if non_compliant:
        recommendations.append(f"Address {len(non_compliant)} non-compliant ISO 24113 requirements immediately")

    warnings = [r for r in records if r.status is ComplianceStatus.WARNING]
    if warnings:
        recommendations.append(f"Review and improve {len(warnings)} compliance areas showing warnings")

    unknown = [r.requirement_id for r in records if r.status is ComplianceStatus.CANNOT_EVALUATE]
    if unknown:
        recommendations.append(f"Supply design metadata to evaluate {', '.join(unknown)}")

    if risk_score < 60:
        recommendations.append("Consider temporary operational restrictions until risk factors are mitigated")

    if not recommendations:
        recommendations.append("Continue current operational procedures with regular monitoring")

    return recommendations


def assess_risk(
    object_id: int,
    events: Sequence[ConjunctionEvent],
    records: Sequence[ComplianceRecord],
    assessed_at: datetime,
    screening_failures: Sequence[ObjectFailure] = (),
) -> RiskAssessment:
    """Aggregate conjunction events and compliance records.

    The risk score is the rounded mean of the collision score
    (100 - 1000 x worst probability, floored at 0) and the weighted
    compliance score; when no requirement could be evaluated the
    collision score stands alone. The level follows the score
    (<40 critical, <60 high, <80 medium, else low) and is raised to the
    worst conjunction level.
    """
    events = sorted(events, key=lambda e: (-e.probability, e.miss_distance_km))
    collision = _collision_score(events)
    compliance = compliance_score(records)
    mean = collision if compliance is None else (collision + compliance) / 2
    # halves round up
    risk_score = float(math.floor(mean + 0.5))

    level = _level_for_score(risk_score)
    for event in events:
        if event.risk_level.rank > level.rank:
            level = event.risk_level

    logger.debug("Risk for NORAD %d: score=%.0f, level=%s, %d events",
                 object_id, risk_score, level.value, len(events))
    return RiskAssessment(
        object_id=object_id,
        overall_risk=level,
        risk_score=risk_score,
        collision_score=round(collision, 2),
        compliance_score=None if compliance is None else round(compliance, 2),
        conjunctions=events,
        compliance=list(records),
        recommendations=_recommendations(events, records, risk_score),
        assessed_at=as_utc(assessed_at),
        screening_failures=list(screening_failures),
    )


def assess_object(
    primary: TrackedObject,
    catalog: Iterable[TrackedObject],
    design: DesignFlags,
    at: datetime,
    horizon_hours: float = DEFAULT_SCREENING_HORIZON_HOURS,
    step_seconds: float = DEFAULT_SCREENING_STEP_SECONDS,
    threshold_km: float = DEFAULT_MISS_DISTANCE_KM,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> RiskAssessment:
    """Run the full pipeline for one object.

    Propagates the primary to ``at``, screens it against the catalog over
    the horizon, evaluates compliance and aggregates the result.

    Raises:
        PropagationError: If the primary itself cannot be propagated to ``at``.
    """
    at = as_utc(at)
    state = propagate(primary.elements, at, model=model)
    found = screen(
        primary,
        catalog,
        at,
        horizon_hours,
        step_seconds,
        threshold_km,
        model=model,
        max_workers=max_workers,
        executor=executor,
    )
    records = evaluate(primary, state, design)
    return assess_risk(primary.object_id, found.results, records, at, found.errors)


def _assess_entry(
    entry: tuple[TrackedObject, DesignFlags],
    catalog: list[TrackedObject],
    at: datetime,
    horizon_hours: float,
    step_seconds: float,
    threshold_km: float,
    model: PropagationModel,
) -> RiskAssessment:
    primary, design = entry
    return assess_object(
        primary, catalog, design, at, horizon_hours, step_seconds, threshold_km,
        model=model, max_workers=1,
    )


def assess_batch(
    entries: Sequence[tuple[TrackedObject, DesignFlags]],
    catalog: Iterable[TrackedObject],
    at: datetime,
    horizon_hours: float = DEFAULT_SCREENING_HORIZON_HOURS,
    step_seconds: float = DEFAULT_SCREENING_STEP_SECONDS,
    threshold_km: float = DEFAULT_MISS_DISTANCE_KM,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> BatchResult[RiskAssessment]:
    """Assess many objects against one catalog.

    Objects that cannot be propagated to ``at`` are reported in ``errors``.
    """
    return fan_out(
        partial(
            _assess_entry,
            catalog=list(catalog),
            at=at,
            horizon_hours=horizon_hours,
            step_seconds=step_seconds,
            threshold_km=threshold_km,
            model=model,
        ),
        list(entries),
        stage="assess",
        object_id=lambda entry: entry[0].object_id,
        max_workers=max_workers,
        executor=executor,
    )
