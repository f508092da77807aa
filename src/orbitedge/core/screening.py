"""Conjunction screening: close approaches between space objects."""
from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import partial
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy.spatial import cKDTree

from orbitedge.core.batch import BatchResult, ObjectFailure, fan_out
from orbitedge.core.catalog import TrackedObject
from orbitedge.core.geodesy import as_utc
from orbitedge.core.probability import (
    PROBABILITY_MODEL,
    RiskLevel,
    collision_probability,
    recommended_action,
    risk_level,
)
from orbitedge.core.propagation import (
    DecayedError,
    PropagationModel,
    StateVector,
    propagate,
    propagate_positions,
)
from orbitedge.core.tle import TLE
from orbitedge.utils.constants import (
    DEFAULT_MISS_DISTANCE_KM,
    DEFAULT_SCREENING_HORIZON_HOURS,
    DEFAULT_SCREENING_STEP_SECONDS,
)

logger = logging.getLogger(__name__)

_MIN_REFINE_STEP_SEC = 1.0


@dataclass(frozen=True)
class ConjunctionEvent:
    """A predicted close approach between two space objects.

    Attributes:
        primary_id: Catalog number of the primary (protected) object.
        secondary_id: Catalog number of the secondary object.
        probability: Collision probability proxy in [0, 1].
        miss_distance_km: Minimum predicted separation in km.
        time_to_tca_hours: Hours from the reference time to closest approach.
        relative_velocity_km_s: Relative speed at closest approach in km/s.
        risk_level: Category derived from ``probability``.
        tca: Time of closest approach (UTC).
        combined_radius_km: Sum of both hard-body radii.
        probability_model: How ``probability`` was estimated.
    """

    primary_id: int
    secondary_id: int
    probability: float
    miss_distance_km: float
    time_to_tca_hours: float
    relative_velocity_km_s: float
    risk_level: RiskLevel
    tca: datetime
    combined_radius_km: float
    probability_model: str = PROBABILITY_MODEL

    @property
    def recommended_action(self) -> str:
        return recommended_action(self.risk_level)

    def to_dict(self) -> dict:
        return {
            "primary_id": self.primary_id,
            "secondary_id": self.secondary_id,
            "probability": self.probability,
            "miss_distance_km": self.miss_distance_km,
            "time_to_tca_hours": self.time_to_tca_hours,
            "relative_velocity_km_s": self.relative_velocity_km_s,
            "risk_level": self.risk_level.value,
            "recommended_action": self.recommended_action,
            "tca": self.tca.isoformat(),
            "combined_radius_km": self.combined_radius_km,
            "probability_model": self.probability_model,
        }


def _event(
    primary_id: int,
    secondary_id: int,
    separation_km: float,
    relative_velocity_km_s: float,
    tca: datetime,
    reference_time: datetime,
    combined_radius_km: float,
) -> ConjunctionEvent:
    probability = collision_probability(separation_km, combined_radius_km)
    return ConjunctionEvent(
        primary_id=primary_id,
        secondary_id=secondary_id,
        probability=probability,
        miss_distance_km=separation_km,
        time_to_tca_hours=(tca - reference_time).total_seconds() / 3600.0,
        relative_velocity_km_s=relative_velocity_km_s,
        risk_level=risk_level(probability),
        tca=tca,
        combined_radius_km=combined_radius_km,
    )


def assess_conjunction(
    primary: StateVector,
    secondary: StateVector,
    primary_size_km: float,
    secondary_size_km: float,
    *,
    reference_time: datetime | None = None,
    primary_id: int | None = None,
    secondary_id: int | None = None,
) -> ConjunctionEvent:
    """Score two states taken at the same instant.

    The combined hard-body radius is the plain sum of both sizes, a
    conservative stand-in for a covariance-based miss-distance model.

    Args:
        primary: Primary object state.
        secondary: Secondary object state, at the same epoch.
        primary_size_km: Hard-body radius of the primary in km.
        secondary_size_km: Hard-body radius of the secondary in km.
        reference_time: Time from which ``time_to_tca_hours`` is measured.
            Defaults to the state epoch (zero hours).
        primary_id: Overrides ``primary.norad_id``.
        secondary_id: Overrides ``secondary.norad_id``.

    Raises:
        ValueError: If the epochs differ, an identifier is missing, or the
            combined size is not positive.
    """
    if as_utc(primary.epoch) != as_utc(secondary.epoch):
        raise ValueError(
            f"State epochs differ ({primary.epoch.isoformat()} vs {secondary.epoch.isoformat()}); "
            "propagate both objects to a shared time first"
        )
    primary_id = primary.norad_id if primary_id is None else primary_id
    secondary_id = secondary.norad_id if secondary_id is None else secondary_id
    if primary_id is None or secondary_id is None:
        raise ValueError("Both objects need an identifier")

    separation = float(np.linalg.norm(primary.position_km - secondary.position_km))
    rel_vel = float(np.linalg.norm(primary.velocity_km_s - secondary.velocity_km_s))
    tca = as_utc(primary.epoch)
    event = _event(
        primary_id,
        secondary_id,
        separation,
        rel_vel,
        tca,
        as_utc(reference_time) if reference_time is not None else tca,
        primary_size_km + secondary_size_km,
    )
    logger.debug("Conjunction %d/%d: %.3f km, Pc=%.2e (%s)",
                 primary_id, secondary_id, separation, event.probability, event.risk_level.value)
    return event


def _separations(
    primary: TLE, secondary: TLE, times: list[datetime], model: PropagationModel
) -> tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.bool_]]:
    prim_states, prim_ok = propagate_positions(primary, times, model=model)
    sec_states, sec_ok = propagate_positions(secondary, times, model=model)
    valid = prim_ok & sec_ok
    dist = np.linalg.norm(prim_states[:, 0:3] - sec_states[:, 0:3], axis=1)
    rel_vel = np.linalg.norm(prim_states[:, 3:6] - sec_states[:, 3:6], axis=1)
    return dist, rel_vel, valid


def _refine_tca(
    primary: TLE,
    secondary: TLE,
    t_start: datetime,
    t_end: datetime,
    step_sec: float,
    model: PropagationModel,
) -> tuple[datetime, float, float] | None:
    """Refine time of closest approach by successive step halving.

    Returns:
        Tuple of (tca, miss_distance_km, relative_velocity_km_s), or None if
        no sample in the window was valid.
    """
    best: tuple[datetime, float, float] | None = None

    while step_sec >= _MIN_REFINE_STEP_SEC:
        count = int((t_end - t_start).total_seconds() // step_sec) + 1
        times = [t_start + timedelta(seconds=k * step_sec) for k in range(count)]
        dist, rel_vel, valid = _separations(primary, secondary, times, model)
        if valid.any():
            idx = int(np.argmin(np.where(valid, dist, np.inf)))
            if best is None or dist[idx] < best[1]:
                best = (times[idx], float(dist[idx]), float(rel_vel[idx]))

        if best is None:
            return None
        t_start = max(t_start, best[0] - timedelta(seconds=step_sec))
        t_end = min(t_end, best[0] + timedelta(seconds=step_sec))
        step_sec /= 2

    return best


def find_closest_approach(
    primary: TLE,
    secondary: TLE,
    primary_size_km: float,
    secondary_size_km: float,
    start: datetime,
    horizon_hours: float = DEFAULT_SCREENING_HORIZON_HOURS,
    step_seconds: float = DEFAULT_SCREENING_STEP_SECONDS,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> ConjunctionEvent:
    """Find the closest approach of two element sets within a window.

    Both objects are sampled at a fixed interval from ``start`` to
    ``start + horizon_hours``; the minimum is then refined down to one
    second.

    Raises:
        DecayedError: If there is no instant in the window at which both
            objects can be propagated. The error names the object
            that never propagates, or the secondary when each fails at
            different times.
    """
    start = as_utc(start)
    steps = int(horizon_hours * 3600.0 / step_seconds)
    times = [start + timedelta(seconds=k * step_seconds) for k in range(steps + 1)]
    dist, rel_vel, valid = _separations(primary, secondary, times, model)
    if not valid.any():
        _, primary_ok = propagate_positions(primary, times, model=model)
        culprit = secondary if primary_ok.any() else primary
        raise DecayedError(
            f"NORAD {culprit.norad_id} has no valid state in {horizon_hours:.1f} h from {start.isoformat()} "
            f"(pair {primary.norad_id}/{secondary.norad_id})",
            culprit.norad_id,
        )

    idx = int(np.argmin(np.where(valid, dist, np.inf)))
    window = timedelta(seconds=step_seconds)
    refined = _refine_tca(
        primary,
        secondary,
        max(start, times[idx] - window),
        min(times[-1], times[idx] + window),
        step_seconds / 2,
        model,
    )
    if refined is None or refined[1] > dist[idx]:
        tca, miss, speed = times[idx], float(dist[idx]), float(rel_vel[idx])
    else:
        tca, miss, speed = refined

    return _event(
        primary.norad_id,
        secondary.norad_id,
        miss,
        speed,
        tca,
        start,
        primary_size_km + secondary_size_km,
    )


def _prefilter(candidates: Iterable[TrackedObject], primary: TrackedObject, threshold_km: float) -> list[TrackedObject]:
    """Fast geometric prefilter based on orbital shell overlap.

    Only keeps objects whose perigee/apogee altitude range overlaps with the
    primary's range (accounting for threshold).
    """
    primary_perigee = primary.elements.perigee_altitude_km
    primary_apogee = primary.elements.apogee_altitude_km

    filtered = []
    for obj in candidates:
        if obj.object_id == primary.object_id:
            continue
        if (primary_perigee - threshold_km <= obj.elements.apogee_altitude_km and
                primary_apogee + threshold_km >= obj.elements.perigee_altitude_km):
            filtered.append(obj)

    return filtered


def _closest_to(
    secondary: TrackedObject,
    primary: TrackedObject,
    start: datetime,
    horizon_hours: float,
    step_seconds: float,
    model: PropagationModel,
) -> ConjunctionEvent:
    return find_closest_approach(
        primary.elements,
        secondary.elements,
        primary.radius_km,
        secondary.radius_km,
        start,
        horizon_hours,
        step_seconds,
        model=model,
    )


def screen(
    primary: TrackedObject,
    catalog: Iterable[TrackedObject],
    start: datetime,
    horizon_hours: float = DEFAULT_SCREENING_HORIZON_HOURS,
    step_seconds: float = DEFAULT_SCREENING_STEP_SECONDS,
    threshold_km: float = DEFAULT_MISS_DISTANCE_KM,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> BatchResult[ConjunctionEvent]:
    """Screen one primary object against a catalog.

    Uses a multi-stage algorithm:
    1. Orbital shell prefilter to eliminate impossible pairs
    2. Fixed-interval sampling per candidate, fanned out over a worker pool
    3. Local refinement around each candidate's minimum

    Args:
        primary: Protected object.
        catalog: Objects to screen against (the primary itself is skipped).
        start: Start of the screening window.
        horizon_hours: Window length in hours.
        step_seconds: Coarse sampling interval in seconds.
        threshold_km: Events farther apart than this are not reported.

    Returns:
        BatchResult with events sorted by descending probability, then miss
        distance, and a failure entry for each candidate that could not be
        propagated over the window.

    Raises:
        PropagationError: If the primary itself cannot be propagated to ``start``.
    """
    propagate(primary.elements, start, model=model)
    candidates = _prefilter(catalog, primary, threshold_km)
    logger.debug("Screening NORAD %d against %d candidates", primary.object_id, len(candidates))

    found = fan_out(
        partial(_closest_to, primary=primary, start=start, horizon_hours=horizon_hours,
                step_seconds=step_seconds, model=model),
        candidates,
        stage="screen",
        object_id=lambda obj: obj.object_id,
        max_workers=max_workers,
        executor=executor,
    )

    events = [e for e in found.results if e.miss_distance_km <= threshold_km]
    events.sort(key=lambda e: (-e.probability, e.miss_distance_km))
    logger.info("screen: NORAD %d, %d candidates, %d events within %.1f km",
                primary.object_id, len(candidates), len(events), threshold_km)
    return BatchResult(results=events, errors=found.errors)


def screen_catalog(
    objects: Sequence[TrackedObject],
    at: datetime,
    threshold_km: float = DEFAULT_MISS_DISTANCE_KM,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
) -> BatchResult[ConjunctionEvent]:
    """Find every pair closer than ``threshold_km`` at a single instant.

    Uses a KD-tree over all propagated positions, so it scales to full
    catalogs. Events have zero time to closest approach.
    """
    at = as_utc(at)
    batch: BatchResult[ConjunctionEvent] = BatchResult()
    kept: list[TrackedObject] = []
    positions: list[NDArray[np.float64]] = []

    for obj in objects:
        states, valid = propagate_positions(obj.elements, [at], model=model)
        if not valid[0]:
            error = DecayedError(f"NORAD {obj.object_id} cannot be propagated to {at.isoformat()}", obj.object_id)
            batch.errors.append(ObjectFailure(object_id=obj.object_id, stage="propagate", error=error))
            logger.warning("%s", error)
            continue
        kept.append(obj)
        positions.append(states[0])

    if len(kept) < 2:
        logger.info("screen_catalog: fewer than 2 valid objects, nothing to screen")
        return batch

    stacked = np.vstack(positions)
    tree = cKDTree(stacked[:, 0:3])
    for a, b in sorted(tree.query_pairs(threshold_km)):
        first, second = kept[a], kept[b]
        batch.results.append(
            _event(
                first.object_id,
                second.object_id,
                float(np.linalg.norm(stacked[a, 0:3] - stacked[b, 0:3])),
                float(np.linalg.norm(stacked[a, 3:6] - stacked[b, 3:6])),
                at,
                at,
                first.radius_km + second.radius_km,
            )
        )

    batch.results.sort(key=lambda e: e.miss_distance_km)
    logger.info("screen_catalog: %d objects, found %d close pairs", len(kept), len(batch.results))
    return batch
