"""Tracked objects and the catalog that holds the latest element set per object."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Iterator

from orbitedge.core.geodesy import as_utc
from orbitedge.core.tle import TLE
from orbitedge.utils.constants import (
    HARD_BODY_RADIUS_DEBRIS_KM,
    HARD_BODY_RADIUS_ROCKET_BODY_KM,
    HARD_BODY_RADIUS_SATELLITE_KM,
)

logger = logging.getLogger(__name__)


class ObjectClass(Enum):
    SATELLITE = "satellite"
    DEBRIS = "debris"
    ROCKET_BODY = "rocket_body"


_DEFAULT_RADIUS_KM = {
    ObjectClass.SATELLITE: HARD_BODY_RADIUS_SATELLITE_KM,
    ObjectClass.DEBRIS: HARD_BODY_RADIUS_DEBRIS_KM,
    ObjectClass.ROCKET_BODY: HARD_BODY_RADIUS_ROCKET_BODY_KM,
}


def classify_name(name: str) -> ObjectClass:
    """Infer the object class from a catalog name (``DEB`` / ``R/B`` markers)."""
    upper = name.upper()
    if " DEB" in upper or upper.startswith("DEB"):
        return ObjectClass.DEBRIS
    if "R/B" in upper or "ROCKET BODY" in upper:
        return ObjectClass.ROCKET_BODY
    return ObjectClass.SATELLITE


@dataclass(frozen=True)
class TrackedObject:
    """An identified object and the element set valid for its epoch.

    Attributes:
        object_id: Catalog number.
        name: Catalog name.
        classification: Satellite, debris or rocket body.
        elements: Orbital element set.
        radius_km: Hard-body radius used for conjunction scoring.
    """

    object_id: int
    name: str
    classification: ObjectClass
    elements: TLE
    radius_km: float

    @classmethod
    def from_tle(
        cls,
        tle: TLE,
        *,
        classification: ObjectClass | None = None,
        radius_km: float | None = None,
    ) -> TrackedObject:
        if classification is None:
            classification = classify_name(tle.name)
        if radius_km is None:
            radius_km = _DEFAULT_RADIUS_KM[classification]
        return cls(
            object_id=tle.norad_id,
            name=tle.name or str(tle.norad_id),
            classification=classification,
            elements=tle,
            radius_km=radius_km,
        )

    @property
    def epoch(self) -> datetime:
        return self.elements.epoch

    def supersedes(self, other: TrackedObject) -> bool:
        """True if this is a newer element set for the same object."""
        return self.object_id == other.object_id and self.epoch > other.epoch


class Catalog:
    """Latest TrackedObject per catalog number.

    Ingesting an older or equal epoch for a known object is ignored; a
    newer epoch replaces the stored object.
    """

    def __init__(self, objects: Iterable[TrackedObject] = ()) -> None:
        self._objects: dict[int, TrackedObject] = {}
        for obj in objects:
            self.upsert(obj)

    def upsert(self, obj: TrackedObject) -> bool:
        """Store ``obj`` unless a same-or-newer epoch is held. Returns True if stored."""
        current = self._objects.get(obj.object_id)
        if current is not None and not obj.supersedes(current):
            logger.debug("Ignoring stale TLE for NORAD %d (epoch %s)", obj.object_id, obj.epoch.isoformat())
            return False
        self._objects[obj.object_id] = obj
        return True

    def get(self, object_id: int) -> TrackedObject | None:
        return self._objects.get(object_id)

    def remove(self, object_id: int) -> None:
        self._objects.pop(object_id, None)

    def filter_stale(
        self, max_age_days: float = 3.0, reference_time: datetime | None = None
    ) -> list[TrackedObject]:
        """Objects whose epoch is within ``max_age_days`` of ``reference_time``.

        Args:
            max_age_days: Maximum age in days.
            reference_time: Reference time for age calculation. Defaults to now (UTC).
        """
        if reference_time is None:
            reference_time = datetime.now(timezone.utc)
        reference_time = as_utc(reference_time)

        cutoff = timedelta(days=max_age_days)
        fresh = [obj for obj in self if abs(reference_time - obj.epoch) <= cutoff]
        logger.debug("filter_stale: %d/%d objects within %.1f days", len(fresh), len(self), max_age_days)
        return fresh

    def by_class(self, classification: ObjectClass) -> list[TrackedObject]:
        return [obj for obj in self if obj.classification is classification]

    def __contains__(self, object_id: object) -> bool:
        return object_id in self._objects

    def __iter__(self) -> Iterator[TrackedObject]:
        return iter(self._objects.values())

    def __len__(self) -> int:
        return len(self._objects)
