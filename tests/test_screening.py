"""Tests for conjunction assessment and catalog screening."""
from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import numpy as np
import pytest

from orbitedge.core.catalog import ObjectClass, TrackedObject
from orbitedge.core.probability import RiskLevel
from orbitedge.core.propagation import DecayedError, propagate
from orbitedge.core.screening import (
    _prefilter,
    assess_conjunction,
    find_closest_approach,
    screen,
    screen_catalog,
)
from orbitedge.core.tle import TLE


def _clone(tle: TLE, norad_id: int, mean_anomaly_offset_deg: float = 0.0) -> TLE:
    """Same orbit under another catalog number, optionally a little further along track."""
    return replace(tle, norad_id=norad_id, mean_anomaly_deg=tle.mean_anomaly_deg + mean_anomaly_offset_deg)


@pytest.fixture
def shadow_tle(iss_tle: TLE) -> TLE:
    # ~1.2 km behind the ISS
    return _clone(iss_tle, 90001, 0.01)


@pytest.fixture
def broken_object(decayer_tle: TLE) -> TrackedObject:
    # perigee below the surface but apogee reaching the ISS shell
    return TrackedObject.from_tle(replace(decayer_tle, eccentricity=0.05))


class TestAssessConjunction:
    def test_same_time_states(self, iss_tle: TLE, css_tle: TLE) -> None:
        at = iss_tle.epoch + timedelta(hours=1)
        event = assess_conjunction(propagate(iss_tle, at), propagate(css_tle, at), 0.005, 0.005)
        assert event.primary_id == 25544
        assert event.secondary_id == 48274
        assert event.miss_distance_km > 0
        assert event.time_to_tca_hours == 0.0
        assert event.combined_radius_km == pytest.approx(0.01)

    def test_identical_position_is_critical(self, iss_tle: TLE) -> None:
        state = propagate(iss_tle, iss_tle.epoch)
        event = assess_conjunction(state, state, 0.005, 0.005, secondary_id=90001)
        assert event.miss_distance_km == 0.0
        assert event.probability == 1.0
        assert event.risk_level is RiskLevel.CRITICAL
        assert event.recommended_action == "immediate avoidance maneuver"

    def test_reference_time(self, iss_tle: TLE, css_tle: TLE) -> None:
        at = iss_tle.epoch + timedelta(hours=3)
        event = assess_conjunction(
            propagate(iss_tle, at), propagate(css_tle, at), 0.005, 0.005,
            reference_time=at - timedelta(minutes=90),
        )
        assert event.time_to_tca_hours == pytest.approx(1.5)

    def test_mismatched_epochs_rejected(self, iss_tle: TLE, css_tle: TLE) -> None:
        a = propagate(iss_tle, iss_tle.epoch)
        b = propagate(css_tle, iss_tle.epoch + timedelta(seconds=1))
        with pytest.raises(ValueError, match="epochs differ"):
            assess_conjunction(a, b, 0.005, 0.005)

    def test_zero_size_rejected(self, iss_tle: TLE, css_tle: TLE) -> None:
        at = iss_tle.epoch
        with pytest.raises(ValueError):
            assess_conjunction(propagate(iss_tle, at), propagate(css_tle, at), 0.0, 0.0)

    def test_to_dict(self, iss_tle: TLE, css_tle: TLE) -> None:
        at = iss_tle.epoch
        data = assess_conjunction(propagate(iss_tle, at), propagate(css_tle, at), 0.005, 0.005).to_dict()
        assert data["risk_level"] == "low"
        assert data["probability_model"] == "hard-body-distance-proxy"
        assert data["recommended_action"] == "continue normal monitoring"


class TestFindClosestApproach:
    def test_trailing_object(self, iss_tle: TLE, shadow_tle: TLE) -> None:
        event = find_closest_approach(iss_tle, shadow_tle, 0.005, 0.005, iss_tle.epoch, horizon_hours=6)
        assert event.secondary_id == 90001
        assert 0.8 < event.miss_distance_km < 1.6
        assert 0.0 <= event.time_to_tca_hours <= 6.0
        assert event.relative_velocity_km_s < 0.1
        assert event.probability == 0.0

    def test_identical_orbit_collides(self, iss_tle: TLE) -> None:
        event = find_closest_approach(iss_tle, _clone(iss_tle, 90002), 0.005, 0.005, iss_tle.epoch, horizon_hours=2)
        assert event.miss_distance_km == pytest.approx(0.0, abs=1e-9)
        assert event.risk_level is RiskLevel.CRITICAL

    def test_not_worse_than_coarse_samples(self, iss_tle: TLE, css_tle: TLE) -> None:
        start = iss_tle.epoch
        event = find_closest_approach(iss_tle, css_tle, 0.005, 0.005, start, horizon_hours=3)
        for minutes in range(0, 181, 30):
            at = start + timedelta(minutes=minutes)
            separation = np.linalg.norm(propagate(iss_tle, at).position_km - propagate(css_tle, at).position_km)
            assert event.miss_distance_km <= separation + 1e-6
        assert start <= event.tca <= start + timedelta(hours=3)

    def test_no_valid_window_raises(self, iss_tle: TLE, broken_object: TrackedObject) -> None:
        with pytest.raises(DecayedError) as info:
            find_closest_approach(iss_tle, broken_object.elements, 0.005, 0.001, iss_tle.epoch, horizon_hours=1)
        assert info.value.norad_id == 99001

    def test_no_valid_window_names_failing_primary(self, iss_tle: TLE, broken_object: TrackedObject) -> None:
        with pytest.raises(DecayedError) as info:
            find_closest_approach(broken_object.elements, iss_tle, 0.001, 0.005, iss_tle.epoch, horizon_hours=1)
        assert info.value.norad_id == 99001
        assert "NORAD 99001 has no valid state" in str(info.value)


class TestScreen:
    def test_prefilter_shells(self, iss_object: TrackedObject, hst_tle: TLE, geo_tle: TLE, shadow_tle: TLE) -> None:
        candidates = [iss_object, TrackedObject.from_tle(hst_tle), TrackedObject.from_tle(geo_tle),
                      TrackedObject.from_tle(shadow_tle)]
        kept = _prefilter(candidates, iss_object, 10.0)
        assert [obj.object_id for obj in kept] == [90001]

    def test_screen_finds_shadow(self, iss_object: TrackedObject, shadow_tle: TLE, hst_tle: TLE) -> None:
        catalog = [iss_object, TrackedObject.from_tle(shadow_tle), TrackedObject.from_tle(hst_tle)]
        found = screen(iss_object, catalog, iss_object.epoch, horizon_hours=2)
        assert found.ok
        assert [e.secondary_id for e in found.results] == [90001]

    def test_screen_sorted_by_probability(self, iss_object: TrackedObject, iss_tle: TLE, shadow_tle: TLE) -> None:
        twin = TrackedObject.from_tle(_clone(iss_tle, 90002), classification=ObjectClass.DEBRIS)
        catalog = [TrackedObject.from_tle(shadow_tle), twin]
        found = screen(iss_object, catalog, iss_object.epoch, horizon_hours=1)
        assert [e.secondary_id for e in found.results] == [90002, 90001]
        assert found.results[0].probability >= found.results[1].probability

    def test_screen_reports_unpropagatable(
        self, iss_object: TrackedObject, shadow_tle: TLE, broken_object: TrackedObject
    ) -> None:
        catalog = [TrackedObject.from_tle(shadow_tle), broken_object]
        found = screen(iss_object, catalog, iss_object.epoch, horizon_hours=1, max_workers=2)
        assert [e.secondary_id for e in found.results] == [90001]
        assert len(found.errors) == 1
        assert found.errors[0].object_id == 99001
        assert found.errors[0].stage == "screen"

    def test_screen_decayed_primary_raises(
        self, decayer_tle: TLE, iss_object: TrackedObject, css_object: TrackedObject
    ) -> None:
        primary = TrackedObject.from_tle(decayer_tle)
        with pytest.raises(DecayedError) as info:
            screen(primary, [iss_object, css_object], decayer_tle.epoch + timedelta(days=30), horizon_hours=1)
        assert info.value.norad_id == 99001

    def test_threshold_excludes_distant(self, iss_object: TrackedObject, shadow_tle: TLE) -> None:
        found = screen(iss_object, [TrackedObject.from_tle(shadow_tle)], iss_object.epoch,
                       horizon_hours=1, threshold_km=0.5)
        assert found.results == []


class TestScreenCatalog:
    def test_finds_close_pair(self, iss_object: TrackedObject, shadow_tle: TLE, css_object: TrackedObject,
                              hst_tle: TLE) -> None:
        objects = [iss_object, TrackedObject.from_tle(shadow_tle), css_object, TrackedObject.from_tle(hst_tle)]
        found = screen_catalog(objects, iss_object.epoch, threshold_km=10.0)
        assert found.ok
        assert len(found.results) == 1
        event = found.results[0]
        assert {event.primary_id, event.secondary_id} == {25544, 90001}
        assert event.time_to_tca_hours == 0.0
        assert 0.8 < event.miss_distance_km < 1.6

    def test_failures_recorded(self, iss_object: TrackedObject, broken_object: TrackedObject) -> None:
        found = screen_catalog([iss_object, broken_object], iss_object.epoch)
        assert found.results == []
        assert found.errors[0].object_id == 99001
        assert isinstance(found.errors[0].error, DecayedError)
