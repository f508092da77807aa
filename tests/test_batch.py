"""Tests for batch parsing and propagation with per-object failures."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import numpy as np
import pytest

from orbitedge.core.batch import (
    BatchResult,
    ObjectFailure,
    fan_out,
    parse_and_propagate,
    parse_records,
    propagate_batch,
)
from orbitedge.core.catalog import TrackedObject
from orbitedge.core.propagation import DecayedError
from orbitedge.core.tle import ChecksumMismatchError, MalformedLineError, ParseError, TLE
from tests.conftest import (
    CSS_LINE1,
    CSS_LINE2,
    DECAYER_LINE1,
    DECAYER_LINE2,
    EXTRA_PAIRS,
    GEO_LINE1,
    GEO_LINE2,
    HST_LINE1,
    HST_LINE2,
    ISS_LINE1,
    ISS_LINE2,
    NOAA18_LINE1,
    NOAA18_LINE2,
)

GOOD_PAIRS = [
    (ISS_LINE1, ISS_LINE2),
    (CSS_LINE1, CSS_LINE2),
    (HST_LINE1, HST_LINE2),
    (GEO_LINE1, GEO_LINE2),
    (NOAA18_LINE1, NOAA18_LINE2),
    *EXTRA_PAIRS,
]


def _ten_pairs_one_corrupt() -> list[tuple[str, str]]:
    pairs = list(GOOD_PAIRS)
    pairs.append((DECAYER_LINE1, DECAYER_LINE2))
    pairs.append(("", ISS_LINE2))
    assert len(pairs) == 10
    return pairs


class TestParseRecords:
    def test_one_corrupt_of_ten(self) -> None:
        batch = parse_records(_ten_pairs_one_corrupt())
        assert len(batch.results) == 9
        assert len(batch.errors) == 1
        failure = batch.errors[0]
        assert failure.stage == "parse"
        assert isinstance(failure.error, ParseError)
        assert failure.kind == "MalformedLineError"

    def test_wrong_shape_records_isolated(self) -> None:
        records = [(ISS_LINE1, ISS_LINE2), (ISS_LINE1,), (CSS_LINE1, None), (CSS_LINE1, CSS_LINE2)]
        batch = parse_records(records)
        assert [t.norad_id for t in batch.results] == [25544, 48274]
        assert len(batch.errors) == 2
        assert all(isinstance(f.error, MalformedLineError) for f in batch.errors)
        assert batch.errors[0].object_id == "record 1"
        assert batch.errors[1].object_id == 48274

    def test_named_records(self) -> None:
        batch = parse_records([("ISS (ZARYA)", ISS_LINE1, ISS_LINE2)])
        assert batch.ok
        assert batch.results[0].name == "ISS (ZARYA)"

    def test_checksum_failures_collected(self) -> None:
        bad = ISS_LINE1[:68] + str((int(ISS_LINE1[68]) + 1) % 10)
        batch = parse_records([(bad, ISS_LINE2), (CSS_LINE1, CSS_LINE2)], validate_checksum=True)
        assert [t.norad_id for t in batch.results] == [48274]
        assert isinstance(batch.errors[0].error, ChecksumMismatchError)
        assert batch.errors[0].object_id == 25544

    def test_text_with_garbage(self) -> None:
        text = f"ISS (ZARYA)\n{ISS_LINE1}\n{ISS_LINE2}\n1 garbage\n{CSS_LINE1}\n{CSS_LINE2}"
        batch = parse_records(text)
        assert [t.norad_id for t in batch.results] == [25544, 48274]
        assert len(batch.errors) == 1
        assert isinstance(batch.errors[0].error, MalformedLineError)

    def test_failure_to_dict(self) -> None:
        batch = parse_records([("garbage", ISS_LINE2)])
        data = batch.errors[0].to_dict()
        assert data["stage"] == "parse"
        assert data["kind"] == "MalformedLineError"
        assert "line 1" in data["message"]


class TestPropagateBatch:
    def test_preserves_order(self, iss_tle: TLE, css_tle: TLE, hst_tle: TLE) -> None:
        batch = propagate_batch([iss_tle, css_tle, hst_tle], iss_tle.epoch)
        assert batch.ok
        assert [s.norad_id for s in batch.results] == [25544, 48274, 20580]

    def test_decayed_object_isolated(self, iss_tle: TLE, decayer_tle: TLE) -> None:
        at = decayer_tle.epoch + timedelta(days=30)
        batch = propagate_batch([iss_tle, decayer_tle], at)
        assert [s.norad_id for s in batch.results] == [25544]
        assert batch.errors[0].object_id == 99001
        assert isinstance(batch.errors[0].error, DecayedError)

    def test_accepts_tracked_objects(self, iss_object: TrackedObject) -> None:
        batch = propagate_batch([iss_object], iss_object.epoch)
        assert batch.results[0].norad_id == 25544

    def test_caller_executor(self, iss_tle: TLE, css_tle: TLE) -> None:
        with ThreadPoolExecutor(max_workers=2) as pool:
            batch = propagate_batch([iss_tle, css_tle], iss_tle.epoch, executor=pool)
            # the pool is still usable afterwards
            assert pool.submit(lambda: 1).result() == 1
        assert len(batch.results) == 2


def test_parse_and_propagate():
    pairs = _ten_pairs_one_corrupt()
    at = TLE.from_lines(ISS_LINE1, ISS_LINE2).epoch
    batch = parse_and_propagate(pairs, at)
    assert len(batch.results) == 9
    assert len(batch.errors) == 1
    assert batch.errors[0].stage == "parse"


def test_parse_and_propagate_reports_both_stages():
    pairs = _ten_pairs_one_corrupt()
    at = TLE.from_lines(ISS_LINE1, ISS_LINE2).epoch + timedelta(days=30)
    batch = parse_and_propagate(pairs, at)
    assert len(batch.results) == 8
    assert [f.stage for f in batch.errors] == ["parse", "propagate"]
    assert batch.errors[1].object_id == 99001


def test_fan_out_only_isolates_value_errors():
    def explode(item: int) -> int:
        if item == 2:
            raise RuntimeError("bug")
        return item

    with pytest.raises(RuntimeError):
        fan_out(explode, [1, 2, 3], stage="test", object_id=str, max_workers=2)


def test_fan_out_empty():
    batch = fan_out(lambda x: x, [], stage="test", object_id=str)
    assert isinstance(batch, BatchResult)
    assert batch.results == [] and batch.errors == []


def test_batch_result_extend():
    a: BatchResult[int] = BatchResult(results=[1])
    b: BatchResult[int] = BatchResult(
        results=[2], errors=[ObjectFailure(object_id=3, stage="test", error=ValueError("x"))]
    )
    a.extend(b)
    assert a.results == [1, 2]
    assert not a.ok


def test_diverged_object_isolated(monkeypatch: pytest.MonkeyPatch, iss_tle: TLE, css_tle: TLE):
    from orbitedge.core import propagation

    real_solver = propagation.solve_kepler

    def solver(mean_anomaly, eccentricity):
        ecc_anomaly, converged = real_solver(mean_anomaly, eccentricity)
        if eccentricity == css_tle.eccentricity:
            converged = np.zeros_like(converged)
        return ecc_anomaly, converged

    monkeypatch.setattr(propagation, "solve_kepler", solver)
    batch = propagate_batch([iss_tle, css_tle], iss_tle.epoch)
    assert [s.norad_id for s in batch.results] == [25544]
    assert batch.errors[0].object_id == 48274
    assert batch.errors[0].kind == "NumericDivergenceError"
