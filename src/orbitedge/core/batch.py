"""Batch execution with per-object failure isolation.

Work is fanned out over a ``concurrent.futures`` pool and collected back
in input order. An engine error (any ``ValueError``) raised for one object
is recorded as an :class:`ObjectFailure` and never aborts the batch.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime
from functools import partial
from typing import Callable, Generic, Iterable, Sequence, TypeVar, Union

from orbitedge.core.catalog import TrackedObject
from orbitedge.core.propagation import PropagationModel, StateVector, propagate
from orbitedge.core.tle import TLE, MalformedLineError, ParseError, parse_elements, scan_records

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

Record = Union[tuple[str, str], tuple[str, str, str]]


@dataclass(frozen=True)
class ObjectFailure:
    """Why one object dropped out of a batch.

    Attributes:
        object_id: Catalog number, or a record label when none could be read.
        stage: Pipeline stage that failed (``parse``, ``propagate``, ``screen``, ``assess``).
        error: The exception raised for this object.
    """

    object_id: int | str
    stage: str
    error: Exception

    @property
    def kind(self) -> str:
        return type(self.error).__name__

    @property
    def message(self) -> str:
        return str(self.error)

    def to_dict(self) -> dict:
        return {"object_id": self.object_id, "stage": self.stage, "kind": self.kind, "message": self.message}


@dataclass
class BatchResult(Generic[T]):
    """Successful results and per-object failures of a batch run."""

    results: list[T] = field(default_factory=list)
    errors: list[ObjectFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def extend(self, other: BatchResult[T]) -> None:
        self.results.extend(other.results)
        self.errors.extend(other.errors)


def default_workers() -> int:
    return os.cpu_count() or 1


def fan_out(
    fn: Callable[[T], R],
    items: Sequence[T],
    *,
    stage: str,
    object_id: Callable[[T], int | str],
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> BatchResult[R]:
    """Apply ``fn`` to every item on a worker pool, isolating failures.

    Args:
        fn: Pure function to run per item. Must be picklable when a process
            pool is supplied as ``executor``.
        items: Work items.
        stage: Stage name recorded on failures.
        object_id: Maps an item to the identifier recorded on failure.
        max_workers: Pool size when no executor is given. Defaults to the CPU count.
        executor: Caller-owned executor; it is not shut down here.

    Returns:
        BatchResult with results in input order.
    """
    batch: BatchResult[R] = BatchResult()
    if not items:
        return batch

    own_pool = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=max_workers or default_workers())
    try:
        futures = [pool.submit(fn, item) for item in items]
        for item, future in zip(items, futures):
            try:
                batch.results.append(future.result())
            except ValueError as exc:
                failure = ObjectFailure(object_id=object_id(item), stage=stage, error=exc)
                logger.warning("%s failed for %s: %s", stage, failure.object_id, exc)
                batch.errors.append(failure)
    finally:
        if own_pool:
            pool.shutdown(wait=True)

    logger.info("%s batch: %d ok, %d failed", stage, len(batch.results), len(batch.errors))
    return batch


def _elements(obj: TLE | TrackedObject) -> TLE:
    return obj.elements if isinstance(obj, TrackedObject) else obj


def _object_id(obj: TLE | TrackedObject) -> int:
    return _elements(obj).norad_id


def _propagate_one(obj: TLE | TrackedObject, at: datetime, model: PropagationModel) -> StateVector:
    return propagate(_elements(obj), at, model=model)


def propagate_batch(
    objects: Sequence[TLE | TrackedObject],
    at: datetime,
    *,
    model: PropagationModel = PropagationModel.SECULAR,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> BatchResult[StateVector]:
    """Propagate many objects to one time.

    Decayed or diverged objects are reported in ``errors``; the rest are
    returned in input order.
    """
    return fan_out(
        partial(_propagate_one, at=at, model=model),
        list(objects),
        stage="propagate",
        object_id=_object_id,
        max_workers=max_workers,
        executor=executor,
    )


def _record_label(record: Sequence[str], index: int) -> int | str:
    try:
        line1 = record[-2] if len(record) >= 2 else ""
    except TypeError:
        line1 = ""
    field_ = line1[2:7].strip() if isinstance(line1, str) else ""
    return int(field_) if field_.isdigit() else f"record {index}"


def _unpack_record(record: Record) -> tuple[str, str, str]:
    if isinstance(record, (tuple, list)) and len(record) in (2, 3) and all(isinstance(f, str) for f in record):
        return ("", *record) if len(record) == 2 else tuple(record)
    raise MalformedLineError(f"Expected (line1, line2) or (name, line1, line2) strings, got {record!r}")


def parse_records(
    records: str | Iterable[Record],
    *,
    validate_checksum: bool = False,
) -> BatchResult[TLE]:
    """Parse many TLE records, collecting failures instead of raising.

    Args:
        records: Raw catalog text, or ``(line1, line2)`` / ``(name, line1, line2)``
            tuples. In text, each run of lines that fits no record shape is
            reported as one malformed record.
        validate_checksum: Reject records with a wrong checksum.
    """
    batch: BatchResult[TLE] = BatchResult()
    if isinstance(records, str):
        triples, rejected = scan_records(records)
        for group in rejected:
            error = MalformedLineError(f"Unrecognized TLE lines: {group!r}")
            batch.errors.append(ObjectFailure(object_id=_record_label(group, len(batch.errors)), stage="parse", error=error))
            logger.warning("Skipping malformed TLE record: %r", group)
        pending: list[Record] = list(triples)
    else:
        pending = list(records)

    for index, record in enumerate(pending):
        try:
            name, line1, line2 = _unpack_record(record)
            batch.results.append(
                parse_elements(line1, line2, name=name, validate_checksum=validate_checksum)
            )
        except ParseError as exc:
            batch.errors.append(ObjectFailure(object_id=_record_label(record, index), stage="parse", error=exc))
            logger.warning("Skipping unparseable TLE record %d: %s", index, exc)

    logger.debug("parse_records: %d parsed, %d rejected", len(batch.results), len(batch.errors))
    return batch


def parse_and_propagate(
    records: str | Iterable[Record],
    at: datetime,
    *,
    validate_checksum: bool = False,
    model: PropagationModel = PropagationModel.SECULAR,
    max_workers: int | None = None,
    executor: Executor | None = None,
) -> BatchResult[StateVector]:
    """Parse raw records and propagate every parsed object to ``at``.

    Parse and propagation failures are both reported per object.
    """
    parsed = parse_records(records, validate_checksum=validate_checksum)
    states = propagate_batch(parsed.results, at, model=model, max_workers=max_workers, executor=executor)
    states.errors[:0] = parsed.errors
    return states
