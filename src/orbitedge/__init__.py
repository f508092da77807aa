"""
OrbitEdge: Orbital object risk engine for Python.

Parses two-line element sets, propagates them to Earth-fixed positions,
screens for close approaches and scores each object for collision risk
and ISO 24113 debris-mitigation compliance.
"""

from __future__ import annotations

__version__ = "0.1.0-dev"

from orbitedge.core.tle import (
    TLE,
    ParseError,
    MalformedLineError,
    ChecksumMismatchError,
    OutOfRangeError,
    parse_elements,
    parse_tle,
)
from orbitedge.core.propagation import (
    PropagationModel,
    PropagationError,
    DecayedError,
    NumericDivergenceError,
    StateVector,
    propagate,
    propagate_many,
    ephemeris,
)
from orbitedge.core.catalog import Catalog, ObjectClass, TrackedObject
from orbitedge.core.probability import RiskLevel, collision_probability, risk_level
from orbitedge.core.screening import ConjunctionEvent, assess_conjunction, find_closest_approach, screen, screen_catalog
from orbitedge.core.compliance import ComplianceRecord, ComplianceStatus, DesignFlags, MetadataMissingError, evaluate
from orbitedge.core.risk import RiskAssessment, assess_batch, assess_object, assess_risk
from orbitedge.core.batch import BatchResult, ObjectFailure, parse_and_propagate, parse_records, propagate_batch

__all__ = [
    "__version__",
    "TLE",
    "ParseError",
    "MalformedLineError",
    "ChecksumMismatchError",
    "OutOfRangeError",
    "parse_elements",
    "parse_tle",
    "PropagationModel",
    "PropagationError",
    "DecayedError",
    "NumericDivergenceError",
    "StateVector",
    "propagate",
    "propagate_many",
    "ephemeris",
    "Catalog",
    "ObjectClass",
    "TrackedObject",
    "RiskLevel",
    "collision_probability",
    "risk_level",
    "ConjunctionEvent",
    "assess_conjunction",
    "find_closest_approach",
    "screen",
    "screen_catalog",
    "ComplianceRecord",
    "ComplianceStatus",
    "DesignFlags",
    "MetadataMissingError",
    "evaluate",
    "RiskAssessment",
    "assess_batch",
    "assess_object",
    "assess_risk",
    "BatchResult",
    "ObjectFailure",
    "parse_and_propagate",
    "parse_records",
    "propagate_batch",
]
