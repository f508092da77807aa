"""TLE (Two-Line Element) parsing.

Decodes the fixed-width two-line element format into an immutable
orbital element set. Parsing is a pure function of the two lines.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sgp4.api import Satrec, WGS72

from orbitedge.utils.constants import (
    DEEP_SPACE_PERIOD_MIN,
    EARTH_MU_KM3_S2 as MU,
    EARTH_RADIUS_KM as RE,
    MINUTES_PER_DAY,
)

logger = logging.getLogger(__name__)

TLE_LINE_LENGTH = 69


class ParseError(ValueError):
    """A TLE record could not be decoded."""


class MalformedLineError(ParseError):
    """A line has the wrong prefix, length, or an unreadable field."""


class ChecksumMismatchError(ParseError):
    """The modulo-10 checksum in column 69 does not match the line."""


class OutOfRangeError(ParseError):
    """A decoded element is physically implausible."""


@dataclass(frozen=True)
class TLE:
    """A parsed Two-Line Element set.

    Attributes:
        name: Satellite name (line 0, if provided).
        line1: Raw TLE line 1.
        line2: Raw TLE line 2.
        norad_id: NORAD catalog number.
        epoch: Epoch as a UTC datetime.
        inclination_deg: Orbital inclination in degrees.
        raan_deg: Right ascension of ascending node in degrees.
        eccentricity: Orbital eccentricity (dimensionless).
        arg_perigee_deg: Argument of perigee in degrees.
        mean_anomaly_deg: Mean anomaly in degrees.
        mean_motion_rev_per_day: Mean motion in revolutions per day.
        bstar: BSTAR drag term (inverse Earth radii).
        mean_motion_dot: First derivative of mean motion / 2 (rev/day²).
        international_designator: Launch designator, e.g. ``98067A``.
        revolution_number: Revolution number at epoch.
    """

    name: str
    line1: str
    line2: str
    norad_id: int
    epoch: datetime
    inclination_deg: float
    raan_deg: float
    eccentricity: float
    arg_perigee_deg: float
    mean_anomaly_deg: float
    mean_motion_rev_per_day: float
    bstar: float
    mean_motion_dot: float = 0.0
    international_designator: str = ""
    revolution_number: int = 0

    @classmethod
    def from_lines(
        cls, line1: str, line2: str, name: str = "", *, validate_checksum: bool = False
    ) -> TLE:
        """Parse a TLE from two (or three) lines.

        Args:
            line1: TLE line 1 (69 characters).
            line2: TLE line 2 (69 characters).
            name: Optional satellite name (line 0).
            validate_checksum: Reject lines whose column-69 checksum is wrong.

        Returns:
            A parsed TLE object.

        Raises:
            MalformedLineError: If either line fails the prefix/length checks
                or holds an unreadable field.
            ChecksumMismatchError: If checksum validation is on and fails.
            OutOfRangeError: If eccentricity or mean motion is implausible.
        """
        return parse_elements(line1, line2, name=name, validate_checksum=validate_checksum)

    @property
    def period_minutes(self) -> float:
        """Orbital period in minutes."""
        return MINUTES_PER_DAY / self.mean_motion_rev_per_day

    @property
    def semi_major_axis_km(self) -> float:
        """Keplerian semi-major axis in km derived from mean motion."""
        n_rad_per_sec = self.mean_motion_rev_per_day * 2 * math.pi / 86400.0
        return (MU / (n_rad_per_sec ** 2)) ** (1.0 / 3.0)

    @property
    def perigee_altitude_km(self) -> float:
        return self.semi_major_axis_km * (1 - self.eccentricity) - RE

    @property
    def apogee_altitude_km(self) -> float:
        return self.semi_major_axis_km * (1 + self.eccentricity) - RE

    @property
    def is_deep_space(self) -> bool:
        """True when the period is long enough for the deep-space branch."""
        return self.period_minutes >= DEEP_SPACE_PERIOD_MIN

    def to_satrec(self) -> Satrec:
        """Build an sgp4 library record from the raw lines."""
        return Satrec.twoline2rv(self.line1, self.line2, WGS72)

    def __str__(self) -> str:
        header = f"0 {self.name}\n" if self.name else ""
        return f"{header}{self.line1}\n{self.line2}"


OrbitalElementSet = TLE


def tle_checksum(line: str) -> int:
    """Modulo-10 checksum over the first 68 columns.

    Digits count at face value, minus signs count as 1, everything else 0.
    """
    total = 0
    for char in line[:68]:
        if char.isdigit():
            total += int(char)
        elif char == "-":
            total += 1
    return total % 10


def _implied_decimal(field: str) -> float:
    """Decode a field like `` 30093-3`` into 0.30093e-3."""
    field = field.strip()
    if not field:
        return 0.0
    sign = -1.0 if field[0] == "-" else 1.0
    if field[0] in "+-":
        field = field[1:]
    mantissa, exponent = field[:-2].strip(), field[-2:]
    return sign * float(f"0.{mantissa}") * 10.0 ** int(exponent)


def _epoch(field: str) -> datetime:
    year = int(field[:2])
    year = year + 2000 if year < 57 else year + 1900
    day_of_year = float(field[2:])
    return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_of_year - 1)


def _check_line(line: str, number: int, validate_checksum: bool) -> None:
    if len(line) != TLE_LINE_LENGTH or not line.startswith(f"{number} "):
        logger.error("Invalid TLE line %d: %r", number, line)
        raise MalformedLineError(f"Invalid TLE line {number}: {line!r}")
    if validate_checksum:
        if not line[68].isdigit() or int(line[68]) != tle_checksum(line):
            raise ChecksumMismatchError(
                f"Checksum mismatch on TLE line {number}: expected {tle_checksum(line)}, got {line[68]!r}"
            )


def parse_elements(
    line1: str, line2: str, *, name: str = "", validate_checksum: bool = False
) -> TLE:
    """Decode a line pair into an orbital element set.

    Raises:
        MalformedLineError, ChecksumMismatchError, OutOfRangeError
    """
    line1 = line1.strip()
    line2 = line2.strip()
    _check_line(line1, 1, validate_checksum)
    _check_line(line2, 2, validate_checksum)

    try:
        norad_id = int(line1[2:7])
        line2_norad_id = int(line2[2:7])
        epoch = _epoch(line1[18:32])
        mean_motion_dot = float(line1[33:43])
        bstar = _implied_decimal(line1[53:61])

        inclination = float(line2[8:16])
        raan = float(line2[17:25])
        eccentricity = float(f"0.{line2[26:33].strip()}")
        arg_perigee = float(line2[34:42])
        mean_anomaly = float(line2[43:51])
        mean_motion = float(line2[52:63])
        rev_field = line2[63:68].strip()
        revolution_number = int(rev_field) if rev_field else 0
    except ValueError as exc:
        raise MalformedLineError(f"Unreadable TLE field: {exc}") from exc

    if line2_norad_id != norad_id:
        raise MalformedLineError(f"Catalog number mismatch between lines: {norad_id} vs {line2_norad_id}")
    if not 0.0 <= eccentricity < 1.0:
        raise OutOfRangeError(f"Eccentricity {eccentricity} outside [0, 1) for NORAD {norad_id}")
    if mean_motion <= 0.0:
        raise OutOfRangeError(f"Mean motion {mean_motion} must be positive for NORAD {norad_id}")
    if not 0.0 <= inclination <= 180.0:
        raise OutOfRangeError(f"Inclination {inclination} outside [0, 180] for NORAD {norad_id}")
    for label, angle in (("RAAN", raan), ("argument of perigee", arg_perigee), ("mean anomaly", mean_anomaly)):
        if not 0.0 <= angle <= 360.0:
            raise OutOfRangeError(f"{label} {angle} outside [0, 360] for NORAD {norad_id}")

    logger.debug("Parsed TLE for NORAD %d (epoch %s)", norad_id, epoch.isoformat())

    return TLE(
        name=name.strip(),
        line1=line1,
        line2=line2,
        norad_id=norad_id,
        epoch=epoch,
        inclination_deg=inclination,
        raan_deg=raan,
        eccentricity=eccentricity,
        arg_perigee_deg=arg_perigee,
        mean_anomaly_deg=mean_anomaly,
        mean_motion_rev_per_day=mean_motion,
        bstar=bstar,
        mean_motion_dot=mean_motion_dot,
        international_designator=line1[9:17].strip(),
        revolution_number=revolution_number,
    )


def scan_records(text: str) -> tuple[list[tuple[str, str, str]], list[list[str]]]:
    """Split raw catalog text into ``(name, line1, line2)`` triples.

    Handles both 2-line and 3-line (with name) formats. Lines that fit
    neither shape are returned separately, contiguous runs grouped
    together as one rejected record.

    Returns:
        Tuple of (records, rejected_line_groups).
    """
    lines = [l.rstrip() for l in text.strip().splitlines() if l.strip()]
    records: list[tuple[str, str, str]] = []
    rejected: list[list[str]] = []
    pending: list[str] = []
    i = 0

    while i < len(lines):
        if lines[i].startswith("1 ") and i + 1 < len(lines) and lines[i + 1].startswith("2 "):
            if pending:
                rejected.append(pending)
                pending = []
            records.append(("", lines[i], lines[i + 1]))
            i += 2
        elif (
            not lines[i].startswith("1 ")
            and not lines[i].startswith("2 ")
            and i + 2 < len(lines)
            and lines[i + 1].startswith("1 ")
            and lines[i + 2].startswith("2 ")
        ):
            if pending:
                rejected.append(pending)
                pending = []
            name = lines[i][2:] if lines[i].startswith("0 ") else lines[i]
            records.append((name, lines[i + 1], lines[i + 2]))
            i += 3
        else:
            logger.debug("Skipping unrecognized TLE text line: %r", lines[i])
            pending.append(lines[i])
            i += 1

    if pending:
        rejected.append(pending)
    return records, rejected


def split_records(text: str) -> list[tuple[str, str, str]]:
    """``(name, line1, line2)`` triples from raw text, skipping unrecognized lines."""
    return scan_records(text)[0]


def parse_tle(text: str, *, validate_checksum: bool = False) -> list[TLE]:
    """Parse one or more TLEs from text.

    Args:
        text: Raw TLE text, one or more TLE sets separated by newlines.
        validate_checksum: Reject records with a wrong checksum.

    Returns:
        A list of parsed TLE objects.

    Raises:
        ParseError: On the first record that fails to decode. Use
            :func:`orbitedge.core.batch.parse_records` to collect failures
            instead.
    """
    tles = [
        parse_elements(line1, line2, name=name, validate_checksum=validate_checksum)
        for name, line1, line2 in split_records(text)
    ]
    logger.debug("Parsed %d TLEs from text", len(tles))
    return tles
