"""OrbitEdge Batch Screening: parse a catalog, find close pairs and assess many objects.

One corrupt record does not stop the batch; it is reported in ``errors``.
"""

import logging
from datetime import datetime, timezone

from orbitedge import Catalog, DesignFlags, TrackedObject, assess_batch, parse_records, screen_catalog

logging.basicConfig(level=logging.INFO)

catalog_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592
HST
1 20580U 90037B   24045.55478014  .00001456  00000-0  73052-4 0  9990
2 20580  28.4701  41.0696 0002622 348.3544 140.2428 15.09435694872912
BROKEN RECORD
1 99999U garbage
NOAA 18
1 28654U 05018A   24045.52083333  .00000149  00000-0  10834-3 0  9994
2 28654  98.9710 100.7890 0014048 313.6230  46.3750 14.12905012970120
""".strip()

parsed = parse_records(catalog_text)
for failure in parsed.errors:
    print(f"rejected {failure.object_id}: {failure.kind} {failure.message}")

catalog = Catalog(TrackedObject.from_tle(t) for t in parsed.results)
at = datetime(2024, 2, 14, 14, 0, tzinfo=timezone.utc)

pairs = screen_catalog(list(catalog), at, threshold_km=5000)
for event in pairs.results:
    print(f"{event.primary_id} vs {event.secondary_id}: {event.miss_distance_km:.0f} km")

design = DesignFlags(explosion_prevention=True, active_deorbit=False, maneuverable=False)
reports = assess_batch([(obj, design) for obj in catalog], catalog, at, horizon_hours=2)
for report in reports.results:
    print(f"{report.object_id}: {report.overall_risk.value} ({report.risk_score:.0f})")
for failure in reports.errors:
    print(f"failed {failure.object_id}: {failure.message}")
