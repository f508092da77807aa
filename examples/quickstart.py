"""OrbitEdge quickstart: parse a TLE, propagate it and score its risk."""

from datetime import timedelta

from orbitedge import DesignFlags, TrackedObject, assess_object, parse_tle, propagate

tle_text = """
ISS (ZARYA)
1 25544U 98067A   24045.54896019  .00016717  00000-0  30093-3 0  9997
2 25544  51.6412 207.4925 0004948 290.5508 178.9792 15.49583488439592
CSS (TIANHE)
1 48274U 21035A   24045.50261574  .00021540  00000-0  25163-3 0  9993
2 48274  41.4681 279.1498 0005372 149.8847 345.3740 15.62096269157015
""".strip()

tles = parse_tle(tle_text)
iss = tles[0]

print(f"Satellite: {iss.name}")
print(f"NORAD ID:  {iss.norad_id}")
print(f"Epoch:     {iss.epoch}")
print(f"Incl:      {iss.inclination_deg:.4f}°")
print(f"Period:    {iss.period_minutes:.1f} min")

state = propagate(iss, iss.epoch + timedelta(hours=1))
print(f"Position:  {state.latitude_deg:.2f}°, {state.longitude_deg:.2f}°, {state.altitude_km:.1f} km")

objects = [TrackedObject.from_tle(t) for t in tles]
design = DesignFlags(explosion_prevention=True, active_deorbit=False, maneuverable=True)
report = assess_object(objects[0], objects, design, iss.epoch, horizon_hours=6)

print(f"Risk:      {report.overall_risk.value} (score {report.risk_score:.0f})")
for record in report.compliance:
    print(f"  {record.requirement_id}: {record.status.value} ({record.score})")
for line in report.recommendations:
    print(f"  - {line}")
