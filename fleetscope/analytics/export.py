"""
Flat export records for tabular serialisation by an external exporter.
Malformed samples are kept here even though the aggregators drop them.
"""

from typing import Iterable, List

from .samples import TelemetrySample

EXPORT_COLUMNS = ('timestamp', 'latitude', 'longitude', 'speed', 'speed_limit', 'is_violation', 'excess')
MAX_REPORTED_VIOLATIONS = 30


def export_records(samples: Iterable[TelemetrySample], speed_limit: float) -> List[dict]:
    records = []
    for sample in samples:
        is_violation = sample.speed > speed_limit
        values = (
            sample.timestamp.isoformat(),
            sample.latitude,
            sample.longitude,
            sample.speed,
            speed_limit,
            is_violation,
            round(sample.speed - speed_limit, 2) if is_violation else 0
        )
        records.append(dict(zip(EXPORT_COLUMNS, values)))
    return records


def violation_report(samples: Iterable[TelemetrySample], speed_limit: float,
                     limit: int = MAX_REPORTED_VIOLATIONS) -> dict:
    violations = [r for r in export_records(samples, speed_limit) if r['is_violation']]
    return {
        'speed_limit': speed_limit,
        'total_violations': len(violations),
        'violations': violations[:limit],
        'truncated': len(violations) > limit
    }
