"""
Period-over-period traffic comparison.

Each period is a half-open window ``[now - (i+1)*days, now - i*days)``.
Distance is summed over consecutive samples of the flat fleet-wide list,
so adjacent samples from different vehicles contribute a jump between
them. Totals are kept that way for parity with the figures reported so far.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence

from .geo import percent_change, planar_distance_km, safe_ratio
from .samples import TelemetrySample, clean_samples
from .traffic import TrafficAggregator

DEFAULT_PERIODS = (0, 1, 2)


def period_label(ordinal: int) -> str:
    if ordinal == 0:
        return "Current"
    if ordinal == 1:
        return "Previous"
    return f"{ordinal} Periods Ago"


@dataclass
class PeriodSummary:
    period_label: str
    ordinal: int
    start: datetime
    end: datetime
    sample_count: int = 0
    total_distance: float = 0.0
    avg_speed: float = 0.0
    peak_hour: int = 0
    deltas: Dict[str, Optional[float]] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'period': self.period_label,
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'total_trips': self.sample_count,
            'total_distance_km': round(self.total_distance, 1),
            'avg_speed': round(self.avg_speed, 1),
            'peak_hour': self.peak_hour,
            'deltas': {k: (round(v, 1) if v is not None else None) for k, v in self.deltas.items()}
        }


class PeriodComparator:
    def __init__(self, days: int = 7, tz: Optional[tzinfo] = None):
        if days <= 0:
            raise ValueError("days must be positive")
        self.days = days
        self.aggregator = TrafficAggregator(tz=tz)

    def window(self, ordinal: int, now: datetime):
        span = timedelta(days=self.days)
        return now - span * (ordinal + 1), now - span * ordinal

    def summarize(self, samples: List[TelemetrySample], ordinal: int, now: datetime) -> PeriodSummary:
        start, end = self.window(ordinal, now)
        points = [s for s in samples if start <= s.timestamp < end]

        total_distance = 0.0
        for prev, point in zip(points, points[1:]):
            total_distance += planar_distance_km(prev.latitude, prev.longitude,
                                                 point.latitude, point.longitude)

        report = self.aggregator.aggregate(points)
        return PeriodSummary(
            period_label=period_label(ordinal),
            ordinal=ordinal,
            start=start,
            end=end,
            sample_count=len(points),
            total_distance=total_distance,
            avg_speed=safe_ratio(sum(p.speed for p in points), len(points)),
            peak_hour=report.peak_hour
        )

    def compare(self, samples: Iterable[TelemetrySample],
                periods: Sequence[int] = DEFAULT_PERIODS,
                now: Optional[datetime] = None) -> List[PeriodSummary]:
        now = now or datetime.now(timezone.utc)
        cleaned = clean_samples(samples)
        summaries = [self.summarize(cleaned, ordinal, now) for ordinal in periods]

        by_ordinal = {s.ordinal: s for s in summaries}
        for summary in summaries:
            previous = by_ordinal.get(summary.ordinal + 1)
            if previous is None:
                continue
            summary.deltas = {
                'sample_count': percent_change(summary.sample_count, previous.sample_count),
                'total_distance': percent_change(summary.total_distance, previous.total_distance),
                'avg_speed': percent_change(summary.avg_speed, previous.avg_speed)
            }
        return summaries
