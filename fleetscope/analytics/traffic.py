"""
Hourly Traffic Aggregator
Buckets samples by hour of day into activity and speed histograms.
"""

from dataclasses import dataclass
from datetime import timezone, tzinfo
from typing import Iterable, List, Optional

from .geo import safe_ratio
from .samples import TelemetrySample, clean_samples

HOURS_PER_DAY = 24
TOP_HOURS = 5


@dataclass
class HourlyBucket:
    hour: int
    sample_count: int = 0
    speed_sum: float = 0.0

    @property
    def avg_speed(self) -> float:
        return safe_ratio(self.speed_sum, self.sample_count)

    def to_dict(self) -> dict:
        return {
            'hour': self.hour,
            'label': f"{self.hour:02d}:00",
            'count': self.sample_count,
            'avg_speed': round(self.avg_speed, 1)
        }


def peak_hour(buckets: List[HourlyBucket]) -> int:
    if not buckets:
        return 0
    best = buckets[0]
    for bucket in buckets[1:]:
        if bucket.sample_count > best.sample_count:
            best = bucket
    return best.hour


@dataclass
class TrafficReport:
    buckets: List[HourlyBucket]
    peak_hour: int

    @property
    def total_samples(self) -> int:
        return sum(b.sample_count for b in self.buckets)

    @property
    def avg_speed(self) -> float:
        return safe_ratio(sum(b.speed_sum for b in self.buckets), self.total_samples)

    def busiest_hours(self, limit: int = TOP_HOURS) -> List[HourlyBucket]:
        return sorted(self.buckets, key=lambda b: -b.sample_count)[:limit]

    def quietest_hours(self, limit: int = TOP_HOURS) -> List[HourlyBucket]:
        return sorted(self.buckets, key=lambda b: b.sample_count)[:limit]

    def to_dict(self) -> dict:
        return {
            'hourly': [b.to_dict() for b in self.buckets],
            'peak_hour': self.peak_hour,
            'total_samples': self.total_samples,
            'avg_speed': round(self.avg_speed, 1),
            'busiest_hours': [b.to_dict() for b in self.busiest_hours()],
            'quietest_hours': [b.to_dict() for b in self.quietest_hours()]
        }


class TrafficAggregator:
    def __init__(self, tz: Optional[tzinfo] = None):
        self.tz = tz or timezone.utc

    def hour_of(self, sample: TelemetrySample) -> int:
        return sample.timestamp.astimezone(self.tz).hour

    def bucket(self, samples: Iterable[TelemetrySample]) -> List[HourlyBucket]:
        buckets = [HourlyBucket(hour=h) for h in range(HOURS_PER_DAY)]
        for sample in clean_samples(samples):
            bucket = buckets[self.hour_of(sample)]
            bucket.sample_count += 1
            bucket.speed_sum += sample.speed
        return buckets

    def aggregate(self, samples: Iterable[TelemetrySample]) -> TrafficReport:
        buckets = self.bucket(samples)
        return TrafficReport(buckets=buckets, peak_hour=peak_hour(buckets))
