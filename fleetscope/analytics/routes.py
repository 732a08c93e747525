"""
Busiest Route Clusterer
Collapses consecutive in-vehicle displacements onto a ~1.1 km grid and
ranks the resulting start->end cells by how often they are traversed.
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Tuple

from .geo import GridKey, planar_distance_km, safe_ratio
from .samples import TelemetrySample, clean_samples

RouteKey = Tuple[GridKey, GridKey]


@dataclass
class RouteCluster:
    start_key: GridKey
    end_key: GridKey
    traversal_count: int = 0
    speed_sum: float = 0.0
    distance_sum: float = 0.0

    @property
    def avg_speed(self) -> float:
        return safe_ratio(self.speed_sum, self.traversal_count)

    @property
    def avg_distance(self) -> float:
        return safe_ratio(self.distance_sum, self.traversal_count)

    def to_dict(self) -> dict:
        return {
            'start': self.start_key.label(),
            'end': self.end_key.label(),
            'count': self.traversal_count,
            'avg_speed': round(self.avg_speed, 1),
            'distance_km': round(self.avg_distance, 2)
        }


def group_by_vehicle(samples: Iterable[TelemetrySample]) -> Dict[Optional[str], List[TelemetrySample]]:
    groups: Dict[Optional[str], List[TelemetrySample]] = defaultdict(list)
    for sample in samples:
        groups[sample.vehicle_id].append(sample)
    return groups


class RouteClusterer:
    PRECISION = 2
    MIN_SEGMENT_KM = 0.1
    TOP_N = 10

    def __init__(self, trip_gap: Optional[timedelta] = timedelta(minutes=30),
                 precision: int = PRECISION):
        self.trip_gap = trip_gap
        self.precision = precision

    def _splits_trip(self, p1: TelemetrySample, p2: TelemetrySample) -> bool:
        if self.trip_gap is None:
            return False
        return p2.timestamp - p1.timestamp > self.trip_gap

    def cluster(self, samples: Iterable[TelemetrySample]) -> List[RouteCluster]:
        clusters: Dict[RouteKey, RouteCluster] = {}

        for points in group_by_vehicle(clean_samples(samples)).values():
            for p1, p2 in zip(points, points[1:]):
                if self._splits_trip(p1, p2):
                    continue

                distance = planar_distance_km(p1.latitude, p1.longitude, p2.latitude, p2.longitude)
                if distance <= self.MIN_SEGMENT_KM:
                    continue

                start = GridKey.from_coordinates(p1.latitude, p1.longitude, self.precision)
                end = GridKey.from_coordinates(p2.latitude, p2.longitude, self.precision)
                cluster = clusters.get((start, end))
                if cluster is None:
                    cluster = clusters[(start, end)] = RouteCluster(start_key=start, end_key=end)

                cluster.traversal_count += 1
                cluster.speed_sum += p1.speed
                cluster.distance_sum += distance

        return list(clusters.values())

    def top_routes(self, samples: Iterable[TelemetrySample], limit: int = TOP_N) -> List[RouteCluster]:
        ranked = sorted(self.cluster(samples), key=lambda c: -c.traversal_count)
        return ranked[:limit]
