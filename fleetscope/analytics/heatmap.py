"""
Signal and movement heatmaps
Signal readings are averaged per ~110 m grid cell; movement density counts
moving and stationary points and flags crowded cells as hotspots.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from .geo import GridKey, planar_distance_km, safe_ratio
from .samples import TelemetrySample, clean_samples

WEAK_SIGNAL = 30
STRONG_SIGNAL = 70


@dataclass
class HeatPoint:
    key: GridKey
    signals: List[float] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.signals)

    @property
    def avg_signal(self) -> float:
        return safe_ratio(sum(self.signals), len(self.signals))

    def to_dict(self) -> dict:
        return {
            'lat': self.key.lat,
            'lng': self.key.lng,
            'avg_signal': round(self.avg_signal, 1),
            'sample_count': self.count
        }


@dataclass
class SignalHeatmap:
    points: List[HeatPoint]

    @property
    def total_points(self) -> int:
        return len(self.points)

    @property
    def avg_signal(self) -> float:
        return safe_ratio(sum(p.avg_signal for p in self.points), len(self.points))

    @property
    def weak_signal_areas(self) -> int:
        return len([p for p in self.points if p.avg_signal < WEAK_SIGNAL])

    @property
    def strong_signal_areas(self) -> int:
        return len([p for p in self.points if p.avg_signal > STRONG_SIGNAL])

    def stats(self) -> dict:
        return {
            'total_points': self.total_points,
            'avg_signal': round(self.avg_signal),
            'weak_signal_areas': self.weak_signal_areas,
            'strong_signal_areas': self.strong_signal_areas
        }

    def to_geojson(self) -> dict:
        return {
            'type': 'FeatureCollection',
            'features': [{
                'type': 'Feature',
                'properties': {'signal': p.avg_signal, 'count': p.count},
                'geometry': {'type': 'Point', 'coordinates': [p.key.lng, p.key.lat]}
            } for p in self.points]
        }


class SignalHeatmapAggregator:
    PRECISION = 3

    def __init__(self, precision: int = PRECISION):
        self.precision = precision

    def aggregate(self, samples: Iterable[TelemetrySample]) -> SignalHeatmap:
        cells: Dict[GridKey, HeatPoint] = {}
        for sample in clean_samples(samples):
            if sample.signal_strength is None:
                continue
            key = GridKey.from_coordinates(sample.latitude, sample.longitude, self.precision)
            if key not in cells:
                cells[key] = HeatPoint(key=key)
            cells[key].signals.append(sample.signal_strength)
        return SignalHeatmap(points=list(cells.values()))


class MovementHeatmap:
    MOVING_SPEED_KMH = 5
    HOTSPOT_RADIUS_KM = 0.1
    HOTSPOT_MIN_NEIGHBOURS = 10
    PRECISION = 3

    FILTERS = ('all', 'moving', 'stationary')

    def filter(self, samples: Iterable[TelemetrySample], mode: str = 'all') -> List[TelemetrySample]:
        points = clean_samples(samples)
        if mode == 'moving':
            return [p for p in points if p.speed > self.MOVING_SPEED_KMH and p.engine_on]
        if mode == 'stationary':
            return [p for p in points if p.speed <= self.MOVING_SPEED_KMH]
        return points

    def hotspots(self, points: List[TelemetrySample]) -> List[GridKey]:
        found: Dict[GridKey, None] = {}
        for i, point in enumerate(points):
            neighbours = 0
            for j, other in enumerate(points):
                if i == j:
                    continue
                if planar_distance_km(point.latitude, point.longitude,
                                      other.latitude, other.longitude) < self.HOTSPOT_RADIUS_KM:
                    neighbours += 1
                    if neighbours >= self.HOTSPOT_MIN_NEIGHBOURS:
                        break
            if neighbours >= self.HOTSPOT_MIN_NEIGHBOURS:
                found[GridKey.from_coordinates(point.latitude, point.longitude, self.PRECISION)] = None
        return list(found)

    def analyze(self, samples: Iterable[TelemetrySample], mode: str = 'all') -> dict:
        points = self.filter(samples, mode)
        moving = len([p for p in points if p.speed > self.MOVING_SPEED_KMH])
        return {
            'total_points': len(points),
            'moving_points': moving,
            'stationary_points': len(points) - moving,
            'hotspots': len(self.hotspots(points)),
            'features': [{
                'type': 'Feature',
                'properties': {'speed': p.speed, 'weight': 2 if p.speed > self.MOVING_SPEED_KMH else 1},
                'geometry': {'type': 'Point', 'coordinates': [p.longitude, p.latitude]}
            } for p in points]
        }
