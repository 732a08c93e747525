"""
Speed Compliance Segment Classifier
Walks a vehicle's ordered samples and labels every inter-sample segment
as normal or violation against the vehicle's speed limit.
The originating sample's speed decides a segment's label.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

from .geo import planar_distance_km, safe_ratio
from .samples import TelemetrySample, VehicleTrack, clean_samples

DistanceFn = Callable[[float, float, float, float], float]


@dataclass(frozen=True)
class RouteSegment:
    from_sample: TelemetrySample
    to_sample: TelemetrySample
    is_violation: bool
    distance_km: float

    @property
    def coordinates(self) -> List[List[float]]:
        return [
            [self.from_sample.longitude, self.from_sample.latitude],
            [self.to_sample.longitude, self.to_sample.latitude]
        ]


@dataclass
class TrackSummary:
    total_distance: float = 0.0
    violation_count: int = 0
    avg_speed: float = 0.0
    max_speed: float = 0.0
    sample_count: int = 0

    def to_dict(self) -> dict:
        return {
            'total_distance_km': round(self.total_distance, 3),
            'violation_count': self.violation_count,
            'avg_speed': round(self.avg_speed, 1),
            'max_speed': round(self.max_speed, 1),
            'sample_count': self.sample_count
        }


@dataclass
class ClassifiedTrack:
    track: VehicleTrack
    segments: List[RouteSegment] = field(default_factory=list)
    normal: List[RouteSegment] = field(default_factory=list)
    violations: List[RouteSegment] = field(default_factory=list)
    summary: TrackSummary = field(default_factory=TrackSummary)

    def path_coordinates(self, violation: bool) -> List[List[float]]:
        coords = []
        for segment in (self.violations if violation else self.normal):
            coords.extend(segment.coordinates)
        return coords

    def to_dict(self) -> dict:
        return {
            'vehicle_id': self.track.vehicle_id,
            'label': self.track.label,
            'color': self.track.color,
            'speed_limit': self.track.speed_limit,
            'segment_count': len(self.segments),
            'normal_path': self.path_coordinates(violation=False),
            'violation_path': self.path_coordinates(violation=True),
            'summary': self.summary.to_dict()
        }


class SegmentClassifier:
    def __init__(self, distance_fn: DistanceFn = planar_distance_km):
        self.distance_fn = distance_fn

    def classify(self, track: VehicleTrack) -> ClassifiedTrack:
        samples = clean_samples(track.samples)
        result = ClassifiedTrack(track=track)

        for current, nxt in zip(samples, samples[1:]):
            segment = RouteSegment(
                from_sample=current,
                to_sample=nxt,
                is_violation=current.speed > track.speed_limit,
                distance_km=self.distance_fn(current.latitude, current.longitude,
                                             nxt.latitude, nxt.longitude)
            )
            result.segments.append(segment)
            if segment.is_violation:
                result.violations.append(segment)
            else:
                result.normal.append(segment)

        speeds = [s.speed for s in samples]
        result.summary = TrackSummary(
            total_distance=sum(seg.distance_km for seg in result.segments),
            violation_count=len(result.violations),
            avg_speed=safe_ratio(sum(speeds), len(speeds)),
            max_speed=max(speeds) if speeds else 0.0,
            sample_count=len(samples)
        )
        return result


@dataclass
class TripSummary:
    duration_minutes: float
    total_points: int
    moving_points: int
    stopped_points: int
    start_time: Optional[datetime]
    end_time: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            'duration_minutes': round(self.duration_minutes, 1),
            'total_points': self.total_points,
            'moving_points': self.moving_points,
            'stopped_points': self.stopped_points,
            'start_time': self.start_time.isoformat() if self.start_time else None,
            'end_time': self.end_time.isoformat() if self.end_time else None
        }


MOVING_SPEED_KMH = 5


def summarize_trip(samples: List[TelemetrySample]) -> TripSummary:
    if not samples:
        return TripSummary(0.0, 0, 0, 0, None, None)

    start, end = samples[0].timestamp, samples[-1].timestamp
    moving = len([s for s in samples if s.speed > MOVING_SPEED_KMH])
    return TripSummary(
        duration_minutes=(end - start).total_seconds() / 60,
        total_points=len(samples),
        moving_points=moving,
        stopped_points=len(samples) - moving,
        start_time=start,
        end_time=end
    )
