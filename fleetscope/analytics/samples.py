"""
Telemetry sample and track types
Samples are immutable once fetched; tracks group one vehicle's samples for a session.
"""

import math
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

TRACK_COLORS = [
    {'primary': '#3b82f6', 'violation': '#1e40af'},
    {'primary': '#10b981', 'violation': '#047857'},
    {'primary': '#f59e0b', 'violation': '#d97706'},
    {'primary': '#8b5cf6', 'violation': '#6d28d9'},
]


def parse_timestamp(value) -> datetime:
    if isinstance(value, datetime):
        ts = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _optional_float(value) -> Optional[float]:
    if value is None or value == '':
        return None
    return float(value)


@dataclass(frozen=True)
class TelemetrySample:
    timestamp: datetime
    latitude: Optional[float]
    longitude: Optional[float]
    speed: float = 0.0
    heading: Optional[float] = None
    vehicle_id: Optional[str] = None
    signal_strength: Optional[float] = None
    engine_on: Optional[bool] = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @classmethod
    def from_row(cls, row: dict) -> 'TelemetrySample':
        """Build a sample from a store row (``vehicle_telemetry`` column names)."""
        speed = row.get('speed_kmh', row.get('speed'))
        return cls(
            timestamp=parse_timestamp(row.get('created_at') or row.get('timestamp')),
            latitude=_optional_float(row.get('latitude')),
            longitude=_optional_float(row.get('longitude')),
            speed=float(speed or 0),
            heading=_optional_float(row.get('heading')),
            vehicle_id=str(row['vehicle_id']) if row.get('vehicle_id') is not None else None,
            signal_strength=_optional_float(row.get('gps_signal_strength', row.get('signal_strength'))),
            engine_on=row.get('engine_on')
        )

    def to_dict(self) -> dict:
        return {
            'timestamp': self.timestamp.isoformat(),
            'latitude': self.latitude,
            'longitude': self.longitude,
            'speed': self.speed,
            'heading': self.heading,
            'vehicle_id': self.vehicle_id
        }


def clean_samples(samples: Iterable[TelemetrySample]) -> List[TelemetrySample]:
    """Drop samples with a missing latitude or longitude, preserving order."""
    return [s for s in samples if s.has_coordinates]


@dataclass
class VehicleTrack:
    vehicle_id: str
    label: str
    speed_limit: float
    samples: List[TelemetrySample] = field(default_factory=list)
    color: str = TRACK_COLORS[0]['primary']

    def __post_init__(self):
        self.samples = clean_samples(self.samples)

    def __len__(self):
        return len(self.samples)

    def sample_at(self, index: float) -> Optional[TelemetrySample]:
        if not self.samples:
            return None
        position = min(max(math.floor(index), 0), len(self.samples) - 1)
        return self.samples[position]
