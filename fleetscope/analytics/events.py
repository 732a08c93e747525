"""
Trip Event Detector
Stops, idles and speeding episodes along a route, plus short driving insights.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from .geo import safe_ratio
from .samples import TelemetrySample


@dataclass
class TripEvent:
    type: str
    latitude: float
    longitude: float
    start_time: datetime
    end_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    speed: Optional[float] = None
    description: str = ''

    def to_dict(self) -> dict:
        return {
            'type': self.type,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'start_time': self.start_time.isoformat(),
            'end_time': self.end_time.isoformat() if self.end_time else None,
            'duration_minutes': self.duration_minutes,
            'speed': self.speed,
            'description': self.description
        }


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    return f"{minutes // 60}h {minutes % 60}m"


def _whole_minutes(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


class TripEventDetector:
    STOP_SPEED_KMH = 3
    MIN_STOP_MINUTES = 2
    MIN_IDLE_MINUTES = 5
    SPEEDING_MERGE_MINUTES = 2

    def __init__(self, speed_limit: float = 100):
        self.speed_limit = speed_limit

    def detect(self, samples: List[TelemetrySample]) -> List[TripEvent]:
        if len(samples) < 2:
            return []

        events: List[TripEvent] = []
        stop_start: Optional[TelemetrySample] = None
        idle_start: Optional[TelemetrySample] = None

        for point in samples:
            slow = point.speed <= self.STOP_SPEED_KMH
            is_stopped = slow and point.engine_on is False
            is_idle = slow and point.engine_on is True

            if is_stopped and stop_start is None:
                stop_start = point
            elif not is_stopped and stop_start is not None:
                self._close_dwell(events, 'stop', stop_start, point)
                stop_start = None

            if is_idle and idle_start is None:
                idle_start = point
            elif not is_idle and idle_start is not None:
                self._close_dwell(events, 'idle', idle_start, point)
                idle_start = None

            if point.speed > self.speed_limit:
                last = events[-1] if events else None
                if (last is None or last.type != 'speeding' or
                        _whole_minutes(last.start_time, point.timestamp) > self.SPEEDING_MERGE_MINUTES):
                    events.append(TripEvent(
                        type='speeding',
                        latitude=point.latitude or 0,
                        longitude=point.longitude or 0,
                        start_time=point.timestamp,
                        speed=point.speed,
                        description=f"Speeding: {point.speed:g} km/h (limit: {self.speed_limit:g} km/h)"
                    ))

        last_point = samples[-1]
        if stop_start is not None:
            self._close_dwell(events, 'stop', stop_start, last_point)
        if idle_start is not None:
            self._close_dwell(events, 'idle', idle_start, last_point)

        return events

    def _close_dwell(self, events: List[TripEvent], kind: str,
                     start: TelemetrySample, end: TelemetrySample):
        duration = _whole_minutes(start.timestamp, end.timestamp)
        minimum = self.MIN_STOP_MINUTES if kind == 'stop' else self.MIN_IDLE_MINUTES
        if duration < minimum:
            return

        verb = 'Stopped' if kind == 'stop' else 'Idling'
        events.append(TripEvent(
            type=kind,
            latitude=start.latitude or 0,
            longitude=start.longitude or 0,
            start_time=start.timestamp,
            end_time=end.timestamp,
            duration_minutes=duration,
            description=f"{verb} for {format_duration(duration)}"
        ))


HIGH_SPEED_KMH = 100
MAX_INSIGHTS = 4


def driving_insights(samples: List[TelemetrySample]) -> List[dict]:
    if not samples:
        return []

    total = len(samples)
    insights = []

    idle_pct = safe_ratio(len([p for p in samples if p.speed < 2 and p.engine_on]), total) * 100
    if idle_pct > 30:
        insights.append({'id': 'high-idle', 'type': 'warning', 'title': 'High Idle Time',
                         'description': f"{idle_pct:.0f}% of journey spent idling."})
    elif idle_pct < 10:
        insights.append({'id': 'low-idle', 'type': 'positive', 'title': 'Efficient Journey',
                         'description': f"Only {idle_pct:.0f}% idle time."})

    speeding_pct = safe_ratio(len([p for p in samples if p.speed > HIGH_SPEED_KMH]), total) * 100
    if speeding_pct > 15:
        insights.append({'id': 'speeding', 'type': 'warning', 'title': 'Speeding Detected',
                         'description': f"{speeding_pct:.0f}% of journey above {HIGH_SPEED_KMH} km/h."})

    stop_count = 0
    for prev, curr in zip(samples, samples[1:]):
        if prev.speed > 5 and curr.speed < 2:
            stop_count += 1
    if stop_count > 10:
        insights.append({'id': 'frequent-stops', 'type': 'info', 'title': 'Frequent Stops',
                         'description': f"{stop_count} stops detected."})

    moving = [p.speed for p in samples if p.speed > 5]
    if moving:
        mean = sum(moving) / len(moving)
        std_dev = math.sqrt(sum((s - mean) ** 2 for s in moving) / len(moving))
        if std_dev < 15:
            insights.append({'id': 'consistent-speed', 'type': 'positive', 'title': 'Consistent Driving',
                             'description': 'Steady speed maintained throughout journey.'})

    return insights[:MAX_INSIGHTS]
