from datetime import datetime, timedelta, timezone

from fleetscope.analytics.samples import TelemetrySample
from fleetscope.analytics.scheduler import Scheduler

T0 = datetime(2024, 5, 1, 8, 0, tzinfo=timezone.utc)


class ManualScheduler(Scheduler):
    """Scheduler whose ticks are fired by the test itself."""

    def __init__(self):
        self.callback = None
        self.starts = 0
        self.stops = 0

    @property
    def is_running(self):
        return self.callback is not None

    def start(self, callback, interval_ms):
        if self.callback is not None:
            return False
        self.callback = callback
        self.starts += 1
        return True

    def stop(self):
        self.callback = None
        self.stops += 1

    def advance(self, elapsed_ms):
        if self.callback is not None:
            self.callback(elapsed_ms)

    def run_until_idle(self, step_ms=100, max_ticks=10000):
        ticks = 0
        while self.callback is not None and ticks < max_ticks:
            self.callback(step_ms)
            ticks += 1
        return ticks


def sample(lat, lng, speed=0.0, at=T0, **extra):
    return TelemetrySample(timestamp=at, latitude=lat, longitude=lng, speed=speed, **extra)


def make_samples(count, start=T0, step=timedelta(seconds=10), lat=9.03, lng=38.74,
                 speed=40.0, vehicle_id=None):
    return [
        TelemetrySample(
            timestamp=start + step * i,
            latitude=lat + 0.001 * i,
            longitude=lng,
            speed=speed,
            heading=float(i),
            vehicle_id=vehicle_id
        )
        for i in range(count)
    ]
