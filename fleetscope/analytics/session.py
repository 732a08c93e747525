"""
Analysis Session
Holds the parameters of one comparison/playback session: the admitted
vehicle tracks, the time window and the playback synchronizer.
Every change to the vehicle set or window starts a new fetch generation;
fetches begun under an older generation are discarded when they complete.
"""

import logging
import threading
import uuid
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .playback import PlaybackSynchronizer
from .samples import TRACK_COLORS, TelemetrySample, VehicleTrack
from .scheduler import Scheduler
from .segments import ClassifiedTrack, SegmentClassifier

logger = logging.getLogger(__name__)

MAX_COMPARISON_TRACKS = 4


class SessionLimitExceeded(Exception):
    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum {limit} vehicles can be compared at once")


class StaleFetch(Exception):
    pass


class AnalysisSession:
    def __init__(self, organization_id: Optional[str] = None,
                 start: Optional[datetime] = None, end: Optional[datetime] = None,
                 scheduler: Optional[Scheduler] = None,
                 max_tracks: int = MAX_COMPARISON_TRACKS,
                 tick_ms: float = PlaybackSynchronizer.DEFAULT_TICK_MS,
                 classifier: Optional[SegmentClassifier] = None):
        self.session_id = str(uuid.uuid4())[:8]
        self.organization_id = organization_id
        self.start = start
        self.end = end
        self.max_tracks = max_tracks
        self.tracks: Dict[str, VehicleTrack] = {}
        self.classifier = classifier or SegmentClassifier()
        self.playback = PlaybackSynchronizer(scheduler=scheduler, tick_ms=tick_ms)

        self._generation = 0
        self._lock = threading.Lock()

    @property
    def generation(self) -> int:
        return self._generation

    def _invalidate(self):
        self._generation += 1
        self.playback.reset()

    def _free_color(self) -> str:
        used = {t.color for t in self.tracks.values()}
        for scheme in TRACK_COLORS:
            if scheme['primary'] not in used:
                return scheme['primary']
        return TRACK_COLORS[len(self.tracks) % len(TRACK_COLORS)]['primary']

    def add_track(self, vehicle_id: str, label: str, speed_limit: float) -> VehicleTrack:
        with self._lock:
            if vehicle_id in self.tracks:
                return self.tracks[vehicle_id]
            if len(self.tracks) >= self.max_tracks:
                logger.warning("Session %s rejected vehicle %s: %d tracks already active",
                               self.session_id, vehicle_id, len(self.tracks))
                raise SessionLimitExceeded(self.max_tracks)

            track = VehicleTrack(vehicle_id=vehicle_id, label=label,
                                 speed_limit=speed_limit, color=self._free_color())
            self.tracks[vehicle_id] = track
            self._invalidate()
            self.playback.set_tracks(list(self.tracks.values()))
            return track

    def remove_track(self, vehicle_id: str) -> bool:
        with self._lock:
            if self.tracks.pop(vehicle_id, None) is None:
                return False
            self._invalidate()
            self.playback.set_tracks(list(self.tracks.values()))
            return True

    def set_window(self, start: datetime, end: datetime):
        if end < start:
            raise ValueError("window end precedes start")
        with self._lock:
            self.start = start
            self.end = end
            self._invalidate()

    def begin_fetch(self) -> int:
        with self._lock:
            return self._generation

    def apply_fetch(self, token: int, samples_by_vehicle: Dict[str, List[TelemetrySample]]):
        with self._lock:
            if token != self._generation:
                logger.info("Session %s discarded stale fetch (generation %d, current %d)",
                            self.session_id, token, self._generation)
                raise StaleFetch(f"fetch generation {token} superseded by {self._generation}")

            for vehicle_id, samples in samples_by_vehicle.items():
                track = self.tracks.get(vehicle_id)
                if track is None:
                    continue
                self.tracks[vehicle_id] = VehicleTrack(
                    vehicle_id=track.vehicle_id,
                    label=track.label,
                    speed_limit=track.speed_limit,
                    samples=samples,
                    color=track.color
                )
            self.playback.set_tracks(list(self.tracks.values()))

    def load(self, fetch_samples: Callable[[str, datetime, datetime], List[TelemetrySample]]) -> bool:
        """Fetch every track for the current window; False when a newer change won."""
        token = self.begin_fetch()
        start, end = self.start, self.end
        fetched = {vehicle_id: fetch_samples(vehicle_id, start, end)
                   for vehicle_id in list(self.tracks)}
        try:
            self.apply_fetch(token, fetched)
        except StaleFetch:
            return False
        return True

    def classified(self) -> List[ClassifiedTrack]:
        return [self.classifier.classify(t) for t in self.tracks.values()]

    def to_dict(self) -> dict:
        return {
            'session_id': self.session_id,
            'organization_id': self.organization_id,
            'start': self.start.isoformat() if self.start else None,
            'end': self.end.isoformat() if self.end else None,
            'tracks': [c.to_dict() for c in self.classified()],
            'playback': self.playback.frame()
        }
