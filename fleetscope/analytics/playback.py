"""
Playback Synchronizer
One shared cursor drives 1-4 vehicle tracks of independent lengths.
100 ms of wall time advances the cursor one sample at 1x; playback stops
on its own at the end of the longest track.
"""

import logging
import math
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from .samples import TelemetrySample, VehicleTrack
from .scheduler import Scheduler, ThreadScheduler

logger = logging.getLogger(__name__)

MS_PER_INDEX = 100


class PlaybackState(Enum):
    IDLE = 'idle'
    PLAYING = 'playing'
    PAUSED = 'paused'


@dataclass
class Cursor:
    fractional_index: float = 0.0
    playing: bool = False
    rate_multiplier: float = 1.0


class PlaybackSynchronizer:
    DEFAULT_TICK_MS = 50

    def __init__(self, tracks: Optional[List[VehicleTrack]] = None,
                 scheduler: Optional[Scheduler] = None,
                 rate_multiplier: float = 1.0,
                 tick_ms: float = DEFAULT_TICK_MS):
        if not math.isfinite(rate_multiplier) or rate_multiplier <= 0:
            raise ValueError("rate_multiplier must be positive")

        self.tracks: List[VehicleTrack] = list(tracks or [])
        self.scheduler = scheduler or ThreadScheduler()
        self.tick_ms = tick_ms
        self.cursor = Cursor(rate_multiplier=rate_multiplier)
        self.state = PlaybackState.IDLE
        self._lock = threading.RLock()

        self._callbacks: Dict[str, List[Callable]] = {
            'on_frame': [],
            'on_state_change': []
        }

    def register_callback(self, event: str, callback: Callable):
        if event in self._callbacks:
            self._callbacks[event].append(callback)

    def _emit(self, event: str, data: dict):
        for callback in self._callbacks.get(event, []):
            try:
                callback(data)
            except Exception as e:
                logger.error("Callback error for %s: %s", event, e)

    @property
    def max_track_length(self) -> int:
        return max((len(t) for t in self.tracks), default=0)

    @property
    def last_index(self) -> int:
        return max(self.max_track_length - 1, 0)

    def _clamp(self, value: float) -> float:
        return min(max(value, 0.0), float(self.last_index))

    def _set_state(self, state: PlaybackState):
        if state is self.state:
            return
        previous = self.state
        self.state = state
        self.cursor.playing = state is PlaybackState.PLAYING
        logger.info("Playback %s -> %s at index %.2f", previous.value, state.value,
                    self.cursor.fractional_index)
        self._emit('on_state_change', {'state': state.value, 'previous': previous.value})

    def set_tracks(self, tracks: List[VehicleTrack]):
        self.scheduler.stop()
        with self._lock:
            self.tracks = list(tracks)
            self.cursor.fractional_index = 0.0
            self._set_state(PlaybackState.IDLE)

    def play(self) -> bool:
        with self._lock:
            if self.state is PlaybackState.PLAYING:
                return False
            if self.max_track_length == 0:
                return False
            self._set_state(PlaybackState.PLAYING)
        self.scheduler.start(self.tick, self.tick_ms)
        return True

    def pause(self) -> bool:
        with self._lock:
            if self.state is not PlaybackState.PLAYING:
                return False
            self._set_state(PlaybackState.PAUSED)
        self.scheduler.stop()
        return True

    def toggle(self) -> bool:
        if self.state is PlaybackState.PLAYING:
            return self.pause()
        return self.play()

    def reset(self):
        self.scheduler.stop()
        with self._lock:
            self.cursor.fractional_index = 0.0
            self._set_state(PlaybackState.IDLE)

    def seek(self, index: float) -> float:
        index = float(index)
        if not math.isfinite(index):
            raise ValueError("seek index must be a finite number")
        with self._lock:
            self.cursor.fractional_index = self._clamp(index)
            position = self.cursor.fractional_index
        self._emit('on_frame', self.frame())
        return position

    def set_rate(self, rate_multiplier: float):
        if not math.isfinite(rate_multiplier) or rate_multiplier <= 0:
            raise ValueError("rate_multiplier must be positive")
        with self._lock:
            self.cursor.rate_multiplier = float(rate_multiplier)

    def tick(self, elapsed_ms: float):
        """Advance the cursor by the wall time elapsed since the previous tick."""
        finished = False
        with self._lock:
            if self.state is not PlaybackState.PLAYING:
                return

            elapsed_ms = elapsed_ms if math.isfinite(elapsed_ms) else 0
            increment = max(elapsed_ms, 0) / MS_PER_INDEX * self.cursor.rate_multiplier
            position = self.cursor.fractional_index + increment
            if position >= self.last_index:
                self.cursor.fractional_index = float(self.last_index)
                self._set_state(PlaybackState.IDLE)
                finished = True
            else:
                self.cursor.fractional_index = position

        if finished:
            self.scheduler.stop()
        self._emit('on_frame', self.frame())

    def current_sample(self, track: VehicleTrack) -> Optional[TelemetrySample]:
        return track.sample_at(self.cursor.fractional_index)

    def frame(self) -> dict:
        with self._lock:
            markers = []
            for track in self.tracks:
                sample = self.current_sample(track)
                if sample is None:
                    markers.append({'vehicle_id': track.vehicle_id, 'label': track.label,
                                    'color': track.color, 'sample': None})
                    continue
                markers.append({
                    'vehicle_id': track.vehicle_id,
                    'label': track.label,
                    'color': track.color,
                    'sample': {
                        'timestamp': sample.timestamp.isoformat(),
                        'coordinates': [sample.longitude, sample.latitude],
                        'heading': sample.heading or 0,
                        'speed': sample.speed
                    },
                    'over_limit': sample.speed > track.speed_limit
                })

            return {
                'state': self.state.value,
                'index': self.cursor.fractional_index,
                'rate': self.cursor.rate_multiplier,
                'max_track_length': self.max_track_length,
                'markers': markers
            }
