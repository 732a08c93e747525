"""
Tick schedulers for playback.
A scheduler repeatedly invokes a callback with the wall-clock milliseconds
elapsed since the previous invocation (or since start for the first one).
"""

import logging
import threading
import time
from typing import Callable, Optional

logger = logging.getLogger(__name__)

TickCallback = Callable[[float], None]


class Scheduler:
    def start(self, callback: TickCallback, interval_ms: float):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    @property
    def is_running(self) -> bool:
        raise NotImplementedError


class ThreadScheduler(Scheduler):
    """Runs ticks on a dedicated daemon thread."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self.clock = clock
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop_event.is_set()

    def start(self, callback: TickCallback, interval_ms: float):
        if self.is_running:
            return False

        stop_event = threading.Event()
        self._stop_event = stop_event
        self._thread = threading.Thread(
            target=self._run, args=(callback, interval_ms, stop_event), daemon=True
        )
        self._thread.start()
        return True

    def stop(self):
        self._stop_event.set()
        thread = self._thread
        if thread and thread is not threading.current_thread():
            thread.join(timeout=2)
        self._thread = None

    def _run(self, callback: TickCallback, interval_ms: float, stop_event: threading.Event):
        last = self.clock()
        while not stop_event.wait(interval_ms / 1000):
            now = self.clock()
            elapsed_ms = (now - last) * 1000
            last = now
            try:
                callback(elapsed_ms)
            except Exception as e:
                logger.error("Playback tick failed: %s", e, exc_info=True)


class SocketIOScheduler(Scheduler):
    """Runs ticks as a Flask-SocketIO background task (green thread under eventlet)."""

    def __init__(self, socketio, clock: Callable[[], float] = time.monotonic):
        self.socketio = socketio
        self.clock = clock
        self._running = False
        self._generation = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, callback: TickCallback, interval_ms: float):
        if self._running:
            return False
        self._running = True
        self._generation += 1
        self.socketio.start_background_task(self._run, callback, interval_ms, self._generation)
        return True

    def stop(self):
        self._running = False

    def _active(self, generation: int) -> bool:
        return self._running and generation == self._generation

    def _run(self, callback: TickCallback, interval_ms: float, generation: int):
        last = self.clock()
        while self._active(generation):
            self.socketio.sleep(interval_ms / 1000)
            if not self._active(generation):
                break
            now = self.clock()
            elapsed_ms = (now - last) * 1000
            last = now
            try:
                callback(elapsed_ms)
            except Exception as e:
                logger.error("Playback tick failed: %s", e, exc_info=True)
