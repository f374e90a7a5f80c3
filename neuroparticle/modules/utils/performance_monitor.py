"""
Frame pacing and per-stage latency for the capture-to-render loop.
"""

import time
import threading
import logging
from collections import deque
from contextlib import contextmanager

logger = logging.getLogger(__name__)

STAGES = ("capture", "detection", "classification", "integration", "render", "total")


class RollingMean:
    """Mean of the last ``size`` samples, kept incrementally."""

    __slots__ = ("_samples", "_sum")

    def __init__(self, size):
        self._samples = deque(maxlen=size)
        self._sum = 0.0

    def add(self, value):
        if len(self._samples) == self._samples.maxlen:
            self._sum -= self._samples[0]
        self._samples.append(value)
        self._sum += value

    def clear(self):
        self._samples.clear()
        self._sum = 0.0

    @property
    def mean(self):
        return self._sum / len(self._samples) if self._samples else 0.0

    def __len__(self):
        return len(self._samples)


class PerformanceMonitor:
    """Frame clock plus a rolling latency window per pipeline stage.

    ``tick()`` doubles as the source of ``dt`` for time-based smoothing:
    it returns the seconds since the previous tick.
    """

    def __init__(self, window_size=100):
        self._window_size = window_size
        self._lock = threading.Lock()
        self._intervals = RollingMean(window_size)
        self._stage_times = {}
        for stage in STAGES:
            self._stage_times[stage] = RollingMean(window_size)
        self._clear_clock()

    def _clear_clock(self):
        self._previous_tick = None
        self._last_interval = None
        self._frame_count = 0
        self._started = time.time()

    @contextmanager
    def measure(self, stage_name: str):
        """Time the enclosed block and file it under ``stage_name``.

        The sample is recorded even when the block raises.
        """
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self.record(stage_name, (time.perf_counter() - t0) * 1000.0)

    def record(self, stage_name: str, elapsed_ms: float):
        with self._lock:
            window = self._stage_times.get(stage_name)
            if window is None:
                window = self._stage_times[stage_name] = RollingMean(self._window_size)
            window.add(elapsed_ms)

    def tick(self):
        """Mark a frame boundary. Returns seconds since the last tick (None on the first)."""
        now = time.perf_counter()
        with self._lock:
            self._frame_count += 1
            if self._previous_tick is None:
                self._previous_tick = now
                return None
            self._last_interval = now - self._previous_tick
            self._previous_tick = now
            self._intervals.add(self._last_interval)
            return self._last_interval

    @property
    def last_interval(self):
        with self._lock:
            return self._last_interval

    @property
    def fps(self) -> float:
        """Frames per second over the interval window; 0 until two intervals exist."""
        with self._lock:
            if len(self._intervals) < 2:
                return 0.0
            mean = self._intervals.mean
        return 1.0 / mean if mean > 0 else 0.0

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def total_latency_ms(self) -> float:
        return self.get_stage_latency("total")

    def get_stage_latency(self, stage_name: str) -> float:
        """Mean milliseconds spent in ``stage_name``; 0 for an unseen stage."""
        with self._lock:
            window = self._stage_times.get(stage_name)
            return window.mean if window is not None else 0.0

    def get_all_latencies(self) -> dict:
        with self._lock:
            return {stage: window.mean for stage, window in self._stage_times.items()}

    def get_report(self) -> dict:
        return {
            "fps": round(self.fps, 1),
            "total_frames": self._frame_count,
            "uptime_seconds": round(time.time() - self._started, 1),
            "latencies_ms": {
                stage: round(ms, 2) for stage, ms in self.get_all_latencies().items()
            },
        }

    def print_report(self):
        """Write the session summary to the log."""
        report = self.get_report()
        logger.info("Session: %d frames in %.1fs, %.1f FPS",
                    report["total_frames"], report["uptime_seconds"], report["fps"])
        for stage, ms in report["latencies_ms"].items():
            logger.info("  %-15s %7.2f ms", stage, ms)

    def reset(self):
        with self._lock:
            self._intervals.clear()
            for window in self._stage_times.values():
                window.clear()
            self._clear_clock()
