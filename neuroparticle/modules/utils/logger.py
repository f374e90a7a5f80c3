"""
Logging setup and the session's gesture transition log.
"""

import os
import time
import logging
import logging.handlers
from collections import deque
from functools import wraps
from typing import NamedTuple, Optional

CONSOLE_FORMAT = "%(asctime)s  %(levelname)-5s  %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)-30s | %(message)s"
DATE_FORMAT = "%H:%M:%S"


def _console_handler(level):
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _rotating_file_handler(path, max_size_mb, backup_count):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    handler = logging.handlers.RotatingFileHandler(
        path, maxBytes=int(max_size_mb * 1024 * 1024), backupCount=backup_count
    )
    # The file keeps everything; the console follows the requested level
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Install console (and optional rotating file) handlers on the root logger.

    Calling it again replaces the previous handlers, so a test or a
    config reload never ends up with duplicated output.
    """
    numeric_level = logging.getLevelName(str(level).upper())
    if not isinstance(numeric_level, int):
        numeric_level = logging.INFO

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.close()
    root.setLevel(numeric_level)

    root.addHandler(_console_handler(numeric_level))
    if log_file:
        root.addHandler(_rotating_file_handler(log_file, max_size_mb, backup_count))
    return root


class Transition(NamedTuple):
    """A change of the active gesture label."""
    timestamp: float
    previous: Optional[str]
    current: str
    frame_id: Optional[int]
    hand_detected: bool
    dwell_s: Optional[float]


class GestureLogger:
    """Keeps the recent gesture transitions and logs each one.

    ``dwell_s`` on a transition is how long the previous label was held,
    measured from the transition that started it.
    """

    def __init__(self, max_history=500):
        self.logger = logging.getLogger("neuroparticle.gestures")
        self._transitions = deque(maxlen=max_history)
        self._count = 0
        self._entered_at = None

    def log_transition(self, previous, current, frame_id=None, hand_detected=True):
        now = time.time()
        dwell = now - self._entered_at if self._entered_at is not None else None
        self._entered_at = now

        record = Transition(
            timestamp=now,
            previous=previous.value if previous is not None else None,
            current=current.value,
            frame_id=frame_id,
            hand_detected=bool(hand_detected),
            dwell_s=dwell,
        )
        self._transitions.append(record)
        self._count += 1

        self.logger.info(
            "%-12s -> %-12s  frame=%s hand=%s held=%s",
            record.previous or "-",
            record.current,
            "?" if frame_id is None else frame_id,
            "yes" if record.hand_detected else "no",
            "-" if dwell is None else "%.2fs" % dwell,
        )
        return record

    def get_history(self, last_n=None):
        """Transitions still in the window, oldest first."""
        records = list(self._transitions)
        return records[-last_n:] if last_n else records

    @property
    def total_transitions(self):
        """Every transition logged this session, including ones rolled out of the window."""
        return self._count


def log_timing(func):
    """Log how long each call to ``func`` takes, at DEBUG level."""
    timing_logger = logging.getLogger(func.__module__)

    @wraps(func)
    def timed(*args, **kwargs):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            timing_logger.debug("%s: %.2f ms", func.__qualname__,
                                (time.perf_counter() - started) * 1000.0)

    return timed
