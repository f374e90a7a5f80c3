"""
In-process event bus between the frame pipeline and its observers.

The pipeline announces hand and gesture transitions. The application's
gesture log and debug hooks subscribe by event name, so the pipeline
never imports them.

    bus = EventBus()
    bus.subscribe(Events.GESTURE_CHANGED, on_change)
    bus.emit(Events.GESTURE_CHANGED, previous=GestureLabel.IDLE,
             current=GestureLabel.ROTATE_Z, frame_id=42)
"""

import time
import logging
import threading
from collections import Counter, deque
from typing import Callable, NamedTuple, Optional

logger = logging.getLogger(__name__)

HISTORY_SIZE = 100


class EventRecord(NamedTuple):
    """One emitted event, as kept in the bus history."""
    event: str
    time: float
    frame_id: Optional[int]
    data_keys: tuple


class _Listener(NamedTuple):
    priority: int
    callback: Callable


def _callback_name(callback) -> str:
    return getattr(callback, "__qualname__", None) or repr(callback)


class EventBus:
    """Process-wide publish/subscribe hub.

    Listeners run synchronously on the emitting thread, highest priority
    first; equal priorities keep subscription order. A listener that
    raises is logged and the remaining listeners still run.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            bus = super().__new__(cls)
            bus._routes = {}
            bus._lock = threading.RLock()
            bus._history = deque(maxlen=HISTORY_SIZE)
            bus._emitted = Counter()
            bus._enabled = True
            cls._instance = bus
        return cls._instance

    def subscribe(self, event_name: str, callback: Callable, priority: int = 0):
        """Call ``callback(**data)`` whenever ``event_name`` is emitted."""
        with self._lock:
            route = self._routes.setdefault(event_name, [])
            route.append(_Listener(priority, callback))
            # sorted() is stable, so ties stay in subscription order
            route[:] = sorted(route, key=lambda entry: -entry.priority)
        logger.debug("'%s' <- %s (priority %d)", event_name, _callback_name(callback), priority)

    def unsubscribe(self, event_name: str, callback: Callable):
        with self._lock:
            route = self._routes.get(event_name)
            if route:
                route[:] = [entry for entry in route if entry.callback is not callback]

    def emit(self, event_name: str, **data):
        """Record the event and hand ``data`` to each listener in turn."""
        if not self._enabled:
            return

        with self._lock:
            targets = tuple(self._routes.get(event_name, ()))
            self._emitted[event_name] += 1
            self._history.append(EventRecord(
                event_name, time.time(), data.get("frame_id"), tuple(sorted(data))
            ))

        for entry in targets:
            try:
                entry.callback(**data)
            except Exception as exc:
                logger.error("Listener %s failed on '%s': %s",
                             _callback_name(entry.callback), event_name, exc)

    def set_enabled(self, enabled: bool):
        self._enabled = bool(enabled)

    def clear(self, event_name: str = None):
        """Drop every listener, or only those of ``event_name``."""
        with self._lock:
            if event_name is None:
                self._routes.clear()
            else:
                self._routes.pop(event_name, None)

    @property
    def listener_count(self) -> int:
        with self._lock:
            return sum(map(len, self._routes.values()))

    def emitted(self, event_name: str) -> int:
        """How many times ``event_name`` has fired since the last reset."""
        with self._lock:
            return self._emitted[event_name]

    def get_history(self, last_n: int = 10) -> list:
        """Most recent EventRecords, oldest first."""
        with self._lock:
            records = list(self._history)
        return records[-last_n:] if last_n else records

    def reset(self):
        """Forget listeners, history and counters; re-enable the bus."""
        with self._lock:
            self._routes.clear()
            self._history.clear()
            self._emitted.clear()
        self._enabled = True


class Events:
    """Event names published by the pipeline and the application."""

    HAND_DETECTED = "hand_detected"
    HAND_LOST = "hand_lost"
    GESTURE_CHANGED = "gesture_changed"
    INVALID_INPUT = "invalid_input"

    SESSION_RESET = "session_reset"
    SYSTEM_STARTED = "system_started"
    SYSTEM_SHUTDOWN = "system_shutdown"
