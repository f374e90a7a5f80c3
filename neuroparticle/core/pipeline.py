"""
Per-frame pipeline orchestrator.

Architecture:
    Camera -> HandDetector -> validate_joint_set -> GestureClassifier
    -> MotionIntegrator -> ParticleField

process() is the single call site that advances the integrator, so one
Pipeline owns one session's state. tick() wraps it with capture,
detection and rendering for the live application.
"""

import time
import logging
import cv2

from neuroparticle.core.types import (
    GestureLabel, InvalidInputError, PipelineState, JOINT_COUNT,
)
from neuroparticle.core.events import EventBus, Events
from neuroparticle.modules.detection.landmark_extractor import validate_joint_set
from neuroparticle.modules.utils.performance_monitor import PerformanceMonitor

logger = logging.getLogger(__name__)


class PipelineResult:
    """Result of a single pipeline iteration."""

    __slots__ = (
        "frame", "canvas", "joints", "hand_detected", "reading",
        "params", "invalid_input", "latency_ms", "frame_id", "timestamp",
    )

    def __init__(self):
        self.frame = None          # raw camera frame (BGR)
        self.canvas = None         # rendered particle scene (BGR)
        self.joints = None         # validated Joint Set, or None
        self.hand_detected = False
        self.reading = None        # HandReading for this frame
        self.params = None         # SmoothedParams for this frame
        self.invalid_input = False
        self.latency_ms = 0.0
        self.frame_id = 0
        self.timestamp = 0.0

    @property
    def gesture(self) -> GestureLabel:
        return self.params.gesture if self.params is not None else GestureLabel.IDLE


class Pipeline:
    """Composable capture -> classify -> integrate -> render loop.

    Only classifier and integrator are required; camera, detector and
    renderer are needed by tick() alone.
    """

    def __init__(
        self,
        classifier,
        integrator,
        camera=None,
        detector=None,
        renderer=None,
        performance_monitor=None,
        event_bus=None,
        config=None,
    ):
        self._classifier = classifier
        self._integrator = integrator
        self._camera = camera
        self._detector = detector
        self._renderer = renderer
        self._perf = performance_monitor or PerformanceMonitor()
        self._bus = event_bus or EventBus()

        config = config or {}
        self._use_threading = config.get("threaded", True)
        self._render_enabled = config.get("render", True)
        # Smoothing dt only matters in "time" mode; frame mode ignores it
        self._pass_dt = config.get("pass_dt", True)

        self._state = PipelineState()
        self._frame_count = 0
        self._start = time.perf_counter()

    # =========================================================================
    # Core frame update
    # =========================================================================

    def process(self, joints, dt=None, frame_id=None) -> PipelineResult:
        """Advance the session by one frame.

        Args:
            joints: Joint Set for the detected hand, or None if no hand
            dt: Seconds since the previous frame
            frame_id: Optional id used in events and logs

        Returns:
            PipelineResult with the reading and the smoothed parameters
        """
        result = PipelineResult()
        result.timestamp = time.time()
        self._frame_count += 1
        frame_id = self._frame_count if frame_id is None else frame_id
        result.frame_id = frame_id

        reading = None
        if joints is not None:
            try:
                with self._perf.measure("classification"):
                    joints = validate_joint_set(joints)
                    reading = self._classifier.read(joints)
            except InvalidInputError as e:
                self._reject(result, e, frame_id)
                joints = None

        with self._perf.measure("integration"):
            try:
                if reading is not None:
                    params = self._integrator.integrate(reading.gesture, reading.readings, dt)
                else:
                    params = self._integrator.integrate(None, None, dt)
            except InvalidInputError as e:
                # Readings are checked before any state is touched
                self._reject(result, e, frame_id)
                joints, reading = None, None
                params = self._integrator.integrate(None, None, dt)

        result.joints = joints
        result.reading = reading
        result.hand_detected = reading is not None
        result.params = params

        self._publish(result, frame_id)
        return result

    def _reject(self, result: PipelineResult, error: InvalidInputError, frame_id):
        logger.warning("Frame %s: discarding hand (%s)", frame_id, error)
        result.invalid_input = True
        self._bus.emit(Events.INVALID_INPUT, error=str(error), frame_id=frame_id)

    def _publish(self, result: PipelineResult, frame_id):
        """Emit transition events and update the observed state."""
        state = self._state

        if result.hand_detected and not state.hand_detected:
            self._bus.emit(Events.HAND_DETECTED, frame_id=frame_id)
        elif not result.hand_detected and state.hand_detected:
            self._bus.emit(Events.HAND_LOST, frame_id=frame_id)

        previous = state.gesture
        current = result.params.gesture
        if current != previous:
            self._bus.emit(
                Events.GESTURE_CHANGED,
                previous=previous, current=current,
                frame_id=frame_id, hand_detected=result.hand_detected,
            )

        state.gesture = current
        state.hand_detected = result.hand_detected
        state.landmark_count = JOINT_COUNT if result.hand_detected else 0
        state.readings = result.reading.readings if result.reading is not None else None
        state.params = result.params
        state.frame_count = self._frame_count

    # =========================================================================
    # Live loop
    # =========================================================================

    def tick(self) -> PipelineResult:
        """Execute one full capture -> detect -> process -> render iteration.

        Returns:
            PipelineResult; frame is None when the camera had nothing new
        """
        with self._perf.measure("capture"):
            if self._use_threading:
                frame_id, frame = self._camera.read()
            else:
                frame_id, frame = self._camera.read_sync()

        if frame is None:
            return PipelineResult()

        dt = self._perf.tick()

        joints = None
        with self._perf.measure("detection"):
            if self._detector is not None and self._detector.is_ready:
                rgb_frame = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
                timestamp_ms = int((time.perf_counter() - self._start) * 1000)
                try:
                    joints = self._detector.detect(rgb_frame, timestamp_ms)
                except InvalidInputError as e:
                    logger.warning("Frame %s: landmarker output rejected (%s)", frame_id, e)
                    self._bus.emit(Events.INVALID_INPUT, error=str(e), frame_id=frame_id)

        result = self.process(joints, dt=dt if self._pass_dt else None, frame_id=frame_id)
        result.frame = frame

        if self._renderer is not None and self._render_enabled:
            with self._perf.measure("render"):
                result.canvas = self._renderer.render(result.params, self.elapsed)

        self._state.fps = self._perf.fps
        self._state.latency_ms = self._perf.total_latency_ms
        self._state.detector_ready = self._detector is not None and self._detector.is_ready
        result.latency_ms = self._state.latency_ms
        return result

    def reset(self):
        """Start a new session: clear integrator state and transition tracking."""
        self._integrator.reset()
        self._state = PipelineState()
        self._state.detector_ready = self._detector is not None and self._detector.is_ready
        self._bus.emit(Events.SESSION_RESET, frame_id=self._frame_count)
        logger.info("Session reset at frame %d", self._frame_count)

    def build_state(self) -> dict:
        """Build state dict for dashboard rendering."""
        return self._state.to_dashboard_dict()

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def integrator(self):
        return self._integrator

    @property
    def elapsed(self) -> float:
        """Seconds since the pipeline was created."""
        return time.perf_counter() - self._start

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def current_gesture(self) -> GestureLabel:
        return self._state.gesture
