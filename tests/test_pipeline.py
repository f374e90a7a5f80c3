"""
Tests for the frame pipeline
=============================
"""

import math

import pytest
import numpy as np
from unittest.mock import MagicMock, patch

from neuroparticle.core.events import EventBus, Events
from neuroparticle.core.pipeline import Pipeline, PipelineResult
from neuroparticle.core.types import GestureLabel, LandmarkIndex
from neuroparticle.modules.capture.camera_manager import CameraManager
from neuroparticle.modules.recognition.gesture_classifier import GestureClassifier
from neuroparticle.modules.recognition.motion_integrator import MotionIntegrator
from mock_hands import create_mock_landmarks, rotate_hand, OPEN_HAND, POINT, PEACE


class FakeCamera:
    """Returns a fixed frame, or nothing."""

    def __init__(self, frame=None):
        self.frame = frame
        self.reads = 0

    def read(self):
        self.reads += 1
        if self.frame is None:
            return None, None
        return self.reads, self.frame.copy()

    read_sync = read


class FakeDetector:
    """Replays a list of Joint Sets (None = no hand)."""

    def __init__(self, frames):
        self._frames = list(frames)
        self.timestamps = []

    @property
    def is_ready(self):
        return True

    def detect(self, rgb_frame, timestamp_ms):
        self.timestamps.append(timestamp_ms)
        return self._frames.pop(0) if self._frames else None


class FakeRenderer:
    def __init__(self):
        self.calls = []

    def render(self, params, time_s):
        self.calls.append((params, time_s))
        return np.zeros((10, 10, 3), dtype=np.uint8)


@pytest.fixture
def bus():
    bus = EventBus()
    bus.reset()
    yield bus
    bus.reset()


@pytest.fixture
def events(bus):
    received = []
    for name in (Events.HAND_DETECTED, Events.HAND_LOST, Events.GESTURE_CHANGED,
                 Events.INVALID_INPUT, Events.SESSION_RESET):
        bus.subscribe(name, lambda _name=name, **kw: received.append((_name, kw)))
    return received


@pytest.fixture
def pipeline(bus):
    return Pipeline(
        classifier=GestureClassifier(),
        integrator=MotionIntegrator(),
        event_bus=bus,
    )


def names(events):
    return [name for name, _ in events]


class TestProcess:

    def test_no_hand_frame(self, pipeline):
        result = pipeline.process(None)
        assert isinstance(result, PipelineResult)
        assert not result.hand_detected
        assert result.gesture == GestureLabel.IDLE
        assert pipeline.state.landmark_count == 0

    def test_hand_frame(self, pipeline):
        result = pipeline.process(create_mock_landmarks(PEACE))
        assert result.hand_detected
        assert result.reading.gesture == GestureLabel.ROTATE_Z
        assert result.params.gesture == GestureLabel.ROTATE_Z
        assert pipeline.state.landmark_count == 21
        assert pipeline.current_gesture == GestureLabel.ROTATE_Z

    def test_accepts_nested_lists(self, pipeline):
        joints = create_mock_landmarks(POINT).tolist()
        assert pipeline.process(joints).gesture == GestureLabel.ROTATE_XY

    def test_roll_accumulates_through_frames(self, pipeline):
        base = create_mock_landmarks(PEACE)
        for angle in (0.0, 0.1, 0.25, 0.4):
            pipeline.process(rotate_hand(base, angle))
        assert pipeline.integrator.accumulated_roll == pytest.approx(0.4)

    def test_frame_ids_count_up(self, pipeline):
        pipeline.process(None)
        assert pipeline.process(None).frame_id == 2
        assert pipeline.frame_count == 2


class TestEvents:

    def test_hand_detected_then_lost(self, pipeline, events):
        pipeline.process(create_mock_landmarks(OPEN_HAND))
        pipeline.process(create_mock_landmarks(OPEN_HAND))
        pipeline.process(None)

        hand_events = [n for n in names(events) if n in (Events.HAND_DETECTED, Events.HAND_LOST)]
        assert hand_events == [Events.HAND_DETECTED, Events.HAND_LOST]

    def test_gesture_changed_once_per_transition(self, pipeline, events):
        pipeline.process(create_mock_landmarks(PEACE))
        pipeline.process(create_mock_landmarks(PEACE))
        pipeline.process(create_mock_landmarks(POINT))

        changes = [kw for n, kw in events if n == Events.GESTURE_CHANGED]
        assert [(c["previous"], c["current"]) for c in changes] == [
            (GestureLabel.IDLE, GestureLabel.ROTATE_Z),
            (GestureLabel.ROTATE_Z, GestureLabel.ROTATE_XY),
        ]

    def test_losing_hand_reports_idle(self, pipeline, events):
        pipeline.process(create_mock_landmarks(POINT))
        pipeline.process(None)
        last = [kw for n, kw in events if n == Events.GESTURE_CHANGED][-1]
        assert last["current"] == GestureLabel.IDLE
        assert last["hand_detected"] is False


class TestInvalidInput:

    def test_nan_joint_treated_as_no_hand(self, pipeline, events):
        joints = create_mock_landmarks(OPEN_HAND)
        joints[8, 0] = np.nan

        result = pipeline.process(joints)

        assert result.invalid_input
        assert not result.hand_detected
        assert result.gesture == GestureLabel.IDLE
        assert Events.INVALID_INPUT in names(events)

    def test_state_stays_finite(self, pipeline):
        pipeline.process(create_mock_landmarks(OPEN_HAND))
        bad = create_mock_landmarks(OPEN_HAND)
        bad[:, 1] = np.inf
        result = pipeline.process(bad)
        assert all(math.isfinite(v) for v in result.params.rotation)
        assert math.isfinite(result.params.scale)

    def test_wrong_shape(self, pipeline, events):
        result = pipeline.process(np.zeros((20, 3)))
        assert result.invalid_input
        error = [kw for n, kw in events if n == Events.INVALID_INPUT][0]["error"]
        assert "(21, 3)" in error

    def test_valid_frame_after_invalid(self, pipeline):
        pipeline.process(np.zeros((5, 2)))
        result = pipeline.process(create_mock_landmarks(PEACE))
        assert not result.invalid_input
        assert result.gesture == GestureLabel.ROTATE_Z


class TestReset:

    def test_reset_clears_session(self, pipeline, events):
        base = create_mock_landmarks(PEACE)
        pipeline.process(base)
        pipeline.process(rotate_hand(base, 0.5))
        pipeline.reset()

        assert pipeline.integrator.accumulated_roll == 0.0
        assert pipeline.state.gesture == GestureLabel.IDLE
        assert Events.SESSION_RESET in names(events)

    def test_build_state_for_dashboard(self, pipeline):
        pipeline.process(create_mock_landmarks(POINT))
        state = pipeline.build_state()
        assert state["gesture"] == GestureLabel.ROTATE_XY
        assert state["hand_detected"] is True
        assert state["readings"] is not None
        assert state["params"] is not None


class TestTick:

    def _make(self, bus, camera, detector, renderer=None):
        return Pipeline(
            classifier=GestureClassifier(),
            integrator=MotionIntegrator(),
            camera=camera,
            detector=detector,
            renderer=renderer,
            event_bus=bus,
        )

    def test_tick_runs_detection_and_render(self, bus):
        frame = np.zeros((48, 64, 3), dtype=np.uint8)
        renderer = FakeRenderer()
        detector = FakeDetector([create_mock_landmarks(PEACE)])
        pipeline = self._make(bus, FakeCamera(frame), detector, renderer)

        result = pipeline.tick()

        assert result.frame is not None
        assert result.gesture == GestureLabel.ROTATE_Z
        assert result.canvas is not None
        assert len(renderer.calls) == 1
        assert pipeline.state.detector_ready

    def test_tick_without_frame_does_not_advance(self, bus):
        pipeline = self._make(bus, FakeCamera(None), FakeDetector([]))
        result = pipeline.tick()
        assert result.frame is None
        assert pipeline.frame_count == 0

    def test_timestamps_non_decreasing(self, bus):
        frame = np.zeros((8, 8, 3), dtype=np.uint8)
        detector = FakeDetector([None, None, None])
        pipeline = self._make(bus, FakeCamera(frame), detector)
        for _ in range(3):
            pipeline.tick()
        assert detector.timestamps == sorted(detector.timestamps)


class MarkerDetector:
    """Places a pointing hand with its index tip on the brightest image column."""

    is_ready = True

    def detect(self, rgb_frame, timestamp_ms):
        column = int(np.argmax(rgb_frame[..., 0].sum(axis=0)))
        joints = create_mock_landmarks(POINT)
        joints[:, 0] += column / rgb_frame.shape[1] - joints[LandmarkIndex.INDEX_TIP, 0]
        return joints


class TestCaptureOrientation:
    """Detection must see the frame the way the sensor produced it."""

    @pytest.fixture
    def marked_capture(self):
        frame = np.zeros((4, 6, 3), dtype=np.uint8)
        frame[:, 4] = 255  # right of center in the raw image
        with patch("neuroparticle.modules.capture.camera_manager.cv2.VideoCapture") as mock:
            cap = MagicMock()
            cap.isOpened.return_value = True
            cap.read.side_effect = lambda: (True, frame.copy())
            cap.get.return_value = 0.0
            mock.return_value = cap
            yield

    def test_raw_x_reaches_tilt_reading(self, bus, marked_capture):
        camera = CameraManager({"warmup_frames": 0})
        camera.open()
        pipeline = Pipeline(
            classifier=GestureClassifier(),
            integrator=MotionIntegrator(),
            camera=camera,
            detector=MarkerDetector(),
            event_bus=bus,
            config={"threaded": False, "render": False},
        )

        result = pipeline.tick()
        camera.stop()

        assert result.gesture == GestureLabel.ROTATE_XY
        assert result.joints[LandmarkIndex.INDEX_TIP, 0] == pytest.approx(4 / 6)
        assert result.reading.readings.rotation_y == pytest.approx(1 / 3)
        assert result.params.rotation_y > 0
