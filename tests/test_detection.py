"""
Tests for the Detection boundary
=================================
"""

import pytest
import numpy as np
from unittest.mock import MagicMock, patch

from neuroparticle.core.types import InvalidInputError, Landmark
from neuroparticle.modules.detection.landmark_extractor import (
    LandmarkExtractor, validate_joint_set, draw_landmarks,
)
from neuroparticle.modules.detection.hand_detector import HandDetector, HandDetectorConfig
from mock_hands import create_mock_landmarks, OPEN_HAND


class TestValidateJointSet:

    def test_valid_array_passes(self):
        joints = validate_joint_set(create_mock_landmarks(OPEN_HAND))
        assert joints.shape == (21, 3)
        assert joints.dtype == np.float64

    def test_nested_lists_are_converted(self):
        joints = validate_joint_set([[0.1, 0.2, 0.0]] * 21)
        assert isinstance(joints, np.ndarray)

    @pytest.mark.parametrize("shape", [(20, 3), (21, 2), (21,), (0, 3)])
    def test_wrong_shape_raises(self, shape):
        with pytest.raises(InvalidInputError):
            validate_joint_set(np.zeros(shape))

    @pytest.mark.parametrize("bad", [np.nan, np.inf, -np.inf])
    def test_non_finite_raises(self, bad):
        joints = create_mock_landmarks(OPEN_HAND)
        joints[12, 2] = bad
        with pytest.raises(InvalidInputError, match="1 non-finite"):
            validate_joint_set(joints)

    def test_non_numeric_raises(self):
        with pytest.raises(InvalidInputError):
            validate_joint_set([["a", "b", "c"]] * 21)

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            validate_joint_set([])


class TestLandmarkExtractor:

    @pytest.fixture
    def extractor(self):
        extractor = LandmarkExtractor()
        extractor.set_frame_size(640, 480)
        return extractor

    def test_extract_from_landmark_objects(self, extractor):
        hand = [Landmark(x=i / 21, y=0.5, z=-0.01) for i in range(21)]
        joints = extractor.extract_landmarks(hand)
        assert joints.shape == (21, 3)
        assert joints[20, 0] == pytest.approx(20 / 21)
        assert joints[0, 2] == pytest.approx(-0.01)

    def test_extract_short_list_raises(self, extractor):
        hand = [Landmark(0.5, 0.5, 0.0)] * 5
        with pytest.raises(InvalidInputError):
            extractor.extract_landmarks(hand)

    def test_pixel_coords(self, extractor):
        joints = np.zeros((21, 3))
        joints[8] = (0.5, 0.25, 0.0)
        pixels = extractor.to_pixel_coords(joints)
        assert pixels.shape == (21, 2)
        assert tuple(pixels[8]) == (320, 120)

    def test_landmark_to_pixel(self):
        assert Landmark(0.5, 0.5, 0.0).to_pixel(640, 480) == (320, 240)

    def test_draw_landmarks_marks_image(self):
        image = np.zeros((120, 160, 3), dtype=np.uint8)
        draw_landmarks(image, create_mock_landmarks(OPEN_HAND))
        assert image.any()


class TestHandDetector:

    @pytest.fixture
    def mock_mp(self):
        with patch("neuroparticle.modules.detection.hand_detector.mp") as mock:
            yield mock

    def _ready_detector(self, hands):
        detector = HandDetector(HandDetectorConfig(model_path="unused.task"))
        landmarker = MagicMock()
        landmarker.detect_for_video.return_value = MagicMock(hand_landmarks=hands)
        detector._landmarker = landmarker
        return detector, landmarker

    def test_config_from_dict(self):
        config = HandDetectorConfig.from_dict({
            "model_path": "/tmp/model.task",
            "min_detection_confidence": 0.7,
            "auto_download": False,
        })
        assert config.model_path == "/tmp/model.task"
        assert config.min_detection_confidence == 0.7
        assert config.min_tracking_confidence == 0.5
        assert config.auto_download is False

    def test_detect_before_start_returns_none(self):
        detector = HandDetector()
        assert not detector.is_ready
        assert detector.detect(np.zeros((4, 4, 3), dtype=np.uint8), 0) is None

    def test_start_without_model_and_no_download(self, tmp_path):
        config = HandDetectorConfig(model_path=str(tmp_path / "missing.task"), auto_download=False)
        assert HandDetector(config).start() is False

    def test_detect_returns_first_hand(self, mock_mp):
        hand = [Landmark(0.5, 0.5, 0.0)] * 21
        other = [Landmark(0.1, 0.1, 0.0)] * 21
        detector, _ = self._ready_detector([hand, other])

        joints = detector.detect(np.zeros((4, 4, 3), dtype=np.uint8), 10)
        assert joints.shape == (21, 3)
        assert joints[0, 0] == pytest.approx(0.5)

    def test_detect_nothing(self, mock_mp):
        detector, _ = self._ready_detector([])
        assert detector.detect(np.zeros((4, 4, 3), dtype=np.uint8), 10) is None

    def test_malformed_hand_raises(self, mock_mp):
        detector, _ = self._ready_detector([[Landmark(0.5, 0.5, 0.0)] * 3])
        with pytest.raises(InvalidInputError):
            detector.detect(np.zeros((4, 4, 3), dtype=np.uint8), 10)

    def test_timestamps_forced_monotonic(self, mock_mp):
        detector, landmarker = self._ready_detector([])
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        for ts in (100, 100, 90):
            detector.detect(frame, ts)
        sent = [c.args[1] for c in landmarker.detect_for_video.call_args_list]
        assert sent == [100, 101, 102]

    def test_stop_releases_landmarker(self, mock_mp):
        detector, landmarker = self._ready_detector([])
        detector.stop()
        landmarker.close.assert_called_once()
        assert not detector.is_ready
