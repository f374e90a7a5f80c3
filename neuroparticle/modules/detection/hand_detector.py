"""
Hand landmark detection using the MediaPipe Tasks API (HandLandmarker).

Tracks a single hand in VIDEO running mode and hands the first detected
hand to the core as a Joint Set, or None when nothing is detected.
"""

import logging
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import numpy as np
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from neuroparticle.modules.detection.landmark_extractor import LandmarkExtractor
from neuroparticle.modules.utils.logger import log_timing

logger = logging.getLogger(__name__)

HAND_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/"
    "hand_landmarker/float16/1/hand_landmarker.task"
)
DEFAULT_MODEL_PATH = Path.home() / ".cache" / "neuroparticle" / "hand_landmarker.task"


@dataclass
class HandDetectorConfig:
    """Configuration for the hand landmarker."""
    model_path: str = ""
    min_detection_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    auto_download: bool = True

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from the `mediapipe` config section."""
        return cls(
            model_path=d.get("model_path", "") or "",
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
            auto_download=d.get("auto_download", True),
        )


def download_model(url: str, save_path: Path) -> bool:
    """Download the hand landmarker model if not present."""
    if save_path.exists():
        logger.debug("Model already exists at %s", save_path)
        return True

    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading hand landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except OSError as e:
        logger.error("Failed to download model: %s", e)
        return False


class HandDetector:
    """Single-hand MediaPipe HandLandmarker wrapper.

    Example:
        >>> detector = HandDetector(HandDetectorConfig())
        >>> detector.start()
        >>> joints = detector.detect(rgb_frame, timestamp_ms)  # (21, 3) or None
        >>> detector.stop()
    """

    def __init__(self, config: Optional[HandDetectorConfig] = None):
        self.config = config or HandDetectorConfig()
        self._landmarker = None
        self._extractor = LandmarkExtractor()
        self._last_timestamp_ms = -1

    @log_timing
    def start(self) -> bool:
        """Create the landmarker, downloading the model on first use."""
        model_path = Path(self.config.model_path or DEFAULT_MODEL_PATH)

        if not model_path.exists():
            if not self.config.auto_download:
                logger.error("Hand landmarker model not found at %s", model_path)
                return False
            if not download_model(HAND_LANDMARKER_MODEL_URL, model_path):
                logger.error("Could not download hand landmarker model")
                return False

        options = vision.HandLandmarkerOptions(
            base_options=python.BaseOptions(model_asset_path=str(model_path)),
            running_mode=vision.RunningMode.VIDEO,
            num_hands=1,
            min_hand_detection_confidence=self.config.min_detection_confidence,
            min_hand_presence_confidence=self.config.min_presence_confidence,
            min_tracking_confidence=self.config.min_tracking_confidence,
        )
        try:
            self._landmarker = vision.HandLandmarker.create_from_options(options)
        except (RuntimeError, ValueError) as e:
            logger.error("Failed to initialize HandLandmarker: %s", e)
            return False

        logger.info(
            "HandLandmarker initialized (model=%s, detect_conf=%.2f, track_conf=%.2f)",
            model_path, self.config.min_detection_confidence,
            self.config.min_tracking_confidence,
        )
        return True

    def stop(self):
        """Release landmarker resources."""
        if self._landmarker is not None:
            self._landmarker.close()
            self._landmarker = None
            logger.info("HandLandmarker stopped")

    def detect(self, rgb_frame: np.ndarray, timestamp_ms: int) -> Optional[np.ndarray]:
        """Detect the hand in an RGB frame.

        Args:
            rgb_frame: Frame in RGB color space, shape (H, W, 3)
            timestamp_ms: Monotonic frame timestamp in milliseconds

        Returns:
            Joint Set of shape (21, 3), or None if nothing was detected

        Raises:
            InvalidInputError: the landmarker returned a malformed hand
        """
        if self._landmarker is None:
            logger.warning("HandLandmarker not initialized. Call start() first.")
            return None

        # VIDEO mode rejects non-increasing timestamps.
        if timestamp_ms <= self._last_timestamp_ms:
            timestamp_ms = self._last_timestamp_ms + 1
        self._last_timestamp_ms = timestamp_ms

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb_frame)
        result = self._landmarker.detect_for_video(mp_image, timestamp_ms)

        if not result.hand_landmarks:
            return None
        return self._extractor.extract_landmarks(result.hand_landmarks[0])

    @property
    def is_ready(self) -> bool:
        return self._landmarker is not None

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
