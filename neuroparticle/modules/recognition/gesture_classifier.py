"""
Rule-based gesture classifier for the particle interface.

Maps one frame's Joint Set to a discrete GestureLabel and computes the
continuous readings (expansion, tilt, roll) that drive the integrator.
The classifier is stateless: every call depends on the current frame only.

Finger extension is judged by distance from the wrist rather than by
screen-space y, so the test holds when the hand is rotated or tilted.
"""

import math
import logging
import numpy as np

from neuroparticle.core.types import (
    GestureLabel, ContinuousReadings, HandReading, LandmarkIndex,
    FINGER_NAMES, FINGER_TIPS, FINGER_REFERENCE_JOINTS,
)

logger = logging.getLogger(__name__)

# Empirical bounds for the mean wrist-to-fingertip distance, in normalized
# image units. Measured with the MediaPipe landmarker at arm's length;
# recalibrate for other detectors.
EXPANSION_CLOSED = 0.1   # ~ closed fist
EXPANSION_OPEN = 0.35    # ~ fully open hand


def _distance(p1: np.ndarray, p2: np.ndarray) -> float:
    """Euclidean distance between two 3D points."""
    return float(np.linalg.norm(p1 - p2))


def is_finger_extended(joints: np.ndarray, finger: str) -> bool:
    """A finger is extended when its tip is farther from the wrist than its reference joint."""
    wrist = joints[LandmarkIndex.WRIST]
    tip = joints[FINGER_TIPS[finger]]
    reference = joints[FINGER_REFERENCE_JOINTS[finger]]
    return _distance(wrist, tip) > _distance(wrist, reference)


def get_finger_states(joints: np.ndarray) -> dict:
    """Extension state of all five fingers.

    Returns:
        dict {finger_name: bool} with True for extended
    """
    return {finger: is_finger_extended(joints, finger) for finger in FINGER_NAMES}


def classify(joints: np.ndarray) -> GestureLabel:
    """Classify a Joint Set into a GestureLabel.

    Rules are checked in order and the first match wins. The two rotation
    poses are tested before the open/fist count so that a pointing hand is
    never counted toward zoom. Thumb state only matters for the count.

    Args:
        joints: np.ndarray of shape (21, 3) with normalized coordinates

    Returns:
        The active GestureLabel; never raises for a well-formed Joint Set
    """
    fingers = get_finger_states(joints)
    index, middle = fingers["index"], fingers["middle"]
    ring, pinky = fingers["ring"], fingers["pinky"]

    if index and not middle and not ring and not pinky:
        return GestureLabel.ROTATE_XY

    if index and middle and not ring and not pinky:
        return GestureLabel.ROTATE_Z

    extended_count = sum(1 for state in fingers.values() if state)
    if extended_count in (0, 5):
        return GestureLabel.ZOOM_EXPLODE

    return GestureLabel.IDLE


def calculate_expansion(joints: np.ndarray, closed: float = EXPANSION_CLOSED,
                        open_: float = EXPANSION_OPEN) -> float:
    """Openness of the hand in [0, 1]: 0 for a fist, 1 for a spread hand.

    Averages the five wrist-to-fingertip distances and rescales them
    linearly from [closed, open_] with clamping.
    """
    wrist = joints[LandmarkIndex.WRIST]
    # fsum keeps a hand sitting exactly on a bound from landing an ulp off it
    distances = [_distance(wrist, joints[FINGER_TIPS[f]]) for f in FINGER_NAMES]
    average = math.fsum(distances) / len(distances)
    if average <= closed:
        return 0.0
    if average >= open_:
        return 1.0
    return (average - closed) / (open_ - closed)


def calculate_rotation_xy(joints: np.ndarray) -> tuple:
    """Tilt readings from the index fingertip position.

    Maps each normalized coordinate from [0, 1] to [-1, 1]. The tip's y
    drives tilt about the X axis and its x drives tilt about the Y axis.

    Returns:
        (rotation_x, rotation_y)
    """
    tip = joints[LandmarkIndex.INDEX_TIP]
    return (float(tip[1]) - 0.5) * 2.0, (float(tip[0]) - 0.5) * 2.0


def calculate_rotation_z(joints: np.ndarray) -> float:
    """Angle of the line from the index tip to the middle tip, in (-pi, pi]."""
    p1 = joints[LandmarkIndex.INDEX_TIP]
    p2 = joints[LandmarkIndex.MIDDLE_TIP]
    return math.atan2(float(p2[1] - p1[1]), float(p2[0] - p1[0]))


class GestureClassifier:
    """Configured front end over the classification functions.

    Holds the tunable expansion bounds from the `recognition` config
    section and produces a HandReading per frame.

    Example:
        >>> classifier = GestureClassifier(config.recognition)
        >>> reading = classifier.read(joints)
        >>> reading.gesture
        <GestureLabel.ROTATE_Z: 'rotate_z'>
    """

    def __init__(self, config: dict = None):
        config = config or {}
        expansion_cfg = config.get("expansion") or {}
        self._expansion_closed = expansion_cfg.get("closed", EXPANSION_CLOSED)
        self._expansion_open = expansion_cfg.get("open", EXPANSION_OPEN)

        if self._expansion_open <= self._expansion_closed:
            logger.warning(
                "Expansion bounds inverted (closed=%.3f, open=%.3f), using defaults",
                self._expansion_closed, self._expansion_open,
            )
            self._expansion_closed = EXPANSION_CLOSED
            self._expansion_open = EXPANSION_OPEN

    def classify(self, joints: np.ndarray) -> GestureLabel:
        return classify(joints)

    def get_finger_states(self, joints: np.ndarray) -> dict:
        return get_finger_states(joints)

    def readings(self, joints: np.ndarray) -> ContinuousReadings:
        """Compute the four continuous readings for a Joint Set."""
        rotation_x, rotation_y = calculate_rotation_xy(joints)
        return ContinuousReadings(
            expansion=calculate_expansion(
                joints, self._expansion_closed, self._expansion_open
            ),
            rotation_x=rotation_x,
            rotation_y=rotation_y,
            rotation_z=calculate_rotation_z(joints),
        )

    def read(self, joints: np.ndarray) -> HandReading:
        """Classify and measure a Joint Set in one pass."""
        return HandReading(gesture=self.classify(joints), readings=self.readings(joints))

    @property
    def expansion_bounds(self) -> tuple:
        return (self._expansion_closed, self._expansion_open)
