"""
Conversion of detector output into validated Joint Sets.

This is the boundary between the external landmarker and the core: every
Joint Set that reaches the classifier has passed validate_joint_set(), so
NaNs never get into the integrator state.
"""

import logging
import cv2
import numpy as np

from neuroparticle.core.types import JOINT_COUNT, InvalidInputError

logger = logging.getLogger(__name__)

# Bone connections for the preview overlay
HAND_CONNECTIONS = [
    (0, 1), (1, 2), (2, 3), (3, 4),
    (0, 5), (5, 6), (6, 7), (7, 8),
    (5, 9), (9, 10), (10, 11), (11, 12),
    (9, 13), (13, 14), (14, 15), (15, 16),
    (13, 17), (17, 18), (18, 19), (19, 20),
    (0, 17),
]
FINGERTIP_INDICES = (4, 8, 12, 16, 20)


def validate_joint_set(points) -> np.ndarray:
    """Check a Joint Set and return it as a float array of shape (21, 3).

    Args:
        points: array-like of 21 (x, y, z) positions

    Raises:
        InvalidInputError: wrong shape or non-finite coordinates
    """
    try:
        joints = np.asarray(points, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Joint Set is not numeric: {e}") from e

    if joints.shape != (JOINT_COUNT, 3):
        raise InvalidInputError(
            f"Joint Set must have shape ({JOINT_COUNT}, 3), got {joints.shape}"
        )
    if not np.all(np.isfinite(joints)):
        bad = int(np.count_nonzero(~np.isfinite(joints).all(axis=1)))
        raise InvalidInputError(f"Joint Set has {bad} non-finite joint(s)")
    return joints


class LandmarkExtractor:
    """Turns landmarker results into (21, 3) arrays and pixel coordinates."""

    def __init__(self):
        self._frame_width = 640
        self._frame_height = 480

    def set_frame_size(self, width: int, height: int):
        """Set frame dimensions for pixel coordinate conversion."""
        self._frame_width = width
        self._frame_height = height

    def extract_landmarks(self, hand_landmarks) -> np.ndarray:
        """Convert one hand's landmark list to a validated Joint Set.

        Args:
            hand_landmarks: sequence of objects with x, y, z attributes
                (MediaPipe NormalizedLandmark or core.types.Landmark)

        Raises:
            InvalidInputError: if the landmark list is malformed
        """
        points = [[lm.x, lm.y, lm.z] for lm in hand_landmarks]
        return validate_joint_set(points)

    def to_pixel_coords(self, joints: np.ndarray) -> np.ndarray:
        """Convert normalized joints to pixel coordinates.

        Returns:
            np.ndarray of shape (21, 2) with pixel x, y
        """
        pixels = np.zeros((len(joints), 2), dtype=np.int32)
        pixels[:, 0] = (joints[:, 0] * self._frame_width).astype(np.int32)
        pixels[:, 1] = (joints[:, 1] * self._frame_height).astype(np.int32)
        return pixels

    @property
    def frame_size(self) -> tuple:
        return (self._frame_width, self._frame_height)


def draw_landmarks(image: np.ndarray, joints: np.ndarray,
                   landmark_color=(0, 255, 0), connection_color=(255, 255, 255),
                   landmark_radius: int = 3, connection_thickness: int = 1) -> np.ndarray:
    """Draw a Joint Set's bones and joints onto a BGR image in place."""
    h, w = image.shape[:2]
    extractor = LandmarkExtractor()
    extractor.set_frame_size(w, h)
    pixels = extractor.to_pixel_coords(joints)

    for start, end in HAND_CONNECTIONS:
        cv2.line(image, (int(pixels[start][0]), int(pixels[start][1])),
                 (int(pixels[end][0]), int(pixels[end][1])),
                 connection_color, connection_thickness)

    for i, (px, py) in enumerate(pixels):
        color = (0, 0, 255) if i in FINGERTIP_INDICES else landmark_color
        cv2.circle(image, (int(px), int(py)), landmark_radius, color, -1)

    return image
