"""
Shared domain types for the NeuroParticle gesture interface.

Centralizes enums, value objects, and joint index constants used by the
classifier, the motion integrator, and the renderer, so every module
agrees on what a gesture label and a Joint Set are.
"""

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import NamedTuple, Optional, Tuple


# =============================================================================
# Gesture Labels
# =============================================================================

class GestureLabel(Enum):
    """The closed set of interaction modes. Exactly one is active per frame."""
    IDLE = "idle"
    ROTATE_XY = "rotate_xy"
    ROTATE_Z = "rotate_z"
    ZOOM_EXPLODE = "zoom_explode"

    @classmethod
    def from_string(cls, name: str) -> 'GestureLabel':
        """Convert a string label to GestureLabel, falling back to IDLE."""
        try:
            return cls(name)
        except ValueError:
            return cls.IDLE

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").upper()

    @property
    def is_rotation(self) -> bool:
        return self in (GestureLabel.ROTATE_XY, GestureLabel.ROTATE_Z)


# =============================================================================
# Joint Indices
# =============================================================================

JOINT_COUNT = 21


class LandmarkIndex(IntEnum):
    """Hand joint indices following the MediaPipe hand model."""
    WRIST = 0
    THUMB_CMC = 1
    THUMB_MCP = 2
    THUMB_IP = 3
    THUMB_TIP = 4
    INDEX_MCP = 5
    INDEX_PIP = 6
    INDEX_DIP = 7
    INDEX_TIP = 8
    MIDDLE_MCP = 9
    MIDDLE_PIP = 10
    MIDDLE_DIP = 11
    MIDDLE_TIP = 12
    RING_MCP = 13
    RING_PIP = 14
    RING_DIP = 15
    RING_TIP = 16
    PINKY_MCP = 17
    PINKY_PIP = 18
    PINKY_DIP = 19
    PINKY_TIP = 20


FINGER_NAMES = ("thumb", "index", "middle", "ring", "pinky")

# Fingertip and the reference joint nearer the palm, per finger.
# The thumb has no PIP; its MCP plays that role.
FINGER_TIPS = {
    "thumb": LandmarkIndex.THUMB_TIP,
    "index": LandmarkIndex.INDEX_TIP,
    "middle": LandmarkIndex.MIDDLE_TIP,
    "ring": LandmarkIndex.RING_TIP,
    "pinky": LandmarkIndex.PINKY_TIP,
}
FINGER_REFERENCE_JOINTS = {
    "thumb": LandmarkIndex.THUMB_MCP,
    "index": LandmarkIndex.INDEX_PIP,
    "middle": LandmarkIndex.MIDDLE_PIP,
    "ring": LandmarkIndex.RING_PIP,
    "pinky": LandmarkIndex.PINKY_PIP,
}


class Landmark(NamedTuple):
    """A single joint position with normalized coordinates."""
    x: float  # 0.0 to 1.0, normalized by image width
    y: float  # 0.0 to 1.0, normalized by image height
    z: float  # Depth relative to wrist, small signed range

    def to_pixel(self, width: int, height: int) -> Tuple[int, int]:
        """Convert normalized coordinates to pixel coordinates."""
        return (int(self.x * width), int(self.y * height))


# =============================================================================
# Errors
# =============================================================================

class InvalidInputError(ValueError):
    """A Joint Set from the detector is malformed (wrong shape or non-finite)."""


# =============================================================================
# Data Containers
# =============================================================================

@dataclass(frozen=True)
class ContinuousReadings:
    """Raw continuous values derived from one frame's Joint Set."""
    expansion: float = 0.0   # 0..1, fist to open hand
    rotation_x: float = 0.0  # -1..1, from index tip y
    rotation_y: float = 0.0  # -1..1, from index tip x
    rotation_z: float = 0.0  # radians, (-pi, pi]

    @property
    def rotation_z_degrees(self) -> float:
        return math.degrees(self.rotation_z)


@dataclass(frozen=True)
class HandReading:
    """Classifier output for one detected hand in one frame."""
    gesture: GestureLabel
    readings: ContinuousReadings


class SmoothedParams:
    """Smoothed output handed to the renderer once per frame.

    Uses __slots__ since one is created per frame.
    """

    __slots__ = ("gesture", "rotation_x", "rotation_y", "rotation_z", "scale")

    def __init__(self, gesture: GestureLabel, rotation_x: float = 0.0,
                 rotation_y: float = 0.0, rotation_z: float = 0.0,
                 scale: float = 1.0):
        self.gesture = gesture
        self.rotation_x = rotation_x
        self.rotation_y = rotation_y
        self.rotation_z = rotation_z
        self.scale = scale

    def __repr__(self):
        return (
            f"SmoothedParams({self.gesture.value}, rot=({self.rotation_x:.3f}, "
            f"{self.rotation_y:.3f}, {self.rotation_z:.3f}), scale={self.scale:.3f})"
        )

    @property
    def rotation(self) -> Tuple[float, float, float]:
        return (self.rotation_x, self.rotation_y, self.rotation_z)

    def to_dict(self) -> dict:
        return {
            "gesture": self.gesture.value,
            "rotation_x": self.rotation_x,
            "rotation_y": self.rotation_y,
            "rotation_z": self.rotation_z,
            "scale": self.scale,
        }


class PipelineState:
    """Mutable per-session view of the pipeline, observed by the dashboard.

    The pipeline reads and writes it from the render thread only.
    """

    def __init__(self):
        self.gesture: GestureLabel = GestureLabel.IDLE
        self.hand_detected: bool = False
        self.landmark_count: int = 0
        self.readings: Optional[ContinuousReadings] = None
        self.params: Optional[SmoothedParams] = None
        self.fps: float = 0.0
        self.latency_ms: float = 0.0
        self.frame_count: int = 0
        self.detector_ready: bool = False

    def to_dashboard_dict(self) -> dict:
        """Convert to the dict format expected by Dashboard.render()."""
        return {
            "gesture": self.gesture,
            "hand_detected": self.hand_detected,
            "landmark_count": self.landmark_count,
            "readings": self.readings,
            "params": self.params,
            "fps": self.fps,
            "latency_ms": self.latency_ms,
            "detector_ready": self.detector_ready,
        }
