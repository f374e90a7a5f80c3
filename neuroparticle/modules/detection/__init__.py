"""Hand landmark detection and Joint Set validation.

The MediaPipe wrapper lives in hand_detector and is imported from there
directly, so validation and drawing do not load the landmarker runtime.
"""
from .landmark_extractor import LandmarkExtractor, validate_joint_set, draw_landmarks

__all__ = ["LandmarkExtractor", "validate_joint_set", "draw_landmarks"]
