"""Gesture recognition and motion smoothing."""
from .gesture_classifier import GestureClassifier
from .motion_integrator import MotionIntegrator, IntegratorParams, IntegratorState

__all__ = [
    "GestureClassifier",
    "MotionIntegrator",
    "IntegratorParams",
    "IntegratorState",
]
