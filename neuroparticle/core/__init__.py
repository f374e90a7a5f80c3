"""Shared domain types, event bus, and the frame pipeline."""
from .types import (
    GestureLabel, LandmarkIndex, Landmark, ContinuousReadings, HandReading,
    SmoothedParams, PipelineState, InvalidInputError,
)
from .events import EventBus, Events

__all__ = [
    "GestureLabel",
    "LandmarkIndex",
    "Landmark",
    "ContinuousReadings",
    "HandReading",
    "SmoothedParams",
    "PipelineState",
    "InvalidInputError",
    "EventBus",
    "Events",
]
