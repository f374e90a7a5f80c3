"""
Motion integrator: turns per-frame gesture labels and raw readings into
smoothed rotation and scale values for the particle renderer.

Each frame selects rotation/scale targets from the active gesture, then
eases every current value toward its target by exponential interpolation.
Roll under ROTATE_Z is accumulated from frame-to-frame deltas against a
rolling baseline, so the output follows continuous wrist motion instead of
the absolute finger angle.

The state lives in an explicit IntegratorState object and advance() is the
only function that mutates it, which keeps a literal frame sequence
replayable in tests.
"""

import math
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from neuroparticle.core.types import (
    GestureLabel, ContinuousReadings, SmoothedParams, InvalidInputError,
)

logger = logging.getLogger(__name__)

# Defaults. All of them are empirical and overridable from the
# `integrator` config section.
TILT_MAX = math.pi / 1.5        # rad of tilt at the edge of the frame
SMOOTHING_FACTOR = 0.1          # fraction of remaining distance per frame
IDLE_DRIFT = 0.002              # rad added to target Y per idle frame
ZOOM_SCALE_MIN = 0.5            # scale at expansion 0 (fist)
ZOOM_SCALE_RANGE = 3.5          # added at expansion 1 (open hand)
NEUTRAL_SCALE = 1.0
REFERENCE_FPS = 60.0
# Time constant matching SMOOTHING_FACTOR at REFERENCE_FPS.
TIME_CONSTANT_S = (1.0 / REFERENCE_FPS) / -math.log(1.0 - SMOOTHING_FACTOR)

SMOOTHING_MODES = ("frame", "time")


def _bounded(config: dict, key: str, default: float, upper: float = math.inf) -> float:
    """config[key] if it is a finite number in (0, upper], else the default."""
    value = config.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)) \
            or not math.isfinite(value) or not 0.0 < value <= upper:
        logger.warning("Invalid integrator.%s %r, using %r", key, value, default)
        return default
    return float(value)


@dataclass
class IntegratorParams:
    """Tunable integrator constants."""
    smoothing_factor: float = SMOOTHING_FACTOR
    smoothing_mode: str = "frame"  # "frame" or "time"
    time_constant_s: float = TIME_CONSTANT_S
    reference_fps: float = REFERENCE_FPS
    tilt_max: float = TILT_MAX
    idle_drift: float = IDLE_DRIFT
    zoom_scale_min: float = ZOOM_SCALE_MIN
    zoom_scale_range: float = ZOOM_SCALE_RANGE
    neutral_scale: float = NEUTRAL_SCALE
    unwrap_roll_delta: bool = False

    @classmethod
    def from_dict(cls, config: dict) -> "IntegratorParams":
        """Create params from the `integrator` config section."""
        mode = config.get("smoothing_mode", "frame")
        if mode not in SMOOTHING_MODES:
            logger.warning("Unknown smoothing_mode %r, using 'frame'", mode)
            mode = "frame"
        return cls(
            smoothing_factor=_bounded(config, "smoothing_factor", SMOOTHING_FACTOR, upper=1.0),
            smoothing_mode=mode,
            time_constant_s=_bounded(config, "time_constant_s", TIME_CONSTANT_S),
            reference_fps=_bounded(config, "reference_fps", REFERENCE_FPS),
            tilt_max=config.get("tilt_max", TILT_MAX),
            idle_drift=config.get("idle_drift", IDLE_DRIFT),
            zoom_scale_min=config.get("zoom_scale_min", ZOOM_SCALE_MIN),
            zoom_scale_range=config.get("zoom_scale_range", ZOOM_SCALE_RANGE),
            neutral_scale=config.get("neutral_scale", NEUTRAL_SCALE),
            unwrap_roll_delta=config.get("unwrap_roll_delta", False),
        )


@dataclass
class IntegratorState:
    """Smoothing state carried from one frame to the next.

    Lives for one visualization session. accumulated_roll is zeroed only by
    constructing a fresh state; gesture changes never touch it.
    """
    rotation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    target_rotation: List[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    scale: float = NEUTRAL_SCALE
    target_scale: float = NEUTRAL_SCALE
    roll_baseline: Optional[float] = None
    accumulated_roll: float = 0.0
    last_readings: Optional[ContinuousReadings] = None
    frame_count: int = 0


# =============================================================================
# Per-gesture target rules
# =============================================================================

def _targets_rotate_xy(state: IntegratorState, readings: ContinuousReadings,
                       params: IntegratorParams, frame_scale: float):
    state.roll_baseline = None
    state.target_rotation[0] = readings.rotation_x * params.tilt_max
    state.target_rotation[1] = readings.rotation_y * params.tilt_max


def _targets_rotate_z(state: IntegratorState, readings: ContinuousReadings,
                      params: IntegratorParams, frame_scale: float):
    angle = readings.rotation_z
    if state.roll_baseline is not None:
        delta = angle - state.roll_baseline
        if params.unwrap_roll_delta:
            delta = math.atan2(math.sin(delta), math.cos(delta))
        state.accumulated_roll += delta
    # Rolling reference: the next delta is measured from this frame.
    state.roll_baseline = angle
    state.target_rotation[2] = state.accumulated_roll


def _targets_idle(state: IntegratorState, readings: ContinuousReadings,
                  params: IntegratorParams, frame_scale: float):
    state.roll_baseline = None
    state.target_rotation[1] += params.idle_drift * frame_scale


def _targets_zoom_explode(state: IntegratorState, readings: ContinuousReadings,
                          params: IntegratorParams, frame_scale: float):
    # Rotation is frozen while zooming.
    state.roll_baseline = None


TARGET_RULES: Dict[GestureLabel, Callable] = {
    GestureLabel.IDLE: _targets_idle,
    GestureLabel.ROTATE_XY: _targets_rotate_xy,
    GestureLabel.ROTATE_Z: _targets_rotate_z,
    GestureLabel.ZOOM_EXPLODE: _targets_zoom_explode,
}


def scale_target(label: GestureLabel, readings: ContinuousReadings,
                 params: IntegratorParams) -> float:
    """Target scale for a label: expansion-driven under zoom, neutral otherwise."""
    if label is GestureLabel.ZOOM_EXPLODE:
        return params.zoom_scale_min + readings.expansion * params.zoom_scale_range
    return params.neutral_scale


def smoothing_factor(params: IntegratorParams, dt: Optional[float] = None) -> float:
    """Interpolation factor for this frame.

    In "frame" mode the factor is fixed per call, so visual speed depends
    on the frame rate. In "time" mode it becomes 1 - exp(-dt / tau); without
    a usable dt the fixed factor is used.
    """
    if params.smoothing_mode == "time" and dt is not None and dt > 0:
        return 1.0 - math.exp(-dt / params.time_constant_s)
    return params.smoothing_factor


def _lerp(current: float, target: float, t: float) -> float:
    return current + (target - current) * t


def _check_finite(readings: ContinuousReadings):
    values = (readings.expansion, readings.rotation_x,
              readings.rotation_y, readings.rotation_z)
    if not all(math.isfinite(v) for v in values):
        raise InvalidInputError(f"Non-finite readings: {readings!r}")


def advance(state: IntegratorState, label: Optional[GestureLabel],
            readings: Optional[ContinuousReadings], params: IntegratorParams,
            dt: Optional[float] = None) -> SmoothedParams:
    """Advance the integrator by one frame.

    Args:
        state: Session state, updated in place
        label: Current gesture, or None when no hand was detected
        readings: Raw readings for the frame, ignored when label is None
        params: Tunable constants
        dt: Seconds since the previous frame (used in "time" mode only)

    Returns:
        SmoothedParams for the renderer. A no-hand frame reports IDLE.
    """
    if label is None:
        # No hand: hold every target and keep easing toward it.
        state.roll_baseline = None
        label = GestureLabel.IDLE
    else:
        if readings is None:
            readings = state.last_readings or ContinuousReadings()
        _check_finite(readings)
        state.last_readings = readings

        frame_scale = 1.0
        if params.smoothing_mode == "time" and dt is not None and dt > 0:
            frame_scale = dt * params.reference_fps

        TARGET_RULES[label](state, readings, params, frame_scale)
        state.target_scale = scale_target(label, readings, params)

    t = smoothing_factor(params, dt)
    for axis in range(3):
        state.rotation[axis] = _lerp(state.rotation[axis], state.target_rotation[axis], t)
    state.scale = _lerp(state.scale, state.target_scale, t)
    state.frame_count += 1

    return SmoothedParams(
        gesture=label,
        rotation_x=state.rotation[0],
        rotation_y=state.rotation[1],
        rotation_z=state.rotation[2],
        scale=state.scale,
    )


class MotionIntegrator:
    """Owns one session's IntegratorState and advances it once per frame.

    Example:
        >>> integrator = MotionIntegrator(config.get_section("integrator"))
        >>> params = integrator.integrate(reading.gesture, reading.readings)
        >>> params = integrator.integrate(None, None)  # no hand this frame
    """

    def __init__(self, config: dict = None):
        self._params = IntegratorParams.from_dict(config or {})
        self._state = IntegratorState(
            scale=self._params.neutral_scale,
            target_scale=self._params.neutral_scale,
        )
        logger.debug("MotionIntegrator created: %s", self._params)

    def integrate(self, label: Optional[GestureLabel],
                  readings: Optional[ContinuousReadings] = None,
                  dt: Optional[float] = None) -> SmoothedParams:
        """Process one frame. Pass label=None for a frame with no hand."""
        return advance(self._state, label, readings, self._params, dt)

    def reset(self):
        """Start a new session: zero all smoothing state and accumulated roll."""
        self._state = IntegratorState(
            scale=self._params.neutral_scale,
            target_scale=self._params.neutral_scale,
        )
        logger.info("Integrator state reset")

    @property
    def state(self) -> IntegratorState:
        return self._state

    @property
    def params(self) -> IntegratorParams:
        return self._params

    @property
    def accumulated_roll(self) -> float:
        return self._state.accumulated_roll

    @property
    def roll_baseline(self) -> Optional[float]:
        return self._state.roll_baseline
