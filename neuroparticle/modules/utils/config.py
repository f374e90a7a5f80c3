"""
Settings for camera, detector, recognizer, integrator and renderer.

A partial or missing YAML file is fine: whatever it leaves out comes
from the built-in defaults below. Out-of-range values are logged at load
time but never raise.
"""

import os
import copy
import math
import logging
import yaml

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_PACKAGE_DIR, "config")
DEFAULT_CONFIG_PATH = os.path.join(_CONFIG_DIR, "config.yaml")

_DEFAULTS = {
    "system": {
        "name": "NeuroParticle",
        "version": "1.0.0",
    },
    "camera": {
        "device_id": 0,
        "width": 640,
        "height": 480,
        "fps": 30,
        "warmup_frames": 5,
        "threaded": True,
    },
    "mediapipe": {
        "model_path": "",
        "auto_download": True,
        "min_detection_confidence": 0.5,
        "min_presence_confidence": 0.5,
        "min_tracking_confidence": 0.5,
    },
    "recognition": {
        "expansion": {
            "closed": 0.1,
            "open": 0.35,
        },
    },
    "integrator": {
        "smoothing_mode": "frame",
        "smoothing_factor": 0.1,
        "time_constant_s": (1.0 / 60.0) / -math.log(0.9),
        "reference_fps": 60,
        "tilt_max": math.pi / 1.5,
        "idle_drift": 0.002,
        "zoom_scale_min": 0.5,
        "zoom_scale_range": 3.5,
        "neutral_scale": 1.0,
        "unwrap_roll_delta": False,
    },
    "renderer": {
        "particle_count": 4000,
        "width": 1280,
        "height": 720,
        "seed": None,
    },
    "visualization": {
        "enabled": True,
        "window_name": "NeuroParticle",
        "mirror_preview": True,
        "show_camera_preview": True,
        "show_metrics": True,
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "max_size_mb": 10,
        "backup_count": 3,
    },
    "performance": {
        "metrics_window": 100,
        "headless_log_interval": 30,
    },
}

def _is_number(value):
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_count(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def _is_probability(value):
    return _is_number(value) and 0.0 <= value <= 1.0


# key path -> (check, what a valid value looks like)
_RULES = {
    "camera.device_id": (lambda v: isinstance(v, int) and not isinstance(v, bool), "an integer"),
    "camera.width": (_is_count, "a positive integer"),
    "camera.height": (_is_count, "a positive integer"),
    "camera.fps": (_is_count, "a positive integer"),
    "mediapipe.min_detection_confidence": (_is_probability, "a number in [0, 1]"),
    "mediapipe.min_presence_confidence": (_is_probability, "a number in [0, 1]"),
    "mediapipe.min_tracking_confidence": (_is_probability, "a number in [0, 1]"),
    "recognition.expansion.closed": (_is_number, "a number"),
    "recognition.expansion.open": (_is_number, "a number"),
    "integrator.smoothing_mode": (lambda v: v in ("frame", "time"), "'frame' or 'time'"),
    "integrator.smoothing_factor": (lambda v: _is_number(v) and 0.0 < v <= 1.0, "a number in (0, 1]"),
    "integrator.time_constant_s": (lambda v: _is_number(v) and v > 0, "a positive number"),
    "integrator.tilt_max": (_is_number, "a number"),
    "integrator.idle_drift": (_is_number, "a number"),
    "renderer.particle_count": (_is_count, "a positive integer"),
    "renderer.width": (_is_count, "a positive integer"),
    "renderer.height": (_is_count, "a positive integer"),
}

_MISSING = object()


def _deep_merge(base: dict, override: dict) -> dict:
    """Return ``base`` with ``override`` layered on top, section by section."""
    merged = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = _deep_merge(current, value)
        else:
            merged[key] = value
    return merged


class Config:
    """Process-wide settings: built-in defaults with one YAML file merged on top."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            instance = super().__new__(cls)
            instance._data = copy.deepcopy(_DEFAULTS)
            cls._instance = instance
        return cls._instance

    def load(self, config_path=None):
        """Re-read settings from ``config_path`` (the packaged file by default).

        Each load starts again from the defaults, so keys from an earlier
        file never linger.
        """
        config_path = config_path or DEFAULT_CONFIG_PATH
        overrides = {}
        try:
            with open(config_path, "r") as f:
                overrides = yaml.safe_load(f) or {}
            logger.info("Config loaded from %s", config_path)
        except FileNotFoundError:
            logger.warning("No config at %s; running on defaults", config_path)

        if not isinstance(overrides, dict):
            logger.warning("Ignoring %s: top level is a %s, not a mapping",
                           config_path, type(overrides).__name__)
            overrides = {}

        self._data = _deep_merge(copy.deepcopy(_DEFAULTS), overrides)
        self._validate()
        return self

    def _validate(self):
        """Log a warning for every out-of-range setting and return the messages.

        Bad values are reported, not replaced; the module reading them
        decides how to cope.
        """
        problems = []
        for key_path, (check, expected) in _RULES.items():
            value = self._lookup(key_path)
            if value is not _MISSING and not check(value):
                problems.append(f"{key_path} should be {expected}, got {value!r}")

        closed = self.get("recognition.expansion.closed")
        opened = self.get("recognition.expansion.open")
        if _is_number(closed) and _is_number(opened) and closed >= opened:
            problems.append(f"recognition.expansion: closed ({closed}) must be below open ({opened})")

        for problem in problems:
            logger.warning("Config: %s", problem)
        return problems

    def _lookup(self, key_path):
        node = self._data
        for key in key_path.split("."):
            if not isinstance(node, dict) or key not in node:
                return _MISSING
            node = node[key]
        return node

    def get(self, key_path: str, default=None):
        """Dotted lookup, e.g. ``config.get("camera.width")``."""
        value = self._lookup(key_path)
        return default if value is _MISSING else value

    def set(self, key_path: str, value):
        """Dotted assignment; missing sections are created on the way."""
        *parents, leaf = key_path.split(".")
        node = self._data
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value

    def get_section(self, section: str) -> dict:
        return self._data.get(section, {})

    camera = property(lambda self: self.get_section("camera"))
    mediapipe = property(lambda self: self.get_section("mediapipe"))
    recognition = property(lambda self: self.get_section("recognition"))
    integrator = property(lambda self: self.get_section("integrator"))
    renderer = property(lambda self: self.get_section("renderer"))
    visualization = property(lambda self: self.get_section("visualization"))
    performance = property(lambda self: self.get_section("performance"))

    @classmethod
    def reset(cls):
        """Drop the shared instance; the next ``Config()`` starts from defaults."""
        cls._instance = None
