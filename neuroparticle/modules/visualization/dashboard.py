"""
Heads-up display drawn over the particle scene: title, system status,
gesture instructions, live readings, FPS, and the camera preview inset.
"""

import logging
import cv2
import numpy as np

from neuroparticle.core.types import GestureLabel
from neuroparticle.modules.detection.landmark_extractor import draw_landmarks

logger = logging.getLogger(__name__)

FONT = cv2.FONT_HERSHEY_SIMPLEX

# Status panel text and BGR color per gesture
GESTURE_STYLES = {
    GestureLabel.IDLE: ("AWAITING INPUT", (160, 160, 160)),
    GestureLabel.ROTATE_XY: ("XY AXIS LOCK", (238, 211, 34)),
    GestureLabel.ROTATE_Z: ("Z-ROLL LOCK", (36, 191, 251)),
    GestureLabel.ZOOM_EXPLODE: ("PARTICLE DYNAMICS", (133, 113, 251)),
}

# (gesture, title, how to make it)
INSTRUCTIONS = [
    (GestureLabel.ZOOM_EXPLODE, "ZOOM / EXPLODE", "Open Hand / Fist"),
    (GestureLabel.ROTATE_XY, "ROTATE VIEW", "Index Finger Only"),
    (GestureLabel.ROTATE_Z, "ROLL AXIS", "Index + Middle (Peace)"),
]


class Dashboard:
    """Renders the HUD overlay onto the particle canvas."""

    def __init__(self, config: dict):
        self._show_preview = config.get("show_camera_preview", True)
        self._show_metrics = config.get("show_metrics", True)
        self._title = config.get("title", "NeuroParticle")
        self._preview_size = tuple(config.get("preview_size", [192, 144]))
        self._mirror_preview = config.get("mirror_preview", True)
        self._opacity = config.get("panel_opacity", 0.6)

        self._color_text = (255, 255, 255)
        self._color_dim = (150, 150, 150)
        self._color_panel = (20, 20, 20)

    def render(self, canvas: np.ndarray, state: dict,
               camera_frame: np.ndarray = None, joints: np.ndarray = None) -> np.ndarray:
        """Render the full HUD.

        Args:
            canvas: BGR particle scene to draw on (modified in place)
            state: dict from PipelineState.to_dashboard_dict()
            camera_frame: raw camera frame for the preview inset
            joints: current Joint Set, drawn over the preview

        Returns:
            The canvas with the overlay
        """
        h, w = canvas.shape[:2]
        gesture = state.get("gesture") or GestureLabel.IDLE

        self._draw_header(canvas, gesture)
        self._draw_instructions(canvas, h, gesture)

        if self._show_metrics:
            self._draw_metrics(canvas, w, state)

        if self._show_preview:
            self._draw_preview(canvas, w, h, camera_frame, joints,
                               state.get("detector_ready", False))

        return canvas

    def _panel(self, canvas, top_left, bottom_right):
        """Semi-transparent dark panel."""
        overlay = canvas.copy()
        cv2.rectangle(overlay, top_left, bottom_right, self._color_panel, -1)
        cv2.addWeighted(overlay, self._opacity, canvas, 1 - self._opacity, 0, canvas)
        cv2.rectangle(canvas, top_left, bottom_right, (60, 60, 60), 1)

    def _draw_header(self, canvas, gesture):
        """Title and system status."""
        cv2.putText(canvas, self._title, (24, 48), FONT, 1.2, self._color_text, 2, cv2.LINE_AA)
        cv2.putText(canvas, "Gesture-driven particle field", (24, 72), FONT, 0.45,
                    self._color_dim, 1, cv2.LINE_AA)

        text, color = status_style(gesture)
        self._panel(canvas, (24, 90), (304, 150))
        cv2.putText(canvas, "SYSTEM STATUS", (36, 112), FONT, 0.4, self._color_dim, 1, cv2.LINE_AA)
        cv2.circle(canvas, (42, 134), 5, color, -1)
        cv2.putText(canvas, text, (56, 140), FONT, 0.65, color, 2, cv2.LINE_AA)

    def _draw_instructions(self, canvas, h, gesture):
        """Gesture list, active one highlighted."""
        y = h - 40 - 46 * (len(INSTRUCTIONS) - 1)
        for label, title, hint in INSTRUCTIONS:
            active = label == gesture
            color = status_style(label)[1] if active else self._color_dim
            if active:
                cv2.rectangle(canvas, (20, y - 20), (24, y + 16), color, -1)
            cv2.putText(canvas, title, (32, y - 2), FONT, 0.5, color,
                        2 if active else 1, cv2.LINE_AA)
            cv2.putText(canvas, hint, (32, y + 14), FONT, 0.4, self._color_dim, 1, cv2.LINE_AA)
            y += 46

    def _draw_metrics(self, canvas, w, state):
        """Live readings panel, top right."""
        readings = state.get("readings")
        x = w - 260
        self._panel(canvas, (x - 12, 24), (w - 24, 170))

        landmark_count = state.get("landmark_count", 0)
        if landmark_count:
            landmarks_text = f"LANDMARKS: {landmark_count} DETECTED"
        else:
            landmarks_text = "LANDMARKS: NONE"

        lines = [landmarks_text]
        if readings is not None:
            lines.extend([
                f"VAL_EXP: {readings.expansion:.2f}",
                f"ROT_XY: {readings.rotation_x:+.2f}, {readings.rotation_y:+.2f}",
                f"ROT_Z: {readings.rotation_z_degrees:+.0f} deg",
            ])
        else:
            lines.extend(["VAL_EXP: --", "ROT_XY: --", "ROT_Z: --"])

        y = 50
        for line in lines:
            cv2.putText(canvas, line, (x, y), FONT, 0.45, self._color_text, 1, cv2.LINE_AA)
            y += 24

        fps = state.get("fps", 0.0)
        if fps >= 25:
            fps_color = (0, 255, 0)
        elif fps >= 15:
            fps_color = (0, 255, 255)
        else:
            fps_color = (0, 0, 255)
        cv2.putText(canvas, f"FPS: {fps:.1f}", (x, y + 4), FONT, 0.5, fps_color, 1, cv2.LINE_AA)

    def _draw_preview(self, canvas, w, h, camera_frame, joints, online):
        """Camera inset, bottom right, with the tracked hand drawn on it."""
        pw, ph = self._preview_size
        x0, y0 = w - pw - 24, h - ph - 40
        if x0 < 0 or y0 < 0:
            return

        if camera_frame is not None:
            inset = cv2.resize(camera_frame, (pw, ph))
            if joints is not None:
                draw_landmarks(inset, joints, landmark_radius=2)
            # Landmarks are in raw-frame coordinates, so flip after drawing
            if self._mirror_preview:
                inset = cv2.flip(inset, 1)
            canvas[y0:y0 + ph, x0:x0 + pw] = inset
        else:
            cv2.rectangle(canvas, (x0, y0), (x0 + pw, y0 + ph), (30, 30, 30), -1)

        cv2.rectangle(canvas, (x0, y0), (x0 + pw, y0 + ph), (90, 90, 90), 1)

        label = "SYSTEM ONLINE" if online else "INITIALIZING..."
        color = (0, 200, 0) if online else (0, 180, 255)
        cv2.putText(canvas, label, (x0, y0 + ph + 20), FONT, 0.45, color, 1, cv2.LINE_AA)


def status_style(gesture: GestureLabel) -> tuple:
    """(status text, BGR color) for a gesture."""
    return GESTURE_STYLES.get(gesture, GESTURE_STYLES[GestureLabel.IDLE])
