"""
Particle cloud renderer driven by SmoothedParams.

Particles sit in a spherical shell and drift with per-particle sine noise.
The whole cloud is scaled by the smoothed scale, rotated by the smoothed
Euler angles, and projected through a perspective camera onto an OpenCV
canvas. Expansion shifts the palette from cyan toward pink.

The renderer only reads SmoothedParams; nothing flows back into the core.
"""

import math
import logging
import cv2
import numpy as np

from neuroparticle.core.types import SmoothedParams

logger = logging.getLogger(__name__)

# Cloud shape
SHELL_INNER_RADIUS = 2.0
SHELL_THICKNESS = 1.5
PARTICLE_RADIUS = 0.08

# Organic motion
NOISE_FREQUENCY = 0.5
NOISE_AMPLITUDE = 0.2

# Palette (hue in [0, 1])
HUE_BASE = 0.55      # cyan/blue
HUE_EXPLODE = 0.95   # pink/red
SATURATION = 0.8
LIGHTNESS = 0.6
SHIMMER = 0.1

# Camera
CAMERA_DISTANCE = 10.0
FIELD_OF_VIEW_DEG = 45.0
NEAR_PLANE = 0.1
BACKGROUND_BGR = (5, 5, 5)


def rotation_matrix(rx: float, ry: float, rz: float) -> np.ndarray:
    """Rotation matrix for intrinsic XYZ Euler angles (Rx @ Ry @ Rz)."""
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    cz, sz = math.cos(rz), math.sin(rz)
    rot_x = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]])
    rot_y = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]])
    rot_z = np.array([[cz, -sz, 0], [sz, cz, 0], [0, 0, 1]])
    return rot_x @ rot_y @ rot_z


class ParticleField:
    """Instanced particle cloud drawn with OpenCV.

    Example:
        >>> field = ParticleField(config.renderer)
        >>> canvas = field.render(params, time_s=clock())
    """

    def __init__(self, config: dict = None):
        config = config or {}
        self._count = int(config.get("particle_count", 4000))
        self._width = int(config.get("width", 1280))
        self._height = int(config.get("height", 720))

        rng = np.random.default_rng(config.get("seed"))

        # Uniform directions on the sphere, radius in the shell
        theta = rng.random(self._count) * 2.0 * math.pi
        phi = np.arccos(rng.random(self._count) * 2.0 - 1.0)
        radius = SHELL_INNER_RADIUS + rng.random(self._count) * SHELL_THICKNESS

        self._base_positions = np.stack([
            radius * np.sin(phi) * np.cos(theta),
            radius * np.sin(phi) * np.sin(theta),
            radius * np.cos(phi),
        ], axis=1)
        # Per-axis speed factors for the noise
        self._randoms = rng.random((self._count, 3))
        self._indices = np.arange(self._count, dtype=np.float64)

        self._focal = (self._height / 2.0) / math.tan(math.radians(FIELD_OF_VIEW_DEG) / 2.0)

        logger.info("ParticleField: %d particles, %dx%d canvas",
                    self._count, self._width, self._height)

    # =========================================================================
    # Per-frame geometry
    # =========================================================================

    def local_positions(self, scale: float, time_s: float) -> np.ndarray:
        """Particle positions in cloud space: base + noise, times scale."""
        base = self._base_positions
        phase = time_s * self._randoms + base * NOISE_FREQUENCY
        noise = np.empty_like(base)
        noise[:, 0] = np.sin(phase[:, 0])
        noise[:, 1] = np.cos(phase[:, 1])
        noise[:, 2] = np.sin(phase[:, 2])
        return (base + noise * NOISE_AMPLITUDE) * scale

    def world_positions(self, params: SmoothedParams, time_s: float) -> np.ndarray:
        """Positions after the group rotation."""
        rot = rotation_matrix(params.rotation_x, params.rotation_y, params.rotation_z)
        return self.local_positions(params.scale, time_s) @ rot.T

    def colors(self, scale: float, time_s: float) -> np.ndarray:
        """Per-particle BGR colors (uint8, shape (N, 3))."""
        mix = min(max((scale - 1.2) / 2.0, 0.0), 1.0)
        hue = HUE_BASE + (HUE_EXPLODE - HUE_BASE) * mix
        lightness = LIGHTNESS + np.sin(time_s * 5.0 + self._indices) * SHIMMER

        hls = np.empty((1, self._count, 3), dtype=np.float32)
        hls[0, :, 0] = hue * 360.0
        hls[0, :, 1] = lightness
        hls[0, :, 2] = SATURATION
        bgr = cv2.cvtColor(hls, cv2.COLOR_HLS2BGR)[0]
        return np.clip(bgr * 255.0, 0, 255).astype(np.uint8)

    def project(self, points: np.ndarray, scale: float = 1.0):
        """Perspective-project world points for a camera at +z looking at the origin.

        Returns:
            (pixels, depth, radii, visible): pixel coordinates (N, 2) int32,
            distance along the view axis, on-screen radius per particle, and
            a mask of points in front of the near plane.
        """
        depth = CAMERA_DISTANCE - points[:, 2]
        visible = depth > NEAR_PLANE
        safe_depth = np.where(visible, depth, NEAR_PLANE)

        px = self._width / 2.0 + points[:, 0] * self._focal / safe_depth
        py = self._height / 2.0 - points[:, 1] * self._focal / safe_depth
        pixels = np.stack([px, py], axis=1).astype(np.int32)

        particle_scale = 1.0 + scale * 0.2
        radii = np.maximum(
            1, (PARTICLE_RADIUS * particle_scale * self._focal / safe_depth).astype(np.int32)
        )
        return pixels, depth, radii, visible

    # =========================================================================
    # Drawing
    # =========================================================================

    def render(self, params: SmoothedParams, time_s: float, canvas: np.ndarray = None) -> np.ndarray:
        """Draw the cloud for one frame.

        Args:
            params: Smoothed output of the motion integrator
            time_s: Seconds since the session started
            canvas: Optional BGR image to draw on; a blank one is created otherwise

        Returns:
            BGR canvas of the configured size
        """
        if canvas is None:
            canvas = np.empty((self._height, self._width, 3), dtype=np.uint8)
            canvas[:] = BACKGROUND_BGR

        points = self.world_positions(params, time_s)
        pixels, depth, radii, visible = self.project(points, params.scale)
        colors = self.colors(params.scale, time_s)

        # Painter's order: far particles first
        order = np.argsort(-depth)
        for i in order:
            if not visible[i]:
                continue
            x, y = int(pixels[i, 0]), int(pixels[i, 1])
            if x < -10 or y < -10 or x > self._width + 10 or y > self._height + 10:
                continue
            b, g, r = colors[i]
            cv2.circle(canvas, (x, y), int(radii[i]), (int(b), int(g), int(r)), -1, cv2.LINE_AA)

        return canvas

    @property
    def count(self) -> int:
        return self._count

    @property
    def size(self) -> tuple:
        return (self._width, self._height)
