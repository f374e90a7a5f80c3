"""
Webcam source for the hand detector.

Frames are delivered exactly as the sensor produces them. Landmark
coordinates, and so tilt and roll direction, are taken from this
unmirrored image; only the HUD preview is mirrored. In threaded mode a
daemon thread overwrites a single slot with the newest frame and the
render loop never waits on the device.
"""

import logging
import threading

import cv2

logger = logging.getLogger(__name__)

# (property, settings key) pairs requested from the driver on open
_REQUESTED = (
    (cv2.CAP_PROP_FRAME_WIDTH, "width"),
    (cv2.CAP_PROP_FRAME_HEIGHT, "height"),
    (cv2.CAP_PROP_FPS, "fps"),
)


class CameraManager:
    """OpenCV capture with an optional latest-frame thread."""

    def __init__(self, config: dict):
        self._settings = {
            "width": config.get("width", 640),
            "height": config.get("height", 480),
            "fps": config.get("fps", 30),
        }
        self._device_id = config.get("device_id", 0)
        self._warmup_frames = config.get("warmup_frames", 5)

        self._cap = None
        self._slot = (None, None)
        self._frame_id = 0
        self._slot_lock = threading.Lock()
        self._halt = threading.Event()
        self._worker = None

    def open(self) -> bool:
        """Open the device and drop a few frames while exposure settles."""
        cap = cv2.VideoCapture(self._device_id)
        if not cap.isOpened():
            logger.error("Camera %d could not be opened", self._device_id)
            cap.release()
            return False

        for prop, key in _REQUESTED:
            cap.set(prop, self._settings[key])
        cap.set(cv2.CAP_PROP_BUFFERSIZE, 1)

        # Drivers may ignore the request; trust what they report
        for prop, key in _REQUESTED[:2]:
            reported = int(cap.get(prop))
            if reported > 0:
                self._settings[key] = reported

        self._cap = cap
        logger.info("Camera %d: %dx%d @ %s fps requested", self._device_id,
                    self._settings["width"], self._settings["height"], self._settings["fps"])

        for _ in range(self._warmup_frames):
            cap.read()
        return True

    def _grab(self):
        """One frame from the device, or None if the read failed."""
        ok, frame = self._cap.read()
        return frame if ok else None

    def _next_id(self) -> int:
        self._frame_id += 1
        return self._frame_id

    def start_async(self):
        """Begin filling the latest-frame slot from a daemon thread."""
        if self._cap is None or self.is_async:
            return
        self._halt.clear()
        self._worker = threading.Thread(target=self._pump, name="camera-capture", daemon=True)
        self._worker.start()
        logger.info("Threaded capture running")

    def _pump(self):
        while not self._halt.is_set():
            frame = self._grab()
            if frame is None:
                self._halt.wait(0.001)
                continue
            with self._slot_lock:
                self._slot = (self._next_id(), frame)

    def read(self):
        """Newest frame from the capture thread as ``(frame_id, image)``.

        Never blocks. Returns ``(None, None)`` until the first frame lands.
        """
        with self._slot_lock:
            frame_id, frame = self._slot
        if frame is None:
            return None, None
        # The thread replaces the slot rather than writing into it
        return frame_id, frame.copy()

    def read_sync(self):
        """Read straight from the device as ``(frame_id, image)``; ``(None, None)`` on failure."""
        if self._cap is None:
            return None, None
        frame = self._grab()
        if frame is None:
            return None, None
        return self._next_id(), frame

    @property
    def resolution(self) -> tuple:
        return self._settings["width"], self._settings["height"]

    @property
    def is_open(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    @property
    def is_async(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def stop(self):
        """Join the capture thread and release the device."""
        self._halt.set()
        if self._worker is not None:
            self._worker.join(timeout=2.0)
            self._worker = None
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        self._slot = (None, None)
        logger.info("Camera %d released", self._device_id)

    def __enter__(self):
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()
