"""
NeuroParticle - gesture-driven particle field.
Application entry point and main loop.

Usage:
    neuroparticle                          # Interactive window
    neuroparticle --mode headless          # No window, periodic log of params
    neuroparticle --mode headless --frames 300
    python -m neuroparticle --camera 1 --log-level DEBUG

Keys (interactive):
    q  quit
    r  reset session
    p  print performance report
"""

import time
import signal
import argparse
import logging

import cv2

from neuroparticle import __version__
from neuroparticle.core.events import EventBus, Events
from neuroparticle.core.pipeline import Pipeline
from neuroparticle.modules.utils.config import Config
from neuroparticle.modules.utils.logger import setup_logging, GestureLogger
from neuroparticle.modules.utils.performance_monitor import PerformanceMonitor
from neuroparticle.modules.capture.camera_manager import CameraManager
from neuroparticle.modules.detection.hand_detector import HandDetector, HandDetectorConfig
from neuroparticle.modules.recognition.gesture_classifier import GestureClassifier
from neuroparticle.modules.recognition.motion_integrator import MotionIntegrator
from neuroparticle.modules.visualization.particle_renderer import ParticleField
from neuroparticle.modules.visualization.dashboard import Dashboard

logger = logging.getLogger(__name__)

MODES = ("interactive", "headless")


class NeuroParticleApp:
    """Wires camera, detector, classifier, integrator and renderer together.

    The Pipeline owns the per-frame logic; this class handles startup,
    the window and keys, event subscriptions, and shutdown.
    """

    def __init__(self, config: Config, mode: str = "interactive", max_frames: int = None):
        self._config = config
        self._mode = mode
        self._max_frames = max_frames
        self._running = False

        self._bus = EventBus()

        # Capture and detection
        self._camera = CameraManager(config.camera)
        self._detector = HandDetector(HandDetectorConfig.from_dict(config.mediapipe))

        # Recognition
        self._classifier = GestureClassifier(config.recognition)
        self._integrator = MotionIntegrator(config.integrator)

        # Visualization
        interactive = mode == "interactive" and config.get("visualization.enabled", True)
        self._interactive = interactive
        self._renderer = ParticleField(config.renderer) if interactive else None
        self._dashboard = Dashboard(config.visualization) if interactive else None
        self._window_name = config.get("visualization.window_name", "NeuroParticle")

        self._perf = PerformanceMonitor(
            window_size=config.get("performance.metrics_window", 100)
        )
        self._gesture_logger = GestureLogger()

        self._pipeline = Pipeline(
            classifier=self._classifier,
            integrator=self._integrator,
            camera=self._camera,
            detector=self._detector,
            renderer=self._renderer,
            performance_monitor=self._perf,
            event_bus=self._bus,
            config={
                "threaded": config.get("camera.threaded", True),
                "render": interactive,
                "pass_dt": config.get("integrator.smoothing_mode", "frame") == "time",
            },
        )

        self._bus.subscribe(Events.GESTURE_CHANGED, self._on_gesture_changed)
        self._bus.subscribe(Events.HAND_DETECTED, self._on_hand_detected)
        self._bus.subscribe(Events.HAND_LOST, self._on_hand_lost)

        logger.info("NeuroParticleApp initialized (mode=%s)", mode)

    def _on_gesture_changed(self, **kwargs):
        self._gesture_logger.log_transition(
            kwargs.get("previous"), kwargs["current"],
            frame_id=kwargs.get("frame_id"),
            hand_detected=kwargs.get("hand_detected", True),
        )

    def _on_hand_detected(self, **kwargs):
        logger.debug("Hand detected (frame %s)", kwargs.get("frame_id"))

    def _on_hand_lost(self, **kwargs):
        logger.debug("Hand lost (frame %s)", kwargs.get("frame_id"))

    def start(self) -> bool:
        """Open devices and run the main loop until quit."""
        if not self._camera.open():
            logger.error("Camera %d did not open; is it connected and readable?",
                         self._config.get("camera.device_id", 0))
            return False

        if not self._detector.start():
            logger.error("Hand landmarker unavailable, exiting")
            self._camera.stop()
            return False

        if self._config.get("camera.threaded", True):
            self._camera.start_async()
            time.sleep(0.5)  # let the first frame arrive

        self._running = True
        self._bus.emit(Events.SYSTEM_STARTED, mode=self._mode)
        logger.info("Running %s loop", self._mode)

        try:
            if self._interactive:
                self._run_interactive()
            else:
                self._run_headless()
        finally:
            self._shutdown()
        return True

    def _run_interactive(self):
        """Windowed loop: particle scene, HUD, keyboard."""
        while self._running:
            with self._perf.measure("total"):
                result = self._pipeline.tick()

                if result.frame is None:
                    time.sleep(0.001)
                    continue

                frame = self._dashboard.render(
                    result.canvas, self._pipeline.build_state(),
                    camera_frame=result.frame, joints=result.joints,
                )
                cv2.imshow(self._window_name, frame)

            self._handle_key(cv2.waitKey(1) & 0xFF)
            self._check_frame_limit()

    def _run_headless(self):
        """No window: log smoothed parameters every few frames."""
        interval = self._config.get("performance.headless_log_interval", 30)
        while self._running:
            with self._perf.measure("total"):
                result = self._pipeline.tick()

            if result.frame is None:
                time.sleep(0.001)
                continue

            if self._pipeline.frame_count % interval == 0:
                logger.info("Frame %d  %r  (FPS: %.1f)",
                            self._pipeline.frame_count, result.params, self._perf.fps)
            self._check_frame_limit()

    def _handle_key(self, key: int):
        if key == ord("q"):
            self._running = False
        elif key == ord("r"):
            self._pipeline.reset()
        elif key == ord("p"):
            self._perf.print_report()

    def _check_frame_limit(self):
        if self._max_frames is not None and self._pipeline.frame_count >= self._max_frames:
            logger.info("Frame limit %d reached", self._max_frames)
            self._running = False

    def _shutdown(self):
        """Release the camera and landmarker, close the window, log the session summary."""
        logger.info("Stopping after %d frames", self._pipeline.frame_count)
        self._running = False
        self._bus.emit(Events.SYSTEM_SHUTDOWN, frames=self._pipeline.frame_count)
        self._camera.stop()
        self._detector.stop()
        if self._interactive:
            cv2.destroyAllWindows()

        self._perf.print_report()
        logger.info("Gesture transitions: %d, rejected frames: %d",
                    self._gesture_logger.total_transitions,
                    self._bus.emitted(Events.INVALID_INPUT))

    def handle_signal(self, signum, frame):
        """SIGINT/SIGTERM: finish the current frame, then leave the loop."""
        logger.info("Signal %d received", signum)
        self._running = False


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="NeuroParticle - gesture-driven particle field"
    )
    parser.add_argument(
        "--mode", choices=MODES, default="interactive",
        help="Operating mode"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="YAML file merged over the built-in defaults"
    )
    parser.add_argument(
        "--camera", type=int, default=None,
        help="Override camera.device_id"
    )
    parser.add_argument(
        "--frames", type=int, default=None,
        help="Stop after this many frames"
    )
    parser.add_argument(
        "--log-level", type=str, default=None,
        help="Override logging.level (DEBUG, INFO, WARNING, ...)"
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    config = Config()
    config.load(config_path=args.config)

    if args.camera is not None:
        config.set("camera.device_id", args.camera)
    if args.log_level is not None:
        config.set("logging.level", args.log_level)

    log_cfg = config.get_section("logging")
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    logger.info("NeuroParticle %s (%s mode, camera %s)",
                config.get("system.version", __version__), args.mode,
                config.get("camera.device_id"))

    app = NeuroParticleApp(config, mode=args.mode, max_frames=args.frames)

    signal.signal(signal.SIGINT, app.handle_signal)
    signal.signal(signal.SIGTERM, app.handle_signal)

    return 0 if app.start() else 1


if __name__ == "__main__":
    raise SystemExit(main())
