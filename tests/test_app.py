"""
Tests for the application wiring
=================================
"""

import pytest
from unittest.mock import patch

from neuroparticle import __version__
from neuroparticle.app import NeuroParticleApp, parse_args, main
from neuroparticle.core.events import EventBus, Events
from neuroparticle.core.types import GestureLabel
from neuroparticle.modules.utils.config import Config


@pytest.fixture
def config():
    Config.reset()
    EventBus().reset()
    config = Config()
    config.set("renderer.particle_count", 50)
    yield config
    Config.reset()
    EventBus().reset()


class TestParseArgs:

    def test_defaults(self):
        args = parse_args([])
        assert args.mode == "interactive"
        assert args.config is None
        assert args.frames is None

    def test_headless_with_limit(self):
        args = parse_args(["--mode", "headless", "--frames", "120", "--camera", "2"])
        assert args.mode == "headless"
        assert args.frames == 120
        assert args.camera == 2

    def test_invalid_mode_rejected(self):
        with pytest.raises(SystemExit):
            parse_args(["--mode", "benchmark"])

    def test_version(self, capsys):
        with pytest.raises(SystemExit):
            parse_args(["--version"])
        assert __version__ in capsys.readouterr().out


class TestNeuroParticleApp:

    def test_headless_has_no_renderer(self, config):
        app = NeuroParticleApp(config, mode="headless")
        assert app._renderer is None
        assert app._dashboard is None

    def test_interactive_builds_renderer(self, config):
        app = NeuroParticleApp(config, mode="interactive")
        assert app._renderer.count == 50

    def test_gesture_changes_reach_logger(self, config):
        app = NeuroParticleApp(config, mode="headless")
        EventBus().emit(Events.GESTURE_CHANGED, previous=GestureLabel.IDLE,
                        current=GestureLabel.ROTATE_Z, frame_id=3, hand_detected=True)
        assert app._gesture_logger.total_transitions == 1

    def test_keys(self, config):
        app = NeuroParticleApp(config, mode="headless")
        app._running = True
        with patch.object(app._pipeline, "reset") as reset:
            app._handle_key(ord("r"))
            reset.assert_called_once()
        app._handle_key(ord("q"))
        assert app._running is False

    def test_frame_limit_stops_loop(self, config):
        app = NeuroParticleApp(config, mode="headless", max_frames=2)
        app._running = True
        app._pipeline.process(None)
        app._check_frame_limit()
        assert app._running
        app._pipeline.process(None)
        app._check_frame_limit()
        assert not app._running

    def test_signal_stops_loop(self, config):
        app = NeuroParticleApp(config, mode="headless")
        app._running = True
        app.handle_signal(2, None)
        assert app._running is False

    def test_start_fails_without_camera(self, config):
        app = NeuroParticleApp(config, mode="headless")
        with patch.object(app._camera, "open", return_value=False):
            assert app.start() is False


class TestMain:

    def test_main_returns_error_code_on_failure(self, tmp_path):
        Config.reset()
        with patch.object(NeuroParticleApp, "start", return_value=False), \
                patch("neuroparticle.app.signal.signal"):
            code = main(["--mode", "headless", "--config", str(tmp_path / "none.yaml"),
                         "--log-level", "WARNING"])
        assert code == 1
        Config.reset()
        EventBus().reset()
