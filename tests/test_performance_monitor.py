"""
Tests for the Performance Monitor
==================================
"""

import time

import pytest

from neuroparticle.modules.utils.performance_monitor import PerformanceMonitor, STAGES


class TestPerformanceMonitor:

    @pytest.fixture
    def monitor(self):
        return PerformanceMonitor(window_size=5)

    def test_first_tick_has_no_interval(self, monitor):
        assert monitor.tick() is None
        assert monitor.last_interval is None

    def test_tick_returns_elapsed_seconds(self, monitor):
        monitor.tick()
        time.sleep(0.02)
        dt = monitor.tick()
        assert 0.015 < dt < 0.5
        assert monitor.last_interval == dt

    def test_fps_calculation(self, monitor):
        for _ in range(6):
            monitor.tick()
            time.sleep(0.02)
        assert 10 < monitor.fps < 60

    def test_fps_zero_before_enough_frames(self, monitor):
        monitor.tick()
        assert monitor.fps == 0.0

    def test_stage_timing(self, monitor):
        with monitor.measure("integration"):
            time.sleep(0.01)
        assert monitor.get_stage_latency("integration") >= 9

    def test_stage_recorded_when_block_raises(self, monitor):
        with pytest.raises(ValueError):
            with monitor.measure("detection"):
                raise ValueError("bad frame")
        assert monitor.get_stage_latency("detection") >= 0.0
        assert len(monitor._stage_times["detection"]) == 1

    def test_unknown_stage_created(self, monitor):
        with monitor.measure("custom"):
            pass
        assert "custom" in monitor.get_all_latencies()

    def test_report(self, monitor):
        monitor.tick()
        monitor.tick()
        report = monitor.get_report()
        assert report["total_frames"] == 2
        assert set(STAGES) <= set(report["latencies_ms"])
        monitor.print_report()

    def test_reset(self, monitor):
        monitor.tick()
        with monitor.measure("total"):
            pass
        monitor.reset()
        assert monitor.frame_count == 0
        assert monitor.total_latency_ms == 0.0
        assert monitor.tick() is None
