import logging

import pytest

from iGrade.gui.performance_monitor import RenderTimingMonitor


def test_stats_per_tier():
    monitor = RenderTimingMonitor(window=3)
    for value in (10.0, 20.0, 30.0, 40.0):
        monitor.record("CPU", value)
    monitor.record("OpenGL", 2.0)

    stats = monitor.get_stats("CPU")
    assert stats["count"] == 3
    assert stats["total_count"] == 4
    assert stats["mean"] == pytest.approx(30.0)
    assert (stats["min"], stats["max"]) == (20.0, 40.0)
    assert stats["p50"] == 30.0
    assert set(monitor.get_all_stats()) == {"CPU", "OpenGL"}
    assert monitor.get_stats("missing") is None


def test_slow_render_signal(qtbot):
    monitor = RenderTimingMonitor(slow_threshold_ms=50.0)
    with qtbot.waitSignal(monitor.slowRenderDetected) as blocker:
        monitor.record("CPU", 75.0)
    assert blocker.args == ["CPU", 75.0]


def test_disabled_monitor_records_nothing():
    monitor = RenderTimingMonitor(enabled=False)
    with monitor.measure("CPU"):
        pass
    assert monitor.get_all_stats() == {}
    monitor.enable()
    with monitor.measure("CPU"):
        pass
    assert monitor.get_stats("CPU")["count"] == 1


def test_log_report(caplog):
    monitor = RenderTimingMonitor()
    logger = logging.getLogger("igrade-test-report")
    with caplog.at_level(logging.INFO, logger="igrade-test-report"):
        monitor.log_report(logger)
        monitor.record("CPU", 12.0)
        monitor.log_report(logger)
    assert "No render timings collected." in caplog.text
    assert "CPU renders: 1" in caplog.text
    monitor.reset()
    assert monitor.get_all_stats() == {}
