"""Render timing statistics for the preview backends.

Every full-resolution render is timed and recorded under the tier name of the
backend that produced it, so CPU and OpenGL timings can be compared side by
side.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from contextlib import contextmanager
from typing import Deque, Dict, Iterator, List, Optional

from PySide6.QtCore import QObject, Signal

_LOGGER = logging.getLogger(__name__)


class RenderTimingMonitor(QObject):
    """Rolling render timings per backend tier.

    Keeps the last ``window`` measurements of each tier and reports mean,
    extremes and percentiles over them.
    """

    # Emitted when a render exceeds the slow threshold
    slowRenderDetected = Signal(str, float)  # tier, duration_ms

    def __init__(self, enabled: bool = True, slow_threshold_ms: float = 100.0, window: int = 100):
        """Initialize the monitor.

        Args:
            enabled: Whether timings are recorded at all
            slow_threshold_ms: Threshold in ms to trigger slowRenderDetected
            window: Number of recent measurements kept per tier
        """
        super().__init__()
        self._enabled = enabled
        self._slow_threshold_ms = slow_threshold_ms
        self._window = window
        self._metrics: Dict[str, Deque[float]] = {}
        self._render_counts: Dict[str, int] = {}

    def enable(self, enabled: bool = True) -> None:
        self._enabled = enabled

    def is_enabled(self) -> bool:
        return self._enabled

    @contextmanager
    def measure(self, tier: str) -> Iterator[None]:
        """Time the enclosed block and record it under *tier*.

        Example:
            with monitor.measure("CPU"):
                backend.render(session, params, seed)
        """
        start = time.perf_counter()
        try:
            yield
        finally:
            self.record(tier, (time.perf_counter() - start) * 1000.0)

    def record(self, tier: str, elapsed_ms: float) -> None:
        """Record one render duration in milliseconds."""
        if not self._enabled:
            return
        if tier not in self._metrics:
            self._metrics[tier] = deque(maxlen=self._window)
            self._render_counts[tier] = 0

        self._metrics[tier].append(elapsed_ms)
        self._render_counts[tier] += 1

        if elapsed_ms > self._slow_threshold_ms:
            self.slowRenderDetected.emit(tier, elapsed_ms)

    def get_stats(self, tier: str) -> Optional[Dict[str, float]]:
        """Get statistics for a tier.

        Returns:
            Dictionary with keys count, total_count, mean, min, max, p50, p95
            (all durations in ms), or None if nothing was recorded
        """
        timings = self._metrics.get(tier)
        if not timings:
            return None

        values = list(timings)
        return {
            "count": len(values),
            "total_count": self._render_counts.get(tier, 0),
            "mean": sum(values) / len(values),
            "min": min(values),
            "max": max(values),
            "p50": self._percentile(values, 50),
            "p95": self._percentile(values, 95),
        }

    def get_all_stats(self) -> Dict[str, Dict[str, float]]:
        return {
            tier: stats
            for tier in self._metrics
            if (stats := self.get_stats(tier)) is not None
        }

    def log_report(self, logger: Optional[logging.Logger] = None) -> None:
        """Write a formatted timing report to *logger* at INFO level."""
        target = logger or _LOGGER
        if not self._metrics:
            target.info("No render timings collected.")
            return

        for tier in sorted(self._metrics):
            stats = self.get_stats(tier)
            if stats is None:
                continue
            target.info(
                "%s renders: %d (total %d), mean %.2fms, p50 %.2fms, p95 %.2fms, min/max %.2f/%.2fms",
                tier,
                stats["count"],
                stats["total_count"],
                stats["mean"],
                stats["p50"],
                stats["p95"],
                stats["min"],
                stats["max"],
            )

    def reset(self) -> None:
        self._metrics.clear()
        self._render_counts.clear()

    @staticmethod
    def _percentile(data: List[float], p: int) -> float:
        if not data:
            return 0.0

        sorted_data = sorted(data)
        index = int(len(sorted_data) * p / 100)
        index = min(index, len(sorted_data) - 1)
        return sorted_data[index]


# Shared monitor used by the render controllers unless one is injected.
render_monitor = RenderTimingMonitor()
