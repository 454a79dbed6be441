"""Qt event loop implementation of the cooperative tick scheduler."""

from __future__ import annotations

from PySide6.QtCore import QTimer

from ....config import DEFAULT_TICK_INTERVAL_MS
from ....core.ticker import TickCallback


class QtFrameTicker:
    """Run each callback from the event loop after *interval_ms* milliseconds.

    A zero interval runs the callback as soon as the event loop has processed
    the events already queued, which is the closest Qt analogue of a per-frame
    callback for offscreen work.
    """

    def __init__(self, interval_ms: int = DEFAULT_TICK_INTERVAL_MS) -> None:
        if interval_ms < 0:
            raise ValueError(f"interval_ms must be non-negative; got {interval_ms}")
        self._interval_ms = interval_ms

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def call_soon(self, callback: TickCallback) -> None:
        QTimer.singleShot(self._interval_ms, callback)


__all__ = ["QtFrameTicker"]
