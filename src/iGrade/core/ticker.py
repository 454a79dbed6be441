"""Cooperative tick scheduling.

Work that must not block the event loop is split into callbacks, each doing a
bounded amount of work before yielding.  A :class:`TickScheduler` runs the next
callback on a later tick; the GUI provides a Qt timer based implementation and
tests drive :class:`ManualTicker` by hand.
"""

from __future__ import annotations

from collections import deque
from typing import Callable, Deque, Protocol

TickCallback = Callable[[], None]


class TickScheduler(Protocol):
    def call_soon(self, callback: TickCallback) -> None:
        """Run *callback* on a future tick, never synchronously."""


class ManualTicker:
    """Queue callbacks until the owner advances the clock explicitly."""

    def __init__(self) -> None:
        self._queue: Deque[TickCallback] = deque()

    def call_soon(self, callback: TickCallback) -> None:
        self._queue.append(callback)

    @property
    def pending(self) -> int:
        return len(self._queue)

    def run_next(self) -> bool:
        """Run one queued callback; return ``False`` if nothing was queued."""

        if not self._queue:
            return False
        callback = self._queue.popleft()
        callback()
        return True

    def drain(self, limit: int = 10_000) -> int:
        """Run callbacks (including newly scheduled ones) until the queue is empty.

        *limit* guards against callbacks that reschedule themselves forever.
        """

        count = 0
        while self._queue:
            if count >= limit:
                raise RuntimeError(f"Ticker still busy after {limit} callbacks")
            self.run_next()
            count += 1
        return count


__all__ = ["ManualTicker", "TickCallback", "TickScheduler"]
