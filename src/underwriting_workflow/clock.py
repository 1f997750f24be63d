"""Tick sources that drive stage progress.

All scheduling happens on one logical timeline.  ``ManualClock`` is
advanced explicitly (tests, headless runs); ``SleepingClock`` runs the
same loop but sleeps for the shortest pending interval between ticks.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol

logger = logging.getLogger(__name__)


class TickHandle:
    """Recurring timer registered with a clock."""

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class TickSource(Protocol):
    """Anything that can schedule a recurring callback."""

    def schedule(self, interval: float, callback: Callable[[], None]) -> TickHandle: ...


class ManualClock:
    """Deterministic tick source.

    Each call to :meth:`tick` fires every live timer once, in the order
    they were scheduled.  Timers scheduled while a tick is being
    dispatched only fire from the next tick onward.
    """

    def __init__(self) -> None:
        self._handles: list[TickHandle] = []
        self.ticks_fired = 0

    def schedule(self, interval: float, callback: Callable[[], None]) -> TickHandle:
        handle = TickHandle(interval, callback)
        self._handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self._handles if not h.cancelled)

    def tick(self) -> int:
        """Fire one round of ticks. Returns the number of callbacks run."""
        batch = [h for h in self._handles if not h.cancelled]
        fired = 0
        for handle in batch:
            # An earlier callback in this batch may have cancelled it
            if handle.cancelled:
                continue
            handle.callback()
            fired += 1
        self._handles = [h for h in self._handles if not h.cancelled]
        self.ticks_fired += 1
        return fired

    def run_until_idle(self, max_ticks: int = 10_000) -> int:
        """Tick until no timer is pending. Returns the number of rounds."""
        rounds = 0
        while self.pending and rounds < max_ticks:
            self._wait()
            self.tick()
            rounds += 1
        if self.pending:
            logger.warning("Clock still has %d pending timer(s) after %d ticks", self.pending, rounds)
        return rounds

    def cancel_all(self) -> None:
        for h in self._handles:
            h.cancel()
        self._handles = []

    def _wait(self) -> None:
        """Hook for pacing between rounds; the manual clock never waits."""


class SleepingClock(ManualClock):
    """Wall-clock paced variant of :class:`ManualClock`.

    Intervals are in milliseconds; ``time_scale`` shortens or stretches them.
    """

    def __init__(self, time_scale: float = 1.0) -> None:
        super().__init__()
        self.time_scale = time_scale

    def _wait(self) -> None:
        live = [h.interval for h in self._handles if not h.cancelled]
        if live:
            time.sleep(min(live) * self.time_scale / 1000.0)
