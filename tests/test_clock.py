"""Tests for clock.py — manual and sleeping tick sources."""

from __future__ import annotations

from unittest.mock import patch

from underwriting_workflow.clock import ManualClock, SleepingClock


class TestManualClock:
    def test_fires_in_schedule_order(self, clock):
        calls: list[str] = []
        clock.schedule(10, lambda: calls.append("a"))
        clock.schedule(10, lambda: calls.append("b"))
        assert clock.tick() == 2
        assert calls == ["a", "b"]

    def test_cancelled_handle_does_not_fire(self, clock):
        calls: list[str] = []
        handle = clock.schedule(10, lambda: calls.append("x"))
        handle.cancel()
        assert clock.tick() == 0
        assert calls == []
        assert clock.pending == 0

    def test_timer_scheduled_during_tick_waits_for_next_tick(self, clock):
        calls: list[str] = []

        def first() -> None:
            calls.append("first")
            first_handle.cancel()
            clock.schedule(10, lambda: calls.append("second"))

        first_handle = clock.schedule(10, first)
        clock.tick()
        assert calls == ["first"]
        clock.tick()
        assert calls == ["first", "second"]

    def test_cancel_during_dispatch_skips_later_callback(self, clock):
        calls: list[str] = []
        clock.schedule(10, lambda: later.cancel())
        later = clock.schedule(10, lambda: calls.append("later"))
        clock.tick()
        assert calls == []

    def test_run_until_idle(self, clock):
        counter = {"n": 0}

        def bump() -> None:
            counter["n"] += 1
            if counter["n"] == 5:
                handle.cancel()

        handle = clock.schedule(10, bump)
        assert clock.run_until_idle() == 5
        assert clock.pending == 0

    def test_run_until_idle_respects_max_ticks(self, clock):
        clock.schedule(10, lambda: None)
        assert clock.run_until_idle(max_ticks=3) == 3
        assert clock.pending == 1

    def test_cancel_all(self, clock):
        clock.schedule(10, lambda: None)
        clock.schedule(20, lambda: None)
        clock.cancel_all()
        assert clock.pending == 0


class TestSleepingClock:
    def test_sleeps_shortest_interval_scaled(self):
        clock = SleepingClock(time_scale=0.5)
        handle = clock.schedule(40, lambda: handle.cancel())
        clock.schedule(100, lambda: None).cancel()
        with patch("underwriting_workflow.clock.time.sleep") as sleep:
            clock.run_until_idle()
        sleep.assert_called_once_with(0.02)
