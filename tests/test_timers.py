"""
Tests for single-slot timers and the manual clock.
"""

import asyncio

import pytest

from helpflow.testing import ManualScheduler
from helpflow.timers import AsyncioScheduler, TimerSlot


class TestManualScheduler:

    def test_fires_in_due_order(self, scheduler):
        fired = []
        scheduler.call_later(30, lambda: fired.append("b"))
        scheduler.call_later(10, lambda: fired.append("a"))
        scheduler.call_later(30, lambda: fired.append("c"))

        scheduler.advance(29)
        assert fired == ["a"]
        scheduler.advance(1)
        assert fired == ["a", "b", "c"]
        assert scheduler.now() == 30

    def test_cancelled_handles_do_not_fire(self, scheduler):
        fired = []
        handle = scheduler.call_later(5, lambda: fired.append(1))
        assert scheduler.pending == 1
        handle.cancel()
        assert scheduler.pending == 0
        scheduler.advance(10)
        assert fired == []

    def test_callbacks_scheduled_during_advance(self):
        clock = ManualScheduler(start_ms=100)
        fired = []

        def first():
            fired.append(clock.now())
            clock.call_later(5, lambda: fired.append(clock.now()))

        clock.call_later(10, first)
        clock.advance(20)
        assert fired == [110, 115]
        assert clock.now() == 120


class TestTimerSlot:

    def test_rearm_replaces_previous_timer(self, scheduler):
        slot = TimerSlot(scheduler, "test")
        fired = []
        slot.arm(100, lambda: fired.append("old"))
        slot.arm(50, lambda: fired.append("new"))

        assert scheduler.pending == 1
        scheduler.advance(200)
        assert fired == ["new"]
        assert not slot.active

    def test_rapid_reentry_keeps_one_live_timer(self, scheduler):
        slot = TimerSlot(scheduler)
        for i in range(20):
            slot.arm(10 + i, lambda: None)
            assert scheduler.pending <= 1
        assert slot.active

    def test_cancel_is_idempotent(self, scheduler):
        slot = TimerSlot(scheduler)
        slot.arm(10, lambda: None)
        slot.cancel()
        slot.cancel()
        assert not slot.active
        assert scheduler.pending == 0

    def test_callback_may_rearm(self, scheduler):
        slot = TimerSlot(scheduler)
        fired = []

        def tick():
            fired.append(scheduler.now())
            if len(fired) < 3:
                slot.arm(10, tick)

        slot.arm(10, tick)
        scheduler.advance(100)
        assert fired == [10, 20, 30]

    def test_callback_errors_are_contained(self, scheduler):
        slot = TimerSlot(scheduler)

        def boom():
            raise RuntimeError("boom")

        slot.arm(1, boom)
        scheduler.advance(5)
        assert not slot.active


class TestAsyncioScheduler:

    def test_rejects_non_positive_scale(self):
        with pytest.raises(ValueError):
            AsyncioScheduler(time_scale=0)

    @pytest.mark.asyncio
    async def test_timer_fires_on_running_loop(self):
        scheduler = AsyncioScheduler(time_scale=0.01)
        slot = TimerSlot(scheduler)
        done = asyncio.Event()
        start = scheduler.now()

        slot.arm(1000, done.set)
        await asyncio.wait_for(done.wait(), timeout=2)
        assert scheduler.now() - start >= 900
