"""Cancellable single-slot timers.

Every time-based behaviour in helpflow (help auto-hide, tutorial auto-advance)
goes through a :class:`TimerSlot`. A slot holds at most one live timer handle;
arming it again cancels the previous handle first, so rapid re-entry can never
stack timers.

Time is measured in milliseconds. The default :class:`AsyncioScheduler` is
backed by the running asyncio loop; tests use
:class:`helpflow.testing.ManualScheduler`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Clock + delayed-call source, both in milliseconds."""

    def now(self) -> float: ...

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle: ...


class AsyncioScheduler:
    """Scheduler backed by an asyncio event loop.

    The loop is resolved lazily so the scheduler can be constructed outside a
    coroutine, but timers can only be armed while a loop is running.

    ``time_scale`` compresses (<1) or stretches (>1) wall-clock time; the
    engine keeps seeing unscaled milliseconds.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None, time_scale: float = 1.0):
        if time_scale <= 0:
            raise ValueError("time_scale must be positive")
        self._loop = loop
        self.time_scale = time_scale

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self._get_loop().time() * 1000.0 / self.time_scale

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay_ms) * self.time_scale / 1000.0, callback)


class TimerSlot:
    """A single "current timer" field for one timer purpose."""

    def __init__(self, scheduler: Scheduler, name: str = "timer"):
        self.scheduler = scheduler
        self.name = name
        self._handle: Optional[TimerHandle] = None
        self._generation = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def arm(self, delay_ms: float, callback: Callable[[], Any]) -> None:
        """Cancel any live timer in this slot, then schedule ``callback``."""
        self.cancel()
        self._generation += 1
        generation = self._generation

        def _fire() -> None:
            # A handle cancelled after it was already queued must not run.
            if generation != self._generation or self._handle is None:
                return
            self._handle = None
            try:
                callback()
            except Exception:
                logger.exception(f"Timer {self.name} callback failed")

        self._handle = self.scheduler.call_later(delay_ms, _fire)
        logger.debug(f"Armed {self.name} timer for {delay_ms:.0f}ms")

    def cancel(self) -> None:
        if self._handle is None:
            return
        self._handle.cancel()
        self._handle = None
        self._generation += 1
        logger.debug(f"Cancelled {self.name} timer")


__all__ = ["Scheduler", "TimerHandle", "AsyncioScheduler", "TimerSlot"]
