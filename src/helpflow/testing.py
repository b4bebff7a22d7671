"""Testing utilities for helpflow."""

from __future__ import annotations

import heapq
import itertools
from typing import Any, Callable, List, Tuple


class ManualTimerHandle:
    def __init__(self, due: float, callback: Callable[[], Any]):
        self.due = due
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualScheduler:
    """Virtual clock that only moves when :meth:`advance` is called.

    Due callbacks fire in due-time order, FIFO on ties. Callbacks scheduled
    while advancing fire in the same call if they fall inside the window.
    """

    def __init__(self, start_ms: float = 0.0):
        self._now = float(start_ms)
        self._queue: List[Tuple[float, int, ManualTimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> ManualTimerHandle:
        handle = ManualTimerHandle(self._now + max(0.0, delay_ms), callback)
        heapq.heappush(self._queue, (handle.due, next(self._seq), handle))
        return handle

    def advance(self, ms: float) -> None:
        target = self._now + ms
        while self._queue and self._queue[0][0] <= target:
            due, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self._now = due
            handle.callback()
        self._now = target

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not fired or been cancelled."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled())


__all__ = ["ManualScheduler", "ManualTimerHandle"]
