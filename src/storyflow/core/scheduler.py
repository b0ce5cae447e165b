"""Timer scheduling used by the story runtime.

Two implementations share the same surface: ``AsyncioScheduler`` hands work
to an asyncio event loop, ``ManualScheduler`` keeps a virtual clock that only
moves when ``advance`` is called, which makes playthroughs deterministic.
"""
from __future__ import annotations

import asyncio
import heapq
from dataclasses import dataclass, field
from typing import Callable, List, Protocol

Callback = Callable[[], None]


class TimerHandle(Protocol):
    """Handle returned for every scheduled callback."""

    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    """Minimal timer surface consumed by the runtime."""

    def now_ms(self) -> float:
        ...

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        ...

    def call_soon(self, callback: Callback) -> TimerHandle:
        ...


class AsyncioScheduler:
    """Schedules callbacks on an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self._get_loop().time() * 1000.0

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        return self._get_loop().call_later(max(0.0, delay_ms) / 1000.0, callback)

    def call_soon(self, callback: Callback) -> TimerHandle:
        return self._get_loop().call_soon(callback)


@dataclass(order=True)
class _ManualTimer:
    due_ms: float
    sequence: int
    callback: Callback = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Virtual clock scheduler; time only passes through ``advance``."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now_ms = start_ms
        self._queue: List[_ManualTimer] = []
        self._sequence = 0

    def now_ms(self) -> float:
        return self._now_ms

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        return self._push(self._now_ms + max(0.0, delay_ms), callback)

    def call_soon(self, callback: Callback) -> TimerHandle:
        return self._push(self._now_ms, callback)

    @property
    def pending_count(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for timer in self._queue if not timer.cancelled)

    def run_pending(self) -> int:
        """Run callbacks already due at the current time."""
        return self.advance(0)

    def advance(self, delay_ms: float) -> int:
        """Move the clock forward, firing due callbacks in order.

        Callbacks scheduled while advancing fire in the same call when
        their due time falls inside the window. Returns the number of
        callbacks executed.
        """
        if delay_ms < 0:
            raise ValueError("Cannot advance the clock backwards.")
        target_ms = self._now_ms + delay_ms
        fired = 0
        while self._queue and self._queue[0].due_ms <= target_ms:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now_ms = max(self._now_ms, timer.due_ms)
            timer.callback()
            fired += 1
        self._now_ms = target_ms
        return fired

    def _push(self, due_ms: float, callback: Callback) -> _ManualTimer:
        self._sequence += 1
        timer = _ManualTimer(due_ms=due_ms, sequence=self._sequence, callback=callback)
        heapq.heappush(self._queue, timer)
        return timer


__all__ = ["AsyncioScheduler", "Callback", "ManualScheduler", "Scheduler", "TimerHandle"]
