"""Timer scheduling for playback.

The playback controller never sleeps: a reveal "waits" by registering a
callback with a scheduler and returning. Two schedulers are provided:

  - VirtualScheduler: deterministic virtual clock, advanced explicitly.
    Used by tests and by timeline simulation.
  - AsyncioScheduler: wall-clock timers on an asyncio event loop.
    Used by terminal playback.

All times are in milliseconds.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Optional


Callback = Callable[[], None]


@dataclass(eq=False)
class TimerHandle:
    """A scheduled callback. Identity is the handle itself."""

    due_ms: float
    callback: Callback = field(repr=False)
    cancelled: bool = False
    native: Any = field(default=None, repr=False)

    def cancel(self) -> None:
        self.cancelled = True
        if self.native is not None:
            self.native.cancel()


class Scheduler(ABC):
    """Minimal timer interface the controller depends on."""

    @abstractmethod
    def now(self) -> float:
        """Current time in milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        """Run ``callback`` after ``delay_ms``."""

    def cancel(self, handle: Optional[TimerHandle]) -> None:
        """Cancel a pending callback. Cancelling twice is harmless."""
        if handle is not None:
            handle.cancel()


class VirtualScheduler(Scheduler):
    """Scheduler driven by an explicit virtual clock.

    Callbacks due at the same instant run in the order they were scheduled.
    A callback may schedule further callbacks; those run in the same
    ``advance`` call if they fall due within its window.
    """

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._queue: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(due_ms=self._now + max(0.0, delay_ms), callback=callback)
        heapq.heappush(self._queue, (handle.due_ms, next(self._seq), handle))
        return handle

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0][2].cancelled:
            heapq.heappop(self._queue)

    def pending(self) -> list[TimerHandle]:
        """Live handles in due order."""
        return [h for _, _, h in sorted(self._queue) if not h.cancelled]

    def next_due(self) -> Optional[float]:
        self._drop_cancelled()
        return self._queue[0][0] if self._queue else None

    def step(self) -> bool:
        """Jump to the next due callback and run it. Returns False when idle."""
        self._drop_cancelled()
        if not self._queue:
            return False
        due, _, handle = heapq.heappop(self._queue)
        self._now = max(self._now, due)
        handle.cancelled = True
        handle.callback()
        return True

    def advance(self, ms: float) -> int:
        """Move the clock forward by ``ms``, running everything that falls due.

        Returns the number of callbacks run.
        """
        target = self._now + ms
        ran = 0
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            self.step()
            ran += 1
        self._now = target
        return ran

    def run(self, limit_ms: Optional[float] = None, max_callbacks: int = 1_000_000) -> int:
        """Run callbacks until idle (or until ``limit_ms`` of virtual time)."""
        ran = 0
        while ran < max_callbacks:
            due = self.next_due()
            if due is None or (limit_ms is not None and due > limit_ms):
                break
            self.step()
            ran += 1
        return ran


class AsyncioScheduler(Scheduler):
    """Wall-clock scheduler backed by an asyncio event loop."""

    def __init__(self, loop: asyncio.AbstractEventLoop) -> None:
        self._loop = loop

    def now(self) -> float:
        return self._loop.time() * 1000

    def call_later(self, delay_ms: float, callback: Callback) -> TimerHandle:
        handle = TimerHandle(due_ms=self.now() + max(0.0, delay_ms), callback=callback)

        def fire() -> None:
            if not handle.cancelled:
                handle.cancelled = True
                callback()

        handle.native = self._loop.call_later(max(0.0, delay_ms) / 1000, fire)
        return handle
