"""
Scheduled-task abstraction for link timers.

The ping interval, pong timeout, connection timeout and reconnect delay
are all one-shot callbacks registered here, against a monotonic clock
measured in milliseconds. Two implementations:

- AsyncioScheduler: backed by the running event loop
- ManualScheduler: virtual clock advanced explicitly, for deterministic
  simulation and tests
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Set, Tuple


class TimerHandle:
    """A pending one-shot callback. Cancelling twice is harmless."""

    def __init__(self, scheduler: "Scheduler", when: float, callback: Callable[[], Any]):
        self._scheduler = scheduler
        self.when = when
        self.callback = callback
        self._cancelled = False
        self._fired = False
        self._loop_handle: Optional[asyncio.TimerHandle] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._fired)

    def cancel(self) -> None:
        if not self.active:
            return
        self._cancelled = True
        if self._loop_handle is not None:
            self._loop_handle.cancel()
        self._scheduler._discard(self)

    def _run(self) -> None:
        if not self.active:
            return
        self._fired = True
        self._scheduler._discard(self)
        self.callback()


class Scheduler(ABC):
    """Monotonic clock plus a set of pending callbacks."""

    def __init__(self) -> None:
        self._pending: Set[TimerHandle] = set()

    @abstractmethod
    def now(self) -> float:
        """Monotonic time in milliseconds."""

    @abstractmethod
    def time_ms(self) -> int:
        """Wall-clock time in epoch milliseconds."""

    @abstractmethod
    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        """Run ``callback`` once after ``delay_ms``."""

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _discard(self, handle: TimerHandle) -> None:
        self._pending.discard(handle)


class AsyncioScheduler(Scheduler):
    """Scheduler driven by the asyncio event loop.

    The loop is looked up lazily, so the scheduler may be constructed
    before the loop starts; timers must be armed from inside it.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        super().__init__()
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.monotonic() * 1000

    def time_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        loop = self._get_loop()
        handle = TimerHandle(self, self.now() + delay_ms, callback)
        handle._loop_handle = loop.call_later(max(delay_ms, 0) / 1000, handle._run)
        self._pending.add(handle)
        return handle


class ManualScheduler(Scheduler):
    """Virtual-clock scheduler. Time only moves through ``advance()``.

    Callbacks due at the same instant run in registration order. Callbacks
    armed while advancing run in the same call if they fall due within it.
    """

    def __init__(self, start_ms: float = 0.0, epoch_ms: int = 1_700_000_000_000):
        super().__init__()
        self._now = float(start_ms)
        self._epoch_offset = epoch_ms - int(start_ms)
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def time_ms(self) -> int:
        return self._epoch_offset + int(self._now)

    def call_later(self, delay_ms: float, callback: Callable[[], Any]) -> TimerHandle:
        handle = TimerHandle(self, self._now + max(delay_ms, 0), callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        self._pending.add(handle)
        return handle

    def next_due(self) -> Optional[float]:
        """Time of the earliest active timer, if any."""
        while self._queue and not self._queue[0][2].active:
            heapq.heappop(self._queue)
        return self._queue[0][0] if self._queue else None

    def advance(self, delta_ms: float) -> int:
        """Move the clock forward, firing every timer that falls due.

        Returns:
            Number of callbacks run
        """
        target = self._now + delta_ms
        fired = 0
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            _, _, handle = heapq.heappop(self._queue)
            self._now = max(self._now, due)
            handle._run()
            fired += 1
        self._now = target
        return fired
