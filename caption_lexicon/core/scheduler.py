"""Timer scheduling: asyncio-backed for real use, virtual time for tests.

WHY: Debounce timers and the periodic sweep are the engine's only sources
of time. Hiding them behind a two-method scheduler lets production code
run on the asyncio event loop while tests advance a logical clock and
verify coalescing without wall-clock waits.

HOW: Scheduler.call_later() returns a handle with cancel()/cancelled().
call_every() re-arms itself after each fire until cancelled.
LoopScheduler delegates to loop.call_later; VirtualScheduler keeps a
heap of due timers and runs them in due-time order on advance().

RULES:
- A cancelled handle never fires, even if it is already due
- Timers due at the same instant fire in scheduling order
- Callbacks run one at a time; a callback may schedule or cancel timers
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Callable, List, Optional, Protocol, Tuple


class TimerHandle(Protocol):
    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle: ...


# ---------------------------------------------------------------------------
# asyncio event loop
# ---------------------------------------------------------------------------


class _RepeatingTimer:
    """Re-arms an asyncio timer after every fire until cancelled."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        interval: float,
        callback: Callable[[], None],
    ) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle: Optional[asyncio.TimerHandle] = None
        self._arm()

    def _arm(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        try:
            self._callback()
        finally:
            if not self._cancelled:
                self._arm()

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancelled(self) -> bool:
        return self._cancelled


class LoopScheduler:
    """Scheduler backed by an asyncio event loop.

    The loop is resolved lazily so the scheduler can be built before the
    loop starts running.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._get_loop().call_later(delay, callback)

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        return _RepeatingTimer(self._get_loop(), interval, callback)


# ---------------------------------------------------------------------------
# Virtual time
# ---------------------------------------------------------------------------


class VirtualTimer:
    def __init__(
        self,
        due: float,
        callback: Callable[[], None],
        interval: Optional[float] = None,
    ) -> None:
        self.due = due
        self.callback = callback
        self.interval = interval
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class VirtualScheduler:
    """Deterministic scheduler driven by an explicit logical clock.

    WHY: Debounce and sweep properties are about ordering in time, not
    real durations. Tests advance the clock and assert what fired.

    HOW: Timers live in a heap keyed by (due, sequence). advance() pops
    every timer due at or before the target time, moves ``now`` to each
    timer's due time, and runs it. Repeating timers are pushed back with
    their next due time.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._heap: List[Tuple[float, int, VirtualTimer]] = []
        self._seq = itertools.count()

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self.now + max(delay, 0.0), callback)
        heapq.heappush(self._heap, (timer.due, next(self._seq), timer))
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self.now + interval, callback, interval=interval)
        heapq.heappush(self._heap, (timer.due, next(self._seq), timer))
        return timer

    def advance(self, seconds: float) -> int:
        """Move the clock forward by *seconds*, firing due timers.

        Returns:
            The number of callbacks that ran.
        """
        target = self.now + seconds
        fired = 0
        while self._heap and self._heap[0][0] <= target:
            due, _, timer = heapq.heappop(self._heap)
            if timer.cancelled():
                continue
            self.now = due
            timer.callback()
            fired += 1
            if timer.interval is not None and not timer.cancelled():
                timer.due = due + timer.interval
                heapq.heappush(self._heap, (timer.due, next(self._seq), timer))
        self.now = target
        return fired

    def run_pending(self) -> int:
        """Fire everything already due without moving the clock."""
        return self.advance(0.0)

    @property
    def pending(self) -> int:
        """Number of live (not cancelled) timers still queued."""
        return sum(1 for _, _, timer in self._heap if not timer.cancelled())
