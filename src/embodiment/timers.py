# src/embodiment/timers.py
"""
Cancellable timers for the embodiment layer.

Everything periodic in this package (navigation ticks, random walk legs,
the simulation clock, pollers, delayed key releases, the jump flight reset)
is a TimerHandle owned by the component that created it. The runtime loop
drives the scheduler by calling run_due() between I/O pumps, so callbacks
never overlap and each one runs to completion.

Rules:
- A cancelled handle never fires, even if it was already due.
- A callback that raises is logged and, for repeating timers, re-armed.
- The clock is injectable (milliseconds); tests use a manual clock.
"""

from __future__ import annotations

import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

log = logging.getLogger(__name__)

Clock = Callable[[], float]
TimerCallback = Callable[[], None]


def monotonic_ms() -> float:
    """Default scheduler clock."""
    return time.monotonic() * 1000.0


class TimerHandle:
    """A scheduled callback. Call cancel() to guarantee it never fires again."""

    __slots__ = ("name", "due_ms", "interval_ms", "_callback", "_active", "_seq")

    def __init__(
        self,
        name: str,
        due_ms: float,
        callback: TimerCallback,
        interval_ms: Optional[float],
        seq: int,
    ) -> None:
        self.name = name
        self.due_ms = due_ms
        self.interval_ms = interval_ms
        self._callback = callback
        self._active = True
        self._seq = seq

    @property
    def active(self) -> bool:
        return self._active

    def cancel(self) -> None:
        self._active = False

    def __repr__(self) -> str:
        return (
            f"TimerHandle(name={self.name!r}, due_ms={self.due_ms:.1f}, "
            f"interval_ms={self.interval_ms}, active={self._active})"
        )


class TimerScheduler:
    """
    Single-threaded timer queue ordered by due time, then creation order.

    call_later() is a one-shot timer, call_every() a repeating one. Only
    timers that existed when a run_due() pass began can fire in that pass,
    so a callback that re-arms itself with zero delay cannot starve the
    caller's loop.
    """

    def __init__(self, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or monotonic_ms
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def now(self) -> float:
        return self._clock()

    def call_later(
        self,
        delay_ms: float,
        callback: TimerCallback,
        *,
        name: str = "timer",
    ) -> TimerHandle:
        return self._push(name, self.now() + max(0.0, float(delay_ms)), callback, None)

    def call_every(
        self,
        interval_ms: float,
        callback: TimerCallback,
        *,
        name: str = "interval",
        first_delay_ms: Optional[float] = None,
    ) -> TimerHandle:
        interval = float(interval_ms)
        if interval <= 0:
            raise ValueError("interval_ms must be positive")
        first = interval if first_delay_ms is None else max(0.0, float(first_delay_ms))
        return self._push(name, self.now() + first, callback, interval)

    def _push(
        self,
        name: str,
        due_ms: float,
        callback: TimerCallback,
        interval_ms: Optional[float],
    ) -> TimerHandle:
        handle = TimerHandle(name, due_ms, callback, interval_ms, next(self._seq))
        heapq.heappush(self._heap, (handle.due_ms, handle._seq, handle))
        return handle

    # ------------------------------------------------------------------
    # Driving
    # ------------------------------------------------------------------

    def next_due(self) -> Optional[float]:
        """Due time of the earliest live timer, or None when idle."""
        while self._heap and not self._heap[0][2].active:
            heapq.heappop(self._heap)
        if not self._heap:
            return None
        return self._heap[0][0]

    def pending(self) -> int:
        return sum(1 for _, _, handle in self._heap if handle.active)

    def run_due(self) -> int:
        """Fire every live timer that is due now. Returns the number fired."""
        now = self.now()
        seq_limit = next(self._seq)
        fired = 0

        while self._heap:
            due_ms, seq, handle = self._heap[0]
            if due_ms > now or seq > seq_limit:
                break
            heapq.heappop(self._heap)
            if not handle.active:
                continue

            if handle.interval_ms is None:
                handle.cancel()

            try:
                handle._callback()
            except Exception:
                log.exception("Timer callback %r raised", handle.name)
            fired += 1

            if handle.active and handle.interval_ms is not None:
                handle.due_ms = max(due_ms + handle.interval_ms, now)
                handle._seq = next(self._seq)
                heapq.heappush(self._heap, (handle.due_ms, handle._seq, handle))

        return fired

    def cancel_all(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()


__all__ = ["Clock", "TimerCallback", "TimerHandle", "TimerScheduler", "monotonic_ms"]
