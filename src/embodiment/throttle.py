# src/embodiment/throttle.py
from __future__ import annotations

from typing import Dict, Hashable

from .timers import Clock


class LogThrottle:
    """Allow one log line per key per interval."""

    def __init__(self, interval_ms: float, clock: Clock) -> None:
        self._interval_ms = float(interval_ms)
        self._clock = clock
        self._last: Dict[Hashable, float] = {}

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    def ready(self, key: Hashable = None) -> bool:
        now = self._clock()
        last = self._last.get(key)
        if last is not None and now - last < self._interval_ms:
            return False
        self._last[key] = now
        return True

    def reset(self) -> None:
        self._last.clear()
