# src/embodiment/clock.py
"""
Fixed-rate simulation loop on top of TimerScheduler.

Each frame:
  - check the connection predicate; once false the clock stops for good
  - advance the client's simulation to the scheduler time
  - clear control edge flags (one clearing pass per frame)
  - re-arm after max(0, interval - elapsed)

A frame that raises is logged at most once per interval per exception
type and the loop keeps going.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from .controls import ControlRegistry
from .throttle import LogThrottle
from .timers import TimerHandle, TimerScheduler

log = logging.getLogger(__name__)

DEFAULT_TICK_RATE_HZ = 50.0
DEFAULT_ERROR_LOG_INTERVAL_MS = 10_000.0

Advance = Callable[[float], None]
ConnectedPredicate = Callable[[], bool]


class SimulationClock:
    """Drives advance_simulation at a fixed rate while connected."""

    def __init__(
        self,
        advance: Advance,
        controls: Optional[ControlRegistry],
        scheduler: TimerScheduler,
        is_connected: ConnectedPredicate,
        *,
        tick_rate_hz: float = DEFAULT_TICK_RATE_HZ,
        error_log_interval_ms: float = DEFAULT_ERROR_LOG_INTERVAL_MS,
    ) -> None:
        if tick_rate_hz <= 0:
            raise ValueError("tick_rate_hz must be positive")
        self._advance = advance
        self._controls = controls
        self._scheduler = scheduler
        self._is_connected = is_connected
        self._interval_ms = 1000.0 / float(tick_rate_hz)
        self._error_log = LogThrottle(error_log_interval_ms, scheduler.now)

        self._timer: Optional[TimerHandle] = None
        self._started = False
        self._stopped = False
        self.frames = 0
        self.errors = 0

    @property
    def interval_ms(self) -> float:
        return self._interval_ms

    def is_running(self) -> bool:
        return self._started and not self._stopped

    def start(self) -> None:
        if self._stopped:
            raise RuntimeError("SimulationClock cannot be restarted after stop()")
        if self._started:
            return
        self._started = True
        log.info("Simulation clock started at %.1f Hz", 1000.0 / self._interval_ms)
        self._schedule(0.0)

    def stop(self) -> None:
        if self._stopped:
            return
        self._stopped = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        log.info("Simulation clock stopped after %d frames", self.frames)

    def _schedule(self, delay_ms: float) -> None:
        self._timer = self._scheduler.call_later(delay_ms, self._frame, name="simulation")

    def _frame(self) -> None:
        self._timer = None
        if self._stopped:
            return
        if not self._is_connected():
            log.info("Simulation clock: connection lost, stopping")
            self.stop()
            return

        start = self._scheduler.now()
        try:
            self._advance(start)
        except Exception as exc:
            self.errors += 1
            if self._error_log.ready(type(exc)):
                log.warning(
                    "Simulation tick failed (%s); suppressing repeats for %.0fs",
                    exc,
                    self._error_log.interval_ms / 1000.0,
                    exc_info=True,
                )
        finally:
            if self._controls is not None:
                self._controls.end_frame()
            self.frames += 1

        if self._stopped:
            return
        elapsed = self._scheduler.now() - start
        self._schedule(max(0.0, self._interval_ms - elapsed))


__all__ = ["SimulationClock", "DEFAULT_TICK_RATE_HZ", "DEFAULT_ERROR_LOG_INTERVAL_MS"]
