# src/embodiment/random_walk.py
"""
Random walk on top of NavigationController.

Every leg picks a uniform angle in [0, 2*pi) and a uniform distance in
[0, max_distance), offsets the current position by (cos a * d, sin a * d)
on the (x, z) plane, and hands the point to navigate_to(origin=WALKER).
The first leg fires after a short delay, later legs on a fixed interval,
whether or not the previous leg reached its target.

Rules:
  - at most one walk timer is live
  - stop_random_walk(cause) is idempotent and never re-enters navigation
    for NAVIGATION causes
  - an unreadable pose at leg time falls back to the origin (0, 0, 0)
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import Callable, Optional

from interfaces.geometry import Pose, Vec3
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .navigation import NavOrigin, NavigationController, StopCause, WalkStopCause
from .timers import TimerHandle, TimerScheduler

log = logging.getLogger(__name__)

PoseSource = Callable[[], Optional[Pose]]

FIRST_LEG_DELAY_MS = 100.0


@dataclass
class RandomWalkConfig:
    interval_ms: float = 5000.0
    max_distance: float = 7.0

    def validate(self) -> None:
        if not (math.isfinite(self.interval_ms) and self.interval_ms > 0):
            raise ValueError(f"interval_ms must be > 0, got {self.interval_ms}")
        if not (math.isfinite(self.max_distance) and self.max_distance >= 0):
            raise ValueError(f"max_distance must be >= 0, got {self.max_distance}")


class RandomWalkScheduler:
    """
    Periodically issues random navigation targets around the embodiment.

    Public contract:
        start_random_walk(interval_ms=None, max_distance=None)
        stop_random_walk(cause=WalkStopCause.USER) -> bool
        is_walking_randomly() -> bool
    """

    def __init__(
        self,
        navigation: NavigationController,
        pose_source: PoseSource,
        scheduler: TimerScheduler,
        *,
        config: Optional[RandomWalkConfig] = None,
        rng: Optional[random.Random] = None,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._nav = navigation
        self._pose_source = pose_source
        self._scheduler = scheduler
        self._defaults = config or RandomWalkConfig()
        self._rng = rng or random.Random()
        self._bus = bus

        self._active = False
        self._config = RandomWalkConfig(self._defaults.interval_ms, self._defaults.max_distance)
        self._first_leg: Optional[TimerHandle] = None
        self._interval: Optional[TimerHandle] = None
        self._legs_issued = 0
        self._last_target: Optional[Vec3] = None

        navigation.attach_walker(self)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> RandomWalkConfig:
        return self._config

    @property
    def legs_issued(self) -> int:
        return self._legs_issued

    @property
    def last_target(self) -> Optional[Vec3]:
        return self._last_target

    def is_walking_randomly(self) -> bool:
        return self._active

    def start_random_walk(
        self,
        interval_ms: Optional[float] = None,
        max_distance: Optional[float] = None,
    ) -> None:
        """
        Begin (or restart) the walk.

        Raises ValueError for a non-positive interval or negative distance.
        """
        config = RandomWalkConfig(
            interval_ms=float(interval_ms if interval_ms is not None else self._defaults.interval_ms),
            max_distance=float(max_distance if max_distance is not None else self._defaults.max_distance),
        )
        config.validate()

        if self._active:
            self.stop_random_walk(WalkStopCause.RESTART)

        log.info(
            "Starting random walk: interval=%.0fms max_distance=%.2f",
            config.interval_ms,
            config.max_distance,
        )
        self._config = config
        self._active = True
        self._legs_issued = 0

        self._first_leg = self._scheduler.call_later(
            FIRST_LEG_DELAY_MS, self._first_leg_fired, name="random_walk.first_leg"
        )
        self._interval = self._scheduler.call_every(
            config.interval_ms, self._walk_leg, name="random_walk"
        )

        self._publish(
            EventType.RANDOM_WALK_STARTED,
            "Random walk started",
            {"interval_ms": config.interval_ms, "max_distance": config.max_distance},
        )

    def stop_random_walk(self, cause: WalkStopCause = WalkStopCause.USER) -> bool:
        """
        Stop the walk. Returns False when no walk was running.

        Unless navigation itself triggered the stop, the in-flight leg is
        stopped too (with WALK_STOPPED, which does not call back here).
        """
        if not self._active and self._first_leg is None and self._interval is None:
            return False

        log.info("Stopping random walk (%s)", cause.value)
        self._active = False
        self._cancel_timers()

        if cause is not WalkStopCause.NAVIGATION and self._nav.is_navigating():
            self._nav.stop_navigation(StopCause.WALK_STOPPED)

        self._publish(
            EventType.RANDOM_WALK_STOPPED,
            "Random walk stopped",
            {"cause": cause.value, "legs": self._legs_issued},
        )
        return True

    # ------------------------------------------------------------------
    # Legs
    # ------------------------------------------------------------------

    def _first_leg_fired(self) -> None:
        self._first_leg = None
        self._walk_leg()

    def _walk_leg(self) -> None:
        if not self._active:
            return

        origin = self._current_position()
        angle = self._rng.random() * 2.0 * math.pi
        distance = self._rng.random() * self._config.max_distance
        target = Vec3(
            origin.x + math.cos(angle) * distance,
            origin.y,
            origin.z + math.sin(angle) * distance,
        )

        log.debug(
            "Random walk leg %d -> (%.2f, %.2f) d=%.2f",
            self._legs_issued + 1,
            target.x,
            target.z,
            distance,
        )

        try:
            self._nav.navigate_to(target.x, target.z, origin=NavOrigin.WALKER)
        except Exception:
            # Skip this leg; the next interval tries again.
            log.exception("Random walk leg could not start navigation")
            return

        self._legs_issued += 1
        self._last_target = target

    def _current_position(self) -> Vec3:
        try:
            pose = self._pose_source()
        except Exception:
            log.exception("Random walk could not read the embodiment pose")
            pose = None
        if pose is None or not pose.position.is_finite():
            log.warning("Random walk: no usable position, walking around the origin")
            return Vec3(0.0, 0.0, 0.0)
        return pose.position

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _cancel_timers(self) -> None:
        if self._first_leg is not None:
            self._first_leg.cancel()
            self._first_leg = None
        if self._interval is not None:
            self._interval.cancel()
            self._interval = None

    def _publish(self, event_type: EventType, message: str, payload: dict) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="embodiment.random_walk",
            event_type=event_type,
            message=message,
            payload=payload,
        )


__all__ = [
    "RandomWalkConfig",
    "RandomWalkScheduler",
    "WalkStopCause",
    "FIRST_LEG_DELAY_MS",
]
