# src/embodiment/navigation.py
"""
Tick-driven navigation for the embodiment.

NavigationController steers toward one planar (x, z) target by writing
movement controls into the ControlRegistry every tick. It is the single
authority over locomotion stops: every stop goes through
stop_navigation(cause), and the StopCause decides whether an active random
walk goes down with it.

Tick policy (default every 100 ms):
  1. read the pose; missing or unreadable pose ends the leg with ERROR,
     non-finite components hold the current controls
  2. planar distance <= stop distance -> TARGET_REACHED
  3. degenerate forward/direction vectors -> release keys, hold
  4. signed heading angle from the cross product's vertical component
  5. |angle| > 45 deg turns in place; otherwise forward, plus a turn key
     beyond a ~10 deg deadband
  6. only changed keys are written; the run modifier is always cleared
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from interfaces.geometry import Pose, Vec3
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .controls import ControlRegistry, MOVEMENT_KEYS, RUN_MODIFIER
from .errors import PreconditionError
from .throttle import LogThrottle
from .timers import TimerHandle, TimerScheduler

if TYPE_CHECKING:
    from .random_walk import RandomWalkScheduler

log = logging.getLogger(__name__)

PoseSource = Callable[[], Optional[Pose]]

DEFAULT_TICK_INTERVAL_MS = 100.0
DEFAULT_STOP_DISTANCE = 1.0

TURN_IN_PLACE_ANGLE = math.pi / 4   # 45 degrees
STEER_DEADBAND_ANGLE = math.pi / 18  # ~10 degrees
MIN_VECTOR_LENGTH_SQ = 1e-3

DEGENERATE_LOG_INTERVAL_MS = 2000.0


class NavOrigin(Enum):
    """Who asked for the current target."""

    USER = "user"
    WALKER = "walker"


class StopCause(Enum):
    """Why navigation stopped."""

    USER = "user"                      # explicit stop_navigation()
    NEW_TARGET = "new_target"          # replaced by a user navigate_to()
    WALK_LEG = "walk_leg"              # replaced by the next random walk leg
    TARGET_REACHED = "target_reached"
    ERROR = "error"                    # tick could not read the pose
    WALK_STOPPED = "walk_stopped"      # the random walk is shutting down
    DISCONNECT = "disconnect"          # session teardown


class WalkStopCause(Enum):
    """Why the random walk stopped."""

    USER = "user"
    RESTART = "restart"                # start_random_walk() while running
    NAVIGATION = "navigation"          # navigation already stopped / replaced
    DISCONNECT = "disconnect"


@dataclass(frozen=True)
class NavigationTarget:
    x: float
    z: float

    def as_vec(self) -> Vec3:
        return Vec3(self.x, 0.0, self.z)


@dataclass
class NavKeys:
    forward: bool = False
    backward: bool = False
    left: bool = False
    right: bool = False


def signed_heading(forward: Vec3, direction: Vec3) -> float:
    """
    Signed angle (radians) between two horizontal unit vectors.

    Negative when the cross product points down, which maps to the
    left turn key.
    """
    angle = forward.angle_to(direction)
    cross = forward.cross(direction)
    return -angle if cross.y < 0 else angle


def desired_keys(heading: float) -> NavKeys:
    keys = NavKeys()
    if abs(heading) > TURN_IN_PLACE_ANGLE:
        if heading < 0:
            keys.left = True
        else:
            keys.right = True
    else:
        keys.forward = True
        if abs(heading) > STEER_DEADBAND_ANGLE:
            if heading < 0:
                keys.left = True
            else:
                keys.right = True
    return keys


class NavigationController:
    """
    Steers the embodiment toward one planar target at a time.

    Public contract:
        navigate_to(x, z, origin=NavOrigin.USER)
        stop_navigation(cause=StopCause.USER) -> bool
        is_navigating() -> bool
    """

    def __init__(
        self,
        pose_source: PoseSource,
        controls: ControlRegistry,
        scheduler: TimerScheduler,
        *,
        tick_interval_ms: float = DEFAULT_TICK_INTERVAL_MS,
        stop_distance: float = DEFAULT_STOP_DISTANCE,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._pose_source = pose_source
        self._controls = controls
        self._scheduler = scheduler
        self._tick_interval_ms = float(tick_interval_ms)
        self._stop_distance = float(stop_distance)
        self._bus = bus

        self._target: Optional[NavigationTarget] = None
        self._origin: Optional[NavOrigin] = None
        self._navigating = False
        self._timer: Optional[TimerHandle] = None
        self._nav_keys = NavKeys()
        self._last_stop_cause: Optional[StopCause] = None

        self._walker: Optional["RandomWalkScheduler"] = None
        self._degenerate_log = LogThrottle(DEGENERATE_LOG_INTERVAL_MS, scheduler.now)

    # ------------------------------------------------------------------
    # Wiring
    # ------------------------------------------------------------------

    def attach_walker(self, walker: Optional["RandomWalkScheduler"]) -> None:
        self._walker = walker

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def target(self) -> Optional[NavigationTarget]:
        return self._target

    @property
    def origin(self) -> Optional[NavOrigin]:
        return self._origin

    @property
    def last_stop_cause(self) -> Optional[StopCause]:
        return self._last_stop_cause

    @property
    def nav_keys(self) -> NavKeys:
        return NavKeys(**vars(self._nav_keys))

    def is_navigating(self) -> bool:
        return self._navigating

    def navigate_to(self, x: float, z: float, *, origin: NavOrigin = NavOrigin.USER) -> None:
        """
        Start steering toward (x, z), replacing any previous target.

        Raises:
            ValueError if x or z is not finite.
            PreconditionError if the embodiment pose cannot be read.
        """
        x = float(x)
        z = float(z)
        if not (math.isfinite(x) and math.isfinite(z)):
            raise ValueError(f"navigation target must be finite, got ({x}, {z})")

        pose = self._pose_source()
        if pose is None:
            raise PreconditionError("cannot navigate: embodiment pose unavailable")
        if not pose.is_finite():
            raise PreconditionError("cannot navigate: embodiment pose is not finite")

        log.info("Navigation request to (%.2f, %.2f) origin=%s", x, z, origin.value)

        if origin is NavOrigin.WALKER:
            self.stop_navigation(StopCause.WALK_LEG)
        else:
            self.stop_navigation(StopCause.NEW_TARGET)
            # No leg in flight, but a walk may still be waiting for its next leg.
            if self._walker is not None and self._walker.is_walking_randomly():
                self._walker.stop_random_walk(WalkStopCause.NAVIGATION)

        self._target = NavigationTarget(x, z)
        self._origin = origin
        self._navigating = True
        self._last_stop_cause = None
        self._nav_keys = NavKeys()
        self._degenerate_log.reset()

        self._timer = self._scheduler.call_every(
            self._tick_interval_ms, self._tick, name="navigation"
        )

        self._publish(
            EventType.NAVIGATION_STARTED,
            "Navigation started",
            {"x": x, "z": z, "origin": origin.value},
        )

    def stop_navigation(self, cause: StopCause = StopCause.USER) -> bool:
        """
        Stop navigating and release movement controls.

        Idempotent: returns False (and writes nothing) when already stopped.
        """
        if not self._navigating and self._timer is None:
            return False

        origin = self._origin
        log.info("Stopping navigation (%s)", cause.value)

        self._last_stop_cause = cause
        self._cancel_timer()
        self._navigating = False
        self._target = None
        self._origin = None

        try:
            self._controls.release(MOVEMENT_KEYS)
        except Exception:
            log.exception("Error releasing movement keys on stop")
        self._nav_keys = NavKeys()

        self._publish(
            EventType.NAVIGATION_STOPPED,
            "Navigation stopped",
            {"cause": cause.value},
        )

        if self._walker is not None and self._stop_cancels_walk(cause, origin):
            self._walker.stop_random_walk(WalkStopCause.NAVIGATION)

        return True

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _tick(self) -> None:
        if not self._navigating or self._target is None:
            # Late fire after a stop; the handle should already be dead.
            self._cancel_timer()
            return

        try:
            pose = self._pose_source()
        except Exception:
            log.exception("Navigation tick could not read the embodiment pose")
            self.stop_navigation(StopCause.ERROR)
            return

        if pose is None:
            log.error("Navigation tick: embodiment pose unavailable")
            self.stop_navigation(StopCause.ERROR)
            return

        if not pose.is_finite():
            if self._degenerate_log.ready("pose"):
                log.warning("Navigation tick: non-finite pose %r; holding controls", pose)
            return

        try:
            self._steer(pose, self._target)
        except Exception:
            log.exception("Navigation tick failed")
            self.stop_navigation(StopCause.ERROR)

    def _steer(self, pose: Pose, target: NavigationTarget) -> None:
        position = pose.position
        distance = position.planar_distance_to(target.as_vec())
        log.debug("Navigation tick: distance to target %.2f", distance)

        if distance <= self._stop_distance:
            log.info(
                "Target reached (distance %.2f <= %.2f)", distance, self._stop_distance
            )
            self.stop_navigation(StopCause.TARGET_REACHED)
            return

        # Degeneracy is judged on the horizontal projections before normalizing.
        direction = (target.as_vec() - position).flattened()
        forward = pose.forward().flattened()

        if not forward.is_finite() or forward.length_sq() < MIN_VECTOR_LENGTH_SQ:
            self._hold("forward vector degenerate")
            return
        if not direction.is_finite() or direction.length_sq() < MIN_VECTOR_LENGTH_SQ:
            self._hold("target direction degenerate")
            return
        forward = forward.normalized()
        direction = direction.normalized()

        heading = signed_heading(forward, direction)
        desired = desired_keys(heading)
        log.debug(
            "Navigation tick: heading %.1f deg -> F=%s L=%s R=%s",
            math.degrees(heading),
            desired.forward,
            desired.left,
            desired.right,
        )
        self._apply(desired)

    def _apply(self, desired: NavKeys) -> None:
        current = self._nav_keys
        if desired.forward != current.forward:
            self._controls.set_key("keyW", desired.forward)
            current.forward = desired.forward
        if desired.left != current.left:
            self._controls.set_key("keyA", desired.left)
            current.left = desired.left
        if desired.right != current.right:
            self._controls.set_key("keyD", desired.right)
            current.right = desired.right
        if current.backward:
            self._controls.set_key("keyS", False)
            current.backward = False
        self._controls.set_key(RUN_MODIFIER, False)

    def _hold(self, why: str) -> None:
        if self._degenerate_log.ready(why):
            log.warning("Navigation tick: %s; holding position", why)
        self._controls.set_key("keyW", False)
        self._controls.set_key("keyA", False)
        self._controls.set_key("keyD", False)
        self._controls.set_key("keyS", False)
        self._nav_keys = NavKeys()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _stop_cancels_walk(cause: StopCause, origin: Optional[NavOrigin]) -> bool:
        if cause in (StopCause.WALK_LEG, StopCause.WALK_STOPPED):
            return False
        # A walker leg finishing is part of the walk, not the end of it.
        if cause is StopCause.TARGET_REACHED and origin is NavOrigin.WALKER:
            return False
        return True

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _publish(self, event_type: EventType, message: str, payload: dict) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="embodiment.navigation",
            event_type=event_type,
            message=message,
            payload=payload,
        )


__all__ = [
    "NavigationController",
    "NavigationTarget",
    "NavKeys",
    "NavOrigin",
    "StopCause",
    "WalkStopCause",
    "desired_keys",
    "signed_heading",
    "DEFAULT_TICK_INTERVAL_MS",
    "DEFAULT_STOP_DISTANCE",
]
