# src/embodiment/motion.py
"""
One-shot and toggle motion for the embodiment: jump and crouch.

Precedence:
  - a jump while one is in flight, or inside the cooldown, is a no-op
  - a jump cancels an active crouch
  - a crouch requested while a jump is in flight is dropped

The in-flight reset is an owned TimerHandle, cancelled by cancel_pending()
on teardown. The cooldown itself is time based and not cancellable.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from interfaces.world import Capability, WorldClient
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .controls import CROUCH_KEY, ControlRegistry
from .errors import PreconditionError
from .timers import TimerHandle, TimerScheduler

log = logging.getLogger(__name__)

ClientSource = Callable[[], Optional[WorldClient]]

DEFAULT_JUMP_COOLDOWN_MS = 1000.0
DEFAULT_JUMP_FLIGHT_MS = 800.0
JUMP_FORCE = 5.0
CROUCH_HEIGHT = 0.9
STAND_HEIGHT = 1.7


class MotionActions:
    """Jump and crouch on top of the control registry and client capabilities."""

    def __init__(
        self,
        client_source: ClientSource,
        controls: ControlRegistry,
        scheduler: TimerScheduler,
        *,
        jump_cooldown_ms: float = DEFAULT_JUMP_COOLDOWN_MS,
        jump_flight_ms: float = DEFAULT_JUMP_FLIGHT_MS,
        bus: Optional[EventBus] = None,
    ) -> None:
        self._client_source = client_source
        self._controls = controls
        self._scheduler = scheduler
        self._cooldown_ms = float(jump_cooldown_ms)
        self._flight_ms = float(jump_flight_ms)
        self._bus = bus

        self._jumping = False
        self._crouching = False
        self._last_jump_ms: Optional[float] = None
        self._flight_timer: Optional[TimerHandle] = None

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def is_jumping(self) -> bool:
        return self._jumping

    def is_crouching(self) -> bool:
        return self._crouching

    # ------------------------------------------------------------------
    # Jump
    # ------------------------------------------------------------------

    def jump(self) -> bool:
        """
        Start a jump. Returns False (no state change) when rejected by the
        in-flight flag or the cooldown.
        """
        client = self._require_client()

        now = self._scheduler.now()
        if self._jumping:
            log.debug("Jump ignored: already in flight")
            return False
        if self._last_jump_ms is not None and now - self._last_jump_ms < self._cooldown_ms:
            log.debug(
                "Jump ignored: cooldown (%.0fms left)",
                self._cooldown_ms - (now - self._last_jump_ms),
            )
            return False

        self._jumping = True
        self._last_jump_ms = now

        if self._crouching:
            log.info("Jump cancels crouch")
            self._set_crouch(client, False)

        try:
            if client.supports(Capability.NATIVE_JUMP):
                client.jump()
            elif client.supports(Capability.IMPULSE):
                client.apply_impulse(0.0, JUMP_FORCE, 0.0)
            else:
                log.warning("Client has no jump capability; jump is cosmetic only")
        except Exception:
            log.exception("Jump failed")
        finally:
            self._arm_flight_reset()

        log.info("Jump")
        self._publish(EventType.JUMP, "Jump", {"ts_ms": now})
        return True

    def _arm_flight_reset(self) -> None:
        if self._flight_timer is not None:
            self._flight_timer.cancel()
        self._flight_timer = self._scheduler.call_later(
            self._flight_ms, self._end_flight, name="motion.jump_flight"
        )

    def _end_flight(self) -> None:
        self._flight_timer = None
        self._jumping = False

    # ------------------------------------------------------------------
    # Crouch
    # ------------------------------------------------------------------

    def toggle_crouch(self) -> bool:
        """
        Flip the crouch state. Returns the new crouch state; False when the
        request is dropped because a jump is in flight.
        """
        client = self._require_client()
        pose = client.get_embodiment_pose()
        if pose is None or not pose.is_finite():
            raise PreconditionError("cannot crouch: embodiment pose unavailable")

        if self._jumping:
            log.info("Crouch request dropped while jumping")
            if self._crouching:
                self._set_crouch(client, False)
            return False

        self._set_crouch(client, not self._crouching)
        return self._crouching

    def _set_crouch(self, client: WorldClient, crouching: bool) -> None:
        self._crouching = crouching
        self._controls.set_key(CROUCH_KEY, crouching)
        if client.supports(Capability.SET_HEIGHT):
            try:
                client.set_height(CROUCH_HEIGHT if crouching else STAND_HEIGHT)
            except Exception:
                log.exception("Failed to apply %s height", "crouch" if crouching else "stand")
        log.info("Crouch %s", "on" if crouching else "off")
        self._publish(EventType.CROUCH, "Crouch changed", {"crouching": crouching})

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def cancel_pending(self) -> None:
        """Cancel the flight reset and clear jump/crouch state without writes."""
        if self._flight_timer is not None:
            self._flight_timer.cancel()
            self._flight_timer = None
        self._jumping = False
        self._crouching = False

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_client(self) -> WorldClient:
        client = self._client_source()
        if client is None:
            raise PreconditionError("no embodiment: world client not connected")
        return client

    def _publish(self, event_type: EventType, message: str, payload: dict) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="embodiment.motion",
            event_type=event_type,
            message=message,
            payload=payload,
        )


__all__ = [
    "MotionActions",
    "DEFAULT_JUMP_COOLDOWN_MS",
    "DEFAULT_JUMP_FLIGHT_MS",
    "JUMP_FORCE",
    "CROUCH_HEIGHT",
    "STAND_HEIGHT",
]
