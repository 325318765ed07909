# src/embodiment/pollers.py
"""
Secondary periodic tasks of a connected session.

- AgentStatePoller mirrors the embodiment pose into a plain dict
  {"position": [x, y, z] | None, "rotation": [x, y, z, w] | None}.
- IdentityPoller applies the configured display name and avatar once the
  local player is known, retrying each poll until both are done, then
  cancels itself.

Both own their TimerHandle and are stopped by the session on teardown.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from interfaces.geometry import Pose

from .timers import TimerHandle, TimerScheduler

log = logging.getLogger(__name__)

DEFAULT_AGENT_STATE_INTERVAL_MS = 1000.0
DEFAULT_IDENTITY_INTERVAL_MS = 30_000.0


class AgentStatePoller:
    """Copies the embodiment pose into `state` on a fixed interval."""

    def __init__(
        self,
        pose_source: Callable[[], Optional[Pose]],
        scheduler: TimerScheduler,
        *,
        interval_ms: float = DEFAULT_AGENT_STATE_INTERVAL_MS,
    ) -> None:
        self._pose_source = pose_source
        self._scheduler = scheduler
        self._interval_ms = float(interval_ms)
        self._timer: Optional[TimerHandle] = None
        self.state: Dict[str, Optional[List[float]]] = {"position": None, "rotation": None}

    def start(self) -> None:
        self.stop()
        self._timer = self._scheduler.call_every(
            self._interval_ms, self.poll, name="agent_state"
        )
        log.info("Agent state sync every %.0fms", self._interval_ms)

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def clear(self) -> None:
        self.state = {"position": None, "rotation": None}

    def poll(self) -> bool:
        """Refresh the state. Returns True when anything changed."""
        try:
            pose = self._pose_source()
        except Exception:
            log.exception("Agent state poll could not read the pose")
            pose = None

        if pose is None:
            if self.state["position"] is not None or self.state["rotation"] is not None:
                log.debug("Clearing agent state (embodiment missing)")
                self.clear()
                return True
            return False

        position = list(pose.position.to_tuple())
        rotation = list(pose.orientation.to_tuple())
        changed = position != self.state["position"] or rotation != self.state["rotation"]
        if changed:
            self.state = {"position": position, "rotation": rotation}
        return changed


class IdentityPoller:
    """
    Sets the agent's display name and avatar once the local player exists.

    The first poll runs immediately on start(). Each task is retried on the
    next poll when it fails; the poller stops when both are done (a task with
    nothing configured counts as done).
    """

    def __init__(
        self,
        player_id_source: Callable[[], Optional[str]],
        scheduler: TimerScheduler,
        *,
        display_name: Optional[str],
        avatar_url: Optional[str],
        change_name: Callable[[str], Any],
        apply_avatar: Optional[Callable[[str], Any]],
        interval_ms: float = DEFAULT_IDENTITY_INTERVAL_MS,
    ) -> None:
        self._player_id_source = player_id_source
        self._scheduler = scheduler
        self._display_name = display_name
        self._avatar_url = avatar_url
        self._change_name = change_name
        self._apply_avatar = apply_avatar
        self._interval_ms = float(interval_ms)
        self._timer: Optional[TimerHandle] = None

        self.name_set = not display_name
        self.avatar_set = not (avatar_url and apply_avatar is not None)

    @property
    def done(self) -> bool:
        return self.name_set and self.avatar_set

    def is_running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        self.stop()
        if self.done:
            log.info("Identity already applied; polling not started")
            return
        log.info("Identity polling every %.0fms", self._interval_ms)
        self._timer = self._scheduler.call_every(
            self._interval_ms, self.poll, name="identity", first_delay_ms=0
        )

    def stop(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def poll(self) -> None:
        if self.done:
            self.stop()
            return

        player_id = self._player_id_source()
        if not player_id:
            log.debug("Identity poll: waiting for the local player")
            return

        if not self.name_set and self._display_name:
            try:
                self._change_name(self._display_name)
            except Exception:
                log.exception("Identity poll: setting name %r failed; will retry", self._display_name)
            else:
                self.name_set = True
                log.info("Identity poll: name set to %r", self._display_name)

        if not self.avatar_set and self._avatar_url and self._apply_avatar is not None:
            try:
                self._apply_avatar(self._avatar_url)
            except Exception:
                log.exception("Identity poll: applying avatar failed; will retry")
            else:
                self.avatar_set = True
                log.info("Identity poll: avatar applied")

        if self.done:
            log.info("Identity poll: name and avatar set, polling stopped")
            self.stop()


__all__ = [
    "AgentStatePoller",
    "IdentityPoller",
    "DEFAULT_AGENT_STATE_INTERVAL_MS",
    "DEFAULT_IDENTITY_INTERVAL_MS",
]
