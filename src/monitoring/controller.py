# SessionController linking control commands to WorldSession
#src/monitoring/controller.py
"""
Control surface for the embodiment runtime.

SessionController wraps a WorldSession-like object and exposes external
control via ControlCommand messages on the EventBus.

Supported commands (ControlCommandType):
- EXECUTE_ACTION -> run one interfaces.types.Action through the session
- STOP_ALL       -> stop random walk and navigation
- DUMP_STATE     -> emit the session state as a LOG event

Commands may be published from any thread (dashboard, CLI tools). They are
queued under a lock and applied by process_pending(), which the runtime
calls from the loop that owns the session.
"""

from __future__ import annotations

import logging
from collections import deque
from threading import Lock
from typing import Any, Deque, Dict, Protocol

from interfaces.types import Action, ActionResult

from .bus import EventBus
from .events import (
    ControlCommand,
    ControlCommandType,
    EventType,
)
from .logger import log_event

log = logging.getLogger(__name__)


# ============================================================
# Session interface expected by the controller
# ============================================================

class SessionControl(Protocol):
    """What the controller needs from embodiment.session.WorldSession."""

    def execute_action(self, action: Action) -> ActionResult:
        """Run one action and report the outcome."""

    def stop_random_walk(self) -> bool:
        """Stop the random walk, if any."""

    def stop_navigation(self) -> bool:
        """Stop navigation, if any."""

    def get_state(self) -> Dict[str, Any]:
        """JSON-safe status, agent and entity snapshot."""
        ...


# ============================================================
# Session Controller
# ============================================================

class SessionController:
    """
    Applies ControlCommands to a session on the session's own loop.
    """

    def __init__(self, session: SessionControl, bus: EventBus) -> None:
        self._session = session
        self._bus = bus
        self._pending: Deque[ControlCommand] = deque()
        self._lock = Lock()

        self._bus.subscribe_commands(self._enqueue)

    def close(self) -> None:
        self._bus.unsubscribe_commands(self._enqueue)

    # --------------------------------------------------------
    # Command intake
    # --------------------------------------------------------

    def _enqueue(self, cmd: ControlCommand) -> None:
        with self._lock:
            self._pending.append(cmd)

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def process_pending(self) -> int:
        """Apply every queued command in arrival order. Returns how many ran."""
        with self._lock:
            commands = list(self._pending)
            self._pending.clear()

        for cmd in commands:
            self._handle_command(cmd)
        return len(commands)

    # --------------------------------------------------------
    # Command handling
    # --------------------------------------------------------

    def _handle_command(self, cmd: ControlCommand) -> None:
        if cmd.cmd == ControlCommandType.EXECUTE_ACTION:
            action = Action(
                type=str(cmd.args.get("type", "")),
                params=dict(cmd.args.get("params") or {}),
            )
            result = self._session.execute_action(action)
            self._log_control(
                "EXECUTE_ACTION",
                {
                    "type": action.type,
                    "success": result.success,
                    "error": result.error,
                    "details": result.details,
                },
            )

        elif cmd.cmd == ControlCommandType.STOP_ALL:
            walk_stopped = self._session.stop_random_walk()
            nav_stopped = self._session.stop_navigation()
            self._log_control(
                "STOP_ALL",
                {"random_walk_stopped": walk_stopped, "navigation_stopped": nav_stopped},
            )

        elif cmd.cmd == ControlCommandType.DUMP_STATE:
            self._log_state(self._safe_state())

        else:
            log.warning("Unhandled control command %s", cmd.cmd)

    # --------------------------------------------------------
    # Logging helpers
    # --------------------------------------------------------

    def _log_control(self, cmd_name: str, payload: Dict[str, Any]) -> None:
        log_event(
            bus=self._bus,
            module="monitoring.controller",
            event_type=EventType.CONTROL_COMMAND,
            message=f"Control command: {cmd_name}",
            payload={"cmd": cmd_name, **payload},
        )

    def _log_state(self, state: Dict[str, Any]) -> None:
        log_event(
            bus=self._bus,
            module="monitoring.controller",
            event_type=EventType.LOG,
            message="Session state dump",
            payload={"state": state},
        )

    def _safe_state(self) -> Dict[str, Any]:
        try:
            return self._session.get_state()
        except Exception as exc:
            log.exception("get_state failed during DUMP_STATE")
            return {"error": "get_state_failed", "details": repr(exc)}


__all__ = ["SessionController", "SessionControl"]
