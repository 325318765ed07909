# path: src/monitoring/events.py
"""
Event and command schemas for monitoring the embodied agent.

This module defines:
- MonitoringEvent (structured system events)
- EventType enum
- ControlCommandType enum
- ControlCommand for human/system-issued controls

All events are JSON-serializable via `.to_dict()` and are intended
for use with monitoring.bus.EventBus and monitoring.logger.JsonFileLogger.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from enum import Enum, auto
from typing import Any, Dict, Optional


# ============================================================
# Event Types
# ============================================================

class EventType(Enum):
    """Typed monitoring events emitted by the embodiment and runtime."""

    # Session lifecycle (Disconnected, Connecting, Connected, Disconnecting)
    CONNECTION_STATE = auto()

    # Locomotion
    NAVIGATION_STARTED = auto()
    NAVIGATION_STOPPED = auto()
    RANDOM_WALK_STARTED = auto()
    RANDOM_WALK_STOPPED = auto()

    # One-shot / toggle motion
    JUMP = auto()
    CROUCH = auto()

    # World-state synchronization
    CHAT_DISPATCHED = auto()
    ENTITY_COUNT = auto()

    # Action execution through the control surface
    ACTION_EXECUTED = auto()

    # Control surface events
    CONTROL_COMMAND = auto()

    # Generic log messages
    LOG = auto()


# ============================================================
# Monitoring Event Structure
# ============================================================

@dataclass
class MonitoringEvent:
    """
    Runtime event emitted by the session, its controllers, or the runtime.

    All fields must be JSON-safe.
    """

    ts: float                   # UNIX timestamp (seconds)
    module: str                 # Source module string ("embodiment.navigation", ...)
    event_type: EventType       # Enum describing the event class
    message: str                # Short human-readable description
    payload: Dict[str, Any]     # Structured data (target, reason, counts)
    correlation_id: Optional[str] = None  # Used for grouping events per session

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-safe dict for loggers."""
        data = asdict(self)
        data["event_type"] = self.event_type.name  # store name, not enum
        return data


# ============================================================
# Control Commands
# ============================================================

class ControlCommandType(Enum):
    """
    Commands that humans or tools can send to steer the embodiment.
    """

    EXECUTE_ACTION = auto()  # Run one interfaces.types.Action on the session
    STOP_ALL = auto()        # Stop navigation and random walk
    DUMP_STATE = auto()      # Emit a full state LOG event


@dataclass
class ControlCommand:
    """
    Represents an external command for the session.

    Sent through EventBus.publish_command(), then interpreted by
    monitoring.controller.SessionController.
    """

    cmd: ControlCommandType
    args: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def execute(action_type: str, **params: Any) -> "ControlCommand":
        return ControlCommand(
            ControlCommandType.EXECUTE_ACTION,
            {"type": action_type, "params": params},
        )

    @staticmethod
    def stop_all() -> "ControlCommand":
        return ControlCommand(ControlCommandType.STOP_ALL, {})

    @staticmethod
    def dump_state() -> "ControlCommand":
        return ControlCommand(ControlCommandType.DUMP_STATE, {})
