# core shared types: Action, ActionResult, EntitySnapshot, ConnectionSession
# src/interfaces/types.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple


# ---------------------------------------------------------------------------
# World state types
# ---------------------------------------------------------------------------

@dataclass
class EntitySnapshot:
    """Cached view of one remote entity.

    Produced by the WorldStateCache from normalized entity payloads. The
    shape is deliberately flat so agent-side providers can serialize it
    without knowing anything about the remote world's object model.

    Fields:

      - id:
          Entity id as assigned by the remote world.

      - type:
          Entity kind ("player", "app", ...). "unknown" when not reported.

      - name:
          Display name. For players this prefers the name registry, which
          can be updated out of band.

      - position:
          (x, y, z) or None when the payload carried no position.

      - rotation:
          Quaternion (x, y, z, w) or None.
    """
    id: str
    type: str
    name: Optional[str]
    position: Optional[Tuple[float, float, float]]
    rotation: Optional[Tuple[float, float, float, float]]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "position": list(self.position) if self.position is not None else None,
            "rotation": list(self.rotation) if self.rotation is not None else None,
        }


@dataclass
class ConnectionSession:
    """Identity of one connect/disconnect cycle.

    connected_at_ms is the validity horizon for chat replay: messages
    created at or before it are history, never dispatched.
    """
    world_id: str
    ws_url: str
    connected_at_ms: Optional[float] = None


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------

@dataclass
class Action:
    """Abstract action that agent-side adapters can send to the session."""
    type: str                               # e.g. "navigate_to", "jump", "set_key"
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ActionResult:
    """Result of executing an Action."""
    success: bool                           # did it work?
    error: Optional[str]                    # error code if not
    details: Dict[str, Any] = field(default_factory=dict)
