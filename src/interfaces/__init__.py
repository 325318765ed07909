"""
Shared interfaces for the embodied agent.

Exports the collaborator protocol (WorldClient), capability flags, and the
plain data types that cross package boundaries.
"""

from __future__ import annotations

from .types import Action, ActionResult, ConnectionSession, EntitySnapshot
from .world import Capability, EventHandler, WorldClient

__all__ = [
    "Action",
    "ActionResult",
    "ConnectionSession",
    "EntitySnapshot",
    "Capability",
    "EventHandler",
    "WorldClient",
]
