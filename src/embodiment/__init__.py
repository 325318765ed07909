# src/embodiment/__init__.py
"""
Embodiment layer: drives one avatar in a remote shared world.

- session:      WorldSession (connect/disconnect, public control surface)
- navigation:   steer toward an (x, z) target with edge-triggered keys
- random_walk:  periodic random navigation legs
- motion:       jump / crouch with cooldown and precedence
- world_cache:  entity snapshots and name registry
- chat:         chat deduplication
- clock:        fixed-rate simulation ticks
"""

from __future__ import annotations

from .errors import PreconditionError, SessionError, TransientIOError
from .navigation import NavOrigin, StopCause, WalkStopCause
from .session import ConnectionState, WorldSession

__all__ = [
    "ConnectionState",
    "WorldSession",
    "NavOrigin",
    "StopCause",
    "WalkStopCause",
    "PreconditionError",
    "SessionError",
    "TransientIOError",
]
