# WorldClient interface definition
# src/interfaces/world.py

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol

from .geometry import Pose

# Type alias for inbound event handlers. Arity depends on the event:
#   entityAdded(entity), entityModified(id, patch, entity|None),
#   entityRemoved(id), chatMessageBatch(messages), disconnect(reason)
EventHandler = Callable[..., None]

ENTITY_ADDED = "entityAdded"
ENTITY_MODIFIED = "entityModified"
ENTITY_REMOVED = "entityRemoved"
CHAT_MESSAGE_BATCH = "chatMessageBatch"
DISCONNECT = "disconnect"


class Capability(Enum):
    """Optional collaborator features, checked with WorldClient.supports()."""

    NATIVE_JUMP = "native_jump"          # jump()
    IMPULSE = "impulse"                  # apply_impulse(x, y, z)
    SET_HEIGHT = "set_height"            # set_height(height)
    ENTITY_LOOKUP = "entity_lookup"      # get_entity(id)
    ENTITY_LISTING = "entity_listing"    # list_entities()
    CHAT_HISTORY = "chat_history"        # chat_history()
    LOCAL_PLAYER = "local_player"        # local_player()
    APPEARANCE = "appearance"            # set_appearance(url)


class WorldClient(Protocol):
    """Abstract interface for the remote world collaborator.

    This is the embodiment's only door to the world:
    - inbound entity/chat/disconnect events are delivered to handlers
    - outbound input keys, network events and simulation steps go out here
    - optional features are reached only after supports() says yes
    """

    def connect(self, ws_url: str, auth_token: Optional[str] = None) -> None:
        """Open the connection and complete the world handshake."""
        ...

    def disconnect(self) -> None:
        """Cleanly close the connection. Safe to call when closed."""
        ...

    def pump(self) -> None:
        """
        Read pending I/O and dispatch decoded events to handlers.

        Called regularly by the runtime loop, between timer callbacks.
        """
        ...

    def on_event(self, event: str, handler: EventHandler) -> None:
        """Register the handler for one inbound event name."""
        ...

    def off_event(self, event: str) -> None:
        """Drop the handler for an event name. Unknown names are ignored."""
        ...

    def supports(self, capability: Capability) -> bool:
        """Return True when the optional calls behind `capability` exist."""
        ...

    def set_input_key(self, name: str, is_down: bool) -> None:
        """Forward one control write to the world's input model."""
        ...

    def get_embodiment_pose(self) -> Optional[Pose]:
        """Return the embodiment's pose, or None when it does not exist yet."""
        ...

    def send_network_event(self, event_type: str, payload: Mapping[str, Any]) -> None:
        """Send a high-level network event to the world server."""
        ...

    def advance_simulation(self, timestamp_ms: float) -> None:
        """Step the local simulation to `timestamp_ms`."""
        ...

    # Optional calls, guarded by supports()

    def jump(self) -> None: ...

    def apply_impulse(self, x: float, y: float, z: float) -> None: ...

    def set_height(self, height: float) -> None: ...

    def get_entity(self, entity_id: str) -> Optional[Mapping[str, Any]]: ...

    def list_entities(self) -> Iterable[Mapping[str, Any]]: ...

    def chat_history(self) -> Iterable[Mapping[str, Any]]: ...

    def local_player(self) -> Optional[Mapping[str, Any]]: ...

    def set_appearance(self, avatar_url: str) -> None: ...
