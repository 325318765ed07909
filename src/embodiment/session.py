# src/embodiment/session.py
"""
Connection lifecycle and public control surface of the embodiment.

WorldSession wires together:
- WorldClient transport (built by an injected factory on every connect)
- ControlRegistry (sink -> client.set_input_key)
- NavigationController / RandomWalkScheduler / MotionActions
- WorldStateCache and ChatDeduplicator (fed by client events)
- SimulationClock and the secondary pollers

Public surface (for runtime, actions and providers):
    connect(connection) -> ConnectionSession
    disconnect() / handle_disconnect(reason)
    navigate_to(x, z) / stop_navigation() / is_navigating()
    start_random_walk(...) / stop_random_walk() / is_walking_randomly()
    jump() / toggle_crouch() / is_jumping() / is_crouching()
    set_key(name, down) / use_item(slot) / change_name(name)
    get_state() / get_entities() / describe_world() / execute_action(action)

Design constraints:
- States DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTING -> DISCONNECTED.
- Every component is built on connect and dropped on disconnect; nothing
  about the world survives a reconnect.
- A failed connect tears everything down before SessionError is raised.
- handle_disconnect() is idempotent and safe from any state.
"""

from __future__ import annotations

import logging
import random
import time
import uuid
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional

from env.schema import ConnectionConfig, IdentityConfig, TuningConfig
from interfaces.geometry import Pose
from interfaces.types import Action, ActionResult, ConnectionSession, EntitySnapshot
from interfaces.world import (
    CHAT_MESSAGE_BATCH,
    DISCONNECT,
    ENTITY_ADDED,
    ENTITY_MODIFIED,
    ENTITY_REMOVED,
    Capability,
    WorldClient,
)
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import log_event

from .actions import ActionExecutor, ActionTracer
from .chat import ChatDeduplicator, MessageHandler
from .clock import SimulationClock
from .controls import COMMON_CONTROLS, ITEM_SLOT_KEYS, ControlRegistry
from .errors import PreconditionError, SessionError
from .motion import MotionActions
from .navigation import NavigationController, StopCause, WalkStopCause
from .pollers import AgentStatePoller, IdentityPoller
from .random_walk import RandomWalkConfig, RandomWalkScheduler
from .timers import TimerHandle, TimerScheduler
from .world_cache import WorldStateCache

log = logging.getLogger(__name__)

ClientFactory = Callable[[], WorldClient]

_LISTENED_EVENTS = (ENTITY_ADDED, ENTITY_MODIFIED, ENTITY_REMOVED, CHAT_MESSAGE_BATCH, DISCONNECT)


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class WorldSession:
    """
    Owns one connect/disconnect cycle against a remote world at a time.
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        scheduler: Optional[TimerScheduler] = None,
        tuning: Optional[TuningConfig] = None,
        identity: Optional[IdentityConfig] = None,
        bus: Optional[EventBus] = None,
        rng: Optional[random.Random] = None,
        chat_handler: Optional[MessageHandler] = None,
        wall_clock: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self._client_factory = client_factory
        self._scheduler = scheduler or TimerScheduler()
        self._tuning = tuning or TuningConfig()
        self._identity = identity or IdentityConfig()
        self._bus = bus
        self._rng = rng
        self._chat_handler = chat_handler
        self._wall_clock = wall_clock

        self._state = ConnectionState.DISCONNECTED
        self._session: Optional[ConnectionSession] = None
        self._correlation_id: Optional[str] = None

        self._client: Optional[WorldClient] = None
        self._controls: Optional[ControlRegistry] = None
        self._navigation: Optional[NavigationController] = None
        self._walker: Optional[RandomWalkScheduler] = None
        self._motion: Optional[MotionActions] = None
        self._cache: Optional[WorldStateCache] = None
        self._chat: Optional[ChatDeduplicator] = None
        self._clock: Optional[SimulationClock] = None
        self._agent_poller: Optional[AgentStatePoller] = None
        self._identity_poller: Optional[IdentityPoller] = None
        self._key_releases: Dict[str, TimerHandle] = {}

        self._tracer = ActionTracer()
        self._executor = ActionExecutor(self, tracer=self._tracer)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def session(self) -> Optional[ConnectionSession]:
        return self._session

    @property
    def scheduler(self) -> TimerScheduler:
        return self._scheduler

    @property
    def client(self) -> Optional[WorldClient]:
        return self._client

    @property
    def controls(self) -> Optional[ControlRegistry]:
        return self._controls

    @property
    def cache(self) -> Optional[WorldStateCache]:
        return self._cache

    @property
    def chat(self) -> Optional[ChatDeduplicator]:
        return self._chat

    @property
    def clock(self) -> Optional[SimulationClock]:
        return self._clock

    @property
    def tracer(self) -> ActionTracer:
        return self._tracer

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self, connection: ConnectionConfig) -> ConnectionSession:
        """
        Connect to a world and bring every component up.

        Raises:
            SessionError(code="connect_failed") after a full teardown.
        """
        if self._state is not ConnectionState.DISCONNECTED or self._client is not None:
            log.info("Already connected to %s; disconnecting first", self._describe_session())
            self.disconnect()

        self._correlation_id = uuid.uuid4().hex
        self._set_state(ConnectionState.CONNECTING, {"ws_url": connection.ws_url})
        log.info("Connecting to world %s at %s", connection.world_id, connection.ws_url)

        try:
            client = self._client_factory()
            self._client = client
            client.connect(connection.ws_url, connection.auth_token)

            self._build_components(client)
            self._attach_listeners(client)
            self._initial_sync(client)

            assert self._clock is not None
            assert self._agent_poller is not None
            assert self._identity_poller is not None
            self._clock.start()
            self._agent_poller.start()
            self._identity_poller.start()

            connected_at = self._wall_clock()
            self._session = ConnectionSession(
                world_id=connection.world_id,
                ws_url=connection.ws_url,
                connected_at_ms=connected_at,
            )
            assert self._chat is not None
            self._chat.set_connected_at(connected_at)
        except Exception as exc:
            log.exception("Connect to %s failed; tearing down", connection.ws_url)
            self.handle_disconnect("connect failed")
            raise SessionError(
                code="connect_failed",
                details={"ws_url": connection.ws_url, "world_id": connection.world_id, "error": repr(exc)},
            ) from exc

        self._set_state(
            ConnectionState.CONNECTED,
            {"world_id": connection.world_id, "entities": len(self._cache or ())},
        )
        log.info(
            "Connected to world %s (%d entities cached)",
            connection.world_id,
            len(self._cache or ()),
        )
        return self._session

    def disconnect(self) -> None:
        log.info("Disconnecting from %s", self._describe_session())
        self.handle_disconnect("client disconnect")

    def handle_disconnect(self, reason: str = "remote disconnect") -> bool:
        """
        Tear the session down. Returns False when there was nothing to do.
        """
        if self._state is ConnectionState.DISCONNECTED and self._client is None:
            return False
        if self._state is ConnectionState.DISCONNECTING:
            return False

        log.info("Handling disconnect (%s)", reason)
        self._set_state(ConnectionState.DISCONNECTING, {"reason": reason})

        if self._walker is not None:
            self._walker.stop_random_walk(WalkStopCause.DISCONNECT)
        if self._navigation is not None:
            self._navigation.stop_navigation(StopCause.DISCONNECT)
            self._navigation.attach_walker(None)
        if self._clock is not None:
            self._clock.stop()
        if self._agent_poller is not None:
            self._agent_poller.stop()
            self._agent_poller.clear()
        if self._identity_poller is not None:
            self._identity_poller.stop()
        if self._motion is not None:
            self._motion.cancel_pending()
        for handle in self._key_releases.values():
            handle.cancel()
        self._key_releases.clear()

        client = self._client
        if client is not None:
            for event in _LISTENED_EVENTS:
                try:
                    client.off_event(event)
                except Exception:
                    log.exception("Failed to detach %s listener", event)
            try:
                client.disconnect()
            except Exception:
                log.warning("Error while disconnecting the world client", exc_info=True)

        if self._cache is not None:
            self._cache.clear()
        if self._chat is not None:
            self._chat.reset()
        if self._controls is not None:
            self._controls.set_sink(None)
            self._controls.reset()

        self._client = None
        self._controls = None
        self._navigation = None
        self._walker = None
        self._motion = None
        self._cache = None
        self._chat = None
        self._clock = None
        self._agent_poller = None
        self._identity_poller = None
        self._session = None

        self._set_state(ConnectionState.DISCONNECTED, {"reason": reason})
        self._correlation_id = None
        log.info("Disconnect handling complete")
        return True

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build_components(self, client: WorldClient) -> None:
        t = self._tuning
        controls = ControlRegistry(COMMON_CONTROLS + ITEM_SLOT_KEYS, sink=client.set_input_key)
        self._controls = controls

        self._navigation = NavigationController(
            self._read_pose,
            controls,
            self._scheduler,
            tick_interval_ms=t.nav_tick_interval_ms,
            stop_distance=t.nav_stop_distance,
            bus=self._bus,
        )
        self._walker = RandomWalkScheduler(
            self._navigation,
            self._read_pose,
            self._scheduler,
            config=RandomWalkConfig(t.random_walk_interval_ms, t.random_walk_max_distance),
            rng=self._rng,
            bus=self._bus,
        )
        self._motion = MotionActions(
            lambda: self._client,
            controls,
            self._scheduler,
            jump_cooldown_ms=t.jump_cooldown_ms,
            jump_flight_ms=t.jump_flight_ms,
            bus=self._bus,
        )

        lookup = client.get_entity if client.supports(Capability.ENTITY_LOOKUP) else None
        self._cache = WorldStateCache(lookup)
        self._chat = ChatDeduplicator(self._dispatch_chat)

        self._clock = SimulationClock(
            client.advance_simulation,
            controls,
            self._scheduler,
            self.is_connected,
            tick_rate_hz=t.tick_rate_hz,
            error_log_interval_ms=t.tick_error_log_interval_ms,
        )
        self._agent_poller = AgentStatePoller(
            self._read_pose, self._scheduler, interval_ms=t.agent_state_interval_ms
        )
        apply_avatar = self._apply_avatar if client.supports(Capability.APPEARANCE) else None
        self._identity_poller = IdentityPoller(
            self._local_player_id,
            self._scheduler,
            display_name=self._identity.display_name,
            avatar_url=self._identity.avatar_url,
            change_name=self.change_name,
            apply_avatar=apply_avatar,
            interval_ms=t.identity_poll_interval_ms,
        )

    def _attach_listeners(self, client: WorldClient) -> None:
        client.on_event(ENTITY_ADDED, self._on_entity_added)
        client.on_event(ENTITY_MODIFIED, self._on_entity_modified)
        client.on_event(ENTITY_REMOVED, self._on_entity_removed)
        client.on_event(CHAT_MESSAGE_BATCH, self._on_chat_batch)
        client.on_event(DISCONNECT, self._on_remote_disconnect)

    def _initial_sync(self, client: WorldClient) -> None:
        assert self._cache is not None and self._chat is not None
        if client.supports(Capability.ENTITY_LISTING):
            for entity in client.list_entities():
                self._cache.on_entity_added(entity)
            log.info(
                "Initial entity count: %d, player names: %d",
                len(self._cache),
                len(self._cache.player_names()),
            )
        else:
            log.info("Client cannot list entities; cache fills from events")

        if client.supports(Capability.CHAT_HISTORY):
            self._chat.prime(client.chat_history())

    # ------------------------------------------------------------------
    # Client event handlers
    # ------------------------------------------------------------------

    def _on_entity_added(self, entity: Optional[Mapping[str, Any]]) -> None:
        if self._cache is None:
            return
        before = len(self._cache)
        self._cache.on_entity_added(entity)
        if len(self._cache) != before:
            self._publish_count()

    def _on_entity_modified(
        self,
        entity_id: Optional[str],
        patch: Optional[Mapping[str, Any]] = None,
        entity: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if self._cache is not None:
            self._cache.on_entity_modified(entity_id, patch, entity)

    def _on_entity_removed(self, entity_id: Optional[str]) -> None:
        if self._cache is None:
            return
        before = len(self._cache)
        self._cache.on_entity_removed(entity_id)
        if len(self._cache) != before:
            self._publish_count()

    def _on_chat_batch(self, messages: List[Mapping[str, Any]]) -> None:
        if self._chat is None or not self.is_connected():
            return
        self._chat.handle_batch(messages)

    def _on_remote_disconnect(self, reason: Any = None) -> None:
        log.warning("World reported disconnect: %s", reason)
        self.handle_disconnect(str(reason) if reason else "remote disconnect")

    def _dispatch_chat(self, message: Mapping[str, Any]) -> None:
        self._publish(
            EventType.CHAT_DISPATCHED,
            "Chat message dispatched",
            {"id": str(message.get("id")), "from": message.get("from")},
        )
        if self._chat_handler is not None:
            self._chat_handler(message)

    # ------------------------------------------------------------------
    # Locomotion surface
    # ------------------------------------------------------------------

    def navigate_to(self, x: float, z: float) -> None:
        self._require(self._navigation).navigate_to(x, z)

    def stop_navigation(self, cause: StopCause = StopCause.USER) -> bool:
        if self._navigation is None:
            return False
        return self._navigation.stop_navigation(cause)

    def is_navigating(self) -> bool:
        return self._navigation is not None and self._navigation.is_navigating()

    def start_random_walk(
        self,
        interval_ms: Optional[float] = None,
        max_distance: Optional[float] = None,
    ) -> None:
        self._require(self._walker).start_random_walk(interval_ms, max_distance)

    def stop_random_walk(self, cause: WalkStopCause = WalkStopCause.USER) -> bool:
        if self._walker is None:
            return False
        return self._walker.stop_random_walk(cause)

    def is_walking_randomly(self) -> bool:
        return self._walker is not None and self._walker.is_walking_randomly()

    def jump(self) -> bool:
        return self._require(self._motion).jump()

    def toggle_crouch(self) -> bool:
        return self._require(self._motion).toggle_crouch()

    def is_jumping(self) -> bool:
        return self._motion is not None and self._motion.is_jumping()

    def is_crouching(self) -> bool:
        return self._motion is not None and self._motion.is_crouching()

    def set_key(self, name: str, is_down: bool) -> None:
        log.debug("set_key %s=%s", name, is_down)
        self._require(self._controls).set_key(name, is_down)

    def use_item(self, slot: int) -> None:
        """Press key<slot> (1-9) briefly."""
        if isinstance(slot, bool) or not isinstance(slot, int) or not 1 <= slot <= 9:
            raise ValueError(f"Invalid item slot {slot!r}; must be between 1 and 9")
        controls = self._require(self._controls)
        key = f"key{slot}"

        pending = self._key_releases.pop(key, None)
        if pending is not None:
            pending.cancel()

        log.info("Use item: pressing %s", key)
        controls.set_key(key, True)

        def release() -> None:
            self._key_releases.pop(key, None)
            if self._controls is not None:
                self._controls.set_key(key, False)

        self._key_releases[key] = self._scheduler.call_later(
            self._tuning.use_item_press_ms, release, name=f"use_item.{key}"
        )

    def change_name(self, name: str) -> None:
        client = self._require(self._client)
        cache = self._require(self._cache)
        player_id = self._local_player_id()
        if not player_id:
            raise PreconditionError("cannot change name: local player id unavailable")

        log.info("Changing name to %r for %s", name, player_id)
        cache.set_player_name(player_id, name)
        client.send_network_event("entityModified", {"id": player_id, "name": name})

    def execute_action(self, action: Action) -> ActionResult:
        result = self._executor.execute(action)
        self._publish(
            EventType.ACTION_EXECUTED,
            f"Action {action.type}",
            {"type": action.type, "success": result.success, "error": result.error},
        )
        return result

    # ------------------------------------------------------------------
    # State surface
    # ------------------------------------------------------------------

    def get_agent_position(self) -> Optional[List[float]]:
        pose = self._read_pose()
        if pose is None:
            return None
        return list(pose.position.to_tuple())

    def get_entities(self) -> Dict[str, EntitySnapshot]:
        if self._cache is None:
            return {}
        return {snapshot.id: snapshot for snapshot in self._cache.entities()}

    def get_state(self) -> Dict[str, Any]:
        agent = dict(self._agent_poller.state) if self._agent_poller is not None else {}
        return {
            "status": "connected" if self.is_connected() else "disconnected",
            "agent": agent,
            "entities": {eid: snap.to_dict() for eid, snap in self.get_entities().items()},
        }

    def describe_world(self) -> str:
        """Plain-text world summary: the agent first, then entities grouped by type."""
        if not self.is_connected() or self._cache is None:
            return "# World State\nConnection Status: Disconnected"

        agent_id = self._local_player_id()
        agent_text = "## Agent Info (You)\nUnable to find your own entity."
        groups: Dict[str, List[str]] = {}

        for snapshot in self._cache.entities():
            name = self._cache.get_name(snapshot.id) or "Unnamed"
            position = _format_position(snapshot.position)
            if snapshot.id == agent_id:
                agent_text = (
                    f"## Agent Info (You)\nEntity ID: {snapshot.id}, Name: {name}, "
                    f"Position: {position}"
                )
                continue
            groups.setdefault(snapshot.type, []).append(
                f"- Name: {name}, Entity ID: {snapshot.id}, Position: {position}"
            )

        parts = ["# World State", agent_text]
        for entity_type in sorted(groups):
            lines = groups[entity_type]
            parts.append(f"## {entity_type.capitalize()} Entities ({len(lines)})\n" + "\n".join(lines))
        return "\n\n".join(parts)

    def log_current_entities(self) -> None:
        if not self.is_connected() or self._cache is None:
            return
        agent_id = self._local_player_id()
        log.info("--- Entity log (%d entities) ---", len(self._cache))
        for snapshot in self._cache.entities():
            line = f"  ID: {snapshot.id[:8]}..., Type: {snapshot.type}"
            if snapshot.name:
                line += f", Name: {snapshot.name}"
                if snapshot.id == agent_id:
                    line += " (Self)"
            line += f", Pos: {_format_position(snapshot.position)}"
            if snapshot.rotation is not None:
                x, y, z, w = snapshot.rotation
                line += f", Rot: (x:{x:.2f}, y:{y:.2f}, z:{z:.2f}, w:{w:.2f})"
            log.info(line)
        log.info("--- End entity log ---")

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _read_pose(self) -> Optional[Pose]:
        client = self._client
        if client is None:
            return None
        return client.get_embodiment_pose()

    def _local_player_id(self) -> Optional[str]:
        client = self._client
        if client is None or not client.supports(Capability.LOCAL_PLAYER):
            return None
        player = client.local_player()
        if not player:
            return None
        data = player.get("data")
        player_id = player.get("id") or (data.get("id") if isinstance(data, Mapping) else None)
        return str(player_id) if player_id else None

    def _apply_avatar(self, avatar_url: str) -> None:
        client = self._require(self._client)
        client.set_appearance(avatar_url)
        client.send_network_event("playerSessionAvatar", {"avatar": avatar_url})

    def _require(self, component):
        if component is None or not self.is_connected():
            raise PreconditionError(f"world session is {self._state.value}")
        return component

    def _describe_session(self) -> str:
        if self._session is None:
            return "<no session>"
        return f"{self._session.world_id} ({self._session.ws_url})"

    def _set_state(self, state: ConnectionState, payload: Optional[Dict[str, Any]] = None) -> None:
        previous = self._state
        self._state = state
        log.debug("Connection state %s -> %s", previous.value, state.value)
        body = {"from": previous.value, "to": state.value}
        body.update(payload or {})
        self._publish(EventType.CONNECTION_STATE, f"Connection {state.value}", body)

    def _publish_count(self) -> None:
        if self._cache is None:
            return
        self._publish(EventType.ENTITY_COUNT, "Entity count changed", {"count": len(self._cache)})

    def _publish(self, event_type: EventType, message: str, payload: Dict[str, Any]) -> None:
        if self._bus is None:
            return
        log_event(
            bus=self._bus,
            module="embodiment.session",
            event_type=event_type,
            message=message,
            payload=payload,
            correlation_id=self._correlation_id,
        )


def _format_position(position: Optional[tuple]) -> str:
    if position is None:
        return "N/A"
    return "[" + ", ".join(f"{p:.2f}" for p in position) + "]"


__all__ = ["ConnectionState", "WorldSession", "ClientFactory", "wall_clock_ms"]
