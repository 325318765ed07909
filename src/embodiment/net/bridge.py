# JSON-lines bridge to the world process
# src/embodiment/net/bridge.py
"""
Bridge client for the world collaborator.

The remote world's real protocol (websocket, binary snapshots, physics) is
owned by a bridge process. This client talks to it over TCP with one UTF-8
JSON object per line:

    {"type": "<message type>", "payload": { ... }}

Outbound (client -> bridge):
    connect   {"ws_url", "auth_token"}
    input     {"key", "down"}
    network   {"type", "payload"}
    tick      {"ts"}
    jump      {}
    impulse   {"x", "y", "z"}
    height    {"height"}
    appearance {"avatar_url"}

Inbound (bridge -> client):
    hello            {"capabilities": [...], "player": {...}?, "entities": [...]?, "chat": [...]?}
    pose             {"position": {...}|[...], "quaternion": {...}|[...]} or {} when gone
    player           local player entity payload
    entityAdded      {"entity"}
    entityModified   {"id", "patch", "entity"?}
    entityRemoved    {"id"}
    chatMessageBatch {"messages"}
    disconnect       {"reason"}

pose and player are cached here so reads never block on the socket.
"""

from __future__ import annotations

import json
import logging
import socket
import time
from dataclasses import dataclass
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from interfaces.geometry import Pose, quat_from_any, vec3_from_any
from interfaces.world import (
    CHAT_MESSAGE_BATCH,
    DISCONNECT,
    ENTITY_ADDED,
    ENTITY_MODIFIED,
    ENTITY_REMOVED,
    Capability,
    EventHandler,
)

from ..errors import PreconditionError, TransientIOError

log = logging.getLogger(__name__)

# Capabilities the bridge may advertise in its hello message.
_ADVERTISED = {
    "native_jump": Capability.NATIVE_JUMP,
    "impulse": Capability.IMPULSE,
    "set_height": Capability.SET_HEIGHT,
    "appearance": Capability.APPEARANCE,
}


@dataclass
class BridgeConfig:
    """Where the bridge process listens."""

    host: str = "127.0.0.1"
    port: int = 7780
    connect_timeout_s: float = 10.0
    # Outbound bytes held while the bridge is not reading.
    max_send_buffer_bytes: int = 1_048_576


class BridgeClient:
    """
    WorldClient implementation over a JSON-lines TCP bridge.

    connect() blocks until the bridge answers with hello (or the timeout
    expires); afterwards the socket is non-blocking and pump() drains it.

    Outbound frames are queued whole and flushed as far as the socket
    accepts. Whatever is left goes out on the next send or pump(), so a
    frame is never split between a partial write and an error.
    """

    def __init__(self, config: BridgeConfig) -> None:
        self._config = config
        self._sock: Optional[socket.socket] = None
        self._handlers: Dict[str, EventHandler] = {}
        self._lock = Lock()
        self._connected = False
        self._recv_buffer = b""
        self._send_buffer = bytearray()

        self._capabilities: Set[Capability] = set()
        self._pose: Optional[Pose] = None
        self._player: Optional[Dict[str, Any]] = None
        self._initial_entities: List[Mapping[str, Any]] = []
        self._initial_chat: List[Mapping[str, Any]] = []

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def is_connected(self) -> bool:
        return self._connected

    def connect(self, ws_url: str, auth_token: Optional[str] = None) -> None:
        if self._connected:
            return

        log.info(
            "BridgeClient connecting to %s:%d for %s",
            self._config.host,
            self._config.port,
            ws_url,
        )
        sock = socket.create_connection(
            (self._config.host, self._config.port), timeout=self._config.connect_timeout_s
        )
        self._sock = sock
        self._connected = True
        try:
            self._send("connect", {"ws_url": ws_url, "auth_token": auth_token})
            self._await_hello()
        except Exception:
            self.disconnect()
            raise
        sock.setblocking(False)

    def _await_hello(self) -> None:
        assert self._sock is not None
        deadline = time.monotonic() + self._config.connect_timeout_s
        while time.monotonic() < deadline:
            chunk = self._sock.recv(4096)
            if not chunk:
                raise ConnectionError("bridge closed the connection during handshake")
            self._recv_buffer += chunk
            while b"\n" in self._recv_buffer:
                line, self._recv_buffer = self._recv_buffer.split(b"\n", 1)
                line = line.strip()
                if not line:
                    continue
                if self._handle_raw_line(line) == "hello":
                    return
        raise TimeoutError("bridge did not send hello in time")

    def disconnect(self) -> None:
        with self._lock:
            if not self._connected:
                return
            log.info("BridgeClient disconnecting")
            try:
                if self._sock is not None:
                    self._sock.close()
            finally:
                self._sock = None
                self._connected = False
                self._recv_buffer = b""
                self._send_buffer.clear()
                self._pose = None
                self._player = None

    def pump(self) -> None:
        """Flush queued output, drain the socket and dispatch every complete message."""
        if not self._connected or self._sock is None:
            return

        lost_reason: Optional[str] = None
        with self._lock:
            try:
                self._flush_locked()
            except OSError:
                log.exception("BridgeClient send failed, disconnecting")
                lost_reason = "socket error"

        while lost_reason is None and self._sock is not None:
            try:
                chunk = self._sock.recv(65536)
            except BlockingIOError:
                break
            except OSError:
                log.exception("BridgeClient socket error, disconnecting")
                lost_reason = "socket error"
                break

            if not chunk:
                log.info("BridgeClient received EOF; disconnecting")
                lost_reason = "bridge closed"
                break
            self._recv_buffer += chunk

        # Lines received before EOF are still delivered.
        while b"\n" in self._recv_buffer:
            line, self._recv_buffer = self._recv_buffer.split(b"\n", 1)
            line = line.strip()
            if line:
                self._handle_raw_line(line)

        if lost_reason is not None and self._connected:
            self._lost(lost_reason)

    def _lost(self, reason: str) -> None:
        self.disconnect()
        self._dispatch(DISCONNECT, reason)

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on_event(self, event: str, handler: EventHandler) -> None:
        self._handlers[event] = handler

    def off_event(self, event: str) -> None:
        self._handlers.pop(event, None)

    def supports(self, capability: Capability) -> bool:
        if capability is Capability.LOCAL_PLAYER:
            return self._player is not None
        return capability in self._capabilities

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def set_input_key(self, name: str, is_down: bool) -> None:
        self._send("input", {"key": name, "down": bool(is_down)})

    def get_embodiment_pose(self) -> Optional[Pose]:
        return self._pose

    def send_network_event(self, event_type: str, payload: Mapping[str, Any]) -> None:
        self._send("network", {"type": event_type, "payload": dict(payload)})

    def advance_simulation(self, timestamp_ms: float) -> None:
        self._send("tick", {"ts": timestamp_ms})

    def jump(self) -> None:
        self._send("jump", {})

    def apply_impulse(self, x: float, y: float, z: float) -> None:
        self._send("impulse", {"x": x, "y": y, "z": z})

    def set_height(self, height: float) -> None:
        self._send("height", {"height": height})

    def set_appearance(self, avatar_url: str) -> None:
        self._send("appearance", {"avatar_url": avatar_url})

    def get_entity(self, entity_id: str) -> Optional[Mapping[str, Any]]:
        # The bridge has no synchronous lookup; ENTITY_LOOKUP is never advertised.
        return None

    def list_entities(self) -> Iterable[Mapping[str, Any]]:
        return list(self._initial_entities)

    def chat_history(self) -> Iterable[Mapping[str, Any]]:
        return list(self._initial_chat)

    def local_player(self) -> Optional[Mapping[str, Any]]:
        return self._player

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _send(self, message_type: str, payload: Mapping[str, Any]) -> None:
        if not self._connected or self._sock is None:
            raise PreconditionError("BridgeClient is not connected")

        msg = {"type": message_type, "payload": dict(payload)}
        encoded = json.dumps(msg, separators=(",", ":")).encode("utf-8") + b"\n"

        with self._lock:
            if len(self._send_buffer) + len(encoded) > self._config.max_send_buffer_bytes:
                raise TransientIOError(
                    f"bridge send of {message_type!r} refused: "
                    f"{len(self._send_buffer)} bytes still unsent"
                )
            self._send_buffer += encoded
            try:
                self._flush_locked()
            except OSError as exc:
                raise TransientIOError(f"bridge send of {message_type!r} failed: {exc}") from exc

    def _flush_locked(self) -> None:
        """Write queued bytes until the socket would block. Caller holds the lock."""
        while self._send_buffer and self._sock is not None:
            try:
                sent = self._sock.send(self._send_buffer)
            except (BlockingIOError, InterruptedError):
                return
            del self._send_buffer[:sent]

    @property
    def pending_send_bytes(self) -> int:
        """Bytes queued for the bridge but not yet accepted by the socket."""
        return len(self._send_buffer)

    def _handle_raw_line(self, line: bytes) -> Optional[str]:
        """Decode one JSON line, update caches and dispatch. Returns the type."""
        try:
            obj = json.loads(line.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            log.exception("BridgeClient failed to decode JSON line: %r", line)
            return None

        if not isinstance(obj, dict):
            log.warning("BridgeClient received non-object message: %r", obj)
            return None
        message_type = obj.get("type")
        payload = obj.get("payload", {})
        if not isinstance(message_type, str):
            log.warning("BridgeClient received message without valid type: %r", obj)
            return None
        if not isinstance(payload, dict):
            log.warning("BridgeClient received message with non-dict payload: %r", obj)
            return None

        if message_type == "hello":
            self._on_hello(payload)
        elif message_type == "pose":
            self._pose = _pose_from_payload(payload)
        elif message_type == "player":
            self._player = payload or None
        elif message_type == ENTITY_ADDED:
            self._dispatch(ENTITY_ADDED, payload.get("entity"))
        elif message_type == ENTITY_MODIFIED:
            self._dispatch(
                ENTITY_MODIFIED, payload.get("id"), payload.get("patch") or {}, payload.get("entity")
            )
        elif message_type == ENTITY_REMOVED:
            self._dispatch(ENTITY_REMOVED, payload.get("id"))
        elif message_type == CHAT_MESSAGE_BATCH:
            self._dispatch(CHAT_MESSAGE_BATCH, payload.get("messages") or [])
        elif message_type == DISCONNECT:
            reason = payload.get("reason", "remote disconnect")
            self.disconnect()
            self._dispatch(DISCONNECT, reason)
        else:
            log.debug("BridgeClient ignoring message type=%s", message_type)
        return message_type

    def _on_hello(self, payload: Mapping[str, Any]) -> None:
        self._capabilities = {
            _ADVERTISED[name] for name in payload.get("capabilities", []) if name in _ADVERTISED
        }
        entities = payload.get("entities")
        if isinstance(entities, list):
            self._initial_entities = [e for e in entities if isinstance(e, dict)]
            self._capabilities.add(Capability.ENTITY_LISTING)
        chat = payload.get("chat")
        if isinstance(chat, list):
            self._initial_chat = [m for m in chat if isinstance(m, dict)]
            self._capabilities.add(Capability.CHAT_HISTORY)
        player = payload.get("player")
        if isinstance(player, dict):
            self._player = player
        log.info(
            "BridgeClient hello: capabilities=%s",
            sorted(c.value for c in self._capabilities),
        )

    def _dispatch(self, event: str, *args: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            log.debug("BridgeClient no handler for event=%s", event)
            return
        try:
            handler(*args)
        except Exception:
            log.exception("Error in bridge handler for %s", event)


def _pose_from_payload(payload: Mapping[str, Any]) -> Optional[Pose]:
    position = vec3_from_any(payload.get("position"))
    orientation = quat_from_any(payload.get("quaternion"))
    if position is None or orientation is None:
        return None
    return Pose(position, orientation)


__all__ = ["BridgeClient", "BridgeConfig"]
