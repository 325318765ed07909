# WorldProfile, ConnectionConfig, TuningConfig dataclasses
# src/env/schema.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class ConnectionConfig:
    """Where the world lives and how to reach it."""
    ws_url: str                    # world websocket URL (WS_URL env overrides)
    world_id: str
    auth_token: Optional[str] = None
    transport: str = "bridge"      # only "bridge" for now
    bridge_host: str = "127.0.0.1"
    bridge_port: int = 7780
    connect_timeout_s: float = 10.0


@dataclass
class IdentityConfig:
    """Who the agent appears as once spawned."""
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


@dataclass
class TuningConfig:
    """Timing and distance knobs of the embodiment layer."""
    nav_tick_interval_ms: float = 100.0
    nav_stop_distance: float = 1.0
    random_walk_interval_ms: float = 5000.0
    random_walk_max_distance: float = 7.0
    jump_cooldown_ms: float = 1000.0
    jump_flight_ms: float = 800.0
    tick_rate_hz: float = 50.0
    agent_state_interval_ms: float = 1000.0
    identity_poll_interval_ms: float = 30_000.0
    tick_error_log_interval_ms: float = 10_000.0
    use_item_press_ms: float = 100.0
    entity_log_interval_ms: float = 30_000.0   # 0 disables the periodic entity log


@dataclass
class LoggingConfig:
    level: str = "INFO"
    events_log: Optional[str] = None   # JSONL monitoring log path, relative to project root


@dataclass
class WorldProfile:
    """Resolved environment for one active profile."""
    name: str
    connection: ConnectionConfig
    identity: IdentityConfig = field(default_factory=IdentityConfig)
    tuning: TuningConfig = field(default_factory=TuningConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
