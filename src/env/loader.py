from __future__ import annotations

import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .schema import (
    ConnectionConfig,
    IdentityConfig,
    LoggingConfig,
    TuningConfig,
    WorldProfile,
)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[2]
CONFIG_ROOT = PROJECT_ROOT / "config"
CONFIG_FILE = "world.yaml"

# Overrides connection.ws_url of the active profile when set.
WS_URL_ENV = "WS_URL"


def _load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML mapping from `path`."""
    if not path.exists():
        raise FileNotFoundError(f"Missing config file: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected mapping at top of {path}, got {type(data)}")
    return data


def _select_profile(cfg: Dict[str, Any], path: Path) -> Tuple[str, Dict[str, Any]]:
    """Return (active_profile_name, active_profile_mapping)."""
    profile_name = cfg.get("profile")
    if not profile_name:
        raise ValueError(f"{path} must define a 'profile' key.")
    profiles = cfg.get("profiles")
    if not isinstance(profiles, dict):
        raise ValueError(f"{path} must define a 'profiles' mapping.")
    if profile_name not in profiles:
        raise KeyError(f"Profile '{profile_name}' not found in {path} profiles.")
    profile = profiles[profile_name] or {}
    if not isinstance(profile, dict):
        raise ValueError(f"Profile '{profile_name}' in {path} must be a mapping.")
    return profile_name, profile


def _section(profile: Dict[str, Any], key: str, path: Path) -> Dict[str, Any]:
    raw = profile.get(key) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{key}' in {path} must be a mapping, got {type(raw)}")
    return raw


def _build_tuning(raw: Dict[str, Any], path: Path) -> TuningConfig:
    known = {f.name for f in fields(TuningConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown tuning keys in {path}: {unknown}")
    try:
        values = {name: float(value) for name, value in raw.items()}
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Tuning values in {path} must be numbers: {exc}") from exc
    return TuningConfig(**values)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_environment(config_root: Optional[Path] = None) -> WorldProfile:
    """Main entry point: returns the fully resolved WorldProfile."""
    root = Path(config_root) if config_root is not None else CONFIG_ROOT
    path = root / CONFIG_FILE
    cfg = _load_yaml(path)

    # Determine which profile is active and get its mapping
    profile_name, profile = _select_profile(cfg, path)

    conn_raw = _section(profile, "connection", path)
    ws_url = os.getenv(WS_URL_ENV) or conn_raw.get("ws_url")
    if not ws_url:
        raise ValueError(f"Profile '{profile_name}' in {path} has no connection.ws_url")
    if "world_id" not in conn_raw:
        raise KeyError(f"Profile '{profile_name}' in {path} has no connection.world_id")

    connection = ConnectionConfig(
        ws_url=str(ws_url),
        world_id=str(conn_raw["world_id"]),
        auth_token=conn_raw.get("auth_token"),
        transport=conn_raw.get("transport", "bridge"),
        bridge_host=conn_raw.get("bridge_host", "127.0.0.1"),
        bridge_port=int(conn_raw.get("bridge_port", 7780)),
        connect_timeout_s=float(conn_raw.get("connect_timeout_s", 10.0)),
    )

    ident_raw = _section(profile, "identity", path)
    identity = IdentityConfig(
        display_name=ident_raw.get("display_name"),
        avatar_url=ident_raw.get("avatar_url"),
    )

    tuning = _build_tuning(_section(profile, "tuning", path), path)

    log_raw = _section(profile, "logging", path)
    logging_cfg = LoggingConfig(
        level=str(log_raw.get("level", "INFO")).upper(),
        events_log=log_raw.get("events_log"),
    )

    world_profile = WorldProfile(
        name=profile_name,
        connection=connection,
        identity=identity,
        tuning=tuning,
        logging=logging_cfg,
    )

    # perform basic validation before returning
    _validate_profile(world_profile, path)
    return world_profile


def _validate_profile(profile: WorldProfile, path: Path) -> None:
    """Minimal sanity checks for the profile."""
    conn = profile.connection
    if not conn.ws_url.startswith(("ws://", "wss://")):
        raise ValueError(f"connection.ws_url in {path} must be a ws:// or wss:// URL: {conn.ws_url}")
    if conn.transport != "bridge":
        raise ValueError(f"Unsupported transport in {path}: {conn.transport}")
    if not 0 < conn.bridge_port < 65536:
        raise ValueError(f"connection.bridge_port in {path} out of range: {conn.bridge_port}")

    t = profile.tuning
    positive = (
        "nav_tick_interval_ms",
        "random_walk_interval_ms",
        "jump_flight_ms",
        "tick_rate_hz",
        "agent_state_interval_ms",
        "identity_poll_interval_ms",
        "use_item_press_ms",
    )
    for name in positive:
        if getattr(t, name) <= 0:
            raise ValueError(f"tuning.{name} in {path} must be > 0")
    for name in (
        "nav_stop_distance",
        "random_walk_max_distance",
        "jump_cooldown_ms",
        "entity_log_interval_ms",
    ):
        if getattr(t, name) < 0:
            raise ValueError(f"tuning.{name} in {path} must be >= 0")


def events_log_path(profile: WorldProfile) -> Optional[Path]:
    """Absolute path of the JSONL monitoring log, or None when disabled."""
    if not profile.logging.events_log:
        return None
    path = Path(profile.logging.events_log)
    return path if path.is_absolute() else PROJECT_ROOT / path
