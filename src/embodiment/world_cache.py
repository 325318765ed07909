# src/embodiment/world_cache.py
"""
Local mirror of remote entities plus the player display-name registry.

Entity payloads are plain mappings normalized by the WorldClient:

    {
        "id": "abc123",
        "data": {"type": "player", "name": "Alice", "position": [...], "quaternion": [...]},
        "base": {"position": {...}, "quaternion": {...}},   # optional, live transform
    }

The live transform under "base" wins over "data" when both are present.
Positions and rotations may be lists or {"x", "y", "z"(, "w")} mappings.

Rules:
- Duplicate adds overwrite; duplicate removes are no-ops.
- Removing an entity also removes its name registry entry.
- Names can change out of band (set_player_name); the registry wins over
  the name carried in entity data.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from interfaces.geometry import quat_from_any, vec3_from_any
from interfaces.types import EntitySnapshot

log = logging.getLogger(__name__)

PLAYER_TYPE = "player"

# Live entity lookup (id -> payload or None); bound to the client's
# get_entity when it supports ENTITY_LOOKUP.
EntityLookup = Callable[[str], Optional[Mapping[str, Any]]]


class WorldStateCache:
    """Entity snapshots keyed by id, plus an id -> display name map."""

    def __init__(self, lookup: Optional[EntityLookup] = None) -> None:
        self._lookup = lookup
        self._entities: Dict[str, EntitySnapshot] = {}
        self._player_names: Dict[str, str] = {}

    def set_lookup(self, lookup: Optional[EntityLookup]) -> None:
        self._lookup = lookup

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def on_entity_added(self, entity: Optional[Mapping[str, Any]]) -> None:
        entity_id = _entity_id(entity)
        if entity_id is None:
            return

        data = _data(entity)
        name = data.get("name")
        if data.get("type") == PLAYER_TYPE and name and entity_id not in self._player_names:
            log.info("Name registry: %s -> %r", entity_id, name)
            self._player_names[entity_id] = str(name)

        self._entities[entity_id] = self.extract_snapshot(entity)
        log.debug("Entity added/updated: %s", entity_id)

    def on_entity_modified(
        self,
        entity_id: Optional[str],
        patch: Optional[Mapping[str, Any]],
        full: Optional[Mapping[str, Any]] = None,
    ) -> None:
        if not entity_id:
            return
        patch = patch or {}
        if full is None:
            full = self._live(entity_id)

        name = patch.get("name")
        if name and full is not None and _data(full).get("type") == PLAYER_TYPE:
            if self._player_names.get(entity_id) != name:
                log.info("Name registry: %s renamed to %r", entity_id, name)
                self._player_names[entity_id] = str(name)

        if full is not None:
            self._entities[entity_id] = self.extract_snapshot(full)
            log.debug("Entity modified: %s", entity_id)
            return

        existing = self._entities.get(entity_id)
        if existing is None:
            log.warning("Modified untracked entity %s; ignoring", entity_id)
            return

        log.warning("Entity %s modified without full data; merging patch", entity_id)
        merged = existing.to_dict()
        merged.pop("id", None)
        merged["quaternion"] = merged.pop("rotation")
        merged.update(patch)
        self._entities[entity_id] = self.extract_snapshot({"id": entity_id, "data": merged})

    def on_entity_removed(self, entity_id: Optional[str]) -> None:
        if not entity_id:
            return
        if self._player_names.pop(entity_id, None) is not None:
            log.info("Name registry: removed %s", entity_id)
        if self._entities.pop(entity_id, None) is not None:
            log.debug("Entity removed: %s", entity_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_entity(self, entity_id: str) -> Optional[EntitySnapshot]:
        return self._entities.get(entity_id)

    def get_position(self, entity_id: str) -> Optional[Tuple[float, float, float]]:
        """Cached position, then the live entity, else None."""
        snapshot = self._entities.get(entity_id)
        if snapshot is not None and snapshot.position is not None:
            return snapshot.position

        live = self._live(entity_id)
        if live is None:
            return None
        position = _position_of(live)
        return position.to_tuple() if position is not None else None

    def get_name(self, entity_id: str) -> Optional[str]:
        """Name registry, then the cached snapshot, then the live entity."""
        name = self._player_names.get(entity_id)
        if name:
            return name

        snapshot = self._entities.get(entity_id)
        if snapshot is not None and snapshot.name:
            return snapshot.name

        live = self._live(entity_id)
        if live is None:
            return None
        return _data(live).get("name") or None

    def set_player_name(self, entity_id: str, name: str) -> None:
        self._player_names[entity_id] = name
        snapshot = self._entities.get(entity_id)
        if snapshot is not None:
            snapshot.name = name

    def player_names(self) -> Dict[str, str]:
        return dict(self._player_names)

    def entities(self) -> List[EntitySnapshot]:
        return list(self._entities.values())

    def __len__(self) -> int:
        return len(self._entities)

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entities

    def clear(self) -> None:
        self._entities.clear()
        self._player_names.clear()

    # ------------------------------------------------------------------
    # Snapshot extraction
    # ------------------------------------------------------------------

    def extract_snapshot(self, entity: Mapping[str, Any]) -> EntitySnapshot:
        entity_id = str(entity["id"])
        data = _data(entity)
        entity_type = data.get("type") or "unknown"

        if entity_type == PLAYER_TYPE and entity_id in self._player_names:
            name = self._player_names[entity_id] or data.get("name")
        else:
            name = data.get("name")

        position = _position_of(entity)
        rotation = _rotation_of(entity)
        return EntitySnapshot(
            id=entity_id,
            type=str(entity_type),
            name=str(name) if name else None,
            position=position.to_tuple() if position is not None else None,
            rotation=rotation.to_tuple() if rotation is not None else None,
        )

    def _live(self, entity_id: str) -> Optional[Mapping[str, Any]]:
        if self._lookup is None:
            return None
        try:
            return self._lookup(entity_id)
        except Exception:
            log.exception("Live lookup of entity %s failed", entity_id)
            return None


# ----------------------------------------------------------------------
# Payload helpers
# ----------------------------------------------------------------------

def _entity_id(entity: Optional[Mapping[str, Any]]) -> Optional[str]:
    if not entity:
        return None
    entity_id = entity.get("id")
    return str(entity_id) if entity_id else None


def _data(entity: Mapping[str, Any]) -> Mapping[str, Any]:
    data = entity.get("data")
    return data if isinstance(data, Mapping) else {}


def _base(entity: Mapping[str, Any]) -> Mapping[str, Any]:
    base = entity.get("base")
    return base if isinstance(base, Mapping) else {}


def _position_of(entity: Mapping[str, Any]):
    return vec3_from_any(_base(entity).get("position")) or vec3_from_any(
        _data(entity).get("position")
    )


def _rotation_of(entity: Mapping[str, Any]):
    return quat_from_any(_base(entity).get("quaternion")) or quat_from_any(
        _data(entity).get("quaternion")
    )


__all__ = ["WorldStateCache", "EntityLookup", "PLAYER_TYPE"]
