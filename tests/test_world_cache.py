# tests/test_world_cache.py
"""
Tests for embodiment.world_cache.WorldStateCache.

Covers:
- snapshot extraction (base transform wins over data)
- player name registry: add, rename, out-of-band set, remove
- modify with and without full entity data
- layered lookups through the live entity callback
"""

from __future__ import annotations

from embodiment.world_cache import WorldStateCache


def player(entity_id: str, name: str, position=(1.0, 2.0, 3.0)):
    return {
        "id": entity_id,
        "data": {"type": "player", "name": name, "position": list(position)},
    }


def test_added_player_is_snapshotted_and_named():
    cache = WorldStateCache()
    cache.on_entity_added(player("p1", "Alice"))

    snapshot = cache.get_entity("p1")
    assert snapshot.type == "player"
    assert snapshot.name == "Alice"
    assert snapshot.position == (1.0, 2.0, 3.0)
    assert cache.player_names() == {"p1": "Alice"}
    assert "p1" in cache and len(cache) == 1


def test_base_transform_wins_over_data():
    cache = WorldStateCache()
    cache.on_entity_added(
        {
            "id": "a1",
            "data": {"type": "app", "position": [0, 0, 0], "quaternion": [0, 0, 0, 1]},
            "base": {
                "position": {"x": 5, "y": 6, "z": 7},
                "quaternion": {"x": 0, "y": 1, "z": 0, "w": 0},
            },
        }
    )

    snapshot = cache.get_entity("a1")
    assert snapshot.position == (5.0, 6.0, 7.0)
    assert snapshot.rotation == (0.0, 1.0, 0.0, 0.0)
    assert snapshot.name is None


def test_entity_without_id_is_ignored():
    cache = WorldStateCache()
    cache.on_entity_added({"data": {"type": "app"}})
    cache.on_entity_added(None)
    assert len(cache) == 0


def test_rename_through_modify_updates_registry():
    cache = WorldStateCache()
    cache.on_entity_added(player("p1", "Alice"))

    cache.on_entity_modified("p1", {"name": "Alicia"}, player("p1", "Alicia"))

    assert cache.get_name("p1") == "Alicia"
    assert cache.get_entity("p1").name == "Alicia"


def test_modify_without_full_data_merges_patch():
    cache = WorldStateCache()
    cache.on_entity_added(
        {
            "id": "a1",
            "data": {"type": "app", "name": "Door", "position": [1, 1, 1], "quaternion": [0, 0, 0, 1]},
        }
    )

    cache.on_entity_modified("a1", {"position": [4, 5, 6]})

    snapshot = cache.get_entity("a1")
    assert snapshot.position == (4.0, 5.0, 6.0)
    assert snapshot.rotation == (0.0, 0.0, 0.0, 1.0)
    assert snapshot.name == "Door"


def test_modify_of_untracked_entity_without_data_is_ignored():
    cache = WorldStateCache()
    cache.on_entity_modified("ghost", {"name": "Boo"})
    assert cache.get_entity("ghost") is None


def test_remove_drops_entity_and_name_and_is_idempotent():
    cache = WorldStateCache()
    cache.on_entity_added(player("p1", "Alice"))

    cache.on_entity_removed("p1")
    cache.on_entity_removed("p1")

    assert cache.get_entity("p1") is None
    assert cache.player_names() == {}


def test_registry_name_wins_over_entity_data():
    cache = WorldStateCache()
    cache.on_entity_added(player("p1", "Alice"))
    cache.set_player_name("p1", "Agent Smith")

    # A later add with stale data keeps the registry name.
    cache.on_entity_added(player("p1", "Alice", position=(9, 9, 9)))

    assert cache.get_name("p1") == "Agent Smith"
    assert cache.get_entity("p1").name == "Agent Smith"
    assert cache.get_entity("p1").position == (9.0, 9.0, 9.0)


def test_lookups_fall_back_to_live_entities():
    live = {"x1": {"id": "x1", "data": {"type": "app", "name": "Lamp", "position": [3, 2, 1]}}}
    cache = WorldStateCache(live.get)

    assert cache.get_name("x1") == "Lamp"
    assert cache.get_position("x1") == (3.0, 2.0, 1.0)
    assert cache.get_name("missing") is None
    assert cache.get_position("missing") is None


def test_failing_lookup_is_treated_as_missing():
    def lookup(entity_id):
        raise RuntimeError("world gone")

    cache = WorldStateCache(lookup)
    assert cache.get_name("x1") is None


def test_clear_empties_everything():
    cache = WorldStateCache()
    cache.on_entity_added(player("p1", "Alice"))
    cache.clear()
    assert len(cache) == 0
    assert cache.player_names() == {}
