# tests/test_controls.py
"""
Tests for embodiment.controls.ControlRegistry.

Covers:
- pressed/released edge flags and their single-frame lifetime
- every write reaches the sink, changed or not
- unknown controls and reset()
"""

from __future__ import annotations

from typing import List, Tuple

from embodiment.controls import COMMON_CONTROLS, ITEM_SLOT_KEYS, ControlRegistry


def test_press_and_release_edges_last_one_frame():
    controls = ControlRegistry()

    controls.set_key("keyW", True)
    state = controls.get("keyW")
    assert state.down and state.pressed and not state.released

    controls.end_frame()
    state = controls.get("keyW")
    assert state.down and not state.pressed

    controls.set_key("keyW", False)
    state = controls.get("keyW")
    assert not state.down and state.released and not state.pressed

    controls.end_frame()
    assert controls.get("keyW").is_up()


def test_repeated_write_does_not_move_edges_but_reaches_sink():
    writes: List[Tuple[str, bool]] = []
    controls = ControlRegistry(sink=lambda name, down: writes.append((name, down)))

    controls.set_key("space", True)
    controls.end_frame()
    controls.set_key("space", True)

    assert writes == [("space", True), ("space", True)]
    assert controls.get("space").pressed is False


def test_unknown_control_is_created_on_first_use():
    controls = ControlRegistry(COMMON_CONTROLS)
    assert controls.get("key5") is None

    controls.set_key("key5", True)
    assert controls.is_down("key5")


def test_release_writes_every_named_key():
    writes: List[Tuple[str, bool]] = []
    controls = ControlRegistry(sink=lambda name, down: writes.append((name, down)))
    controls.release(["keyW", "keyA"])
    assert writes == [("keyW", False), ("keyA", False)]


def test_reset_clears_state_without_sink_writes():
    writes: List[Tuple[str, bool]] = []
    controls = ControlRegistry(COMMON_CONTROLS + ITEM_SLOT_KEYS)
    controls.set_key("keyW", True)
    controls.set_sink(lambda name, down: writes.append((name, down)))

    controls.reset()

    assert writes == []
    assert not controls.is_down("keyW")
    assert all(state.is_up() for state in controls.snapshot().values())
