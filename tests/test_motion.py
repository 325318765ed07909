# tests/test_motion.py
"""
Tests for embodiment.motion.MotionActions.

Covers:
- jump capability fallbacks (native, impulse, none)
- in-flight and cooldown rejection without side effects
- crouch toggling, height changes and jump/crouch precedence
"""

from __future__ import annotations

import pytest

from embodiment.controls import CROUCH_KEY, ControlRegistry
from embodiment.errors import PreconditionError
from embodiment.motion import CROUCH_HEIGHT, JUMP_FORCE, STAND_HEIGHT, MotionActions
from embodiment.testing import FakeWorldClient, make_scheduler
from interfaces.world import Capability


def make_motion(client):
    scheduler, clock = make_scheduler()
    controls = ControlRegistry(sink=client.set_input_key if client else None)
    motion = MotionActions(lambda: client, controls, scheduler)
    return motion, controls, clock


def test_native_jump_is_preferred():
    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP, Capability.IMPULSE])
    motion, controls, clock = make_motion(client)

    assert motion.jump() is True
    assert client.jump_calls == 1
    assert client.impulses == []
    assert motion.is_jumping()


def test_impulse_fallback():
    client = FakeWorldClient(capabilities=[Capability.IMPULSE])
    motion, controls, clock = make_motion(client)

    assert motion.jump() is True
    assert client.impulses == [(0.0, JUMP_FORCE, 0.0)]


def test_jump_without_capability_still_counts():
    client = FakeWorldClient()
    motion, controls, clock = make_motion(client)

    assert motion.jump() is True
    assert client.jump_calls == 0 and client.impulses == []


def test_second_jump_inside_cooldown_is_a_no_op():
    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP])
    motion, controls, clock = make_motion(client)

    assert motion.jump() is True
    assert motion.jump() is False  # in flight

    clock.advance(800)
    assert not motion.is_jumping()
    clock.advance(100)
    assert motion.jump() is False  # still cooling down
    assert client.jump_calls == 1

    clock.advance(100)
    assert motion.jump() is True
    assert client.jump_calls == 2


def test_toggle_crouch_flips_state_and_height():
    client = FakeWorldClient(capabilities=[Capability.SET_HEIGHT])
    motion, controls, clock = make_motion(client)

    assert motion.toggle_crouch() is True
    assert controls.is_down(CROUCH_KEY)
    assert client.heights == [CROUCH_HEIGHT]

    assert motion.toggle_crouch() is False
    assert not controls.is_down(CROUCH_KEY)
    assert client.heights == [CROUCH_HEIGHT, STAND_HEIGHT]


def test_crouch_without_set_height_only_writes_the_key():
    client = FakeWorldClient()
    motion, controls, clock = make_motion(client)

    assert motion.toggle_crouch() is True
    assert client.heights == []
    assert client.writes_of(CROUCH_KEY) == [True]


def test_jump_cancels_crouch():
    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP])
    motion, controls, clock = make_motion(client)

    motion.toggle_crouch()
    motion.jump()

    assert not motion.is_crouching()
    assert client.writes_of(CROUCH_KEY) == [True, False]


def test_crouch_while_jumping_is_dropped():
    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP])
    motion, controls, clock = make_motion(client)

    motion.jump()
    assert motion.toggle_crouch() is False
    assert not motion.is_crouching()
    assert client.writes_of(CROUCH_KEY) == []

    clock.advance(800)
    assert motion.toggle_crouch() is True


def test_motion_requires_a_client():
    motion, controls, clock = make_motion(None)

    with pytest.raises(PreconditionError):
        motion.jump()
    with pytest.raises(PreconditionError):
        motion.toggle_crouch()


def test_crouch_requires_a_pose():
    client = FakeWorldClient()
    client.pose = None
    motion, controls, clock = make_motion(client)

    with pytest.raises(PreconditionError):
        motion.toggle_crouch()


def test_cancel_pending_drops_flight_timer():
    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP])
    motion, controls, clock = make_motion(client)

    motion.jump()
    motion.cancel_pending()

    assert not motion.is_jumping()
    clock.advance(2000)
    assert not motion.is_jumping()
