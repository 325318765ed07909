# tests/test_navigation.py
"""
Tests for embodiment.navigation.NavigationController.

Covers:
- heading -> key mapping (straight ahead, turn in place, deadband, steering)
- edge-triggered writes and the run modifier
- stop causes: target reached, explicit stop, pose loss, replacement
- degenerate and non-finite poses hold instead of failing
"""

from __future__ import annotations

import math
from typing import List

import pytest

from embodiment.controls import ControlRegistry
from embodiment.errors import PreconditionError
from embodiment.navigation import (
    NavigationController,
    NavOrigin,
    StopCause,
    desired_keys,
    signed_heading,
)
from embodiment.testing import FakeWorldClient, make_scheduler
from interfaces.geometry import Pose, Quat, Vec3
from monitoring.bus import EventBus
from monitoring.events import EventType, MonitoringEvent


def make_nav(client: FakeWorldClient, bus: EventBus = None):
    scheduler, clock = make_scheduler()
    controls = ControlRegistry(sink=client.set_input_key)
    nav = NavigationController(client.get_embodiment_pose, controls, scheduler, bus=bus)
    return nav, controls, clock


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------

def test_signed_heading_sign_follows_cross_product():
    forward = Vec3(0.0, 0.0, -1.0)
    assert signed_heading(forward, Vec3(1.0, 0.0, 0.0)) == pytest.approx(-math.pi / 2)
    assert signed_heading(forward, Vec3(-1.0, 0.0, 0.0)) == pytest.approx(math.pi / 2)
    assert signed_heading(forward, forward) == pytest.approx(0.0)


def test_desired_keys_thresholds():
    straight = desired_keys(math.radians(5))
    assert straight.forward and not straight.left and not straight.right

    steer_left = desired_keys(math.radians(-20))
    assert steer_left.forward and steer_left.left and not steer_left.right

    turn_right = desired_keys(math.radians(90))
    assert not turn_right.forward and turn_right.right and not turn_right.left


# ---------------------------------------------------------------------------
# Ticks
# ---------------------------------------------------------------------------

def test_facing_target_presses_only_forward():
    client = FakeWorldClient()
    client.place(0.0, 0.0, yaw=math.pi)  # facing +Z
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, 10.0)
    clock.advance(100)

    assert client.writes_of("keyW") == [True]
    assert client.writes_of("keyA") == []
    assert client.writes_of("keyD") == []
    assert client.writes_of("shiftLeft") == [False]
    assert nav.nav_keys.forward


def test_writes_are_edge_triggered_across_ticks():
    client = FakeWorldClient()
    client.place(0.0, 0.0, yaw=math.pi)
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, 10.0)
    clock.advance(500)

    assert client.writes_of("keyW") == [True]
    # The run modifier is cleared on every tick.
    assert client.writes_of("shiftLeft") == [False] * 5


def test_target_behind_turns_in_place():
    client = FakeWorldClient()
    client.place(0.0, 0.0)  # identity: facing -Z
    nav, controls, clock = make_nav(client)

    nav.navigate_to(10.0, 0.0)
    clock.advance(100)
    assert client.writes_of("keyA") == [True]
    assert client.writes_of("keyW") == []

    # Replacing the target releases movement first, then turns the other way.
    nav.navigate_to(-10.0, 0.0)
    assert client.writes_of("keyA") == [True, False]
    clock.advance(100)
    assert client.writes_of("keyD") == [False, True]
    assert controls.is_down("keyD") and not controls.is_down("keyA")


def test_small_heading_error_stays_inside_deadband():
    client = FakeWorldClient()
    client.place(0.0, 0.0)
    nav, controls, clock = make_nav(client)

    nav.navigate_to(1.0, -10.0)  # ~5.7 degrees off
    clock.advance(100)

    assert client.writes_of("keyW") == [True]
    assert client.writes_of("keyA") == []
    assert client.writes_of("keyD") == []


def test_moderate_heading_error_steers_while_walking():
    client = FakeWorldClient()
    client.place(0.0, 0.0)
    nav, controls, clock = make_nav(client)

    nav.navigate_to(3.0, -10.0)  # ~16.7 degrees off
    clock.advance(100)

    assert client.writes_of("keyW") == [True]
    assert client.writes_of("keyA") == [True]


def test_target_reached_releases_keys_and_records_cause():
    client = FakeWorldClient()
    client.place(0.0, 0.0, yaw=math.pi)
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, 10.0)
    clock.advance(100)
    client.place(0.0, 9.5, yaw=math.pi)
    clock.advance(100)

    assert not nav.is_navigating()
    assert nav.last_stop_cause is StopCause.TARGET_REACHED
    assert not controls.is_down("keyW")
    assert client.writes_of("keyW") == [True, False]

    writes_before = len(client.key_writes)
    clock.advance(1000)
    assert len(client.key_writes) == writes_before


def test_stop_is_idempotent():
    client = FakeWorldClient()
    nav, controls, clock = make_nav(client)

    nav.navigate_to(5.0, 5.0)
    assert nav.stop_navigation() is True
    writes = len(client.key_writes)

    assert nav.stop_navigation() is False
    assert len(client.key_writes) == writes
    assert nav.last_stop_cause is StopCause.USER


def test_new_target_replaces_previous_one():
    client = FakeWorldClient()
    bus = EventBus()
    events: List[MonitoringEvent] = []
    bus.subscribe(events.append)
    nav, controls, clock = make_nav(client, bus)

    nav.navigate_to(5.0, 5.0)
    nav.navigate_to(-5.0, 5.0)

    assert nav.target.x == -5.0
    assert nav.origin is NavOrigin.USER
    stops = [e for e in events if e.event_type == EventType.NAVIGATION_STOPPED]
    assert [e.payload["cause"] for e in stops] == ["new_target"]


def test_navigate_rejects_non_finite_target():
    client = FakeWorldClient()
    nav, controls, clock = make_nav(client)

    with pytest.raises(ValueError):
        nav.navigate_to(float("nan"), 0.0)
    assert not nav.is_navigating()


def test_navigate_requires_a_pose():
    client = FakeWorldClient()
    client.pose = None
    nav, controls, clock = make_nav(client)

    with pytest.raises(PreconditionError):
        nav.navigate_to(1.0, 1.0)
    assert client.key_writes == []


def test_pose_loss_mid_navigation_stops_with_error():
    client = FakeWorldClient()
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, -10.0)
    clock.advance(100)
    client.pose = None
    clock.advance(100)

    assert not nav.is_navigating()
    assert nav.last_stop_cause is StopCause.ERROR
    assert not controls.is_down("keyW")


def test_pose_read_exception_stops_with_error():
    client = FakeWorldClient()
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, -10.0)
    client.fail_pose = RuntimeError("embodiment gone")
    clock.advance(100)

    assert nav.last_stop_cause is StopCause.ERROR


def test_non_finite_pose_holds_current_controls():
    client = FakeWorldClient()
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, -10.0)
    clock.advance(100)
    writes = len(client.key_writes)

    client.pose = Pose(Vec3(float("nan"), 0.0, 0.0), Quat())
    clock.advance(300)

    assert nav.is_navigating()
    assert len(client.key_writes) == writes
    assert controls.is_down("keyW")


def test_degenerate_forward_vector_releases_movement():
    client = FakeWorldClient()
    half = math.pi / 4
    # Pitched straight up: forward has no horizontal component.
    client.pose = Pose(Vec3(), Quat(math.sin(half), 0.0, 0.0, math.cos(half)))
    nav, controls, clock = make_nav(client)

    nav.navigate_to(0.0, -10.0)
    clock.advance(100)

    assert nav.is_navigating()
    assert client.writes_of("keyW") == [False]
    assert not controls.is_down("keyW")


def test_events_published_on_start_and_stop():
    client = FakeWorldClient()
    bus = EventBus()
    events: List[MonitoringEvent] = []
    bus.subscribe(events.append)
    nav, controls, clock = make_nav(client, bus)

    nav.navigate_to(3.0, 4.0)
    nav.stop_navigation()

    kinds = [e.event_type for e in events]
    assert kinds == [EventType.NAVIGATION_STARTED, EventType.NAVIGATION_STOPPED]
    assert events[0].payload == {"x": 3.0, "z": 4.0, "origin": "user"}
