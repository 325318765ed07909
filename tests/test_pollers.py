# tests/test_pollers.py
"""
Tests for embodiment.pollers (agent state mirror and identity poller).
"""

from __future__ import annotations

from typing import List, Optional

from embodiment.pollers import AgentStatePoller, IdentityPoller
from embodiment.testing import FakeWorldClient, make_scheduler


def test_agent_state_mirrors_pose_and_clears_when_gone():
    client = FakeWorldClient()
    client.place(1.0, 2.0)
    scheduler, clock = make_scheduler()
    poller = AgentStatePoller(client.get_embodiment_pose, scheduler, interval_ms=1000)

    poller.start()
    clock.advance(1000)
    assert poller.state["position"] == [1.0, 0.0, 2.0]
    assert poller.state["rotation"] == [0.0, 0.0, 0.0, 1.0]

    assert poller.poll() is False  # nothing changed

    client.pose = None
    clock.advance(1000)
    assert poller.state == {"position": None, "rotation": None}


def test_agent_state_stop_cancels_timer():
    client = FakeWorldClient()
    scheduler, clock = make_scheduler()
    poller = AgentStatePoller(client.get_embodiment_pose, scheduler)

    poller.start()
    poller.stop()
    clock.advance(5000)
    assert poller.state["position"] is None


def make_identity(player_id: Optional[str], *, name="Wanderer", avatar="https://x/a.vrm", fail_name=0):
    scheduler, clock = make_scheduler()
    names: List[str] = []
    avatars: List[str] = []
    failures = {"left": fail_name}
    current = {"id": player_id}

    def change_name(value: str) -> None:
        if failures["left"]:
            failures["left"] -= 1
            raise RuntimeError("send failed")
        names.append(value)

    poller = IdentityPoller(
        lambda: current["id"],
        scheduler,
        display_name=name,
        avatar_url=avatar,
        change_name=change_name,
        apply_avatar=avatars.append,
        interval_ms=30_000,
    )
    return poller, clock, names, avatars, current


def test_identity_applied_on_first_poll_and_poller_stops():
    poller, clock, names, avatars, current = make_identity("p1")

    poller.start()
    clock.advance(0)

    assert names == ["Wanderer"]
    assert avatars == ["https://x/a.vrm"]
    assert poller.done and not poller.is_running()


def test_identity_waits_for_local_player():
    poller, clock, names, avatars, current = make_identity(None)

    poller.start()
    clock.advance(0)
    assert names == [] and poller.is_running()

    current["id"] = "p1"
    clock.advance(30_000)
    assert names == ["Wanderer"]
    assert not poller.is_running()


def test_identity_failure_is_retried_next_poll():
    poller, clock, names, avatars, current = make_identity("p1", fail_name=1)

    poller.start()
    clock.advance(0)
    assert names == [] and avatars == ["https://x/a.vrm"]
    assert not poller.name_set and poller.avatar_set

    clock.advance(30_000)
    assert names == ["Wanderer"]
    assert poller.done


def test_identity_with_nothing_configured_never_starts():
    poller, clock, names, avatars, current = make_identity("p1", name=None, avatar=None)
    poller.start()
    assert not poller.is_running()
