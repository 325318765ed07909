# tests/test_simulation_clock.py
"""
Tests for embodiment.clock.SimulationClock.

Covers:
- fixed-rate frames driven by the manual clock
- one edge-clearing pass per frame
- stop on lost connection, no restart after stop
- tick failures are counted and their logs throttled
"""

from __future__ import annotations

import pytest

from embodiment.clock import SimulationClock
from embodiment.controls import ControlRegistry
from embodiment.testing import FakeWorldClient, make_scheduler


def make_clock(client: FakeWorldClient, connected=lambda: True, **kwargs):
    scheduler, manual = make_scheduler()
    controls = ControlRegistry()
    clock = SimulationClock(client.advance_simulation, controls, scheduler, connected, **kwargs)
    return clock, controls, manual, scheduler


def test_frames_run_at_fixed_rate():
    client = FakeWorldClient()
    clock, controls, manual, scheduler = make_clock(client, tick_rate_hz=50)

    clock.start()
    manual.advance(100)

    assert client.advance_calls == [0.0, 20.0, 40.0, 60.0, 80.0, 100.0]
    assert clock.frames == 6
    assert clock.is_running()


def test_each_frame_clears_edge_flags():
    client = FakeWorldClient()
    clock, controls, manual, scheduler = make_clock(client)

    clock.start()
    manual.advance(0)
    controls.set_key("space", True)
    assert controls.get("space").pressed

    manual.advance(clock.interval_ms)
    assert not controls.get("space").pressed
    assert controls.is_down("space")


def test_clock_stops_when_connection_is_lost():
    client = FakeWorldClient()
    connected = {"value": True}
    clock, controls, manual, scheduler = make_clock(client, connected=lambda: connected["value"])

    clock.start()
    manual.advance(40)
    frames = clock.frames

    connected["value"] = False
    manual.advance(100)

    assert clock.frames == frames
    assert not clock.is_running()
    assert scheduler.pending() == 0


def test_stop_is_final():
    client = FakeWorldClient()
    clock, controls, manual, scheduler = make_clock(client)

    clock.start()
    clock.stop()
    clock.stop()

    with pytest.raises(RuntimeError):
        clock.start()
    manual.advance(100)
    assert client.advance_calls == []


def test_tick_errors_are_counted_and_throttled(caplog):
    client = FakeWorldClient()
    client.fail_advance = RuntimeError("physics exploded")
    clock, controls, manual, scheduler = make_clock(
        client, tick_rate_hz=10, error_log_interval_ms=10_000
    )

    with caplog.at_level("WARNING", logger="embodiment.clock"):
        clock.start()
        manual.advance(1000)

    assert clock.errors == 11
    assert clock.is_running()
    warnings = [r for r in caplog.records if "Simulation tick failed" in r.getMessage()]
    assert len(warnings) == 1


def test_rejects_non_positive_rate():
    client = FakeWorldClient()
    scheduler, manual = make_scheduler()
    with pytest.raises(ValueError):
        SimulationClock(client.advance_simulation, None, scheduler, lambda: True, tick_rate_hz=0)
