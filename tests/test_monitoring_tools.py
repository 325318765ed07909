#tests/test_monitoring_tools.py
"""
Tests for monitoring.tools (session inspector, event viewer, CLI).

Sessions are produced by a real WorldSession over FakeWorldClient, logged
through JsonFileLogger, then read back from disk.
"""

from __future__ import annotations

import json
from pathlib import Path

from embodiment.session import WorldSession
from embodiment.testing import FakeWorldClient, make_scheduler
from env.schema import ConnectionConfig
from interfaces.types import Action
from interfaces.world import Capability
from monitoring.bus import EventBus
from monitoring.events import EventType
from monitoring.logger import JsonFileLogger
from monitoring.tools import (
    filter_events,
    load_events,
    load_last_n_session_summaries,
    main,
)


def record_sessions(log_path: Path) -> None:
    bus = EventBus()
    logger = JsonFileLogger(log_path, bus)
    scheduler, clock = make_scheduler()
    session = WorldSession(
        lambda: FakeWorldClient(capabilities=[Capability.NATIVE_JUMP]),
        scheduler=scheduler,
        bus=bus,
        wall_clock=lambda: 0.0,
    )

    session.connect(ConnectionConfig(ws_url="ws://localhost/ws", world_id="first"))
    session.navigate_to(5.0, 5.0)
    session.jump()
    session.execute_action(Action(type="fly"))
    session.disconnect()

    session.connect(ConnectionConfig(ws_url="ws://localhost/ws", world_id="second"))
    session.execute_action(Action(type="jump"))
    session.disconnect()

    logger.close()


def test_session_summaries_newest_first(tmp_path):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)

    summaries = load_last_n_session_summaries(log_path, last_n=5)

    assert [s.world_id for s in summaries] == ["second", "first"]
    first = summaries[1]
    assert first.states == ["connecting", "connected", "disconnecting", "disconnected"]
    assert first.jumps == 1
    assert first.navigation_stops == {"disconnect": 1}
    assert first.actions_failed == 1 and first.actions_ok == 0
    assert first.disconnect_reason == "client disconnect"
    assert first.last_entity_count == 0

    second = summaries[0]
    assert second.jumps == 1
    assert second.actions_ok == 1
    assert second.navigation_stops == {}


def test_last_n_limits_sessions(tmp_path):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)

    (only,) = load_last_n_session_summaries(log_path, last_n=1)
    assert only.world_id == "second"


def test_load_events_skips_bad_lines(tmp_path):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)
    good = len(load_events(log_path))
    with log_path.open("a", encoding="utf-8") as f:
        f.write("not json\n")
        f.write(json.dumps({"event_type": "NOT_A_TYPE"}) + "\n")
        f.write("\n")

    assert len(load_events(log_path)) == good
    assert load_events(tmp_path / "missing.log") == []


def test_filter_events_by_type_and_session(tmp_path):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)
    events = load_events(log_path)

    jumps = filter_events(events, event_type=EventType.JUMP)
    assert len(jumps) == 2

    session_id = events[0].correlation_id
    assert session_id
    own = filter_events(events, session_id=session_id)
    assert own and all(e.correlation_id == session_id for e in own)


def test_cli_inspect_sessions(tmp_path, capsys):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)

    main(["inspect-sessions", "--log-path", str(log_path), "-n", "1"])

    data = json.loads(capsys.readouterr().out)
    assert len(data) == 1
    assert data[0]["world_id"] == "second"


def test_cli_events_tail(tmp_path, capsys):
    log_path = tmp_path / "events.log"
    record_sessions(log_path)

    main(["events", "--log-path", str(log_path), "--type", "connection_state", "--tail", "1"])

    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 1
    assert json.loads(lines[0])["payload"]["to"] == "disconnected"
