#!/usr/bin/env python3
"""
tools/smoke_session.py

Minimal harness to sanity-check WorldSession wiring.

Default mode:
    - Uses FakeWorldClient (no bridge, no world)
    - Drives the scheduler with a ManualClock
    - Calls:
        - connect()
        - execute_action(navigate_to) and lets navigation run
        - execute_action(jump)
        - describe_world()
    - Prints key writes, world description and action results

Real mode:
    - Loads config/world.yaml and connects through the bridge
    - Pumps for a few seconds and prints the world description
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import asdict
from pathlib import Path

# ---------------------------------------------------------------------------
# Ensure src/ is on sys.path when running as a script
# ---------------------------------------------------------------------------

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"

if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

# ---------------------------------------------------------------------------
# Imports from the project
# ---------------------------------------------------------------------------

from embodiment.errors import SessionError  # type: ignore[import]
from embodiment.session import WorldSession  # type: ignore[import]
from embodiment.testing import FakeWorldClient, make_scheduler  # type: ignore[import]
from env.loader import load_environment  # type: ignore[import]
from env.schema import ConnectionConfig  # type: ignore[import]
from interfaces.types import Action  # type: ignore[import]
from interfaces.world import ENTITY_ADDED, Capability  # type: ignore[import]
from embodiment.net import client_factory_for  # type: ignore[import]


def _print_header(title: str) -> None:
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)


def run_fake_mode() -> None:
    """
    Run a pure in-memory smoke test with FakeWorldClient.
    """
    _print_header("Fake mode: connecting WorldSession to FakeWorldClient")

    client = FakeWorldClient(capabilities=[Capability.NATIVE_JUMP])
    client.player = {"id": "agent-1"}
    scheduler, clock = make_scheduler()
    session = WorldSession(lambda: client, scheduler=scheduler)
    session.connect(ConnectionConfig(ws_url="ws://localhost:3000/ws", world_id="smoke"))

    client.emit(ENTITY_ADDED, {"id": "agent-1", "data": {"type": "player", "name": "Smoke"}})
    client.emit(ENTITY_ADDED, {"id": "lamp-1", "data": {"type": "app", "name": "Lamp", "position": [3, 0, -2]}})

    # ------------------------------------------------------------------
    # Navigate toward the lamp
    # ------------------------------------------------------------------
    _print_header("execute_action: navigate_to {x=3,z=-2}")
    result = session.execute_action(Action(type="navigate_to", params={"x": 3, "z": -2}))
    print("ActionResult:", asdict(result))

    clock.advance(300)
    client.place(3.0, -2.0)
    clock.advance(200)
    print("Navigating:", session.is_navigating())

    print("\nKey writes:")
    for key, down in client.key_writes:
        print(f"  - {key}: {'down' if down else 'up'}")
    client.key_writes.clear()

    # ------------------------------------------------------------------
    # Jump
    # ------------------------------------------------------------------
    _print_header("execute_action: jump")
    print("ActionResult:", asdict(session.execute_action(Action(type="jump"))))
    print("Jump calls:", client.jump_calls)

    _print_header("describe_world")
    print(session.describe_world())

    session.disconnect()
    _print_header("Fake mode completed")


def run_real_mode(seconds: float) -> None:
    """
    Connect through the bridge configured in config/world.yaml.

    This expects a bridge process listening on connection.bridge_host/port.
    """
    _print_header("Real mode: connecting WorldSession through the bridge")

    profile = load_environment()
    session = WorldSession(
        client_factory_for(profile.connection),
        tuning=profile.tuning,
        identity=profile.identity,
    )

    try:
        session.connect(profile.connection)
    except SessionError as exc:
        print("connect() failed:", exc)
        return

    try:
        deadline = time.monotonic() + seconds
        while time.monotonic() < deadline and session.is_connected():
            client = session.client
            if client is not None:
                client.pump()
            session.scheduler.run_due()
            time.sleep(0.02)

        _print_header("describe_world (real)")
        print(session.describe_world())
    finally:
        session.disconnect()

    _print_header("Real mode completed")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Smoke test harness for embodiment WorldSession",
    )
    parser.add_argument(
        "--mode",
        choices=["fake", "real"],
        default="fake",
        help="Run in 'fake' (no network) or 'real' (bridge from world.yaml) mode",
    )
    parser.add_argument("--seconds", type=float, default=3.0, help="Real mode run time")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.mode == "fake":
        run_fake_mode()
    else:
        run_real_mode(args.seconds)


if __name__ == "__main__":
    main()
