# path: src/runtime/agent_runtime_main.py

"""
Unified runtime wiring the embodiment session and monitoring.

This script shows:
- How the EventBus, JsonFileLogger, WorldSession, SessionController and TUI
  Dashboard fit together.
- How control commands reach the session.
- Where monitoring events flow and how logs are produced.

Everything runs on one thread except the optional TUI, which only renders
what the loop pushes to it. The loop pumps the transport, applies queued control
commands, runs due timers and sleeps until the next timer.
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple

from embodiment.errors import SessionError
from embodiment.net import client_factory_for
from embodiment.session import ClientFactory, WorldSession
from embodiment.timers import TimerHandle, TimerScheduler
from env.loader import events_log_path, load_environment
from env.schema import WorldProfile
from monitoring.bus import EventBus
from monitoring.controller import SessionController
from monitoring.dashboard_tui import TuiDashboard
from monitoring.logger import JsonFileLogger

from .logging_config import configure_logging

log = logging.getLogger(__name__)

MAX_IDLE_SLEEP_S = 0.05
DASHBOARD_FEED_INTERVAL_MS = 250.0


def start_tui_in_background(bus: EventBus) -> Tuple[TuiDashboard, threading.Thread]:
    """
    Start the TuiDashboard in a separate daemon thread.

    The dashboard listens to MonitoringEvents on the given bus and renders
    a live HUD. Running it in a background thread avoids blocking the
    session loop.
    """
    dashboard = TuiDashboard(bus)

    def _run() -> None:
        dashboard.run(refresh_per_second=4.0)

    t = threading.Thread(target=_run, name="TuiDashboardThread")
    t.daemon = True
    t.start()
    return dashboard, t


def feed_dashboard(
    dashboard: TuiDashboard,
    session: WorldSession,
    interval_ms: float = DASHBOARD_FEED_INTERVAL_MS,
) -> TimerHandle:
    """
    Push session state to the dashboard from the session's own scheduler.

    The push runs on the loop thread, so the dashboard thread never reads
    the session while it is being mutated.
    """
    return session.scheduler.call_every(
        interval_ms,
        lambda: dashboard.update_state(session.get_state()),
        name="dashboard_feed",
        first_delay_ms=0,
    )


def build_monitoring_stack(log_path: Optional[Path] = None) -> Tuple[EventBus, Optional[JsonFileLogger]]:
    """
    Construct the monitoring stack used by the runtime.

    Returns:
        (bus, logger) where logger is None when no events log is configured.
    """
    bus = EventBus()
    logger = JsonFileLogger(path=log_path, bus=bus) if log_path is not None else None
    return bus, logger


def build_session(
    profile: WorldProfile,
    bus: EventBus,
    *,
    client_factory: Optional[ClientFactory] = None,
    scheduler: Optional[TimerScheduler] = None,
) -> WorldSession:
    """Construct a WorldSession for the profile, wired to the monitoring bus."""
    return WorldSession(
        client_factory or client_factory_for(profile.connection),
        scheduler=scheduler,
        tuning=profile.tuning,
        identity=profile.identity,
        bus=bus,
    )


def run_loop(
    session: WorldSession,
    controller: SessionController,
    *,
    should_continue: Callable[[], bool] = lambda: True,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Drive the session until it disconnects or should_continue() is False.
    """
    scheduler = session.scheduler
    while should_continue() and session.is_connected():
        client = session.client
        if client is not None:
            client.pump()
        controller.process_pending()
        scheduler.run_due()

        next_due = scheduler.next_due()
        if next_due is None:
            delay_s = MAX_IDLE_SLEEP_S
        else:
            delay_s = min(MAX_IDLE_SLEEP_S, max(0.0, (next_due - scheduler.now()) / 1000.0))
        sleep(delay_s)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the embodied world agent.")
    parser.add_argument("--config-root", type=Path, default=None, help="Directory holding world.yaml")
    parser.add_argument("--log-level", default=None, help="Override the profile's log level")
    parser.add_argument("--tui", action="store_true", help="Show the live terminal dashboard")
    parser.add_argument("--random-walk", action="store_true", help="Start wandering once connected")
    return parser.parse_args(argv)


def run_agent_runtime(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entrypoint.

    Runtime responsibilities:
    - Load the world profile and configure logging.
    - Build the monitoring stack (EventBus + JsonFileLogger).
    - Build the WorldSession and wrap it in a SessionController.
    - Optionally start the TUI dashboard in the background.
    - Connect and run the loop until Ctrl+C or a remote disconnect.
    """
    args = parse_args(argv)
    profile = load_environment(args.config_root)
    configure_logging(args.log_level or profile.logging.level)
    log.info("Loaded world profile %s (%s)", profile.name, profile.connection.ws_url)

    bus, logger = build_monitoring_stack(events_log_path(profile))
    session = build_session(profile, bus)
    controller = SessionController(session, bus)

    dashboard = None
    if args.tui:
        dashboard, _ = start_tui_in_background(bus)
        feed_dashboard(dashboard, session)

    try:
        session.connect(profile.connection)

        interval = profile.tuning.entity_log_interval_ms
        if interval > 0:
            session.scheduler.call_every(interval, session.log_current_entities, name="entity_log")
        if args.random_walk:
            session.start_random_walk()

        run_loop(session, controller)
        if not session.is_connected():
            log.warning("Session ended: world disconnected")
    except SessionError as exc:
        log.error("Could not connect to %s: %s", profile.connection.ws_url, exc)
        return 1
    except KeyboardInterrupt:
        log.info("Shutting down world agent runtime...")
    finally:
        session.disconnect()
        session.scheduler.cancel_all()
        controller.close()
        if dashboard is not None:
            dashboard.stop()
        if logger is not None:
            logger.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(run_agent_runtime())
