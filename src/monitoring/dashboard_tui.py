# rich-based TUI dashboard
#src/monitoring/dashboard_tui.py
"""
TUI dashboard for the embodiment runtime.

A terminal UI (using `rich`) that subscribes to the monitoring EventBus
and renders:

- Connection:
    - state, world id, entity count
- Locomotion:
    - navigation target / last stop cause
    - random walk status
    - jump / crouch
- Recent activity:
    - last actions and chat dispatches
- Entities:
    - a table of the last state pushed with update_state()

This runs entirely offline. No web server, no external services.
"""

from __future__ import annotations

import time
from collections import deque
from threading import Lock
from typing import Any, Deque, Dict, Iterable, List, Mapping

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .bus import EventBus
from .events import EventType, MonitoringEvent


def render_entity_table(entities: Iterable[Mapping[str, Any]], *, limit: int = 20) -> Table:
    """Entity snapshots (EntitySnapshot.to_dict() shape) as a rich Table."""
    table = Table(show_header=True, header_style="bold magenta", expand=True)
    table.add_column("ID", style="bold", no_wrap=True)
    table.add_column("Type")
    table.add_column("Name")
    table.add_column("Position", justify="right")

    rows = list(entities)
    for entity in rows[:limit]:
        position = entity.get("position")
        pos_str = (
            "(" + ", ".join(f"{p:.2f}" for p in position) + ")" if position else "N/A"
        )
        entity_id = str(entity.get("id", "?"))
        table.add_row(
            entity_id[:8],
            str(entity.get("type") or "unknown"),
            str(entity.get("name") or "-"),
            pos_str,
        )
    if not rows:
        table.add_row("<none>", "-", "-", "-")
    elif len(rows) > limit:
        table.add_row("…", f"+{len(rows) - limit} more", "", "")
    return table


# ============================================================
# TUI Dashboard
# ============================================================

class TuiDashboard:
    """
    Live terminal dashboard bound to a monitoring.EventBus.

    Events and state pushes arrive on the session's thread; rendering
    happens on the dashboard's thread. The dashboard never calls into
    the session: it renders only what was handed to it, under its lock.
    """

    def __init__(
        self,
        bus: EventBus,
        *,
        history: int = 8,
    ) -> None:
        self._bus = bus
        self._console = Console()
        self._lock = Lock()

        self._state: Dict[str, Any] = {
            "connection": "disconnected",
            "world_id": None,
            "entity_count": 0,
            "nav_target": None,
            "nav_origin": None,
            "last_stop_cause": None,
            "random_walk": False,
            "walk_config": None,
            "jumps": 0,
            "crouching": False,
        }
        self._recent: Deque[str] = deque(maxlen=history)
        self._entities: List[Mapping[str, Any]] = []
        self._running = False

        self._bus.subscribe(self._on_event)

    # --------------------------------------------------------
    # Event handler
    # --------------------------------------------------------

    def _on_event(self, event: MonitoringEvent) -> None:
        et = event.event_type
        payload = event.payload

        with self._lock:
            if et == EventType.CONNECTION_STATE:
                self._state["connection"] = payload.get("to", "unknown")
                if "world_id" in payload:
                    self._state["world_id"] = payload["world_id"]
                if "entities" in payload:
                    self._state["entity_count"] = payload["entities"]
                if payload.get("to") == "disconnected":
                    self._state["nav_target"] = None
                    self._state["random_walk"] = False
                    self._state["entity_count"] = 0
                    self._entities = []

            elif et == EventType.ENTITY_COUNT:
                self._state["entity_count"] = payload.get("count", 0)

            elif et == EventType.NAVIGATION_STARTED:
                self._state["nav_target"] = (payload.get("x"), payload.get("z"))
                self._state["nav_origin"] = payload.get("origin")

            elif et == EventType.NAVIGATION_STOPPED:
                self._state["nav_target"] = None
                self._state["nav_origin"] = None
                self._state["last_stop_cause"] = payload.get("cause")

            elif et == EventType.RANDOM_WALK_STARTED:
                self._state["random_walk"] = True
                self._state["walk_config"] = (
                    payload.get("interval_ms"),
                    payload.get("max_distance"),
                )

            elif et == EventType.RANDOM_WALK_STOPPED:
                self._state["random_walk"] = False

            elif et == EventType.JUMP:
                self._state["jumps"] += 1

            elif et == EventType.CROUCH:
                self._state["crouching"] = bool(payload.get("crouching"))

            elif et == EventType.ACTION_EXECUTED:
                status = "ok" if payload.get("success") else payload.get("error")
                self._recent.append(f"action {payload.get('type')} -> {status}")

            elif et == EventType.CHAT_DISPATCHED:
                self._recent.append(f"chat {payload.get('id')}")

    def update_state(self, state: Mapping[str, Any]) -> None:
        """
        Store a copy of a WorldSession.get_state() result for rendering.

        Called from the thread that owns the session.
        """
        entities = [dict(e) for e in (state.get("entities") or {}).values()]
        with self._lock:
            self._entities = entities

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return dict(self._state)

    def entities(self) -> List[Mapping[str, Any]]:
        with self._lock:
            return list(self._entities)

    # --------------------------------------------------------
    # Rendering helpers
    # --------------------------------------------------------

    def _render_connection_panel(self, state: Dict[str, Any]) -> Panel:
        txt = Text()
        txt.append("State: ", style="bold")
        txt.append(f"{state['connection']}\n")
        txt.append("World: ", style="bold")
        txt.append(f"{state['world_id'] or '<none>'}\n")
        txt.append("Entities: ", style="bold")
        txt.append(f"{state['entity_count']}\n")
        return Panel(txt, title="Connection", border_style="cyan")

    def _render_locomotion_panel(self, state: Dict[str, Any]) -> Panel:
        table = Table.grid(pad_edge=False)
        table.add_column(justify="left")

        target = state["nav_target"]
        if target is not None:
            table.add_row(
                f"[bold]Target:[/bold] ({target[0]:.2f}, {target[1]:.2f}) [{state['nav_origin']}]"
            )
        else:
            table.add_row("[bold]Target:[/bold] <idle>")
        table.add_row(f"[bold]Last stop:[/bold] {state['last_stop_cause'] or '-'}")

        if state["random_walk"]:
            interval, distance = state["walk_config"] or (None, None)
            table.add_row(f"[bold]Random walk:[/bold] on ({interval} ms, {distance} u)")
        else:
            table.add_row("[bold]Random walk:[/bold] off")

        table.add_row(f"[bold]Jumps:[/bold] {state['jumps']}")
        table.add_row(f"[bold]Crouching:[/bold] {'yes' if state['crouching'] else 'no'}")
        return Panel(table, title="Locomotion", border_style="green")

    def _render_activity_panel(self) -> Panel:
        with self._lock:
            lines = list(self._recent)
        body = "\n".join(lines) if lines else "No activity yet"
        return Panel(Text(body), title="Recent Activity", border_style="yellow")

    def _render_entity_panel(self) -> Panel:
        return Panel(render_entity_table(self.entities()), title="Entities", border_style="magenta")

    def _build_layout(self) -> Layout:
        state = self.snapshot()
        layout = Layout()

        layout.split(
            Layout(name="top", size=12),
            Layout(name="bottom", ratio=1),
        )
        layout["top"].split_row(
            Layout(name="connection"),
            Layout(name="locomotion"),
            Layout(name="activity"),
        )
        layout["connection"].update(self._render_connection_panel(state))
        layout["locomotion"].update(self._render_locomotion_panel(state))
        layout["activity"].update(self._render_activity_panel())
        layout["bottom"].update(self._render_entity_panel())
        return layout

    # --------------------------------------------------------
    # Main loop
    # --------------------------------------------------------

    def stop(self) -> None:
        self._running = False

    def run(self, refresh_per_second: float = 4.0) -> None:
        """
        Run the TUI render loop until stop() is called.

        This blocks the current thread. Use a separate thread if needed.
        """
        refresh_delay = 1.0 / max(refresh_per_second, 0.1)
        self._running = True
        with Live(self._build_layout(), console=self._console, refresh_per_second=refresh_per_second) as live:
            while self._running:
                live.update(self._build_layout())
                time.sleep(refresh_delay)


__all__ = ["TuiDashboard", "render_entity_table"]
