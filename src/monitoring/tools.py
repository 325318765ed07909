#src/monitoring/tools.py
"""
Human-facing utilities for the embodiment's monitoring logs.

Provides:

- Session inspector:
    - Load the last N sessions from a monitoring JSONL log.
    - Summarize world, connection states, navigation stops, jumps,
      chat dispatches and action outcomes.

- Event viewer:
    - Filter logged events by type and/or session (correlation id).

- Monitoring CLI (argparse):
    - inspect-sessions
    - events
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections import Counter
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .events import EventType, MonitoringEvent

log = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

DEFAULT_LOG_PATH = "logs/world/events.log"


# ============================================================
# Loading
# ============================================================

def load_events(path: Path) -> List[MonitoringEvent]:
    """
    Load MonitoringEvents from a JSONL file produced by JsonFileLogger.

    Malformed lines and unknown event types are skipped with a debug log.
    """
    if not path.exists():
        return []

    events: List[MonitoringEvent] = []
    with path.open("r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                data = json.loads(line)
                etype = EventType[data["event_type"]]
            except (json.JSONDecodeError, KeyError, TypeError):
                log.debug("Skipping unreadable event at %s:%d", path, lineno)
                continue

            events.append(
                MonitoringEvent(
                    ts=data.get("ts", 0.0),
                    module=data.get("module", ""),
                    event_type=etype,
                    message=data.get("message", ""),
                    payload=data.get("payload") or {},
                    correlation_id=data.get("correlation_id"),
                )
            )
    return events


# ============================================================
# Session inspector
# ============================================================

@dataclass
class SessionSummary:
    """
    Human-friendly summary of one connect/disconnect cycle.
    """
    session_id: str
    world_id: Optional[str] = None
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    states: List[str] = field(default_factory=list)
    disconnect_reason: Optional[str] = None
    navigation_stops: Dict[str, int] = field(default_factory=dict)
    jumps: int = 0
    chat_dispatched: int = 0
    actions_ok: int = 0
    actions_failed: int = 0
    last_entity_count: Optional[int] = None

    def to_dict(self) -> JsonDict:
        return asdict(self)


def _group_events_by_session(events: Iterable[MonitoringEvent]) -> Dict[str, List[MonitoringEvent]]:
    """
    Group events by session id.

    Only session events carry a correlation id. Uncorrelated events
    (navigation, motion, random walk) belong to the session open at the
    time, in file order; events outside any session are ignored.
    """
    grouped: Dict[str, List[MonitoringEvent]] = {}
    current: Optional[str] = None
    for evt in events:
        if evt.correlation_id:
            current = evt.correlation_id
        if current is None:
            continue
        grouped.setdefault(current, []).append(evt)
        if evt.event_type == EventType.CONNECTION_STATE and evt.payload.get("to") == "disconnected":
            current = None
    return grouped


def build_session_summary(session_id: str, events: List[MonitoringEvent]) -> SessionSummary:
    summary = SessionSummary(session_id=session_id)
    stops: Counter = Counter()

    for evt in events:
        payload = evt.payload or {}
        summary.started_at = evt.ts if summary.started_at is None else min(summary.started_at, evt.ts)
        summary.ended_at = evt.ts if summary.ended_at is None else max(summary.ended_at, evt.ts)

        if evt.event_type == EventType.CONNECTION_STATE:
            state = payload.get("to")
            if state:
                summary.states.append(state)
            summary.world_id = payload.get("world_id", summary.world_id)
            if "entities" in payload:
                summary.last_entity_count = payload["entities"]
            if state == "disconnecting":
                summary.disconnect_reason = payload.get("reason")

        elif evt.event_type == EventType.NAVIGATION_STOPPED:
            stops[str(payload.get("cause", "unknown"))] += 1

        elif evt.event_type == EventType.JUMP:
            summary.jumps += 1

        elif evt.event_type == EventType.CHAT_DISPATCHED:
            summary.chat_dispatched += 1

        elif evt.event_type == EventType.ACTION_EXECUTED:
            if payload.get("success"):
                summary.actions_ok += 1
            else:
                summary.actions_failed += 1

        elif evt.event_type == EventType.ENTITY_COUNT:
            summary.last_entity_count = payload.get("count", summary.last_entity_count)

    summary.navigation_stops = dict(stops)
    return summary


def load_last_n_session_summaries(log_path: Path, last_n: int) -> List[SessionSummary]:
    """
    Load the last N sessions from a monitoring JSONL file, newest first.
    """
    grouped = _group_events_by_session(load_events(log_path))

    # Ties on timestamp fall back to file order.
    def session_key(item: Tuple[int, Tuple[str, List[MonitoringEvent]]]) -> Tuple[float, int]:
        index, (_, evts) = item
        return max((e.ts for e in evts), default=0.0), index

    sorted_items = sorted(enumerate(grouped.items()), key=session_key, reverse=True)
    return [build_session_summary(sid, evts) for _, (sid, evts) in sorted_items[:last_n]]


# ============================================================
# Event viewer
# ============================================================

def filter_events(
    events: Iterable[MonitoringEvent],
    *,
    event_type: Optional[EventType] = None,
    session_id: Optional[str] = None,
) -> List[MonitoringEvent]:
    out: List[MonitoringEvent] = []
    for evt in events:
        if event_type is not None and evt.event_type != event_type:
            continue
        if session_id is not None and evt.correlation_id != session_id:
            continue
        out.append(evt)
    return out


# ============================================================
# Monitoring CLI
# ============================================================

def _cmd_inspect_sessions(args: argparse.Namespace) -> None:
    summaries = load_last_n_session_summaries(Path(args.log_path), last_n=args.n)
    json.dump([s.to_dict() for s in summaries], sys.stdout, indent=2, sort_keys=True)
    print()


def _cmd_events(args: argparse.Namespace) -> None:
    event_type = EventType[args.type.upper()] if args.type else None
    selected = filter_events(
        load_events(Path(args.log_path)),
        event_type=event_type,
        session_id=args.session,
    )
    if args.tail:
        selected = selected[-args.tail:]
    for evt in selected:
        print(json.dumps(evt.to_dict(), sort_keys=True))


def build_arg_parser() -> argparse.ArgumentParser:
    """
    Build the monitoring CLI argument parser.
    """
    parser = argparse.ArgumentParser(
        prog="world-monitor",
        description="Inspect monitoring logs written by the embodiment runtime.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_sessions = sub.add_parser("inspect-sessions", help="Summarize the last N sessions.")
    p_sessions.add_argument(
        "--log-path",
        type=str,
        default=DEFAULT_LOG_PATH,
        help="Path to monitoring JSONL log file.",
    )
    p_sessions.add_argument("-n", type=int, default=5, help="Number of recent sessions to show.")
    p_sessions.set_defaults(func=_cmd_inspect_sessions)

    p_events = sub.add_parser("events", help="Print logged events as JSON lines.")
    p_events.add_argument("--log-path", type=str, default=DEFAULT_LOG_PATH)
    p_events.add_argument(
        "--type",
        type=str,
        default=None,
        choices=[t.name.lower() for t in EventType],
        help="Only events of this type.",
    )
    p_events.add_argument("--session", type=str, default=None, help="Only events of this session id.")
    p_events.add_argument("--tail", type=int, default=0, help="Only the last N matching events.")
    p_events.set_defaults(func=_cmd_events)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the monitoring CLI.

    Example usage:

        python -m monitoring.tools inspect-sessions -n 3
        python -m monitoring.tools events --type navigation_stopped --tail 20
    """
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        sys.exit(1)
    func(args)


if __name__ == "__main__":
    main()
