# JSON logger subscribing to EventBus
"""
Structured event logging for the embodiment runtime.

Provides:
- JsonFileLogger: subscribes to an EventBus and appends MonitoringEvents as JSONL.
- log_event: helper that builds and publishes a MonitoringEvent.

    bus = EventBus()
    sink = JsonFileLogger(Path("logs/world/events.log"), bus)

    log_event(
        bus=bus,
        module="embodiment.navigation",
        event_type=EventType.NAVIGATION_STARTED,
        message="Navigation started",
        payload={"x": 3.0, "z": -4.0, "origin": "user"},
    )
"""

from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .bus import EventBus
from .events import EventType, MonitoringEvent

log = logging.getLogger(__name__)


# ============================================================
# JSONL File Logger
# ============================================================

class JsonFileLogger:
    """
    JSON-lines sink for MonitoringEvent instances.

    One UTF-8 JSON object per line; the parent directory is created on
    construction. Write failures are reported through stdlib logging and
    the event is dropped.
    """

    def __init__(self, path: Path, bus: EventBus) -> None:
        self._path = Path(path)
        self._bus = bus
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._file = self._path.open("a", encoding="utf-8")
        bus.subscribe(self._on_event)

    @property
    def path(self) -> Path:
        return self._path

    def _on_event(self, event: MonitoringEvent) -> None:
        line = json.dumps(event.to_dict(), ensure_ascii=False, default=str)
        try:
            self._file.write(line + "\n")
            self._file.flush()
        except (OSError, ValueError):
            log.warning("Dropping monitoring event; cannot write %s", self._path, exc_info=True)

    def close(self) -> None:
        """Unsubscribe and close the file handle."""
        self._bus.unsubscribe(self._on_event)
        if not self._file.closed:
            self._file.close()


# ============================================================
# Convenience helper for emitting events
# ============================================================

def log_event(
    bus: EventBus,
    module: str,
    event_type: EventType,
    message: str,
    payload: Optional[Dict[str, Any]] = None,
    correlation_id: Optional[str] = None,
) -> MonitoringEvent:
    """
    Create, publish and return a MonitoringEvent.

    Parameters
    ----------
    bus:
        EventBus instance to publish on.
    module:
        Source module ("embodiment.navigation", "embodiment.session", ...).
    event_type:
        EventType member describing the event.
    message:
        Short human-readable description.
    payload:
        JSON-safe structured data.
    correlation_id:
        Optional id grouping related events (one per world session).
    """
    event = MonitoringEvent(
        ts=time.time(),
        module=module,
        event_type=event_type,
        message=message,
        payload=payload or {},
        correlation_id=correlation_id,
    )
    bus.publish(event)
    return event


__all__ = ["JsonFileLogger", "log_event"]
