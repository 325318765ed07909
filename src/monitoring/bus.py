# EventBus for monitoring events and control commands
"""
In-process pub/sub for the embodiment runtime.

Two channels share one lock:

- Monitoring events (MonitoringEvent) flow out of the embodiment:
    - WorldSession publishes connection state, entity counts, chat dispatches
    - NavigationController / RandomWalkScheduler publish locomotion changes
    - MotionActions publish jumps and crouch toggles
  and are consumed by the JSONL file logger and the TUI dashboard.

- Control commands (ControlCommand) flow into the embodiment:
    - any thread may publish one (CLI, dashboard, tests)
    - SessionController queues it and applies it on the session loop

Handlers run synchronously on the publisher's thread. For monitoring
events that is the session loop thread, so subscribers must be quick
and must guard any state they share with another thread.
"""

from __future__ import annotations

import logging
from threading import Lock
from typing import Callable, List

from .events import MonitoringEvent, ControlCommand

log = logging.getLogger(__name__)


# ============================================================
# Type aliases
# ============================================================

SubscriberFn = Callable[[MonitoringEvent], None]
CommandHandlerFn = Callable[[ControlCommand], None]


# ============================================================
# Event Bus
# ============================================================

class EventBus:
    """
    Thread-safe event bus for the embodiment's monitoring events and
    control commands.

    Delivery rules:
    - Handlers are called in registration order.
    - Each publish iterates over a snapshot of the handler list taken
      under the lock, so a handler may subscribe, unsubscribe or publish
      again without deadlocking.
    - A handler that raises is logged with its traceback; the remaining
      handlers still receive the event.
    """

    def __init__(self) -> None:
        # Logger, dashboard, test recorders
        self._subscribers: List[SubscriberFn] = []
        # Usually a single SessionController
        self._cmd_handlers: List[CommandHandlerFn] = []
        self._lock = Lock()

    # --------------------------------------------------------
    # Subscription API: Monitoring Events
    # --------------------------------------------------------

    def subscribe(self, fn: SubscriberFn) -> None:
        """
        Register a callback for every MonitoringEvent the session emits.

        Registering the same callable twice delivers each event to it twice.
        """
        with self._lock:
            self._subscribers.append(fn)

    def unsubscribe(self, fn: SubscriberFn) -> None:
        """Remove a monitoring subscriber. Unknown callables are ignored."""
        with self._lock:
            if fn in self._subscribers:
                self._subscribers.remove(fn)

    # --------------------------------------------------------
    # Subscription API: Control Commands
    # --------------------------------------------------------

    def subscribe_commands(self, fn: CommandHandlerFn) -> None:
        """
        Register a control command handler.

        Handlers run on the thread that published the command; anything
        that touches the session must hand the command over to the loop.
        """
        with self._lock:
            self._cmd_handlers.append(fn)

    def unsubscribe_commands(self, fn: CommandHandlerFn) -> None:
        with self._lock:
            if fn in self._cmd_handlers:
                self._cmd_handlers.remove(fn)

    # --------------------------------------------------------
    # Publish
    # --------------------------------------------------------

    def publish(self, event: MonitoringEvent) -> None:
        """
        Deliver a monitoring event to every subscriber registered right now.

        Subscribers added during delivery see the next event, not this one.
        """
        with self._lock:
            subscribers = list(self._subscribers)

        for fn in subscribers:
            try:
                fn(event)
            except Exception:
                log.exception("Monitoring subscriber %r failed on %s", fn, event.event_type.name)

    def publish_command(self, cmd: ControlCommand) -> None:
        """Deliver a control command to every registered command handler."""
        with self._lock:
            handlers = list(self._cmd_handlers)

        for fn in handlers:
            try:
                fn(cmd)
            except Exception:
                log.exception("Command handler %r failed on %s", fn, cmd.cmd.name)

    # --------------------------------------------------------
    # Utility
    # --------------------------------------------------------

    def clear(self) -> None:
        """Drop all subscribers and handlers (tests, shutdown)."""
        with self._lock:
            self._subscribers.clear()
            self._cmd_handlers.clear()


__all__ = ["EventBus", "SubscriberFn", "CommandHandlerFn"]
