# src/embodiment/chat.py
"""
Exactly-once dispatch of inbound chat messages.

The world delivers chat as batches that may repeat the full visible history
on every update. ChatDeduplicator turns that into a stream where each
message id reaches the handler at most once per session, and only when the
message was created after the session connected.

Per message, in batch order:
  1. created_at <= connected_at_ms (or unknown) -> mark processed, skip
  2. id already processed or missing           -> skip
  3. otherwise mark processed, then queue for dispatch

Ids are marked before any handler runs, so a re-entrant batch delivered
from inside a handler cannot dispatch the same message twice. A handler
that raises is logged; the rest of the batch is still dispatched.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Iterable, List, Mapping, Optional, Set

log = logging.getLogger(__name__)

ChatMessage = Mapping[str, Any]
MessageHandler = Callable[[ChatMessage], None]


def message_timestamp_ms(message: ChatMessage) -> float:
    """
    createdAt as epoch milliseconds.

    Accepts numbers (already ms) or ISO-8601 strings; anything missing or
    unparseable is 0, which always sorts as history.
    """
    raw = message.get("createdAt", message.get("created_at"))
    if raw is None or isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text).timestamp() * 1000.0
        except ValueError:
            pass
        try:
            return float(text)
        except ValueError:
            return 0.0
    return 0.0


def _message_id(message: ChatMessage) -> Optional[str]:
    raw = message.get("id")
    if raw is None or raw == "":
        return None
    return str(raw)


class ChatDeduplicator:
    """Session-scoped processed-id set in front of a message handler."""

    def __init__(self, handler: Optional[MessageHandler] = None) -> None:
        self._handler = handler
        self._processed: Set[str] = set()
        self._connected_at_ms: Optional[float] = None
        self.dispatched_count = 0

    # ------------------------------------------------------------------
    # Session binding
    # ------------------------------------------------------------------

    @property
    def connected_at_ms(self) -> Optional[float]:
        return self._connected_at_ms

    def set_connected_at(self, connected_at_ms: Optional[float]) -> None:
        self._connected_at_ms = connected_at_ms

    def set_handler(self, handler: Optional[MessageHandler]) -> None:
        self._handler = handler

    def prime(self, history: Iterable[ChatMessage]) -> int:
        """Mark already visible messages as processed. Returns the count added."""
        added = 0
        for message in history or ():
            if not isinstance(message, Mapping):
                continue
            message_id = _message_id(message)
            if message_id and message_id not in self._processed:
                self._processed.add(message_id)
                added += 1
        if added:
            log.info("Primed %d processed chat ids from history", added)
        return added

    def is_processed(self, message_id: str) -> bool:
        return str(message_id) in self._processed

    def processed_count(self) -> int:
        return len(self._processed)

    def reset(self) -> None:
        self._processed.clear()
        self._connected_at_ms = None
        self.dispatched_count = 0

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    def select_new(self, messages: Iterable[ChatMessage]) -> List[ChatMessage]:
        """Mark and return the messages of a batch that should be dispatched."""
        connected_at = self._connected_at_ms
        if connected_at is None:
            return []

        fresh: List[ChatMessage] = []
        for message in messages or ():
            if not isinstance(message, Mapping):
                continue
            message_id = _message_id(message)
            timestamp = message_timestamp_ms(message)

            if not timestamp or timestamp <= connected_at:
                if message_id:
                    self._processed.add(message_id)
                continue

            if message_id is None or message_id in self._processed:
                continue

            self._processed.add(message_id)
            fresh.append(message)
        return fresh

    def handle_batch(self, messages: Iterable[ChatMessage]) -> int:
        """Dispatch the new messages of one batch. Returns how many were dispatched."""
        fresh = self.select_new(messages)
        if not fresh:
            return 0

        log.info("Chat: %d new message(s) to dispatch", len(fresh))
        dispatched = 0
        for message in fresh:
            if self._handler is None:
                log.debug("No chat handler bound; dropping %s", message.get("id"))
                continue
            try:
                self._handler(message)
            except Exception:
                log.exception("Chat handler failed for message %s", message.get("id"))
                continue
            dispatched += 1
        self.dispatched_count += dispatched
        return dispatched


__all__ = ["ChatDeduplicator", "ChatMessage", "MessageHandler", "message_timestamp_ms"]
