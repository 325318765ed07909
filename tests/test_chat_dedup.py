# tests/test_chat_dedup.py
"""
Tests for embodiment.chat.ChatDeduplicator.

Covers:
- overlapping batches dispatch each message once
- history (created at or before connect) is never dispatched
- timestamp parsing, handler failures, re-entrant batches
"""

from __future__ import annotations

from typing import Any, Dict, List

from embodiment.chat import ChatDeduplicator, message_timestamp_ms

CONNECTED_AT = 1_000_000.0


def msg(message_id: str, created_at: Any = CONNECTED_AT + 1) -> Dict[str, Any]:
    return {"id": message_id, "from": "Alice", "body": "hi", "createdAt": created_at}


def make_dedup():
    received: List[Dict[str, Any]] = []
    dedup = ChatDeduplicator(received.append)
    dedup.set_connected_at(CONNECTED_AT)
    return dedup, received


def test_overlapping_batches_dispatch_once():
    dedup, received = make_dedup()
    batch = [msg("m1"), msg("m2")]

    for _ in range(5):
        dedup.handle_batch(batch)

    assert [m["id"] for m in received] == ["m1", "m2"]
    assert dedup.dispatched_count == 2


def test_growing_history_only_dispatches_new_tail():
    dedup, received = make_dedup()
    dedup.handle_batch([msg("m1")])
    dedup.handle_batch([msg("m1"), msg("m2")])
    dedup.handle_batch([msg("m1"), msg("m2"), msg("m3")])

    assert [m["id"] for m in received] == ["m1", "m2", "m3"]


def test_history_messages_are_marked_but_not_dispatched():
    dedup, received = make_dedup()
    old = msg("old", CONNECTED_AT - 5)
    at_connect = msg("edge", CONNECTED_AT)

    assert dedup.handle_batch([old, at_connect]) == 0
    assert received == []
    assert dedup.is_processed("old") and dedup.is_processed("edge")


def test_nothing_dispatched_before_connect():
    received: List[Dict[str, Any]] = []
    dedup = ChatDeduplicator(received.append)

    assert dedup.handle_batch([msg("m1")]) == 0
    assert received == []
    assert not dedup.is_processed("m1")


def test_messages_without_id_or_timestamp_are_skipped():
    dedup, received = make_dedup()
    dedup.handle_batch([{"from": "x", "createdAt": CONNECTED_AT + 5}, {"id": "nots"}])
    assert received == []


def test_prime_marks_history():
    dedup, received = make_dedup()
    assert dedup.prime([msg("m1"), msg("m2"), {"no": "id"}]) == 2

    dedup.handle_batch([msg("m1"), msg("m3")])
    assert [m["id"] for m in received] == ["m3"]


def test_failing_handler_does_not_block_rest_of_batch():
    received: List[str] = []

    def handler(message):
        if message["id"] == "bad":
            raise RuntimeError("handler failed")
        received.append(message["id"])

    dedup = ChatDeduplicator(handler)
    dedup.set_connected_at(CONNECTED_AT)

    assert dedup.handle_batch([msg("bad"), msg("good")]) == 1
    assert received == ["good"]
    # The failed message is not retried.
    dedup.handle_batch([msg("bad")])
    assert received == ["good"]


def test_reentrant_batch_from_handler_is_deduplicated():
    received: List[str] = []
    batch = [msg("m1"), msg("m2")]
    dedup = ChatDeduplicator()

    def handler(message):
        received.append(message["id"])
        dedup.handle_batch(batch)

    dedup.set_handler(handler)
    dedup.set_connected_at(CONNECTED_AT)
    dedup.handle_batch(batch)

    assert received == ["m1", "m2"]


def test_reset_forgets_session():
    dedup, received = make_dedup()
    dedup.handle_batch([msg("m1")])
    dedup.reset()

    assert dedup.processed_count() == 0
    assert dedup.connected_at_ms is None


def test_message_timestamp_parsing():
    assert message_timestamp_ms({"createdAt": 1234}) == 1234.0
    assert message_timestamp_ms({"created_at": "1970-01-01T00:00:01Z"}) == 1000.0
    assert message_timestamp_ms({"createdAt": "1970-01-01T00:00:02+00:00"}) == 2000.0
    assert message_timestamp_ms({"createdAt": "not a date"}) == 0.0
    assert message_timestamp_ms({"createdAt": True}) == 0.0
    assert message_timestamp_ms({}) == 0.0
