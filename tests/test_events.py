# tests/test_events.py
"""
Tests for hl7_engine.events.
"""

import logging

import pytest

from hl7_engine.events import EventChannel, InterfaceStatusEvent


def test_emit_calls_handlers_in_subscription_order():
    calls = []
    ch = EventChannel("status")
    ch.subscribe(lambda p: calls.append(("a", p)))
    ch.subscribe(lambda p: calls.append(("b", p)))
    ch.emit(1)
    ch.emit(2)
    assert calls == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]


def test_subscribe_works_as_decorator_and_unsubscribe():
    seen = []
    ch = EventChannel()

    @ch.subscribe
    def handler(payload):
        seen.append(payload)

    ch.emit("x")
    ch.unsubscribe(handler)
    ch.unsubscribe(handler)
    ch.emit("y")
    assert seen == ["x"]
    assert len(ch) == 0


def test_failing_handler_does_not_stop_others(caplog):
    seen = []
    ch = EventChannel("message")

    def boom(_):
        raise RuntimeError("handler exploded")

    ch.subscribe(boom)
    ch.subscribe(seen.append)
    with caplog.at_level(logging.ERROR, logger="hl7_engine.events"):
        ch.emit("payload")
    assert seen == ["payload"]
    assert "message event handler" in caplog.text


def test_subscribe_rejects_non_callable():
    with pytest.raises(TypeError, match=r"^handler must be callable"):
        EventChannel().subscribe("nope")


def test_status_event_str_is_text():
    ev = InterfaceStatusEvent("lab", "Starting")
    assert str(ev) == "Starting"
    assert ev.interface == "lab"
    assert ev.timestamp is not None
