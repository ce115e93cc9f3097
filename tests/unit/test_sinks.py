"""Unit tests for event sinks."""

import json
import logging

import pytest

from cookiejar_events.protocol.messages import Event
from cookiejar_events.sinks import (
    CallbackSink,
    CollectingSink,
    EchoSink,
    EventSink,
    LoggingSink,
    format_event,
)

EVENT = Event(
    event_type="sawtooth/state-delta",
    attributes={"address": "ce2292ab"},
    data=b"x",
)


class TestFormatEvent:
    def test_text(self):
        assert format_event(EVENT) == "Event: sawtooth/state-delta [address=ce2292ab] data=78"

    def test_empty_data(self):
        assert format_event(Event(event_type="sawtooth/block-commit")).endswith("data=-")


class TestEchoSink:
    """Test stdout output."""

    def test_text_output(self, capsys):
        EchoSink()(EVENT)

        assert capsys.readouterr().out == format_event(EVENT) + "\n"

    def test_json_output(self, capsys):
        EchoSink("json")(EVENT)

        data = json.loads(capsys.readouterr().out)
        assert data["event_type"] == "sawtooth/state-delta"
        assert data["attributes"] == {"address": "ce2292ab"}

    def test_unknown_format(self):
        with pytest.raises(ValueError):
            EchoSink("xml")


class TestLoggingSink:
    def test_logs_event(self, caplog):
        sink = LoggingSink(name="cookiejar_events.test")

        with caplog.at_level(logging.INFO, logger="cookiejar_events.test"):
            sink(EVENT)

        assert "ce2292ab" in caplog.text


class TestCollectingSink:
    def test_collects_in_order(self):
        sink = CollectingSink()
        first = EVENT
        second = Event(event_type="sawtooth/block-commit")

        sink(first)
        sink(second)

        assert sink.events == [first, second]
        assert len(sink) == 2

    def test_limit_callback_fires_once(self):
        calls = []
        sink = CollectingSink(limit=2, on_limit=lambda: calls.append(True))

        for _ in range(4):
            sink(EVENT)

        assert calls == [True]


class TestCallbackSink:
    def test_filters_by_type(self):
        seen = []
        sink = CallbackSink(seen.append, event_types={"sawtooth/block-commit"})

        sink(EVENT)
        sink(Event(event_type="sawtooth/block-commit"))

        assert [e.event_type for e in seen] == ["sawtooth/block-commit"]

    def test_all_types_by_default(self):
        seen = []
        CallbackSink(seen.append)(EVENT)

        assert seen == [EVENT]


def test_sinks_satisfy_protocol():
    for sink in (EchoSink(), LoggingSink(), CollectingSink(), CallbackSink(print)):
        assert isinstance(sink, EventSink)
