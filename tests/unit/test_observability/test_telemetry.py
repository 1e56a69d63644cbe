"""Tests for the telemetry sink."""

import logging

import pytest

from siteintel.observability.telemetry import EventKind, NullTelemetry, Telemetry


class TestTelemetry:
    def test_levels(self, caplog):
        telemetry = Telemetry(name="test")
        with caplog.at_level(logging.DEBUG, logger="test.telemetry"):
            telemetry.breadcrumb("EXECUTOR", "Lock acquired", {"session_id": "s1"})
            telemetry.info("EXECUTOR", "Execution completed")
            telemetry.error("EXECUTOR", "Execution failed", ValueError("boom"))
            telemetry.timing("scrape", 12.3456)

        levels = [(r.levelno, r.getMessage()) for r in caplog.records]
        assert levels[0][0] == logging.DEBUG
        assert "Lock acquired" in levels[0][1]
        assert levels[1][0] == logging.INFO
        assert levels[2][0] == logging.ERROR
        assert caplog.records[2].exc_info is not None
        assert levels[3][0] == logging.DEBUG

    def test_error_payload(self):
        telemetry = Telemetry()
        telemetry.error("STORE", "Write failed", KeyError("k"), {"session_id": "s1"})
        event = telemetry.recent(EventKind.ERROR)[0]
        assert event.data["error_type"] == "KeyError"
        assert event.data["session_id"] == "s1"

    def test_timing_rounds_duration(self):
        telemetry = Telemetry()
        telemetry.timing("aggregate", 1.23456789)
        assert telemetry.recent(EventKind.TIMING)[0].data["duration_ms"] == 1.235

    def test_bounded_trail(self):
        telemetry = Telemetry(max_events=3)
        for i in range(5):
            telemetry.info("X", f"event {i}")
        assert [e.message for e in telemetry.events] == ["event 2", "event 3", "event 4"]

    def test_recent_filters(self):
        telemetry = Telemetry()
        telemetry.info("A", "one")
        telemetry.info("B", "two")
        telemetry.breadcrumb("A", "three")
        assert [e.message for e in telemetry.recent(category="A")] == ["one", "three"]
        assert [e.message for e in telemetry.recent(EventKind.INFO, "B")] == ["two"]

    def test_unserializable_data_does_not_raise(self):
        telemetry = Telemetry()

        class Weird:
            def __repr__(self):
                raise RuntimeError("no repr")

        telemetry.info("X", "weird", {"value": Weird()})

    def test_span_records_timing(self):
        telemetry = Telemetry()
        with telemetry.span("scrape", session_id="s1") as span:
            span.set_attribute("pages", 3)
        event = telemetry.recent(EventKind.TIMING)[0]
        assert event.message == "scrape"
        assert event.data["pages"] == 3
        assert event.data["session_id"] == "s1"
        assert span.duration_ms is not None

    def test_span_propagates_and_marks_failure(self):
        telemetry = Telemetry()
        with pytest.raises(ValueError):
            with telemetry.span("scrape"):
                raise ValueError("boom")
        assert telemetry.recent(EventKind.TIMING)[0].data["failed"] is True

    def test_event_to_dict(self):
        telemetry = Telemetry()
        telemetry.info("X", "hello", {"a": 1})
        data = telemetry.events[0].to_dict()
        assert data["kind"] == "info"
        assert data["category"] == "X"
        assert data["data"] == {"a": 1}


class TestNullTelemetry:
    def test_records_nothing(self):
        telemetry = NullTelemetry()
        telemetry.info("X", "ignored")
        telemetry.error("X", "ignored", ValueError("x"))
        with telemetry.span("noop"):
            pass
        assert list(telemetry.events) == []
