from __future__ import annotations

import json
import logging

import pytest

from scratch_git.util.observability import (
    EVENTS_LOGGER,
    EventLogger,
    MetricsCollector,
    ObservabilityManager,
    create_observability_manager,
)


def test_metrics_collector_snapshot() -> None:
    metrics = MetricsCollector()
    metrics.increment("requests", 2)
    metrics.record_duration("command.exists", 1.5)
    metrics.record_duration("command.exists", 0.5)

    snapshot = metrics.snapshot()

    assert snapshot["counters"]["requests"] == 2
    assert metrics.counter("timeouts") == 0
    assert snapshot["durations"]["command.exists"] == {"count": 2, "total_s": 2.0, "max_s": 1.5}


def test_event_logger_emits_json(caplog: pytest.LogCaptureFixture) -> None:
    logger = EventLogger("test.events", context={"client": "cli"})
    caplog.set_level(logging.INFO, logger="test.events")

    logger.bind(url="ws://x").log("transport.server_fault", {"detail": "boom"}, level="ERROR")

    assert caplog.records[-1].levelno == logging.ERROR
    payload = json.loads(caplog.records[-1].message)
    assert payload["event_type"] == "transport.server_fault"
    assert payload["payload"]["detail"] == "boom"
    assert payload["context"] == {"client": "cli", "url": "ws://x"}
    assert logger.context == {"client": "cli"}


def test_events_below_logger_level_are_skipped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="test.events")

    EventLogger("test.events").log("transport.request", {"command": "exists"}, level="DEBUG")

    assert not [record for record in caplog.records if record.name == "test.events"]


def test_track_duration_records_on_error() -> None:
    manager = ObservabilityManager(events=EventLogger("test.events"), metrics=MetricsCollector())

    with pytest.raises(RuntimeError):
        with manager.track_duration("command.pull"):
            raise RuntimeError("failed")

    assert len(manager.metrics.durations["command.pull"]) == 1


def test_emit_summary_logs_metrics(caplog: pytest.LogCaptureFixture) -> None:
    manager = create_observability_manager({"client": "test"})
    manager.metrics.increment("requests")
    caplog.set_level(logging.DEBUG, logger=EVENTS_LOGGER)

    manager.emit_summary()

    payload = json.loads(caplog.records[-1].message)
    assert payload["event_type"] == "metrics.summary"
    assert payload["payload"]["counters"] == {"requests": 1}
    assert payload["context"] == {"client": "test"}
