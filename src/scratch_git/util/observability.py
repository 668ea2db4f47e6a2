"""Structured events and request metrics for the transport."""

from __future__ import annotations

import json
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator

from scratch_git.util.logging import get_logger, normalize_level

EVENTS_LOGGER = "scratch_git.events"


class EventLogger:
    """Writes one JSON document per event to a named logger.

    Each document carries ``event_type``, ``timestamp``, ``payload`` and the
    logger's bound ``context``.
    """

    def __init__(self, logger_name: str, context: dict[str, Any] | None = None) -> None:
        self._logger = get_logger(logger_name)
        self._context = dict(context or {})

    @property
    def context(self) -> dict[str, Any]:
        return dict(self._context)

    def bind(self, **context: Any) -> EventLogger:
        """Return a logger writing to the same destination with extra context."""

        return EventLogger(self._logger.name, {**self._context, **context})

    def log(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        level_no = normalize_level(level)
        if not self._logger.isEnabledFor(level_no):
            return
        document = {
            "event_type": event_type,
            "timestamp": time.time(),
            "payload": payload,
            "context": self._context,
        }
        self._logger.log(level_no, json.dumps(document, sort_keys=True, default=str))


@dataclass
class MetricsCollector:
    """Request counters and per-command durations."""

    counters: dict[str, int] = field(default_factory=dict)
    durations: dict[str, list[float]] = field(default_factory=dict)

    def increment(self, name: str, value: int = 1) -> None:
        self.counters[name] = self.counters.get(name, 0) + value

    def counter(self, name: str) -> int:
        return self.counters.get(name, 0)

    def record_duration(self, name: str, duration_s: float) -> None:
        self.durations.setdefault(name, []).append(duration_s)

    def snapshot(self) -> dict[str, Any]:
        """Return counters plus count, total and slowest time per duration metric."""

        return {
            "counters": dict(self.counters),
            "durations": {
                name: {"count": len(values), "total_s": sum(values), "max_s": max(values)}
                for name, values in self.durations.items()
                if values
            },
        }


@dataclass(frozen=True)
class ObservabilityManager:
    """Event logger and metrics shared by every transport of one client run."""

    events: EventLogger
    metrics: MetricsCollector

    def log_event(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        self.events.log(event_type, payload, level=level)

    @contextmanager
    def track_duration(self, metric_name: str) -> Iterator[None]:
        """Record how long the block took, whether or not it raised."""

        start = time.perf_counter()
        try:
            yield
        finally:
            self.metrics.record_duration(metric_name, time.perf_counter() - start)

    def emit_summary(self, *, level: str = "DEBUG") -> None:
        """Log the collected metrics as a ``metrics.summary`` event."""

        self.log_event("metrics.summary", self.metrics.snapshot(), level=level)


def create_observability_manager(context: dict[str, Any] | None = None) -> ObservabilityManager:
    """Create a manager logging events to ``scratch_git.events``."""

    return ObservabilityManager(
        events=EventLogger(EVENTS_LOGGER, context),
        metrics=MetricsCollector(),
    )
