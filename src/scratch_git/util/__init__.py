"""Shared utilities for scratch-git."""

from scratch_git.util.logging import configure_logging, get_logger
from scratch_git.util.observability import (
    EventLogger,
    MetricsCollector,
    ObservabilityManager,
    create_observability_manager,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "EventLogger",
    "MetricsCollector",
    "ObservabilityManager",
    "create_observability_manager",
]
