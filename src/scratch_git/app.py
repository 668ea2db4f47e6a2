"""Application wiring shared by the CLI and embedding code."""

from __future__ import annotations

import json
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncIterator

from scratch_git.config import ClientConfig, config_to_dict
from scratch_git.manager import HostState, ProjectManager
from scratch_git.transport.cache import ResponseCache
from scratch_git.transport.client import FaultNotifier, Transport
from scratch_git.util.logging import get_logger
from scratch_git.util.observability import ObservabilityManager, create_observability_manager

PROJECT_ENV_VAR = "SCRATCH_GIT_PROJECT"
CONFIG_FILE_NAME = "scratch_git.yaml"

_LOGGER = get_logger("scratch_git.app")


class AppConfigError(RuntimeError):
    """Raised when configuration setup fails."""


@dataclass(frozen=True)
class EnvironmentHostState:
    """Host state for headless use: the open project comes from the environment."""

    variable: str = PROJECT_ENV_VAR

    def current_project_title(self) -> str | None:
        return os.getenv(self.variable) or None


def initialize_config(directory: Path) -> Path:
    """Create a default configuration file.

    Args:
        directory: Directory where the config should be written.

    Returns:
        Path to the generated configuration file.

    Raises:
        AppConfigError: If the config file already exists.
    """

    directory = directory.resolve()
    config_path = directory / CONFIG_FILE_NAME
    if config_path.exists():
        raise AppConfigError(
            f"Config file already exists at {config_path}. Remove it or choose another "
            "directory."
        )
    config_path.write_text(json.dumps(config_to_dict(ClientConfig()), indent=2), encoding="utf-8")
    _LOGGER.info("Initialized configuration at %s", config_path)
    return config_path


def build_transport(
    config: ClientConfig,
    *,
    notifier: FaultNotifier | None = None,
    observability: ObservabilityManager | None = None,
) -> Transport:
    """Create an unopened transport from configuration."""

    options = transport_options(config, notifier, observability)
    return Transport.connect(config.server.url, **options)


def transport_options(
    config: ClientConfig,
    notifier: FaultNotifier | None = None,
    observability: ObservabilityManager | None = None,
) -> dict[str, object]:
    """Keyword arguments for transports built from configuration."""

    return {
        "cache": ResponseCache(config.cache.max_entries, enabled=config.cache.enabled),
        "request_timeout_s": config.request_timeout_s,
        "notifier": notifier,
        "observability": observability,
    }


@asynccontextmanager
async def open_manager(
    config: ClientConfig,
    *,
    host: HostState | None = None,
    notifier: FaultNotifier | None = None,
    observability: ObservabilityManager | None = None,
) -> AsyncIterator[ProjectManager]:
    """Open one shared transport and yield a manager bound to it.

    A default observability manager is created when none is given; its
    metrics are logged as a summary event once the transport closes.
    """

    observability = observability or create_observability_manager({"server": config.server.url})
    transport = build_transport(config, notifier=notifier, observability=observability)
    try:
        async with transport:
            yield ProjectManager(transport, host=host or EnvironmentHostState())
    finally:
        observability.emit_summary()
