"""Configuration models and loaders for the scratch-git client."""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

DEFAULT_SERVER_URL = "ws://localhost:8000"
CONFIG_FILE_NAMES: tuple[str, ...] = (
    "scratch_git.toml",
    "scratch_git.yaml",
    "scratch_git.yml",
    "scratch_git.json",
    "pyproject.toml",
)
URL_ENV_VAR = "SCRATCH_GIT_URL"


@dataclass(frozen=True)
class ClientConfig:
    """Top-level configuration for the client.

    Attributes:
        server: Where the scratch-git server listens.
        cache: Response cache settings.
        request_timeout_s: Default seconds to wait for a response; None waits forever.
        log_level: Logging level name used by the CLI.
    """

    server: ServerConfig = field(default_factory=lambda: ServerConfig())
    cache: CacheConfig = field(default_factory=lambda: CacheConfig())
    request_timeout_s: float | None = None
    log_level: str = "INFO"


@dataclass(frozen=True)
class ServerConfig:
    """Location of the scratch-git server."""

    url: str = DEFAULT_SERVER_URL


@dataclass(frozen=True)
class CacheConfig:
    """Configuration for the response cache."""

    enabled: bool = True
    max_entries: int = 128


def load_config(path: Path | None = None) -> ClientConfig:
    """Load client configuration from disk.

    Args:
        path: Optional path to a configuration file or a directory to search.

    Returns:
        Parsed ClientConfig with defaults applied when no config exists, and
        the server URL overridden by ``SCRATCH_GIT_URL`` when set.
    """

    config_path = _resolve_config_path(path)
    if config_path is None:
        config = ClientConfig()
    elif config_path.suffix in {".yaml", ".yml", ".json"}:
        config = _parse_client_config(_load_yaml(config_path))
    elif config_path.suffix == ".toml":
        config = _parse_client_config(_load_toml(config_path))
    else:
        raise ValueError(f"Unsupported config file type: {config_path}")

    env_url = os.getenv(URL_ENV_VAR)
    if env_url:
        config = update_server_url(config, env_url)
    return config


def config_to_dict(config: ClientConfig) -> dict[str, Any]:
    """Serialize a ClientConfig into a JSON-compatible dictionary."""

    return {
        "server": {"url": config.server.url},
        "cache": {
            "enabled": config.cache.enabled,
            "max_entries": config.cache.max_entries,
        },
        "request_timeout_s": config.request_timeout_s,
        "log_level": config.log_level,
    }


def update_server_url(config: ClientConfig, url: str) -> ClientConfig:
    """Return a config copy pointing at another server."""

    return replace(config, server=replace(config.server, url=url))


def _resolve_config_path(path: Path | None) -> Path | None:
    if path is not None and path.is_file():
        return path
    directory = path if path is not None else Path.cwd()
    for name in CONFIG_FILE_NAMES:
        candidate = directory / name
        if not candidate.is_file():
            continue
        if name == "pyproject.toml" and not _has_tool_section(candidate):
            continue
        return candidate
    return None


def _has_tool_section(path: Path) -> bool:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    return "scratch_git" in data.get("tool", {})


def _load_toml(path: Path) -> dict[str, Any]:
    with path.open("rb") as handle:
        data = tomllib.load(handle)
    if path.name == "pyproject.toml":
        tool_config = data.get("tool", {}).get("scratch_git", {})
        if not isinstance(tool_config, dict):
            raise ValueError("tool.scratch_git must be a mapping.")
        return tool_config
    return data


def _load_yaml(path: Path) -> dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        data = None
    if data is not None:
        if not isinstance(data, dict):
            raise ValueError("YAML configuration must be a mapping.")
        return data
    try:
        import yaml  # type: ignore[import-untyped]
    except ImportError as exc:
        raise RuntimeError(
            "PyYAML is required to parse non-JSON YAML configuration files."
        ) from exc
    parsed = yaml.safe_load(text)
    if not isinstance(parsed, dict):
        raise ValueError("YAML configuration must be a mapping.")
    return parsed


def _parse_client_config(raw_data: dict[str, Any]) -> ClientConfig:
    return ClientConfig(
        server=_parse_server_config(raw_data.get("server", {})),
        cache=_parse_cache_config(raw_data.get("cache", {})),
        request_timeout_s=_optional_float(raw_data.get("request_timeout_s")),
        log_level=str(raw_data.get("log_level", "INFO")),
    )


def _parse_server_config(raw: Any) -> ServerConfig:
    if not isinstance(raw, dict):
        return ServerConfig()
    return ServerConfig(url=str(raw.get("url", DEFAULT_SERVER_URL)))


def _parse_cache_config(raw: Any) -> CacheConfig:
    if not isinstance(raw, dict):
        return CacheConfig()
    max_entries = int(raw.get("max_entries", 128))
    if max_entries < 1:
        raise ValueError("cache.max_entries must be at least 1.")
    return CacheConfig(
        enabled=bool(raw.get("enabled", True)),
        max_entries=max_entries,
    )


def _optional_float(value: Any) -> float | None:
    if value is None:
        return None
    return float(value)
