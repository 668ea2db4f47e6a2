from __future__ import annotations

import json
from pathlib import Path

import pytest

from scratch_git.app import AppConfigError, initialize_config
from scratch_git.config import DEFAULT_SERVER_URL, ClientConfig, load_config


@pytest.fixture(autouse=True)
def _no_url_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("SCRATCH_GIT_URL", raising=False)


def test_client_config_defaults() -> None:
    config = ClientConfig()
    assert config.server.url == DEFAULT_SERVER_URL
    assert config.cache.enabled is True
    assert config.request_timeout_s is None
    assert config.log_level == "INFO"


def test_load_config_without_file_uses_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path) == ClientConfig()


def test_load_config_from_pyproject(tmp_path: Path) -> None:
    pyproject = tmp_path / "pyproject.toml"
    pyproject.write_text(
        """
[tool.scratch_git]
request_timeout_s = 15
log_level = "DEBUG"

[tool.scratch_git.server]
url = "ws://127.0.0.1:9000"

[tool.scratch_git.cache]
enabled = false
max_entries = 8
""",
        encoding="utf-8",
    )

    config = load_config(tmp_path)

    assert config.server.url == "ws://127.0.0.1:9000"
    assert config.cache.enabled is False
    assert config.cache.max_entries == 8
    assert config.request_timeout_s == 15.0
    assert config.log_level == "DEBUG"


def test_pyproject_without_tool_section_is_skipped(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text("[project]\nname = 'other'\n", encoding="utf-8")

    assert load_config(tmp_path) == ClientConfig()


def test_environment_overrides_server_url(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    config_path = tmp_path / "scratch_git.toml"
    config_path.write_text('[server]\nurl = "ws://file.test:1"\n', encoding="utf-8")
    monkeypatch.setenv("SCRATCH_GIT_URL", "ws://env.test:2")

    assert load_config(config_path).server.url == "ws://env.test:2"


def test_load_config_from_non_json_yaml(tmp_path: Path) -> None:
    pytest.importorskip("yaml")
    config_path = tmp_path / "scratch_git.yaml"
    config_path.write_text(
        """
server:
  url: ws://yaml.test:8000
cache:
  max_entries: 4
""",
        encoding="utf-8",
    )

    config = load_config(config_path)

    assert config.server.url == "ws://yaml.test:8000"
    assert config.cache.max_entries == 4


def test_invalid_cache_size_is_rejected(tmp_path: Path) -> None:
    config_path = tmp_path / "scratch_git.json"
    config_path.write_text(json.dumps({"cache": {"max_entries": 0}}), encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(config_path)


def test_initialize_config_round_trips(tmp_path: Path) -> None:
    config_path = initialize_config(tmp_path)

    assert config_path.name == "scratch_git.yaml"
    assert load_config(tmp_path) == ClientConfig()
    with pytest.raises(AppConfigError):
        initialize_config(tmp_path)
