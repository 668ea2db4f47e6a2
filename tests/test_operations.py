from __future__ import annotations

import asyncio
from typing import Any

import pytest

from helpers import FakeConnection, Handler
from scratch_git import operations
from scratch_git.transport.base import ProtocolError
from scratch_git.transport.client import Transport


class _FakeServer:
    """Hands out one fresh fake connection per ad hoc operation."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.connections: list[FakeConnection] = []
        self.urls: list[str] = []

    def open_transport(self, url: str, **kwargs: Any) -> Transport:
        connection = FakeConnection(self.handler)
        self.connections.append(connection)
        self.urls.append(url)
        return Transport(connection, **kwargs)

    @property
    def sent(self) -> list[dict[str, Any]]:
        return [envelope for connection in self.connections for envelope in connection.sent]


@pytest.fixture
def server(monkeypatch: pytest.MonkeyPatch) -> _FakeServer:
    fake = _FakeServer(lambda _: {})
    monkeypatch.setattr(operations, "open_transport", fake.open_transport)
    return fake


def test_diff_opens_its_own_connection(server: _FakeServer) -> None:
    server.handler = lambda _: {"added": 2, "removed": 1, "diffed": "+a\n+b\n-c"}

    result = asyncio.run(operations.diff("cat", "new", "old", url="ws://example.test:9000"))

    assert (result.added, result.removed, result.diffed) == (2, 1, "+a\n+b\n-c")
    assert server.urls == ["ws://example.test:9000"]
    assert server.sent[0]["command"] == "diff"
    assert server.sent[0]["data"] == {
        "GitDiff": {"project_name": "cat", "old_content": "old", "new_content": "new"}
    }
    assert server.connections[0].closed_calls == 1


def test_diff_defaults_old_script_to_empty(server: _FakeServer) -> None:
    server.handler = lambda _: {"added": 1, "removed": 0, "diffed": "+a"}

    asyncio.run(operations.diff("cat", "a"))

    assert server.sent[0]["data"]["GitDiff"]["old_content"] == ""


def test_diff_rejects_malformed_response(server: _FakeServer) -> None:
    server.handler = lambda _: {"added": "2"}

    with pytest.raises(ProtocolError):
        asyncio.run(operations.diff("cat", "a"))


def test_repeated_ad_hoc_calls_use_separate_connections(server: _FakeServer) -> None:
    server.handler = lambda _: {"exists": True}

    asyncio.run(operations.remote_exists("git@example.com:ada/cat.git"))
    asyncio.run(operations.remote_exists("git@example.com:ada/cat.git"))

    assert len(server.connections) == 2
    assert server.sent[0]["data"] == {"URL": "git@example.com:ada/cat.git"}


def test_check_remote_accepts_valid_url_without_round_trip(server: _FakeServer) -> None:
    assert asyncio.run(operations.check_remote("https://github.com/ada/cat.git")) is True
    assert server.connections == []


@pytest.mark.parametrize("reachable", [True, False])
def test_check_remote_asks_server_about_malformed_url(server: _FakeServer, reachable: bool) -> None:
    server.handler = lambda _: {"exists": reachable}

    assert asyncio.run(operations.check_remote("git@github.com:ada/cat.git")) is reachable
    assert server.sent[0]["command"] == "remote-exists"


def test_remote_exists_requires_boolean(server: _FakeServer) -> None:
    server.handler = lambda _: {"exists": "yes"}

    with pytest.raises(ProtocolError):
        asyncio.run(operations.remote_exists("not a url"))


@pytest.mark.parametrize(
    ("value", "valid"),
    [
        ("https://github.com/ada/cat.git", True),
        ("ssh://git@github.com/ada/cat.git", True),
        ("file:///srv/git/cat.git", True),
        ("git@github.com:ada/cat.git", False),
        ("github.com/ada/cat", False),
        ("", False),
        ("http://[broken", False),
    ],
)
def test_is_valid_url(value: str, valid: bool) -> None:
    assert operations.is_valid_url(value) is valid


def test_clone_repo(server: _FakeServer) -> None:
    server.handler = lambda _: {"project_name": "cat"}

    result = asyncio.run(operations.clone_repo("https://github.com/ada/cat.git"))

    assert result.success is True
    assert result.detail == {"project_name": "cat"}
    assert server.sent[0] == {
        "command": "clone-repo",
        "data": {"URL": "https://github.com/ada/cat.git"},
        "id": 1,
    }


@pytest.mark.parametrize(
    ("response", "success"),
    [({}, True), (True, True), (False, False), ({"status": "fail"}, False)],
)
def test_uninstall_reports_actual_outcome(
    server: _FakeServer, response: Any, success: bool
) -> None:
    server.handler = lambda _: response

    result = asyncio.run(operations.uninstall())

    assert result.success is success
    assert server.sent[0]["data"] == {"Project": {"project_name": ""}}
