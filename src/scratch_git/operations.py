"""Standalone operations, each on its own short-lived connection."""

from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from scratch_git.config import DEFAULT_SERVER_URL
from scratch_git.models import DiffResult, OperationResult
from scratch_git.transport.base import ProtocolError
from scratch_git.transport.client import Transport
from scratch_git.transport.protocol import Command, project_payload
from scratch_git.util.logging import get_logger

_LOGGER = get_logger("scratch_git.operations")


def open_transport(url: str, **kwargs: Any) -> Transport:
    """Build the transport used by one ad hoc operation."""

    return Transport.connect(url, **kwargs)


async def _one_shot(url: str, command: Command, data: Any, **kwargs: Any) -> Any:
    async with open_transport(url, **kwargs) as transport:
        return await transport.request(command, data, cached=False)


async def diff(
    project_name: str,
    new_script: str,
    old_script: str = "",
    *,
    url: str = DEFAULT_SERVER_URL,
    **kwargs: Any,
) -> DiffResult:
    """Diff two rendered scripts of a sprite.

    Args:
        project_name: Project the scripts belong to.
        new_script: Script text after a save.
        old_script: Script text before the save; empty for a new sprite.
        url: Server URL.

    Returns:
        Added and removed line counts plus the rendered diff body.
    """

    payload = {
        "GitDiff": {
            "project_name": project_name,
            "old_content": old_script,
            "new_content": new_script,
        }
    }
    return DiffResult.from_payload(await _one_shot(url, Command.DIFF, payload, **kwargs))


async def clone_repo(
    repository_url: str,
    *,
    url: str = DEFAULT_SERVER_URL,
    **kwargs: Any,
) -> OperationResult:
    """Clone a remote repository into a new local project on the server."""

    response = await _one_shot(url, Command.CLONE_REPO, {"URL": repository_url}, **kwargs)
    return OperationResult.from_payload(response)


async def remote_exists(
    repository_url: str,
    *,
    url: str = DEFAULT_SERVER_URL,
    **kwargs: Any,
) -> bool:
    """Ask the server whether a git remote can be reached."""

    response = await _one_shot(url, Command.REMOTE_EXISTS, {"URL": repository_url}, **kwargs)
    exists = response.get("exists") if isinstance(response, dict) else None
    if not isinstance(exists, bool):
        raise ProtocolError(f"Malformed remote-exists response: {response!r}")
    return exists


def is_valid_url(value: str) -> bool:
    """Return whether ``value`` parses as an absolute URL with a host."""

    try:
        parts = urlsplit(value.strip())
    except ValueError:
        return False
    if not parts.scheme:
        return False
    return bool(parts.netloc) or parts.scheme == "file"


async def check_remote(
    repository_url: str,
    *,
    url: str = DEFAULT_SERVER_URL,
    **kwargs: Any,
) -> bool:
    """Return whether a user-entered repository location is usable.

    Well-formed URLs are accepted without contacting the server. Anything
    else, such as scp-style ``git@host:owner/repo.git``, is checked over the
    network by the server instead of being rejected outright.
    """

    if is_valid_url(repository_url):
        return True
    _LOGGER.debug("Asking the server about non-URL remote %r", repository_url)
    return await remote_exists(repository_url, url=url, **kwargs)


async def uninstall(*, url: str = DEFAULT_SERVER_URL, **kwargs: Any) -> OperationResult:
    """Ask the server to remove its installation."""

    response = await _one_shot(url, Command.UNINSTALL, project_payload(""), **kwargs)
    result = OperationResult.from_payload(response)
    if not result.success:
        _LOGGER.warning("Uninstall failed: %s", result.detail)
    return result
