"""JSON envelope protocol spoken with the scratch-git server.

Request format:
    {
        "command": "<command tag>",
        "data": {...},          # command-specific payload
        "id": 7                 # correlation id, unique per transport
    }

Response format:
    A command-specific JSON value. A mapping carrying the reserved
    "unhandled-error" field reports a server fault instead of a payload.
    Servers that echo "id" get responses routed by id; responses without
    one answer the oldest pending request.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Final

from scratch_git.transport.base import ProtocolError

UNHANDLED_ERROR_FIELD: Final[str] = "unhandled-error"
ID_FIELD: Final[str] = "id"


class Command(str, Enum):
    """Catalogue of client-originated commands."""

    EXISTS = "exists"
    GET_COMMITS = "get-commits"
    GET_CHANGED_SPRITES = "get-changed-sprites"
    GET_CHANGED_ASSETS = "get-changed-assets"
    CURRENT_PROJECT = "current-project"
    PREVIOUS_PROJECT = "previous-project"
    COMMIT = "commit"
    PUSH = "push"
    PULL = "pull"
    UNZIP = "unzip"
    GET_PROJECT_DETAILS = "get-project-details"
    SET_PROJECT_DETAILS = "set-project-details"
    REPO_STATUS = "repo-status"
    CREATE_PROJECT = "create-project"
    DIFF = "diff"
    CLONE_REPO = "clone-repo"
    REMOTE_EXISTS = "remote-exists"
    UNINSTALL = "uninstall"


# Commands that change server state; sending one drops every cached response.
MUTATING_COMMANDS: Final[frozenset[Command]] = frozenset(
    {
        Command.COMMIT,
        Command.PUSH,
        Command.PULL,
        Command.UNZIP,
        Command.SET_PROJECT_DETAILS,
        Command.CREATE_PROJECT,
        Command.CLONE_REPO,
        Command.UNINSTALL,
    }
)


def parse_command(command: Command | str) -> Command:
    """Return the catalogue entry for a command tag.

    Raises:
        ProtocolError: If the tag is not part of the catalogue.
    """

    try:
        return Command(command)
    except ValueError as exc:
        raise ProtocolError(f"Unknown command: {command!r}") from exc


def canonical_key(command: Command, data: Any) -> str:
    """Return the deterministic serialization identifying one invocation."""

    return json.dumps(
        {"command": command.value, "data": data},
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def encode_request(command: Command, data: Any, request_id: int) -> str:
    """Serialize a request envelope into a text frame."""

    envelope = {"command": command.value, "data": data, ID_FIELD: request_id}
    return json.dumps(envelope, ensure_ascii=False)


def decode_message(text: str) -> Any:
    """Parse an inbound text frame.

    Raises:
        ProtocolError: If the frame is not valid JSON.
    """

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProtocolError(f"Server sent a non-JSON message: {text[:200]!r}") from exc


def message_id(message: Any) -> int | None:
    """Return the correlation id echoed by the server, if any."""

    if isinstance(message, dict):
        value = message.get(ID_FIELD)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def unhandled_error(message: Any) -> str | None:
    """Return the server fault detail carried by a message, if any."""

    if isinstance(message, dict) and message.get(UNHANDLED_ERROR_FIELD):
        return str(message[UNHANDLED_ERROR_FIELD])
    return None


def project_payload(project_name: str, **extra: Any) -> dict[str, Any]:
    """Build the ``Project`` payload most commands take."""

    return {"Project": {"project_name": project_name, **extra}}
