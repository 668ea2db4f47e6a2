"""Project facade: one transport request per version control operation."""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from scratch_git.models import (
    AssetChanges,
    Commit,
    CommitResult,
    GitDetails,
    PullStatus,
    PushStatus,
    RepoStatus,
    SpriteChange,
    collation_key,
    parse_asset_changes,
)
from scratch_git.scripts import ScriptDocument
from scratch_git.transport.base import ProtocolError
from scratch_git.transport.client import Transport
from scratch_git.transport.protocol import Command, project_payload

_EnumT = TypeVar("_EnumT", bound=Enum)


class Project:
    """A version-controlled project on the server.

    Projects borrow the transport of the manager that created them and have
    no teardown of their own.
    """

    def __init__(self, name: str, transport: Transport) -> None:
        self._name = name
        self._transport = transport

    @property
    def name(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Project({self._name!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Project):
            return NotImplemented
        return self._name == other._name and self._transport is other._transport

    def __hash__(self) -> int:
        return hash((self._name, id(self._transport)))

    async def exists(self) -> bool:
        """Return whether the project has been linked to version control."""

        response = await self._request(Command.EXISTS)
        return _expect_bool(_field(response, "exists"), "exists")

    async def get_commits(self) -> list[Commit]:
        """Return the project's commits, newest first as sent by the server."""

        response = await self._request(Command.GET_COMMITS)
        if not isinstance(response, list):
            raise ProtocolError(f"Malformed commit list: {response!r}")
        return [Commit.from_payload(entry) for entry in response]

    async def get_changed_sprites(self) -> list[SpriteChange]:
        """Return sprites changed since the last commit, sorted by name."""

        response = await self._request(Command.GET_CHANGED_SPRITES)
        entries = _field(response, "sprites")
        if not isinstance(entries, list):
            raise ProtocolError(f"Malformed sprite list: {response!r}")
        sprites = [SpriteChange.from_payload(entry) for entry in entries]
        return sorted(sprites, key=lambda sprite: collation_key(sprite.name))

    async def get_changed_assets(self) -> AssetChanges:
        response = await self._request(Command.GET_CHANGED_ASSETS)
        return parse_asset_changes(_field(response, "data"))

    async def get_current_scripts(self, sprite: str) -> ScriptDocument:
        """Return a sprite's scripts as of the latest save."""

        response = await self._request(Command.CURRENT_PROJECT, sprite_name=sprite)
        return ScriptDocument.from_payload(response, sprite)

    async def get_previous_scripts(self, sprite: str) -> ScriptDocument:
        """Return a sprite's scripts as they were before the latest save."""

        response = await self._request(Command.PREVIOUS_PROJECT, sprite_name=sprite)
        return ScriptDocument.from_payload(response, sprite)

    async def commit(self) -> CommitResult:
        response = await self._request(Command.COMMIT)
        return CommitResult.from_payload(response)

    async def push(self) -> PushStatus:
        response = await self._request(Command.PUSH)
        return _expect_enum(PushStatus, _field(response, "status"))

    async def pull(self) -> PullStatus:
        """Pull upstream changes from the configured remote.

        The server may wait for credentials entered in its terminal before it
        answers, so this can take arbitrarily long.
        """

        response = await self._request(Command.PULL)
        return _expect_enum(PullStatus, _field(response, "status"))

    async def unzip(self) -> dict[str, Any]:
        """Extract the latest project archive on the server."""

        response = await self._request(Command.UNZIP)
        if not isinstance(response, dict):
            raise ProtocolError(f"Malformed unzip acknowledgement: {response!r}")
        return response

    async def get_details(self) -> GitDetails:
        response = await self._request(Command.GET_PROJECT_DETAILS)
        return GitDetails.from_payload(response)

    async def set_details(self, details: GitDetails) -> bool:
        """Set the remote repository, username, and email.

        Returns:
            Whether the server stored the details.
        """

        payload = {"GitDetails": {"project_name": self._name, **details.to_payload()}}
        response = await self._transport.request(Command.SET_PROJECT_DETAILS, payload)
        return _expect_bool(response, "set-project-details")

    async def repo_status(self) -> RepoStatus:
        response = await self._request(Command.REPO_STATUS)
        return RepoStatus.from_payload(response)

    async def _request(self, command: Command, **extra: Any) -> Any:
        return await self._transport.request(command, project_payload(self._name, **extra))


def _field(response: Any, name: str) -> Any:
    if not isinstance(response, dict) or name not in response:
        raise ProtocolError(f"Response is missing {name!r}: {response!r}")
    return response[name]


def _expect_bool(value: Any, what: str) -> bool:
    if not isinstance(value, bool):
        raise ProtocolError(f"Expected a boolean for {what}, got {value!r}")
    return value


def _expect_enum(enum_type: type[_EnumT], value: Any) -> _EnumT:
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ProtocolError(f"Unexpected {enum_type.__name__} value: {value!r}") from exc
