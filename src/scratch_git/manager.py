"""Project manager: entry point for obtaining and creating projects."""

from __future__ import annotations

from pathlib import PurePath
from typing import Protocol

from scratch_git.project import Project
from scratch_git.transport.base import ProtocolError, ScratchGitError
from scratch_git.transport.client import Transport
from scratch_git.transport.protocol import Command
from scratch_git.util.logging import get_logger

_LOGGER = get_logger("scratch_git.manager")


class DomainError(ScratchGitError):
    """Raised when the server refuses a project operation."""


class ProjectExistsError(DomainError):
    """Raised when creating a project whose file is already version-controlled."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(
            f"{name} is already a project. Either load the existing project or make a copy "
            "of the project file."
        )


class UnhandledServerError(DomainError):
    """Raised when the server reports an explicit failure status."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(
            f"An uncaught error occurred during {operation}. Please check the server's logs "
            "and report the issue."
        )


class HostState(Protocol):
    """Read-only view of the host editor's UI state."""

    def current_project_title(self) -> str | None:
        """Return the title of the project open in the editor, if any."""


class ProjectManager:
    """Creates projects that all share one transport."""

    def __init__(self, transport: Transport, host: HostState | None = None) -> None:
        """Initialize the manager.

        Args:
            transport: Open transport shared with every project handed out.
            host: Host editor state used to resolve the current project.
        """

        self._transport = transport
        self._host = host

    @property
    def transport(self) -> Transport:
        return self._transport

    def get_project(self, name: str) -> Project:
        """Return a project bound to the shared transport.

        The project is not checked for existence; call ``exists()`` for that.
        """

        return Project(name, self._transport)

    async def create_project(self, path: str, username: str, email: str) -> Project:
        """Link a project file to version control.

        Args:
            path: Path to the project's ``.sb3`` file on the server's machine.
            username: Author name for commits.
            email: Author email for commits.

        Raises:
            ProjectExistsError: If the project file is already linked.
            UnhandledServerError: If the server reports a failure.
            ProtocolError: If the response has an unknown shape.
        """

        payload = {"ProjectToCreate": {"file_path": path, "username": username, "email": email}}
        # Creation is not idempotent, so it never goes through the cache.
        response = await self._transport.request(Command.CREATE_PROJECT, payload, cached=False)
        if not isinstance(response, dict):
            raise ProtocolError(f"Malformed create-project response: {response!r}")

        status = response.get("status")
        if status == "exists":
            raise ProjectExistsError(_file_name(path))
        if status == "fail":
            raise UnhandledServerError("project creation")
        if status is not None:
            raise ProtocolError(f"Unknown create-project status: {status!r}")

        project_name = response.get("project_name")
        if not isinstance(project_name, str) or not project_name:
            raise ProtocolError(f"create-project response has no project name: {response!r}")
        _LOGGER.info("Created project %s from %s", project_name, path)
        return Project(project_name, self._transport)

    def get_current_project(self) -> Project | None:
        """Return the project open in the host editor, or None if there is none.

        The project is not checked for a version control link.
        """

        if self._host is None:
            return None
        title = self._host.current_project_title()
        if not title:
            return None
        return Project(title, self._transport)


def _file_name(path: str) -> str:
    # Paths come from the server's platform; accept both separators.
    return PurePath(path.replace("\\", "/")).name or path
