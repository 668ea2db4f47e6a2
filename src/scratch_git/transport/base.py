"""Abstract connection interface and transport errors."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum


class ScratchGitError(RuntimeError):
    """Base exception for scratch-git client failures."""


class TransportError(ScratchGitError):
    """Raised when the connection fails, closes, or times out."""


class ProtocolError(ScratchGitError):
    """Raised when the server sends a non-JSON or malformed payload."""


class ServerFault(ScratchGitError):
    """Raised when the server reports an unhandled error for a request."""

    def __init__(self, detail: str, command: str | None = None) -> None:
        self.detail = detail
        self.command = command
        prefix = f"{command}: " if command else ""
        super().__init__(f"{prefix}unhandled server error: {detail}")


class ConnectionState(str, Enum):
    """Lifecycle states of a connection."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


class Connection(ABC):
    """One bidirectional text channel to the scratch-git server."""

    @property
    @abstractmethod
    def state(self) -> ConnectionState:
        """Return the current lifecycle state."""

    def start(self) -> None:
        """Begin opening the channel without waiting. Optional for implementations."""

    @abstractmethod
    async def wait_open(self) -> None:
        """Wait until the connection is open.

        Raises:
            TransportError: If the connection closed or failed to open.
        """

    @abstractmethod
    async def send_text(self, text: str) -> None:
        """Send one text frame."""

    @abstractmethod
    async def receive_text(self) -> str | None:
        """Return the next inbound text frame, or None once the channel closes.

        Raises:
            TransportError: On a connection-level error event.
        """

    @abstractmethod
    async def close(self) -> None:
        """Close the channel. Closing twice is a no-op."""
