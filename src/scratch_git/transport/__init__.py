"""Transport layer: connections, envelope protocol, and response cache."""

from scratch_git.transport.base import (
    Connection,
    ConnectionState,
    ProtocolError,
    ScratchGitError,
    ServerFault,
    TransportError,
)
from scratch_git.transport.cache import ResponseCache
from scratch_git.transport.client import FaultNotifier, Transport
from scratch_git.transport.protocol import Command
from scratch_git.transport.websocket import WebSocketConnection

__all__ = [
    "Command",
    "Connection",
    "ConnectionState",
    "FaultNotifier",
    "ProtocolError",
    "ResponseCache",
    "ScratchGitError",
    "ServerFault",
    "Transport",
    "TransportError",
    "WebSocketConnection",
]
