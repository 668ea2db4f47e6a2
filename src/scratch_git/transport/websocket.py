"""Websocket connection to the scratch-git server, backed by aiohttp."""

from __future__ import annotations

import asyncio

import aiohttp

from scratch_git.transport.base import (
    Connection,
    ConnectionState,
    ProtocolError,
    TransportError,
)
from scratch_git.util.logging import get_logger

_LOGGER = get_logger("scratch_git.transport.websocket")

# Script documents of large projects easily exceed aiohttp's 4 MiB default.
DEFAULT_MAX_MSG_SIZE = 64 * 1024 * 1024


class WebSocketConnection(Connection):
    """Manages one websocket connection to the server.

    The handshake starts on :meth:`start` (or lazily on first use). Sends made
    while the handshake is in flight wait for it to finish.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        max_msg_size: int = DEFAULT_MAX_MSG_SIZE,
    ) -> None:
        self.url = url
        self._session = session
        self._owns_session = session is None
        self._max_msg_size = max_msg_size
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._state = ConnectionState.CONNECTING

    @property
    def state(self) -> ConnectionState:
        return self._state

    def start(self) -> None:
        """Begin the websocket handshake in the background."""

        if self._connect_task is None and self._state is ConnectionState.CONNECTING:
            self._connect_task = asyncio.get_running_loop().create_task(self._connect())

    async def _connect(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        try:
            self._ws = await self._session.ws_connect(self.url, max_msg_size=self._max_msg_size)
        except (aiohttp.ClientError, OSError) as exc:
            self._state = ConnectionState.CLOSED
            await self._close_session()
            raise TransportError(f"Unable to connect to {self.url}: {exc}") from exc
        if self._state is ConnectionState.CLOSED:
            # Closed while the handshake was in flight.
            await self._ws.close()
            await self._close_session()
            raise TransportError(f"Connection to {self.url} closed while connecting.")
        self._state = ConnectionState.OPEN
        _LOGGER.debug("Connected to %s", self.url)

    async def wait_open(self) -> None:
        await self._open_socket()

    async def _open_socket(self) -> aiohttp.ClientWebSocketResponse:
        if self._state is ConnectionState.CONNECTING:
            self.start()
        if self._connect_task is not None and not self._connect_task.done():
            await asyncio.shield(self._connect_task)
        elif self._connect_task is not None and not self._connect_task.cancelled():
            # Re-raise a failed handshake.
            self._connect_task.result()
        if self._state is not ConnectionState.OPEN or self._ws is None:
            raise TransportError(f"Connection to {self.url} is closed.")
        return self._ws

    async def send_text(self, text: str) -> None:
        ws = await self._open_socket()
        try:
            await ws.send_str(text)
        except (aiohttp.ClientError, ConnectionResetError) as exc:
            raise TransportError(f"Failed to send to {self.url}: {exc}") from exc

    async def receive_text(self) -> str | None:
        ws = await self._open_socket()
        while True:
            msg = await ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                try:
                    return msg.data.decode("utf-8")
                except UnicodeDecodeError as exc:
                    raise ProtocolError(f"Server sent a non-UTF-8 binary frame: {exc}") from exc
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                self._state = ConnectionState.CLOSED
                return None
            if msg.type == aiohttp.WSMsgType.ERROR:
                self._state = ConnectionState.CLOSED
                raise TransportError(f"Websocket error from {self.url}: {ws.exception()}")

    async def close(self) -> None:
        self._state = ConnectionState.CLOSED
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
            try:
                await self._connect_task
            except (asyncio.CancelledError, TransportError):
                pass
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        await self._close_session()

    async def _close_session(self) -> None:
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
