from __future__ import annotations

import asyncio
import json
from typing import Any, Callable

from scratch_git.transport.base import Connection, ConnectionState, TransportError
from scratch_git.transport.client import Transport

NO_REPLY = object()

Handler = Callable[[dict[str, Any]], Any]


class FakeConnection(Connection):
    """In-memory server: answers each sent envelope with ``handler(envelope)``."""

    def __init__(
        self,
        handler: Handler | None = None,
        *,
        echo_ids: bool = False,
        open_immediately: bool = True,
    ) -> None:
        self.handler = handler
        self.echo_ids = echo_ids
        self.sent: list[dict[str, Any]] = []
        self.closed_calls = 0
        self._inbox: asyncio.Queue[str | Exception | None] = asyncio.Queue()
        self._opened = asyncio.Event()
        self._state = ConnectionState.CONNECTING
        if open_immediately:
            self.open_now()

    @property
    def state(self) -> ConnectionState:
        return self._state

    def open_now(self) -> None:
        self._state = ConnectionState.OPEN
        self._opened.set()

    async def wait_open(self) -> None:
        if self._state is ConnectionState.CLOSED:
            raise TransportError("closed")
        await self._opened.wait()
        if self._state is not ConnectionState.OPEN:
            raise TransportError("closed")

    async def send_text(self, text: str) -> None:
        await self.wait_open()
        envelope = json.loads(text)
        self.sent.append(envelope)
        if self.handler is None:
            return
        reply = self.handler(envelope)
        if reply is NO_REPLY:
            return
        if self.echo_ids and isinstance(reply, dict):
            reply = {**reply, "id": envelope["id"]}
        self.push(reply)

    def push(self, message: Any) -> None:
        self._inbox.put_nowait(message if isinstance(message, str) else json.dumps(message))

    def fail(self, error: Exception) -> None:
        self._inbox.put_nowait(error)

    def hang_up(self) -> None:
        self._inbox.put_nowait(None)

    async def receive_text(self) -> str | None:
        await self.wait_open()
        item = await self._inbox.get()
        if isinstance(item, Exception):
            self._state = ConnectionState.CLOSED
            raise item
        if item is None:
            self._state = ConnectionState.CLOSED
        return item

    async def close(self) -> None:
        self.closed_calls += 1
        self._state = ConnectionState.CLOSED
        self._opened.set()
        self._inbox.put_nowait(None)


def replies(table: dict[str, Any]) -> Handler:
    """Handler answering by command tag."""

    def handler(envelope: dict[str, Any]) -> Any:
        return table[envelope["command"]]

    return handler


def fake_transport(
    handler: Handler | None = None, **kwargs: Any
) -> tuple[Transport, FakeConnection]:
    connection = FakeConnection(handler)
    return Transport(connection, **kwargs), connection
