"""Request/response transport multiplexed over one server connection."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass
from typing import Any, Callable

import aiohttp

from scratch_git.transport.base import (
    Connection,
    ConnectionState,
    ProtocolError,
    ServerFault,
    TransportError,
)
from scratch_git.transport.cache import ResponseCache
from scratch_git.transport.protocol import (
    ID_FIELD,
    MUTATING_COMMANDS,
    Command,
    canonical_key,
    decode_message,
    encode_request,
    message_id,
    parse_command,
    unhandled_error,
)
from scratch_git.transport.websocket import WebSocketConnection
from scratch_git.util.logging import get_logger
from scratch_git.util.observability import ObservabilityManager

FaultNotifier = Callable[[ServerFault], None]

_LOGGER = get_logger("scratch_git.transport")


@dataclass
class _PendingRequest:
    command: Command
    key: str
    future: asyncio.Future[Any]
    cacheable: bool
    generation: int


class Transport:
    """Sends command envelopes and resolves each with its response.

    Every request carries an id and waits on its own future, so several
    requests may be outstanding on one connection. Responses that echo the
    id are routed by it; responses without one answer the oldest pending
    request. Read-only responses are cached by canonical request key until a
    state-changing command is sent.
    """

    def __init__(
        self,
        connection: Connection,
        *,
        cache: ResponseCache | None = None,
        request_timeout_s: float | None = None,
        notifier: FaultNotifier | None = None,
        observability: ObservabilityManager | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            connection: Connection to the server. The transport owns it.
            cache: Response cache; a fresh one is created when omitted.
            request_timeout_s: Default per-request timeout. None waits forever.
            notifier: Callback raising a user-facing notification for server faults.
            observability: Optional structured logging and metrics.
        """

        self._connection = connection
        self._cache = cache if cache is not None else ResponseCache()
        self._request_timeout_s = request_timeout_s
        self._notifier = notifier
        self._observability = observability
        self._pending: dict[int, _PendingRequest] = {}
        self._next_id = 0
        # Bumped by every mutating command; older in-flight reads are not cached.
        self._generation = 0
        self._send_lock = asyncio.Lock()
        self._reader_task: asyncio.Task[None] | None = None
        self._closed = False

    @classmethod
    def connect(
        cls,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        **kwargs: Any,
    ) -> Transport:
        """Build a transport over a websocket to ``url``. Call :meth:`open` next."""

        return cls(WebSocketConnection(url, session=session), **kwargs)

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def observability(self) -> ObservabilityManager | None:
        return self._observability

    @property
    def state(self) -> ConnectionState:
        if self._closed:
            return ConnectionState.CLOSED
        return self._connection.state

    @property
    def pending_count(self) -> int:
        return sum(1 for pending in self._pending.values() if not pending.future.done())

    async def open(self) -> Transport:
        """Start reading from the connection.

        Returns as soon as the reader is running; requests sent before the
        handshake completes are held until the connection opens.
        """

        if self._closed:
            raise TransportError("Transport is closed.")
        if self._reader_task is None:
            self._connection.start()
            self._reader_task = asyncio.get_running_loop().create_task(self._read_loop())
        return self

    async def close(self) -> None:
        """Close the connection and fail every pending request."""

        if self._closed:
            return
        self._closed = True
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        await self._connection.close()
        self._fail_pending(TransportError("Transport closed."))

    async def __aenter__(self) -> Transport:
        return await self.open()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def invalidate(self, command: Command | str, data: Any) -> bool:
        """Drop the cached response for one request, if any."""

        return self._cache.invalidate(canonical_key(parse_command(command), data))

    async def request(
        self,
        command: Command | str,
        data: Any,
        *,
        cached: bool = True,
        timeout: float | None = None,
    ) -> Any:
        """Send one command envelope and return its response.

        Args:
            command: Command tag from the catalogue.
            data: Command-specific payload.
            cached: Whether a cached response may answer this request.
            timeout: Seconds to wait for the response. Defaults to the
                transport's ``request_timeout_s``.

        Raises:
            TransportError: If the connection fails, closes, or times out.
            ProtocolError: If the command is unknown or the response is not JSON.
            ServerFault: If the server reports an unhandled error.
        """

        parsed = parse_command(command)
        if self._closed:
            raise TransportError("Transport is closed.")
        if self._reader_task is None:
            await self.open()
        elif self._reader_task.done():
            raise TransportError("Connection is closed.")

        key = canonical_key(parsed, data)
        cacheable = cached and parsed not in MUTATING_COMMANDS
        if cacheable:
            hit, response = self._cache.get(key)
            if hit:
                self._count("cache_hits")
                self._event("transport.cache_hit", {"command": parsed.value}, level="DEBUG")
                return response
        if parsed in MUTATING_COMMANDS:
            self._cache.clear()
            self._generation += 1

        self._next_id += 1
        request_id = self._next_id
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = _PendingRequest(
            parsed, key, future, cacheable, self._generation
        )
        wait_s = timeout if timeout is not None else self._request_timeout_s

        self._count("requests")
        self._event("transport.request", {"command": parsed.value, "id": request_id}, level="DEBUG")
        sent = False
        try:
            with self._track(parsed):
                async with self._send_lock:
                    await self._connection.send_text(encode_request(parsed, data, request_id))
                sent = True
                if wait_s is None:
                    return await future
                return await asyncio.wait_for(future, wait_s)
        except asyncio.TimeoutError as exc:
            self._count("timeouts")
            raise TransportError(f"{parsed.value} timed out after {wait_s}s.") from exc
        finally:
            if not sent:
                self._pending.pop(request_id, None)
            elif request_id in self._pending:
                # Abandoned after sending: the entry stays as a placeholder so the
                # late reply is matched to it and dropped.
                future.cancel()

    async def _read_loop(self) -> None:
        try:
            while True:
                try:
                    text = await self._connection.receive_text()
                except ProtocolError as exc:
                    self._reject_oldest(exc)
                    continue
                if text is None:
                    break
                self._dispatch(text)
        except TransportError as exc:
            _LOGGER.warning("Connection error: %s", exc)
            self._fail_pending(exc)
            return
        self._fail_pending(TransportError("Connection closed by server."))

    def _dispatch(self, text: str) -> None:
        _LOGGER.debug("message %s", text[:500])
        try:
            message = decode_message(text)
        except ProtocolError as exc:
            self._reject_oldest(exc)
            return

        request_id = message_id(message)
        pending = self._take_pending(request_id)

        detail = unhandled_error(message)
        if detail is not None:
            fault = ServerFault(detail, pending.command.value if pending else None)
            self._report_fault(fault)
            if pending is not None:
                pending.future.set_exception(fault)
            return

        if pending is None:
            _LOGGER.warning("Dropping unsolicited message: %s", text[:200])
            return
        if request_id is not None and isinstance(message, dict):
            message = {name: value for name, value in message.items() if name != ID_FIELD}
        if pending.cacheable and pending.generation == self._generation:
            self._cache.put(pending.key, message)
        pending.future.set_result(message)

    def _reject_oldest(self, error: ProtocolError) -> None:
        pending = self._take_pending(None)
        if pending is None:
            _LOGGER.warning("Dropping unreadable message with no pending request: %s", error)
            return
        pending.future.set_exception(error)

    def _take_pending(self, request_id: int | None) -> _PendingRequest | None:
        if request_id is not None:
            # Replies to requests that already timed out or were cancelled are dropped.
            pending = self._pending.pop(request_id, None)
            if pending is None or pending.future.done():
                return None
            return pending
        # No usable id: the reply belongs to the oldest request sent.
        if not self._pending:
            return None
        oldest = self._pending.pop(next(iter(self._pending)))
        return None if oldest.future.done() else oldest

    def _fail_pending(self, error: Exception) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for item in pending:
            if not item.future.done():
                item.future.set_exception(error)

    def _report_fault(self, fault: ServerFault) -> None:
        _LOGGER.error(
            'The following error "%s" occurred while handling %s. Please report this issue '
            "along with the server logs.",
            fault.detail,
            fault.command or "an unknown request",
        )
        self._count("server_faults")
        self._event(
            "transport.server_fault",
            {"command": fault.command, "detail": fault.detail},
            level="ERROR",
        )
        if self._notifier is None:
            return
        try:
            self._notifier(fault)
        except Exception:
            _LOGGER.exception("Server fault notifier failed")

    def _count(self, name: str) -> None:
        if self._observability is not None:
            self._observability.metrics.increment(name)

    def _event(self, event_type: str, payload: dict[str, Any], *, level: str = "INFO") -> None:
        if self._observability is not None:
            self._observability.log_event(event_type, payload, level=level)

    def _track(self, command: Command) -> contextlib.AbstractContextManager[None]:
        if self._observability is None:
            return contextlib.nullcontext()
        return self._observability.track_duration(f"command.{command.value}")
