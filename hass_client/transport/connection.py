"""Stateful WebSocket connection to the Home Assistant hub.

The connection layers the sans-I/O ``websockets`` client protocol on top of a
raw byte stream. A single listener task owns the stream's read side: it feeds
received bytes to the protocol, answers control frames and turns complete
text messages into decoded mappings.

Decoded messages are routed two ways:
- a message whose ``id`` matches a reply slot registered with
  ``expect_reply`` fulfils that slot;
- every other message lands in the inbox, a FIFO queue read with
  ``pop_inbox``.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Mapping
from enum import Enum
from typing import Any

from websockets.client import ClientProtocol
from websockets.exceptions import InvalidState
from websockets.frames import Frame, Opcode
from websockets.http11 import Response
from websockets.protocol import State
from websockets.uri import parse_uri

from ..config import WS_PATH
from ..errors import (
    HassClientError,
    HassConnectionError,
    HassProtocolError,
    HassTimeout,
)
from .stream import HassStreamTransport

_LOGGER = logging.getLogger(__name__)

CLOSE_TIMEOUT = 5.0


class ConnectionState(Enum):
    """Lifecycle states of a hub connection."""

    UNINITIALIZED = "uninitialized"
    OPEN = "open"
    CLOSED = "closed"


_ALLOWED_TRANSITIONS: dict[ConnectionState, frozenset[ConnectionState]] = {
    ConnectionState.UNINITIALIZED: frozenset(
        {ConnectionState.OPEN, ConnectionState.CLOSED}
    ),
    ConnectionState.OPEN: frozenset({ConnectionState.CLOSED}),
    ConnectionState.CLOSED: frozenset(),
}


class HassConnection:
    """Message-oriented WebSocket channel with a background listener.

    Usage:
        connection = HassConnection("192.168.1.10", 8123)
        await connection.open()
        await connection.wait_open()
        await connection.send_json({"type": "ping", "id": 1})
        message = await connection.pop_inbox()
        await connection.close()
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        path: str = WS_PATH,
        transport: HassStreamTransport | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.path = path

        self._transport = transport or HassStreamTransport(host, port)
        self._protocol = ClientProtocol(
            parse_uri(f"ws://{host}:{port}{path}"),
            max_size=None,
        )

        self._state = ConnectionState.UNINITIALIZED
        self._listen_task: asyncio.Task[None] | None = None
        self._inbox: asyncio.Queue[dict[str, Any]] = asyncio.Queue()
        self._pending: dict[int, asyncio.Future[dict[str, Any]]] = {}
        self._fragments: list[bytes] | None = None

        self._opened = asyncio.Event()
        self._closed = asyncio.Event()
        self._close_reason: BaseException | None = None

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}{self.path}"

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_open(self) -> bool:
        return self.state_is(ConnectionState.OPEN)

    @property
    def is_closed(self) -> bool:
        return self.state_is(ConnectionState.CLOSED)

    def state_is(self, state: ConnectionState) -> bool:
        """Return True when the connection is in ``state``."""
        self._validate_state(state)
        return self._state is state

    @staticmethod
    def _validate_state(state: Any) -> None:
        if not isinstance(state, ConnectionState):
            raise HassProtocolError(f"Invalid state: {state!r}")

    def _update_state(self, state: ConnectionState) -> None:
        self._validate_state(state)
        if state not in _ALLOWED_TRANSITIONS[self._state]:
            raise HassProtocolError(
                f"Invalid WS state transition from {self._state.value} to {state.value}"
            )

        _LOGGER.debug(
            "Transitioning WS state from %s to %s", self._state.value, state.value
        )
        self._state = state

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self) -> None:
        """Connect the stream, start the handshake and the listener task."""
        if self._listen_task is not None:
            raise HassProtocolError("Listener task already exists")
        if self.is_closed:
            raise HassProtocolError("Connection is closed")

        _LOGGER.debug("Connecting to %s", self.url)
        await self._transport.connect()

        self._start_listener()
        self._protocol.send_request(self._protocol.connect())
        await self._flush()

    def _start_listener(self) -> None:
        if self._listen_task is not None:
            raise HassProtocolError("Listener task already exists")

        _LOGGER.debug("Creating WS listener task")
        self._listen_task = asyncio.create_task(
            self._listen(), name=f"hass-ws-listener-{self.host}:{self.port}"
        )

    async def wait_open(self, timeout: float | None = None) -> None:
        """Wait until the WebSocket handshake has completed."""
        if self._listen_task is None:
            raise HassProtocolError("Connection has not been opened")
        if self.is_open:
            return
        opened = asyncio.ensure_future(self._opened.wait())
        await self._wait_unless_closed(opened, timeout, "WebSocket handshake")

    async def close(self) -> None:
        """Send a close frame and wait for the listener to finish."""
        task = self._listen_task
        if task is None:
            if not self.is_closed:
                self._handle_close(None)
            await self._transport.close()
            return

        close_sent = False
        if not self.is_closed and self._protocol.state is State.OPEN:
            self._protocol.send_close(1000)
            try:
                await self._flush()
                close_sent = True
            except HassConnectionError as err:
                _LOGGER.debug("Close frame not sent: %s", err)

        if not task.done() and not close_sent and not self.is_closed:
            # No closing handshake to wait for
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        elif not task.done():
            try:
                await asyncio.wait_for(asyncio.shield(task), timeout=CLOSE_TIMEOUT)
            except TimeoutError:
                _LOGGER.warning("WebSocket close timed out for %s", self.url)
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)

        await self._transport.close()

    # -------------------------------------------------------------------------
    # Outbound
    # -------------------------------------------------------------------------

    async def send_json(self, message: Mapping[str, Any]) -> None:
        """Encode ``message`` as JSON and send it as a text frame."""
        await self.send(json.dumps(dict(message)))

    async def send(self, text: str) -> None:
        """Send a text frame, waiting for the handshake if it is in flight."""
        if self.is_closed:
            raise HassProtocolError("Cannot send on a closed WebSocket connection")
        if not self.is_open:
            await self.wait_open()

        try:
            self._protocol.send_text(text.encode())
        except InvalidState as err:
            raise HassProtocolError(f"Cannot send in WebSocket state: {err}") from err
        await self._flush()

    async def _flush(self) -> None:
        for data in self._protocol.data_to_send():
            # An empty chunk asks for a half-close; the stream closes with the listener.
            if data:
                await self._transport.write(data)

    # -------------------------------------------------------------------------
    # Inbound
    # -------------------------------------------------------------------------

    async def pop_inbox(self, timeout: float | None = None) -> dict[str, Any]:
        """Remove and return the oldest inbox message, waiting if none is queued.

        Raises:
            HassTimeout: If ``timeout`` seconds pass without a message
            HassConnectionError: If the connection closes with an empty inbox
        """
        if not self._inbox.empty():
            return self._inbox.get_nowait()
        if self.is_closed:
            raise self._closed_error()

        getter = asyncio.ensure_future(self._inbox.get())
        return await self._wait_unless_closed(getter, timeout, "inbox message")

    @property
    def inbox_size(self) -> int:
        return self._inbox.qsize()

    def expect_reply(self, request_id: int) -> asyncio.Future[dict[str, Any]]:
        """Register a reply slot fulfilled by the message carrying ``request_id``."""
        if self.is_closed:
            raise self._closed_error()
        if request_id in self._pending:
            raise HassProtocolError(f"Request id {request_id} is already pending")

        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[request_id] = future
        return future

    def discard_reply(self, request_id: int) -> None:
        """Drop the reply slot for ``request_id`` if it is still registered."""
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()

    async def wait_reply(
        self, future: asyncio.Future[dict[str, Any]], timeout: float | None = None
    ) -> dict[str, Any]:
        """Wait for a slot returned by ``expect_reply``."""
        return await self._wait_unless_closed(future, timeout, "reply")

    async def _wait_unless_closed(
        self,
        future: asyncio.Future[Any],
        timeout: float | None,
        description: str,
    ) -> Any:
        closed = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait(
                {future, closed},
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            closed.cancel()

        if future in done:
            return future.result()

        future.cancel()
        if closed in done:
            raise self._closed_error()
        raise HassTimeout(f"Timed out after {timeout}s waiting for {description}")

    def _closed_error(self) -> HassClientError:
        reason = self._close_reason
        error: HassClientError
        if isinstance(reason, HassProtocolError):
            error = HassProtocolError(str(reason))
        elif reason is not None:
            error = HassConnectionError(f"WebSocket connection closed: {reason}")
        else:
            error = HassConnectionError("WebSocket connection closed")
        error.__cause__ = reason
        return error

    # -------------------------------------------------------------------------
    # Listener
    # -------------------------------------------------------------------------

    async def _listen(self) -> None:
        try:
            while not self.state_is(ConnectionState.CLOSED):
                data = await self._transport.read()
                if data:
                    self._protocol.receive_data(data)
                else:
                    self._protocol.receive_eof()

                for event in self._protocol.events_received():
                    self._handle_event(event)

                if self._transport.is_open:
                    await self._flush()

                if not data and not self.is_closed:
                    self._handle_close(HassConnectionError("Stream ended"))
        except HassClientError as err:
            _LOGGER.debug("WS listener for %s stopped: %s", self.url, err)
            self._handle_close(err)
        finally:
            if not self.is_closed:
                self._handle_close(HassConnectionError("Listener stopped"))
            await self._transport.close()

    def _handle_event(self, event: Response | Frame) -> None:
        if isinstance(event, Response):
            if self._protocol.handshake_exc is not None:
                raise HassProtocolError(
                    f"WebSocket handshake failed: {self._protocol.handshake_exc}"
                )
            self._handle_open(event)
        elif isinstance(event, Frame):
            self._handle_frame(event)

    def _handle_open(self, response: Response) -> None:
        self._update_state(ConnectionState.OPEN)
        self._opened.set()
        _LOGGER.debug("WS connection opened %s (status %s)", self.url, response.status_code)

    def _handle_frame(self, frame: Frame) -> None:
        if frame.opcode is Opcode.TEXT:
            self._fragments = [bytes(frame.data)]
        elif frame.opcode is Opcode.CONT and self._fragments is not None:
            self._fragments.append(bytes(frame.data))
        elif frame.opcode is Opcode.BINARY:
            self._fragments = None
            return
        elif frame.opcode is Opcode.CLOSE:
            self._handle_close(None)
            return
        else:
            return

        if frame.fin and self._fragments is not None:
            data = b"".join(self._fragments)
            self._fragments = None
            try:
                text = data.decode()
            except UnicodeDecodeError as err:
                raise HassProtocolError(
                    f"Received invalid UTF-8 text frame: {data!r}"
                ) from err
            self._handle_server_reply(text)

    def _handle_server_reply(self, text: str) -> None:
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as err:
            raise HassProtocolError(f"Received invalid JSON frame: {text!r}") from err

        messages = payload if isinstance(payload, list) else [payload]
        for message in messages:
            if not isinstance(message, dict):
                raise HassProtocolError(f"Received non-object message: {message!r}")
            self._dispatch(message)

    def _dispatch(self, message: dict[str, Any]) -> None:
        msg_id = message.get("id")
        if isinstance(msg_id, int) and not isinstance(msg_id, bool):
            future = self._pending.pop(msg_id, None)
            if future is not None and not future.done():
                future.set_result(message)
                return
        self._inbox.put_nowait(message)

    def _handle_close(self, reason: BaseException | None) -> None:
        if self.is_closed:
            return

        self._update_state(ConnectionState.CLOSED)
        self._close_reason = reason
        self._closed.set()

        close_rcvd = self._protocol.close_rcvd
        _LOGGER.debug(
            "WS connection closed: %s (close frame: %s)", reason or "remote", close_rcvd
        )

        for request_id, future in list(self._pending.items()):
            if not future.done():
                future.set_exception(self._closed_error())
            self._pending.pop(request_id, None)
