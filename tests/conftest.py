"""Pytest configuration and fixtures for hass_client tests."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Iterable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from websockets.frames import Frame, Opcode
from websockets.http11 import Request
from websockets.server import ServerProtocol

from hass_client.config import HassConfig
from hass_client.errors import HassTransportError
from hass_client.transport.connection import HassConnection

Handler = Callable[[dict[str, Any]], Iterable[dict[str, Any]]]


class LoopbackTransport:
    """In-memory byte stream with a scripted WebSocket server on the far end.

    Bytes written by the client are parsed by a ``websockets`` server
    protocol; every text message it receives is recorded and passed to
    ``handler``, whose return values are sent back as replies.
    """

    def __init__(self, handler: Handler | None = None, *, reject: bool = False) -> None:
        self.server = ServerProtocol()
        self.handler = handler
        self.reject = reject
        self.received: list[dict[str, Any]] = []
        self.connected = False
        self.closed = False
        self._incoming: asyncio.Queue[bytes] = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self.connected and not self.closed

    async def connect(self) -> None:
        self.connected = True

    async def write(self, data: bytes) -> None:
        if not self.is_open:
            raise HassTransportError("Stream is not open")
        self.server.receive_data(data)
        for event in self.server.events_received():
            if isinstance(event, Request):
                if self.reject:
                    response = self.server.reject(403, "Forbidden")
                else:
                    response = self.server.accept(event)
                self.server.send_response(response)
            elif isinstance(event, Frame) and event.opcode is Opcode.TEXT:
                message = json.loads(bytes(event.data))
                self.received.append(message)
                if self.handler is not None:
                    for reply in self.handler(message):
                        self.server.send_text(json.dumps(reply).encode())
        self.pump()

    async def read(self) -> bytes:
        return await self._incoming.get()

    async def close(self) -> None:
        self.closed = True

    def send_json(self, message: Any) -> None:
        """Push an unsolicited message from the server."""
        self.server.send_text(json.dumps(message).encode())
        self.pump()

    def send_fragments(self, *parts: str) -> None:
        """Push one text message split across several frames."""
        first, *rest = parts
        self.server.send_text(first.encode(), fin=not rest)
        for index, part in enumerate(rest):
            self.server.send_continuation(part.encode(), fin=index == len(rest) - 1)
        self.pump()

    def send_raw_text(self, text: str) -> None:
        self.server.send_text(text.encode())
        self.pump()

    def close_from_server(self, code: int = 1000) -> None:
        self.server.send_close(code)
        self.pump()

    def end_stream(self) -> None:
        self._incoming.put_nowait(b"")

    def pump(self) -> None:
        """Move queued server output onto the client side of the stream."""
        for data in self.server.data_to_send():
            self._incoming.put_nowait(data)


def auth_handler(
    *, required_first: bool = False, valid: bool = True
) -> Handler:
    """Build a handler answering auth requests and echoing ``id`` on commands."""

    def handle(message: dict[str, Any]) -> list[dict[str, Any]]:
        if message["type"] == "auth":
            replies: list[dict[str, Any]] = []
            if required_first:
                replies.append({"type": "auth_required", "ha_version": "2024.1.0"})
            if valid:
                replies.append({"type": "auth_ok", "ha_version": "2024.1.0"})
            else:
                replies.append(
                    {"type": "auth_invalid", "message": "Invalid access token or password"}
                )
            return replies
        return [
            {
                "id": message["id"],
                "type": "result",
                "success": True,
                "result": {"echo": message["type"]},
            }
        ]

    return handle


@pytest.fixture
def loopback() -> LoopbackTransport:
    """Loopback stream answering every command with its own id."""
    return LoopbackTransport(auth_handler())


@pytest.fixture
async def open_connection(loopback: LoopbackTransport):
    """An opened, handshaken connection over ``loopback``."""
    connection = HassConnection("hub.local", 8123, transport=loopback)
    await connection.open()
    await connection.wait_open(timeout=1)
    yield connection
    await connection.close()


@pytest.fixture
def hass_config() -> HassConfig:
    return HassConfig(server="http://hub.local:8123", token="secret-token")


@pytest.fixture
def mock_session() -> MagicMock:
    """Create a mock aiohttp ClientSession."""
    import aiohttp

    return MagicMock(spec=aiohttp.ClientSession)


def create_mock_response(
    status: int = 200,
    json_data: Any = None,
    text_data: str | None = None,
) -> AsyncMock:
    """Create a configured mock aiohttp response usable as a context manager."""
    response = AsyncMock()
    response.status = status

    if json_data is not None:
        response.json.return_value = json_data
    if text_data is not None:
        response.text.return_value = text_data

    response.__aenter__.return_value = response
    response.__aexit__.return_value = None

    return response
