"""Raw byte stream to the Home Assistant hub."""

from __future__ import annotations

import asyncio
import logging

from ..errors import HassConnectionError, HassTransportError

_LOGGER = logging.getLogger(__name__)

DEFAULT_READ_SIZE = 4096


class HassStreamTransport:
    """TCP stream carrying opaque byte chunks.

    Framing is not handled here: ``read`` returns whatever the socket has
    available, which may be a partial WebSocket frame or several frames.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        read_size: int = DEFAULT_READ_SIZE,
        timeout: float = 15.0,
    ) -> None:
        self.host = host
        self.port = port
        self._read_size = read_size
        self._timeout = timeout
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def is_open(self) -> bool:
        """Return True while the stream can be written to."""
        return self._writer is not None and not self._writer.is_closing()

    async def connect(self) -> None:
        """Open the TCP stream.

        Raises:
            HassConnectionError: If the hub refuses, is unreachable or does not
                answer within the connect timeout
        """
        try:
            self._reader, self._writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port),
                timeout=self._timeout,
            )
        except TimeoutError as err:
            raise HassConnectionError(
                f"Connection to {self.host}:{self.port} timed out"
            ) from err
        except OSError as err:
            raise HassConnectionError(
                f"Connection to {self.host}:{self.port} failed: {err}"
            ) from err

    async def write(self, data: bytes) -> None:
        """Send a chunk of bytes."""
        if self._writer is None or self._writer.is_closing():
            raise HassTransportError("Stream is not open")

        _LOGGER.debug("Sending WS packet: %r", data)

        self._writer.write(data)
        try:
            await self._writer.drain()
        except OSError as err:
            raise HassConnectionError(f"Write failed: {err}") from err

    async def read(self) -> bytes:
        """Wait for data and return it; ``b""`` signals end of stream."""
        if self._reader is None:
            raise HassTransportError("Stream is not open")
        try:
            return await self._reader.read(self._read_size)
        except OSError as err:
            raise HassConnectionError(f"Read failed: {err}") from err

    async def close(self) -> None:
        """Close the stream (no error if already closed)."""
        writer, self._writer = self._writer, None
        if writer is None:
            return
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            _LOGGER.debug("Stream to %s:%s closed with error", self.host, self.port)
