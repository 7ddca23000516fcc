"""Authenticated request/response session over a hub connection."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from types import TracebackType
from typing import Any

from ..errors import HassInvalidAuth
from .connection import HassConnection

_LOGGER = logging.getLogger(__name__)


class Correlation(Enum):
    """How ``HassSession.call`` pairs a request with its reply."""

    ID = "id"
    FIFO = "fifo"


class HassSession:
    """Authenticated WebSocket session.

    Each ``call`` gets the next request id. With ``Correlation.ID`` the reply
    is the message echoing that id; messages without a matching id (events,
    late replies) stay in the connection inbox. ``Correlation.FIFO`` returns
    the next inbox message instead, which is only correct for a single caller
    awaiting one request at a time on a hub that sends nothing unsolicited.

    Usage:
        async with await HassSession.connect("hub.local", 8123, token) as session:
            reply = await session.call("config/entity_registry/list")
    """

    def __init__(
        self,
        connection: HassConnection,
        token: str,
        *,
        correlation: Correlation = Correlation.ID,
    ) -> None:
        self.connection = connection
        self.token = token
        self.correlation = correlation
        self._request_counter = 0

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        token: str,
        *,
        correlation: Correlation = Correlation.ID,
        timeout: float | None = 15.0,
    ) -> HassSession:
        """Open a connection to ``host:port`` and authenticate with ``token``."""
        connection = HassConnection(host, port)
        session = cls(connection, token, correlation=correlation)
        try:
            await connection.open()
            await connection.wait_open(timeout)
            await session.authenticate(timeout=timeout)
        except BaseException:
            await connection.close()
            raise
        return session

    @property
    def request_counter(self) -> int:
        """Id of the most recent request (0 before the first call)."""
        return self._request_counter

    async def authenticate(self, *, timeout: float | None = None) -> dict[str, Any]:
        """Send the access token and check the hub's verdict.

        The hub may answer with an ``auth_required`` challenge before the
        actual outcome, in which case one more message is read.

        Raises:
            HassInvalidAuth: If the hub answers ``auth_invalid``
        """
        _LOGGER.debug("Authenticating with %s", self.connection.url)

        response = await self._request(
            {"type": "auth", "access_token": self.token}, timeout=timeout
        )
        if response.get("type") == "auth_required":
            response = await self.connection.pop_inbox(timeout)

        if response.get("type") == "auth_invalid":
            raise HassInvalidAuth(str(response.get("message", "Invalid access token")))

        _LOGGER.debug(
            "Authenticated with %s (ha_version=%s)",
            self.connection.url,
            response.get("ha_version"),
        )
        return response

    async def call(
        self,
        msg_type: str,
        params: Mapping[str, Any] | None = None,
        *,
        timeout: float | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """Send a ``msg_type`` request and return its reply.

        Args:
            msg_type: Hub command, e.g. ``"config/entity_registry/list"``
            params: Extra top-level request fields
            timeout: Seconds to wait for the reply; None waits indefinitely
            **kwargs: More request fields, merged after ``params``
        """
        self._request_counter += 1
        request_id = self._request_counter

        payload: dict[str, Any] = {"type": msg_type, "id": request_id}
        payload.update(params or {})
        payload.update(kwargs)
        payload["id"] = request_id

        if self.correlation is Correlation.FIFO:
            return await self._request(payload, timeout=timeout)

        future = self.connection.expect_reply(request_id)
        try:
            await self.connection.send_json(payload)
            return await self.connection.wait_reply(future, timeout)
        finally:
            self.connection.discard_reply(request_id)

    async def _request(
        self, payload: Mapping[str, Any], *, timeout: float | None = None
    ) -> dict[str, Any]:
        await self.connection.send_json(payload)
        return await self.connection.pop_inbox(timeout)

    async def close(self) -> None:
        """Close the underlying connection."""
        await self.connection.close()

    async def __aenter__(self) -> HassSession:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
