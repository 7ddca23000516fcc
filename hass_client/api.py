"""Combined REST and WebSocket access to one hub."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from .config import HassConfig
from .http import HassHttpClient
from .responses import EntityRegistryList
from .transport.session import HassSession

_LOGGER = logging.getLogger(__name__)


class HassApi:
    """Entry point for hub commands.

    Simple commands go over REST. Registry queries need the WebSocket API,
    whose session is opened and authenticated on first use and reused after.
    """

    def __init__(self, config: HassConfig, http_session: aiohttp.ClientSession) -> None:
        self.config = config
        self.http = HassHttpClient(http_session, config)
        self._ws: HassSession | None = None
        self._ws_lock = asyncio.Lock()

    async def ws(self) -> HassSession:
        """Return the authenticated WebSocket session, connecting if needed."""
        async with self._ws_lock:
            if self._ws is None:
                _LOGGER.debug(
                    "Opening WebSocket session to %s:%s",
                    self.config.ws_host,
                    self.config.ws_port,
                )
                self._ws = await HassSession.connect(
                    self.config.ws_host, self.config.ws_port, self.config.token
                )
            return self._ws

    async def list_shades(self) -> list[str]:
        return await self.http.list_shades()

    async def open_shade(self, entity_id: str) -> Any:
        return await self.http.open_shade(entity_id)

    async def close_shade(self, entity_id: str) -> Any:
        return await self.http.close_shade(entity_id)

    async def list_entity_registry(self) -> EntityRegistryList:
        """Fetch the entity registry over the WebSocket API."""
        session = await self.ws()
        reply = await session.call("config/entity_registry/list")
        return EntityRegistryList(reply)

    async def close(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
