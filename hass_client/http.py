"""HTTP client for Home Assistant REST endpoints."""

from __future__ import annotations

import logging
from typing import Any

import aiohttp

from .config import HassConfig
from .errors import (
    HassConnectionError,
    HassResponseError,
    HassTimeout,
)
from .responses import EntityState

_LOGGER = logging.getLogger(__name__)

SHADE_DEVICE_CLASS = "shade"


class HassHttpClient:
    """HTTP client wrapper for Home Assistant REST endpoints."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        config: HassConfig,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._config = config
        self._timeout = aiohttp.ClientTimeout(total=timeout)

    def _auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._config.token}"}

    async def _request(
        self, method: str, path: str, *, json: dict[str, Any] | None = None
    ) -> Any:
        url = self._config.route(path)
        _LOGGER.debug("%s %s", method, url)
        try:
            async with self._session.request(
                method,
                url,
                headers=self._auth_headers(),
                json=json,
                timeout=self._timeout,
            ) as resp:
                if not 200 <= resp.status < 300:
                    body = await resp.text()
                    raise HassResponseError(
                        resp.status, f"Error: {resp.status} - {body}"
                    )
                return await resp.json()
        except TimeoutError as err:
            raise HassTimeout(f"{method} {path} timed out") from err
        except aiohttp.ClientError as err:
            raise HassConnectionError(f"{method} {path} failed: {err}") from err

    async def list_states(self) -> list[EntityState]:
        """Fetch every entity state from /api/states."""
        states = await self._request("GET", "/api/states")
        return [EntityState(state) for state in states]

    async def list_shades(self) -> list[str]:
        """Return the entity ids of all shade covers."""
        return [
            state.entity_id
            for state in await self.list_states()
            if state.device_class == SHADE_DEVICE_CLASS
        ]

    async def open_shade(self, entity_id: str) -> Any:
        """Open a shade via the cover.open_cover service."""
        return await self._change_shade_state(entity_id, "open")

    async def close_shade(self, entity_id: str) -> Any:
        """Close a shade via the cover.close_cover service."""
        return await self._change_shade_state(entity_id, "close")

    async def _change_shade_state(self, entity_id: str, state: str) -> Any:
        return await self._request(
            "POST",
            f"/api/services/cover/{state}_cover",
            json={"entity_id": entity_id},
        )
