"""Client configuration for the Home Assistant hub."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from urllib.parse import urlsplit

from .errors import HassConfigError

ENV_SERVER = "HASS_SERVER"
ENV_TOKEN = "HASS_TOKEN"

WS_PATH = "/api/websocket"

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True, slots=True)
class HassConfig:
    """Hub address and credentials.

    Attributes:
        server: HTTP base URL advertised by the hub, e.g. ``http://hub.local:8123``
        token: Long-lived access token used for both REST and WebSocket auth
    """

    server: str
    token: str

    def __post_init__(self) -> None:
        parts = urlsplit(self.server)
        if parts.scheme not in _DEFAULT_PORTS or not parts.hostname:
            raise HassConfigError(f"Invalid hub server URL: {self.server!r}")
        if not self.token:
            raise HassConfigError("Access token must not be empty")

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> HassConfig:
        """Build a config from ``HASS_SERVER`` and ``HASS_TOKEN``."""
        env = os.environ if env is None else env
        missing = [name for name in (ENV_SERVER, ENV_TOKEN) if not env.get(name)]
        if missing:
            raise HassConfigError(
                f"Missing environment variable(s): {', '.join(missing)}"
            )
        return cls(server=env[ENV_SERVER], token=env[ENV_TOKEN])

    @property
    def ws_host(self) -> str:
        hostname = urlsplit(self.server).hostname
        if hostname is None:
            raise HassConfigError(f"Hub server URL has no host: {self.server!r}")
        return hostname

    @property
    def ws_port(self) -> int:
        parts = urlsplit(self.server)
        return parts.port or _DEFAULT_PORTS[parts.scheme]

    def route(self, path: str) -> str:
        """Return the absolute REST URL for ``path``."""
        return f"{self.server.rstrip('/')}{path}"
