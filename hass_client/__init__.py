"""Client for the Home Assistant REST and WebSocket APIs."""

__version__ = "0.1.0"

from .api import HassApi
from .config import HassConfig
from .envelope import Envelope, FrozenDict, field, freeze, optional_field
from .errors import (
    HassClientError,
    HassConfigError,
    HassConnectionError,
    HassInvalidAuth,
    HassProtocolError,
    HassResponseError,
    HassTimeout,
    HassTransportError,
    MissingFieldError,
)
from .http import HassHttpClient
from .responses import (
    EntityRegistryEntry,
    EntityRegistryList,
    EntityState,
    ResultMessage,
)
from .transport import (
    ConnectionState,
    Correlation,
    HassConnection,
    HassSession,
    HassStreamTransport,
)

__all__ = [
    "ConnectionState",
    "Correlation",
    "EntityRegistryEntry",
    "EntityRegistryList",
    "EntityState",
    "Envelope",
    "FrozenDict",
    "HassApi",
    "HassClientError",
    "HassConfig",
    "HassConfigError",
    "HassConnection",
    "HassConnectionError",
    "HassHttpClient",
    "HassInvalidAuth",
    "HassProtocolError",
    "HassResponseError",
    "HassSession",
    "HassStreamTransport",
    "HassTimeout",
    "HassTransportError",
    "MissingFieldError",
    "__version__",
    "field",
    "freeze",
    "optional_field",
]
