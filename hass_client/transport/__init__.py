"""Transport layer for the Home Assistant WebSocket API.

Components:
- stream: raw TCP byte stream
- connection: WebSocket handshake, framing, state machine and inbox
- session: authentication and request/reply correlation
"""

from .connection import ConnectionState, HassConnection
from .session import Correlation, HassSession
from .stream import HassStreamTransport

__all__ = [
    "ConnectionState",
    "Correlation",
    "HassConnection",
    "HassSession",
    "HassStreamTransport",
]
