"""Client error types for Home Assistant hub interactions."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any


class HassClientError(Exception):
    """Base error for Home Assistant client failures."""


class HassConfigError(HassClientError):
    """Required client configuration is missing or malformed."""


class HassTimeout(HassClientError):
    """Timeout while communicating with the hub."""


class HassConnectionError(HassClientError):
    """Network connection to the hub failed or was lost."""


class HassTransportError(HassConnectionError):
    """Write attempted on a stream that is not open."""


class HassProtocolError(HassClientError):
    """A connection state or framing invariant was violated."""


class HassInvalidAuth(HassClientError):
    """The hub rejected the access token."""

    def __init__(self, server_message: str) -> None:
        super().__init__(server_message)
        self.server_message = server_message


class HassResponseError(HassClientError):
    """HTTP response error from the hub."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status


class MissingFieldError(HassClientError, KeyError):
    """A declared field could not be resolved in a response payload."""

    def __init__(self, path: Sequence[str], key: str, payload: Any) -> None:
        self.path = tuple(path)
        self.key = key
        self.payload = payload
        super().__init__(
            f"Missing key {key!r} while resolving path {list(self.path)!r} "
            f"in payload {payload!r}"
        )

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message
        return str(self.args[0])
