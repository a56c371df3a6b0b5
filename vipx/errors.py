"""Exception types for the VIP-X JSON-RPC client."""
from __future__ import annotations

from typing import Any


class VipxError(Exception):
    """Base class for every error raised by the client."""


class TransportError(VipxError):
    """Connect, write or socket-level failure."""


class FrameParseError(VipxError):
    """A single received line could not be decoded as a JSON object."""

    def __init__(self, line: str, reason: str) -> None:
        super().__init__(f"{reason} | data={line!r}")
        self.line = line
        self.reason = reason


class ResponseShapeError(VipxError):
    """A response matched neither the nested nor the flattened shape."""


class RpcError(VipxError):
    """Base class for errors scoped to a single RPC call."""

    def __init__(self, method: str, message: str) -> None:
        super().__init__(message)
        self.method = method


class RpcTimeoutError(RpcError):
    """No response arrived before the call deadline."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(method, f"RPC timeout: {method}")
        self.timeout = timeout


class RpcProtocolError(RpcError):
    """The server answered with an ``error`` member."""

    def __init__(self, method: str, error: Any) -> None:
        message = None
        if isinstance(error, dict):
            message = error.get("message")
        super().__init__(method, f"{method} -> {message or 'error'}")
        self.error = error
        self.server_message = message


class ConnectionLostError(RpcError):
    """The connection dropped while the call was queued or in flight."""

    def __init__(self, method: str) -> None:
        super().__init__(method, f"{method} -> connection lost")


class HandshakeError(VipxError):
    """The handshake call failed, timed out or returned no version.

    The connection is unusable until a fresh handshake succeeds, so this is
    reported as a hard connection failure rather than a plain disconnect.
    """
