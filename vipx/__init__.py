"""Client for the Evertz VIP-X line-delimited JSON-RPC 2.0 control protocol."""

from .cache import DeviceStateCache
from .client import DEFAULT_HOST, DEFAULT_PORT, VipxClient
from .errors import (
    ConnectionLostError,
    FrameParseError,
    HandshakeError,
    ResponseShapeError,
    RpcError,
    RpcProtocolError,
    RpcTimeoutError,
    TransportError,
    VipxError,
)
from .models import (
    ConnectionStatus,
    Display,
    Entity,
    HandshakeState,
    Input,
    Layout,
    Snapshot,
    Window,
)

__version__ = "0.1.0"

__all__ = [
    "ConnectionLostError",
    "ConnectionStatus",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "DeviceStateCache",
    "Display",
    "Entity",
    "FrameParseError",
    "HandshakeError",
    "HandshakeState",
    "Input",
    "Layout",
    "ResponseShapeError",
    "RpcError",
    "RpcProtocolError",
    "RpcTimeoutError",
    "Snapshot",
    "TransportError",
    "VipxClient",
    "VipxError",
    "Window",
]
