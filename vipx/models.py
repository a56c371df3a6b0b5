"""
Data models for the VIP-X JSON-RPC client.

Entity records mirror what the device reports for its displays, layouts,
windows, inputs and snapshots. Only ``id`` and ``name`` are interpreted;
every other member the device sends is kept in ``extra`` so records can be
passed back to collaborators unchanged.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class HandshakeState(enum.Enum):
    """Lifecycle state of the single logical connection."""

    DISCONNECTED = "disconnected"
    TCP_CONNECTING = "tcp_connecting"
    AWAITING_HANDSHAKE = "awaiting_handshake"
    READY = "ready"


class ConnectionStatus(enum.Enum):
    """Operator-facing status indicator."""

    CONNECTING = "connecting"
    OK = "ok"
    DISCONNECTED = "disconnected"
    CONNECTION_FAILURE = "connection_failure"


@dataclass
class Entity:
    """
    A device-side record with an integer identifier and a display name.

    Attributes:
        id: Identifier, unique within its collection
        name: Human-readable name (not guaranteed unique)
        extra: Any additional members sent by the device
    """

    id: int
    name: str = ""
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> "Entity":
        """
        Build a record from a decoded JSON object.

        Args:
            data: Object with at least an integer ``id`` member

        Returns:
            Record of the calling class

        Raises:
            ValueError: If ``data`` is not an object or has no usable id
        """
        if not isinstance(data, dict):
            raise ValueError(f"{cls.__name__} record must be an object, got {type(data).__name__}")

        raw_id = data.get("id")
        if isinstance(raw_id, bool) or not isinstance(raw_id, int):
            raise ValueError(f"{cls.__name__} record has invalid id: {raw_id!r}")

        name = data.get("name")
        extra = {k: v for k, v in data.items() if k not in ("id", "name")}
        return cls(id=raw_id, name="" if name is None else str(name), extra=extra)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the wire representation."""
        return {"id": self.id, "name": self.name, **self.extra}


class Display(Entity):
    """Physical output of the multiviewer."""


class Layout(Entity):
    """Window arrangement that can be applied to a display."""


class Window(Entity):
    """Window of a display's current layout."""


class Input(Entity):
    """Source that can be routed into a display's windows."""


class Snapshot(Entity):
    """Stored device state that can be recalled with ``load_snapshot``."""


@dataclass
class PendingCall:
    """
    A transmitted request awaiting its response or its deadline.

    Attributes:
        id: Request identifier (>= 1, never reused)
        method: RPC method name
        future: Resolved with the full response object or rejected
        deadline: Timer handle that expires the call
    """

    id: int
    method: str
    future: asyncio.Future
    deadline: Optional[asyncio.TimerHandle] = None

    def __repr__(self) -> str:
        return f"PendingCall(id={self.id}, method={self.method!r}, done={self.future.done()})"


@dataclass
class QueuedCall:
    """A call captured before the handshake completed."""

    method: str
    params: Optional[dict[str, Any]]
    future: asyncio.Future

    def __repr__(self) -> str:
        return f"QueuedCall(method={self.method!r}, done={self.future.done()})"
