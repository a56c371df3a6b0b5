"""A single TCP connection to the device."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from .errors import TransportError
from .framer import LineFramer, serialize
from .models import HandshakeState

_LOGGER = logging.getLogger(__name__)


class Connection:
    """
    Socket writer plus receive buffer for one connect attempt.

    A new Connection is created on every successful connect; nothing is
    carried over from the previous one.
    """

    _counter = 0

    def __init__(
        self,
        reader: Optional[asyncio.StreamReader],
        writer: Any,
        peer: str = "",
    ) -> None:
        Connection._counter += 1
        self.serial = Connection._counter
        self.peer = peer
        self.reader = reader
        self.state = HandshakeState.AWAITING_HANDSHAKE
        self.framer = LineFramer()
        self._writer = writer
        self._closed = False

    @property
    def is_closed(self) -> bool:
        return self._closed or self._writer is None or self._writer.is_closing()

    def write(self, data: bytes) -> None:
        """
        Queue raw bytes on the socket.

        Raises:
            TransportError: If the connection is closed or the write fails
        """
        if self.is_closed:
            raise TransportError(f"Not connected ({self})")

        try:
            self._writer.write(data)
        except (OSError, RuntimeError) as err:
            raise TransportError(f"Write failed on {self}: {err}") from err

        _LOGGER.debug("TX %d bytes on %s: %s", len(data), self, data[:200])

    def send(self, message: dict[str, Any]) -> None:
        """Serialize and write one message."""
        self.write(serialize(message))

    def close(self) -> None:
        """Close the socket; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self.state = HandshakeState.DISCONNECTED
        self.framer.clear()
        if self._writer is not None:
            try:
                self._writer.close()
            except (OSError, RuntimeError) as err:
                _LOGGER.debug("Error closing %s: %s", self, err)

    def __repr__(self) -> str:
        return f"Connection(#{self.serial} {self.peer or '?'}, state={self.state.value})"
