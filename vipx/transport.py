"""
Persistent TCP transport for the VIP-X control port.

Keeps one socket open to the device, reports connect / data / close
events to a listener and reconnects with exponential backoff until
stopped. The protocol logic lives in the listener; this module only moves
bytes.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from .connection import Connection

_LOGGER = logging.getLogger(__name__)


class TransportListener(Protocol):
    def connecting(self) -> None: ...

    def connect_failed(self, exc: BaseException) -> None: ...

    def connection_made(self, connection: Connection) -> None: ...

    def data_received(self, connection: Connection, data: bytes) -> None: ...

    def connection_lost(self, connection: Connection, exc: Optional[BaseException]) -> None: ...


class TcpTransport:
    """
    Reconnecting TCP client.

    Features:
    - One Connection object per successful connect
    - Exponential backoff between attempts (1s, 2s, 4s ... capped at 30s)
    - retarget() to switch host/port at runtime
    """

    RECV_BUFFER_SIZE = 8192
    CONNECT_TIMEOUT = 5.0  # seconds

    # Reconnection strategy
    RECONNECT_BASE_DELAY = 1.0  # seconds
    RECONNECT_MAX_DELAY = 30.0  # seconds
    RECONNECT_MULTIPLIER = 2.0

    def __init__(
        self,
        host: str,
        port: int,
        listener: TransportListener,
        reconnect: bool = True,
    ) -> None:
        self.host = host
        self.port = port
        self.reconnect = reconnect
        self._listener = listener
        self._task: Optional[asyncio.Task] = None
        self._connection: Optional[Connection] = None
        self._stopping = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    def start(self) -> None:
        """Start the connect/receive loop in the background."""
        if self.is_running:
            _LOGGER.warning("Transport already running for %s:%s", self.host, self.port)
            return
        self._stopping = False
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Close the socket and stop reconnecting."""
        self._stopping = True
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._drop_connection(None)

    async def retarget(self, host: str, port: int) -> None:
        """Reconnect to a new host/port."""
        _LOGGER.info("Switching target from %s:%s to %s:%s", self.host, self.port, host, port)
        await self.stop()
        self.host = host
        self.port = port
        self.start()

    async def _run(self) -> None:
        reconnect_delay = self.RECONNECT_BASE_DELAY

        while not self._stopping:
            self._listener.connecting()
            _LOGGER.info("Connecting to %s:%s...", self.host, self.port)

            try:
                reader, writer = await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.CONNECT_TIMEOUT,
                )
            except (OSError, asyncio.TimeoutError) as err:
                _LOGGER.error("TRANSPORT_ERROR | connect to %s:%s failed: %s", self.host, self.port, err)
                self._listener.connect_failed(err)
                if not self.reconnect:
                    break
                _LOGGER.info("Reconnecting in %.1fs...", reconnect_delay)
                await asyncio.sleep(reconnect_delay)
                reconnect_delay = min(reconnect_delay * self.RECONNECT_MULTIPLIER, self.RECONNECT_MAX_DELAY)
                continue

            reconnect_delay = self.RECONNECT_BASE_DELAY
            connection = Connection(reader, writer, peer=f"{self.host}:{self.port}")
            self._connection = connection
            _LOGGER.info("Connection established (%s)", connection)
            self._listener.connection_made(connection)

            error = await self._receive_loop(connection)
            self._drop_connection(error)

            if self._stopping or not self.reconnect:
                break
            _LOGGER.info("Reconnecting in %.1fs...", reconnect_delay)
            await asyncio.sleep(reconnect_delay)

    async def _receive_loop(self, connection: Connection) -> Optional[BaseException]:
        assert connection.reader is not None
        while True:
            try:
                data = await connection.reader.read(self.RECV_BUFFER_SIZE)
            except OSError as err:
                _LOGGER.error("TRANSPORT_ERROR | socket error on %s: %s", connection, err)
                return err

            if not data:
                _LOGGER.warning("Connection closed by remote host (%s)", connection)
                return None

            self._listener.data_received(connection, data)

    def _drop_connection(self, error: Optional[BaseException]) -> None:
        connection, self._connection = self._connection, None
        if connection is None:
            return
        connection.close()
        self._listener.connection_lost(connection, error)
