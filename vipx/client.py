"""
VIP-X JSON-RPC client.

Architecture:
    VipxClient.call() -> ConnectionLifecycle (handshake gate / queue)
        -> RpcCorrelator (ids, deadlines) -> Connection -> TCP socket

    TCP socket -> TcpTransport -> VipxClient.data_received()
        -> LineFramer -> response:        RpcCorrelator
                      -> server message:  ServerRequestDispatcher -> DeviceStateCache

One VipxClient owns exactly one logical connection to one device. All of
its state lives on the instance; nothing is module-global.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Iterable, Mapping, Optional

from .cache import DeviceStateCache, refresh_all
from .connection import Connection
from .correlator import DEFAULT_REQUEST_TIMEOUT, RpcCorrelator
from .dispatcher import ServerRequestDispatcher
from .errors import ConnectionLostError, HandshakeError, VipxError
from .lifecycle import DEFAULT_SUPPORTED_VERSIONS, ConnectionLifecycle
from .models import (
    ConnectionStatus,
    Display,
    HandshakeState,
    Input,
    Layout,
    Snapshot,
    Window,
)
from .transport import TcpTransport

_LOGGER = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 31001


class VipxClient:
    """
    Client for the VIP-X line-delimited JSON-RPC 2.0 control protocol.

    Features:
    - Mandatory version handshake before any other traffic
    - Calls made before the handshake are queued and flushed in order
    - Keep-alive pings answered once the connection is ready
    - Local cache of displays, layouts, windows, inputs and snapshots,
      primed after every handshake and kept current by notifications
    - Automatic reconnection (via TcpTransport)
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        supported_versions: Iterable[int] = DEFAULT_SUPPORTED_VERSIONS,
        reconnect: bool = True,
    ) -> None:
        """
        Initialize the client (no I/O happens until start()).

        Args:
            host: Device IP address or host name
            port: JSON-RPC TCP port (default: 31001)
            request_timeout: Seconds before an unanswered call is rejected
            supported_versions: Protocol versions offered in the handshake
            reconnect: Reconnect automatically after a disconnect
        """
        self.logger = logging.getLogger(f"{__name__}({host}:{port})")

        self.cache = DeviceStateCache()
        self._correlator = RpcCorrelator(timeout=request_timeout)
        self._lifecycle = ConnectionLifecycle(
            self._correlator,
            supported_versions=supported_versions,
            on_ready=self._handshake_ready,
            on_failure=self._handshake_failed,
        )
        self._dispatcher = ServerRequestDispatcher(self._lifecycle, self.cache, self.call)
        self._transport = TcpTransport(host, port, self, reconnect=reconnect)

        self._status = ConnectionStatus.DISCONNECTED
        self._status_message: Optional[str] = None
        self._status_listeners: list[Callable[[ConnectionStatus, Optional[str]], None]] = []
        self._refresh_task: Optional[asyncio.Task] = None
        self.last_snapshot_loaded = ""

    # ------------------------------------------------------------------
    # Lifecycle

    @property
    def host(self) -> str:
        return self._transport.host

    @property
    def port(self) -> int:
        return self._transport.port

    def start(self) -> None:
        """Connect in the background; reconnects until stop()."""
        self._set_status(ConnectionStatus.CONNECTING)
        self._transport.start()

    async def stop(self) -> None:
        """Disconnect and reject everything still queued."""
        await self._transport.stop()
        self._lifecycle.connection_lost()
        self._lifecycle.reject_queued(ConnectionLostError)
        self._dispatcher.cancel_background()
        if self._refresh_task is not None and not self._refresh_task.done():
            self._refresh_task.cancel()
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def update_config(self, host: str, port: int) -> None:
        """Point the client at a different device and reconnect."""
        await self._transport.retarget(host, port)

    async def wait_primed(self) -> bool:
        """
        Wait for the cache refresh started by the last handshake.

        Returns:
            True if that refresh succeeded, False if it failed or none ran
        """
        task = self._refresh_task
        if task is None:
            return False
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                return False
            raise

    async def wait_ready(self, timeout: Optional[float] = None) -> int:
        """
        Wait until the handshake has completed.

        Returns:
            Negotiated protocol version

        Raises:
            HandshakeError: If the handshake fails
            asyncio.TimeoutError: If not ready within ``timeout``
        """

        async def _wait() -> int:
            while True:
                if self._lifecycle.is_ready and self._lifecycle.version is not None:
                    return self._lifecycle.version
                task = self._lifecycle.ensure_handshake()
                if task is not None:
                    await task
                else:
                    await asyncio.sleep(0.05)

        return await asyncio.wait_for(_wait(), timeout)

    # ------------------------------------------------------------------
    # Collaborator surface

    async def call(self, method: str, params: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """
        Invoke a remote method.

        Args:
            method: RPC method name
            params: Optional parameters object

        Returns:
            Full response object

        Raises:
            RpcProtocolError: Server returned an error
            RpcTimeoutError: No response within the request timeout
            ConnectionLostError: Connection dropped before the response
            HandshakeError: Queued call discarded by a failed handshake
        """
        return await self._lifecycle.call(method, params)

    async def refresh_all(self) -> None:
        """Rebuild the cache from the device."""
        await refresh_all(self.cache, self.call)

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def status_message(self) -> Optional[str]:
        return self._status_message

    @property
    def state(self) -> HandshakeState:
        return self._lifecycle.state

    @property
    def connected(self) -> bool:
        return self._lifecycle.connection is not None

    @property
    def handshake_complete(self) -> bool:
        return self._lifecycle.is_ready

    @property
    def protocol_version(self) -> Optional[int]:
        return self._lifecycle.version

    @property
    def handshake_version(self) -> str:
        version = self._lifecycle.version
        return "" if version is None else str(version)

    @property
    def displays(self) -> tuple[Display, ...]:
        return self.cache.displays

    @property
    def layouts(self) -> tuple[Layout, ...]:
        return self.cache.layouts

    @property
    def snapshots(self) -> tuple[Snapshot, ...]:
        return self.cache.snapshots

    @property
    def windows(self) -> Mapping[int, tuple[Window, ...]]:
        return self.cache.windows

    @property
    def inputs(self) -> Mapping[int, tuple[Input, ...]]:
        return self.cache.inputs

    def add_status_listener(
        self, callback: Callable[[ConnectionStatus, Optional[str]], None]
    ) -> Callable[[], None]:
        """
        Register a callback for status changes.

        Returns:
            Function that removes the listener
        """
        self._status_listeners.append(callback)

        def remove() -> None:
            if callback in self._status_listeners:
                self._status_listeners.remove(callback)

        return remove

    # ------------------------------------------------------------------
    # Device commands

    async def load_snapshot(self, snapshot_id: Optional[int] = None, name: Optional[str] = None) -> dict[str, Any]:
        """Recall a snapshot by id or by name."""
        if (snapshot_id is None) == (name is None):
            raise ValueError("Pass exactly one of snapshot_id or name")

        if snapshot_id is not None:
            response = await self.call("load_snapshot", {"snapshot": {"id": int(snapshot_id)}})
            self.last_snapshot_loaded = f"id:{int(snapshot_id)}"
        else:
            response = await self.call("load_snapshot", {"snapshot": {"name": name}})
            self.last_snapshot_loaded = f"name:{name}"

        self.cache.notify()
        return response

    async def set_display_layout(
        self,
        display: dict[str, Any],
        layout: Optional[dict[str, Any]],
    ) -> dict[str, Any]:
        """
        Apply a layout to a display.

        Args:
            display: ``{"id": n}`` or ``{"name": s}``
            layout: ``{"id": n}``, ``{"name": s}`` or None to clear the display
        """
        return await self.call("set_display_layout", {"display": display, "layout": layout})

    async def set_window_input(
        self, display_id: int, window_id: int, input_id: Optional[int]
    ) -> dict[str, Any]:
        """Route an input into a window; None clears the window."""
        return await self.call(
            "set_window_input",
            {
                "display": {"id": display_id},
                "window": {"id": window_id},
                "input": None if input_id is None else {"id": input_id},
            },
        )

    async def set_window_audio(
        self, display_id: int, window_id: int, audio_index: Optional[int]
    ) -> dict[str, Any]:
        """Select a window's audio; None clears it."""
        return await self.call(
            "set_window_audio",
            {
                "display": {"id": display_id},
                "window": {"id": window_id},
                "audio": None if audio_index is None else {"index": audio_index},
            },
        )

    # ------------------------------------------------------------------
    # Transport listener

    def connecting(self) -> None:
        self._lifecycle.connecting()
        self._set_status(ConnectionStatus.CONNECTING)

    def connect_failed(self, exc: BaseException) -> None:
        self._lifecycle.connect_failed()
        self._set_status(ConnectionStatus.DISCONNECTED, str(exc))

    def connection_made(self, connection: Connection) -> None:
        self._set_status(ConnectionStatus.OK)
        self._lifecycle.connection_made(connection)

    def data_received(self, connection: Connection, data: bytes) -> None:
        if connection is not self._lifecycle.connection:
            self.logger.debug("Dropping %d bytes from stale %s", len(data), connection)
            return

        self._lifecycle.data_received()

        for frame in connection.framer.feed(data):
            if frame.error is not None:
                self.logger.error("FRAME_PARSE_ERROR | %s", frame.error)
                continue

            message = frame.message
            if message.get("method"):
                self._dispatcher.dispatch(message)
            elif "id" in message:
                self._correlator.handle_response(message)
            else:
                self.logger.debug("Ignoring frame without method or id: %s", frame.raw)

    def connection_lost(self, connection: Connection, exc: Optional[BaseException]) -> None:
        if connection is not self._lifecycle.connection:
            return
        self._lifecycle.connection_lost(exc)
        self._set_status(ConnectionStatus.DISCONNECTED, None if exc is None else str(exc))

    # ------------------------------------------------------------------
    # Internals

    def _handshake_ready(self, version: int) -> None:
        self._set_status(ConnectionStatus.OK)
        self._refresh_task = asyncio.get_running_loop().create_task(self._prime_cache())

    def _handshake_failed(self, error: HandshakeError) -> None:
        self._set_status(ConnectionStatus.CONNECTION_FAILURE, str(error))

    async def _prime_cache(self) -> bool:
        try:
            await self.refresh_all()
        except VipxError as err:
            self.logger.error("Initial refresh failed: %s", err)
            return False
        return True

    def _set_status(self, status: ConnectionStatus, message: Optional[str] = None) -> None:
        if status is self._status and message == self._status_message:
            return
        self.logger.debug("Status: %s %s", status.value, message or "")
        self._status = status
        self._status_message = message
        for callback in list(self._status_listeners):
            try:
                callback(status, message)
            except Exception:
                self.logger.exception("Status listener %r failed", callback)
