"""Connection lifecycle and handshake gate.

State machine:
    DISCONNECTED -> TCP_CONNECTING       transport starts a connect attempt
    TCP_CONNECTING -> AWAITING_HANDSHAKE transport connected
    AWAITING_HANDSHAKE -> READY          handshake response accepted
    AWAITING_HANDSHAKE/READY -> DISCONNECTED  transport error or close

``handshake`` is always the first message on a connection. Every other
call made before READY is queued and flushed in FIFO order once the
handshake succeeds.
"""
from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Iterable, Optional

from .connection import Connection
from .correlator import RpcCorrelator
from .errors import ConnectionLostError, HandshakeError, TransportError, VipxError
from .models import HandshakeState, QueuedCall
from .shapes import extract_version

_LOGGER = logging.getLogger(__name__)

HANDSHAKE_METHOD = "handshake"
DEFAULT_SUPPORTED_VERSIONS = (1, 2)


def chain_future(source: asyncio.Future, target: asyncio.Future) -> None:
    """Forward the outcome of ``source`` to ``target`` once it is done."""

    def _forward(done: asyncio.Future) -> None:
        if target.done():
            if not done.cancelled():
                done.exception()
            return
        if done.cancelled():
            target.cancel()
        elif done.exception() is not None:
            target.set_exception(done.exception())
        else:
            target.set_result(done.result())

    source.add_done_callback(_forward)


class ConnectionLifecycle:
    """Owns the current Connection and gates calls on the handshake."""

    def __init__(
        self,
        correlator: RpcCorrelator,
        supported_versions: Iterable[int] = DEFAULT_SUPPORTED_VERSIONS,
        on_ready: Optional[Callable[[int], None]] = None,
        on_failure: Optional[Callable[[HandshakeError], None]] = None,
    ) -> None:
        self._correlator = correlator
        self.supported_versions = list(supported_versions)
        self._on_ready = on_ready
        self._on_failure = on_failure

        self._state = HandshakeState.DISCONNECTED
        self._connection: Optional[Connection] = None
        self._queue: deque[QueuedCall] = deque()
        self._handshake_task: Optional[asyncio.Task] = None
        self.version: Optional[int] = None

    @property
    def state(self) -> HandshakeState:
        return self._state

    @property
    def connection(self) -> Optional[Connection]:
        return self._connection

    @property
    def is_ready(self) -> bool:
        return self._state is HandshakeState.READY

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def handshake_in_flight(self) -> bool:
        return self._handshake_task is not None and not self._handshake_task.done()

    def _set_state(self, state: HandshakeState) -> None:
        if state is not self._state:
            _LOGGER.debug("Lifecycle %s -> %s", self._state.value, state.value)
        self._state = state
        if self._connection is not None:
            self._connection.state = state

    # ------------------------------------------------------------------
    # Transport signals

    def connecting(self) -> None:
        """A connect attempt has started."""
        if self._state is HandshakeState.DISCONNECTED:
            self._set_state(HandshakeState.TCP_CONNECTING)

    def connect_failed(self) -> None:
        """A connect attempt failed before any connection existed."""
        if self._state is HandshakeState.TCP_CONNECTING:
            self._set_state(HandshakeState.DISCONNECTED)

    def connection_made(self, connection: Connection) -> None:
        """Adopt a freshly connected socket and start the handshake."""
        if self._connection is not None and self._connection is not connection:
            self.connection_lost()

        self._connection = connection
        self._handshake_task = None
        self.version = None
        self._set_state(HandshakeState.AWAITING_HANDSHAKE)
        self.ensure_handshake()

    def data_received(self) -> None:
        """Inbound data arrived; make sure a handshake has been attempted."""
        if self._state is HandshakeState.AWAITING_HANDSHAKE and self._handshake_task is None:
            self.ensure_handshake()

    def connection_lost(self, exc: Optional[BaseException] = None) -> None:
        """
        Drop the current connection.

        Queued and pending calls are rejected with ConnectionLostError.
        """
        connection = self._connection
        if connection is None and self._state is HandshakeState.DISCONNECTED:
            return

        self._set_state(HandshakeState.DISCONNECTED)
        self._connection = None
        self._handshake_task = None
        self.version = None
        if connection is not None:
            connection.close()

        queued = self._reject_queue(ConnectionLostError)
        pending = self._correlator.reject_all(ConnectionLostError)
        _LOGGER.warning(
            "CONN_LOST | %s | error: %s | rejected %d queued and %d pending calls",
            connection,
            exc,
            queued,
            pending,
        )

    # ------------------------------------------------------------------
    # Calls

    def call(self, method: str, params: Optional[dict[str, Any]] = None) -> asyncio.Future:
        """
        Send a call now if the connection is READY, otherwise queue it.

        The handshake itself is never queued.

        Returns:
            Future resolved with the full response object
        """
        if self._state is HandshakeState.READY or method == HANDSHAKE_METHOD:
            if self._connection is None:
                future = asyncio.get_running_loop().create_future()
                future.set_exception(TransportError(f"Not connected, cannot send {method}"))
                return future
            return self._correlator.send(self._connection, method, params)

        future = asyncio.get_running_loop().create_future()
        self._queue.append(QueuedCall(method=method, params=params, future=future))
        _LOGGER.debug("Queued %s until handshake completes (%d queued)", method, len(self._queue))

        if self._state is HandshakeState.AWAITING_HANDSHAKE:
            self.ensure_handshake()
        return future

    def ensure_handshake(self) -> Optional[asyncio.Task]:
        """
        Start a handshake unless one is already in flight.

        Returns:
            The in-flight handshake task, or None when not awaiting a handshake
        """
        if self._state is not HandshakeState.AWAITING_HANDSHAKE or self._connection is None:
            return None

        if self.handshake_in_flight:
            return self._handshake_task

        task = asyncio.get_running_loop().create_task(self._handshake(self._connection))
        task.add_done_callback(_consume_task_result)
        self._handshake_task = task
        return task

    async def _handshake(self, connection: Connection) -> int:
        params = {"client_supported_versions": list(self.supported_versions)}
        _LOGGER.info("Sending handshake on %s (client_supported_versions=%s)", connection, params["client_supported_versions"])

        try:
            response = await self._correlator.send(connection, HANDSHAKE_METHOD, params)
            version = extract_version(response)
        except VipxError as err:
            if connection is not self._connection:
                raise HandshakeError(f"Handshake abandoned: {err}") from err

            error = HandshakeError(f"Handshake failed: {err}")
            _LOGGER.error("HANDSHAKE_FAILED | %s | %s", connection, err)
            self._reject_queue(lambda method: HandshakeError(f"{method} -> handshake failed: {err}"))
            if self._on_failure is not None:
                self._on_failure(error)
            raise error from err

        if connection is not self._connection:
            raise HandshakeError("Handshake abandoned: connection replaced")

        self.version = version
        self._set_state(HandshakeState.READY)
        _LOGGER.info("HANDSHAKE_OK | %s | using interface version %d", connection, version)

        self._drain_queue()
        if self._on_ready is not None:
            self._on_ready(version)
        return version

    def _drain_queue(self) -> None:
        flushed = 0
        while self._queue and self._connection is not None:
            queued = self._queue.popleft()
            if queued.future.done():
                continue
            sent = self._correlator.send(self._connection, queued.method, queued.params)
            chain_future(sent, queued.future)
            flushed += 1
        if flushed:
            _LOGGER.debug("Flushed %d queued calls", flushed)

    def _reject_queue(self, make_error: Callable[[str], BaseException]) -> int:
        rejected = 0
        while self._queue:
            queued = self._queue.popleft()
            if not queued.future.done():
                queued.future.set_exception(make_error(queued.method))
                rejected += 1
        return rejected

    def reject_queued(self, make_error: Callable[[str], BaseException]) -> int:
        """Reject every queued call (used on shutdown)."""
        return self._reject_queue(make_error)


def _consume_task_result(task: asyncio.Task) -> None:
    if not task.cancelled():
        task.exception()
