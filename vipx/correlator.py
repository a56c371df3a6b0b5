"""Request/response correlation for the JSON-RPC stream."""
from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

from .connection import Connection
from .errors import RpcProtocolError, RpcTimeoutError, TransportError
from .models import PendingCall

_LOGGER = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 7.0  # seconds


class RpcCorrelator:
    """
    Assigns request ids and matches responses to outstanding calls.

    Ids start at 1 and increase for the lifetime of the correlator; one
    correlator is shared by every connection the client makes, so an id is
    never reused after a reconnect and a late response can never be
    misapplied to a newer call.
    """

    def __init__(self, timeout: float = DEFAULT_REQUEST_TIMEOUT) -> None:
        self.timeout = timeout
        self._ids = itertools.count(1)
        self._pending: dict[int, PendingCall] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, request_id: int) -> bool:
        return request_id in self._pending

    def send(
        self,
        connection: Connection,
        method: str,
        params: Optional[dict[str, Any]] = None,
    ) -> asyncio.Future:
        """
        Transmit a request and register it as pending.

        The request is written before this method returns, so the order of
        send() calls is the order on the wire.

        Args:
            connection: Connection to write on
            method: RPC method name
            params: Optional parameters object (omitted from the frame if None)

        Returns:
            Future resolved with the full response object, or rejected with
            RpcProtocolError, RpcTimeoutError or TransportError
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        request_id = next(self._ids)

        request: dict[str, Any] = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            request["params"] = params

        call = PendingCall(id=request_id, method=method, future=future)
        self._pending[request_id] = call
        call.deadline = loop.call_later(self.timeout, self._expire, request_id)

        try:
            connection.send(request)
        except TransportError as err:
            self._pending.pop(request_id, None)
            call.deadline.cancel()
            _LOGGER.error("TRANSPORT_ERROR | %s (id=%d) not sent: %s", method, request_id, err)
            future.set_exception(err)

        return future

    def handle_response(self, message: dict[str, Any]) -> bool:
        """
        Resolve the pending call matching a response frame.

        Args:
            message: Decoded response object

        Returns:
            True if the response matched an outstanding call
        """
        request_id = message.get("id")
        call = self._pending.pop(request_id, None) if _hashable(request_id) else None
        if call is None:
            _LOGGER.debug("Dropping response with unmatched id %r", request_id)
            return False

        if call.deadline is not None:
            call.deadline.cancel()

        if call.future.done():
            return True

        if "error" in message and message["error"] is not None:
            err = RpcProtocolError(call.method, message["error"])
            _LOGGER.warning("RPC_ERROR | %s", err)
            call.future.set_exception(err)
        else:
            call.future.set_result(message)
        return True

    def reject_all(self, make_error) -> int:
        """
        Reject every outstanding call.

        Args:
            make_error: Callable(method) -> RpcError for each call

        Returns:
            Number of calls rejected
        """
        calls = list(self._pending.values())
        self._pending.clear()
        for call in calls:
            if call.deadline is not None:
                call.deadline.cancel()
            if not call.future.done():
                call.future.set_exception(make_error(call.method))
        return len(calls)

    def _expire(self, request_id: int) -> None:
        call = self._pending.pop(request_id, None)
        if call is None:
            return

        _LOGGER.warning("RPC_TIMEOUT | %s (id=%d) after %.1fs", call.method, request_id, self.timeout)
        if not call.future.done():
            call.future.set_exception(RpcTimeoutError(call.method, self.timeout))


def _hashable(value: Any) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)

