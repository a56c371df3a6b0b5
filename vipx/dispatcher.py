"""Handling of server-initiated messages (keep-alive pings and notifications)."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from .cache import CallFn, DeviceStateCache, fetch_display_children
from .errors import VipxError
from .lifecycle import ConnectionLifecycle
from .models import Display, Entity, Layout, Snapshot

_LOGGER = logging.getLogger(__name__)

PING_METHOD = "ping"

# notification method -> (params member, cache collection, record type, is_delete)
NOTIFICATIONS: dict[str, tuple[str, str, type[Entity], bool]] = {
    "notify_create_snapshot": ("snapshot", "snapshots", Snapshot, False),
    "notify_modify_snapshot": ("snapshot", "snapshots", Snapshot, False),
    "notify_delete_snapshot": ("snapshot", "snapshots", Snapshot, True),
    "notify_create_layout": ("layout", "layouts", Layout, False),
    "notify_modify_layout": ("layout", "layouts", Layout, False),
    "notify_delete_layout": ("layout", "layouts", Layout, True),
    "notify_create_display": ("display", "displays", Display, False),
    "notify_modify_display": ("display", "displays", Display, False),
    "notify_delete_display": ("display", "displays", Display, True),
}


class ServerRequestDispatcher:
    """
    Routes server-initiated frames.

    - ``ping`` with an id is answered with ``"pong"``, but only once the
      connection is READY; earlier pings are ignored.
    - ``notify_*`` messages patch the cache: deletes remove by id, creates
      and modifications upsert by id. Display upserts also re-fetch that
      display's windows and inputs in the background.
    - Anything else is logged and ignored.
    """

    def __init__(
        self,
        lifecycle: ConnectionLifecycle,
        cache: DeviceStateCache,
        call: Optional[CallFn] = None,
    ) -> None:
        self._lifecycle = lifecycle
        self._cache = cache
        self._call = call
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, message: dict[str, Any]) -> None:
        method = message.get("method")

        if method == PING_METHOD:
            self._handle_ping(message)
            return

        route = NOTIFICATIONS.get(method) if isinstance(method, str) else None
        if route is None:
            _LOGGER.debug("Ignoring unhandled server message %r", method)
            return

        self._handle_notification(method, message.get("params"), *route)

    def _handle_ping(self, message: dict[str, Any]) -> None:
        request_id = message.get("id")
        if request_id is None:
            _LOGGER.debug("Ping without id, no reply expected")
            return

        connection = self._lifecycle.connection
        if not self._lifecycle.is_ready or connection is None:
            _LOGGER.debug("Ignoring ping %r before handshake completed", request_id)
            return

        try:
            connection.send({"jsonrpc": "2.0", "id": request_id, "result": "pong"})
        except VipxError as err:
            _LOGGER.error("TRANSPORT_ERROR | pong %r not sent: %s", request_id, err)

    def _handle_notification(
        self,
        method: str,
        params: Any,
        member: str,
        collection: str,
        record_type: type[Entity],
        is_delete: bool,
    ) -> None:
        payload = params.get(member) if isinstance(params, dict) else None
        if payload is None:
            _LOGGER.debug("%s without %s payload, ignored", method, member)
            return

        try:
            record = record_type.from_dict(payload)
        except ValueError as err:
            _LOGGER.warning("NOTIFY_IGNORED | %s: %s", method, err)
            return

        if is_delete:
            if not self._cache.remove(collection, record.id):
                _LOGGER.debug("%s for unknown id %d, ignored", method, record.id)
                return
        else:
            self._cache.upsert(collection, record)
            if collection == "displays":
                self._refetch_children(record.id)

        _LOGGER.debug("Applied %s (id=%d)", method, record.id)
        self._cache.notify()

    def _refetch_children(self, display_id: int) -> None:
        if self._call is None:
            return
        task = asyncio.get_running_loop().create_task(self._fetch_children(display_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _fetch_children(self, display_id: int) -> None:
        # Best effort: on failure the display keeps its previous windows/inputs.
        try:
            windows, inputs = await fetch_display_children(self._call, display_id, tolerate_errors=False)
        except VipxError as err:
            _LOGGER.debug("Re-fetch of display %d children failed: %s", display_id, err)
            return

        if self._cache.set_display_children(display_id, windows, inputs):
            self._cache.notify()

    def cancel_background(self) -> None:
        for task in list(self._tasks):
            task.cancel()

