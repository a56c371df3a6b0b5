"""
Local mirror of device state.

The cache holds displays, layouts and snapshots as ordered lists, and the
windows and inputs of every display keyed by display id. It is replaced
wholesale by refresh_all() and patched in place by notifications.

Readers get immutable views (tuples / read-only mappings); only the
refresh and dispatch paths mutate the cache, always from the event loop.
"""
from __future__ import annotations

import asyncio
import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional

from .errors import VipxError
from .models import Display, Entity, Input, Layout, Snapshot, Window
from .shapes import extract_list

_LOGGER = logging.getLogger(__name__)

CallFn = Callable[..., Awaitable[dict[str, Any]]]

# collection name -> record type
COLLECTIONS: dict[str, type[Entity]] = {
    "displays": Display,
    "layouts": Layout,
    "snapshots": Snapshot,
}


def parse_records(record_type: type[Entity], items: Iterable[Any]) -> list[Entity]:
    """Convert raw objects to records, skipping (and logging) unusable ones."""
    records = []
    for item in items:
        try:
            records.append(record_type.from_dict(item))
        except ValueError as err:
            _LOGGER.warning("Skipping %s record: %s", record_type.__name__, err)
    return records


class DeviceStateCache:
    """In-memory mirror of the device's entity collections."""

    def __init__(self) -> None:
        self._collections: dict[str, list[Entity]] = {name: [] for name in COLLECTIONS}
        self._windows: dict[int, list[Entity]] = {}
        self._inputs: dict[int, list[Entity]] = {}
        self._listeners: list[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # Read access

    @property
    def displays(self) -> tuple[Display, ...]:
        return tuple(self._collections["displays"])

    @property
    def layouts(self) -> tuple[Layout, ...]:
        return tuple(self._collections["layouts"])

    @property
    def snapshots(self) -> tuple[Snapshot, ...]:
        return tuple(self._collections["snapshots"])

    @property
    def windows(self) -> Mapping[int, tuple[Window, ...]]:
        return MappingProxyType({k: tuple(v) for k, v in self._windows.items()})

    @property
    def inputs(self) -> Mapping[int, tuple[Input, ...]]:
        return MappingProxyType({k: tuple(v) for k, v in self._inputs.items()})

    def collection(self, name: str) -> tuple[Entity, ...]:
        return tuple(self._collections[name])

    def find(self, name: str, entity_id: int) -> Optional[Entity]:
        for record in self._collections[name]:
            if record.id == entity_id:
                return record
        return None

    def as_dict(self) -> dict[str, Any]:
        """Plain JSON-compatible copy of the whole cache."""
        data: dict[str, Any] = {
            name: [r.to_dict() for r in records] for name, records in self._collections.items()
        }
        data["windows"] = {str(k): [r.to_dict() for r in v] for k, v in self._windows.items()}
        data["inputs"] = {str(k): [r.to_dict() for r in v] for k, v in self._inputs.items()}
        return data

    # ------------------------------------------------------------------
    # Change listeners

    def add_listener(self, callback: Callable[[], None]) -> Callable[[], None]:
        """
        Register a callback run whenever derived views become stale.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(callback)

        def remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return remove

    def notify(self) -> None:
        for callback in list(self._listeners):
            try:
                callback()
            except Exception:
                _LOGGER.exception("Cache listener %r failed", callback)

    # ------------------------------------------------------------------
    # Mutation

    def replace_collections(
        self,
        displays: list[Entity],
        layouts: list[Entity],
        snapshots: list[Entity],
    ) -> None:
        """Replace the top-level collections; drop children of vanished displays."""
        self._collections["displays"] = list(displays)
        self._collections["layouts"] = list(layouts)
        self._collections["snapshots"] = list(snapshots)

        display_ids = {d.id for d in displays}
        self._windows = {k: v for k, v in self._windows.items() if k in display_ids}
        self._inputs = {k: v for k, v in self._inputs.items() if k in display_ids}

    def set_display_children(
        self,
        display_id: int,
        windows: list[Entity],
        inputs: list[Entity],
    ) -> bool:
        """
        Set a display's windows and inputs together.

        Returns:
            False (and changes nothing) if the display is no longer cached
        """
        if self.find("displays", display_id) is None:
            return False
        self._windows[display_id] = list(windows)
        self._inputs[display_id] = list(inputs)
        return True

    def upsert(self, name: str, record: Entity) -> None:
        """Replace the record with the same id in place, or append it."""
        records = self._collections[name]
        for idx, existing in enumerate(records):
            if existing.id == record.id:
                records[idx] = record
                return
        records.append(record)

    def remove(self, name: str, entity_id: int) -> bool:
        """Remove a record by id; removing a display also drops its children."""
        records = self._collections[name]
        kept = [r for r in records if r.id != entity_id]
        removed = len(kept) != len(records)
        self._collections[name] = kept

        if name == "displays":
            self._windows.pop(entity_id, None)
            self._inputs.pop(entity_id, None)
        return removed

    def clear(self) -> None:
        for name in self._collections:
            self._collections[name] = []
        self._windows = {}
        self._inputs = {}

    def __repr__(self) -> str:
        return (
            f"DeviceStateCache(displays={len(self._collections['displays'])}, "
            f"layouts={len(self._collections['layouts'])}, "
            f"snapshots={len(self._collections['snapshots'])})"
        )


async def fetch_display_children(
    call: CallFn,
    display_id: int,
    tolerate_errors: bool = True,
) -> tuple[list[Entity], list[Entity]]:
    """
    Fetch the windows and inputs of one display.

    Args:
        call: RPC facade coroutine ``call(method, params)``
        display_id: Display to query
        tolerate_errors: Yield [] for a failed query instead of raising

    Returns:
        (windows, inputs)
    """
    params = {"display": {"id": display_id}}
    results = []
    for method, key, record_type in (
        ("get_windows", "windows", Window),
        ("get_display_inputs", "inputs", Input),
    ):
        try:
            response = await call(method, params)
            results.append(parse_records(record_type, extract_list(response, key)))
        except VipxError as err:
            if not tolerate_errors:
                raise
            _LOGGER.debug("%s for display %d failed: %s", method, display_id, err)
            results.append([])
    return results[0], results[1]


async def refresh_all(cache: DeviceStateCache, call: CallFn) -> None:
    """
    Rebuild the cache from the device.

    Displays, layouts and snapshots are queried concurrently; any failure
    there aborts the refresh, leaves the cache untouched and is re-raised.
    Windows and inputs are then fetched one display at a time, a failed
    query yielding an empty list for that display.

    Args:
        cache: Cache to rebuild
        call: RPC facade coroutine ``call(method, params)``
    """
    results = await asyncio.gather(
        call("get_displays"),
        call("get_layouts"),
        call("get_snapshots"),
        return_exceptions=True,
    )
    for result in results:
        if isinstance(result, BaseException):
            _LOGGER.error("REFRESH_FAILED | %s", result)
            raise result

    try:
        displays = parse_records(Display, extract_list(results[0], "displays"))
        layouts = parse_records(Layout, extract_list(results[1], "layouts"))
        snapshots = parse_records(Snapshot, extract_list(results[2], "snapshots"))
    except VipxError as err:
        _LOGGER.error("REFRESH_FAILED | %s", err)
        raise

    cache.replace_collections(displays, layouts, snapshots)

    for display in displays:
        windows, inputs = await fetch_display_children(call, display.id)
        cache.set_display_children(display.id, windows, inputs)

    cache.notify()
    _LOGGER.debug(
        "Refreshed: displays=%d, layouts=%d, snapshots=%d",
        len(displays),
        len(layouts),
        len(snapshots),
    )
