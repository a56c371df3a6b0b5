"""Select platform for the VIP-X integration.

- "Snapshot": choosing an option fires ``load_snapshot`` for it
- "Layout <display>": one per display, choosing an option applies that
  layout (or clears the display)

Option lists are rebuilt from the client cache on every coordinator
update, so they follow create/modify/delete notifications.
"""
from __future__ import annotations

import logging

from homeassistant.components.select import SelectEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from vipx import VipxError
from vipx.choices import CLEAR_LAYOUT, find_by_label, id_choices, layout_choices

from .const import DOMAIN
from .coordinator import VipxCoordinator
from .entity import VipxEntity

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up VIP-X selects from a config entry."""
    coordinator: VipxCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    known_displays: set[int] = set()

    @callback
    def _add_display_selects() -> None:
        new = [d for d in coordinator.client.displays if d.id not in known_displays]
        if not new:
            return
        known_displays.update(d.id for d in new)
        async_add_entities(VipxDisplayLayoutSelect(coordinator, entry, d.id) for d in new)

    async_add_entities([VipxSnapshotSelect(coordinator, entry)])
    _add_display_selects()
    entry.async_on_unload(coordinator.async_add_listener(_add_display_selects))


class VipxSnapshotSelect(VipxEntity, SelectEntity):
    """Fire Snapshot (by ID)."""

    _attr_name = "Snapshot"
    _attr_icon = "mdi:camera-burst"

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "snapshot")

    @property
    def available(self) -> bool:
        return self.coordinator.client.handshake_complete

    @property
    def options(self) -> list[str]:
        return [label for _, label in id_choices(self.coordinator.client.snapshots)]

    @property
    def current_option(self) -> str | None:
        last = self.coordinator.client.last_snapshot_loaded
        if not last.startswith("id:"):
            return None
        for key, label in id_choices(self.coordinator.client.snapshots):
            if f"id:{key}" == last:
                return label
        return None

    async def async_select_option(self, option: str) -> None:
        snapshot_id = find_by_label(id_choices(self.coordinator.client.snapshots), option)
        if snapshot_id is None:
            raise HomeAssistantError(f"Unknown snapshot: {option}")

        try:
            await self.coordinator.client.load_snapshot(snapshot_id=int(snapshot_id))
        except VipxError as err:
            raise HomeAssistantError(f"load_snapshot failed: {err}") from err


class VipxDisplayLayoutSelect(VipxEntity, SelectEntity):
    """Set Display Layout (by IDs) for one display."""

    _attr_icon = "mdi:view-dashboard"

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry, display_id: int) -> None:
        super().__init__(coordinator, entry, f"layout_{display_id}")
        self._display_id = display_id
        self._current: str | None = None

    @property
    def name(self) -> str:
        display = self.coordinator.client.cache.find("displays", self._display_id)
        return f"Layout {display.name if display else self._display_id}"

    @property
    def available(self) -> bool:
        client = self.coordinator.client
        return client.handshake_complete and client.cache.find("displays", self._display_id) is not None

    @property
    def options(self) -> list[str]:
        return [label for _, label in layout_choices(self.coordinator.client.layouts)]

    @property
    def current_option(self) -> str | None:
        return self._current if self._current in self.options else None

    async def async_select_option(self, option: str) -> None:
        key = find_by_label(layout_choices(self.coordinator.client.layouts), option)
        if key is None:
            raise HomeAssistantError(f"Unknown layout: {option}")

        layout = None if key == CLEAR_LAYOUT else {"id": int(key)}
        try:
            await self.coordinator.client.set_display_layout({"id": self._display_id}, layout)
        except VipxError as err:
            raise HomeAssistantError(f"set_display_layout failed: {err}") from err

        _LOGGER.debug("Display %d layout set to %s", self._display_id, option)
        self._current = option
        self.async_write_ha_state()
