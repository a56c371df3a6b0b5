"""Base entity for the VIP-X integration."""
from __future__ import annotations

from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN, MANUFACTURER, MODEL
from .coordinator import VipxCoordinator


class VipxEntity(CoordinatorEntity[VipxCoordinator]):
    """Entity attached to the VIP-X device of one config entry."""

    _attr_has_entity_name = True

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry, key: str) -> None:
        super().__init__(coordinator)
        self._entry = entry
        self._attr_unique_id = f"{entry.entry_id}_{key}"

    @property
    def device_info(self) -> dict[str, Any]:
        """Return device information for grouping in HA UI."""
        client = self.coordinator.client
        return {
            "identifiers": {(DOMAIN, self._entry.entry_id)},
            "name": self._entry.title,
            "manufacturer": MANUFACTURER,
            "model": MODEL,
            "sw_version": None if client.protocol_version is None else f"Interface {client.protocol_version}",
        }
