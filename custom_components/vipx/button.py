"""Button platform for the VIP-X integration."""
from __future__ import annotations

from homeassistant.components.button import ButtonEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from vipx import VipxError

from .const import DOMAIN
from .coordinator import VipxCoordinator
from .entity import VipxEntity


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the refresh button from a config entry."""
    coordinator: VipxCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    async_add_entities([VipxRefreshButton(coordinator, entry)])


class VipxRefreshButton(VipxEntity, ButtonEntity):
    """Refresh Lists (Displays/Layouts/Windows/Inputs/Snapshots)."""

    _attr_name = "Refresh lists"
    _attr_icon = "mdi:refresh"

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "refresh")

    @property
    def available(self) -> bool:
        return self.coordinator.client.handshake_complete

    async def async_press(self) -> None:
        try:
            await self.coordinator.async_refresh_lists()
        except VipxError as err:
            raise HomeAssistantError(f"Refresh failed: {err}") from err
