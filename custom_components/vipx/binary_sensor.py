"""Binary sensor platform for the VIP-X integration."""
from __future__ import annotations

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN
from .coordinator import VipxCoordinator
from .entity import VipxEntity


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up the connection sensor from a config entry."""
    coordinator: VipxCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    async_add_entities([VipxConnectedSensor(coordinator, entry)])


class VipxConnectedSensor(VipxEntity, BinarySensorEntity):
    """On while the TCP connection to the device is up."""

    _attr_name = "Connected"
    _attr_device_class = BinarySensorDeviceClass.CONNECTIVITY

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "connected")

    @property
    def available(self) -> bool:
        return True

    @property
    def is_on(self) -> bool:
        return self.coordinator.client.connected
