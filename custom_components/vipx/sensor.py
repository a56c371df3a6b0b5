"""Sensor platform for the VIP-X integration.

Exposes the connection status, the negotiated interface version and the
last snapshot recalled from Home Assistant.
"""
from __future__ import annotations

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from vipx import ConnectionStatus

from .const import DOMAIN
from .coordinator import VipxCoordinator
from .entity import VipxEntity


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up VIP-X sensors from a config entry."""
    coordinator: VipxCoordinator = hass.data[DOMAIN][entry.entry_id]["coordinator"]
    async_add_entities(
        [
            VipxStatusSensor(coordinator, entry),
            VipxHandshakeVersionSensor(coordinator, entry),
            VipxLastSnapshotSensor(coordinator, entry),
        ]
    )


class VipxStatusSensor(VipxEntity, SensorEntity):
    """Connecting / ok / disconnected / connection_failure."""

    _attr_name = "Status"
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [status.value for status in ConnectionStatus]

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "status")

    @property
    def available(self) -> bool:
        return True

    @property
    def native_value(self) -> str:
        return self.coordinator.client.status.value

    @property
    def extra_state_attributes(self) -> dict[str, str | None]:
        return {"message": self.coordinator.client.status_message}


class VipxHandshakeVersionSensor(VipxEntity, SensorEntity):
    """Interface version selected by the device during the handshake."""

    _attr_name = "Handshake version"
    _attr_icon = "mdi:handshake"

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "handshake_version")

    @property
    def native_value(self) -> str | None:
        return self.coordinator.client.handshake_version or None


class VipxLastSnapshotSensor(VipxEntity, SensorEntity):
    """Last snapshot recalled through this integration ("id:3" / "name:Show")."""

    _attr_name = "Last snapshot loaded"
    _attr_icon = "mdi:camera-burst"

    def __init__(self, coordinator: VipxCoordinator, entry: ConfigEntry) -> None:
        super().__init__(coordinator, entry, "last_snapshot_loaded")

    @property
    def native_value(self) -> str | None:
        return self.coordinator.client.last_snapshot_loaded or None
