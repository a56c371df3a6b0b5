"""DataUpdateCoordinator for the VIP-X integration.

This coordinator owns ONE persistent VipxClient. It does NOT poll on an
interval: the client keeps its cache current from device notifications
and the coordinator republishes on every cache or status change.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from homeassistant.core import HomeAssistant
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from vipx import ConnectionStatus, VipxClient

from .const import DOMAIN

_LOGGER = logging.getLogger(__name__)


class VipxCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator publishing the state of one VIP-X client.

    Architecture:
    - One VipxClient per config entry (persistent TCP connection)
    - Client handles reconnects, handshake, keep-alive and notifications
    - Cache listener -> async_set_updated_data() (entities refresh choices)
    - Status listener -> async_set_updated_data() (connected/version sensors)

    NO polling interval - updates are event-driven.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        host: str,
        port: int,
    ) -> None:
        """Initialize coordinator.

        Args:
            hass: Home Assistant instance
            host: VIP-X host
            port: VIP-X JSON-RPC port
        """
        super().__init__(
            hass,
            _LOGGER,
            name=DOMAIN,
            update_interval=None,
        )

        self.client = VipxClient(host, port)
        self._unsubscribers: list[Callable[[], None]] = []

    async def async_start(self) -> None:
        """Subscribe to the client and start connecting."""
        _LOGGER.info("Starting VIP-X client for %s:%s", self.client.host, self.client.port)
        self._unsubscribers.append(self.client.cache.add_listener(self._handle_cache_change))
        self._unsubscribers.append(self.client.add_status_listener(self._handle_status_change))
        self.client.start()

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current snapshot of client state (no I/O)."""
        return self._build_data()

    def _build_data(self) -> dict[str, Any]:
        return {
            "status": self.client.status.value,
            "status_message": self.client.status_message,
            "connected": self.client.connected,
            "handshake_version": self.client.handshake_version,
            "last_snapshot_loaded": self.client.last_snapshot_loaded,
            "cache": self.client.cache.as_dict(),
        }

    def _handle_cache_change(self) -> None:
        self.async_set_updated_data(self._build_data())

    def _handle_status_change(self, status: ConnectionStatus, message: Optional[str]) -> None:
        if status is ConnectionStatus.CONNECTION_FAILURE:
            _LOGGER.error("VIP-X connection failure: %s", message)
        elif status is ConnectionStatus.DISCONNECTED:
            _LOGGER.warning("VIP-X disconnected%s", f": {message}" if message else "")
        self.async_set_updated_data(self._build_data())

    async def async_refresh_lists(self) -> None:
        """Re-read displays, layouts, windows, inputs and snapshots."""
        await self.client.refresh_all()

    async def async_shutdown(self) -> None:
        """Stop the client.

        Called during integration unload or HA shutdown.
        """
        _LOGGER.info("Shutting down VIP-X coordinator")
        while self._unsubscribers:
            self._unsubscribers.pop()()
        await self.client.stop()
        await super().async_shutdown()
