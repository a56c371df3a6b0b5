"""The Evertz VIP-X integration.

This integration exposes a VIP-X multiviewer to Home Assistant over its
line-delimited JSON-RPC control port.

Architecture:
    VipxCoordinator -> VipxClient (persistent) -> TCP Socket -> VIP-X

Configuration:
    Configured via UI (Settings -> Devices & Services -> Add Integration)
"""
from __future__ import annotations

import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers import config_validation as cv

from vipx import VipxError

from .const import (
    ATTR_AUDIO_INDEX,
    ATTR_DISPLAY_ID,
    ATTR_ENTRY_ID,
    ATTR_INPUT_ID,
    ATTR_METHOD,
    ATTR_PARAMS,
    ATTR_WINDOW_ID,
    CONF_HOST,
    CONF_PORT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DOMAIN,
    PLATFORMS,
    SERVICE_CALL,
    SERVICE_SET_WINDOW_AUDIO,
    SERVICE_SET_WINDOW_INPUT,
)
from .coordinator import VipxCoordinator

_LOGGER = logging.getLogger(__name__)

CALL_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_METHOD): cv.string,
        vol.Optional(ATTR_PARAMS): dict,
    }
)

WINDOW_INPUT_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_DISPLAY_ID): vol.Coerce(int),
        vol.Required(ATTR_WINDOW_ID): vol.Coerce(int),
        vol.Optional(ATTR_INPUT_ID): vol.Any(None, vol.Coerce(int)),
    }
)

WINDOW_AUDIO_SCHEMA = vol.Schema(
    {
        vol.Optional(ATTR_ENTRY_ID): cv.string,
        vol.Required(ATTR_DISPLAY_ID): vol.Coerce(int),
        vol.Required(ATTR_WINDOW_ID): vol.Coerce(int),
        vol.Optional(ATTR_AUDIO_INDEX): vol.Any(None, vol.Coerce(int)),
    }
)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up VIP-X from a config entry.

    Args:
        hass: Home Assistant instance
        entry: ConfigEntry created by the config flow

    Returns:
        True if setup succeeded, False otherwise
    """
    host = entry.data.get(CONF_HOST, DEFAULT_HOST)
    port = entry.data.get(CONF_PORT, DEFAULT_PORT)

    _LOGGER.info("Setting up VIP-X integration: %s:%d", host, port)

    coordinator = VipxCoordinator(hass=hass, host=host, port=port)

    try:
        await coordinator.async_start()
    except Exception as err:
        _LOGGER.error("Failed to start VIP-X client: %s", err, exc_info=True)
        return False

    # Entities start from whatever is cached; the cache fills after the handshake
    await coordinator.async_config_entry_first_refresh()

    hass.data.setdefault(DOMAIN, {})
    hass.data[DOMAIN][entry.entry_id] = {
        "coordinator": coordinator,
        "host": host,
        "port": port,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _async_register_services(hass)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry.

    Stops the persistent connection and cleans up resources.
    """
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    if unload_ok:
        entry_data = hass.data[DOMAIN].pop(entry.entry_id)
        await entry_data["coordinator"].async_shutdown()

        if not hass.data[DOMAIN]:
            for service in (SERVICE_CALL, SERVICE_SET_WINDOW_INPUT, SERVICE_SET_WINDOW_AUDIO):
                hass.services.async_remove(DOMAIN, service)

    return unload_ok


def _get_coordinator(hass: HomeAssistant, call: ServiceCall) -> VipxCoordinator:
    entries: dict[str, Any] = hass.data.get(DOMAIN, {})
    entry_id = call.data.get(ATTR_ENTRY_ID)

    if entry_id is not None:
        if entry_id not in entries:
            raise HomeAssistantError(f"Unknown VIP-X entry: {entry_id}")
        return entries[entry_id]["coordinator"]

    if len(entries) != 1:
        raise HomeAssistantError("Several VIP-X devices are configured, pass entry_id")
    return next(iter(entries.values()))["coordinator"]


def _async_register_services(hass: HomeAssistant) -> None:
    if hass.services.has_service(DOMAIN, SERVICE_CALL):
        return

    async def handle_call(call: ServiceCall) -> ServiceResponse:
        coordinator = _get_coordinator(hass, call)
        try:
            response = await coordinator.client.call(call.data[ATTR_METHOD], call.data.get(ATTR_PARAMS))
        except VipxError as err:
            raise HomeAssistantError(str(err)) from err
        return {"response": response}

    async def handle_set_window_input(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call)
        try:
            await coordinator.client.set_window_input(
                call.data[ATTR_DISPLAY_ID],
                call.data[ATTR_WINDOW_ID],
                call.data.get(ATTR_INPUT_ID),
            )
        except VipxError as err:
            raise HomeAssistantError(str(err)) from err

    async def handle_set_window_audio(call: ServiceCall) -> None:
        coordinator = _get_coordinator(hass, call)
        try:
            await coordinator.client.set_window_audio(
                call.data[ATTR_DISPLAY_ID],
                call.data[ATTR_WINDOW_ID],
                call.data.get(ATTR_AUDIO_INDEX),
            )
        except VipxError as err:
            raise HomeAssistantError(str(err)) from err

    hass.services.async_register(
        DOMAIN,
        SERVICE_CALL,
        handle_call,
        schema=CALL_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SET_WINDOW_INPUT, handle_set_window_input, schema=WINDOW_INPUT_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SET_WINDOW_AUDIO, handle_set_window_audio, schema=WINDOW_AUDIO_SCHEMA
    )
