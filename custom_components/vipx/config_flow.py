"""Config flow for the VIP-X integration.

Flow Steps:
    1. User provides host and port
    2. Validation: connect and complete the protocol handshake
    3. Create config entry with validated data

Reconfiguring an entry reloads it, which replaces the client and
reconnects to the new target.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import HomeAssistant
from homeassistant.data_entry_flow import FlowResult
import homeassistant.helpers.config_validation as cv

from vipx import HandshakeError, VipxClient

from .const import (
    CONF_HOST,
    CONF_PORT,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DOMAIN,
    PROBE_TIMEOUT,
)

_LOGGER = logging.getLogger(__name__)

STEP_USER = "user"


async def validate_connection(hass: HomeAssistant, host: str, port: int) -> dict[str, Any]:
    """Connect once and perform the handshake.

    Args:
        hass: Home Assistant instance
        host: VIP-X host
        port: VIP-X JSON-RPC port

    Returns:
        dict with "version": negotiated protocol version

    Raises:
        ValueError: If the device cannot be reached or rejects the handshake
    """
    client = VipxClient(host, port, reconnect=False)
    client.start()
    try:
        version = await client.wait_ready(timeout=PROBE_TIMEOUT)
    except asyncio.TimeoutError as err:
        raise ValueError(f"Connection to {host}:{port} timed out") from err
    except HandshakeError as err:
        raise ValueError(f"Handshake failed: {err}") from err
    finally:
        await client.stop()

    _LOGGER.info("VIP-X validation successful: %s:%s speaks interface version %d", host, port, version)
    return {"version": version}


def _schema(defaults: dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_HOST, default=defaults.get(CONF_HOST, DEFAULT_HOST)): cv.string,
            vol.Required(CONF_PORT, default=defaults.get(CONF_PORT, DEFAULT_PORT)): cv.port,
        }
    )


def _error_key(err: ValueError) -> str:
    text = str(err).lower()
    if "timed out" in text:
        return "connection_timeout"
    if "handshake" in text:
        return "handshake_failed"
    return "cannot_connect"


class VipxConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
    """Handle a config flow for the VIP-X integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Handle the initial step (user input)."""
        errors: dict[str, str] = {}

        if user_input is not None:
            host = user_input[CONF_HOST]
            port = user_input[CONF_PORT]

            await self.async_set_unique_id(f"{host}:{port}")
            self._abort_if_unique_id_configured()

            try:
                await validate_connection(self.hass, host, port)
            except ValueError as err:
                _LOGGER.error("Validation error: %s", err)
                errors["base"] = _error_key(err)
            except Exception:
                _LOGGER.exception("Unexpected error in config flow")
                errors["base"] = "unknown"
            else:
                return self.async_create_entry(
                    title=f"VIP-X ({host}:{port})",
                    data={CONF_HOST: host, CONF_PORT: port},
                )

        return self.async_show_form(
            step_id=STEP_USER,
            data_schema=_schema(user_input or {}),
            errors=errors,
        )

    async def async_step_reconfigure(
        self, user_input: dict[str, Any] | None = None
    ) -> FlowResult:
        """Point an existing entry at a different host/port."""
        entry = self._get_reconfigure_entry()
        errors: dict[str, str] = {}

        if user_input is not None:
            try:
                await validate_connection(self.hass, user_input[CONF_HOST], user_input[CONF_PORT])
            except ValueError as err:
                _LOGGER.error("Validation error: %s", err)
                errors["base"] = _error_key(err)
            else:
                return self.async_update_reload_and_abort(
                    entry,
                    unique_id=f"{user_input[CONF_HOST]}:{user_input[CONF_PORT]}",
                    title=f"VIP-X ({user_input[CONF_HOST]}:{user_input[CONF_PORT]})",
                    data_updates=user_input,
                )

        return self.async_show_form(
            step_id="reconfigure",
            data_schema=_schema(user_input or dict(entry.data)),
            errors=errors,
        )
