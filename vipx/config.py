"""Configuration loading and validation."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

import voluptuous as vol
import yaml

from .client import DEFAULT_HOST, DEFAULT_PORT
from .correlator import DEFAULT_REQUEST_TIMEOUT
from .lifecycle import DEFAULT_SUPPORTED_VERSIONS

_LOGGER = logging.getLogger(__name__)

CONF_HOST = "host"
CONF_PORT = "port"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_SUPPORTED_VERSIONS = "client_supported_versions"
CONF_RECONNECT = "reconnect"

PORT = vol.All(vol.Coerce(int), vol.Range(min=1, max=65535))

CONFIG_SCHEMA = vol.Schema(
    {
        vol.Optional(CONF_HOST, default=DEFAULT_HOST): vol.All(str, vol.Length(min=1)),
        vol.Optional(CONF_PORT, default=DEFAULT_PORT): PORT,
        vol.Optional(CONF_REQUEST_TIMEOUT, default=DEFAULT_REQUEST_TIMEOUT): vol.All(
            vol.Coerce(float), vol.Range(min=0, min_included=False)
        ),
        vol.Optional(CONF_SUPPORTED_VERSIONS, default=list(DEFAULT_SUPPORTED_VERSIONS)): vol.All(
            [vol.All(int, vol.Range(min=1))], vol.Length(min=1)
        ),
        vol.Optional(CONF_RECONNECT, default=True): bool,
    },
    extra=vol.REMOVE_EXTRA,
)


def validate_config(data: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Validate a configuration mapping and fill in defaults.

    Raises:
        vol.Invalid: If a value is out of range or of the wrong type
    """
    return CONFIG_SCHEMA(dict(data or {}))


def load_config(path: Optional[str] = None, overrides: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    """
    Load configuration from a YAML file, then apply overrides.

    Args:
        path: YAML file with the keys of CONFIG_SCHEMA (optional)
        overrides: Values taking precedence over the file (None values ignored)

    Returns:
        Validated configuration dict

    Raises:
        FileNotFoundError: If ``path`` does not exist
        ValueError: If the file is not a YAML mapping
        vol.Invalid: If validation fails
    """
    data: dict[str, Any] = {}

    if path:
        config_path = Path(path)
        with open(config_path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f)
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ValueError(f"{config_path} must contain a mapping, got {type(loaded).__name__}")
        _LOGGER.debug("Loaded configuration from %s", config_path)
        data.update(loaded)

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    return validate_config(data)
