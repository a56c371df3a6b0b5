"""Tests for configuration loading."""
import pytest
import voluptuous as vol

from vipx.config import (
    CONF_HOST,
    CONF_PORT,
    CONF_RECONNECT,
    CONF_REQUEST_TIMEOUT,
    CONF_SUPPORTED_VERSIONS,
    load_config,
    validate_config,
)


def test_defaults():
    config = validate_config()

    assert config == {
        CONF_HOST: "127.0.0.1",
        CONF_PORT: 31001,
        CONF_REQUEST_TIMEOUT: 7.0,
        CONF_SUPPORTED_VERSIONS: [1, 2],
        CONF_RECONNECT: True,
    }


def test_yaml_file_and_overrides(tmp_path):
    path = tmp_path / "vipx.yaml"
    path.write_text("host: 10.0.0.20\nport: 31002\nrequest_timeout: 3\nunknown_key: 1\n", encoding="utf-8")

    config = load_config(str(path), {CONF_PORT: 4000, CONF_HOST: None})

    assert config[CONF_HOST] == "10.0.0.20"
    assert config[CONF_PORT] == 4000
    assert config[CONF_REQUEST_TIMEOUT] == 3.0
    assert "unknown_key" not in config


def test_empty_file_uses_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_config(str(path))[CONF_PORT] == 31001


def test_non_mapping_file_is_rejected(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(ValueError):
        load_config(str(path))


@pytest.mark.parametrize(
    "data",
    [
        {CONF_PORT: 0},
        {CONF_PORT: 70000},
        {CONF_REQUEST_TIMEOUT: 0},
        {CONF_SUPPORTED_VERSIONS: []},
        {CONF_HOST: ""},
    ],
)
def test_invalid_values(data):
    with pytest.raises(vol.Invalid):
        validate_config(data)
