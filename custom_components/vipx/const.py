"""Constants for the VIP-X integration."""

DOMAIN = "vipx"

# Configuration keys
CONF_HOST = "host"
CONF_PORT = "port"

# Defaults
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 31001
PROBE_TIMEOUT = 10.0  # seconds

# Entity platforms
PLATFORMS = ["binary_sensor", "sensor", "select", "button"]

# Services
SERVICE_CALL = "call"
SERVICE_SET_WINDOW_INPUT = "set_window_input"
SERVICE_SET_WINDOW_AUDIO = "set_window_audio"

ATTR_ENTRY_ID = "entry_id"
ATTR_METHOD = "method"
ATTR_PARAMS = "params"
ATTR_DISPLAY_ID = "display_id"
ATTR_WINDOW_ID = "window_id"
ATTR_INPUT_ID = "input_id"
ATTR_AUDIO_INDEX = "audio_index"

MANUFACTURER = "Evertz"
MODEL = "VIP-X"
