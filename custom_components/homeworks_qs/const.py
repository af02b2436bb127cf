"""Constants for the Lutron HomeWorks QS integration."""

from __future__ import annotations

from typing import Final

DOMAIN: Final = "homeworks_qs"

# Configuration keys
CONF_CONTROLLER_ID: Final = "controller_id"
CONF_DEVICES: Final = "devices"
CONF_INTEGRATION_ID: Final = "integration_id"
CONF_DEVICE_TYPE: Final = "device_type"
CONF_DIMMABLE: Final = "dimmable"
CONF_DESCRIPTION: Final = "description"

# Controller settings
CONF_MONITORING_CHANNEL: Final = "monitoring_channel"
CONF_DIMMABLE_FADE_TIME: Final = "dimmable_fade_time"
CONF_DEFAULT_FADE_TIME: Final = "default_fade_time"
CONF_IDLE_THRESHOLD: Final = "idle_threshold"
CONF_RECONNECT_DELAY: Final = "reconnect_delay"

# Device types
DEVICE_TYPE_LIGHT: Final = "light"
DEVICE_TYPE_SHADE: Final = "shade"

# Default values
DEFAULT_PORT: Final = 23
DEFAULT_USERNAME: Final = "lutron"
DEFAULT_PASSWORD: Final = "integration"
DEFAULT_MONITORING_CHANNEL: Final = 5
DEFAULT_DIMMABLE_FADE_TIME: Final = "00:01"
DEFAULT_FADE_TIME: Final = "00:00"
DEFAULT_IDLE_THRESHOLD: Final = 40
DEFAULT_RECONNECT_DELAY: Final = 5
DEFAULT_LIGHT_NAME: Final = "HomeWorks light"

# Seconds the config flow waits for a monitored session
CONNECTION_TEST_TIMEOUT: Final = 15

# Service names
SERVICE_SEND_COMMAND: Final = "send_command"
