"""Diagnostics support for Lutron HomeWorks QS."""

from __future__ import annotations

from typing import Any

from homeassistant.components.diagnostics import async_redact_data
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_HOST, CONF_PASSWORD, CONF_USERNAME
from homeassistant.core import HomeAssistant

from . import HomeworksQSData
from .const import CONF_CONTROLLER_ID, DOMAIN

# Keys to redact from diagnostics
TO_REDACT = {
    CONF_PASSWORD,
    CONF_USERNAME,
    CONF_HOST,
}


async def async_get_config_entry_diagnostics(
    hass: HomeAssistant, entry: ConfigEntry
) -> dict[str, Any]:
    """Return diagnostics for a config entry."""
    data: HomeworksQSData = hass.data[DOMAIN][entry.entry_id]
    coordinator = data.coordinator

    devices = coordinator.devices
    device_counts = {
        "lights": sum(1 for device in devices if not device.is_shade),
        "shades": sum(1 for device in devices if device.is_shade),
    }

    client = coordinator.client
    engine = {}
    if client:
        engine = {
            "port": client.port,
            "monitoring_channel": client.config.monitoring_channel,
            "idle_threshold": client.config.idle_threshold,
            "reconnect_delay": client.config.reconnect_delay,
            "reconnect_pending": client.reconnect_pending,
            "monitor_targets": len(client.monitor_targets),
        }

    return {
        "config_entry": {
            "entry_id": entry.entry_id,
            "controller_id": entry.options.get(CONF_CONTROLLER_ID),
            "title": entry.title,
            "data": async_redact_data(dict(entry.data), TO_REDACT),
            "options": async_redact_data(dict(entry.options), TO_REDACT),
        },
        "health": coordinator.health.as_dict(),
        "engine": engine,
        "device_counts": device_counts,
    }
