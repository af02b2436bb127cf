"""Support for Lutron HomeWorks QS lights."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.light import (
    ATTR_BRIGHTNESS,
    ColorMode,
    LightEntity,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import HomeworksQSData, HomeworksQSEntity
from .const import DOMAIN
from .coordinator import HomeworksQSCoordinator
from .models import DeviceConfig

_LOGGER = logging.getLogger(__name__)


def to_ha_brightness(level: float) -> int:
    """Convert a 0-100 level to 0-255."""
    return round(level * 255.0 / 100.0)


def to_hw_level(brightness: int) -> float:
    """Convert a 0-255 brightness to a 0-100 level."""
    return round(brightness * 100.0 / 255.0)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up HomeWorks QS lights."""
    data: HomeworksQSData = hass.data[DOMAIN][entry.entry_id]
    coordinator = data.coordinator

    entities = [
        HomeworksQSLight(coordinator, data.controller_id, device)
        for device in coordinator.devices
        if not device.is_shade
    ]
    if entities:
        _LOGGER.debug("Adding %d light entities", len(entities))
        async_add_entities(entities)


class HomeworksQSLight(HomeworksQSEntity, LightEntity):
    """HomeWorks QS light.

    Dimmable outputs support brightness, others are on/off.
    """

    def __init__(
        self,
        coordinator: HomeworksQSCoordinator,
        controller_id: str,
        device: DeviceConfig,
    ) -> None:
        """Initialize the light."""
        super().__init__(coordinator, controller_id, device, "light")
        if device.dimmable:
            self._attr_color_mode = ColorMode.BRIGHTNESS
            self._attr_supported_color_modes = {ColorMode.BRIGHTNESS}
        else:
            self._attr_color_mode = ColorMode.ONOFF
            self._attr_supported_color_modes = {ColorMode.ONOFF}
        self._attr_extra_state_attributes = {
            "integration_id": device.integration_id,
            "dimmable": device.dimmable,
        }

    @property
    def _state(self):
        return self.coordinator.get_light_state(self._device.integration_id)

    @property
    def is_on(self) -> bool:
        """Return True if the light is on."""
        return self._state.is_on

    @property
    def brightness(self) -> int | None:
        """Return the brightness (0-255)."""
        if not self._device.dimmable:
            return None
        return to_ha_brightness(self._state.brightness)

    async def async_turn_on(self, **kwargs: Any) -> None:
        """Turn on the light."""
        state = self._state
        if ATTR_BRIGHTNESS in kwargs and self._device.dimmable:
            level = state.set_brightness(to_hw_level(kwargs[ATTR_BRIGHTNESS]))
        else:
            level = state.turn_on()
        if level is None:
            return
        self.coordinator.async_set_level(self._device.integration_id, level)
        self.async_write_ha_state()

    async def async_turn_off(self, **kwargs: Any) -> None:
        """Turn off the light."""
        level = self._state.turn_off()
        if level is None:
            return
        self.coordinator.async_set_level(self._device.integration_id, level)
        self.async_write_ha_state()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self.async_write_ha_state()
