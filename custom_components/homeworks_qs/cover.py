"""Support for Lutron HomeWorks QS shades."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.components.cover import (
    ATTR_POSITION,
    CoverDeviceClass,
    CoverEntity,
    CoverEntityFeature,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from . import HomeworksQSData, HomeworksQSEntity
from .const import DOMAIN
from .coordinator import HomeworksQSCoordinator
from .models import DeviceConfig

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
    hass: HomeAssistant, entry: ConfigEntry, async_add_entities: AddEntitiesCallback
) -> None:
    """Set up HomeWorks QS shades."""
    data: HomeworksQSData = hass.data[DOMAIN][entry.entry_id]
    coordinator = data.coordinator

    entities = [
        HomeworksQSShade(coordinator, data.controller_id, device)
        for device in coordinator.devices
        if device.is_shade
    ]
    if entities:
        _LOGGER.debug("Adding %d cover entities", len(entities))
        async_add_entities(entities)
    else:
        _LOGGER.debug("No covers to add")


class HomeworksQSShade(HomeworksQSEntity, CoverEntity):
    """HomeWorks QS shade.

    Commands set the target position. The processor reports the target
    immediately and a motion-stop event at the end of travel.
    """

    _attr_device_class = CoverDeviceClass.SHADE
    _attr_supported_features = (
        CoverEntityFeature.OPEN
        | CoverEntityFeature.CLOSE
        | CoverEntityFeature.SET_POSITION
    )

    def __init__(
        self,
        coordinator: HomeworksQSCoordinator,
        controller_id: str,
        device: DeviceConfig,
    ) -> None:
        """Initialize the shade."""
        super().__init__(coordinator, controller_id, device, "cover")
        self._attr_extra_state_attributes = {
            "integration_id": device.integration_id,
        }

    @property
    def _state(self):
        return self.coordinator.get_shade_state(self._device.integration_id)

    @property
    def current_cover_position(self) -> int:
        """Return current position (0 closed, 100 open)."""
        return round(self._state.position)

    @property
    def is_closed(self) -> bool:
        """Return True if the shade is closed."""
        return self._state.position <= 0

    @property
    def is_opening(self) -> bool:
        """Return True if the shade is opening."""
        return self._state.is_opening

    @property
    def is_closing(self) -> bool:
        """Return True if the shade is closing."""
        return self._state.is_closing

    async def async_set_cover_position(self, **kwargs: Any) -> None:
        """Move the shade to a position."""
        await self._async_move(float(kwargs[ATTR_POSITION]))

    async def async_open_cover(self, **kwargs: Any) -> None:
        """Open the shade."""
        await self._async_move(100.0)

    async def async_close_cover(self, **kwargs: Any) -> None:
        """Close the shade."""
        await self._async_move(0.0)

    async def _async_move(self, target: float) -> None:
        _LOGGER.debug("Moving %s to %s", self._device.name, target)
        if not self._state.set_target(target):
            return
        self.coordinator.async_set_level(self._device.integration_id, target)
        self.async_write_ha_state()

    @callback
    def _handle_coordinator_update(self) -> None:
        """Handle updated data from the coordinator."""
        self.async_write_ha_state()
