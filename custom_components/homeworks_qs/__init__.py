"""Support for Lutron HomeWorks QS processors.

- Credentials (host, port, username, password) in entry.data
- Non-secrets (devices, settings) in entry.options
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import (
    CONF_HOST,
    CONF_PASSWORD,
    CONF_PORT,
    CONF_USERNAME,
    EVENT_HOMEASSISTANT_STOP,
    Platform,
)
from homeassistant.core import Event, HomeAssistant, ServiceCall, callback
from homeassistant.exceptions import ServiceValidationError
import homeassistant.helpers.config_validation as cv
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.typing import ConfigType
from homeassistant.helpers.update_coordinator import CoordinatorEntity
from homeassistant.util import slugify

from .const import (
    CONF_CONTROLLER_ID,
    CONF_DEFAULT_FADE_TIME,
    CONF_DEVICES,
    CONF_DIMMABLE_FADE_TIME,
    CONF_IDLE_THRESHOLD,
    CONF_MONITORING_CHANNEL,
    CONF_RECONNECT_DELAY,
    DEFAULT_DIMMABLE_FADE_TIME,
    DEFAULT_FADE_TIME,
    DEFAULT_IDLE_THRESHOLD,
    DEFAULT_MONITORING_CHANNEL,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_DELAY,
    DOMAIN,
    SERVICE_SEND_COMMAND,
)
from .coordinator import HomeworksQSCoordinator
from .hwqs_protocol import HomeworksQSClientConfig
from .models import DeviceConfig

_LOGGER = logging.getLogger(__name__)

PLATFORMS: list[Platform] = [Platform.COVER, Platform.LIGHT]

CONF_COMMAND = "command"

CONFIG_SCHEMA = cv.config_entry_only_config_schema(DOMAIN)

SERVICE_SEND_COMMAND_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_CONTROLLER_ID): str,
        vol.Required(CONF_COMMAND): vol.All(cv.ensure_list, [str]),
    }
)


@dataclass
class HomeworksQSData:
    """Container for config entry data."""

    coordinator: HomeworksQSCoordinator
    controller_id: str


@callback
def async_setup_services(hass: HomeAssistant) -> None:
    """Set up services for Lutron HomeWorks QS."""

    async def async_call_service(service_call: ServiceCall) -> None:
        """Call the service."""
        await async_send_command(hass, service_call.data)

    hass.services.async_register(
        DOMAIN,
        SERVICE_SEND_COMMAND,
        async_call_service,
        schema=SERVICE_SEND_COMMAND_SCHEMA,
    )


async def async_send_command(hass: HomeAssistant, data: Mapping[str, Any]) -> None:
    """Send raw commands to a processor.

    A "delay <ms>" entry pauses between commands.
    """

    def get_controller_ids() -> list[str]:
        """Get controller IDs."""
        return [hw_data.controller_id for hw_data in hass.data.get(DOMAIN, {}).values()]

    def get_homeworks_data(controller_id: str) -> HomeworksQSData | None:
        """Get data for controller ID."""
        for hw_data in hass.data.get(DOMAIN, {}).values():
            if hw_data.controller_id == controller_id:
                return hw_data
        return None

    homeworks_data = get_homeworks_data(data[CONF_CONTROLLER_ID])
    if not homeworks_data:
        raise ServiceValidationError(
            translation_domain=DOMAIN,
            translation_key="invalid_controller_id",
            translation_placeholders={
                "controller_id": data[CONF_CONTROLLER_ID],
                "controller_ids": ",".join(get_controller_ids()),
            },
        )

    client = homeworks_data.coordinator.client
    if not client:
        raise ServiceValidationError(
            translation_domain=DOMAIN,
            translation_key="not_connected",
        )

    commands = data[CONF_COMMAND]
    _LOGGER.debug("Send commands: %s", commands)

    for command in commands:
        if command.lower().startswith("delay"):
            try:
                delay = int(command.partition(" ")[2])
            except ValueError as err:
                raise ServiceValidationError(f"Invalid delay: {command}") from err
            _LOGGER.debug("Sleeping for %s ms", delay)
            await asyncio.sleep(delay / 1000)
        else:
            _LOGGER.debug("Sending command '%s'", command)
            client.send(command)


async def async_setup(hass: HomeAssistant, config: ConfigType) -> bool:
    """Set up the HomeWorks QS component."""
    async_setup_services(hass)
    return True


def client_config_from_entry(entry: ConfigEntry) -> HomeworksQSClientConfig:
    """Build the engine configuration from a config entry."""
    options = entry.options
    return HomeworksQSClientConfig(
        host=entry.data[CONF_HOST],
        port=entry.data.get(CONF_PORT, DEFAULT_PORT),
        username=entry.data.get(CONF_USERNAME, ""),
        password=entry.data.get(CONF_PASSWORD, ""),
        monitoring_channel=options.get(
            CONF_MONITORING_CHANNEL, DEFAULT_MONITORING_CHANNEL
        ),
        idle_threshold=float(options.get(CONF_IDLE_THRESHOLD, DEFAULT_IDLE_THRESHOLD)),
        reconnect_delay=float(
            options.get(CONF_RECONNECT_DELAY, DEFAULT_RECONNECT_DELAY)
        ),
        dimmable_fade_time=options.get(
            CONF_DIMMABLE_FADE_TIME, DEFAULT_DIMMABLE_FADE_TIME
        ),
        default_fade_time=options.get(CONF_DEFAULT_FADE_TIME, DEFAULT_FADE_TIME),
    )


def _load_devices(options: Mapping[str, Any]) -> list[DeviceConfig]:
    """Build the roster, skipping invalid or duplicated entries."""
    devices: list[DeviceConfig] = []
    seen: set[str] = set()
    for device_config in options.get(CONF_DEVICES, []):
        try:
            device = DeviceConfig.from_dict(device_config)
        except vol.Invalid as err:
            _LOGGER.error("Invalid device %s: %s", device_config, err)
            continue
        if device.integration_id in seen:
            _LOGGER.error("Duplicate integration id: %s", device.integration_id)
            continue
        seen.add(device.integration_id)
        devices.append(device)
    return devices


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up HomeWorks QS from a config entry.

    The processor connection is established in the background; entities
    are unavailable until the session is ready.
    """
    hass.data.setdefault(DOMAIN, {})

    controller_id = entry.options.get(CONF_CONTROLLER_ID, slugify(entry.title))

    coordinator = HomeworksQSCoordinator(
        hass=hass,
        config=client_config_from_entry(entry),
        controller_id=controller_id,
        devices=_load_devices(entry.options),
    )
    await coordinator.async_setup()

    hass.data[DOMAIN][entry.entry_id] = HomeworksQSData(
        coordinator=coordinator,
        controller_id=controller_id,
    )

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    async def cleanup(event: Event) -> None:
        await coordinator.async_shutdown()

    entry.async_on_unload(hass.bus.async_listen_once(EVENT_HOMEASSISTANT_STOP, cleanup))
    entry.async_on_unload(entry.add_update_listener(update_listener))

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    if not await hass.config_entries.async_unload_platforms(entry, PLATFORMS):
        return False

    data: HomeworksQSData = hass.data[DOMAIN].pop(entry.entry_id)
    await data.coordinator.async_shutdown()

    return True


async def update_listener(hass: HomeAssistant, entry: ConfigEntry) -> None:
    """Handle options update."""
    await hass.config_entries.async_reload(entry.entry_id)


def calculate_unique_id(controller_id: str, platform: str, integration_id: str) -> str:
    """Calculate entity unique id."""
    return f"{DOMAIN}.{controller_id}.{platform}.{integration_id}"


class HomeworksQSEntity(CoordinatorEntity[HomeworksQSCoordinator]):
    """Base class of a HomeWorks QS output."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: HomeworksQSCoordinator,
        controller_id: str,
        device: DeviceConfig,
        platform: str,
    ) -> None:
        """Initialize the entity."""
        super().__init__(coordinator)
        self._device = device
        self._controller_id = controller_id
        self._attr_name = None
        self._attr_unique_id = calculate_unique_id(
            controller_id, platform, device.integration_id
        )
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, f"{controller_id}.{device.integration_id}")},
            name=device.name,
            manufacturer="Lutron",
            model="HomeWorks QS Shade" if device.is_shade else "HomeWorks QS Output",
        )

    @property
    def available(self) -> bool:
        """Return True if the session is ready."""
        return self.coordinator.connected
