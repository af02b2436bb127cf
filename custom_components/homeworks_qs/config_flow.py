"""Lutron HomeWorks QS config flow.

- Credentials (host, port, username, password) stored in entry.data
- Non-secrets (devices, settings) stored in entry.options
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import (
    ConfigEntry,
    ConfigFlow,
    ConfigFlowResult,
)
from homeassistant.const import (
    CONF_HOST,
    CONF_NAME,
    CONF_PASSWORD,
    CONF_PORT,
    CONF_USERNAME,
)
from homeassistant.core import callback
from homeassistant.helpers import (
    config_validation as cv,
    entity_registry as er,
    selector,
)
from homeassistant.helpers.schema_config_entry_flow import (
    SchemaCommonFlowHandler,
    SchemaFlowError,
    SchemaFlowFormStep,
    SchemaFlowMenuStep,
    SchemaOptionsFlowHandler,
)
from homeassistant.util import slugify

from . import calculate_unique_id
from .const import (
    CONF_CONTROLLER_ID,
    CONF_DEFAULT_FADE_TIME,
    CONF_DESCRIPTION,
    CONF_DEVICE_TYPE,
    CONF_DEVICES,
    CONF_DIMMABLE,
    CONF_DIMMABLE_FADE_TIME,
    CONF_IDLE_THRESHOLD,
    CONF_INTEGRATION_ID,
    CONF_MONITORING_CHANNEL,
    CONF_RECONNECT_DELAY,
    CONNECTION_TEST_TIMEOUT,
    DEFAULT_DIMMABLE_FADE_TIME,
    DEFAULT_FADE_TIME,
    DEFAULT_IDLE_THRESHOLD,
    DEFAULT_LIGHT_NAME,
    DEFAULT_MONITORING_CHANNEL,
    DEFAULT_PASSWORD,
    DEFAULT_PORT,
    DEFAULT_RECONNECT_DELAY,
    DEFAULT_USERNAME,
    DEVICE_TYPE_LIGHT,
    DEVICE_TYPE_SHADE,
    DOMAIN,
)
from .hwqs_protocol import HomeworksQSClient, HomeworksQSClientConfig
from .models import parse_roster

_LOGGER = logging.getLogger(__name__)

CONF_INDEX = "index"

DEVICE_TYPES = [
    selector.SelectOptionDict(value=DEVICE_TYPE_LIGHT, label="light"),
    selector.SelectOptionDict(value=DEVICE_TYPE_SHADE, label="shade"),
]

# Fade times are sent verbatim, e.g. "00:01" or "1.5"
_FADE_TIME = vol.Match(r"^(\d{1,2}:)?\d{1,2}(\.\d{1,2})?$")


# === Connection Testing ===


async def _try_connection(
    host: str,
    port: int,
    username: str = "",
    password: str = "",
) -> None:
    """Log in to the processor and wait for a monitored session."""
    config = HomeworksQSClientConfig(
        host=host,
        port=port,
        username=username,
        password=password,
    )
    client = HomeworksQSClient(config)
    ready = asyncio.Event()
    client.register_did_connect_callback(ready.set)

    try:
        client.start()
        await asyncio.wait_for(ready.wait(), timeout=CONNECTION_TEST_TIMEOUT)
    except asyncio.TimeoutError as err:
        _LOGGER.debug("No monitored session from %s:%s", host, port)
        raise SchemaFlowError("connection_error") from err
    finally:
        await client.stop()


# === Device CRUD ===


def _validate_roster(devices: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Validate the roster and return its normalized form."""
    try:
        return [device.as_dict() for device in parse_roster(devices)]
    except vol.Invalid as err:
        _LOGGER.debug("Invalid device: %s", err)
        if "Duplicate" in str(err):
            raise SchemaFlowError("duplicated_integration_id") from err
        raise SchemaFlowError("invalid_device") from err


async def validate_add_device(
    handler: SchemaCommonFlowHandler, user_input: dict[str, Any]
) -> dict[str, Any]:
    """Validate a new device and append it to the roster."""
    devices = [*handler.options.get(CONF_DEVICES, []), user_input]
    handler.options[CONF_DEVICES] = _validate_roster(devices)
    return {}


def _device_choices(handler: SchemaCommonFlowHandler) -> dict[str, str]:
    devices = handler.options.get(CONF_DEVICES, [])
    if not devices:
        raise SchemaFlowError("no_devices")
    return {
        str(i): f"{d.get(CONF_NAME, DEFAULT_LIGHT_NAME)} ({d[CONF_INTEGRATION_ID]})"
        for i, d in enumerate(devices)
    }


async def get_select_device_schema(handler: SchemaCommonFlowHandler) -> vol.Schema:
    """Return schema for selecting a device."""
    return vol.Schema({vol.Required(CONF_INDEX): vol.In(_device_choices(handler))})


async def validate_select_device(
    handler: SchemaCommonFlowHandler, user_input: dict[str, Any]
) -> dict[str, Any]:
    """Store device index."""
    handler.flow_state["_idx"] = int(user_input[CONF_INDEX])
    return {}


async def get_edit_device_suggested_values(
    handler: SchemaCommonFlowHandler,
) -> dict[str, Any]:
    """Return suggested values for device editing."""
    idx = handler.flow_state["_idx"]
    return dict(handler.options[CONF_DEVICES][idx])


async def validate_device_edit(
    handler: SchemaCommonFlowHandler, user_input: dict[str, Any]
) -> dict[str, Any]:
    """Update edited device."""
    idx = handler.flow_state["_idx"]
    devices = [dict(d) for d in handler.options[CONF_DEVICES]]
    devices[idx].update(user_input)
    handler.options[CONF_DEVICES] = _validate_roster(devices)
    return {}


async def get_remove_device_schema(handler: SchemaCommonFlowHandler) -> vol.Schema:
    """Return schema for device removal."""
    return vol.Schema(
        {vol.Required(CONF_INDEX): cv.multi_select(_device_choices(handler))}
    )


async def validate_remove_device(
    handler: SchemaCommonFlowHandler, user_input: dict[str, Any]
) -> dict[str, Any]:
    """Remove selected devices and their entities."""
    removed = set(user_input[CONF_INDEX])
    registry = er.async_get(handler.parent_handler.hass)
    controller_id = handler.options[CONF_CONTROLLER_ID]

    new_items = []
    for i, item in enumerate(handler.options.get(CONF_DEVICES, [])):
        if str(i) not in removed:
            new_items.append(item)
            continue
        platform = "cover" if item.get(CONF_DEVICE_TYPE) == DEVICE_TYPE_SHADE else "light"
        unique_id = calculate_unique_id(
            controller_id, platform, item[CONF_INTEGRATION_ID]
        )
        entity_id = registry.async_get_entity_id(platform, DOMAIN, unique_id)
        if entity_id:
            registry.async_remove(entity_id)

    handler.options[CONF_DEVICES] = new_items
    return {}


# === Controller Settings ===


async def get_controller_settings_suggested_values(
    handler: SchemaCommonFlowHandler,
) -> dict[str, Any]:
    """Return current controller settings."""
    return {
        CONF_MONITORING_CHANNEL: handler.options.get(
            CONF_MONITORING_CHANNEL, DEFAULT_MONITORING_CHANNEL
        ),
        CONF_DIMMABLE_FADE_TIME: handler.options.get(
            CONF_DIMMABLE_FADE_TIME, DEFAULT_DIMMABLE_FADE_TIME
        ),
        CONF_DEFAULT_FADE_TIME: handler.options.get(
            CONF_DEFAULT_FADE_TIME, DEFAULT_FADE_TIME
        ),
        CONF_IDLE_THRESHOLD: handler.options.get(
            CONF_IDLE_THRESHOLD, DEFAULT_IDLE_THRESHOLD
        ),
        CONF_RECONNECT_DELAY: handler.options.get(
            CONF_RECONNECT_DELAY, DEFAULT_RECONNECT_DELAY
        ),
    }


async def validate_controller_settings(
    handler: SchemaCommonFlowHandler, user_input: dict[str, Any]
) -> dict[str, Any]:
    """Update controller settings."""
    for key in (CONF_DIMMABLE_FADE_TIME, CONF_DEFAULT_FADE_TIME):
        try:
            handler.options[key] = _FADE_TIME(user_input[key].strip())
        except vol.Invalid as err:
            raise SchemaFlowError("invalid_fade_time") from err
    handler.options[CONF_MONITORING_CHANNEL] = int(user_input[CONF_MONITORING_CHANNEL])
    handler.options[CONF_IDLE_THRESHOLD] = int(user_input[CONF_IDLE_THRESHOLD])
    handler.options[CONF_RECONNECT_DELAY] = int(user_input[CONF_RECONNECT_DELAY])
    return {}


# === Schemas ===

DATA_SCHEMA_ADD_CONTROLLER = vol.Schema(
    {
        vol.Required(CONF_NAME, description={"suggested_value": "HomeWorks QS"}): selector.TextSelector(),
        vol.Required(CONF_HOST): selector.TextSelector(),
        vol.Required(CONF_PORT, default=DEFAULT_PORT): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=1, max=65535, mode=selector.NumberSelectorMode.BOX
            )
        ),
        vol.Optional(CONF_USERNAME, default=DEFAULT_USERNAME): selector.TextSelector(),
        vol.Optional(CONF_PASSWORD, default=DEFAULT_PASSWORD): selector.TextSelector(
            selector.TextSelectorConfig(type=selector.TextSelectorType.PASSWORD)
        ),
    }
)

DATA_SCHEMA_RECONFIGURE = vol.Schema(
    {
        vol.Required(CONF_HOST): selector.TextSelector(),
        vol.Required(CONF_PORT): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=1, max=65535, mode=selector.NumberSelectorMode.BOX
            )
        ),
        vol.Optional(CONF_USERNAME): selector.TextSelector(),
        vol.Optional(CONF_PASSWORD): selector.TextSelector(
            selector.TextSelectorConfig(type=selector.TextSelectorType.PASSWORD)
        ),
    }
)

DATA_SCHEMA_ADD_DEVICE = vol.Schema(
    {
        vol.Required(CONF_NAME, default=DEFAULT_LIGHT_NAME): selector.TextSelector(),
        vol.Required(CONF_INTEGRATION_ID): selector.TextSelector(),
        vol.Required(CONF_DEVICE_TYPE, default=DEVICE_TYPE_LIGHT): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=DEVICE_TYPES,
                mode=selector.SelectSelectorMode.DROPDOWN,
                translation_key="device_type",
            )
        ),
        vol.Optional(CONF_DIMMABLE, default=True): selector.BooleanSelector(),
        vol.Optional(CONF_DESCRIPTION, default=""): selector.TextSelector(),
    }
)

DATA_SCHEMA_EDIT_DEVICE = vol.Schema(
    {
        vol.Optional(CONF_NAME): selector.TextSelector(),
        vol.Optional(CONF_DEVICE_TYPE): selector.SelectSelector(
            selector.SelectSelectorConfig(
                options=DEVICE_TYPES,
                mode=selector.SelectSelectorMode.DROPDOWN,
                translation_key="device_type",
            )
        ),
        vol.Optional(CONF_DIMMABLE): selector.BooleanSelector(),
        vol.Optional(CONF_DESCRIPTION): selector.TextSelector(),
    }
)

DATA_SCHEMA_CONTROLLER_SETTINGS = vol.Schema(
    {
        vol.Required(
            CONF_MONITORING_CHANNEL, default=DEFAULT_MONITORING_CHANNEL
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=1, max=255, step=1, mode=selector.NumberSelectorMode.BOX
            )
        ),
        vol.Required(
            CONF_DIMMABLE_FADE_TIME, default=DEFAULT_DIMMABLE_FADE_TIME
        ): selector.TextSelector(),
        vol.Required(
            CONF_DEFAULT_FADE_TIME, default=DEFAULT_FADE_TIME
        ): selector.TextSelector(),
        vol.Required(
            CONF_IDLE_THRESHOLD, default=DEFAULT_IDLE_THRESHOLD
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=10,
                max=600,
                step=1,
                mode=selector.NumberSelectorMode.BOX,
                unit_of_measurement="s",
            )
        ),
        vol.Required(
            CONF_RECONNECT_DELAY, default=DEFAULT_RECONNECT_DELAY
        ): selector.NumberSelector(
            selector.NumberSelectorConfig(
                min=1,
                max=300,
                step=1,
                mode=selector.NumberSelectorMode.BOX,
                unit_of_measurement="s",
            )
        ),
    }
)

# === Options Flow Definition ===

OPTIONS_FLOW = {
    "init": SchemaFlowMenuStep(
        ["add_device", "select_edit_device", "remove_device", "controller_settings"]
    ),
    "add_device": SchemaFlowFormStep(
        DATA_SCHEMA_ADD_DEVICE, validate_user_input=validate_add_device
    ),
    "select_edit_device": SchemaFlowFormStep(
        get_select_device_schema,
        validate_user_input=validate_select_device,
        next_step="edit_device",
    ),
    "edit_device": SchemaFlowFormStep(
        DATA_SCHEMA_EDIT_DEVICE,
        suggested_values=get_edit_device_suggested_values,
        validate_user_input=validate_device_edit,
    ),
    "remove_device": SchemaFlowFormStep(
        get_remove_device_schema, validate_user_input=validate_remove_device
    ),
    "controller_settings": SchemaFlowFormStep(
        DATA_SCHEMA_CONTROLLER_SETTINGS,
        suggested_values=get_controller_settings_suggested_values,
        validate_user_input=validate_controller_settings,
    ),
}


class HomeworksQSConfigFlowHandler(ConfigFlow, domain=DOMAIN):
    """Config flow for Lutron HomeWorks QS.

    Credentials (host, port, username, password) are stored in entry.data.
    Non-secrets (devices, settings) are stored in entry.options.
    """

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle user setup."""
        errors = {}
        if user_input:
            name = user_input[CONF_NAME]
            host = user_input[CONF_HOST]
            port = int(user_input[CONF_PORT])
            username = user_input.get(CONF_USERNAME, "")
            password = user_input.get(CONF_PASSWORD, "")

            for entry in self._async_current_entries():
                if (
                    entry.data.get(CONF_HOST) == host
                    and entry.data.get(CONF_PORT) == port
                ):
                    return self.async_abort(reason="already_configured")

            try:
                await _try_connection(host, port, username, password)
            except SchemaFlowError as err:
                errors["base"] = str(err)
            else:
                data = {
                    CONF_HOST: host,
                    CONF_PORT: port,
                    CONF_USERNAME: username,
                    CONF_PASSWORD: password,
                }
                options = {
                    CONF_CONTROLLER_ID: slugify(name),
                    CONF_DEVICES: [],
                    CONF_MONITORING_CHANNEL: DEFAULT_MONITORING_CHANNEL,
                    CONF_DIMMABLE_FADE_TIME: DEFAULT_DIMMABLE_FADE_TIME,
                    CONF_DEFAULT_FADE_TIME: DEFAULT_FADE_TIME,
                    CONF_IDLE_THRESHOLD: DEFAULT_IDLE_THRESHOLD,
                    CONF_RECONNECT_DELAY: DEFAULT_RECONNECT_DELAY,
                }
                return self.async_create_entry(title=name, data=data, options=options)

        return self.async_show_form(
            step_id="user", data_schema=DATA_SCHEMA_ADD_CONTROLLER, errors=errors
        )

    async def async_step_reconfigure(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """Handle reconfigure."""
        entry = self.hass.config_entries.async_get_entry(self.context["entry_id"])
        assert entry

        errors = {}
        suggested = {
            CONF_HOST: entry.data[CONF_HOST],
            CONF_PORT: entry.data[CONF_PORT],
            CONF_USERNAME: entry.data.get(CONF_USERNAME),
            CONF_PASSWORD: entry.data.get(CONF_PASSWORD),
        }

        if user_input:
            host = user_input[CONF_HOST]
            port = int(user_input[CONF_PORT])
            username = user_input.get(CONF_USERNAME, "")
            password = user_input.get(CONF_PASSWORD, "")

            for other in self._async_current_entries():
                if other.entry_id == entry.entry_id:
                    continue
                if (
                    other.data.get(CONF_HOST) == host
                    and other.data.get(CONF_PORT) == port
                ):
                    errors["base"] = "duplicated_host_port"
                    break

            if not errors:
                try:
                    await _try_connection(host, port, username, password)
                except SchemaFlowError as err:
                    errors["base"] = str(err)

            if not errors:
                new_data = {
                    CONF_HOST: host,
                    CONF_PORT: port,
                    CONF_USERNAME: username,
                    CONF_PASSWORD: password,
                }
                self.hass.config_entries.async_update_entry(entry, data=new_data)
                await self.hass.config_entries.async_reload(entry.entry_id)
                return self.async_abort(reason="reconfigure_successful")

            suggested = {
                CONF_HOST: host,
                CONF_PORT: port,
                CONF_USERNAME: username,
                CONF_PASSWORD: password,
            }

        return self.async_show_form(
            step_id="reconfigure",
            data_schema=self.add_suggested_values_to_schema(
                DATA_SCHEMA_RECONFIGURE, suggested
            ),
            errors=errors,
        )

    @staticmethod
    @callback
    def async_get_options_flow(config_entry: ConfigEntry) -> SchemaOptionsFlowHandler:
        """Options flow handler."""
        return SchemaOptionsFlowHandler(config_entry, OPTIONS_FLOW)
