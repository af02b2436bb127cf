"""DataUpdateCoordinator for Lutron HomeWorks QS integration."""

from __future__ import annotations

import logging
from typing import Any

from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .hwqs_protocol import (
    DeviceUpdate,
    HomeworksQSClient,
    HomeworksQSClientConfig,
    MonitorTarget,
)
from .models import DeviceConfig, EngineHealth, LightState, ShadeState

_LOGGER = logging.getLogger(__name__)


class HomeworksQSCoordinator(DataUpdateCoordinator[dict[str, Any]]):
    """Coordinator for HomeWorks QS state.

    This coordinator:
    - Owns the session engine
    - Keeps a light or shade state per roster device
    - Pushes processor updates to entities

    The processor pushes every change, so there is no polling interval.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        config: HomeworksQSClientConfig,
        controller_id: str,
        devices: list[DeviceConfig],
    ) -> None:
        """Initialize the coordinator."""
        super().__init__(
            hass,
            _LOGGER,
            name=f"HomeWorks QS {controller_id}",
            update_interval=None,
        )
        self._config = config
        self._controller_id = controller_id
        self._client: HomeworksQSClient | None = None

        # integration_id -> DeviceConfig
        self._devices: dict[str, DeviceConfig] = {
            device.integration_id: device for device in devices
        }
        self._light_states: dict[str, LightState] = {}
        self._shade_states: dict[str, ShadeState] = {}
        for device in devices:
            if device.is_shade:
                self._shade_states[device.integration_id] = ShadeState()
            else:
                self._light_states[device.integration_id] = LightState()

    @property
    def controller_id(self) -> str:
        """Return the controller ID."""
        return self._controller_id

    @property
    def client(self) -> HomeworksQSClient | None:
        """Return the client instance."""
        return self._client

    @property
    def devices(self) -> list[DeviceConfig]:
        """Return the device roster."""
        return list(self._devices.values())

    @property
    def connected(self) -> bool:
        """Return True if the session is ready."""
        return self._client is not None and self._client.is_ready

    @property
    def health(self) -> EngineHealth:
        """Return connection health metrics."""
        client = self._client
        if not client:
            return EngineHealth()
        return EngineHealth(
            state=client.state.value,
            connected=client.is_ready,
            connected_at=client.connected_at,
            last_message_at=client.last_message_at,
            message_count=client.message_count,
            reconnect_count=client.reconnect_count,
            probe_count=client.probe_count,
        )

    def get_light_state(self, integration_id: str) -> LightState:
        """Return the state of a light."""
        return self._light_states.setdefault(integration_id, LightState())

    def get_shade_state(self, integration_id: str) -> ShadeState:
        """Return the state of a shade."""
        return self._shade_states.setdefault(integration_id, ShadeState())

    async def async_setup(self) -> None:
        """Create the engine and start connecting.

        Returns immediately; entities stay unavailable until the
        session is ready.
        """
        client = HomeworksQSClient(self._config)
        client.set_monitor_targets(
            MonitorTarget(device.integration_id, device.name)
            for device in self._devices.values()
        )
        client.register_receive_callback(self._handle_update)
        client.register_did_connect_callback(self._handle_connected)
        client.register_disconnect_callback(self._handle_disconnected)
        self._client = client
        client.start()

    async def async_shutdown(self) -> None:
        """Shut down the coordinator."""
        await super().async_shutdown()
        if self._client:
            await self._client.stop()
            self._client = None

    async def _async_update_data(self) -> dict[str, Any]:
        """Return the current snapshot (no polling)."""
        return self._snapshot()

    def _snapshot(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "lights": {
                key: state.brightness for key, state in self._light_states.items()
            },
            "shades": {
                key: state.position for key, state in self._shade_states.items()
            },
        }

    @callback
    def _handle_connected(self) -> None:
        _LOGGER.info("Controller %s ready", self._controller_id)
        self.async_set_updated_data(self._snapshot())

    @callback
    def _handle_disconnected(self) -> None:
        _LOGGER.warning("Controller %s connection lost", self._controller_id)
        self.async_set_updated_data(self._snapshot())

    @callback
    def _handle_update(self, update: DeviceUpdate) -> None:
        """Handle a device update from the processor."""
        device = self._devices.get(update.device_id)
        if device is None or update.value is None:
            return

        if device.is_shade:
            state = self.get_shade_state(device.integration_id)
            if update.is_motion_stopped:
                changed = state.apply_motion_stopped(update.value)
            elif update.is_level_update:
                changed = state.apply_level(update.value)
            else:
                changed = False
        elif update.is_level_update:
            changed = self.get_light_state(device.integration_id).apply_level(
                update.value
            )
        else:
            changed = False

        if changed:
            _LOGGER.debug("%s changed: %s", device.name, update.value)
            self.async_set_updated_data(self._snapshot())

    # === Command Methods (proxies to client) ===

    def async_set_level(self, integration_id: str, level: float) -> bool:
        """Send a level to an output."""
        if not self._client:
            return False
        device = self._devices.get(integration_id)
        dimmable = device.uses_dimmable_fade if device else True
        return self._client.set_level(integration_id, level, dimmable=dimmable)

    def async_request_level(self, integration_id: str) -> bool:
        """Query an output's level."""
        if not self._client:
            return False
        return self._client.request_level(integration_id)
