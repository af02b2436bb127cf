"""Data models for Lutron HomeWorks QS integration."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

import voluptuous as vol

# Brightness restored when a light is turned on with no remembered level
DEFAULT_RESTORE_BRIGHTNESS = 100.0


class DeviceType(Enum):
    """Kind of output a roster entry describes."""

    LIGHT = "light"
    SHADE = "shade"


# Integration ids end up inside comma-separated commands
_INTEGRATION_ID = vol.All(vol.Coerce(str), vol.Strip, vol.Match(r"^[^,\s]+$"))

DEVICE_SCHEMA = vol.Schema(
    {
        vol.Required("integration_id"): _INTEGRATION_ID,
        vol.Required("name"): vol.All(str, vol.Strip, vol.Length(min=1)),
        vol.Optional("device_type", default=DeviceType.LIGHT.value): vol.In(
            [t.value for t in DeviceType]
        ),
        vol.Optional("dimmable", default=True): bool,
        vol.Optional("description", default=""): str,
    },
    extra=vol.REMOVE_EXTRA,
)


@dataclass(frozen=True)
class DeviceConfig:
    """Configuration for one output on the processor."""

    integration_id: str
    name: str
    device_type: DeviceType = DeviceType.LIGHT
    dimmable: bool = True
    description: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DeviceConfig:
        """Validate and build a device from stored options.

        Raises:
            vol.Invalid: If the entry does not match DEVICE_SCHEMA
        """
        valid = DEVICE_SCHEMA(dict(data))
        return cls(
            integration_id=valid["integration_id"],
            name=valid["name"],
            device_type=DeviceType(valid["device_type"]),
            dimmable=valid["dimmable"],
            description=valid["description"],
        )

    def as_dict(self) -> dict[str, Any]:
        """Return the options representation."""
        return {
            "integration_id": self.integration_id,
            "name": self.name,
            "device_type": self.device_type.value,
            "dimmable": self.dimmable,
            "description": self.description,
        }

    @property
    def is_shade(self) -> bool:
        """Return True for shades."""
        return self.device_type is DeviceType.SHADE

    @property
    def uses_dimmable_fade(self) -> bool:
        """Return True if commands use the dimmable fade time.

        Shades always use the default fade.
        """
        return self.dimmable and not self.is_shade


def parse_roster(entries: list[dict[str, Any]]) -> list[DeviceConfig]:
    """Build the device roster from stored options.

    Raises:
        vol.Invalid: On an invalid entry or a duplicated integration id
    """
    devices: list[DeviceConfig] = []
    seen: set[str] = set()
    for entry in entries:
        device = DeviceConfig.from_dict(entry)
        if device.integration_id in seen:
            raise vol.Invalid(f"Duplicate integration id: {device.integration_id}")
        seen.add(device.integration_id)
        devices.append(device)
    return devices


@dataclass
class LightState:
    """On/off and brightness of a light, with last-level memory.

    Brightness is a 0-100 percentage. Turning a light on restores the
    last non-zero brightness it had.
    """

    is_on: bool = False
    brightness: float = 0.0
    last_brightness: float = DEFAULT_RESTORE_BRIGHTNESS

    def _remember(self, level: float) -> None:
        if level > 0:
            self.last_brightness = level

    def turn_on(self) -> float | None:
        """Turn on at the remembered brightness.

        Returns:
            Level to send, or None if already on
        """
        if self.is_on:
            return None
        self.is_on = True
        self.brightness = self.last_brightness
        return self.brightness

    def turn_off(self) -> float | None:
        """Turn off, remembering the current brightness.

        Returns:
            Level to send, or None if already off
        """
        if not self.is_on:
            return None
        self._remember(self.brightness)
        self.is_on = False
        self.brightness = 0.0
        return 0.0

    def set_brightness(self, level: float) -> float | None:
        """Set an explicit brightness.

        Returns:
            Level to send, or None if unchanged
        """
        if level == self.brightness:
            return None
        self._remember(level)
        self.brightness = level
        self.is_on = level > 0
        return level

    def apply_level(self, level: float) -> bool:
        """Apply a level reported by the processor.

        Returns:
            True if the state changed
        """
        if level == self.brightness:
            return False
        self._remember(level)
        self.is_on = level > 0
        self.brightness = level
        return True


@dataclass
class ShadeState:
    """Position tracking for a shade.

    The processor reports the target level as soon as motion starts and
    a motion-stop event when it ends, nothing in between.
    """

    position: float = 0.0
    target_position: float = 0.0
    moving: bool = False
    initialized: bool = False

    @property
    def is_opening(self) -> bool:
        """Return True while moving up."""
        return self.moving and self.target_position > self.position

    @property
    def is_closing(self) -> bool:
        """Return True while moving down."""
        return self.moving and self.target_position < self.position

    def set_target(self, target: float) -> bool:
        """Start motion towards a target.

        Returns:
            True if a command should be sent
        """
        if target == self.target_position:
            return False
        self.target_position = target
        self.moving = target != self.position
        return True

    def apply_level(self, level: float) -> bool:
        """Apply a level reported by the processor.

        Returns:
            True if the state changed
        """
        if level == self.position:
            return False
        if not self.initialized:
            self.target_position = level
            self.initialized = True
        self.position = level
        # Reaching the target ends motion
        if self.position == self.target_position:
            self.moving = False
        return True

    def apply_motion_stopped(self, level: float) -> bool:
        """Apply a motion-stop report.

        Returns:
            True (the shade is always marked stopped)
        """
        if not self.initialized:
            self.target_position = level
            self.initialized = True
        self.position = level
        self.moving = False
        return True


@dataclass
class EngineHealth:
    """Health snapshot of the processor connection."""

    state: str = "boot"
    connected: bool = False
    connected_at: datetime | None = None
    last_message_at: datetime | None = None
    message_count: int = 0
    reconnect_count: int = 0
    probe_count: int = 0

    def as_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly representation."""
        return {
            "state": self.state,
            "connected": self.connected,
            "connected_at": (
                self.connected_at.isoformat() if self.connected_at else None
            ),
            "last_message_at": (
                self.last_message_at.isoformat() if self.last_message_at else None
            ),
            "message_count": self.message_count,
            "reconnect_count": self.reconnect_count,
            "probe_count": self.probe_count,
        }
