"""Tests for device CRUD operations on the options/storage layer.

These tests verify that adding, editing, and removing devices keeps
the stored roster valid, without requiring Home Assistant.
"""

from copy import deepcopy

import pytest
import voluptuous as vol

# Import models (no HA deps)
from models import DEVICE_SCHEMA, DeviceType, parse_roster


# Simulate the options dictionary structure used by config_flow
def create_options(*devices) -> dict:
    """Create an options dict matching the config_flow structure."""
    return {
        "controller_id": "test_controller",
        "monitoring_channel": 5,
        "dimmable_fade_time": "00:01",
        "default_fade_time": "00:00",
        "devices": [DEVICE_SCHEMA(dict(device)) for device in devices],
    }


class TestAddDevice:
    """Tests for adding devices."""

    def test_add_light(self):
        options = create_options()
        options["devices"].append(
            DEVICE_SCHEMA({"integration_id": "12", "name": "Kitchen"})
        )

        roster = parse_roster(options["devices"])
        assert len(roster) == 1
        assert roster[0].device_type is DeviceType.LIGHT
        assert options["devices"][0] == {
            "integration_id": "12",
            "name": "Kitchen",
            "device_type": "light",
            "dimmable": True,
            "description": "",
        }

    def test_add_mixed_roster(self):
        options = create_options(
            {"integration_id": "12", "name": "Kitchen"},
            {"integration_id": "14", "name": "Porch", "dimmable": False},
            {"integration_id": "204", "name": "Blind", "device_type": "shade"},
        )

        roster = parse_roster(options["devices"])
        assert [d.is_shade for d in roster] == [False, False, True]
        assert [d.uses_dimmable_fade for d in roster] == [True, False, False]

    def test_add_duplicate_rejected(self):
        options = create_options({"integration_id": "12", "name": "Kitchen"})
        options["devices"].append(
            DEVICE_SCHEMA({"integration_id": "12", "name": "Other"})
        )

        with pytest.raises(vol.Invalid):
            parse_roster(options["devices"])


class TestEditDevice:
    """Tests for editing devices."""

    def test_edit_name_preserves_fields(self):
        options = create_options(
            {
                "integration_id": "204",
                "name": "Blind",
                "device_type": "shade",
                "description": "Living room",
            }
        )
        original = deepcopy(options["devices"][0])

        options["devices"][0] = DEVICE_SCHEMA({**original, "name": "East Blind"})

        edited = parse_roster(options["devices"])[0]
        assert edited.name == "East Blind"
        assert edited.integration_id == "204"
        assert edited.is_shade
        assert edited.description == "Living room"

    def test_edit_to_existing_id_rejected(self):
        options = create_options(
            {"integration_id": "12", "name": "Kitchen"},
            {"integration_id": "14", "name": "Porch"},
        )
        options["devices"][1] = DEVICE_SCHEMA(
            {**options["devices"][1], "integration_id": "12"}
        )

        with pytest.raises(vol.Invalid, match="Duplicate"):
            parse_roster(options["devices"])


class TestRemoveDevice:
    """Tests for removing devices."""

    def test_remove_keeps_order(self):
        options = create_options(
            {"integration_id": "12", "name": "A"},
            {"integration_id": "14", "name": "B"},
            {"integration_id": "16", "name": "C"},
        )
        removed = {"14"}
        options["devices"] = [
            d for d in options["devices"] if d["integration_id"] not in removed
        ]

        assert [d.integration_id for d in parse_roster(options["devices"])] == [
            "12",
            "16",
        ]

    def test_remove_all(self):
        options = create_options({"integration_id": "12", "name": "A"})
        options["devices"] = []
        assert parse_roster(options["devices"]) == []
