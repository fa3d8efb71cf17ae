"""Tests for the HAP-python accessory adapter."""

import json

import pytest
from pyhap.const import CATEGORY_SHOWER_HEAD, CATEGORY_SPRINKLER, CATEGORY_SWITCH
from pyhap.loader import get_loader
from valve2homekit.bridge import ValveBridge
from valve2homekit.config import DeviceConfig
from valve2homekit.homekit import ValveAccessory
from valve2homekit.models import ServiceType, ValveType


class RecordingDriver:
    """Minimal stand-in for AccessoryDriver; records HomeKit notifications."""

    def __init__(self):
        self.loader = get_loader()
        self.notifications = []

    def publish(self, data, sender_client_addr=None, immediate=False):
        self.notifications.append(data)

    def add_job(self, target, *args):
        return target(*args)

    def async_add_job(self, target, *args):
        return target(*args)


def status(value) -> bytes:
    return json.dumps({"DeviceStatus": value}).encode()


@pytest.fixture
def config():
    return DeviceConfig(
        name="Garden Valve",
        manufacturer="Acme",
        model="V1",
        serial_number="SN-001",
        valve_type=ValveType.IRRIGATION,
        topic_status="dev/status",
        topic_command="dev/cmd",
        on_command="ON",
        off_command="OFF",
        on_value="1",
        off_value="0",
    )


@pytest.fixture
def published():
    return []


def make_accessory(config, published):
    bridge = ValveBridge(config)
    bridge.set_publish_callback(lambda topic, payload: published.append((topic, payload)))
    return ValveAccessory(RecordingDriver(), bridge)


class TestValveAccessory:
    """Tests for the valve service."""

    def test_services(self, config, published):
        """Test information and valve services are exposed."""
        acc = make_accessory(config, published)

        info = acc.get_service("AccessoryInformation")
        assert info.get_characteristic("Manufacturer").value == "Acme"
        assert info.get_characteristic("Model").value == "V1"
        assert info.get_characteristic("SerialNumber").value == "SN-001"
        assert info.get_characteristic("Name").value == "Garden Valve"

        valve = acc.get_service("Valve")
        assert valve.get_characteristic("ValveType").value == 1
        assert valve.get_characteristic("Active").value == 0
        assert valve.get_characteristic("InUse").value == 0

    def test_category(self, config, published):
        """Test the category follows the valve type."""
        assert make_accessory(config, published).category == CATEGORY_SPRINKLER

        shower = config.model_copy(update={"valve_type": ValveType.SHOWER_HEAD})
        assert make_accessory(shower, published).category == CATEGORY_SHOWER_HEAD

    def test_getters_read_cached_state(self, config, published):
        """Test HomeKit reads return the bridge's cached state."""
        acc = make_accessory(config, published)
        acc.bridge.on_status_message("dev/status", status("1"))

        assert acc.get_char("Active").get_value() == 1
        assert acc.get_char("InUse").get_value() == 1

    def test_homekit_write_publishes_command(self, config, published):
        """Test a HomeKit write to Active publishes the command."""
        acc = make_accessory(config, published)

        acc.get_char("Active").client_update_value(1)

        assert published == [("dev/cmd", "ON")]
        assert acc.bridge.get_active() == 1
        assert acc.get_char("InUse").value == 1

    def test_status_updates_characteristics(self, config, published):
        """Test a device report is pushed to HomeKit."""
        acc = make_accessory(config, published)

        acc.bridge.on_status_message("dev/status", status("1"))

        assert acc.get_char("Active").value == 1
        assert acc.get_char("InUse").value == 1
        assert acc.driver.notifications

    def test_unknown_characteristic_is_ignored(self, config, published):
        """Test pushing an unbound characteristic does nothing."""
        acc = make_accessory(config, published)
        acc.update_characteristic("On", 1)
        assert acc.get_char("Active").value == 0

    def test_identify(self, config, published):
        """Test identify does not touch MQTT."""
        acc = make_accessory(config, published)

        acc.get_service("AccessoryInformation").get_characteristic("Identify").client_update_value(True)

        assert published == []


class TestSwitchAccessory:
    """Tests for the switch service."""

    @pytest.fixture
    def switch_config(self, config):
        return config.model_copy(update={"service_type": ServiceType.SWITCH})

    def test_services(self, switch_config, published):
        """Test a Switch service with On is exposed."""
        acc = make_accessory(switch_config, published)

        assert acc.category == CATEGORY_SWITCH
        assert acc.get_service("Valve") is None
        assert acc.get_service("Switch").get_characteristic("On").value == 0

    def test_write_and_report(self, switch_config, published):
        """Test writes publish and reports update On."""
        acc = make_accessory(switch_config, published)

        acc.get_char("On").client_update_value(True)
        assert published == [("dev/cmd", "ON")]

        acc.bridge.on_status_message("dev/status", status("0"))
        assert acc.get_char("On").value == 0
