"""Tests for configuration loading and validation."""

import pytest
import yaml
from pydantic import ValidationError
from valve2homekit.config import (
    AppConfig,
    DeviceConfig,
    HomeKitConfig,
    MQTTConfig,
    create_default_config,
    get_config,
    load_config,
    load_config_from_env,
    parse_config,
)
from valve2homekit.models import ServiceType, ValveType


ACCESSORY = {
    "accessory": "WaterValve",
    "name": "Garden Valve",
    "manufacturer": "Acme",
    "model": "V1",
    "serialNumber": "SN-001",
    "deviceType": 1,
    "mqttUrl": "mqtts://broker.local:8883",
    "mqttUser": "user",
    "mqttPass": "secret",
    "topicStatus": "dev/status",
    "topicCommand": "dev/cmd",
    "onCommand": "ON",
    "offCommand": "OFF",
    "onValue": "1",
    "offValue": "0",
}


class TestDeviceConfig:
    """Tests for DeviceConfig model."""

    def test_default_values(self):
        """Test defaults describe a generic valve."""
        config = DeviceConfig()

        assert config.valve_type == ValveType.GENERIC
        assert config.service_type == ServiceType.VALVE
        assert config.status_command is None

    def test_valve_type_by_name_or_number(self):
        """Test valve type accepts names and numbers."""
        assert DeviceConfig(valve_type="irrigation").valve_type == ValveType.IRRIGATION
        assert DeviceConfig(valve_type="3").valve_type == ValveType.WATER_FAUCET
        assert DeviceConfig(valve_type=2).valve_type == ValveType.SHOWER_HEAD

    def test_invalid_valve_type(self):
        """Test unknown valve types are rejected."""
        with pytest.raises(ValidationError):
            DeviceConfig(valve_type=7)

    def test_immutable(self):
        """Test device configuration cannot be changed after loading."""
        config = DeviceConfig()
        with pytest.raises(ValidationError):
            config.name = "Other"

    def test_empty_status_command(self):
        """Test an empty status command means none."""
        assert DeviceConfig(status_command="").status_command is None


class TestMQTTConfig:
    """Tests for MQTTConfig model."""

    def test_connection_defaults(self):
        """Test default connection options."""
        config = MQTTConfig()

        assert config.keepalive == 10
        assert config.reconnect_interval == 1.0
        assert config.connect_timeout == 30.0
        assert config.will_topic == "home/will"
        assert config.tls_insecure is False

    def test_url_parsing(self):
        """Test host, port and TLS come from the URL."""
        config = MQTTConfig(url="mqtts://broker.local")

        assert config.host == "broker.local"
        assert config.port == 8883
        assert config.use_tls
        assert config.transport == "tcp"

        config = MQTTConfig(url="mqtt://10.0.0.2:1884")
        assert config.port == 1884
        assert not config.use_tls

    def test_websocket_url(self):
        """Test websocket URLs select the websocket transport."""
        config = MQTTConfig(url="wss://broker.local/mqtt")

        assert config.transport == "websockets"
        assert config.websocket_path == "/mqtt"
        assert config.port == 443

    @pytest.mark.parametrize("url", ["http://broker", "broker.local", "mqtt://"])
    def test_invalid_url(self, url):
        """Test unsupported or host-less URLs are rejected."""
        with pytest.raises(ValidationError):
            MQTTConfig(url=url)

    def test_empty_credentials(self):
        """Test empty credentials become None."""
        config = MQTTConfig(username="", password="")
        assert config.username is None
        assert config.password is None


class TestHomeKitConfig:
    """Tests for HomeKitConfig model."""

    def test_pincode_formatting(self):
        """Test 8-digit codes are formatted as xxx-xx-xxx."""
        assert HomeKitConfig(pincode="12345678").pincode == "123-45-678"
        assert HomeKitConfig(pincode="123-45-678").pincode == "123-45-678"

    def test_invalid_pincode(self):
        """Test malformed codes are rejected."""
        with pytest.raises(ValidationError):
            HomeKitConfig(pincode="1234")

    def test_numeric_pincode(self):
        """Test an 8-digit number is accepted."""
        assert HomeKitConfig(pincode=12345678).pincode == "123-45-678"

    def test_unquoted_yaml_pincode_is_rejected(self):
        """Test a leading-zero code YAML reads as octal asks for quoting."""
        data = yaml.safe_load("homekit:\n  pincode: 03145154\n")

        with pytest.raises(ValidationError, match="quote it"):
            AppConfig(**data)

    def test_quoted_yaml_pincode(self):
        """Test quoted codes keep their leading zero."""
        data = yaml.safe_load('homekit:\n  pincode: "03145154"\n')
        assert AppConfig(**data).homekit.pincode == "031-45-154"


class TestAccessoryLayout:
    """Tests for flat Homebridge-style configuration."""

    def test_parse(self):
        """Test camelCase accessory keys map onto sections."""
        config = parse_config(dict(ACCESSORY))

        assert config.device.name == "Garden Valve"
        assert config.device.serial_number == "SN-001"
        assert config.device.valve_type == ValveType.IRRIGATION
        assert config.device.topic_status == "dev/status"
        assert config.device.topic_command == "dev/cmd"
        assert config.device.on_value == "1"
        assert config.mqtt.host == "broker.local"
        assert config.mqtt.username == "user"
        assert config.mqtt.password == "secret"
        assert config.mqtt.tls_insecure is False

    def test_tls_insecure_opt_in(self):
        """Test relaxed TLS must be requested explicitly."""
        config = parse_config({**ACCESSORY, "mqttTlsInsecure": True})
        assert config.mqtt.tls_insecure is True

    def test_env_substitution(self, monkeypatch):
        """Test ${VAR} references are resolved."""
        monkeypatch.setenv("VALVE_MQTT_PASS", "from-env")
        config = parse_config({**ACCESSORY, "mqttPass": "${VALVE_MQTT_PASS}"})
        assert config.mqtt.password == "from-env"


class TestLoading:
    """Tests for file and environment loading."""

    def test_load_nested_yaml(self, tmp_path):
        """Test the nested section layout."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({
            "device": {
                "name": "Shower",
                "valve_type": "shower_head",
                "topic_status": "shower/stat",
                "topic_command": "shower/cmd",
                "on_value": 1,
                "off_value": 0,
            },
            "mqtt": {"url": "mqtt://localhost"},
            "homekit": {"port": 51900},
        }))

        config = load_config(str(path))

        assert config.device.name == "Shower"
        assert config.device.valve_type == ValveType.SHOWER_HEAD
        assert config.device.on_value == 1
        assert config.homekit.port == 51900

    def test_load_accessory_yaml(self, tmp_path):
        """Test a flat accessory file is detected."""
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump(ACCESSORY))

        assert load_config(str(path)).device.topic_command == "dev/cmd"

    def test_missing_file(self, tmp_path):
        """Test loading a missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_non_mapping_file(self, tmp_path):
        """Test a YAML file that is not a mapping is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(ValueError):
            load_config(str(path))

    def test_env(self, monkeypatch):
        """Test environment variables populate the config."""
        monkeypatch.setenv("MQTT_URL", "mqtt://10.0.0.5")
        monkeypatch.setenv("TOPIC_STATUS", "env/status")
        monkeypatch.setenv("MQTT_TLS_INSECURE", "yes")
        monkeypatch.setenv("HOMEKIT_PORT", "52000")

        config = load_config_from_env()

        assert config.mqtt.host == "10.0.0.5"
        assert config.device.topic_status == "env/status"
        assert config.mqtt.tls_insecure is True
        assert config.homekit.port == 52000

    def test_get_config_falls_back_to_env(self, monkeypatch, tmp_path):
        """Test a missing file path falls back to the environment."""
        monkeypatch.setenv("DEVICE_NAME", "Env Valve")
        config = get_config(str(tmp_path / "missing.yaml"))
        assert config.device.name == "Env Valve"

    def test_default_config_round_trip(self):
        """Test the generated default config loads back."""
        text = create_default_config()
        data = yaml.safe_load(text)
        config = AppConfig(**data)
        assert config.device.name == AppConfig().device.name
        assert config.homekit.pincode == "031-45-154"
        assert text.startswith("# Quote homekit.pincode")
