"""Configuration management with Pydantic validation.

Supports three configuration sources (in priority order):
1. YAML config file (nested sections, or a flat Homebridge-style accessory)
2. Environment variables (for Docker)
3. Default values
"""

import os
from pathlib import Path
from typing import Any, Literal, Optional
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .models.valve import ServiceType, ValveType


# Default ports per URL scheme
SCHEME_PORTS = {
    "mqtt": 1883,
    "tcp": 1883,
    "mqtts": 8883,
    "ssl": 8883,
    "tls": 8883,
    "ws": 80,
    "wss": 443,
}

TLS_SCHEMES = {"mqtts", "ssl", "tls", "wss"}
WEBSOCKET_SCHEMES = {"ws", "wss"}


class DeviceConfig(BaseModel):
    """Valve device identity, topics and command/status mapping."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(
        default="Water Valve",
        min_length=1,
        description="Accessory display name"
    )
    manufacturer: str = Field(
        default="Default-Manufacturer",
        description="Manufacturer shown in HomeKit"
    )
    model: str = Field(
        default="Default-Model",
        description="Model shown in HomeKit"
    )
    serial_number: str = Field(
        default="Default-Serial",
        description="Serial number shown in HomeKit"
    )
    valve_type: ValveType = Field(
        default=ValveType.GENERIC,
        description="HomeKit valve type (valve service only)"
    )
    service_type: ServiceType = Field(
        default=ServiceType.VALVE,
        description="Expose the device as a valve or a switch"
    )
    topic_status: str = Field(
        default="valve/status",
        min_length=1,
        description="Topic the device reports its status on"
    )
    topic_command: str = Field(
        default="valve/command",
        min_length=1,
        description="Topic commands are published to"
    )
    on_command: str = Field(
        default="ON",
        description="Payload published to turn the device on"
    )
    off_command: str = Field(
        default="OFF",
        description="Payload published to turn the device off"
    )
    status_command: Optional[str] = Field(
        default=None,
        description="Payload published on connect to request the current status (optional)"
    )
    on_value: Any = Field(
        default="1",
        description="DeviceStatus value meaning 'on'"
    )
    off_value: Any = Field(
        default="0",
        description="DeviceStatus value meaning 'off'"
    )

    @field_validator("valve_type", mode="before")
    @classmethod
    def parse_valve_type(cls, v):
        """Accept the numeric HomeKit value or an enum name."""
        if isinstance(v, str):
            if v.strip().isdigit():
                return int(v)
            return ValveType.from_name(v)
        return v

    @field_validator("status_command", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v


class MQTTConfig(BaseModel):
    """MQTT broker configuration."""

    model_config = ConfigDict(frozen=True)

    url: str = Field(
        default="mqtt://localhost:1883",
        description="Broker URL (mqtt://, mqtts://, tcp://, ssl://, ws://, wss://)"
    )
    username: Optional[str] = Field(
        default=None,
        description="MQTT username (optional)"
    )
    password: Optional[str] = Field(
        default=None,
        description="MQTT password (optional)"
    )
    keepalive: int = Field(
        default=10,
        ge=1,
        description="Keep-alive interval in seconds"
    )
    reconnect_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds to wait before reconnecting"
    )
    connect_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Connection timeout in seconds"
    )
    qos: int = Field(
        default=0,
        ge=0,
        le=2,
        description="MQTT QoS level"
    )
    will_topic: str = Field(
        default="home/will",
        description="Last-will topic announcing an unclean disconnect"
    )
    tls_insecure: bool = Field(
        default=False,
        description="Accept invalid broker certificates (security relevant)"
    )

    @field_validator("username", "password", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        """Convert empty strings to None."""
        if v == "":
            return None
        return v

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Require a known scheme and a host."""
        parsed = urlparse(v)
        if parsed.scheme not in SCHEME_PORTS:
            raise ValueError(f"Unsupported MQTT URL scheme: {parsed.scheme or v}")
        if not parsed.hostname:
            raise ValueError(f"MQTT URL has no host: {v}")
        return v

    @property
    def host(self) -> str:
        """Broker hostname from the URL."""
        return urlparse(self.url).hostname

    @property
    def port(self) -> int:
        """Broker port from the URL, or the scheme default."""
        parsed = urlparse(self.url)
        return parsed.port or SCHEME_PORTS[parsed.scheme]

    @property
    def use_tls(self) -> bool:
        """Check if the URL scheme requires TLS."""
        return urlparse(self.url).scheme in TLS_SCHEMES

    @property
    def transport(self) -> Literal["tcp", "websockets"]:
        """aiomqtt transport for the URL scheme."""
        if urlparse(self.url).scheme in WEBSOCKET_SCHEMES:
            return "websockets"
        return "tcp"

    @property
    def websocket_path(self) -> Optional[str]:
        """Path component for websocket URLs."""
        if self.transport != "websockets":
            return None
        return urlparse(self.url).path or "/"


class HomeKitConfig(BaseModel):
    """HomeKit accessory server configuration."""

    port: int = Field(
        default=51826,
        ge=1,
        le=65535,
        description="HAP server port"
    )
    address: Optional[str] = Field(
        default=None,
        description="Address to bind the HAP server to (default: all)"
    )
    pincode: str = Field(
        default="031-45-154",
        description="Pairing code (xxx-xx-xxx or 8 digits)"
    )
    persist_file: Path = Field(
        default=Path("valve2homekit.state"),
        description="File holding HomeKit pairing state"
    )

    @field_validator("pincode", mode="before")
    @classmethod
    def format_pincode(cls, v):
        """Normalize an 8-digit code to the xxx-xx-xxx format.

        YAML reads an unquoted code with a leading zero as an octal
        number, so a numeric value that is not 8 digits is rejected
        rather than padded.
        """
        if isinstance(v, int) and len(str(v)) != 8:
            raise ValueError(
                f"Pincode {v} was read as a number; quote it in YAML, e.g. \"031-45-154\""
            )
        digits = str(v).replace("-", "").strip()
        if len(digits) != 8 or not digits.isdigit():
            raise ValueError("Pincode must be 8 digits")
        return f"{digits[:3]}-{digits[3:5]}-{digits[5:]}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level"
    )
    file: Optional[Path] = Field(
        default=None,
        description="Log file path (optional)"
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )


class AppConfig(BaseModel):
    """Complete application configuration."""

    device: DeviceConfig = Field(
        default_factory=DeviceConfig,
        description="Valve device settings"
    )
    mqtt: MQTTConfig = Field(
        default_factory=MQTTConfig,
        description="MQTT broker settings"
    )
    homekit: HomeKitConfig = Field(
        default_factory=HomeKitConfig,
        description="HomeKit server settings"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging settings"
    )


# Homebridge accessory keys -> (section, key)
ACCESSORY_KEYS = {
    "name": ("device", "name"),
    "manufacturer": ("device", "manufacturer"),
    "model": ("device", "model"),
    "serialNumber": ("device", "serial_number"),
    "deviceType": ("device", "valve_type"),
    "serviceType": ("device", "service_type"),
    "topicStatus": ("device", "topic_status"),
    "topicCommand": ("device", "topic_command"),
    "onCommand": ("device", "on_command"),
    "offCommand": ("device", "off_command"),
    "statusCommand": ("device", "status_command"),
    "onValue": ("device", "on_value"),
    "offValue": ("device", "off_value"),
    "mqttUrl": ("mqtt", "url"),
    "mqttUser": ("mqtt", "username"),
    "mqttPass": ("mqtt", "password"),
    "mqttTlsInsecure": ("mqtt", "tls_insecure"),
}


# Environment variable mapping
ENV_MAPPING = {
    # Device
    "DEVICE_NAME": ("device", "name"),
    "DEVICE_MANUFACTURER": ("device", "manufacturer"),
    "DEVICE_MODEL": ("device", "model"),
    "DEVICE_SERIAL_NUMBER": ("device", "serial_number"),
    "DEVICE_VALVE_TYPE": ("device", "valve_type"),
    "DEVICE_SERVICE_TYPE": ("device", "service_type"),
    "TOPIC_STATUS": ("device", "topic_status"),
    "TOPIC_COMMAND": ("device", "topic_command"),
    "ON_COMMAND": ("device", "on_command"),
    "OFF_COMMAND": ("device", "off_command"),
    "STATUS_COMMAND": ("device", "status_command"),
    "ON_VALUE": ("device", "on_value"),
    "OFF_VALUE": ("device", "off_value"),

    # MQTT
    "MQTT_URL": ("mqtt", "url"),
    "MQTT_USERNAME": ("mqtt", "username"),
    "MQTT_PASSWORD": ("mqtt", "password"),
    "MQTT_KEEPALIVE": ("mqtt", "keepalive", int),
    "MQTT_RECONNECT_INTERVAL": ("mqtt", "reconnect_interval", float),
    "MQTT_QOS": ("mqtt", "qos", int),
    "MQTT_WILL_TOPIC": ("mqtt", "will_topic"),
    "MQTT_TLS_INSECURE": ("mqtt", "tls_insecure", lambda x: x.lower() in ("true", "1", "yes")),

    # HomeKit
    "HOMEKIT_PORT": ("homekit", "port", int),
    "HOMEKIT_ADDRESS": ("homekit", "address"),
    "HOMEKIT_PINCODE": ("homekit", "pincode"),
    "HOMEKIT_PERSIST_FILE": ("homekit", "persist_file"),

    # Logging
    "LOG_LEVEL": ("logging", "level"),
}


def _get_env_value(env_var: str, mapping: tuple):
    """Get environment variable value with optional type conversion."""
    value = os.environ.get(env_var)
    if value is None:
        return None

    # Apply type conversion if specified
    if len(mapping) > 2:
        converter = mapping[2]
        try:
            return converter(value)
        except (ValueError, TypeError):
            return value
    return value


def load_config_from_env() -> AppConfig:
    """Load configuration from environment variables.

    Returns:
        AppConfig with values from environment (or defaults)
    """
    config_dict = {
        "device": {},
        "mqtt": {},
        "homekit": {},
        "logging": {},
    }

    for env_var, mapping in ENV_MAPPING.items():
        value = _get_env_value(env_var, mapping)
        if value is not None:
            section = mapping[0]
            key = mapping[1]
            config_dict[section][key] = value

    return AppConfig(**config_dict)


def from_accessory_config(raw: dict) -> AppConfig:
    """Build an AppConfig from a flat Homebridge-style accessory object.

    Unknown keys (such as ``accessory``) are ignored. Nested ``homekit``
    and ``logging`` sections are passed through unchanged.

    Args:
        raw: Accessory dictionary using camelCase keys

    Returns:
        Validated AppConfig instance
    """
    config_dict = {
        "device": {},
        "mqtt": {},
        "homekit": raw.get("homekit") or {},
        "logging": raw.get("logging") or {},
    }

    for key, (section, field) in ACCESSORY_KEYS.items():
        if key in raw:
            config_dict[section][field] = raw[key]

    return AppConfig(**config_dict)


def _is_accessory_config(raw: dict) -> bool:
    """Check whether a raw mapping uses the flat accessory layout."""
    return any(key in raw for key in ("mqttUrl", "topicStatus", "topicCommand", "accessory"))


def parse_config(raw: dict) -> AppConfig:
    """Validate a raw configuration mapping in either supported layout.

    Args:
        raw: Parsed YAML/JSON mapping

    Returns:
        Validated AppConfig instance
    """
    raw = _substitute_env_vars(raw)

    if _is_accessory_config(raw):
        return from_accessory_config(raw)
    return AppConfig(**raw)


def load_config(config_path: str) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated AppConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config validation fails
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r") as f:
        raw_config = yaml.safe_load(f) or {}

    if not isinstance(raw_config, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    return parse_config(raw_config)


def get_config(config_path: Optional[str] = None) -> AppConfig:
    """Get configuration from config file or environment variables.

    Priority:
    1. Config file (if path provided and file exists)
    2. Environment variables
    3. Default values

    Args:
        config_path: Optional path to YAML config file

    Returns:
        Validated AppConfig instance
    """
    if config_path:
        path = Path(config_path)
        if path.exists():
            return load_config(config_path)

    return load_config_from_env()


def _substitute_env_vars(config: Any) -> Any:
    """Recursively substitute environment variables in config values.

    Environment variables are referenced as ${VAR_NAME} or $VAR_NAME.
    """
    if isinstance(config, dict):
        return {k: _substitute_env_vars(v) for k, v in config.items()}
    elif isinstance(config, list):
        return [_substitute_env_vars(item) for item in config]
    elif isinstance(config, str):
        # Handle ${VAR_NAME} format
        if config.startswith("${") and config.endswith("}"):
            var_name = config[2:-1]
            return os.environ.get(var_name, config)
        # Handle $VAR_NAME format
        elif config.startswith("$") and not config.startswith("${"):
            var_name = config[1:]
            return os.environ.get(var_name, config)
        return config
    else:
        return config


PINCODE_NOTE = "# Quote homekit.pincode so YAML keeps it a string, e.g. pincode: \"031-45-154\"\n"


def create_default_config() -> str:
    """Generate default configuration as YAML string."""
    config = AppConfig()
    return PINCODE_NOTE + yaml.dump(
        config.model_dump(mode="json", exclude_none=True),
        default_flow_style=False,
        sort_keys=False,
    )


def print_env_help() -> str:
    """Generate help text for environment variables."""
    lines = [
        "Environment Variables:",
        "",
        "  Device:",
        "    DEVICE_NAME           Accessory name (default: Water Valve)",
        "    DEVICE_MANUFACTURER   Manufacturer shown in HomeKit",
        "    DEVICE_MODEL          Model shown in HomeKit",
        "    DEVICE_SERIAL_NUMBER  Serial number shown in HomeKit",
        "    DEVICE_VALVE_TYPE     generic, irrigation, shower_head, water_faucet or 0-3",
        "    DEVICE_SERVICE_TYPE   valve or switch (default: valve)",
        "    TOPIC_STATUS          Status topic (default: valve/status)",
        "    TOPIC_COMMAND         Command topic (default: valve/command)",
        "    ON_COMMAND            Payload to turn on (default: ON)",
        "    OFF_COMMAND           Payload to turn off (default: OFF)",
        "    STATUS_COMMAND        Payload requesting status on connect (optional)",
        "    ON_VALUE              DeviceStatus value meaning on (default: 1)",
        "    OFF_VALUE             DeviceStatus value meaning off (default: 0)",
        "",
        "  MQTT (required for env-based config):",
        "    MQTT_URL              Broker URL (required, e.g. mqtt://192.168.1.10:1883)",
        "    MQTT_USERNAME         Username (optional)",
        "    MQTT_PASSWORD         Password (optional)",
        "    MQTT_KEEPALIVE        Keep-alive seconds (default: 10)",
        "    MQTT_RECONNECT_INTERVAL  Reconnect delay seconds (default: 1.0)",
        "    MQTT_QOS              QoS level (default: 0)",
        "    MQTT_WILL_TOPIC       Last-will topic (default: home/will)",
        "    MQTT_TLS_INSECURE     Accept invalid TLS certificates (default: false)",
        "",
        "  HomeKit:",
        "    HOMEKIT_PORT          HAP server port (default: 51826)",
        "    HOMEKIT_ADDRESS       Bind address (default: all interfaces)",
        "    HOMEKIT_PINCODE       Pairing code (default: 031-45-154)",
        "    HOMEKIT_PERSIST_FILE  Pairing state file (default: valve2homekit.state)",
        "",
        "  Logging:",
        "    LOG_LEVEL             DEBUG, INFO, WARNING, ERROR (default: INFO)",
    ]
    return "\n".join(lines)

