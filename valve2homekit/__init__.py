"""valve2homekit: expose an MQTT-controlled water valve to Apple HomeKit."""

__version__ = "0.1.0"
