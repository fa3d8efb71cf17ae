"""MQTT client for the valve bridge."""

from .client import MQTTClient, make_client_id

__all__ = ["MQTTClient", "make_client_id"]
