"""HomeKit accessory and driver."""

from .accessory import ValveAccessory
from .driver import create_driver

__all__ = ["ValveAccessory", "create_driver"]
