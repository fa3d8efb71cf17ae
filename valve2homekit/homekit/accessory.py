"""HAP-python accessory exposing a ValveBridge to HomeKit."""

import logging
from typing import Dict

from pyhap.accessory import Accessory
from pyhap.characteristic import Characteristic
from pyhap.const import (
    CATEGORY_FAUCET,
    CATEGORY_SHOWER_HEAD,
    CATEGORY_SPRINKLER,
    CATEGORY_SWITCH,
)

from ..bridge import ValveBridge
from ..models import ServiceDescriptor, ValveType

logger = logging.getLogger(__name__)

VALVE_CATEGORIES = {
    ValveType.GENERIC: CATEGORY_SPRINKLER,
    ValveType.IRRIGATION: CATEGORY_SPRINKLER,
    ValveType.SHOWER_HEAD: CATEGORY_SHOWER_HEAD,
    ValveType.WATER_FAUCET: CATEGORY_FAUCET,
}


class ValveAccessory(Accessory):
    """HomeKit accessory backed by a ValveBridge.

    Services are built from the bridge's service descriptors; reads and
    writes go through the bridge handlers, and the bridge pushes reported
    state back through ``update_characteristic``.
    """

    def __init__(self, driver, bridge: ValveBridge, aid=None):
        super().__init__(driver, bridge.config.name, aid=aid)
        self.bridge = bridge
        self._chars: Dict[str, Characteristic] = {}

        if bridge.is_valve:
            self.category = VALVE_CATEGORIES[bridge.config.valve_type]
        else:
            self.category = CATEGORY_SWITCH

        for descriptor in bridge.get_exposed_services():
            if descriptor.is_information:
                self._configure_information(descriptor)
            else:
                self._add_device_service(descriptor)

        bridge.set_update_callback(self.update_characteristic)

    def _configure_information(self, descriptor: ServiceDescriptor) -> None:
        chars = descriptor.characteristics
        self.set_info_service(
            manufacturer=chars.get("Manufacturer"),
            model=chars.get("Model"),
            serial_number=chars.get("SerialNumber"),
        )

        serv_info = self.get_service("AccessoryInformation")
        serv_info.configure_char("Identify", setter_callback=self._identify)

    def _add_device_service(self, descriptor: ServiceDescriptor) -> None:
        handlers = self.bridge.characteristic_handlers()

        serv = self.add_preload_service(descriptor.service)

        for name, value in descriptor.characteristics.items():
            getter, setter = handlers.get(name, (None, None))
            char = serv.configure_char(
                name,
                value=value,
                getter_callback=getter,
                setter_callback=setter,
            )
            self._chars[name] = char

        logger.debug(
            f"Added {descriptor.service} service with {', '.join(self._chars)}"
        )

    def _identify(self, _value) -> None:
        self.bridge.identify()

    def update_characteristic(self, name: str, value: int) -> None:
        """Push a value to HomeKit.

        Args:
            name: Characteristic name (Active, InUse or On)
            value: New value
        """
        char = self._chars.get(name)
        if char is None:
            logger.warning(f"{self.display_name} has no characteristic {name}")
            return

        char.set_value(value)
        logger.debug(f"Updated {name}={value}")

    def get_char(self, name: str) -> Characteristic:
        """Get a bound characteristic of the device service."""
        return self._chars[name]
