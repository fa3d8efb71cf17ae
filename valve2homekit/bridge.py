"""Valve bridge: translation between HomeKit characteristics and MQTT.

Holds the device configuration and the cached on/off state. HomeKit writes
become command publishes; device status messages become characteristic
updates. The MQTT and HomeKit sides are injected as callbacks so the
translation logic runs without either stack.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .config import DeviceConfig
from .models import (
    ValveState,
    ServiceType,
    ServiceDescriptor,
    InvalidStatusPayload,
    parse_status_payload,
    classify_status,
)

logger = logging.getLogger(__name__)

# (topic, payload) -> None, must not block
PublishCallback = Callable[[str, str], None]

# (characteristic name, value) -> None
UpdateCallback = Callable[[str, int], None]

# characteristic name -> (getter, setter or None)
CharacteristicHandlers = Dict[str, Tuple[Callable[[], int], Optional[Callable[[Any], None]]]]


class ValveBridge:
    """Mirror a single MQTT valve into HomeKit.

    Commands are fire-and-forget: ``set_active`` updates the cached state
    optimistically and returns as soon as the command is handed to the
    publish callback. The device's next status message is authoritative.
    """

    def __init__(self, config: DeviceConfig):
        """Initialize the bridge.

        Args:
            config: Device configuration
        """
        self._config = config
        self._state = ValveState()
        self._publish_callback: Optional[PublishCallback] = None
        self._update_callback: Optional[UpdateCallback] = None

        self._stats = {
            "commands_sent": 0,
            "status_messages": 0,
            "state_changes": 0,
            "ignored_messages": 0,
            "invalid_messages": 0,
        }

    @property
    def config(self) -> DeviceConfig:
        """Get the device configuration."""
        return self._config

    @property
    def state(self) -> ValveState:
        """Get the cached device state."""
        return self._state

    @property
    def is_valve(self) -> bool:
        """Check if the device is exposed as a valve (vs. a switch)."""
        return self._config.service_type == ServiceType.VALVE

    @property
    def stats(self) -> dict:
        """Get bridge statistics."""
        return dict(self._stats)

    def set_publish_callback(self, callback: PublishCallback) -> None:
        """Set the callback used to publish commands.

        Args:
            callback: Function called with (topic, payload)
        """
        self._publish_callback = callback

    def set_update_callback(self, callback: UpdateCallback) -> None:
        """Set the callback used to push characteristic values to HomeKit.

        Args:
            callback: Function called with (characteristic name, value)
        """
        self._update_callback = callback

    # HomeKit handlers

    def get_active(self) -> int:
        """Return the cached Active / On value without touching the network."""
        return self._state.characteristic_value

    def set_active(self, value: Any) -> None:
        """Handle a HomeKit write to Active / On.

        Args:
            value: Requested value (truthy = on)
        """
        active = bool(value)
        command = self._config.on_command if active else self._config.off_command

        logger.info(f"HomeKit set {self._config.name} -> {'On' if active else 'Off'}")

        changed = self._set_state(active)
        if changed and self.is_valve:
            # The HomeKit write already updated Active; keep InUse in step.
            self._push("InUse", self._state.characteristic_value)

        self.publish_command(command)

    def get_in_use(self) -> int:
        """Return the cached InUse value (mirrors Active)."""
        return 1 if self._state.in_use else 0

    def identify(self) -> None:
        """Handle a HomeKit identify request."""
        logger.info(f"Identify requested for {self._config.name}")

    def characteristic_handlers(self) -> CharacteristicHandlers:
        """Get the get/set handlers to bind to the device service."""
        if self.is_valve:
            return {
                "Active": (self.get_active, self.set_active),
                "InUse": (self.get_in_use, None),
            }
        return {"On": (self.get_active, self.set_active)}

    def get_exposed_services(self) -> List[ServiceDescriptor]:
        """Get the HomeKit services owned by this accessory.

        Returns:
            [information descriptor, device descriptor]
        """
        information = ServiceDescriptor(
            service="AccessoryInformation",
            characteristics={
                "Name": self._config.name,
                "Manufacturer": self._config.manufacturer,
                "Model": self._config.model,
                "SerialNumber": self._config.serial_number,
            },
        )

        value = self._state.characteristic_value
        if self.is_valve:
            device = ServiceDescriptor(
                service="Valve",
                characteristics={
                    "Active": value,
                    "InUse": value,
                    "ValveType": int(self._config.valve_type),
                },
            )
        else:
            device = ServiceDescriptor(
                service="Switch",
                characteristics={"On": value},
            )

        return [information, device]

    # MQTT side

    def publish_command(self, command: str) -> bool:
        """Hand a literal command string to the publish callback.

        Args:
            command: Payload to publish on the command topic

        Returns:
            True if the command was submitted
        """
        if not self._publish_callback:
            logger.error("No publish callback configured")
            return False

        self._publish_callback(self._config.topic_command, command)
        self._stats["commands_sent"] += 1
        logger.debug(f"Queued command for {self._config.topic_command}: {command}")
        return True

    def request_status(self) -> bool:
        """Publish the configured status query, if any.

        Returns:
            True if a status query was submitted
        """
        if self._config.status_command is None:
            return False

        logger.info(f"Requesting current status of {self._config.name}")
        return self.publish_command(self._config.status_command)

    def on_status_message(self, topic: str, payload: bytes) -> bool:
        """Handle an incoming MQTT message.

        Args:
            topic: MQTT topic
            payload: Raw payload

        Returns:
            True if the cached state changed
        """
        if topic != self._config.topic_status:
            logger.debug(f"Ignoring message on {topic}")
            return False

        self._stats["status_messages"] += 1

        try:
            message = parse_status_payload(payload)
        except InvalidStatusPayload as e:
            self._stats["invalid_messages"] += 1
            logger.error(f"Dropping status message on {topic}: {e}")
            return False

        self._state.last_reported = message.device_status
        active = classify_status(
            message.device_status,
            self._config.on_value,
            self._config.off_value,
        )

        if active is None:
            self._stats["ignored_messages"] += 1
            logger.debug(
                f"DeviceStatus {message.device_status!r} matches neither "
                f"on ({self._config.on_value!r}) nor off ({self._config.off_value!r})"
            )
            return False

        if not self._set_state(active):
            logger.debug(f"{self._config.name} already {self._state}")
            return False

        logger.info(f"{self._config.name} reported {self._state}")
        self._push_state()
        return True

    def _set_state(self, active: bool) -> bool:
        """Update the cached state; return True if it changed."""
        if self._state.active == active:
            return False

        self._state.active = active
        self._state.last_update = datetime.now()
        self._stats["state_changes"] += 1
        return True

    def _push_state(self) -> None:
        """Push the cached state to every bound characteristic."""
        value = self._state.characteristic_value
        if self.is_valve:
            self._push("Active", value)
            self._push("InUse", value)
        else:
            self._push("On", value)

    def _push(self, characteristic: str, value: int) -> None:
        if not self._update_callback:
            logger.debug(f"No update callback, {characteristic}={value} not pushed")
            return
        self._update_callback(characteristic, value)
