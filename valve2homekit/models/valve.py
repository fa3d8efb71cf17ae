"""Pydantic data models for valve state and HomeKit service descriptors."""

from enum import Enum, IntEnum
from typing import Any, Dict, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field


class ValveType(IntEnum):
    """HomeKit ValveType characteristic values."""
    GENERIC = 0
    IRRIGATION = 1
    SHOWER_HEAD = 2
    WATER_FAUCET = 3

    def __str__(self) -> str:
        return self.name.replace("_", " ").title()

    @classmethod
    def from_name(cls, name: str) -> "ValveType":
        """Look up a valve type by name (case and separator insensitive)."""
        key = name.strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls[key]
        except KeyError:
            raise ValueError(f"Unknown valve type: {name}") from None


class ServiceType(str, Enum):
    """HomeKit service used to expose the device."""
    VALVE = "valve"
    SWITCH = "switch"

    def __str__(self) -> str:
        return self.value


class ValveState(BaseModel):
    """In-memory device state mirrored between MQTT and HomeKit."""

    active: bool = Field(
        default=False,
        description="Whether the valve is open / the switch is on"
    )
    last_reported: Optional[Any] = Field(
        default=None,
        description="Last DeviceStatus value received from the device"
    )
    last_update: Optional[datetime] = Field(
        default=None,
        description="Time of last state change"
    )

    @property
    def in_use(self) -> bool:
        """InUse mirrors Active."""
        return self.active

    @property
    def characteristic_value(self) -> int:
        """HomeKit value for Active / InUse / On."""
        return 1 if self.active else 0

    def __str__(self) -> str:
        return "On" if self.active else "Off"


class ServiceDescriptor(BaseModel):
    """A HomeKit service owned by the accessory.

    ``characteristics`` holds the initial value of every characteristic
    the service exposes, keyed by HAP characteristic name.
    """

    model_config = ConfigDict(frozen=True)

    service: str = Field(
        ...,
        description="HAP service name (e.g. 'Valve', 'Switch')"
    )
    characteristics: Dict[str, Any] = Field(
        default_factory=dict,
        description="Characteristic name -> initial value"
    )

    @property
    def is_information(self) -> bool:
        """Check if this is the AccessoryInformation service."""
        return self.service == "AccessoryInformation"
