"""Status payload parsing and sentinel matching.

Devices report their state as a JSON object on the status topic::

    {"DeviceStatus": "1"}

The reported value is compared against the configured on/off sentinel
values without type checking: strings compare exactly, anything else
compares as a number, so ``1``, ``1.0`` and ``true`` all match a sentinel
of ``"1"``, while the string ``"1.0"`` only matches a numeric sentinel.
"""

import json
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


class InvalidStatusPayload(ValueError):
    """Raised when a status message cannot be interpreted."""


class StatusMessage(BaseModel):
    """Validated status message."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    device_status: Any = Field(
        ...,
        alias="DeviceStatus",
        description="Reported device status value"
    )


def parse_status_payload(payload: bytes) -> StatusMessage:
    """Parse a raw status payload.

    Args:
        payload: Raw MQTT payload

    Returns:
        Validated StatusMessage

    Raises:
        InvalidStatusPayload: If the payload is not UTF-8, not a JSON
            object, or has no DeviceStatus field
    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidStatusPayload(f"Invalid payload encoding: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise InvalidStatusPayload(f"Invalid JSON: {e.msg}") from e

    if not isinstance(data, dict):
        raise InvalidStatusPayload(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return StatusMessage.model_validate(data)
    except ValidationError as e:
        raise InvalidStatusPayload("Missing DeviceStatus field") from e


SCALARS = (str, int, float)


def _as_number(value: Any) -> Optional[float]:
    """Numeric form of a scalar for mixed-type comparison.

    Booleans count as 0/1, a blank string as 0; a string that is not
    a plain decimal number has no numeric form.
    """
    if isinstance(value, (int, float)):
        return float(value)
    text = value.strip()
    if not text:
        return 0.0
    if "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def sentinel_matches(reported: Any, sentinel: Any) -> bool:
    """Compare a reported status with a configured sentinel value.

    Two strings must be identical. When either side is a number or a
    boolean, both sides are compared as numbers, so ``"01"`` and
    ``" 1"`` match ``1`` and ``True`` matches ``"1"``.

    Args:
        reported: DeviceStatus value from the payload
        sentinel: Configured on/off value

    Returns:
        True if the values are loosely equal
    """
    if reported is None or sentinel is None:
        return reported is sentinel
    if isinstance(reported, str) and isinstance(sentinel, str):
        return reported == sentinel
    if isinstance(reported, SCALARS) and isinstance(sentinel, SCALARS):
        left, right = _as_number(reported), _as_number(sentinel)
        return left is not None and right is not None and left == right
    return reported == sentinel


def classify_status(reported: Any, on_value: Any, off_value: Any) -> Optional[bool]:
    """Map a reported status to a state.

    Returns:
        True for the on sentinel, False for the off sentinel, None otherwise
    """
    if sentinel_matches(reported, on_value):
        return True
    if sentinel_matches(reported, off_value):
        return False
    return None
