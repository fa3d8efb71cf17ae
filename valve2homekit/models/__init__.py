"""Data models for valve state, service descriptors and status payloads."""

from .valve import (
    ValveState,
    ValveType,
    ServiceType,
    ServiceDescriptor,
)

from .status import (
    StatusMessage,
    InvalidStatusPayload,
    parse_status_payload,
    sentinel_matches,
    classify_status,
)

__all__ = [
    # State models
    "ValveState",
    "ValveType",
    "ServiceType",
    "ServiceDescriptor",
    # Status payloads
    "StatusMessage",
    "InvalidStatusPayload",
    "parse_status_payload",
    "sentinel_matches",
    "classify_status",
]
