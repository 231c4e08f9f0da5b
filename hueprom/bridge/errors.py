"""Errors raised by the Hue bridge client."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

# Hue error type returned when pairing without pressing the link button.
LINK_BUTTON_NOT_PRESSED = 101
UNAUTHORIZED_USER = 1


class BridgeError(Exception):
    """Transport, HTTP or decoding failure while talking to the bridge."""


class BridgeApiError(BridgeError):
    """Error object reported by the bridge API itself."""

    def __init__(self, error_type: int, address: str, description: str) -> None:
        self.type = error_type
        self.address = address
        self.description = description
        super().__init__(f"bridge API error {error_type} at {address or '/'}: {description}")

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> BridgeApiError:
        raw_type = payload.get("type")
        return cls(
            error_type=raw_type if isinstance(raw_type, int) else -1,
            address=str(payload.get("address") or ""),
            description=str(payload.get("description") or "unknown error"),
        )

    @property
    def link_button_not_pressed(self) -> bool:
        return self.type == LINK_BUTTON_NOT_PRESSED
