"""Hue bridge client package."""

from .client import HueBridge, connect, discover_bridge
from .errors import BridgeApiError, BridgeError
from .records import LightRecord, LightState, SensorRecord

__all__ = [
    "BridgeApiError",
    "BridgeError",
    "HueBridge",
    "LightRecord",
    "LightState",
    "SensorRecord",
    "connect",
    "discover_bridge",
]
