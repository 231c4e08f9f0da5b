"""Observed device state for the hueprom gateway."""

from .observations import (
    ButtonEvent,
    LightObservation,
    SensorObservation,
    parse_light,
    parse_sensor,
)

__all__ = [
    "ButtonEvent",
    "LightObservation",
    "SensorObservation",
    "parse_light",
    "parse_sensor",
]
