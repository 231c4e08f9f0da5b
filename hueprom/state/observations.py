"""Typed observations derived from raw bridge records.

The bridge reports sensor state as loosely typed maps.  They are narrowed
here, once, into immutable observations; a malformed field becomes "absent"
and is logged instead of failing the record.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any

import msgspec

from ..bridge.records import LightRecord, SensorRecord
from ..const import (
    BUTTON_FLAG_LONG,
    BUTTON_FLAG_RELEASED,
    BUTTON_FLAGS_MASK,
    LABEL_NAME,
    LABEL_UNIQUEID,
    SENSOR_IDENTITY_FALLBACK_PREFIX,
    TIMESTAMP_FORMAT,
    TIMESTAMP_LENGTH,
    TIMESTAMP_NONE,
)

logger = logging.getLogger("hueprom.state")

Labels = dict[str, str]


class LightObservation(msgspec.Struct, frozen=True):
    id: str
    name: str
    unique_id: str
    on: bool
    reachable: bool

    @property
    def labels(self) -> Labels:
        return {LABEL_NAME: self.name, LABEL_UNIQUEID: self.unique_id}


class SensorObservation(msgspec.Struct, frozen=True):
    identity: str
    name: str
    last_updated: datetime | None = None
    button_event: int | None = None
    on: bool | None = None
    reachable: bool | None = None

    @property
    def labels(self) -> Labels:
        return {LABEL_NAME: self.name, LABEL_UNIQUEID: self.identity}

    @property
    def last_updated_us(self) -> int | None:
        """Last update as microseconds since the epoch."""
        if self.last_updated is None:
            return None
        return int(self.last_updated.timestamp()) * 1_000_000

    def trigger_key(self) -> tuple[datetime | None, int | None]:
        return (self.last_updated, self.button_event)


class ButtonEvent(msgspec.Struct, frozen=True):
    """A decoded ``buttonevent`` code.

    The two low-order bits carry flags: bit 0 marks a long press, bit 1 a
    release.  The remaining bits identify the button.
    """

    code: int

    @property
    def button_id(self) -> int:
        return self.code & ~BUTTON_FLAGS_MASK

    @property
    def is_long(self) -> bool:
        return bool(self.code & BUTTON_FLAG_LONG)

    @property
    def is_released(self) -> bool:
        return bool(self.code & BUTTON_FLAG_RELEASED)


def parse_light(record: LightRecord) -> LightObservation:
    return LightObservation(
        id=record.id,
        name=record.name,
        unique_id=record.uniqueid,
        on=record.state.on,
        reachable=record.state.reachable,
    )


def sensor_identity(record: SensorRecord) -> str:
    if record.uniqueid:
        return record.uniqueid
    # Bridge-internal sensors (daylight, CLIP) have no unique id.
    return f"{SENSOR_IDENTITY_FALLBACK_PREFIX}{record.id}"


def parse_last_updated(value: Any, *, sensor: str = "") -> datetime | None:
    if value is None or value == TIMESTAMP_NONE:
        logger.debug("Sensor %r has no recorded update", sensor)
        return None
    if not isinstance(value, str):
        logger.error("Unable to read lastupdated %r of sensor %r as string", value, sensor)
        return None
    try:
        # strptime also accepts unpadded fields.
        if len(value) != TIMESTAMP_LENGTH:
            raise ValueError(f"expected {TIMESTAMP_LENGTH} characters, got {len(value)}")
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError as exc:
        logger.error("Unable to parse lastupdated %r of sensor %r: %s", value, sensor, exc)
        return None


def parse_button_event(state: Mapping[str, Any], *, sensor: str = "") -> int | None:
    value = state.get("buttonevent")
    if value is None:
        return None
    # bool is an int subclass; it is never a valid code.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        logger.error("Unable to read buttonevent %r of sensor %r as a number", value, sensor)
        return None
    if isinstance(value, float) and not value.is_integer():
        logger.error("Buttonevent %r of sensor %r is not an integer code", value, sensor)
        return None
    return int(value)


def parse_flag(config: Mapping[str, Any], key: str, *, sensor: str = "") -> bool | None:
    value = config.get(key)
    if value is None or isinstance(value, bool):
        return value
    logger.warning("Ignoring non-boolean %s=%r of sensor %r", key, value, sensor)
    return None


def parse_sensor(record: SensorRecord) -> SensorObservation:
    """Convert a raw :class:`SensorRecord` into a :class:`SensorObservation`."""
    identity = sensor_identity(record)
    return SensorObservation(
        identity=identity,
        name=record.name,
        last_updated=parse_last_updated(record.state.get("lastupdated"), sensor=identity),
        button_event=parse_button_event(record.state, sensor=identity),
        on=parse_flag(record.config, "on", sensor=identity),
        reachable=parse_flag(record.config, "reachable", sensor=identity),
    )
