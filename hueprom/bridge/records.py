"""Typed views of the bridge's ``lights`` and ``sensors`` resources.

The bridge answers with a JSON object keyed by its local device id.  Records
are decoded in that order; the key is folded into the record as ``id``.
Sensor ``state`` and ``config`` stay free-form maps because their content
depends on the sensor type; :mod:`hueprom.state.observations` narrows them.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, TypeVar, cast

import msgspec

from .errors import BridgeApiError, BridgeError

logger = logging.getLogger("hueprom.bridge")

R = TypeVar("R", "LightRecord", "SensorRecord")

# Sensor maps whose content depends on the sensor type.
_FREE_FORM_FIELDS = ("state", "config")


class LightState(msgspec.Struct):
    on: bool = False
    reachable: bool = False


class LightRecord(msgspec.Struct):
    id: str
    name: str = ""
    uniqueid: str = ""
    type: str = ""
    state: LightState = msgspec.field(default_factory=LightState)


class SensorRecord(msgspec.Struct):
    id: str
    name: str = ""
    uniqueid: str = ""
    type: str = ""
    state: dict[str, Any] = msgspec.field(default_factory=dict)
    config: dict[str, Any] = msgspec.field(default_factory=dict)


def raise_for_api_error(payload: Any) -> None:
    """Raise :class:`BridgeApiError` if *payload* is a Hue error response."""
    if not isinstance(payload, list):
        return
    for item in cast(list[Any], payload):
        if isinstance(item, dict) and isinstance(item.get("error"), dict):
            raise BridgeApiError.from_payload(cast(Mapping[str, Any], item["error"]))


def _normalise_sensor(key: str, item: dict[str, Any]) -> dict[str, Any]:
    for field in _FREE_FORM_FIELDS:
        value = item.get(field)
        if field in item and not isinstance(value, dict):
            logger.warning("Sensor %r has non-object %s %r; treating it as empty", key, field, value)
            item = {**item, field: {}}
    return item


def decode_resource(payload: Any, record_type: type[R]) -> list[R]:
    """Convert a decoded ``lights``/``sensors`` object into typed records.

    A malformed record is logged and skipped; the rest of the snapshot is
    still returned.  Only a payload that is not an object at all fails.
    """
    raise_for_api_error(payload)
    if not isinstance(payload, dict):
        raise BridgeError(f"expected an object for {record_type.__name__}, got {type(payload).__name__}")

    records: list[R] = []
    for key, item in cast(dict[str, Any], payload).items():
        key = str(key)
        if not isinstance(item, dict):
            logger.error("Skipping %s %r: not an object", record_type.__name__, key)
            continue
        if record_type is SensorRecord:
            item = _normalise_sensor(key, item)
        try:
            records.append(msgspec.convert({**item, "id": key}, record_type))
        except msgspec.ValidationError as exc:
            logger.error("Skipping invalid %s %r: %s", record_type.__name__, key, exc)
    return records
