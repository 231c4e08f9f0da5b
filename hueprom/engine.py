"""State diffing and metric lifecycle for lights and sensors.

Each poll cycle hands a full snapshot of one device category to this module.
Lights are projected straight onto gauges.  Sensors are compared against the
previous cycle's observations: gauges are refreshed, button releases are
inferred from changes between the two snapshots, and the series of sensors
that disappeared are removed.  Nothing here performs I/O besides calls on the
injected :class:`~hueprom.sink.MetricSink`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from .bridge.records import LightRecord, SensorRecord
from .const import (
    LABEL_BUTTON,
    METRIC_LIGHT_ON,
    METRIC_LIGHT_REACHABLE,
    METRIC_SENSOR_BUTTON_RELEASED,
    METRIC_SENSOR_BUTTONEVENT,
    METRIC_SENSOR_LASTUPDATED,
    METRIC_SENSOR_ON,
    METRIC_SENSOR_REACHABLE,
    SENSOR_GAUGES,
)
from .sink import MetricSink
from .state.observations import (
    ButtonEvent,
    Labels,
    SensorObservation,
    parse_light,
    parse_sensor,
)

logger = logging.getLogger("hueprom.engine")

ObservedSensors = Mapping[str, SensorObservation]


def b2f(value: bool) -> float:
    return 1.0 if value else 0.0


class LightProjector:
    """Publish on/reachable gauges for every light of a snapshot."""

    def __init__(self, sink: MetricSink) -> None:
        self._sink = sink

    def project(self, records: Iterable[LightRecord]) -> int:
        count = 0
        for record in records:
            light = parse_light(record)
            self._sink.set(METRIC_LIGHT_ON, light.labels, b2f(light.on))
            self._sink.set(METRIC_LIGHT_REACHABLE, light.labels, b2f(light.reachable))
            count += 1
        return count


class SensorDiffEngine:
    """Turn consecutive sensor snapshots into gauges and release counters.

    The engine keeps the Observed-Sensor-Set of the previous cycle.  A cycle
    builds a new set, publishes every present sensor, evicts the ones that
    vanished and then swaps the new set in.  :meth:`apply` must be driven by
    a single caller; :meth:`observed` may be read from anywhere.
    """

    def __init__(self, sink: MetricSink) -> None:
        self._sink = sink
        self._sensors: ObservedSensors = MappingProxyType({})
        self._lock = threading.Lock()

    def observed(self) -> ObservedSensors:
        """Return a read-only view of the current Observed-Sensor-Set."""
        with self._lock:
            return self._sensors

    def apply(self, records: Iterable[SensorRecord]) -> ObservedSensors:
        """Absorb one sensor snapshot and return the new Observed-Sensor-Set."""
        previous = self.observed()
        current: dict[str, SensorObservation] = {}

        for record in records:
            sensor = parse_sensor(record)
            if sensor.identity in current:
                logger.warning(
                    "Duplicate sensor identity %s in snapshot; keeping the last record",
                    sensor.identity,
                    extra={"sensor_name": sensor.name},
                )
            current[sensor.identity] = sensor

        # Superseded duplicates never reach the sink.
        for identity, sensor in current.items():
            self._publish(sensor)
            self._detect_events(sensor, previous.get(identity))

        self._evict(previous, current)

        frozen = MappingProxyType(current)
        with self._lock:
            self._sensors = frozen
        return frozen

    def _publish(self, sensor: SensorObservation) -> None:
        labels = sensor.labels

        timestamp = sensor.last_updated_us
        if timestamp is None:
            self._sink.delete(METRIC_SENSOR_LASTUPDATED, labels)
        else:
            self._sink.set(METRIC_SENSOR_LASTUPDATED, labels, float(timestamp))

        if sensor.button_event is None:
            self._sink.delete(METRIC_SENSOR_BUTTONEVENT, labels)
        else:
            self._sink.set(METRIC_SENSOR_BUTTONEVENT, labels, float(sensor.button_event))

        for metric, flag in ((METRIC_SENSOR_ON, sensor.on), (METRIC_SENSOR_REACHABLE, sensor.reachable)):
            if flag is None:
                self._sink.delete(metric, labels)
            else:
                self._sink.set(metric, labels, b2f(flag))

    def _detect_events(self, sensor: SensorObservation, previous: SensorObservation | None) -> None:
        # A first sighting has nothing to compare against.
        if previous is None or previous.trigger_key() == sensor.trigger_key():
            return

        if sensor.button_event is None:
            logger.info("Sensor %r [%s] triggered without button", sensor.name, sensor.identity)
            return

        event = ButtonEvent(sensor.button_event)
        if not event.is_released:
            logger.info(
                "Sensor %r [%s] button %d pressed (long=%s)",
                sensor.name,
                sensor.identity,
                event.button_id,
                event.is_long,
            )
            return

        logger.info(
            "Sensor %r [%s] button %d released (long=%s)",
            sensor.name,
            sensor.identity,
            event.button_id,
            event.is_long,
        )
        labels: Labels = {**sensor.labels, LABEL_BUTTON: str(event.button_id)}
        self._sink.inc(METRIC_SENSOR_BUTTON_RELEASED, labels)

    def _evict(self, previous: ObservedSensors, current: ObservedSensors) -> None:
        for identity, old in previous.items():
            new = current.get(identity)
            if new is None:
                logger.info("Sensor %r [%s] removed", old.name, identity)
            elif new.labels != old.labels:
                logger.info("Sensor [%s] renamed from %r to %r", identity, old.name, new.name)
            else:
                continue
            # Release counters are cumulative and survive eviction.
            for metric in SENSOR_GAUGES:
                self._sink.delete(metric, old.labels)


__all__ = ["LightProjector", "SensorDiffEngine", "ObservedSensors", "b2f"]
