"""Metric Sink: label-addressed set/delete access to exported series."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol

from prometheus_client import CollectorRegistry, Counter, Gauge

from .const import (
    LABEL_BUTTON,
    LABEL_NAME,
    LABEL_UNIQUEID,
    METRIC_LIGHT_ON,
    METRIC_LIGHT_REACHABLE,
    METRIC_SENSOR_BUTTON_RELEASED,
    METRIC_SENSOR_BUTTONEVENT,
    METRIC_SENSOR_LASTUPDATED,
    METRIC_SENSOR_ON,
    METRIC_SENSOR_REACHABLE,
)

logger = logging.getLogger("hueprom.sink")

DEVICE_LABELS: tuple[str, ...] = (LABEL_NAME, LABEL_UNIQUEID)
BUTTON_LABELS: tuple[str, ...] = (LABEL_NAME, LABEL_UNIQUEID, LABEL_BUTTON)

_GAUGES: dict[str, str] = {
    METRIC_LIGHT_ON: "Is the light set to on on the bridge.",
    METRIC_LIGHT_REACHABLE: "Is the light reachable.",
    METRIC_SENSOR_LASTUPDATED: "Last update of the sensor, in microseconds since epoch.",
    METRIC_SENSOR_BUTTONEVENT: "Last button event code reported by the sensor.",
    METRIC_SENSOR_ON: "Is the sensor enabled on the bridge.",
    METRIC_SENSOR_REACHABLE: "Is the sensor reachable.",
}
_COUNTERS: dict[str, str] = {
    METRIC_SENSOR_BUTTON_RELEASED: "Number of button releases seen on the sensor.",
}


class MetricSink(Protocol):
    """Side-effecting store of current series values, keyed by label set."""

    def set(self, metric: str, labels: Mapping[str, str], value: float) -> None: ...

    def delete(self, metric: str, labels: Mapping[str, str]) -> None: ...

    def inc(self, metric: str, labels: Mapping[str, str], amount: float = 1.0) -> None: ...


class PrometheusMetricSink:
    """:class:`MetricSink` backed by prometheus_client metrics on *registry*."""

    def __init__(self, registry: CollectorRegistry) -> None:
        self.registry = registry
        self._gauges = {name: Gauge(name, doc, DEVICE_LABELS, registry=registry) for name, doc in _GAUGES.items()}
        self._counters = {
            name: Counter(name, doc, BUTTON_LABELS, registry=registry) for name, doc in _COUNTERS.items()
        }

    def _gauge(self, metric: str) -> Gauge:
        try:
            return self._gauges[metric]
        except KeyError:
            raise KeyError(f"unknown gauge {metric!r}") from None

    def set(self, metric: str, labels: Mapping[str, str], value: float) -> None:
        self._gauge(metric).labels(*(labels[key] for key in DEVICE_LABELS)).set(value)

    def delete(self, metric: str, labels: Mapping[str, str]) -> None:
        gauge = self._gauge(metric)
        values = [labels[key] for key in DEVICE_LABELS]
        try:
            gauge.remove(*values)
        except KeyError:
            # Older prometheus_client releases raise when the series never existed.
            logger.debug("No %s series for %s to delete", metric, values)

    def inc(self, metric: str, labels: Mapping[str, str], amount: float = 1.0) -> None:
        try:
            counter = self._counters[metric]
        except KeyError:
            raise KeyError(f"unknown counter {metric!r}") from None
        counter.labels(*(labels[key] for key in BUTTON_LABELS)).inc(amount)


__all__ = ["MetricSink", "PrometheusMetricSink"]
