"""Tests for the light projector and the sensor diff engine."""

from __future__ import annotations

import logging

import pytest

from hueprom.const import (
    METRIC_LIGHT_ON,
    METRIC_LIGHT_REACHABLE,
    METRIC_SENSOR_BUTTON_RELEASED,
    METRIC_SENSOR_BUTTONEVENT,
    METRIC_SENSOR_LASTUPDATED,
    METRIC_SENSOR_ON,
    METRIC_SENSOR_REACHABLE,
    SENSOR_GAUGES,
)
from hueprom.engine import LightProjector, SensorDiffEngine

from .mocks import FakeMetricSink, make_light, make_sensor

NOON_2024_US = 1_704_110_400_000_000


def _labels(uniqueid: str, name: str | None = None) -> dict[str, str]:
    return {"name": name if name is not None else f"Sensor {uniqueid}", "uniqueid": uniqueid}


def _button(uniqueid: str, button: int, name: str | None = None) -> dict[str, str]:
    return {**_labels(uniqueid, name), "button": str(button)}


@pytest.fixture()
def engine(sink: FakeMetricSink) -> SensorDiffEngine:
    return SensorDiffEngine(sink)


def test_light_projector_sets_both_gauges(sink: FakeMetricSink) -> None:
    projector = LightProjector(sink)

    count = projector.project(
        [
            make_light("00:17:88:01:00:aa-0b", name="Kitchen", on=True, reachable=False),
            make_light("00:17:88:01:00:bb-0b", name="Kitchen", on=False, reachable=True),
        ]
    )

    assert count == 2
    first = {"name": "Kitchen", "uniqueid": "00:17:88:01:00:aa-0b"}
    second = {"name": "Kitchen", "uniqueid": "00:17:88:01:00:bb-0b"}
    assert sink.gauge(METRIC_LIGHT_ON, first) == 1.0
    assert sink.gauge(METRIC_LIGHT_REACHABLE, first) == 0.0
    assert sink.gauge(METRIC_LIGHT_ON, second) == 0.0
    assert sink.gauge(METRIC_LIGHT_REACHABLE, second) == 1.0


def test_first_sighting_publishes_gauges_without_events(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1002)])

    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("s1")) == NOON_2024_US
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) == 1002
    assert sink.gauge(METRIC_SENSOR_ON, _labels("s1")) == 1.0
    assert sink.gauge(METRIC_SENSOR_REACHABLE, _labels("s1")) == 1.0
    assert sink.total_increments() == 0


def test_unchanged_pair_does_not_increment(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    snapshot = [make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1002)]
    engine.apply(snapshot)
    engine.apply(snapshot)
    engine.apply(snapshot)

    assert sink.total_increments() == 0


def test_release_code_1002_increments_button_1000(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1002)])
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:05", buttonevent=1002)])

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 1000)) == 1.0
    assert sink.total_increments() == 1


def test_float_code_from_json_is_narrowed(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", buttonevent=2000.0)])
    engine.apply([make_sensor("s1", buttonevent=2002.0)])

    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) == 2002
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 2000)) == 1.0


def test_idempotent_after_absorption(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1000)])
    snapshot = [make_sensor("s1", lastupdated="2024-01-01T12:00:01", buttonevent=1002)]
    engine.apply(snapshot)
    gauges_after_first = {metric: dict(series) for metric, series in sink.gauges.items()}
    increments_after_first = sink.total_increments()

    engine.apply(snapshot)

    assert increments_after_first == 1
    assert sink.total_increments() == increments_after_first
    assert {metric: dict(series) for metric, series in sink.gauges.items()} == gauges_after_first


def test_timestamp_appears_after_none_without_event(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("S1", lastupdated="none")])
    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("S1")) is None

    engine.apply([make_sensor("S1", lastupdated="2024-01-01T12:00:00")])

    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("S1")) == NOON_2024_US
    # Button absent in both cycles: the timestamp change alone is not a click.
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("S1")) is None
    assert sink.total_increments() == 0


def test_button_sequence_counts_only_releases(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    released = _button("S2", 0)

    engine.apply([make_sensor("S2", buttonevent=3)])
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, released) is None

    engine.apply([make_sensor("S2", buttonevent=3)])
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, released) is None

    engine.apply([make_sensor("S2", buttonevent=1)])
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, released) is None

    engine.apply([make_sensor("S2", buttonevent=3)])
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, released) == 1.0


def test_press_is_logged_but_not_counted(
    engine: SensorDiffEngine,
    sink: FakeMetricSink,
    caplog: pytest.LogCaptureFixture,
) -> None:
    engine.apply([make_sensor("s1", buttonevent=1002)])
    with caplog.at_level(logging.INFO, logger="hueprom.engine"):
        engine.apply([make_sensor("s1", buttonevent=1000)])

    assert sink.total_increments() == 0
    assert any("pressed" in record.getMessage() for record in caplog.records)


def test_vanished_sensor_gauges_deleted_counter_kept(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    keep = make_sensor("S1", sensor_id="1", buttonevent=1002)
    engine.apply([keep, make_sensor("S3", sensor_id="3", lastupdated="2024-01-01T12:00:00", buttonevent=2000)])
    engine.apply([keep, make_sensor("S3", sensor_id="3", lastupdated="2024-01-01T12:00:01", buttonevent=2002)])
    engine.apply([keep, make_sensor("S3", sensor_id="3", lastupdated="2024-01-01T12:00:01", buttonevent=2002)])

    engine.apply([keep])

    for metric in SENSOR_GAUGES:
        assert sink.gauge(metric, _labels("S3")) is None
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("S3", 2000)) == 1.0
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("S1")) == 1002
    assert set(engine.observed()) == {"S1"}


def test_eviction_happens_after_publication(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("a", sensor_id="1")])
    sink.calls.clear()

    engine.apply([make_sensor("b", sensor_id="2")])

    kinds = [(kind, dict(labels)["uniqueid"]) for kind, _, labels in sink.calls]
    last_b = max(index for index, (_, uid) in enumerate(kinds) if uid == "b")
    first_a = min(index for index, (_, uid) in enumerate(kinds) if uid == "a")
    assert last_b < first_a
    assert all(kind == "delete" for kind, uid in kinds if uid == "a")


def test_reappearing_sensor_is_new_again(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", buttonevent=1000)])
    engine.apply([])
    engine.apply([make_sensor("s1", buttonevent=1002)])

    assert sink.total_increments() == 0
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) == 1002


def test_counter_survives_disappearance(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", buttonevent=1000)])
    engine.apply([make_sensor("s1", buttonevent=1002)])
    engine.apply([])
    engine.apply([make_sensor("s1", buttonevent=1000)])
    engine.apply([make_sensor("s1", buttonevent=1002)])

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 1000)) == 2.0


def test_zero_code_is_distinct_from_absent(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1")])
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) is None

    engine.apply([make_sensor("s1", buttonevent=0)])

    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) == 0.0
    assert sink.total_increments() == 0


def test_release_without_timestamp_change_counts(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=4000)])
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=4002)])

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 4000)) == 1.0


def test_same_code_new_timestamp_counts_again(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1002)])
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:10", buttonevent=1002)])
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:20", buttonevent=1002)])

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 1000)) == 2.0


def test_bad_timestamp_keeps_sensor_tracked(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", lastupdated="2024-01-01T12:00:00", buttonevent=1000)])
    engine.apply([make_sensor("s1", lastupdated="garbage", buttonevent=1002)])

    assert "s1" in engine.observed()
    assert engine.observed()["s1"].last_updated is None
    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("s1")) is None
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("s1")) == 1002
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("s1", 1000)) == 1.0


def test_unknown_flags_clear_gauges(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", config={"on": True, "reachable": False})])
    assert sink.gauge(METRIC_SENSOR_REACHABLE, _labels("s1")) == 0.0

    engine.apply([make_sensor("s1", config={"on": "yes"})])

    assert sink.gauge(METRIC_SENSOR_ON, _labels("s1")) is None
    assert sink.gauge(METRIC_SENSOR_REACHABLE, _labels("s1")) is None


def test_identity_not_name_is_the_key(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply(
        [
            make_sensor("a", name="Switch", sensor_id="1", buttonevent=1000),
            make_sensor("b", name="Switch", sensor_id="2", buttonevent=1000),
        ]
    )
    engine.apply(
        [
            make_sensor("a", name="Switch", sensor_id="1", buttonevent=1002),
            make_sensor("b", name="Switch", sensor_id="2", buttonevent=1000),
        ]
    )

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("a", 1000, "Switch")) == 1.0
    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("b", 1000, "Switch")) is None
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("b", "Switch")) == 1000


def test_rename_removes_previous_label_set(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("s1", name="Old", lastupdated="2024-01-01T12:00:00")])
    engine.apply([make_sensor("s1", name="New", lastupdated="2024-01-01T12:00:00")])

    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("s1", "Old")) is None
    assert sink.gauge(METRIC_SENSOR_LASTUPDATED, _labels("s1", "New")) == NOON_2024_US


def test_duplicate_identity_keeps_last_record(
    engine: SensorDiffEngine,
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING, logger="hueprom.engine"):
        observed = engine.apply(
            [
                make_sensor("dup", sensor_id="1", buttonevent=1000),
                make_sensor("other", sensor_id="2"),
                make_sensor("dup", sensor_id="3", buttonevent=2000),
            ]
        )

    assert observed["dup"].button_event == 2000
    assert "other" in observed
    assert any("Duplicate" in record.getMessage() for record in caplog.records)


def test_duplicate_identity_leaves_no_orphaned_series(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply(
        [
            make_sensor("dup", name="A", sensor_id="1", buttonevent=1000),
            make_sensor("dup", name="B", sensor_id="2", buttonevent=2000),
        ]
    )

    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("dup", "A")) is None
    assert sink.gauge(METRIC_SENSOR_BUTTONEVENT, _labels("dup", "B")) == 2000

    engine.apply([])

    assert all(not series for series in sink.gauges.values())


def test_duplicate_identity_counts_release_once(engine: SensorDiffEngine, sink: FakeMetricSink) -> None:
    engine.apply([make_sensor("dup", name="Switch", lastupdated="2024-01-01T12:00:00", buttonevent=1000)])
    engine.apply(
        [
            make_sensor("dup", name="Switch", sensor_id="1", lastupdated="2024-01-01T12:00:01", buttonevent=1002),
            make_sensor("dup", name="Switch", sensor_id="2", lastupdated="2024-01-01T12:00:01", buttonevent=1002),
        ]
    )

    assert sink.counter(METRIC_SENSOR_BUTTON_RELEASED, _button("dup", 1000, "Switch")) == 1.0


def test_observed_set_is_replaced_and_read_only(engine: SensorDiffEngine) -> None:
    first = engine.apply([make_sensor("s1")])
    second = engine.apply([make_sensor("s2")])

    assert set(first) == {"s1"}
    assert set(second) == {"s2"}
    assert engine.observed() is second
    with pytest.raises(TypeError):
        second["s3"] = second["s2"]  # type: ignore[index]
