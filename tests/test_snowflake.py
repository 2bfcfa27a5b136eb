from __future__ import annotations

from datetime import datetime, timezone

import pytest

from keygen.core.const import DEFAULT_EPOCH, MAXIMUM_NODE_ID, MAXIMUM_SEQUENCE, MAXIMUM_TIMESTAMP, UNSET_TIMESTAMP
from keygen.core.exceptions import ClockRegressionError, ConfigurationError
from keygen.core.snowflake import (
    SnowflakeGenerator,
    compose_id,
    decompose_id,
    new_generator,
    next_id,
    timestamp_of,
    to_datetime,
)
from tests.conftest import EPOCH, FakeClock


def test_layout_constants() -> None:
    assert MAXIMUM_NODE_ID == 1023
    assert MAXIMUM_SEQUENCE == 4095
    assert MAXIMUM_TIMESTAMP == 2 ** 41 - 1


@pytest.mark.parametrize(
    "timestamp, node_id, sequence",
    [
        (0, 0, 0),
        (100, 5, 1),
        (MAXIMUM_TIMESTAMP, MAXIMUM_NODE_ID, MAXIMUM_SEQUENCE),
        (1_234_567_890, 513, 2048),
    ],
)
def test_compose_then_decompose_recovers_fields(timestamp: int, node_id: int, sequence: int) -> None:
    snowflake_id = compose_id(timestamp, node_id, sequence)

    assert decompose_id(snowflake_id) == (timestamp, node_id, sequence)
    assert timestamp_of(snowflake_id) == timestamp


def test_compose_keeps_sign_bit_clear() -> None:
    snowflake_id = compose_id(MAXIMUM_TIMESTAMP, MAXIMUM_NODE_ID, MAXIMUM_SEQUENCE)

    assert snowflake_id == 2 ** 63 - 1
    assert snowflake_id >> 63 == 0


def test_compose_bit_positions() -> None:
    assert compose_id(1, 0, 0) == 1 << 22
    assert compose_id(0, 1, 0) == 1 << 12
    assert compose_id(0, 0, 1) == 1


@pytest.mark.parametrize(
    "timestamp, node_id, sequence",
    [
        (-1, 0, 0),
        (MAXIMUM_TIMESTAMP + 1, 0, 0),
        (0, -1, 0),
        (0, MAXIMUM_NODE_ID + 1, 0),
        (0, 0, -1),
        (0, 0, MAXIMUM_SEQUENCE + 1),
    ],
)
def test_compose_rejects_out_of_range_fields(timestamp: int, node_id: int, sequence: int) -> None:
    with pytest.raises(ValueError):
        compose_id(timestamp, node_id, sequence)


@pytest.mark.parametrize("value", [-1, 2 ** 63])
def test_decompose_rejects_invalid_ids(value: int) -> None:
    with pytest.raises(ValueError):
        decompose_id(value)


def test_to_datetime_adds_epoch() -> None:
    snowflake_id = compose_id(1000, 1, 0)

    assert to_datetime(snowflake_id, epoch=0) == datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)
    assert to_datetime(compose_id(0, 0, 0)) == datetime.fromtimestamp(DEFAULT_EPOCH / 1000, tz=timezone.utc)


def test_scenario_sequence_resets_when_clock_advances(generator: SnowflakeGenerator, clock: FakeClock) -> None:
    first = decompose_id(generator.next_id())
    second = decompose_id(generator.next_id())
    clock.advance()
    third = decompose_id(generator.next_id())

    assert first == (100, 5, 0)
    assert second == (100, 5, 1)
    assert third == (101, 5, 0)


def test_ids_are_unique_and_timestamps_non_decreasing(generator: SnowflakeGenerator, clock: FakeClock) -> None:
    ids = []
    for i in range(5000):
        if i % 7 == 0:
            clock.advance()
        ids.append(generator.next_id())

    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)
    timestamps = [timestamp_of(i) for i in ids]
    assert timestamps == sorted(timestamps)


def test_consecutive_ids_in_same_millisecond_differ_by_one_sequence(generator: SnowflakeGenerator) -> None:
    previous = decompose_id(generator.next_id())
    for _ in range(50):
        current = decompose_id(generator.next_id())
        assert current.timestamp == previous.timestamp
        assert current.sequence == (previous.sequence + 1) % (MAXIMUM_SEQUENCE + 1)
        previous = current


def test_sequence_overflow_waits_for_next_millisecond(generator: SnowflakeGenerator, clock: FakeClock) -> None:
    ids = [generator.next_id() for _ in range(MAXIMUM_SEQUENCE + 1)]
    assert decompose_id(ids[-1]) == (100, 5, MAXIMUM_SEQUENCE)

    # Still at timestamp 100 for two more polls, then the clock rolls over
    clock.schedule([EPOCH + 100, EPOCH + 100, EPOCH + 100, EPOCH + 101])
    overflowed = decompose_id(generator.next_id())

    assert overflowed == (101, 5, 0)
    assert generator.last_timestamp == 101
    assert generator.sequence == 0
    assert len(set(ids)) == len(ids)


def test_clock_regression_raises_and_leaves_state_unchanged(generator: SnowflakeGenerator, clock: FakeClock) -> None:
    generator.next_id()
    generator.next_id()

    clock.now = EPOCH + 99
    with pytest.raises(ClockRegressionError) as exc_info:
        generator.next_id()

    assert exc_info.value.last_timestamp == 100
    assert exc_info.value.current_timestamp == 99
    assert exc_info.value.regression_ms == 1
    assert exc_info.value.error_code == "CLOCK_REGRESSION"
    assert generator.last_timestamp == 100
    assert generator.sequence == 1

    # Issuing resumes once the clock catches up
    clock.now = EPOCH + 100
    assert decompose_id(generator.next_id()) == (100, 5, 2)


def test_initial_state_is_unset(generator: SnowflakeGenerator) -> None:
    assert generator.last_timestamp == UNSET_TIMESTAMP
    assert generator.sequence == 0
    assert generator.node_id == 5
    assert generator.epoch == EPOCH


@pytest.mark.parametrize("node_id", [-1, MAXIMUM_NODE_ID + 1, 5000])
def test_out_of_range_node_id_is_a_configuration_error(node_id: int, clock: FakeClock) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        SnowflakeGenerator(node_id=node_id, epoch=EPOCH, clock=clock, spin_sleep=0)

    assert exc_info.value.setting == "node_id"
    assert exc_info.value.error_code == "CONFIGURATION_NODE_ID"


def test_future_epoch_is_a_configuration_error() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        SnowflakeGenerator(node_id=1, epoch=EPOCH, clock=FakeClock(EPOCH - 1), spin_sleep=0)

    assert exc_info.value.setting == "epoch"


def test_negative_epoch_is_a_configuration_error(clock: FakeClock) -> None:
    with pytest.raises(ConfigurationError):
        SnowflakeGenerator(node_id=1, epoch=-5, clock=clock, spin_sleep=0)


def test_new_generator_and_next_id(clock: FakeClock) -> None:
    generator = new_generator(node_id=MAXIMUM_NODE_ID, epoch=EPOCH, clock=clock, spin_sleep=0)

    snowflake_id = next_id(generator)

    assert decompose_id(snowflake_id) == (100, MAXIMUM_NODE_ID, 0)
    assert generator.next_id_str() == str(compose_id(100, MAXIMUM_NODE_ID, 1))


def test_generator_defaults_come_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    from keygen.core import config as config_module

    monkeypatch.setitem(config_module.config, "generator", {"node_id": 42, "epoch": 0, "spin_sleep": 0})

    generator = SnowflakeGenerator()

    assert generator.node_id == 42
    assert generator.epoch == 0


def test_real_clock_generates_unique_sorted_ids() -> None:
    generator = SnowflakeGenerator(node_id=1, epoch=DEFAULT_EPOCH, spin_sleep=0.0001)

    ids = [generator.next_id() for _ in range(10000)]

    assert len(set(ids)) == len(ids)
    assert ids == sorted(ids)
