#!/usr/bin/env python3
"""
Snowflake ID generator for distributed unique ID generation.
"""

import threading
import time
from datetime import datetime, timezone
from typing import Callable, NamedTuple, Optional

from loguru import logger

from keygen.core.config import get_settings
from keygen.core.const import (
    DEFAULT_EPOCH,
    MAXIMUM_ID,
    MAXIMUM_NODE_ID,
    MAXIMUM_SEQUENCE,
    MAXIMUM_TIMESTAMP,
    NODE_ID_SHIFT,
    TIMESTAMP_SHIFT,
    UNSET_TIMESTAMP,
)
from keygen.core.exceptions import ClockRegressionError, ConfigurationError
from keygen.core.node_id import resolve_node_id


class SnowflakeComponents(NamedTuple):
    """Fields packed into a Snowflake ID."""

    timestamp: int
    node_id: int
    sequence: int


def compose_id(timestamp: int, node_id: int, sequence: int) -> int:
    """
    Pack the three fields into a 64-bit Snowflake ID.

    Args:
        timestamp: Milliseconds since the custom epoch (41 bits)
        node_id: Node id (10 bits)
        sequence: Per-millisecond sequence (12 bits)

    Returns:
        Snowflake ID as integer
    """
    if not 0 <= timestamp <= MAXIMUM_TIMESTAMP:
        raise ValueError(f"Timestamp must be between 0 and {MAXIMUM_TIMESTAMP}, got {timestamp}")
    if not 0 <= node_id <= MAXIMUM_NODE_ID:
        raise ValueError(f"Node id must be between 0 and {MAXIMUM_NODE_ID}, got {node_id}")
    if not 0 <= sequence <= MAXIMUM_SEQUENCE:
        raise ValueError(f"Sequence must be between 0 and {MAXIMUM_SEQUENCE}, got {sequence}")

    return (timestamp << TIMESTAMP_SHIFT) | (node_id << NODE_ID_SHIFT) | sequence


def decompose_id(snowflake_id: int) -> SnowflakeComponents:
    """
    Unpack a Snowflake ID into its fields.

    Args:
        snowflake_id: Snowflake ID as integer

    Returns:
        The (timestamp, node_id, sequence) triple
    """
    if not 0 <= snowflake_id <= MAXIMUM_ID:
        raise ValueError(f"Not a valid Snowflake ID: {snowflake_id}")

    return SnowflakeComponents(
        timestamp=snowflake_id >> TIMESTAMP_SHIFT,
        node_id=(snowflake_id >> NODE_ID_SHIFT) & MAXIMUM_NODE_ID,
        sequence=snowflake_id & MAXIMUM_SEQUENCE,
    )


def timestamp_of(snowflake_id: int) -> int:
    """Epoch-relative timestamp field of an id."""
    return decompose_id(snowflake_id).timestamp


def to_datetime(snowflake_id: int, epoch: int = DEFAULT_EPOCH, tz=None) -> datetime:
    """
    Wall-clock time at which an id was issued.

    Args:
        snowflake_id: Snowflake ID as integer
        epoch: Custom epoch the id was generated against, in milliseconds
        tz: Target timezone (defaults to UTC)

    Returns:
        Timezone-aware datetime
    """
    millis = timestamp_of(snowflake_id) + epoch
    issued = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return issued.astimezone(tz) if tz is not None else issued


def wall_clock_millis() -> int:
    return time.time_ns() // 1_000_000


class SnowflakeGenerator:
    """
    Snowflake ID generator that creates unique 64-bit IDs.

    Structure:
    - 1 unused sign bit, always 0
    - 41 bits for timestamp (milliseconds since the custom epoch)
    - 10 bits for node ID
    - 12 bits for sequence number (incremented for IDs generated in same millisecond)

    This provides:
    - ~69 years of usable timestamps from the custom epoch
    - Support for 1024 different node IDs
    - 4096 IDs per millisecond per node

    next_id() is safe to call from many threads; calls are serialized by a
    single lock so every caller observes the state left by the previous one.
    """

    def __init__(
        self,
        node_id: Optional[int] = None,
        epoch: Optional[int] = None,
        clock: Optional[Callable[[], int]] = None,
        spin_sleep: Optional[float] = None,
    ):
        """
        Initialize Snowflake ID generator.

        Unset arguments are taken from the application settings.

        Args:
            node_id: Node ID (0-1023). Derived from network hardware when unset.
            epoch: Custom epoch in milliseconds
            clock: Callable returning wall-clock milliseconds
            spin_sleep: Seconds to sleep between clock polls on sequence overflow
        """
        if node_id is None or epoch is None or spin_sleep is None:
            settings = get_settings()
            if node_id is None:
                node_id = settings.node_id
            if epoch is None:
                epoch = settings.epoch
            if spin_sleep is None:
                spin_sleep = settings.spin_sleep

        self._clock = clock or wall_clock_millis
        self._spin_sleep = max(spin_sleep, 0.0)

        # Validate epoch
        if epoch < 0:
            raise ConfigurationError(f"Epoch must be non-negative, got {epoch}", "epoch")
        if self._clock() < epoch:
            raise ConfigurationError(f"Epoch {epoch} lies in the future", "epoch")
        self._epoch = epoch

        # Validate node ID
        resolved = resolve_node_id(node_id)
        if not 0 <= resolved <= MAXIMUM_NODE_ID:
            raise ConfigurationError(
                f"Node id must be between 0 and {MAXIMUM_NODE_ID}, got {resolved}", "node_id"
            )
        self._node_id = resolved

        self._sequence = 0
        self._last_timestamp = UNSET_TIMESTAMP
        self._lock = threading.Lock()

        logger.info(f"Snowflake generator ready - node id: {self._node_id}, epoch: {self._epoch}")

    @property
    def node_id(self) -> int:
        return self._node_id

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def last_timestamp(self) -> int:
        return self._last_timestamp

    @property
    def sequence(self) -> int:
        return self._sequence

    def next_id(self) -> int:
        """
        Generate next Snowflake ID.

        Returns:
            Snowflake ID as integer

        Raises:
            ClockRegressionError: If the clock reads earlier than the last issued timestamp
        """
        with self._lock:
            current_timestamp = self._current_timestamp()

            if current_timestamp < self._last_timestamp:
                logger.error(
                    f"Clock moved backwards: last timestamp {self._last_timestamp}, current {current_timestamp}"
                )
                raise ClockRegressionError(self._last_timestamp, current_timestamp)

            if current_timestamp == self._last_timestamp:
                # Increment sequence for same millisecond
                sequence = (self._sequence + 1) & MAXIMUM_SEQUENCE

                # If sequence overflows, wait for next millisecond
                if sequence == 0:
                    logger.warning("Sequence is exhausted. Waiting for the next millisecond")
                    current_timestamp = self._wait_next_millis(self._last_timestamp)
            else:
                # Reset sequence if this is a new millisecond
                sequence = 0

            snowflake_id = compose_id(current_timestamp, self._node_id, sequence)

            self._sequence = sequence
            self._last_timestamp = current_timestamp

            return snowflake_id

    def next_id_str(self) -> str:
        """
        Generate next Snowflake ID as string.

        Returns:
            Snowflake ID as string
        """
        return str(self.next_id())

    def _current_timestamp(self) -> int:
        """
        Get current timestamp in milliseconds since the custom epoch.

        Returns:
            Current timestamp
        """
        return self._clock() - self._epoch

    def _wait_next_millis(self, last_timestamp: int) -> int:
        """
        Wait until the clock passes the last timestamp.

        Args:
            last_timestamp: Last timestamp

        Returns:
            Next timestamp
        """
        timestamp = self._current_timestamp()
        while timestamp <= last_timestamp:
            if self._spin_sleep:
                time.sleep(self._spin_sleep)
            timestamp = self._current_timestamp()
        return timestamp


def new_generator(**kwargs) -> SnowflakeGenerator:
    """
    Construct a generator, resolving node identity.

    Raises:
        ConfigurationError: If the node id or epoch is invalid
    """
    return SnowflakeGenerator(**kwargs)


def next_id(generator: SnowflakeGenerator) -> int:
    """Next id from the given generator."""
    return generator.next_id()


# Process-wide generator, built on first use
_generator: Optional[SnowflakeGenerator] = None
_generator_lock = threading.Lock()


def get_generator() -> SnowflakeGenerator:
    """Get the process-wide generator, creating it on first call."""
    global _generator
    if _generator is None:
        with _generator_lock:
            if _generator is None:
                _generator = new_generator()
    return _generator


def generate_id() -> str:
    """
    Generate a new Snowflake ID.

    Returns:
        Snowflake ID as string
    """
    return get_generator().next_id_str()
