# tests/conftest.py
from __future__ import annotations

from collections import deque
from typing import Iterable

import pytest

from keygen.core.snowflake import SnowflakeGenerator

EPOCH = 1_000_000


class FakeClock:
    """
    Controllable wall clock, in milliseconds.
    - scheduled readings are returned first, one per call
    - after that, the fixed current value is returned
    """
    def __init__(self, now: int) -> None:
        self.now = now
        self.reads = 0
        self._scheduled: deque[int] = deque()

    def __call__(self) -> int:
        self.reads += 1
        if self._scheduled:
            self.now = self._scheduled.popleft()
        return self.now

    def advance(self, millis: int = 1) -> None:
        self.now += millis

    def schedule(self, readings: Iterable[int]) -> None:
        self._scheduled.extend(readings)


@pytest.fixture
def clock() -> FakeClock:
    # Epoch-relative timestamp 100
    return FakeClock(EPOCH + 100)


@pytest.fixture
def generator(clock: FakeClock) -> SnowflakeGenerator:
    return SnowflakeGenerator(node_id=5, epoch=EPOCH, clock=clock, spin_sleep=0)
