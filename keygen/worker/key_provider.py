#!/usr/bin/env python3
"""
Key supply backed by a Snowflake generator.

Keys are generated on a thread pool and staged in a bounded buffer for later
retrieval. The buffer lives outside the generator: the generator stays the
only source of ids, and the buffer never reorders or deduplicates them.
"""

import threading
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional

from loguru import logger

from keygen.core.config import get_settings
from keygen.core.exceptions import ClockRegressionError, KeysExhaustedError, KeysPendingError
from keygen.core.snowflake import SnowflakeGenerator, get_generator
from keygen.worker.interfaces import KeySupply


class SnowflakeKeyProvider(KeySupply):
    """
    Pre-generates Snowflake keys on a worker pool.
    """

    def __init__(
        self,
        generator: SnowflakeGenerator = None,
        capacity: int = None,
        pool_size: int = None
    ):
        """
        Initialize the key provider.

        Args:
            generator: Snowflake generator (defaults to the process-wide one)
            capacity: Maximum number of buffered plus pending keys
            pool_size: Number of worker threads
        """
        if capacity is None or pool_size is None:
            settings = get_settings()
            if capacity is None:
                capacity = settings.key_buffer_capacity
            if pool_size is None:
                pool_size = settings.key_pool_size

        if capacity < 1:
            raise ValueError("Capacity must be at least 1")
        if pool_size < 1:
            raise ValueError("Pool size must be at least 1")

        self.generator = generator or get_generator()
        self.capacity = capacity
        self.pool_size = pool_size

        self._keys = deque()
        self._pending = 0
        self._failures = 0
        self._condition = threading.Condition()
        self._issue_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=pool_size, thread_name_prefix="keygen")

    def generate_keys(self, count: int) -> List[Future]:
        """
        Request count keys to be generated on the worker pool.

        Args:
            count: Number of keys to generate

        Returns:
            One future per requested key
        """
        if count < 1:
            raise ValueError("Key count must be at least 1")

        with self._condition:
            reserved = len(self._keys) + self._pending
            if reserved + count > self.capacity:
                raise ValueError(
                    f"Requesting {count} keys would exceed capacity {self.capacity} ({reserved} already reserved)"
                )
            self._pending += count

        logger.info(f"Generating {count} keys on {self.pool_size} worker(s)")
        futures = []
        for i in range(count):
            try:
                futures.append(self._executor.submit(self._generate_one))
            except RuntimeError:
                # Executor shut down; release the reservations never submitted
                with self._condition:
                    self._pending -= count - i
                    self._condition.notify_all()
                raise
        return futures

    def _generate_one(self) -> int:
        try:
            # Generate and stage under one lock so buffer order is issue order
            with self._issue_lock:
                key = self.generator.next_id()
                with self._condition:
                    self._keys.append(key)
            return key
        except ClockRegressionError as e:
            logger.error(f"Key generation failed: {e.message}")
            with self._condition:
                self._failures += 1
            raise
        finally:
            with self._condition:
                self._pending -= 1
                self._condition.notify_all()

    def get_key(self, timeout: Optional[float] = None) -> int:
        """
        Take the oldest generated key.

        Never blocks when no key has been requested.

        Args:
            timeout: Seconds to wait for a pending key (optional)

        Returns:
            Key as integer

        Raises:
            KeysExhaustedError: No key is buffered and none is pending
            KeysPendingError: Keys are pending but none arrived in time
        """
        with self._condition:
            if not self._keys and self._pending and timeout:
                self._condition.wait_for(lambda: self._keys or not self._pending, timeout)

            if self._keys:
                return self._keys.popleft()
            if self._pending:
                raise KeysPendingError(self._pending)
            raise KeysExhaustedError()

    def get_next_generated_key(self) -> int:
        return self.get_key()

    def drain(self) -> List[int]:
        """Take every buffered key, oldest first."""
        with self._condition:
            keys = list(self._keys)
            self._keys.clear()
        return keys

    def available(self) -> int:
        with self._condition:
            return len(self._keys)

    def pending(self) -> int:
        with self._condition:
            return self._pending

    def failures(self) -> int:
        with self._condition:
            return self._failures

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker pool."""
        self._executor.shutdown(wait=wait)
        logger.info("Key provider shut down")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()
