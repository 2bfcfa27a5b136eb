#!/usr/bin/env python3
"""
Interfaces for the key supply worker.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from concurrent.futures import Future


class KeyGenerator(ABC):
    """
    Interface for anything that hands out previously generated keys.
    """

    @abstractmethod
    def get_next_generated_key(self) -> int:
        """
        Get the next generated key.

        Returns:
            Key as integer
        """
        pass


class KeySupply(KeyGenerator):
    """
    Interface for a buffer of pre-generated keys.
    Keys are produced ahead of time and retrieved later in issue order.
    """

    @abstractmethod
    def generate_keys(self, count: int) -> List[Future]:
        """
        Request count keys to be generated in the background.

        Args:
            count: Number of keys to generate

        Returns:
            One future per requested key
        """
        pass

    @abstractmethod
    def get_key(self, timeout: Optional[float] = None) -> int:
        """
        Take the oldest generated key.

        Args:
            timeout: Seconds to wait for a pending key (optional)

        Returns:
            Key as integer
        """
        pass

    @abstractmethod
    def available(self) -> int:
        """Number of keys ready for retrieval."""
        pass

    @abstractmethod
    def pending(self) -> int:
        """Number of requested keys not generated yet."""
        pass
