from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Iterable
import xxhash # type: ignore

class AbstractSketch(ABC):
    """Base class for all sketch types."""

    @abstractmethod
    def add(self, item: bytes) -> None:
        """Add a byte string to the sketch."""
        pass

    @abstractmethod
    def add_batch(self, items: Iterable[bytes]) -> None:
        """Add multiple byte strings to the sketch.

        Args:
            items: Byte strings to add to the sketch
        """
        pass

    @abstractmethod
    def merge(self, other: 'AbstractSketch') -> None:
        """Merge another sketch into this one."""
        pass

    @abstractmethod
    def estimate_cardinality(self) -> float:
        """Estimate the number of distinct items added."""
        pass

    def add_string(self, s: str) -> None:
        """Add a text string to the sketch (UTF-8 encoded)."""
        self.add(s.encode())

    # Hash functions - static methods for use by all sketch implementations
    @staticmethod
    def _hash_bytes(data: bytes, seed: int = 0, hash_size: int = 64) -> int:
        """Hash a byte string using xxhash.

        Args:
            data: Bytes to hash
            seed: Random seed for hashing
            hash_size: Size of hash in bits (32 or 64)

        Returns:
            Hash value as integer
        """
        if hash_size == 32:
            hasher = xxhash.xxh32(seed=seed)
        else:
            hasher = xxhash.xxh64(seed=seed)
        hasher.update(data)
        return hasher.intdigest()

    def hash_bytes(self, data: bytes) -> int:
        """Instance method to hash bytes using the instance's seed and hash_size."""
        seed = getattr(self, 'seed', 0)
        hash_size = getattr(self, 'hash_size', 64)
        return self._hash_bytes(data, seed=seed, hash_size=hash_size)
