from __future__ import annotations
import logging
import math
from typing import Iterable, Optional

import numpy as np # type: ignore
import xxhash # type: ignore

from kmerjaccard.lib.abstractsketch import AbstractSketch
from kmerjaccard.lib.exceptions import PrecisionMismatchError

logger = logging.getLogger(__name__)

# Register-count bounds; alpha constants are only tabulated from m = 16 upwards
MIN_PRECISION = 4
MAX_PRECISION = 24

DEFAULT_SEED = 42


def precision_for_error_rate(error_rate: float) -> int:
    """Number of index bits needed for a target relative standard error.

    The standard error of HyperLogLog is about 1.04/sqrt(m), so
    m = (1.04/error_rate)^2 and p = ceil(log2(m)). Error rates coarser than
    the smallest supported sketch get MIN_PRECISION.

    Args:
        error_rate: Target relative error, strictly between 0 and 1

    Returns:
        Precision p (log2 of the register count)

    Raises:
        ValueError: If error_rate is outside (0, 1) or needs more than
            MAX_PRECISION bits
    """
    if not 0.0 < error_rate < 1.0:
        raise ValueError(f"Error rate must be between 0 and 1 (exclusive), got {error_rate}")
    precision = math.ceil(math.log2((1.04 / error_rate) ** 2))
    if precision > MAX_PRECISION:
        raise ValueError(
            f"Error rate {error_rate} needs precision {precision}, "
            f"above the maximum of {MAX_PRECISION}"
        )
    return max(MIN_PRECISION, precision)


class HyperLogLog(AbstractSketch):
    def __init__(self,
                 precision: int = 12,
                 seed: Optional[int] = None,
                 hash_size: int = 64,
                 debug: bool = False):
        """Initialize HyperLogLog sketch.

        Args:
            precision: Number of bits for register indexing (4-24)
            seed: Random seed for hashing
            hash_size: Size of hash in bits (32 or 64)
            debug: Whether to log per-merge details
        """
        super().__init__()

        if hash_size not in [32, 64]:
            raise ValueError("hash_size must be 32 or 64")
        if precision < MIN_PRECISION:
            raise ValueError(f"Precision must be at least {MIN_PRECISION}")
        if precision > MAX_PRECISION or precision >= hash_size:
            raise ValueError(f"Precision must be at most {MAX_PRECISION} and less than hash_size ({hash_size})")

        self.precision = precision
        self.num_registers = 1 << precision
        self.registers = np.zeros(self.num_registers, dtype=np.uint8)
        self.seed = seed if seed is not None else DEFAULT_SEED
        self.hash_size = hash_size
        self.debug = debug

        # Bits left over after the register index; their leading zeros give the rank
        self._rank_bits = hash_size - precision
        self._rank_mask = (1 << self._rank_bits) - 1

        # Calculate alpha_mm (bias correction factor)
        if self.num_registers == 16:
            self.alpha_mm = 0.673
        elif self.num_registers == 32:
            self.alpha_mm = 0.697
        elif self.num_registers == 64:
            self.alpha_mm = 0.709
        else:
            self.alpha_mm = 0.7213 / (1 + 1.079 / self.num_registers)

    @classmethod
    def from_error_rate(cls, error_rate: float, seed: Optional[int] = None,
                        hash_size: int = 64, debug: bool = False) -> 'HyperLogLog':
        """Create an empty sketch sized for a target relative error."""
        return cls(precision=precision_for_error_rate(error_rate), seed=seed,
                   hash_size=hash_size, debug=debug)

    def _hasher(self):
        # Same values as hash_bytes(), without the per-call hasher object
        if self.hash_size == 32:
            return xxhash.xxh32_intdigest
        return xxhash.xxh64_intdigest

    def _index_and_rank(self, hash_val: int):
        """Split a hash into register index (top bits) and rank."""
        idx = hash_val >> self._rank_bits
        rest = hash_val & self._rank_mask
        # Leading zeros within the rank bits, plus one
        rank = self._rank_bits - rest.bit_length() + 1
        return idx, rank

    def add(self, item: bytes) -> None:
        """Add a byte string to the sketch."""
        idx, rank = self._index_and_rank(self.hash_bytes(item))
        if rank > self.registers[idx]:
            self.registers[idx] = rank

    def add_batch(self, items: Iterable[bytes]) -> None:
        """Add many byte strings at once.

        Equivalent to calling add() on each item; the register update is
        done in one vectorized pass.
        """
        hasher = self._hasher()
        seed = self.seed
        rank_bits = self._rank_bits
        rank_mask = self._rank_mask
        indices = []
        ranks = []
        for item in items:
            hash_val = hasher(item, seed)
            indices.append(hash_val >> rank_bits)
            ranks.append(rank_bits - (hash_val & rank_mask).bit_length() + 1)
        if not indices:
            return
        np.maximum.at(self.registers,
                      np.asarray(indices, dtype=np.intp),
                      np.asarray(ranks, dtype=np.uint8))

    def _check_compatible(self, other: 'HyperLogLog') -> None:
        if not isinstance(other, HyperLogLog):
            raise TypeError("Can only merge with another HyperLogLog sketch")
        if self.precision != other.precision:
            raise PrecisionMismatchError(self.precision, other.precision)
        if self.seed != other.seed:
            raise ValueError("HyperLogLogs must have same seed to be merged")
        if self.hash_size != other.hash_size:
            raise ValueError("HyperLogLogs must have same hash_size to be merged")

    def merge(self, other: 'HyperLogLog') -> None:
        """Merge another HLL sketch into this one.

        Takes the element-wise maximum of the two register arrays, in place.
        Merging is commutative, associative and idempotent, so the result
        does not depend on the order in which sketches are folded together.

        Args:
            other: Another HyperLogLog sketch to merge into this one

        Raises:
            PrecisionMismatchError: If the sketches have different precision values
            ValueError: If the sketches use different seeds or hash sizes
        """
        self._check_compatible(other)
        np.maximum(self.registers, other.registers, out=self.registers)
        if self.debug:
            logger.debug("merged sketch: %d/%d registers set",
                         np.count_nonzero(self.registers), self.num_registers)

    def union(self, other: 'HyperLogLog') -> 'HyperLogLog':
        """Return a new sketch of the union, leaving both inputs untouched."""
        merged = self.copy()
        merged.merge(other)
        return merged

    def copy(self) -> 'HyperLogLog':
        """Return an independent copy of this sketch."""
        clone = HyperLogLog(precision=self.precision, seed=self.seed,
                            hash_size=self.hash_size, debug=self.debug)
        clone.registers = self.registers.copy()
        return clone

    def is_empty(self) -> bool:
        """Check if sketch is empty."""
        return not np.any(self.registers)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, HyperLogLog):
            return NotImplemented
        return (self.precision == other.precision
                and self.seed == other.seed
                and self.hash_size == other.hash_size
                and np.array_equal(self.registers, other.registers))

    __hash__ = None  # mutable

    def __repr__(self) -> str:
        return (f"HyperLogLog(precision={self.precision}, seed={self.seed}, "
                f"hash_size={self.hash_size})")

    def raw_estimate(self) -> float:
        """Calculate the raw cardinality estimate before corrections.

        Returns:
            alpha_m * m^2 / sum(2^-register)
        """
        m = float(self.num_registers)
        sum_inv = np.sum(np.exp2(-self.registers.astype(np.float64)))
        return float(self.alpha_mm * m * m / sum_inv)

    def estimate_cardinality(self) -> float:
        """Estimate the number of distinct items added.

        Uses linear counting while many registers are still zero and a
        large-range correction as the estimate approaches the size of the
        hash space.

        Adding an item never lowers the estimate. Past the linear-counting
        range the result is floored by the linear count of the remaining
        zero registers (one zero register once none are left), so the
        hand-over between the two estimators cannot step down.
        """
        zeros = int(self.num_registers - np.count_nonzero(self.registers))
        if zeros == self.num_registers:
            return 0.0

        m = float(self.num_registers)
        linear = m * math.log(m / max(zeros, 1))
        estimate = self.raw_estimate()

        # Small range correction
        if estimate <= 2.5 * m and zeros > 0:
            return float(linear)

        # Large range correction
        hash_space = 2.0 ** self.hash_size
        if estimate > hash_space / 30.0:
            # Clipped just below 1 so the correction stays finite and increasing
            ratio = min(estimate / hash_space, 1.0 - 2.0 ** -52)
            estimate = -hash_space * math.log1p(-ratio)
        return float(max(estimate, linear))

    def relative_error(self) -> float:
        """Expected relative standard error for this register count."""
        return 1.04 / math.sqrt(self.num_registers)
