from __future__ import annotations
from typing import Iterator

from kmerjaccard.lib.exceptions import ConfigurationError

# Widest k-mer accepted; k-mer lengths were historically stored in one byte
MAX_KMER_SIZE = 255


def validate_kmer_size(kmer_size: int) -> int:
    """Check a caller-supplied k before it is used anywhere.

    Args:
        kmer_size: Requested k-mer length

    Returns:
        The validated k-mer length

    Raises:
        ConfigurationError: If kmer_size is not an integer in 1..MAX_KMER_SIZE
    """
    if isinstance(kmer_size, bool) or not isinstance(kmer_size, int):
        raise ConfigurationError(f"k-mer size must be an integer, got {kmer_size!r}")
    if kmer_size < 1:
        raise ConfigurationError(f"k-mer size must be at least 1, got {kmer_size}")
    if kmer_size > MAX_KMER_SIZE:
        raise ConfigurationError(f"k-mer size must be at most {MAX_KMER_SIZE}, got {kmer_size}")
    return kmer_size


def iter_kmers(sequence: bytes, kmer_size: int) -> Iterator[bytes]:
    """Yield every length-k window of a sequence, left to right.

    A sequence of length L gives L-k+1 windows, or none when L < k. Bytes
    are returned as they are: no alphabet checks, no canonical k-mers.
    """
    if kmer_size < 1:
        raise ValueError("k-mer size must be at least 1")
    for i in range(len(sequence) - kmer_size + 1):
        yield sequence[i:i + kmer_size]


class Kmers:
    """Restartable view over the k-mers of one sequence."""

    def __init__(self, sequence: bytes, kmer_size: int):
        self.sequence = sequence
        self.kmer_size = validate_kmer_size(kmer_size)

    def __iter__(self) -> Iterator[bytes]:
        return iter_kmers(self.sequence, self.kmer_size)

    def __len__(self) -> int:
        return max(0, len(self.sequence) - self.kmer_size + 1)
