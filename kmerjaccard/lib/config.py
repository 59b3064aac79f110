from __future__ import annotations
from dataclasses import dataclass
from multiprocessing import cpu_count
from typing import Optional

from kmerjaccard.lib.exceptions import ConfigurationError
from kmerjaccard.lib.hyperloglog import DEFAULT_SEED, precision_for_error_rate
from kmerjaccard.lib.kmers import validate_kmer_size

# Relative error of the per-file sketches (p = 16, 65536 registers)
DEFAULT_ERROR_RATE = 0.00408
# Sequences per batch handed from the reader to the worker pool
DEFAULT_BATCH_SIZE = 40000
# Batches allowed in flight between reader and consumer
DEFAULT_QUEUE_SIZE = 20

DEFAULT_STRATEGY = "streaming"
STRATEGIES = ("streaming", "materialized")


@dataclass
class PipelineConfig:
    """Parameters shared by both per-file pipelines of a run."""

    kmer_size: int
    error_rate: float = DEFAULT_ERROR_RATE
    batch_size: int = DEFAULT_BATCH_SIZE
    queue_size: int = DEFAULT_QUEUE_SIZE
    workers: Optional[int] = None
    strategy: str = DEFAULT_STRATEGY
    seed: int = DEFAULT_SEED
    parallel_files: bool = True

    def validate(self) -> "PipelineConfig":
        """Raise ConfigurationError on the first invalid parameter."""
        validate_kmer_size(self.kmer_size)
        try:
            precision_for_error_rate(self.error_rate)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        if self.batch_size < 1:
            raise ConfigurationError(f"Batch size must be at least 1, got {self.batch_size}")
        if self.queue_size < 1:
            raise ConfigurationError(f"Queue size must be at least 1, got {self.queue_size}")
        if self.workers is not None and self.workers < 1:
            raise ConfigurationError(f"Number of workers must be at least 1, got {self.workers}")
        if self.strategy not in STRATEGIES:
            raise ConfigurationError(
                f"Unknown pipeline strategy {self.strategy!r}, choose from {', '.join(STRATEGIES)}"
            )
        return self

    @property
    def precision(self) -> int:
        return precision_for_error_rate(self.error_rate)

    @property
    def num_workers(self) -> int:
        """Worker processes to use; defaults to the number of cores."""
        return self.workers if self.workers is not None else cpu_count()
