from __future__ import annotations
import logging
from concurrent.futures import ProcessPoolExecutor
from functools import reduce
from multiprocessing import cpu_count
from typing import List, Optional, Sequence

from kmerjaccard.lib.hyperloglog import DEFAULT_SEED, HyperLogLog
from kmerjaccard.lib.kmers import iter_kmers

logger = logging.getLogger(__name__)


def partition_batch(batch: Sequence[bytes], workers: int) -> List[Sequence[bytes]]:
    """Split a batch into contiguous, near-equal partitions.

    Produces min(workers, len(batch)) partitions whose sizes differ by at
    most one, so a batch smaller than the worker count never yields an
    empty partition.

    Args:
        batch: Sequences to split, in input order
        workers: Number of partitions wanted

    Returns:
        List of slices of batch covering it exactly once, in order
    """
    if workers < 1:
        raise ValueError("Number of workers must be at least 1")
    n = len(batch)
    if n == 0:
        return []
    parts = min(workers, n)
    size, extra = divmod(n, parts)
    partitions = []
    start = 0
    for i in range(parts):
        end = start + size + (1 if i < extra else 0)
        partitions.append(batch[start:end])
        start = end
    return partitions


def sketch_partition(sequences: Sequence[bytes], kmer_size: int, precision: int,
                     seed: int = DEFAULT_SEED) -> HyperLogLog:
    """Build a local sketch from the k-mers of a partition.

    Runs inside a worker process, so it must stay a module-level function.
    """
    sketch = HyperLogLog(precision=precision, seed=seed)
    for sequence in sequences:
        sketch.add_batch(iter_kmers(sequence, kmer_size))
    return sketch


class WorkerPool:
    """Fixed pool of worker processes turning batches into batch sketches.

    Each batch is split across the workers, every worker sketches its own
    partition, and the local sketches are merged into one batch sketch.
    Workers never touch a per-file sketch. With a single worker no
    processes are started and partitions are sketched in the caller.
    """

    def __init__(self, kmer_size: int, precision: int,
                 workers: Optional[int] = None, seed: int = DEFAULT_SEED):
        self.kmer_size = kmer_size
        self.precision = precision
        self.seed = seed
        self.workers = workers if workers is not None else cpu_count()
        if self.workers < 1:
            raise ValueError("Number of workers must be at least 1")
        self._pool = None

    def __enter__(self) -> 'WorkerPool':
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def start(self) -> None:
        if self._pool is None and self.workers > 1:
            logger.info("Starting %d worker processes", self.workers)
            self._pool = ProcessPoolExecutor(max_workers=self.workers)

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True, cancel_futures=True)
            self._pool = None

    def new_sketch(self) -> HyperLogLog:
        """Empty sketch with the pool's precision and seed."""
        return HyperLogLog(precision=self.precision, seed=self.seed)

    def sketch_batch(self, batch: Sequence[bytes]) -> HyperLogLog:
        """Sketch one batch in parallel and reduce it to a single sketch.

        Raises:
            BrokenProcessPool: If a worker process died while sketching
            Exception: Whatever a worker raised while sketching its partition
        """
        partitions = partition_batch(batch, self.workers)
        chunk_args = [(partition, self.kmer_size, self.precision, self.seed)
                      for partition in partitions]

        if self._pool is not None and len(chunk_args) > 1:
            futures = [self._pool.submit(sketch_partition, *args) for args in chunk_args]
            local_sketches = [future.result() for future in futures]
        else:
            local_sketches = [sketch_partition(*args) for args in chunk_args]

        def _merge(acc: HyperLogLog, local: HyperLogLog) -> HyperLogLog:
            acc.merge(local)
            return acc

        return reduce(_merge, local_sketches, self.new_sketch())
