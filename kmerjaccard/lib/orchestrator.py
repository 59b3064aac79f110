from __future__ import annotations
import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import List, Optional, Tuple

from kmerjaccard.lib.config import PipelineConfig
from kmerjaccard.lib.exceptions import SequenceFileError
from kmerjaccard.lib.hyperloglog import HyperLogLog
from kmerjaccard.lib.pipeline import Pipeline, PipelineResult, make_pipeline
from kmerjaccard.lib.workers import WorkerPool

logger = logging.getLogger(__name__)

# Printed in place of the Jaccard index when both inputs are empty
UNDEFINED_JACCARD = "NA"


def jaccard_index(card1: float, card2: float, combined: float) -> Optional[float]:
    """Jaccard similarity from three cardinality estimates.

    |A n B| is approximated by inclusion-exclusion, |A| + |B| - |A u B|,
    so the result is (card1 + card2 - combined) / combined. Returns None
    when the union is empty, where the index is undefined.
    """
    card1 = float(card1)
    card2 = float(card2)
    combined = float(combined)
    if combined == 0.0:
        return None
    return (card1 + card2 - combined) / combined


@dataclass
class ComparisonResult:
    """Cardinalities and similarity of two per-file sketches."""

    result1: PipelineResult
    result2: PipelineResult
    combined: HyperLogLog
    cardinality1: float
    cardinality2: float
    combined_cardinality: float
    jaccard: Optional[float]

    def lines(self) -> List[str]:
        jaccard = UNDEFINED_JACCARD if self.jaccard is None else str(self.jaccard)
        return [
            f"Number of unique k-mers in first file: {self.cardinality1}",
            f"Number of unique k-mers in second file: {self.cardinality2}",
            f"Combined number of unique k-mers: {self.combined_cardinality}",
            f"Jaccard Index: {jaccard}",
        ]


def compare_results(result1: PipelineResult, result2: PipelineResult) -> ComparisonResult:
    """Combine two per-file sketches and derive the similarity metrics.

    The union goes into a fresh sketch; both per-file sketches are still
    needed for their own cardinalities.

    Raises:
        PrecisionMismatchError: If the sketches were built with different precisions
    """
    combined = result1.sketch.union(result2.sketch)
    card1 = result1.sketch.estimate_cardinality()
    card2 = result2.sketch.estimate_cardinality()
    combined_card = combined.estimate_cardinality()
    jaccard = jaccard_index(card1, card2, combined_card)
    if jaccard is None:
        logger.warning("Both inputs are empty; Jaccard index is undefined")
    return ComparisonResult(result1=result1, result2=result2, combined=combined,
                            cardinality1=card1, cardinality2=card2,
                            combined_cardinality=combined_card, jaccard=jaccard)


def compare_files(path1: str, path2: str, config: PipelineConfig) -> ComparisonResult:
    """Sketch two sequence files and compare their k-mer sets.

    Configuration and input paths are checked before any pipeline starts.
    The two files share one worker pool and, unless
    ``config.parallel_files`` is false, are processed concurrently.

    Args:
        path1: First FASTA/FASTQ file
        path2: Second FASTA/FASTQ file
        config: Run parameters

    Returns:
        ComparisonResult with both per-file results and the metrics

    Raises:
        ConfigurationError: If config is invalid
        SequenceFileError: If an input file is missing or unreadable
        PipelineError: If either pipeline fails
    """
    config.validate()
    for path in (path1, path2):
        if not os.path.isfile(path):
            raise SequenceFileError(path, "file does not exist")

    logger.info("Sketching %s and %s with k=%d, precision=%d (%s pipeline)",
                path1, path2, config.kmer_size, config.precision, config.strategy)

    with WorkerPool(kmer_size=config.kmer_size, precision=config.precision,
                    workers=config.num_workers, seed=config.seed) as workers:
        pipeline = make_pipeline(config, workers)
        if config.parallel_files:
            result1, result2 = _run_parallel(pipeline, path1, path2)
        else:
            result1 = pipeline.run(path1)
            result2 = pipeline.run(path2)

    return compare_results(result1, result2)


def _run_parallel(pipeline: Pipeline, path1: str, path2: str) -> Tuple[PipelineResult, PipelineResult]:
    """Run both files at once; the first failure cancels the other run.

    The error re-raised is the one that caused the cancellation, not the
    cancellation of the other file.
    """
    cancel = threading.Event()
    failures: List[BaseException] = []
    lock = threading.Lock()

    def run_one(path: str) -> PipelineResult:
        try:
            return pipeline.run(path, cancel)
        except BaseException as e:
            with lock:
                if not cancel.is_set():
                    cancel.set()
                    failures.append(e)
            raise

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="pipeline") as executor:
        futures = [executor.submit(run_one, path) for path in (path1, path2)]
        wait(futures)
    if failures:
        logger.debug("Cancelled remaining pipeline after: %s", failures[0])
        raise failures[0]
    return futures[0].result(), futures[1].result()
