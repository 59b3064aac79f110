"""Per-file pipelines turning a sequence file into one HyperLogLog sketch.

Two strategies share the same worker pool and produce identical sketches:

* ``streaming`` (default): a reader thread fills fixed-size batches and hands
  them over a bounded queue; the calling thread sketches each batch on the
  worker pool and folds it into the per-file sketch. Peak memory is a few
  batches, whatever the file size.
* ``materialized``: reads the whole file first, then sketches it as one
  batch. Simple, but memory grows with the input.
"""
from __future__ import annotations
import logging
import queue
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from kmerjaccard.lib.config import PipelineConfig
from kmerjaccard.lib.exceptions import PipelineError, SequenceFileError
from kmerjaccard.lib.hyperloglog import HyperLogLog
from kmerjaccard.lib.sequences import SequenceReader
from kmerjaccard.lib.workers import WorkerPool

logger = logging.getLogger(__name__)

# Seconds between liveness checks while blocked on the queue
_POLL_INTERVAL = 0.1


@dataclass
class PipelineResult:
    """Sketch of one file plus bookkeeping from the run that built it."""

    filename: str
    sketch: HyperLogLog
    sequences: int = 0
    batches: int = 0
    skipped: int = 0

    @property
    def cardinality(self) -> float:
        return self.sketch.estimate_cardinality()


@dataclass
class _EndOfStream:
    """Last item the producer puts on the queue."""

    batches: int
    sequences: int
    skipped: int
    error: Optional[BaseException] = None


class Pipeline(ABC):
    """Base class: build the sketch of one file with a shared worker pool."""

    name = "base"

    def __init__(self, config: PipelineConfig, workers: WorkerPool):
        self.config = config
        self.workers = workers

    @abstractmethod
    def run(self, filename: str, cancel: Optional[threading.Event] = None) -> PipelineResult:
        """Sketch every k-mer of filename.

        Args:
            filename: FASTA/FASTQ file to read
            cancel: Set by the caller to abandon the run, e.g. when the
                other file of a comparison has already failed

        Raises:
            SequenceFileError: If the file cannot be read
            PipelineError: If sketching fails or the run is cancelled
        """
        pass

    @staticmethod
    def _check_cancelled(filename: str, cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise PipelineError(filename, "processing", "cancelled after another input failed")


class StreamingPipeline(Pipeline):
    """Bounded-queue producer/consumer pipeline.

    The producer thread reads sequences into batches of
    ``config.batch_size`` and blocks while ``config.queue_size`` batches are
    waiting. The consumer is the thread calling run(); it alone holds the
    per-file sketch, so batch sketches are merged one at a time in queue
    order without any lock.
    """

    name = "streaming"

    def run(self, filename: str, cancel: Optional[threading.Event] = None) -> PipelineResult:
        channel: "queue.Queue" = queue.Queue(maxsize=self.config.queue_size)
        stop = threading.Event()
        reader = SequenceReader(filename)
        producer = threading.Thread(
            target=self._produce,
            args=(reader, channel, stop),
            name=f"reader-{filename}",
            daemon=True,
        )
        producer.start()

        accumulator = self.workers.new_sketch()
        merged = 0
        try:
            while True:
                self._check_cancelled(filename, cancel)
                try:
                    item = channel.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    if producer.is_alive() or not channel.empty():
                        continue
                    raise PipelineError(filename, "batch hand-off",
                                        "reader stopped without closing the queue")
                if isinstance(item, _EndOfStream):
                    break
                try:
                    batch_sketch = self.workers.sketch_batch(item)
                except Exception as e:
                    raise PipelineError(filename, f"sketching batch {merged + 1}", str(e)) from e
                accumulator.merge(batch_sketch)
                merged += 1
                logger.debug("%s: merged batch %d (%d sequences)", filename, merged, len(item))
        except BaseException:
            stop.set()
            raise
        finally:
            producer.join()

        if isinstance(item.error, SequenceFileError):
            raise item.error
        if item.error is not None:
            raise PipelineError(filename, "reading sequences", str(item.error)) from item.error
        if merged != item.batches:
            raise PipelineError(
                filename, "batch hand-off",
                f"queue closed after {merged} of {item.batches} batches",
            )

        logger.info("%s: %d sequences in %d batches (%d records skipped)",
                    filename, item.sequences, merged, item.skipped)
        return PipelineResult(filename=filename, sketch=accumulator,
                              sequences=item.sequences, batches=merged,
                              skipped=item.skipped)

    def _produce(self, reader: SequenceReader, channel: "queue.Queue",
                 stop: threading.Event) -> None:
        batch_size = self.config.batch_size
        emitted = 0
        error = None
        try:
            batch: List[bytes] = []
            for sequence in reader:
                batch.append(sequence)
                if len(batch) == batch_size:
                    if not _offer(channel, batch, stop):
                        return
                    emitted += 1
                    batch = []
            # Trailing partial batch
            if batch:
                if not _offer(channel, batch, stop):
                    return
                emitted += 1
        except Exception as e:
            error = e
        _offer(channel, _EndOfStream(batches=emitted, sequences=reader.records,
                                     skipped=reader.skipped, error=error), stop)


def _offer(channel: "queue.Queue", item, stop: threading.Event) -> bool:
    """Blocking put that gives up once the consumer has stopped."""
    while not stop.is_set():
        try:
            channel.put(item, timeout=_POLL_INTERVAL)
            return True
        except queue.Full:
            continue
    return False


class MaterializedPipeline(Pipeline):
    """Read the whole file, then sketch all of it as a single batch."""

    name = "materialized"

    def run(self, filename: str, cancel: Optional[threading.Event] = None) -> PipelineResult:
        reader = SequenceReader(filename)
        try:
            sequences = list(reader)
        except SequenceFileError:
            raise
        except Exception as e:
            raise PipelineError(filename, "reading sequences", str(e)) from e
        self._check_cancelled(filename, cancel)
        try:
            sketch = self.workers.sketch_batch(sequences)
        except Exception as e:
            raise PipelineError(filename, "sketching sequences", str(e)) from e
        logger.info("%s: %d sequences in one batch (%d records skipped)",
                    filename, len(sequences), reader.skipped)
        return PipelineResult(filename=filename, sketch=sketch,
                              sequences=len(sequences), batches=1 if sequences else 0,
                              skipped=reader.skipped)


PIPELINE_STRATEGIES: Dict[str, Type[Pipeline]] = {
    StreamingPipeline.name: StreamingPipeline,
    MaterializedPipeline.name: MaterializedPipeline,
}


def make_pipeline(config: PipelineConfig, workers: WorkerPool) -> Pipeline:
    """Instantiate the pipeline class named by ``config.strategy``."""
    try:
        pipeline_class = PIPELINE_STRATEGIES[config.strategy]
    except KeyError:
        raise ValueError(f"Unknown pipeline strategy: {config.strategy}")
    return pipeline_class(config, workers)
