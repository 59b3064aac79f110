from __future__ import annotations
import random
import threading

import pytest # type: ignore
from kmerjaccard.lib import pipeline as pipeline_module
from kmerjaccard.lib.config import PipelineConfig
from kmerjaccard.lib.exceptions import PipelineError, SequenceFileError
from kmerjaccard.lib.pipeline import (MaterializedPipeline, Pipeline, StreamingPipeline,
                                      PIPELINE_STRATEGIES, make_pipeline)
from kmerjaccard.lib.workers import WorkerPool, sketch_partition

PRECISION = 12


def random_sequences(n: int, length: int = 50, seed: int = 0):
    rng = random.Random(seed)
    return ["".join(rng.choice("ACGT") for _ in range(length)) for _ in range(n)]


def make_workers(kmer_size: int = 7, workers: int = 1) -> WorkerPool:
    return WorkerPool(kmer_size=kmer_size, precision=PRECISION, workers=workers)


def make_config(kmer_size: int = 7, **kwargs) -> PipelineConfig:
    return PipelineConfig(kmer_size=kmer_size, workers=1, **kwargs)


class FailingWorkerPool(WorkerPool):
    def sketch_batch(self, batch):
        raise RuntimeError("worker exploded")


@pytest.mark.quick
class TestStreamingPipeline:

    def test_single_record(self, write_fasta):
        path = write_fasta("a.fa", ["ACGTACGTAC"])
        workers = WorkerPool(kmer_size=4, precision=16, workers=1)
        result = StreamingPipeline(make_config(kmer_size=4), workers).run(path)
        assert result.filename == path
        assert result.sequences == 1
        assert result.batches == 1
        assert round(result.cardinality) == 4

    def test_batching_and_trailing_batch(self, write_fasta):
        path = write_fasta("a.fa", random_sequences(10))
        config = make_config(batch_size=3, queue_size=1)
        result = StreamingPipeline(config, make_workers()).run(path)
        assert result.sequences == 10
        assert result.batches == 4

    def test_exact_multiple_of_batch_size(self, write_fasta):
        path = write_fasta("a.fa", random_sequences(9))
        result = StreamingPipeline(make_config(batch_size=3), make_workers()).run(path)
        assert result.batches == 3

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.fa"
        path.write_text("")
        result = StreamingPipeline(make_config(), make_workers()).run(str(path))
        assert result.batches == 0
        assert result.sketch.is_empty()
        assert result.cardinality == 0.0

    def test_sequences_shorter_than_k(self, write_fasta):
        path = write_fasta("short.fa", ["ACG", "TT", "A"])
        result = StreamingPipeline(make_config(kmer_size=4), make_workers(4)).run(path)
        assert result.sequences == 3
        assert result.sketch.is_empty()

    def test_skipped_records_reported(self, tmp_path):
        path = tmp_path / "reads.fq"
        path.write_text("@r1\nACGTACGT\n+\nIIIIIIII\n@r2\nACGT\n+\nI\n@r3\nTTTTTTTT\n+\nIIIIIIII\n")
        result = StreamingPipeline(make_config(kmer_size=4), make_workers(4)).run(str(path))
        assert result.sequences == 2
        assert result.skipped == 1

    def test_missing_file(self, tmp_path):
        pipeline = StreamingPipeline(make_config(), make_workers())
        with pytest.raises(SequenceFileError):
            pipeline.run(str(tmp_path / "missing.fa"))

    def test_reader_failure_names_file(self, write_fasta, monkeypatch):
        path = write_fasta("a.fa", random_sequences(5))

        class BrokenReader(pipeline_module.SequenceReader):
            def __iter__(self):
                yield b"ACGTACGT"
                raise RuntimeError("disk on fire")

        monkeypatch.setattr(pipeline_module, "SequenceReader", BrokenReader)
        with pytest.raises(PipelineError) as exc_info:
            StreamingPipeline(make_config(batch_size=1), make_workers()).run(path)
        assert path in str(exc_info.value)
        assert "disk on fire" in str(exc_info.value)

    def test_worker_failure_stops_producer(self, write_fasta):
        """A failing batch aborts the run without leaving the reader blocked."""
        path = write_fasta("a.fa", random_sequences(50))
        config = make_config(batch_size=1, queue_size=1)
        workers = FailingWorkerPool(kmer_size=7, precision=PRECISION, workers=1)
        before = threading.active_count()
        with pytest.raises(PipelineError) as exc_info:
            StreamingPipeline(config, workers).run(path)
        assert exc_info.value.filename == path
        assert "batch" in exc_info.value.step
        assert threading.active_count() == before


@pytest.mark.quick
class TestMergeInvariance:
    """Batching, partitioning and strategy never change the registers."""

    def test_batch_sizes_and_workers(self, write_fasta):
        sequences = random_sequences(60, seed=5)
        path = write_fasta("a.fa", sequences)
        reference = sketch_partition([s.encode() for s in sequences], 7, PRECISION)
        for batch_size in (1, 7, 60, 1000):
            for workers in (1, 3, 8):
                config = make_config(batch_size=batch_size, queue_size=2)
                result = StreamingPipeline(config, make_workers(workers=workers)).run(path)
                assert result.sketch == reference

    def test_strategies_agree(self, write_fasta):
        path = write_fasta("a.fa", random_sequences(30, seed=9))
        streaming = StreamingPipeline(make_config(batch_size=4), make_workers()).run(path)
        materialized = MaterializedPipeline(make_config(), make_workers()).run(path)
        assert streaming.sketch == materialized.sketch
        assert materialized.batches == 1
        assert materialized.sequences == 30


@pytest.mark.quick
class TestMaterializedPipeline:

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.fa"
        path.write_text("")
        result = MaterializedPipeline(make_config(), make_workers()).run(str(path))
        assert result.batches == 0
        assert result.sketch.is_empty()

    def test_missing_file(self, tmp_path):
        with pytest.raises(SequenceFileError):
            MaterializedPipeline(make_config(), make_workers()).run(str(tmp_path / "nope.fa"))

    def test_worker_failure(self, write_fasta):
        path = write_fasta("a.fa", random_sequences(3))
        workers = FailingWorkerPool(kmer_size=7, precision=PRECISION, workers=1)
        with pytest.raises(PipelineError):
            MaterializedPipeline(make_config(), workers).run(path)


@pytest.mark.quick
def test_make_pipeline():
    workers = make_workers()
    assert isinstance(make_pipeline(make_config(), workers), StreamingPipeline)
    assert isinstance(make_pipeline(make_config(strategy="materialized"), workers),
                      MaterializedPipeline)
    assert set(PIPELINE_STRATEGIES) == {"streaming", "materialized"}
    with pytest.raises(ValueError):
        make_pipeline(make_config(strategy="bogus"), workers)


@pytest.mark.full
def test_streaming_with_process_pool(write_fasta):
    sequences = random_sequences(40, seed=11)
    path = write_fasta("a.fa", sequences)
    reference = sketch_partition([s.encode() for s in sequences], 7, PRECISION)
    with make_workers(workers=2) as workers:
        result = StreamingPipeline(make_config(batch_size=10), workers).run(path)
    assert result.sketch == reference


@pytest.mark.quick
class TestCancellation:

    def test_base_pipeline_is_abstract(self):
        with pytest.raises(TypeError):
            Pipeline(make_config(), make_workers())

    @pytest.mark.parametrize("pipeline_class", [StreamingPipeline, MaterializedPipeline])
    def test_cancelled_run_raises(self, write_fasta, pipeline_class):
        path = write_fasta("a.fa", random_sequences(20))
        cancel = threading.Event()
        cancel.set()
        before = threading.active_count()
        with pytest.raises(PipelineError) as exc_info:
            pipeline_class(make_config(batch_size=2, queue_size=1), make_workers()).run(path, cancel)
        assert "cancelled" in str(exc_info.value)
        assert exc_info.value.filename == path
        assert threading.active_count() == before

    def test_unset_event_does_not_interfere(self, write_fasta):
        path = write_fasta("a.fa", random_sequences(20))
        result = StreamingPipeline(make_config(batch_size=3), make_workers()).run(path, threading.Event())
        assert result.sequences == 20
        assert result.batches == 7
