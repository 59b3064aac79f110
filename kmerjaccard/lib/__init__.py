# Sketching engine; the command line lives in kmerjaccard.kmerjaccard

from .hyperloglog import HyperLogLog, precision_for_error_rate
from .kmers import Kmers, iter_kmers, validate_kmer_size
from .workers import WorkerPool, partition_batch
from .sequences import SequenceReader
from .pipeline import Pipeline, StreamingPipeline, MaterializedPipeline, PipelineResult
from .orchestrator import compare_files, compare_results, jaccard_index

__all__ = [
    'HyperLogLog',
    'precision_for_error_rate',
    'Kmers',
    'iter_kmers',
    'validate_kmer_size',
    'WorkerPool',
    'partition_batch',
    'SequenceReader',
    'Pipeline',
    'StreamingPipeline',
    'MaterializedPipeline',
    'PipelineResult',
    'compare_files',
    'compare_results',
    'jaccard_index',
]
