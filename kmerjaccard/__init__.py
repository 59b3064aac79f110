"""
kmerjaccard - Approximate k-mer cardinality and Jaccard similarity of sequence files
"""

__version__ = '0.1.0'

from kmerjaccard.lib.hyperloglog import HyperLogLog
from kmerjaccard.lib.kmers import Kmers, iter_kmers
from kmerjaccard.lib.config import PipelineConfig
from kmerjaccard.lib.pipeline import StreamingPipeline, MaterializedPipeline, PipelineResult
from kmerjaccard.lib.orchestrator import compare_files, ComparisonResult

__all__ = [
    'HyperLogLog',
    'Kmers',
    'iter_kmers',
    'PipelineConfig',
    'StreamingPipeline',
    'MaterializedPipeline',
    'PipelineResult',
    'compare_files',
    'ComparisonResult',
]
