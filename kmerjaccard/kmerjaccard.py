#!/usr/bin/env python
from __future__ import annotations
import argparse
import logging
import sys
from typing import List, Optional

from kmerjaccard import __version__
from kmerjaccard.lib.config import (DEFAULT_BATCH_SIZE, DEFAULT_ERROR_RATE,
                                    DEFAULT_QUEUE_SIZE, DEFAULT_STRATEGY,
                                    STRATEGIES, PipelineConfig)
from kmerjaccard.lib.exceptions import (ConfigurationError, KmerJaccardError,
                                        SequenceFileError)
from kmerjaccard.lib.hyperloglog import DEFAULT_SEED
from kmerjaccard.lib.logs import setup_logging
from kmerjaccard.lib.orchestrator import compare_files

logger = logging.getLogger("kmerjaccard")

EXIT_OK = 0
EXIT_INTERNAL_ERROR = 1
EXIT_USAGE_ERROR = 2


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    arg_parser = argparse.ArgumentParser(
        description="""Estimate the number of unique k-mers in two sequence files,
        in their union, and the Jaccard index of the two k-mer sets, using
        HyperLogLog sketches.

        Supported file formats:
        - FASTA (.fa, .fasta, .fna, .ffn, .faa, .frn)
        - FASTQ (.fq, .fastq), four lines per record
        - either of the above gzipped (.gz)
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    arg_parser.add_argument('fasta_file1', help='The first FASTA/FASTQ file to read')
    arg_parser.add_argument('fasta_file2', help='The second FASTA/FASTQ file to read')
    # Parsed by hand so that a bad k is reported like every other configuration error
    arg_parser.add_argument('kmer_length', help='The length of the k-mers')

    arg_parser.add_argument("--error-rate", "-e", type=float, default=DEFAULT_ERROR_RATE,
                            help=f"Target relative error of each sketch (default: {DEFAULT_ERROR_RATE})")
    arg_parser.add_argument("--threads", "-t", type=int, default=None,
                            help="Number of worker processes (default: number of cores)")
    arg_parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE,
                            help=f"Sequences per batch (default: {DEFAULT_BATCH_SIZE})")
    arg_parser.add_argument("--queue-size", type=int, default=DEFAULT_QUEUE_SIZE,
                            help=f"Batches buffered between reader and workers (default: {DEFAULT_QUEUE_SIZE})")
    arg_parser.add_argument("--strategy", choices=STRATEGIES, default=DEFAULT_STRATEGY,
                            help="streaming: bounded memory (default); materialized: read whole files first")
    arg_parser.add_argument("--seed", type=int, default=DEFAULT_SEED, help="Random seed for hashing")
    arg_parser.add_argument("--sequential", action="store_true",
                            help="Process the two files one after the other")
    arg_parser.add_argument("--verbose", action="store_true", help="Print progress to stderr")
    arg_parser.add_argument("--debug", action="store_true", help="Print per-batch details to stderr")
    arg_parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    return arg_parser.parse_args(argv)


def parse_kmer_length(value: str) -> int:
    """Turn the k argument into an int, rejecting anything unparsable."""
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Cannot parse k-mer length {value!r} as an integer")


def build_config(args: argparse.Namespace) -> PipelineConfig:
    return PipelineConfig(
        kmer_size=parse_kmer_length(args.kmer_length),
        error_rate=args.error_rate,
        batch_size=args.batch_size,
        queue_size=args.queue_size,
        workers=args.threads,
        strategy=args.strategy,
        seed=args.seed,
        parallel_files=not args.sequential,
    ).validate()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for kmerjaccard."""
    args = parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)

    try:
        config = build_config(args)
    except ConfigurationError as e:
        logger.error("Invalid arguments: %s", e)
        return EXIT_USAGE_ERROR

    try:
        result = compare_files(args.fasta_file1, args.fasta_file2, config)
    except (ConfigurationError, SequenceFileError) as e:
        logger.error("%s", e)
        return EXIT_USAGE_ERROR
    except KmerJaccardError as e:
        logger.error("%s", e)
        return EXIT_INTERNAL_ERROR

    for line in result.lines():
        print(line)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
