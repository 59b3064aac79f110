from __future__ import annotations


class KmerJaccardError(Exception):
    """Base exception class for kmerjaccard."""

    pass


class ConfigurationError(KmerJaccardError, ValueError):
    """Raised for invalid run parameters, before any pipeline starts."""

    pass


class SequenceFileError(KmerJaccardError):
    """Raised when a sequence file cannot be opened or read."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read sequence file {path}: {reason}")


class PrecisionMismatchError(KmerJaccardError, ValueError):
    """Raised when merging sketches built with different precisions."""

    def __init__(self, precision: int, other_precision: int):
        self.precision = precision
        self.other_precision = other_precision
        super().__init__(
            f"Cannot merge HyperLogLog sketches with different precisions "
            f"({precision} vs {other_precision})"
        )


class PipelineError(KmerJaccardError):
    """Raised when a pipeline cannot produce a complete per-file sketch."""

    def __init__(self, filename: str, step: str, reason: str):
        self.filename = filename
        self.step = step
        self.reason = reason
        super().__init__(f"{step} failed for {filename}: {reason}")
