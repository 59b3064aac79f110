import gzip

import pytest # type: ignore

def pytest_configure(config):
    """Add markers to the pytest configuration."""
    config.addinivalue_line("markers", "quick: mark test as quick to run")
    config.addinivalue_line("markers", "full: mark test as part of the full test suite")
    config.addinivalue_line("markers", "slow: mark test as very slow to run")


@pytest.fixture
def write_fasta(tmp_path):
    """Write sequences to a FASTA file and return its path as a string."""
    def _write(name, sequences):
        path = tmp_path / name
        text = "".join(f">seq{i}\n{seq}\n" for i, seq in enumerate(sequences))
        if name.endswith(".gz"):
            with gzip.open(path, "wt") as f:
                f.write(text)
        else:
            path.write_text(text)
        return str(path)
    return _write


@pytest.fixture
def write_fastq(tmp_path):
    """Write sequences to a FASTQ file and return its path as a string."""
    def _write(name, sequences):
        path = tmp_path / name
        text = "".join(f"@read{i}\n{seq}\n+\n{'I' * len(seq)}\n" for i, seq in enumerate(sequences))
        if name.endswith(".gz"):
            with gzip.open(path, "wt") as f:
                f.write(text)
        else:
            path.write_text(text)
        return str(path)
    return _write
