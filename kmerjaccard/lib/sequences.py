from __future__ import annotations
import gzip
import io
import logging
from collections import deque
from itertools import chain, islice
from typing import IO, Deque, Iterator, Optional, Tuple

from Bio.SeqIO.FastaIO import SimpleFastaParser # type: ignore
from Bio.SeqIO.QualityIO import FastqGeneralIterator # type: ignore

from kmerjaccard.lib.exceptions import SequenceFileError

logger = logging.getLogger(__name__)

FASTA_EXTENSIONS = (".fa", ".fasta", ".fna", ".ffn", ".frn", ".faa")
FASTQ_EXTENSIONS = (".fq", ".fastq")


def guess_format(filename: str, first_char: Optional[str] = None) -> str:
    """Decide between "fasta" and "fastq".

    The first non-blank character of the file wins ('>' or '@'); otherwise
    the extension decides, with anything unrecognised read as FASTQ.
    """
    if first_char == ">":
        return "fasta"
    if first_char == "@":
        return "fastq"
    base_filename = filename[:-3] if filename.endswith(".gz") else filename
    if base_filename.endswith(FASTA_EXTENSIONS):
        return "fasta"
    return "fastq"


class SequenceReader:
    """Stream the sequence payloads of a FASTA/FASTQ file as bytes.

    FASTA format:
    >sequence_identifier [optional description]
    ACGTACGTACGT...
    ACGTACGTACGT... (sequence can span multiple lines)

    FASTQ format (four lines per record):
    @sequence_identifier [optional description]
    ACGTACGTACGT...
    +[optional repeat of identifier]
    !@#$%^&*... (quality scores)

    Gzipped files are recognised by a .gz suffix. Records that fail to
    parse are dropped and counted in ``skipped``; the rest of the file is
    still read. Failing to open the file raises SequenceFileError.
    """

    def __init__(self, filename: str):
        self.filename = filename
        self.records = 0
        self.skipped = 0

    def _open(self) -> IO[str]:
        opener = gzip.open if self.filename.endswith(".gz") else open
        try:
            # Non-ASCII bytes survive decoding and are rejected per record
            return opener(self.filename, "rt", encoding="ascii", errors="surrogateescape")
        except OSError as e:
            raise SequenceFileError(self.filename, e.strerror or str(e)) from e

    def __iter__(self) -> Iterator[bytes]:
        self.records = 0
        self.skipped = 0
        try:
            with self._open() as handle:
                first_char, lines = _peek(handle)
                formatx = guess_format(self.filename, first_char)
                logger.debug("Reading %s as %s", self.filename, formatx)
                if formatx == "fasta":
                    yield from self._read_fasta(lines)
                else:
                    yield from self._read_fastq(lines)
        except (OSError, EOFError) as e:
            # gzip corruption surfaces mid-stream
            raise SequenceFileError(self.filename, str(e)) from e
        if self.skipped:
            logger.warning("Skipped %d malformed record(s) in %s", self.skipped, self.filename)

    def _to_bytes(self, title: str, sequence: str) -> Optional[bytes]:
        try:
            return sequence.encode("ascii")
        except UnicodeEncodeError:
            logger.debug("Dropping record %r in %s: non-ASCII sequence", title, self.filename)
            self.skipped += 1
            return None

    def _read_fasta(self, lines: Iterator[str]) -> Iterator[bytes]:
        for title, sequence in SimpleFastaParser(lines):
            payload = self._to_bytes(title, sequence)
            if payload is not None:
                self.records += 1
                yield payload

    def _read_fastq(self, lines: Iterator[str]) -> Iterator[bytes]:
        # Lines handed back after a failed record, read again before the stream
        pending: Deque[str] = deque()
        in_sync = True
        while True:
            line = pending.popleft() if pending else next(lines, None)
            if line is None:
                break
            if not line.strip():
                continue
            if not line.startswith("@"):
                # Out of step with the record structure; resync on next header
                if in_sync:
                    logger.debug("Dropping lines in %s from %r", self.filename, line[:50])
                    self.skipped += 1
                in_sync = False
                continue
            in_sync = True
            body = [pending.popleft() for _ in range(min(3, len(pending)))]
            body.extend(islice(lines, 3 - len(body)))
            try:
                title, sequence, _quality = next(FastqGeneralIterator(io.StringIO(line + "".join(body))))
            except (ValueError, StopIteration) as e:
                logger.debug("Dropping malformed record %r in %s: %s", line.strip()[:50], self.filename, e)
                self.skipped += 1
                # Only the header is consumed; the next record may start in body
                pending.extendleft(reversed(body))
                in_sync = False
                continue
            payload = self._to_bytes(title, sequence)
            if payload is not None:
                self.records += 1
                yield payload


def _peek(handle: IO[str]) -> Tuple[Optional[str], Iterator[str]]:
    """First non-blank character of a stream, plus all of its lines.

    Lines read while looking are replayed ahead of the rest of the handle.
    """
    buffered = []
    first_char = None
    for line in handle:
        buffered.append(line)
        stripped = line.strip()
        if stripped:
            first_char = stripped[0]
            break
    return first_char, chain(buffered, handle)
