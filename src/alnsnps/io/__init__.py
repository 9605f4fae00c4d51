"""
Module for reading aligned FASTA files and writing SNP tables.
"""
from abc import ABC, abstractmethod
from typing import Generator, BinaryIO

from alnsnps.containers import QueryResult


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SeqIOError(IOError):
    """Base class for sequence I/O errors (opening, reading or writing a stream)."""

class FormatError(ValueError):
    """Raised when an input stream is not a well formed FASTA file."""


# Classes --------------------------------------------------------------------------------------------------------------
class BaseReader(ABC):
    """Abstract base class for single-pass sequence file readers."""
    _CHUNK_SIZE = 65536
    __slots__ = ('_handle',)
    def __init__(self, handle: BinaryIO, **kwargs):
        """
        Initializes the reader.

        Args:
            handle: The open binary handle to read from.
            **kwargs: Additional arguments.
        """
        self._handle = handle

    @abstractmethod
    def __iter__(self) -> Generator: ...

    def read_chunks(self, chunk_size: int = None) -> Generator[bytes, None, None]:
        """
        Yields chunks of data from the file handle until EOF.

        Raises:
            SeqIOError: If the underlying handle fails.
        """
        read = self._handle.read
        size = chunk_size or self._CHUNK_SIZE
        while True:
            try: chunk = read(size)
            except OSError as e: raise SeqIOError(f'Read failed: {e}') from e
            if not chunk: break
            yield chunk


class BaseWriter(ABC):
    """
    Abstract base class for SNP result writers.

    Results may arrive in any order; a writer decides when its output becomes visible. The header is written
    on entry and buffered output is flushed by ``close``.

    Examples:
        >>> with SnpWriter(handle) as w:
        ...     w.write(result1, result2)
    """
    __slots__ = ('_handle', 'n_written')
    HEADER: bytes = b''
    def __init__(self, handle: BinaryIO, **kwargs):
        self._handle = handle
        self.n_written = 0

    def __enter__(self):
        self.write_header()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        # Nothing is flushed from a failed run
        if exc_type is None: self.close()

    def write(self, *results: QueryResult):
        """Writes multiple results."""
        for result in results: self.write_one(result)

    @abstractmethod
    def write_one(self, result: QueryResult):
        """
        Accepts a single result.

        Args:
            result: The QueryResult to write.
        """
        ...

    def write_header(self):
        """Writes the header line."""
        self._write(self.HEADER)

    def close(self):
        """Writes any output still held back."""
        pass

    def _write(self, data: bytes):
        try: self._handle.write(data)
        except OSError as e: raise SeqIOError(f'Write failed: {e}') from e


# Import submodules
from alnsnps.io.open import Xopen, PeekableHandle
from alnsnps.io.fasta import AlignmentReader, read_reference
from alnsnps.io.snps import SnpWriter, AggregateWriter
