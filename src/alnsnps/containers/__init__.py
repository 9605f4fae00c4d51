"""
Containers passed between the stages of the SNP pipeline. Each is created once by one stage and consumed
once by the next; none is mutated after construction.
"""
from typing import NamedTuple, Iterable

import numpy as np


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class SnpParseError(ValueError):
    """Raised when a rendered SNP call cannot be parsed."""


# Classes --------------------------------------------------------------------------------------------------------------
class EncodedRecord:
    """
    A FASTA record whose sequence has been encoded by an ``IupacCodec``.

    Args:
        id_: First whitespace-delimited token of the header.
        description: The full header line, without the leading ``>``.
        ordinal: 0-based position of the record in its input stream.
        seq: The encoded sequence, stored as a read-only view.

    Examples:
        >>> rec = EncodedRecord(b'Query1', b'Query1 sample', 0, IupacCodec.SOFT.encode(b'ATG'))
        >>> len(rec)
        3
    """
    __slots__ = ('id', 'description', 'ordinal', 'seq')
    def __init__(self, id_: bytes, description: bytes, ordinal: int, seq: np.ndarray):
        if seq.flags.writeable:
            seq = seq.view()
            seq.flags.writeable = False
        self.id: bytes = id_
        self.description: bytes = description
        self.ordinal: int = ordinal
        self.seq: np.ndarray = seq
    def __len__(self) -> int: return len(self.seq)
    def __str__(self): return self.id.decode(errors='ignore')
    def __repr__(self) -> str: return f'{self.__class__.__name__}({self.id!r}, ordinal={self.ordinal}, len={len(self)})'


class SnpCall(NamedTuple):
    """
    A single difference between a query and the reference at one alignment column.

    Examples:
        >>> str(SnpCall('G', 6, 'C'))
        'G6C'
        >>> SnpCall.parse('A4T')
        SnpCall(ref='A', position=4, alt='T')
    """
    ref: str
    position: int  # 1-based
    alt: str

    def __str__(self): return f'{self.ref}{self.position}{self.alt}'

    @property
    def sort_key(self) -> tuple[int, str]:
        """Position first, then the query allele."""
        return self.position, self.alt

    @classmethod
    def parse(cls, text: str) -> 'SnpCall':
        """
        Parses a rendered call: one reference symbol, a decimal position and one query symbol.

        Raises:
            SnpParseError: If the text is too short or the position is not a decimal integer.
        """
        if len(text) < 3: raise SnpParseError(f'SNP call too short: {text!r}')
        position = text[1:-1]
        if not (position.isascii() and position.isdigit()):
            raise SnpParseError(f'SNP call has a non-numeric position: {text!r}')
        return cls(text[0], int(position), text[-1])


class QueryResult:
    """
    The SNP calls of one query, in increasing position order.

    Examples:
        >>> QueryResult(b'Query2', 1, [SnpCall('G', 6, 'C')]).render()
        b'Query2,G6C\\n'
    """
    __slots__ = ('id', 'ordinal', 'calls')
    def __init__(self, id_: bytes, ordinal: int, calls: Iterable[SnpCall] = ()):
        self.id: bytes = id_
        self.ordinal: int = ordinal
        self.calls: tuple[SnpCall, ...] = tuple(calls)
    def __len__(self) -> int: return len(self.calls)
    def __iter__(self): return iter(self.calls)
    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.id!r}, ordinal={self.ordinal}, calls={len(self)})'

    def render(self) -> bytes:
        """Returns the ``<id>,<call>|<call>...`` output line, newline included."""
        return self.id + b',' + '|'.join(map(str, self.calls)).encode('ascii') + b'\n'
