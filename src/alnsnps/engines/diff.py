"""
Engine for calling SNPs between aligned query sequences and a reference.
"""
import numpy as np

from alnsnps.core.alphabet import IupacCodec
from alnsnps.containers import EncodedRecord, QueryResult, SnpCall
from alnsnps.lib.resources import jit


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class LengthMismatchError(ValueError):
    """Raised when a query is not the same length as the reference it is compared to."""


# Classes --------------------------------------------------------------------------------------------------------------
class DiffEngine:
    """
    Compares encoded queries against a fixed encoded reference.

    The engine holds no state between queries, so a single instance can be shared by any number of
    worker threads. The comparison kernel releases the GIL.

    Args:
        reference: The encoded reference record.
        codec: The codec both reference and queries were encoded with.

    Examples:
        >>> codec = IupacCodec.SOFT
        >>> engine = DiffEngine(EncodedRecord(b'ref', b'ref', 0, codec.encode(b'ATGATG')), codec)
        >>> [str(c) for c in engine.call(EncodedRecord(b'q', b'q', 0, codec.encode(b'ATTTTW')))]
        ['G3T', 'A4T', 'G6W']
    """
    __slots__ = ('_reference', '_codec')
    def __init__(self, reference: EncodedRecord, codec: IupacCodec = None):
        self._reference = reference
        self._codec = codec or IupacCodec.SOFT

    def __len__(self) -> int: return len(self._reference)

    @property
    def reference(self) -> EncodedRecord: return self._reference

    def positions(self, record: EncodedRecord) -> np.ndarray:
        """
        Returns the 0-based columns at which the query shares no base with the reference.

        Raises:
            LengthMismatchError: If the query and reference lengths differ.
        """
        if len(record) != len(self._reference):
            raise LengthMismatchError(
                f'Query {record} has length {len(record)} but the reference {self._reference} has length '
                f'{len(self._reference)}; sequences must be aligned'
            )
        return _snp_positions_kernel(self._reference.seq, record.seq)

    def call(self, record: EncodedRecord) -> QueryResult:
        """
        Calls the SNPs of one query.

        Args:
            record: The encoded query.

        Returns:
            A QueryResult carrying the query's identifier and ordinal, with calls in position order.
        """
        ref, qry = self._reference.seq, record.seq
        symbol = self._codec.decode_symbol
        return QueryResult(record.id, record.ordinal, [
            SnpCall(symbol(ref[i]), int(i) + 1, symbol(qry[i])) for i in self.positions(record)
        ])


# Kernels --------------------------------------------------------------------------------------------------------------
@jit(nopython=True, cache=True, nogil=True)
def _snp_positions_kernel(reference, query):
    n = len(query)
    out = np.empty(n, dtype=np.int64)
    k = 0
    for i in range(n):
        # No shared base bit in the upper nibble
        if (reference[i] & query[i]) < 16:
            out[k] = i
            k += 1
    return out[:k]
