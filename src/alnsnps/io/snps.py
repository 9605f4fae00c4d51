from collections import Counter
from typing import BinaryIO

from alnsnps.containers import QueryResult, SnpCall
from alnsnps.io import BaseWriter


# Classes --------------------------------------------------------------------------------------------------------------
class SnpWriter(BaseWriter):
    """
    Writes one ``<query>,<call>|<call>...`` line per query, in input order.

    Results that arrive ahead of their turn are held in a buffer keyed by ordinal and released as soon as
    the run of ordinals starting at the next expected one is complete.

    Examples:
        >>> with SnpWriter(handle) as w:
        ...     w.write_one(QueryResult(b'Query2', 1, [SnpCall('G', 6, 'C')]))  # held back
        ...     w.write_one(QueryResult(b'Query1', 0))  # releases both lines
    """
    __slots__ = ('_pending', '_next')
    HEADER = b'query,SNPs\n'
    def __init__(self, handle: BinaryIO, **kwargs):
        super().__init__(handle, **kwargs)
        self._pending: dict[int, QueryResult] = {}
        self._next = 0

    @property
    def n_pending(self) -> int:
        """Number of results waiting for an earlier ordinal."""
        return len(self._pending)

    def write_one(self, result: QueryResult):
        self._pending[result.ordinal] = result
        while (ready := self._pending.pop(self._next, None)) is not None:
            self._emit(ready)
            self._next += 1

    def close(self):
        """Writes whatever is still buffered, in ordinal order, even across gaps."""
        for ordinal in sorted(self._pending): self._emit(self._pending.pop(ordinal))

    def _emit(self, result: QueryResult):
        self._write(result.render())
        self.n_written += 1


class AggregateWriter(BaseWriter):
    """
    Writes the proportion of queries carrying each distinct SNP call.

    Arrival order is irrelevant. Calls are sorted by position, then by query allele, and those with a
    proportion below ``threshold`` are left out.

    Args:
        handle: The binary handle to write to.
        threshold: Minimum proportion (inclusive) for a call to be reported.
        precision: Number of decimal places of the proportions.
    """
    __slots__ = ('threshold', 'precision', '_counts', 'n_queries')
    HEADER = b'change,proportion\n'
    def __init__(self, handle: BinaryIO, threshold: float = 0.0, precision: int = 9, **kwargs):
        super().__init__(handle, **kwargs)
        self.threshold = threshold
        self.precision = precision
        self._counts: Counter[SnpCall] = Counter()
        self.n_queries = 0

    def write_one(self, result: QueryResult):
        self.n_queries += 1
        self._counts.update(result.calls)

    def proportions(self) -> list[tuple[SnpCall, float]]:
        """
        Returns every distinct call with its proportion of queries, sorted by position then allele.
        """
        if not self.n_queries: return []
        n = self.n_queries
        return [(call, self._counts[call] / n) for call in sorted(self._counts, key=lambda c: c.sort_key)]

    def close(self):
        for call, proportion in self.proportions():
            if proportion < self.threshold: continue
            self._write(f'{call},{proportion:.{self.precision}f}\n'.encode('ascii'))
            self.n_written += 1
