"""
Module wiring the reader, the diff engine and a writer into a concurrent pipeline.

The reference is read first, synchronously. The query alignment is then read by one thread, compared by a
pool of worker threads and written by one writer thread; the stages are connected by bounded queues, which
are the only source of backpressure.
"""
from argparse import Namespace
from dataclasses import dataclass, fields
from pathlib import Path
from queue import Queue, Empty, Full
from threading import Thread, Event
from typing import Union, BinaryIO, Iterable, Optional
from warnings import warn

from alnsnps import ThresholdWarning
from alnsnps.core.alphabet import IupacCodec, GapPolicy
from alnsnps.containers import EncodedRecord
from alnsnps.engines.diff import DiffEngine
from alnsnps.io import BaseWriter, Xopen, AlignmentReader, read_reference, SnpWriter, AggregateWriter
from alnsnps.lib.log import get_logger
from alnsnps.lib.resources import RESOURCES

LOGGER = get_logger(__name__.rpartition('.')[2])
_DONE = object()  # End-of-stream marker, one per worker


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class _Cancelled(Exception):
    """Raised inside a stage when another stage has failed."""


# Classes --------------------------------------------------------------------------------------------------------------
@dataclass
class SnpsConfig:
    """
    Options of a SNP run.

    Attributes:
        gap_policy: Whether gaps match anything (``soft``) or nothing (``hard``).
        aggregate: Report the proportion of each change instead of one line per query.
        threshold: Minimum proportion (inclusive) of a change in aggregate mode.
        threads: Number of diff workers; defaults to the number of available CPUs.
        queue_size: Capacity of each queue between stages; defaults to the number of workers.
    """
    gap_policy: GapPolicy = GapPolicy.SOFT
    aggregate: bool = False
    threshold: float = 0.0
    threads: Optional[int] = None
    queue_size: Optional[int] = None

    def __post_init__(self):
        self.gap_policy = GapPolicy(self.gap_policy)
        # Only aggregate runs use the threshold
        if self.aggregate and not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f'Threshold must be within [0, 1], got {self.threshold}')
        if self.threads is not None and self.threads < 1: raise ValueError(f'Threads must be >= 1, got {self.threads}')
        if self.queue_size is not None and self.queue_size < 1:
            raise ValueError(f'Queue size must be >= 1, got {self.queue_size}')

    @classmethod
    def from_args(cls, args: Namespace) -> 'SnpsConfig':
        """Builds a config from the attributes of a Namespace object (e.g. from argparse)."""
        return cls(**{f.name: getattr(args, f.name) for f in fields(cls) if hasattr(args, f.name)})

    @property
    def n_threads(self) -> int: return self.threads or RESOURCES.available_cpus

    @property
    def n_queue(self) -> int: return self.queue_size or self.n_threads

    @property
    def codec(self) -> IupacCodec: return IupacCodec.for_policy(self.gap_policy)


class _Channel:
    """A bounded queue whose blocking operations give up once the run is stopped."""
    __slots__ = ('_queue', '_stop')
    _POLL = 0.05
    def __init__(self, maxsize: int, stop: Event):
        self._queue = Queue(maxsize=maxsize)
        self._stop = stop

    def put(self, item):
        while not self._stop.is_set():
            try: return self._queue.put(item, timeout=self._POLL)
            except Full: continue
        raise _Cancelled

    def get(self):
        while not self._stop.is_set():
            try: return self._queue.get(timeout=self._POLL)
            except Empty: continue
        raise _Cancelled


class SnpPipeline:
    """
    Runs one reader thread, a pool of diff workers and one writer thread over a stream of records.

    Workers emit results in completion order; ordering, if any, is the writer's concern. The first exception
    raised by any stage stops every other stage and is re-raised by ``run``; output already written is not
    rolled back.

    Args:
        engine: The diff engine holding the reference.
        writer: The writer that drains the results.
        threads: Number of diff workers.
        queue_size: Capacity of the record and result queues.

    Examples:
        >>> pipeline = SnpPipeline(engine, SnpWriter(handle), threads=4)
        >>> n = pipeline.run(AlignmentReader(query_handle))
    """
    def __init__(self, engine: DiffEngine, writer: BaseWriter, threads: int = None, queue_size: int = None):
        self.engine = engine
        self.writer = writer
        self.threads = threads or RESOURCES.available_cpus
        self.queue_size = queue_size or self.threads
        self.n_read = 0
        self._stop = Event()
        self._errors: list[BaseException] = []

    def run(self, records: Iterable[EncodedRecord]) -> int:
        """
        Compares every record and writes the results.

        Args:
            records: The encoded queries, in input order.

        Returns:
            The number of queries processed.
        """
        self._stop.clear()
        self._errors.clear()
        self.n_read = 0
        inbox, outbox = _Channel(self.queue_size, self._stop), _Channel(self.queue_size, self._stop)
        threads = [Thread(target=self._guard, args=(self._read, records, inbox), name='alnsnps-reader', daemon=True)]
        threads += [Thread(target=self._guard, args=(self._diff, inbox, outbox), name=f'alnsnps-diff-{i}',
                           daemon=True) for i in range(self.threads)]
        threads.append(Thread(target=self._guard, args=(self._write, outbox), name='alnsnps-writer', daemon=True))
        for thread in threads: thread.start()
        try:
            for thread in threads: thread.join()
        except BaseException:  # e.g. KeyboardInterrupt while waiting
            self._stop.set()
            raise
        if self._errors: raise self._errors[0]
        LOGGER.debug('Processed %d queries with %d workers', self.n_read, self.threads)
        return self.n_read

    def _guard(self, target, *args):
        try: target(*args)
        except _Cancelled: pass
        except Exception as e:
            if not self._stop.is_set(): self._errors.append(e)
            self._stop.set()

    def _read(self, records: Iterable[EncodedRecord], inbox: _Channel):
        for record in records:
            if self._stop.is_set(): raise _Cancelled
            inbox.put(record)
            self.n_read += 1
        for _ in range(self.threads): inbox.put(_DONE)

    def _diff(self, inbox: _Channel, outbox: _Channel):
        call = self.engine.call
        while (record := inbox.get()) is not _DONE: outbox.put(call(record))
        outbox.put(_DONE)

    def _write(self, outbox: _Channel):
        done = 0
        with self.writer as writer:
            while done < self.threads:
                if (result := outbox.get()) is _DONE: done += 1
                else: writer.write_one(result)


# Functions ------------------------------------------------------------------------------------------------------------
def find_snps(query: Union[str, Path, BinaryIO], reference: Union[str, Path, BinaryIO],
              out: Union[str, Path, BinaryIO] = '-', config: SnpsConfig = None) -> int:
    """
    Finds the SNPs of every sequence of an alignment relative to a reference and writes them out.

    Args:
        query: The aligned FASTA file (path, ``'-'`` for stdin, or a binary handle).
        reference: A FASTA file holding exactly one record of the same length as the queries.
        out: Where to write the CSV output (path, ``'-'`` for stdout, or a binary handle).
        config: Run options; defaults to soft gaps, per-query output.

    Returns:
        The number of queries processed.

    Raises:
        FormatError: If either input is not well formed FASTA.
        LengthMismatchError: If a query is not the length of the reference.
        SeqIOError: If a stream cannot be opened, read or written.
    """
    config = config or SnpsConfig()
    codec = config.codec
    if config.threshold and not config.aggregate:
        warn(f'Threshold {config.threshold} is ignored without aggregate mode', ThresholdWarning)

    with Xopen(reference) as handle:
        ref = read_reference(handle, codec)
    LOGGER.debug('Read reference %s (%d columns, %s gaps)', ref, len(ref), codec.policy.value)

    with Xopen(query) as q_handle, Xopen(out, 'wb') as o_handle:
        writer = AggregateWriter(o_handle, config.threshold) if config.aggregate else SnpWriter(o_handle)
        pipeline = SnpPipeline(DiffEngine(ref, codec), writer, config.n_threads, config.n_queue)
        n = pipeline.run(AlignmentReader(q_handle, codec))

    LOGGER.info('Compared %d queries against %s', n, ref)
    return n
