from typing import Generator, BinaryIO, Iterable

from alnsnps.core.alphabet import IupacCodec
from alnsnps.containers import EncodedRecord
from alnsnps.io import BaseReader, FormatError


# Classes --------------------------------------------------------------------------------------------------------------
class AlignmentReader(BaseReader):
    """
    Reader for aligned FASTA files, encoding each sequence with an ``IupacCodec``.

    Records are produced lazily in file order and numbered from 0. Sequence lines are concatenated without
    any line-length assumption; blank lines and trailing whitespace (including ``\\r``) are ignored.

    Examples:
        >>> with open("alignment.fasta", "rb") as f:
        ...     for record in AlignmentReader(f, IupacCodec.HARD):
        ...         print(record.ordinal, record.id)
    """
    __slots__ = ('_codec',)
    def __init__(self, handle: BinaryIO, codec: IupacCodec = None, **kwargs):
        super().__init__(handle, **kwargs)
        self._codec = codec or IupacCodec.SOFT

    @property
    def codec(self) -> IupacCodec: return self._codec

    def __iter__(self) -> Generator[EncodedRecord, None, None]:
        """
        Iterates over encoded records.

        Yields:
            EncodedRecord objects.

        Raises:
            FormatError: If the first non-empty line is not a header, or a header has no identifier.
            SeqIOError: If reading from the handle fails.
        """
        header = None
        seq_parts = []
        ordinal = 0
        for line in self._lines():
            if not line: continue
            if line[0] == 62:  # b'>'
                if header is not None:
                    yield self._make_record(header, seq_parts, ordinal)
                    ordinal += 1
                header, seq_parts = line[1:], []
            elif header is None:
                raise FormatError('badly formatted input: the first line must be a ">" header')
            else:
                seq_parts.append(line)
        if header is not None:
            yield self._make_record(header, seq_parts, ordinal)

    def _lines(self) -> Generator[bytes, None, None]:
        """Yields stripped lines, joining lines that span chunk boundaries."""
        pending = []
        for chunk in self.read_chunks():
            lines = chunk.split(b'\n')
            if len(lines) == 1:
                pending.append(chunk)
                continue
            pending.append(lines[0])
            yield b''.join(pending).strip()
            for i in range(1, len(lines) - 1): yield lines[i].strip()
            pending = [lines[-1]]
        if pending: yield b''.join(pending).strip()

    def _make_record(self, header: bytes, seq_parts: Iterable[bytes], ordinal: int) -> EncodedRecord:
        description = header.strip()
        if not description: raise FormatError(f'badly formatted input: record {ordinal} has an empty header')
        id_ = description.split(None, 1)[0]
        return EncodedRecord(id_, description, ordinal, self._codec.encode(b''.join(seq_parts)))


# Functions ------------------------------------------------------------------------------------------------------------
def read_reference(handle: BinaryIO, codec: IupacCodec = None) -> EncodedRecord:
    """
    Reads a single-record FASTA file, such as the reference of an alignment.

    Args:
        handle: The open binary handle to read from.
        codec: The codec to encode the sequence with (soft gaps by default).

    Returns:
        The only record in the file.

    Raises:
        FormatError: If the file holds no record, or more than one.
    """
    records = iter(AlignmentReader(handle, codec))
    if (reference := next(records, None)) is None:
        raise FormatError('badly formatted input: the reference contains no records')
    if (extra := next(records, None)) is not None:
        raise FormatError(f'the reference must contain exactly one record, found another: {extra}')
    return reference
