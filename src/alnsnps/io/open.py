from io import IOBase
from typing import Union, BinaryIO, Optional
from pathlib import Path
from sys import stdout, stdin
from importlib import import_module

from alnsnps.io import SeqIOError


# Classes --------------------------------------------------------------------------------------------------------------
class PeekableHandle:
    """
    A wrapper around a BinaryIO stream that allows peeking at the beginning of the
    content without consuming it. Used by Xopen to sniff compression on pipes.
    """
    __slots__ = ('_stream', '_peek_buffer', '_buffer_pos', '_buffer_len')

    def __init__(self, stream: BinaryIO, max_peek: int = 4096):
        """
        Initializes the PeekableHandle.

        Args:
            stream: The underlying binary stream.
            max_peek: Maximum number of bytes to buffer for peeking.
        """
        self._stream = stream
        self._peek_buffer = stream.read(max_peek)
        self._buffer_pos = 0
        self._buffer_len = len(self._peek_buffer)

    def peek(self, size: int = -1) -> bytes:
        """
        Returns content from the buffer without advancing the stream position.

        Args:
            size: Number of bytes to peek. If -1, returns the entire buffer.
        """
        if size == -1 or size > self._buffer_len: return self._peek_buffer
        return self._peek_buffer[:size]

    def read(self, size: int = -1) -> bytes:
        """
        Reads from the stream, consuming the buffer first if available.

        Args:
            size: Number of bytes to read. If -1, reads until EOF.
        """
        # 1. Buffer exhausted
        if self._buffer_pos >= self._buffer_len:
            return self._stream.read(size)

        # 2. Read all (rest of buffer + stream)
        if size is None or size < 0:
            chunk = self._peek_buffer[self._buffer_pos:]
            self._buffer_pos = self._buffer_len
            return chunk + self._stream.read()

        # 3. Read partial
        available = self._buffer_len - self._buffer_pos
        if size <= available:
            chunk = self._peek_buffer[self._buffer_pos: self._buffer_pos + size]
            self._buffer_pos += size
            return chunk
        chunk = self._peek_buffer[self._buffer_pos:]
        self._buffer_pos = self._buffer_len
        return chunk + self._stream.read(size - available)

    def readable(self) -> bool: return True

    def close(self):
        """Closes the underlying stream if possible."""
        if hasattr(self._stream, 'close'): self._stream.close()


class Xopen:
    """
    Handles the Physical Layer: Compression, standard streams and the File System.

    Handles that were passed in (including ``stdin``/``stdout``) are never closed on exit.

    Examples:
        >>> with Xopen("alignment.fasta.gz", "rb") as f:
        ...     content = f.read()
    """
    _MAGIC = {
        b'\x1f\x8b': 'gzip',
        b'\x42\x5a\x68': 'bz2',
        b'\xfd7zXZ\x00': 'lzma',
    }
    _EXT_TO_PKG = {'gz': 'gzip', 'bz2': 'bz2', 'xz': 'lzma'}
    _MIN_N_BYTES = max(len(i) for i in _MAGIC.keys())
    _OPEN_FUNCS = {}

    def __init__(self, file: Union[str, Path, BinaryIO], mode: str = 'rb'):
        """
        Initializes the Xopen context manager.

        Args:
            file: File path (str or Path), ``'-'``/``'stdin'``/``'stdout'``, or an existing binary file object.
            mode: File opening mode (``'rb'`` or ``'wb'``).
        """
        self.file = file
        self.mode = mode
        self._handle: Optional[BinaryIO] = None
        self._raw: Optional[BinaryIO] = None
        self._close_on_exit = False

    @property
    def name(self) -> str:
        """A printable name for the resource."""
        if isinstance(self.file, (str, Path)): return str(self.file)
        return getattr(self.file, 'name', None) or self.file.__class__.__name__

    def __enter__(self) -> BinaryIO:
        """
        Opens the resource and returns the binary handle.

        Raises:
            SeqIOError: If the resource cannot be opened.
        """
        try: self._handle = self._open()
        except SeqIOError: raise
        except OSError as e: raise SeqIOError(f'Cannot open {self.name}: {e.strerror or e}') from e
        return self._handle

    def __exit__(self, exc_type, exc_val, exc_tb):
        """
        Closes the file handle if it was opened by this instance, otherwise flushes it when writing.
        """
        if self._handle is None: return
        try:
            if self._close_on_exit: self._handle.close()
            elif 'w' in self.mode or 'a' in self.mode: self._handle.flush()
        finally:
            # Compression wrappers never close the stream they wrap
            if self._raw is not None and self._raw is not self._handle: self._raw.close()
            self._handle = self._raw = None

    def _get_opener(self, pkg_name: str):
        """
        Retrieves the open function for a compression package, importing it if necessary.

        Args:
            pkg_name: Name of the compression package (e.g., 'gzip').
        """
        if pkg_name not in self._OPEN_FUNCS:
            self._OPEN_FUNCS[pkg_name] = import_module(pkg_name).open
        return self._OPEN_FUNCS[pkg_name]

    def _open(self) -> BinaryIO:
        """
        Internal method to open the resource based on type and compression.
        """
        # 1. Resolve Raw Stream
        writing = 'w' in self.mode or 'a' in self.mode
        should_close = False

        if isinstance(self.file, (IOBase, PeekableHandle)): raw_stream = self.file
        elif str(self.file) in {'-', 'stdin'} and not writing: raw_stream = stdin.buffer
        elif str(self.file) in {'-', 'stdout'} and writing: raw_stream = stdout.buffer
        else:
            path = Path(self.file).expanduser()

            # Write mode: Extension based
            if writing:
                self._close_on_exit = True
                ext = path.suffix.lower().lstrip('.')
                if pkg := self._EXT_TO_PKG.get(ext): return self._get_opener(pkg)(path, mode=self.mode)
                return open(path, mode=self.mode)

            raw_stream = open(path, mode='rb')
            should_close = True
            self._raw = raw_stream

        # 2. Handle Write Mode (Stream/Stdout)
        if writing: return raw_stream

        # 3. Handle Read Mode: Sniff Compression
        # Try Seekable (Fast Path for Files)
        try: seekable = raw_stream.seekable()
        except (AttributeError, ValueError, OSError): seekable = False

        if seekable:
            position = raw_stream.tell()
            start = raw_stream.read(self._MIN_N_BYTES)
            raw_stream.seek(position)
            if pkg := self._sniff(start):
                self._close_on_exit = True  # Wrapper needs closing
                return self._get_opener(pkg)(raw_stream, mode='rb')
            if should_close: self._close_on_exit = True
            return raw_stream

        # Non-Seekable (stdin, pipes) -> Use PeekableHandle
        peekable = PeekableHandle(raw_stream)
        if pkg := self._sniff(peekable.peek(self._MIN_N_BYTES)):
            self._close_on_exit = True
            return self._get_opener(pkg)(peekable, mode='rb')
        if should_close: self._close_on_exit = True
        return peekable

    def _sniff(self, start: bytes) -> Optional[str]:
        for magic, pkg in self._MAGIC.items():
            if start.startswith(magic): return pkg
        return None
