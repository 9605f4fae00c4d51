"""
Module for the bitmask encoding of IUPAC nucleotide symbols.

Each symbol is encoded as one byte. The upper nibble is a set over the bases ``{A, G, C, T}`` (one bit
per base), the lower nibble carries flags: bit 3 marks an unambiguously called base, and the remaining
bits distinguish gaps and unknowns. Two codes describe compatible symbols if and only if they share a
base bit, so a difference is a single test: ``a & b < 16``.
"""
from enum import Enum
from typing import Union, Final, ClassVar, Iterable

import numpy as np


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class CodecError(Exception):
    """Raised when a codec is misused (e.g. multi-byte symbols)."""


# Classes --------------------------------------------------------------------------------------------------------------
class GapPolicy(str, Enum):
    """How alignment gaps compare against other symbols."""
    SOFT = 'soft'  # gaps are missing data and match anything
    HARD = 'hard'  # gaps never match


class IupacCodec:
    """
    Encode and decode tables for IUPAC nucleotide symbols under a gap policy.

    The tables are built once and never mutated, so a codec can be shared freely between threads.

    Examples:
        >>> codec = IupacCodec.SOFT
        >>> codec.encode(b'ACgt-')
        array([136,  40,  72,  24, 244], dtype=uint8)
        >>> codec.differs(b'G', b'W')
        True
    """
    __slots__ = ('_policy', '_encode_table', '_decode_table', '_trans_table', '_inv_trans_table')
    DTYPE: Final = np.uint8
    MAX_LEN: Final = np.iinfo(DTYPE).max + 1
    INVALID: Final = 0
    INVALID_SYMBOL: Final = b'*'
    CALLED: Final = 0b1000
    BASES: Final = b'AGCT'  # Order of the base bits, high to low
    SYMBOLS: Final = {
        b'A': 0b10001000, b'G': 0b01001000, b'C': 0b00101000, b'T': 0b00011000,
        b'R': 0b11000000, b'M': 0b10100000, b'W': 0b10010000, b'S': 0b01100000,
        b'K': 0b01010000, b'Y': 0b00110000, b'V': 0b11100000, b'H': 0b10110000,
        b'D': 0b11010000, b'B': 0b01110000, b'N': 0b11110000, b'?': 0b11110010,
    }
    GAPS: Final = {GapPolicy.SOFT: 0b11110100, GapPolicy.HARD: 0b00000100}

    SOFT: ClassVar['IupacCodec']
    HARD: ClassVar['IupacCodec']

    def __init__(self, policy: Union[str, GapPolicy] = GapPolicy.SOFT):
        """
        Initializes the codec.

        Args:
            policy: The gap policy, ``'soft'`` (default) or ``'hard'``.
        """
        self._policy = GapPolicy(policy)
        symbols = dict(self.SYMBOLS)
        symbols[b'-'] = self.GAPS[self._policy]

        encode_table = np.full(self.MAX_LEN, self.INVALID, dtype=self.DTYPE)
        decode_table = np.full(self.MAX_LEN, ord(self.INVALID_SYMBOL), dtype=self.DTYPE)
        for symbol, code in symbols.items():
            encode_table[ord(symbol)] = code
            encode_table[ord(symbol.lower())] = code
            decode_table[code] = ord(symbol)

        encode_table.flags.writeable = False
        decode_table.flags.writeable = False
        self._encode_table = encode_table
        self._decode_table = decode_table
        # Translation tables for whole-line work without a python loop
        self._trans_table = encode_table.tobytes()
        self._inv_trans_table = decode_table.tobytes()

    def __repr__(self): return f'{self.__class__.__name__}({self._policy.value!r})'

    def __eq__(self, other):
        if self is other: return True
        if not isinstance(other, IupacCodec): return False
        return self._policy == other._policy

    def __hash__(self): return hash(self._policy)

    @classmethod
    def for_policy(cls, policy: Union[str, GapPolicy]) -> 'IupacCodec':
        """Returns the shared codec for a gap policy."""
        return cls.HARD if GapPolicy(policy) is GapPolicy.HARD else cls.SOFT

    @property
    def policy(self) -> GapPolicy: return self._policy

    @property
    def encode_table(self) -> np.ndarray:
        """The read-only 256-entry symbol-to-code table."""
        return self._encode_table

    @property
    def decode_table(self) -> np.ndarray:
        """The read-only 256-entry code-to-symbol table."""
        return self._decode_table

    def encode(self, text: bytes) -> np.ndarray:
        """
        Encodes a byte string, one code per input byte.

        Args:
            text: Sequence bytes. Bytes that are not IUPAC symbols encode to ``INVALID``.

        Returns:
            A read-only ``uint8`` array of the same length as ``text``.
        """
        return np.frombuffer(text.translate(self._trans_table), dtype=self.DTYPE)

    def encode_symbol(self, symbol: Union[bytes, str, int]) -> int:
        """Encodes a single symbol."""
        return int(self._encode_table[self._ord(symbol)])

    def decode(self, encoded: Union[np.ndarray, Iterable[int]]) -> bytes:
        """
        Decodes an array of codes back to upper-case symbols.

        Args:
            encoded: The codes to decode.

        Returns:
            The decoded bytes string.
        """
        encoded = np.asarray(encoded)
        if encoded.dtype != self.DTYPE: encoded = encoded.astype(self.DTYPE)
        return encoded.tobytes().translate(self._inv_trans_table)

    def decode_symbol(self, code: int) -> str:
        """Decodes a single code to its upper-case symbol."""
        return chr(self._decode_table[code])

    def is_called(self, code: int) -> bool:
        """Returns ``True`` if the code is an unambiguous base (A, C, G or T)."""
        return bool(code & self.CALLED)

    def bases(self, symbol: Union[bytes, str, int]) -> frozenset[str]:
        """
        Returns the set of bases a symbol may stand for under this codec.

        Examples:
            >>> sorted(IupacCodec.SOFT.bases('R'))
            ['A', 'G']
            >>> IupacCodec.HARD.bases('-')
            frozenset()
        """
        code = self.encode_symbol(symbol)
        return frozenset(chr(b) for i, b in enumerate(self.BASES) if code & (0x80 >> i))

    def differs(self, a: Union[bytes, str, int], b: Union[bytes, str, int]) -> bool:
        """Returns ``True`` if two symbols share no possible base."""
        return (self.encode_symbol(a) & self.encode_symbol(b)) < 16

    @staticmethod
    def _ord(symbol: Union[bytes, str, int]) -> int:
        if isinstance(symbol, (int, np.integer)): return int(symbol)
        if len(symbol) != 1: raise CodecError(f'Expected a single symbol, got {symbol!r}')
        return ord(symbol) if isinstance(symbol, str) else symbol[0]


# Initialize Standard Codecs
IupacCodec.SOFT = IupacCodec(GapPolicy.SOFT)
IupacCodec.HARD = IupacCodec(GapPolicy.HARD)
