import numpy as np
import pytest
from alnsnps.core.alphabet import IupacCodec
from alnsnps.containers import EncodedRecord
from alnsnps.engines.diff import DiffEngine, LengthMismatchError


def record(seq: bytes, codec: IupacCodec, id_: bytes = b'q', ordinal: int = 0) -> EncodedRecord:
    return EncodedRecord(id_, id_, ordinal, codec.encode(seq))


def calls(query: bytes, reference: bytes = b'ATGATG', codec: IupacCodec = IupacCodec.SOFT) -> list[str]:
    engine = DiffEngine(record(reference, codec, b'ref'), codec)
    return [str(c) for c in engine.call(record(query, codec))]


class TestDiffEngine:
    def test_exact_match(self):
        assert calls(b'ATGATG') == []

    def test_substitution(self):
        assert calls(b'ATGATC') == ['G6C']

    def test_ambiguity(self):
        assert calls(b'ATTTTW') == ['G3T', 'A4T', 'G6W']

    def test_compatible_ambiguity(self):
        # R = A/G and K = G/T both contain G
        assert calls(b'ATRATK') == []
        assert calls(b'ATGATG', reference=b'ATRATK') == []

    def test_lower_case(self):
        assert calls(b'atgatc') == ['G6C']

    def test_soft_gaps(self):
        assert calls(b'--GATG') == []

    def test_hard_gaps(self):
        assert calls(b'--GATG', codec=IupacCodec.HARD) == ['A1-', 'T2-']

    def test_hard_gap_against_gap(self):
        assert calls(b'-TGATG', reference=b'-TGATG', codec=IupacCodec.HARD) == ['-1-']

    def test_positions(self):
        codec = IupacCodec.SOFT
        engine = DiffEngine(record(b'ATGATG', codec), codec)
        np.testing.assert_array_equal(engine.positions(record(b'CTGATC', codec)), [0, 5])

    def test_result_keeps_identity(self):
        codec = IupacCodec.SOFT
        result = DiffEngine(record(b'ATGATG', codec), codec).call(record(b'ATGATC', codec, b'Query2', 7))
        assert result.id == b'Query2'
        assert result.ordinal == 7
        assert [c.position for c in result] == [6]

    @pytest.mark.parametrize('query', [b'ATGAT', b'ATGATGA', b''])
    def test_length_mismatch(self, query):
        with pytest.raises(LengthMismatchError, match="must be aligned"):
            calls(query)
