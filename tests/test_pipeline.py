import io
import random
import threading
from argparse import Namespace

import pytest
from alnsnps import ThresholdWarning
from alnsnps.cli import main
from alnsnps.core.alphabet import GapPolicy
from alnsnps.engines.diff import LengthMismatchError
from alnsnps.io import FormatError, SeqIOError
from alnsnps.pipeline import SnpsConfig, find_snps

REFERENCE = b'>ref\nATGATG\n'
QUERIES = b'>Query1\nATGATG\n>Query2\nATGATC\n>Query3\nATTTTW\n'
QUERIES_AGGREGATE = QUERIES + b'>Query4\nATTTTG\n'


def run(query: bytes, reference: bytes = REFERENCE, **options) -> bytes:
    out = io.BytesIO()
    find_snps(io.BytesIO(query), io.BytesIO(reference), out, SnpsConfig(**options))
    return out.getvalue()


class FullDisk(io.RawIOBase):
    def writable(self): return True
    def write(self, b): raise OSError(28, 'No space left on device')


class DroppedPipe(io.RawIOBase):
    """Serves a few small reads of an alignment, then fails like a broken pipe."""
    def __init__(self, data: bytes, fail_after: int):
        self._data, self._fail_after, self._pos = data, fail_after, 0
    def readable(self): return True
    def readinto(self, b):
        if self._pos >= self._fail_after: raise OSError(32, 'Broken pipe')
        chunk = self._data[self._pos:self._pos + min(len(b), 64)]
        b[:len(chunk)] = chunk
        self._pos += len(chunk)
        return len(chunk)


class TestScenarios:
    def test_per_query(self):
        assert run(QUERIES) == b'query,SNPs\nQuery1,\nQuery2,G6C\nQuery3,G3T|A4T|G6W\n'

    def test_soft_gaps(self):
        assert run(b'>Query1\n--GATG\n') == b'query,SNPs\nQuery1,\n'

    def test_hard_gaps(self):
        out = run(b'>Query1\n--GATG\n>Query2\nATGATC\n>Query3\nATTTTW\n', gap_policy='hard')
        assert out == b'query,SNPs\nQuery1,A1-|T2-\nQuery2,G6C\nQuery3,G3T|A4T|G6W\n'

    def test_aggregate(self):
        assert run(QUERIES_AGGREGATE, aggregate=True) == (
            b'change,proportion\nG3T,0.500000000\nA4T,0.500000000\nG6C,0.250000000\nG6W,0.250000000\n'
        )

    def test_aggregate_threshold(self):
        out = run(QUERIES_AGGREGATE, aggregate=True, threshold=0.26)
        assert out == b'change,proportion\nG3T,0.500000000\nA4T,0.500000000\n'

    def test_no_queries(self):
        assert run(b'') == b'query,SNPs\n'


class TestConcurrency:
    @pytest.fixture(scope='class')
    def alignment(self) -> bytes:
        rng = random.Random(42)
        ref = ''.join(rng.choice('ACGT') for _ in range(300))
        lines = [f'>ref\n{ref}\n'.encode()]
        for i in range(400):
            seq = [rng.choice('ACGTRYN-') if rng.random() < 0.05 else b for b in ref]
            lines.append(f'>seq{i} sample {i}\n{"".join(seq)}\n'.encode())
        return b''.join(lines)

    @pytest.mark.parametrize('threads', [1, 2, 8])
    def test_order_preserved(self, alignment, threads):
        reference, _, queries = alignment.partition(b'\n>')
        out = run(b'>' + queries, reference + b'\n', threads=threads, queue_size=1)
        ids = [line.split(b',')[0] for line in out.splitlines()[1:]]
        assert ids == [f'seq{i}'.encode() for i in range(400)]
        assert out == run(b'>' + queries, reference + b'\n', threads=1)

    def test_idempotent(self, alignment):
        reference, _, queries = alignment.partition(b'\n>')
        assert run(b'>' + queries, reference + b'\n') == run(b'>' + queries, reference + b'\n')

    def test_aggregate_independent_of_threads(self, alignment):
        reference, _, queries = alignment.partition(b'\n>')
        one = run(b'>' + queries, reference + b'\n', threads=1, aggregate=True)
        many = run(b'>' + queries, reference + b'\n', threads=8, aggregate=True)
        assert one == many


class TestErrors:
    def test_length_mismatch(self):
        with pytest.raises(LengthMismatchError, match="Query2"):
            run(b'>Query1\nATGATG\n>Query2\nATGAT\n' + b'>Query3\nATGATG\n' * 50, threads=2)

    def test_bad_query(self):
        with pytest.raises(FormatError, match="badly formatted"):
            run(b'ATGATG\n')

    def test_bad_reference(self):
        with pytest.raises(FormatError):
            run(QUERIES, reference=b'ATGATG\n')

    def test_write_error(self):
        with pytest.raises(SeqIOError, match="Write failed"):
            find_snps(io.BytesIO(QUERIES), io.BytesIO(REFERENCE), FullDisk())

    def test_threshold_ignored_warning(self):
        with pytest.warns(ThresholdWarning):
            run(QUERIES, threshold=0.5)

    def test_read_error_mid_stream(self):
        with pytest.raises(SeqIOError, match="Read failed"):
            find_snps(DroppedPipe(b'>Query1\nATGATG\n' * 200, 1000), io.BytesIO(REFERENCE), io.BytesIO(),
                      SnpsConfig(threads=2, queue_size=1))
        assert not [t for t in threading.enumerate() if t.name.startswith('alnsnps-')]


class TestSnpsConfig:
    def test_defaults(self):
        config = SnpsConfig()
        assert config.gap_policy is GapPolicy.SOFT
        assert config.n_threads >= 1
        assert config.n_queue == config.n_threads

    def test_from_args(self):
        args = Namespace(gap_policy=GapPolicy.HARD, aggregate=True, threshold=0.1, threads=3, verbose=True)
        config = SnpsConfig.from_args(args)
        assert config == SnpsConfig(GapPolicy.HARD, True, 0.1, 3)
        assert config.n_queue == 3

    @pytest.mark.parametrize('options', [{'aggregate': True, 'threshold': -0.1},
                                         {'aggregate': True, 'threshold': 1.5}, {'threads': 0},
                                         {'queue_size': 0}, {'gap_policy': 'sticky'}])
    def test_invalid(self, options):
        with pytest.raises(ValueError):
            SnpsConfig(**options)

    @pytest.mark.parametrize('threshold', [-0.1, 2.0])
    def test_threshold_unchecked_per_query(self, threshold):
        assert SnpsConfig(threshold=threshold).threshold == threshold


class TestCli:
    @pytest.fixture
    def files(self, tmp_path):
        (ref := tmp_path / 'ref.fasta').write_bytes(REFERENCE)
        (query := tmp_path / 'aln.fasta').write_bytes(b'>Query1\n--GATG\n>Query2\nATGATC\n')
        return ref, query, tmp_path / 'snps.csv'

    def test_per_query(self, files):
        ref, query, out = files
        assert main(['-r', str(ref), '-q', str(query), '-o', str(out)]) == 0
        assert out.read_bytes() == b'query,SNPs\nQuery1,\nQuery2,G6C\n'

    def test_hard_gaps_aggregate(self, files):
        ref, query, out = files
        assert main(['-r', str(ref), '-q', str(query), '-o', str(out), '--hard-gaps', '--aggregate',
                     '--threshold', '0.5', '-t', '2']) == 0
        assert out.read_bytes() == b'change,proportion\nA1-,0.500000000\nT2-,0.500000000\nG6C,0.500000000\n'

    def test_error_exit_code(self, files, caplog):
        ref, query, out = files
        query.write_bytes(b'>Query1\nATG\n')
        assert main(['-r', str(ref), '-q', str(query), '-o', str(out)]) == 1
        assert 'must be aligned' in caplog.text

    def test_missing_file(self, files, caplog):
        ref, _, out = files
        assert main(['-r', str(ref.with_name('missing.fasta')), '-o', str(out)]) == 1
        assert 'Cannot open' in caplog.text

    def test_threshold_out_of_range_per_query(self, files):
        ref, query, out = files
        with pytest.warns(ThresholdWarning):
            assert main(['-r', str(ref), '-q', str(query), '-o', str(out), '--threshold', '2']) == 0
        assert out.read_bytes() == b'query,SNPs\nQuery1,\nQuery2,G6C\n'

    def test_threshold_out_of_range_aggregate(self, files, caplog):
        ref, query, out = files
        assert main(['-r', str(ref), '-q', str(query), '-o', str(out), '--aggregate', '--threshold', '2']) == 1
        assert 'Threshold must be within' in caplog.text

    def test_format_error_exit_code(self, files, caplog):
        ref, query, out = files
        query.write_bytes(b'ATGATG\n')
        assert main(['-r', str(ref), '-q', str(query), '-o', str(out)]) == 1
        assert 'badly formatted' in caplog.text

    def test_usage_error(self):
        with pytest.raises(SystemExit) as exc:
            main(['--threshold', '0.5'])
        assert exc.value.code == 2
