"""
Find SNPs between each sequence of a nucleotide alignment and a reference, using a bitmask encoding of
IUPAC ambiguity codes.

Examples:
    >>> from alnsnps import find_snps, SnpsConfig
    >>> find_snps('alignment.fasta', 'reference.fasta', 'snps.csv', SnpsConfig(aggregate=True))
"""
from importlib.metadata import version, PackageNotFoundError


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class AlnsnpsWarning(Warning): pass
class ThresholdWarning(AlnsnpsWarning): pass


# Constants ------------------------------------------------------------------------------------------------------------
try: __version__ = version(__name__)
except PackageNotFoundError: __version__ = '0+unknown'

from alnsnps.core.alphabet import IupacCodec, GapPolicy
from alnsnps.containers import EncodedRecord, SnpCall, QueryResult, SnpParseError
from alnsnps.io import SeqIOError, FormatError, AlignmentReader, read_reference, SnpWriter, AggregateWriter
from alnsnps.engines.diff import DiffEngine, LengthMismatchError
from alnsnps.pipeline import SnpsConfig, SnpPipeline, find_snps
