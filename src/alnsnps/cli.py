"""Command-line interface for alnsnps."""
import argparse
from typing import Iterable, Optional

from alnsnps import __version__
from alnsnps.core.alphabet import GapPolicy
from alnsnps.lib.log import configure_logging
from alnsnps.pipeline import SnpsConfig, find_snps


# Functions ------------------------------------------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='alnsnps', description='Find SNPs relative to a reference in a multiple sequence alignment.',
        epilog="Output is CSV: 'query,SNPs' per sequence, or 'change,proportion' with --aggregate.")
    parser.add_argument('-r', '--reference', required=True, help='Reference sequence, in fasta format.')
    parser.add_argument('-q', '--query', default='stdin',
                        help='Alignment to find snps in, in fasta format (default stdin).')
    parser.add_argument('-o', '--outfile', default='stdout', help='Output to write (default stdout).')
    parser.add_argument('--hard-gaps', dest='gap_policy', action='store_const', const=GapPolicy.HARD,
                        default=GapPolicy.SOFT, help="Don't treat alignment gaps as missing data.")
    parser.add_argument('--aggregate', action='store_true', help='Report the proportions of each change.')
    parser.add_argument('--threshold', type=float, default=0.0,
                        help='With --aggregate, only report changes with a proportion at or above this value.')
    parser.add_argument('-t', '--threads', type=int, default=None, help='Number of worker threads (default: all CPUs).')
    parser.add_argument('-v', '--verbose', action='store_true', help='Log debug messages.')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)
    logger = configure_logging(args.verbose)
    try: find_snps(args.query, args.reference, args.outfile, SnpsConfig.from_args(args))
    except (OSError, ValueError) as e:  # SeqIOError is an OSError, FormatError a ValueError
        logger.error('%s', e)
        return 1
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
