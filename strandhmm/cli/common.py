"""Shared argparse argument factories for StrandHMM CLI tools.

Each function adds a group of related arguments to an ArgumentParser.
Default values can be overridden per-script where needed.
"""

import argparse

from strandhmm.core.distributions import DEFAULT_ZERO_RATE
from strandhmm.core.hmm import DEFAULT_EXPECTED_CHANGES


def add_filter_args(parser: argparse.ArgumentParser,
                    min_mapq: int = 10) -> None:
    """Add read filtering arguments (--mapq)."""
    parser.add_argument(
        '--mapq', '-q', type=int, default=min_mapq,
        help=f"Minimum mapping quality (default: {min_mapq})"
    )


def add_binning_args(parser: argparse.ArgumentParser,
                     window: int = 1_000_000) -> None:
    """Add binning arguments (--window, --bins, --exclude)."""
    parser.add_argument(
        '--window', '-w', type=int, default=None,
        help=f"Window size of fixed windows (default: {window:,})"
    )
    parser.set_defaults(default_window=window)
    parser.add_argument(
        '--bins', '-b', default=None,
        help="Variable bin file (BED format, mutually exclusive to -w)"
    )
    parser.add_argument(
        '--exclude', '-x', default=None,
        help="Exclude chromosomes or regions (mutually exclusive to -b)"
    )


def add_model_args(parser: argparse.ArgumentParser,
                   expected_changes: float = DEFAULT_EXPECTED_CHANGES,
                   zero_rate: float = DEFAULT_ZERO_RATE) -> None:
    """Add HMM parameter arguments (--expected-changes, --zero-rate)."""
    parser.add_argument(
        '--expected-changes', type=float, default=expected_changes,
        help=f"Expected strand-state changes per cell, sets the transition "
             f"probabilities (default: {expected_changes:g})"
    )
    parser.add_argument(
        '--zero-rate', type=float, default=zero_rate,
        help=f"Negative binomial rate of the absent strand in CC/WW bins "
             f"(default: {zero_rate:g})"
    )


def add_parallel_args(parser: argparse.ArgumentParser,
                      default_cores: int = 1) -> None:
    """Add --cores argument."""
    parser.add_argument(
        '--cores', '-c', type=int, default=default_cores,
        help=f"Number of CPU cores (0=auto, default: {default_cores})"
    )


def add_report_args(parser: argparse.ArgumentParser,
                    default_out: str = 'out.txt') -> None:
    """Add report file arguments (--out, --info, --sample-info, --removed-bins)."""
    parser.add_argument(
        '--out', '-o', default=default_out,
        help=f"Output file for counts (default: {default_out})"
    )
    parser.add_argument(
        '--info', '-i', default=None,
        help="Write info about cells"
    )
    parser.add_argument(
        '--sample-info', '-S', default=None,
        help="Write info per sample"
    )
    parser.add_argument(
        '--removed-bins', '-R', default=None,
        help="Write bins that were removed (BED file)"
    )


def add_version_args(parser: argparse.ArgumentParser) -> None:
    """Add --version flag."""
    from strandhmm import __version__
    parser.add_argument(
        '--version', action='version',
        version=f'%(prog)s {__version__}'
    )
