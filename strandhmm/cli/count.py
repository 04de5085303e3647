#!/usr/bin/env python3
"""
StrandHMM count CLI entry point.
Counts Strand-seq reads in genomic bins and classifies every bin of every
cell as CC, WC or WW.
"""

import os
import sys
import argparse
import warnings
from collections import namedtuple
from typing import List, Optional

import numpy as np
from tqdm import tqdm

from strandhmm.core.accumulators import median_bin_counts
from strandhmm.core.bam_reader import CellInfo, count_reads, get_chrom_info, get_sample_name
from strandhmm.core.errors import DegenerateInputWarning
from strandhmm.core.intervals import create_fixed_bins, median_bin_size, read_bed_bins, read_exclude_file
from strandhmm.inference.dispersion import estimate_dispersion
from strandhmm.inference.filtering import filter_bins
from strandhmm.inference.output import (
    write_cell_info, write_count_table, write_removed_bins, write_sample_info,
)
from strandhmm.inference.parallel import classify_cells
from strandhmm.cli.common import (
    add_binning_args, add_filter_args, add_model_args,
    add_parallel_args, add_report_args, add_version_args,
)


ArgCheck = namedtuple('ArgCheck', ['ok', 'message'])


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='strandhmm-count',
        description='Count Strand-seq reads in bins and classify bins as CC, WC or WW',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Notes:
  * Reads are counted by start position
  * One cell per BAM file, including SM tag in header
  * For paired-end data, only read 1 is counted

Examples:
  # 500kb fixed bins, skipping chrY
  strandhmm-count -w 500000 -x exclude.txt -o counts.txt cell*.bam

  # BED-defined bins, with cell and sample summaries, 8 cores
  strandhmm-count -b bins.bed -i cells.txt -S samples.txt -c 8 cell*.bam
'''
    )

    add_version_args(parser)
    parser.add_argument('bams', nargs='*', metavar='BAM',
                        help='Strand-seq BAM files, one cell per file')
    add_filter_args(parser, min_mapq=10)
    add_binning_args(parser, window=1_000_000)
    add_report_args(parser, default_out='out.txt')
    add_model_args(parser)
    add_parallel_args(parser, default_cores=1)
    return parser


def check_args(args: argparse.Namespace) -> ArgCheck:
    """Validate arguments before any processing starts."""
    if not args.bams:
        return ArgCheck(False, "No input BAM files given")
    if args.window is not None and args.bins is not None:
        return ArgCheck(False, "-w and -b cannot be specified together")
    if args.bins is not None and args.exclude is not None:
        return ArgCheck(False, "Exclude chromosomes (-x) have no effect when -b is specified")
    if args.window is not None and args.window <= 0:
        return ArgCheck(False, f"Window size must be positive, got {args.window}")
    if args.cores < 0:
        return ArgCheck(False, f"Number of cores must be >= 0, got {args.cores}")
    if args.expected_changes < 0:
        return ArgCheck(False, f"--expected-changes must be >= 0, got {args.expected_changes}")
    if not args.zero_rate > 0:
        return ArgCheck(False, f"--zero-rate must be positive, got {args.zero_rate}")
    for path in args.bams:
        if not os.path.exists(path):
            return ArgCheck(False, f"Input file not found: {path}")
    return ArgCheck(True, None)


def _write_report(writer, path: str, *data) -> bool:
    """Write an optional report; a path that cannot be written is reported and skipped."""
    try:
        writer(path, *data)
    except OSError as e:
        print(f"[Warning] Cannot write to {path} ({e})", file=sys.stderr)
        return False
    return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    check = check_args(args)
    if not check.ok:
        print(f"Error: {check.message}\n", file=sys.stderr)
        parser.print_help()
        return 1

    window = args.window if args.window is not None else args.default_window

    # === SAM headers ===
    print("Exploring SAM headers...")
    cells = []
    for i, path in enumerate(args.bams):
        try:
            sample = get_sample_name(path)
        except (OSError, ValueError) as e:
            print(f"[Error] {e}", file=sys.stderr)
            return 1
        name = os.path.basename(path)
        cells.append(CellInfo(id=i, name=os.path.splitext(name)[0], sample_name=sample))
    chrom_names, chrom_lengths = get_chrom_info(args.bams[0])

    # === Binning ===
    if args.bins:
        bins = read_bed_bins(args.bins, chrom_names)
        print(f"Reading {len(bins)} variable-width bins with median bin size of "
              f"{round(median_bin_size(bins) / 1000)}kb")
    else:
        exclude = []
        if args.exclude:
            exclude = read_exclude_file(args.exclude, chrom_names, chrom_lengths)
        print(f"Creating {round(window / 1000)}kb bins with {len(exclude)} excluded regions")
        bins = create_fixed_bins(chrom_names, chrom_lengths, window, exclude)

    # === Counting ===
    # A BAM that cannot be read drops its cell
    print(f"Reading {len(args.bams)} BAM files...")
    kept_cells, cell_counts = [], []
    for cell, path in tqdm(list(zip(cells, args.bams)), desc="Counting"):
        try:
            counts, stats = count_reads(path, bins, min_mapq=args.mapq)
        except (OSError, ValueError) as e:
            print(f"[Warning] Ignoring cell {path}: {e}")
            continue
        for key, value in stats.items():
            setattr(cell, key, value)
        kept_cells.append(cell)
        cell_counts.append(counts)

    if not kept_cells:
        print("[Error] No readable BAM files", file=sys.stderr)
        return 1

    counts = np.stack(cell_counts)
    for cell, median in zip(kept_cells, median_bin_counts(counts)):
        cell.median_bin_count = float(median)

    if args.info:
        print(f"[Write] Cell summary: {args.info}")
        _write_report(write_cell_info, args.info, kept_cells)

    # Cells without coverage in the median bin cannot be normalized
    usable = [i for i, c in enumerate(kept_cells) if c.median_bin_count > 0]
    for cell in kept_cells:
        if cell.median_bin_count <= 0:
            warnings.warn(f"Ignoring cell {cell.name}: median bin count is 0", DegenerateInputWarning)
    if not usable:
        print("[Error] No cell has a positive median bin count", file=sys.stderr)
        return 1
    cells = [kept_cells[i] for i in usable]
    counts = counts[usable]

    # === Bin filtering & dispersion ===
    result = filter_bins(counts, cells, bins)
    print(f"Mean mean bin count is {result.mean:g}")
    print(f"mean bin count SD is {result.sd:g}")
    print(f"Filtering {result.n_filtered} bins.")

    if args.removed_bins:
        print(f"[Write] removed bins: {args.removed_bins}")
        _write_report(write_removed_bins, args.removed_bins, bins, result)

    samples = estimate_dispersion(counts, cells, result.good)

    if args.sample_info:
        print(f"[Write] sample information: {args.sample_info}")
        _write_report(write_sample_info, args.sample_info, samples)

    # === HMM ===
    labels, failures = classify_cells(
        counts, cells, samples, result.good,
        n_cores=args.cores,
        expected_changes=args.expected_changes,
        zero_rate=args.zero_rate,
        chrom_names=bins.chrom_names,
    )
    if failures:
        print(f"[Warning] {len(failures)} cells could not be classified:")
        for i, message in sorted(failures.items()):
            print(f"  {cells[i].name}: {message}")

    print(f"[Write] count table: {args.out}")
    try:
        write_count_table(args.out, counts, cells, bins, labels)
    except OSError as e:
        print(f"[Error] Cannot open file: {args.out} ({e})", file=sys.stderr)
        return 2

    return 0


if __name__ == '__main__':
    sys.exit(main())
