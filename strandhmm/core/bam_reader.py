"""
BAM reader module for StrandHMM

Counts Strand-seq reads per bin and strand, one cell per BAM file.

- Reads are counted by start position
- Reverse-strand reads are Crick, forward-strand reads are Watson
- For paired-end data, only read 1 is counted
- Secondary, supplementary, QC-failed, duplicate and low-MAPQ reads are
  tallied but not counted
"""

import bisect
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pysam

from strandhmm.core.intervals import GenomeBins

CRICK = 0
WATSON = 1


@dataclass
class CellInfo:
    """One sequencing library (cell) and its read statistics."""
    id: int
    name: str
    sample_name: str
    median_bin_count: float = 0.0
    n_mapped: int = 0
    n_supplementary: int = 0
    n_pcr_dups: int = 0
    n_low_mapq: int = 0
    n_read2s: int = 0
    n_counted: int = 0


def get_sample_name(bam_path: str) -> str:
    """
    Sample name from the SM tag of the header's read groups.

    Raises:
        ValueError: if the header does not carry exactly one distinct SM tag
    """
    with pysam.AlignmentFile(bam_path, "rb", check_sq=False) as bam:
        header = bam.header.to_dict()
    samples = {rg['SM'] for rg in header.get('RG', []) if 'SM' in rg}
    if len(samples) != 1:
        raise ValueError(
            f"{bam_path}: expected exactly one SM tag in the header, found {len(samples)}"
        )
    return samples.pop()


def get_chrom_info(bam_path: str) -> Tuple[List[str], List[int]]:
    """Reference names and lengths from a BAM header."""
    with pysam.AlignmentFile(bam_path, "rb", check_sq=False) as bam:
        return list(bam.references), list(bam.lengths)


def _chrom_lookup(bins: GenomeBins) -> Dict[str, Tuple[int, List[int], List[int]]]:
    """Per chromosome name: first bin index, bin starts, bin ends."""
    lookup = {}
    for c, name in enumerate(bins.chrom_names):
        lo, hi = bins.chrom_range(c)
        chunk = bins.intervals[lo:hi]
        lookup[name] = (lo, [b.start for b in chunk], [b.end for b in chunk])
    return lookup


def count_reads(bam_path: str, bins: GenomeBins,
                min_mapq: int = 10) -> Tuple[np.ndarray, Dict[str, int]]:
    """
    Count reads per bin and strand.

    Args:
        bam_path: Path to a coordinate-sorted BAM file
        bins: Genome bins (chromosomes matched by name)
        min_mapq: Minimum mapping quality

    Returns:
        counts: (n_bins, 2) int64 array of (crick, watson)
        stats: read tallies keyed like the CellInfo fields
    """
    counts = np.zeros((len(bins), 2), dtype=np.int64)
    stats = {
        'n_mapped': 0,
        'n_supplementary': 0,
        'n_pcr_dups': 0,
        'n_low_mapq': 0,
        'n_read2s': 0,
        'n_counted': 0,
    }
    lookup = _chrom_lookup(bins)

    with pysam.AlignmentFile(bam_path, "rb", check_sq=False) as bam:
        for read in bam.fetch(until_eof=True):
            if read.is_unmapped:
                continue
            stats['n_mapped'] += 1

            if read.is_secondary or read.is_supplementary or read.is_qcfail:
                stats['n_supplementary'] += 1
                continue
            if read.is_duplicate:
                stats['n_pcr_dups'] += 1
                continue
            if read.mapping_quality < min_mapq:
                stats['n_low_mapq'] += 1
                continue
            if read.is_paired and read.is_read2:
                stats['n_read2s'] += 1
                continue

            entry = lookup.get(read.reference_name)
            if entry is None:
                continue
            offset, starts, ends = entry
            pos = read.reference_start
            i = bisect.bisect_right(starts, pos) - 1
            if i < 0 or pos >= ends[i]:
                continue

            counts[offset + i, CRICK if read.is_reverse else WATSON] += 1
            stats['n_counted'] += 1

    return counts, stats
