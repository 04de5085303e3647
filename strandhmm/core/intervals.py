"""
Genome binning.

Bins are half-open intervals ordered by (chrom index, start). A chromosome
boundary map gives the first bin index of every chromosome plus a trailing
sentinel equal to the number of bins, so the bins of chromosome c are
``chrom_map[c]:chrom_map[c + 1]``.
"""

import warnings
from dataclasses import dataclass
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

from strandhmm.core.accumulators import MedianAccumulator
from strandhmm.core.errors import DataShapeError


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open genomic interval on chromosome index ``chrom``."""
    chrom: int
    start: int
    end: int

    def __post_init__(self):
        if self.start < 0 or self.start >= self.end:
            raise DataShapeError(f"Invalid interval {self.chrom}:{self.start}-{self.end}")

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, other: 'Interval') -> bool:
        return self.chrom == other.chrom and self.start < other.end and other.start < self.end


def build_chrom_map(chroms: Sequence[int], n_chroms: int) -> np.ndarray:
    """
    Chromosome boundary map for a sorted sequence of chromosome indices.

    Chromosomes without entries get an empty range.

    Returns:
        (n_chroms + 1,) int64 array
    """
    chroms = np.asarray(chroms, dtype=np.int64)
    if len(chroms) > 1 and np.any(np.diff(chroms) < 0):
        raise DataShapeError("Bins are not sorted by chromosome")
    return np.searchsorted(chroms, np.arange(n_chroms + 1), side='left').astype(np.int64)


def validate_chrom_map(chrom_map: np.ndarray, total: int, what: str = "bin") -> None:
    """Raise DataShapeError unless the map is non-decreasing and ends at ``total``."""
    chrom_map = np.asarray(chrom_map)
    if chrom_map.ndim != 1 or len(chrom_map) == 0:
        raise DataShapeError(f"{what} chromosome map must be a non-empty 1-D array")
    if chrom_map[0] != 0:
        raise DataShapeError(f"{what} chromosome map must start at 0, got {chrom_map[0]}")
    if np.any(np.diff(chrom_map) < 0):
        raise DataShapeError(f"{what} chromosome map is not monotonic: {chrom_map.tolist()}")
    if chrom_map[-1] != total:
        raise DataShapeError(
            f"{what} chromosome map sentinel is {chrom_map[-1]}, expected {total}"
        )


@dataclass
class GenomeBins:
    """Ordered bins with chromosome names and the boundary map."""
    intervals: List[Interval]
    chrom_names: List[str]
    chrom_map: np.ndarray

    @classmethod
    def from_intervals(cls, intervals: Iterable[Interval],
                       chrom_names: Sequence[str]) -> 'GenomeBins':
        intervals = sorted(intervals)
        chrom_map = build_chrom_map([b.chrom for b in intervals], len(chrom_names))
        bins = cls(intervals, list(chrom_names), chrom_map)
        bins.validate()
        return bins

    def __len__(self) -> int:
        return len(self.intervals)

    @property
    def n_chroms(self) -> int:
        return len(self.chrom_names)

    def chrom_range(self, chrom: int) -> Tuple[int, int]:
        return int(self.chrom_map[chrom]), int(self.chrom_map[chrom + 1])

    def starts(self) -> np.ndarray:
        return np.array([b.start for b in self.intervals], dtype=np.int64)

    def validate(self) -> None:
        validate_chrom_map(self.chrom_map, len(self.intervals))
        if len(self.chrom_map) != self.n_chroms + 1:
            raise DataShapeError(
                f"Chromosome map has {len(self.chrom_map)} entries for {self.n_chroms} chromosomes"
            )
        for c in range(self.n_chroms):
            lo, hi = self.chrom_range(c)
            prev_end = -1
            for b in self.intervals[lo:hi]:
                if b.chrom != c:
                    raise DataShapeError(f"Bin {b} lies outside the range of chromosome {c}")
                if b.start < prev_end:
                    raise DataShapeError(f"Bin {b} overlaps or precedes the previous bin")
                prev_end = b.end


def create_fixed_bins(chrom_names: Sequence[str], chrom_lengths: Sequence[int],
                      window: int, exclude: Iterable[Interval] = ()) -> GenomeBins:
    """
    Tile every chromosome with fixed-width bins.

    The last bin of a chromosome is truncated at the chromosome end. Bins that
    overlap any excluded interval are dropped.
    """
    if window <= 0:
        raise ValueError(f"Window size must be positive, got {window}")

    excluded: Dict[int, List[Interval]] = {}
    for iv in exclude:
        excluded.setdefault(iv.chrom, []).append(iv)

    intervals = []
    for chrom, length in enumerate(chrom_lengths):
        blocked = excluded.get(chrom, [])
        for start in range(0, int(length), window):
            b = Interval(chrom, start, min(start + window, int(length)))
            if any(b.overlaps(iv) for iv in blocked):
                continue
            intervals.append(b)

    return GenomeBins.from_intervals(intervals, chrom_names)


def read_exclude_file(path: str, chrom_names: Sequence[str],
                      chrom_lengths: Sequence[int]) -> List[Interval]:
    """
    Read excluded regions.

    Each non-empty, non-comment line is either ``chrom`` (whole chromosome)
    or ``chrom start end``. Chromosomes missing from the header are ignored.
    """
    index = {name: i for i, name in enumerate(chrom_names)}
    exclude = []
    with open(path) as f:
        for line in f:
            fields = line.split()
            if not fields or fields[0].startswith('#'):
                continue
            chrom = index.get(fields[0])
            if chrom is None:
                continue
            if len(fields) >= 3:
                exclude.append(Interval(chrom, int(fields[1]), int(fields[2])))
            else:
                exclude.append(Interval(chrom, 0, int(chrom_lengths[chrom])))
    return sorted(exclude)


def read_bed_bins(path: str, chrom_names: Sequence[str]) -> GenomeBins:
    """
    Read variable-width bins from a BED file (chrom, start, end).

    Chromosomes that are not in ``chrom_names`` are skipped with a warning.
    """
    index = {name: i for i, name in enumerate(chrom_names)}
    intervals = []
    unknown = set()
    with open(path) as f:
        for line in f:
            fields = line.split('\t') if '\t' in line else line.split()
            if not fields or not fields[0].strip() or fields[0].startswith(('#', 'track', 'browser')):
                continue
            if len(fields) < 3:
                raise DataShapeError(f"BED line needs chrom, start and end: {line.rstrip()}")
            chrom = index.get(fields[0])
            if chrom is None:
                unknown.add(fields[0])
                continue
            intervals.append(Interval(chrom, int(fields[1]), int(fields[2])))

    if unknown:
        warnings.warn(f"Skipping bins on chromosomes not in the BAM header: {', '.join(sorted(unknown))}")

    return GenomeBins.from_intervals(intervals, chrom_names)


def median_bin_size(bins: GenomeBins) -> float:
    return MedianAccumulator().extend(b.length for b in bins.intervals).median
