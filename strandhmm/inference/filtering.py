"""Bin quality filtering from cross-cell count statistics."""

from dataclasses import dataclass
from typing import Iterator, List, Sequence, Tuple

import numpy as np

from strandhmm.core.accumulators import MeanVarAccumulator
from strandhmm.core.bam_reader import CRICK, WATSON, CellInfo
from strandhmm.core.errors import DataShapeError
from strandhmm.core.intervals import GenomeBins, validate_chrom_map

LOW_MEAN_THRESHOLD = 0.01
HIGH_SD_MULTIPLE = 3.0

LOW_TAG = 'l'
HIGH_TAG = 'h'


@dataclass(frozen=True)
class GoodBinSet:
    """
    Bins retained for decoding.

    ``indices`` are ascending indices into the full bin list; ``chrom_map``
    is the chromosome boundary map over ``indices`` (positions, not bin
    indices), with a trailing sentinel equal to ``len(indices)``.
    """
    indices: np.ndarray
    chrom_map: np.ndarray

    def __len__(self) -> int:
        return len(self.indices)

    @property
    def n_chroms(self) -> int:
        return len(self.chrom_map) - 1

    def chrom_range(self, chrom: int) -> Tuple[int, int]:
        return int(self.chrom_map[chrom]), int(self.chrom_map[chrom + 1])

    def chrom_indices(self, chrom: int) -> np.ndarray:
        """Bin indices of the good bins on one chromosome."""
        lo, hi = self.chrom_range(chrom)
        return self.indices[lo:hi]


@dataclass
class BinFilterResult:
    good: GoodBinSet
    bin_means: np.ndarray
    bin_variances: np.ndarray
    mean: float
    sd: float
    bad_indices: np.ndarray
    bad_tags: List[str]

    @property
    def n_filtered(self) -> int:
        return len(self.bad_indices)

    def excluded_bins(self) -> Iterator[Tuple[int, str]]:
        """(bin index, tag) of every removed bin, ascending."""
        for idx, tag in zip(self.bad_indices.tolist(), self.bad_tags):
            yield idx, tag


def good_chrom_map(bins: GenomeBins, good_indices: np.ndarray) -> np.ndarray:
    """
    Chromosome boundary map over the good-bin index space.

    Single forward scan: for each chromosome, advance to the first good bin
    that is not on an earlier chromosome. Chromosomes without good bins get
    the boundary of the next one (an empty range).
    """
    n = len(good_indices)
    good_map = np.empty(bins.n_chroms + 1, dtype=np.int64)
    pos = 0
    for chrom in range(bins.n_chroms):
        while pos < n and bins.intervals[good_indices[pos]].chrom < chrom:
            pos += 1
        good_map[chrom] = pos
    good_map[-1] = n
    validate_chrom_map(good_map, n, what="good-bin")
    return good_map


def check_counts(counts: np.ndarray, cells: Sequence[CellInfo], bins: GenomeBins) -> None:
    """Raise DataShapeError if the count array does not match cells and bins."""
    if counts.ndim != 3 or counts.shape[2] != 2:
        raise DataShapeError(f"Counts must have shape (n_cells, n_bins, 2), got {counts.shape}")
    if counts.shape[0] != len(cells):
        raise DataShapeError(f"Counts hold {counts.shape[0]} cells but {len(cells)} cells are given")
    if counts.shape[1] != len(bins):
        raise DataShapeError(f"Counts hold {counts.shape[1]} bins but there are {len(bins)} bins")
    bins.validate()


def filter_bins(counts: np.ndarray, cells: Sequence[CellInfo], bins: GenomeBins,
                low_threshold: float = LOW_MEAN_THRESHOLD,
                sd_multiple: float = HIGH_SD_MULTIPLE) -> BinFilterResult:
    """
    Classify bins as good or bad from median-normalized counts.

    A bin is good iff its mean normalized count across cells is above
    ``low_threshold`` and below mean + sd_multiple * SD of all bin means.

    Args:
        counts: (n_cells, n_bins, 2) crick/watson counts
        cells: Cell info aligned with the first axis of counts
        bins: Genome bins aligned with the second axis of counts

    Returns:
        BinFilterResult
    """
    check_counts(counts, cells, bins)
    n_bins = counts.shape[1]

    per_bin = MeanVarAccumulator(shape=(n_bins,))
    for cell, cell_counts in zip(cells, counts):
        if not cell.median_bin_count > 0:
            raise DataShapeError(
                f"Cell {cell.name} has median bin count {cell.median_bin_count}; "
                "such cells must be removed before filtering"
            )
        norm_watson = cell_counts[:, WATSON] / cell.median_bin_count
        norm_crick = cell_counts[:, CRICK] / cell.median_bin_count
        per_bin.add(norm_watson + norm_crick)

    bin_means = np.asarray(per_bin.mean, dtype=np.float64).reshape(n_bins)
    bin_variances = np.asarray(per_bin.variance, dtype=np.float64).reshape(n_bins)

    across = MeanVarAccumulator().extend(bin_means.tolist())
    mean, sd = across.mean, across.std

    good_mask = (bin_means > low_threshold) & (bin_means < mean + sd_multiple * sd)
    good_indices = np.flatnonzero(good_mask).astype(np.int64)
    bad_indices = np.flatnonzero(~good_mask).astype(np.int64)
    bad_tags = [LOW_TAG if bin_means[b] <= low_threshold else HIGH_TAG for b in bad_indices]

    good = GoodBinSet(good_indices, good_chrom_map(bins, good_indices))
    return BinFilterResult(good, bin_means, bin_variances, mean, sd, bad_indices, bad_tags)
