"""
Tests for bin quality filtering.
"""
import numpy as np
import pytest

from strandhmm.core.errors import DataShapeError
from strandhmm.core.intervals import create_fixed_bins
from strandhmm.inference.filtering import GoodBinSet, filter_bins, good_chrom_map


def _counts_from_totals(totals, n_cells=3):
    """Split per-bin totals evenly into crick/watson for every cell."""
    totals = np.asarray(totals)
    cell = np.stack([totals // 2, totals - totals // 2], axis=1)
    return np.stack([cell] * n_cells)


class TestFilterBins:

    def test_all_good_boundary_map(self, two_chrom_bins, make_cell):
        counts = _counts_from_totals([10, 12, 14, 16, 18])
        cells = [make_cell(i, median=14.0) for i in range(3)]
        result = filter_bins(counts, cells, two_chrom_bins)

        np.testing.assert_array_equal(result.good.indices, [0, 1, 2, 3, 4])
        np.testing.assert_array_equal(result.good.chrom_map, [0, 3, 5])
        assert result.n_filtered == 0

    def test_zero_bin_is_low(self, two_chrom_bins, make_cell):
        counts = _counts_from_totals([10, 0, 14, 16, 18])
        cells = [make_cell(i, median=14.0) for i in range(3)]
        result = filter_bins(counts, cells, two_chrom_bins)

        assert result.bin_means[1] == 0.0
        assert list(result.excluded_bins()) == [(1, 'l')]
        np.testing.assert_array_equal(result.good.chrom_map, [0, 2, 4])

    def test_bin_means_non_negative(self, two_chrom_bins, make_cell):
        rng = np.random.default_rng(3)
        counts = rng.integers(0, 30, size=(4, 5, 2))
        cells = [make_cell(i, median=20.0) for i in range(4)]
        result = filter_bins(counts, cells, two_chrom_bins)
        assert np.all(result.bin_means >= 0)
        assert np.all(result.bin_variances >= 0)

    def test_high_outlier(self, make_cell):
        bins = create_fixed_bins(['chr1'], [2100], 100)
        totals = [10] * 21
        totals[7] = 1000
        counts = _counts_from_totals(totals, n_cells=2)
        cells = [make_cell(i, median=10.0) for i in range(2)]
        result = filter_bins(counts, cells, bins)

        assert list(result.excluded_bins()) == [(7, 'h')]
        assert 7 not in result.good.indices
        assert len(result.good) == 20

    def test_normalizes_by_cell_median(self, two_chrom_bins, make_cell):
        counts = np.stack([
            np.array([[1, 1], [2, 2], [3, 3], [4, 4], [5, 5]]),
            np.array([[2, 2], [4, 4], [6, 6], [8, 8], [10, 10]]),
        ])
        cells = [make_cell(0, median=6.0), make_cell(1, median=12.0)]
        result = filter_bins(counts, cells, two_chrom_bins)
        np.testing.assert_allclose(result.bin_variances, 0.0, atol=1e-12)
        np.testing.assert_allclose(result.bin_means, np.array([2, 4, 6, 8, 10]) / 6.0)

    def test_empty_chromosome(self, two_chrom_bins, make_cell):
        counts = _counts_from_totals([10, 12, 14, 0, 0])
        cells = [make_cell(i, median=12.0) for i in range(3)]
        result = filter_bins(counts, cells, two_chrom_bins)

        np.testing.assert_array_equal(result.good.chrom_map, [0, 3, 3])
        assert len(result.good.chrom_indices(1)) == 0
        assert list(result.excluded_bins()) == [(3, 'l'), (4, 'l')]

    def test_idempotent(self, two_chrom_bins, make_cell):
        rng = np.random.default_rng(7)
        counts = rng.integers(0, 30, size=(3, 5, 2))
        cells = [make_cell(i, median=25.0) for i in range(3)]
        first = filter_bins(counts, cells, two_chrom_bins)
        second = filter_bins(counts, cells, two_chrom_bins)
        np.testing.assert_array_equal(first.good.indices, second.good.indices)
        np.testing.assert_array_equal(first.good.chrom_map, second.good.chrom_map)
        assert first.bad_tags == second.bad_tags

    def test_shape_mismatch(self, two_chrom_bins, make_cell):
        counts = np.zeros((2, 4, 2), dtype=int)
        with pytest.raises(DataShapeError):
            filter_bins(counts, [make_cell(0), make_cell(1)], two_chrom_bins)

    def test_cell_count_mismatch(self, two_chrom_bins, make_cell):
        counts = np.zeros((2, 5, 2), dtype=int)
        with pytest.raises(DataShapeError):
            filter_bins(counts, [make_cell(0)], two_chrom_bins)

    def test_zero_median(self, two_chrom_bins, make_cell):
        counts = _counts_from_totals([10, 12, 14, 16, 18], n_cells=1)
        with pytest.raises(DataShapeError):
            filter_bins(counts, [make_cell(0, median=0.0)], two_chrom_bins)


class TestGoodChromMap:

    def test_subset(self, two_chrom_bins):
        np.testing.assert_array_equal(good_chrom_map(two_chrom_bins, np.array([1, 2, 4])), [0, 2, 3])

    def test_first_chromosome_empty(self, two_chrom_bins):
        np.testing.assert_array_equal(good_chrom_map(two_chrom_bins, np.array([3, 4])), [0, 0, 2])

    def test_no_good_bins(self, two_chrom_bins):
        np.testing.assert_array_equal(good_chrom_map(two_chrom_bins, np.array([], dtype=np.int64)), [0, 0, 0])

    def test_good_bin_set_ranges(self):
        good = GoodBinSet(np.array([0, 2, 5, 6]), np.array([0, 2, 4]))
        assert good.n_chroms == 2
        np.testing.assert_array_equal(good.chrom_indices(1), [5, 6])
