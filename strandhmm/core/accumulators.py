"""
Running statistics used across the pipeline.

Two separate accumulators with different memory contracts:
- MeanVarAccumulator: O(1) per tracked element, Welford updates
- MedianAccumulator: buffers every observation, exact median
"""

import numpy as np
from typing import Tuple, Union

ArrayLike = Union[float, int, np.ndarray]


class MeanVarAccumulator:
    """
    Welford running mean and population variance.

    The accumulator can track a single value (shape ``()``) or an array of
    independent values at once; each call to ``add`` is one observation per
    element. Filtering uses the array form to stream over cells while
    tracking every bin.
    """

    def __init__(self, shape: Tuple[int, ...] = ()):
        self.count = 0
        self._mean = np.zeros(shape, dtype=np.float64)
        self._m2 = np.zeros(shape, dtype=np.float64)

    def add(self, x: ArrayLike) -> None:
        x = np.asarray(x, dtype=np.float64)
        if x.shape != self._mean.shape:
            raise ValueError(f"Expected observation of shape {self._mean.shape}, got {x.shape}")
        self.count += 1
        delta = x - self._mean
        self._mean = self._mean + delta / self.count
        self._m2 = self._m2 + delta * (x - self._mean)

    def extend(self, values) -> 'MeanVarAccumulator':
        for x in values:
            self.add(x)
        return self

    @property
    def mean(self) -> ArrayLike:
        return self._unwrap(self._mean)

    @property
    def variance(self) -> ArrayLike:
        if self.count == 0:
            return self._unwrap(np.zeros_like(self._m2))
        return self._unwrap(self._m2 / self.count)

    @property
    def std(self) -> ArrayLike:
        return self._unwrap(np.sqrt(self.variance))

    @staticmethod
    def _unwrap(a: np.ndarray) -> ArrayLike:
        return float(a) if a.ndim == 0 else a


class MedianAccumulator:
    """Buffers observations and reports their exact median."""

    def __init__(self):
        self._values = []

    def add(self, x: float) -> None:
        self._values.append(x)

    def extend(self, values) -> 'MedianAccumulator':
        self._values.extend(values)
        return self

    @property
    def count(self) -> int:
        return len(self._values)

    @property
    def median(self) -> float:
        if not self._values:
            raise ValueError("Median of an empty accumulator is undefined")
        return float(np.median(self._values))


def median_bin_counts(counts: np.ndarray) -> np.ndarray:
    """
    Median of crick+watson over all bins, one value per cell.

    Args:
        counts: (n_cells, n_bins, 2) count array

    Returns:
        (n_cells,) float array
    """
    medians = np.empty(counts.shape[0], dtype=np.float64)
    for i, cell_counts in enumerate(counts):
        medians[i] = MedianAccumulator().extend(cell_counts.sum(axis=1).tolist()).median
    return medians
