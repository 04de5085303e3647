"""Per-sample negative-binomial dispersion estimation."""

import math
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from strandhmm.core.accumulators import MeanVarAccumulator
from strandhmm.core.bam_reader import CellInfo
from strandhmm.core.errors import DegenerateInputWarning
from strandhmm.inference.filtering import GoodBinSet


@dataclass
class SampleInfo:
    """Per-cell (mean, variance) pairs of one sample and its fitted p."""
    name: str
    cells: List[str] = field(default_factory=list)
    means: List[float] = field(default_factory=list)
    variances: List[float] = field(default_factory=list)
    p: float = float('nan')

    @property
    def n_cells(self) -> int:
        return len(self.means)

    @property
    def is_degenerate(self) -> bool:
        return not (math.isfinite(self.p) and 0.0 < self.p < 1.0)

    def fit(self) -> float:
        """
        Method-of-moments fit shared by all cells of the sample.

        p = sum(mean_i^2) / sum(mean_i * var_i). Not clamped; values
        outside (0, 1) mark a degenerate sample.
        """
        means = np.asarray(self.means, dtype=np.float64)
        variances = np.asarray(self.variances, dtype=np.float64)
        with np.errstate(divide='ignore', invalid='ignore'):
            self.p = float(np.dot(means, means) / np.dot(means, variances))
        return self.p


def cell_mean_variance(cell_counts: np.ndarray, good: GoodBinSet) -> Tuple[float, float]:
    """Mean and population variance of raw crick+watson over good bins."""
    acc = MeanVarAccumulator()
    acc.extend(cell_counts[good.indices].sum(axis=1).tolist())
    return acc.mean, acc.variance


def estimate_dispersion(counts: np.ndarray, cells: Sequence[CellInfo],
                        good: GoodBinSet) -> Dict[str, SampleInfo]:
    """
    Group cells by sample and fit one dispersion parameter per sample.

    Degenerate samples are reported with a DegenerateInputWarning and kept
    with their unclamped p so the caller can decide what to do with them.

    Returns:
        Dict of sample name -> SampleInfo, sorted by sample name
    """
    samples: Dict[str, SampleInfo] = {}
    for cell, cell_counts in zip(cells, counts):
        mean, variance = cell_mean_variance(cell_counts, good)
        sample = samples.setdefault(cell.sample_name, SampleInfo(cell.sample_name))
        sample.cells.append(cell.name)
        sample.means.append(mean)
        sample.variances.append(variance)

    for sample in samples.values():
        sample.fit()
        if sample.is_degenerate:
            warnings.warn(
                f"Sample {sample.name}: dispersion p = {sample.p} is outside (0, 1) "
                f"({sample.n_cells} cells); its cells cannot be classified",
                DegenerateInputWarning,
            )

    return dict(sorted(samples.items()))
