"""StrandHMM per-cell emission construction and per-chromosome decoding."""

import warnings
from typing import List, Optional

import numpy as np

from strandhmm.core.bam_reader import CellInfo
from strandhmm.core.distributions import DEFAULT_ZERO_RATE, IndependentChannels, strand_state_emissions
from strandhmm.core.errors import ConfigurationError, DegenerateInputWarning
from strandhmm.core.hmm import EXCLUDED, StrandStateHMM
from strandhmm.inference.dispersion import SampleInfo
from strandhmm.inference.filtering import GoodBinSet


def build_cell_emissions(cell: CellInfo, sample: SampleInfo,
                         zero_rate: float = DEFAULT_ZERO_RATE) -> List[IndependentChannels]:
    """
    CC/WC/WW emission models for one cell from its median and its sample's p.

    Raises:
        ConfigurationError: with sample and cell context when the sample is
            degenerate or the cell's median is not positive
    """
    try:
        return strand_state_emissions(cell.median_bin_count, sample.p, zero_rate)
    except ConfigurationError as e:
        raise ConfigurationError(str(e), sample=sample.name, cell=cell.name) from e


def decode_chromosome(hmm: StrandStateHMM, cell_counts: np.ndarray,
                      good: GoodBinSet, chrom: int) -> np.ndarray:
    """
    Viterbi path over the good bins of one chromosome.

    Args:
        hmm: HMM with transitions and this cell's emissions set
        cell_counts: (n_bins, 2) counts of the cell
        good: Good-bin set
        chrom: Chromosome index

    Returns:
        State codes for ``good.chrom_indices(chrom)``; empty if the
        chromosome has no good bins
    """
    idx = good.chrom_indices(chrom)
    if len(idx) == 0:
        return np.zeros(0, dtype=np.int8)
    return hmm.predict(cell_counts[idx])


def decode_cell(cell_counts: np.ndarray, cell: CellInfo, sample: SampleInfo,
                good: GoodBinSet, transmat: np.ndarray,
                zero_rate: float = DEFAULT_ZERO_RATE,
                chrom_names: Optional[List[str]] = None) -> np.ndarray:
    """
    Label every bin of one cell, chromosome by chromosome.

    Decoding never crosses a chromosome boundary. Bins outside the good-bin
    set keep the EXCLUDED label.

    Returns:
        (n_bins,) int8 labels
    """
    hmm = StrandStateHMM(transmat, build_cell_emissions(cell, sample, zero_rate))
    labels = np.full(cell_counts.shape[0], EXCLUDED, dtype=np.int8)

    for chrom in range(good.n_chroms):
        idx = good.chrom_indices(chrom)
        if len(idx) == 0:
            name = chrom_names[chrom] if chrom_names else str(chrom)
            warnings.warn(f"No good bins on chromosome {name}", DegenerateInputWarning)
            continue
        labels[idx] = decode_chromosome(hmm, cell_counts, good, chrom)

    return labels
