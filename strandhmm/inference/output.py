"""StrandHMM tab-separated report writers."""

from typing import Dict, List, Sequence

import numpy as np
import pandas as pd

from strandhmm.core.bam_reader import CRICK, WATSON, CellInfo
from strandhmm.core.hmm import EXCLUDED, STATES
from strandhmm.core.intervals import GenomeBins
from strandhmm.inference.dispersion import SampleInfo
from strandhmm.inference.filtering import BinFilterResult

EXCLUDED_LABEL = 'None'

CELL_INFO_HEADER = [
    "# medbin:  Median total count (w+c) per bin",
    "# mapped:  Total number of reads seen",
    "# suppl:   Supplementary, secondary or QC-failed reads (filtered out)",
    "# dupl:    Reads filtered out as PCR duplicates",
    "# mapq:    Reads filtered out due to low mapping quality",
    "# read2:   Reads filtered out as 2nd read of pair",
    "# good:    Reads used for counting.",
]


def labels_to_strings(labels: np.ndarray) -> np.ndarray:
    """Map state codes to 'CC'/'WC'/'WW', EXCLUDED to 'None'."""
    names = np.array(list(STATES) + [EXCLUDED_LABEL], dtype=object)
    codes = np.where(labels == EXCLUDED, len(STATES), labels)
    return names[codes]


def _bin_frame(bins: GenomeBins) -> pd.DataFrame:
    return pd.DataFrame({
        'chrom': [bins.chrom_names[b.chrom] for b in bins.intervals],
        'start': [b.start for b in bins.intervals],
        'end': [b.end for b in bins.intervals],
    })


def count_table(counts: np.ndarray, cells: Sequence[CellInfo], bins: GenomeBins,
                labels: np.ndarray) -> pd.DataFrame:
    """
    One row per bin per cell, in bin-then-cell order: bins in genome order,
    and within a bin the cells in input order.
    """
    n_cells = len(cells)
    if n_cells == 0:
        return pd.DataFrame(columns=['chrom', 'start', 'end', 'sample', 'cell', 'c', 'w', 'class'])

    df = _bin_frame(bins).loc[np.repeat(np.arange(len(bins)), n_cells)].reset_index(drop=True)
    df['sample'] = np.tile([c.sample_name for c in cells], len(bins))
    df['cell'] = np.tile([c.name for c in cells], len(bins))
    df['c'] = counts[:, :, CRICK].T.ravel()
    df['w'] = counts[:, :, WATSON].T.ravel()
    df['class'] = labels_to_strings(np.asarray(labels).T.ravel())
    return df


def write_count_table(path: str, counts: np.ndarray, cells: Sequence[CellInfo],
                      bins: GenomeBins, labels: np.ndarray) -> None:
    count_table(counts, cells, bins, labels).to_csv(path, sep='\t', index=False)


def write_cell_info(path: str, cells: Sequence[CellInfo]) -> None:
    """Cell summary sorted by (sample, cell id)."""
    ordered = sorted(cells, key=lambda c: (c.sample_name, c.id))
    df = pd.DataFrame({
        'sample': [c.sample_name for c in ordered],
        'cell': [c.name for c in ordered],
        'medbin': [c.median_bin_count for c in ordered],
        'mapped': [c.n_mapped for c in ordered],
        'suppl': [c.n_supplementary for c in ordered],
        'dupl': [c.n_pcr_dups for c in ordered],
        'mapq': [c.n_low_mapq for c in ordered],
        'read2': [c.n_read2s for c in ordered],
        'good': [c.n_counted for c in ordered],
    })
    with open(path, 'w') as f:
        for line in CELL_INFO_HEADER:
            f.write(line + '\n')
        df.to_csv(f, sep='\t', index=False)


def _join(values: List[float]) -> str:
    return ','.join(f"{v:g}" for v in values)


def write_sample_info(path: str, samples: Dict[str, SampleInfo]) -> None:
    df = pd.DataFrame({
        'sample': list(samples),
        'cells': [s.n_cells for s in samples.values()],
        'p': [s.p for s in samples.values()],
        'means': [_join(s.means) for s in samples.values()],
        'vars': [_join(s.variances) for s in samples.values()],
    })
    df.to_csv(path, sep='\t', index=False)


def write_removed_bins(path: str, bins: GenomeBins, result: BinFilterResult) -> None:
    """BED file of removed bins with their 'l'/'h' tag, ascending."""
    rows = [(bins.chrom_names[bins.intervals[b].chrom], bins.intervals[b].start,
             bins.intervals[b].end, tag) for b, tag in result.excluded_bins()]
    df = pd.DataFrame(rows, columns=['chrom', 'start', 'end', 'tag'])
    df.to_csv(path, sep='\t', index=False, header=False)
