"""Bin filtering, dispersion estimation, decoding and reporting."""

from strandhmm.inference.filtering import (
    GoodBinSet,
    BinFilterResult,
    filter_bins,
)
from strandhmm.inference.dispersion import SampleInfo, estimate_dispersion
from strandhmm.inference.engine import build_cell_emissions, decode_cell
from strandhmm.inference.parallel import classify_cells
from strandhmm.inference.output import (
    write_count_table,
    write_cell_info,
    write_sample_info,
    write_removed_bins,
)

__all__ = [
    'GoodBinSet',
    'BinFilterResult',
    'filter_bins',
    'SampleInfo',
    'estimate_dispersion',
    'build_cell_emissions',
    'decode_cell',
    'classify_cells',
    'write_count_table',
    'write_cell_info',
    'write_sample_info',
    'write_removed_bins',
]
