"""
Shared pytest fixtures for StrandHMM tests.
"""
import os
import tempfile

import numpy as np
import pysam
import pytest

from strandhmm.core.bam_reader import CellInfo
from strandhmm.core.intervals import GenomeBins, Interval


@pytest.fixture
def two_chrom_bins():
    """Bins 0-2 on chrom 0 and bins 3-4 on chrom 1, 100 bp each."""
    intervals = [Interval(0, 0, 100), Interval(0, 100, 200), Interval(0, 200, 300),
                 Interval(1, 0, 100), Interval(1, 100, 200)]
    return GenomeBins.from_intervals(intervals, ['chr1', 'chr2'])


@pytest.fixture
def make_cell():
    """Factory for CellInfo objects."""
    def _make(i=0, sample='sampleA', median=10.0, name=None):
        return CellInfo(id=i, name=name or f'cell{i}', sample_name=sample,
                        median_bin_count=median)
    return _make


@pytest.fixture
def strand_blocks():
    """
    One cell, 100 bins: 60 watson-only bins followed by 40 crick-only bins.
    Counts are (crick, watson).
    """
    rng = np.random.default_rng(1)
    counts = np.zeros((100, 2), dtype=np.int64)
    counts[:60, 0] = rng.integers(0, 2, 60)
    counts[:60, 1] = rng.integers(40, 61, 60)
    counts[60:, 0] = rng.integers(40, 61, 40)
    counts[60:, 1] = rng.integers(0, 2, 40)
    return counts


@pytest.fixture
def temp_dir():
    """Temporary directory for file operations."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def make_bam():
    """
    Factory writing a small BAM file.

    Each read is a dict with keys chrom (reference id), pos, and optional
    reverse, flag, mapq.
    """
    def _make(path, reads, chroms=(('chr1', 1000), ('chr2', 500)), samples=('sampleA',)):
        header = {
            'HD': {'VN': '1.6', 'SO': 'coordinate'},
            'SQ': [{'SN': name, 'LN': length} for name, length in chroms],
        }
        if samples:
            header['RG'] = [{'ID': f'rg{i}', 'SM': sm} for i, sm in enumerate(samples)]
        with pysam.AlignmentFile(path, 'wb', header=header) as out:
            for n, r in enumerate(reads):
                a = pysam.AlignedSegment(out.header)
                a.query_name = f"read{n}"
                a.query_sequence = 'A' * 20
                a.flag = r.get('flag', 0) | (16 if r.get('reverse') else 0)
                a.reference_id = r['chrom']
                a.reference_start = r['pos']
                a.mapping_quality = r.get('mapq', 60)
                if not a.is_unmapped:
                    a.cigartuples = [(0, 20)]
                a.query_qualities = pysam.qualitystring_to_array('I' * 20)
                out.write(a)
        return path
    return _make
