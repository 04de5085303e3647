"""StrandHMM (cell x chromosome) parallel decoding and worker management."""

import os
import sys
import time
import warnings
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from strandhmm.core.bam_reader import CellInfo
from strandhmm.core.distributions import DEFAULT_ZERO_RATE, strand_state_emissions
from strandhmm.core.errors import ConfigurationError, DegenerateInputWarning
from strandhmm.core.hmm import DEFAULT_EXPECTED_CHANGES, EXCLUDED, StrandStateHMM, transition_matrix
from strandhmm.inference.dispersion import SampleInfo
from strandhmm.inference.engine import build_cell_emissions, decode_chromosome
from strandhmm.inference.filtering import GoodBinSet


# Global for worker processes
_worker_params = None


def _init_decode_worker(counts: np.ndarray, good: GoodBinSet, transmat: np.ndarray,
                        cell_params: Dict[int, Tuple[float, float]], zero_rate: float):
    """Initialize worker process with the read-only decoding inputs."""
    global _worker_params
    _worker_params = {
        'counts': counts,
        'good': good,
        'transmat': transmat,
        'cell_params': cell_params,
        'zero_rate': zero_rate,
    }


def _decode_task(task: Tuple[int, int]) -> Tuple[int, int, np.ndarray]:
    """Decode one chromosome of one cell. Returns (cell index, chrom, path)."""
    cell_idx, chrom = task
    params = _worker_params
    median, p = params['cell_params'][cell_idx]
    hmm = StrandStateHMM(params['transmat'],
                         strand_state_emissions(median, p, params['zero_rate']))
    path = decode_chromosome(hmm, params['counts'][cell_idx], params['good'], chrom)
    return cell_idx, chrom, path


def _run_tasks(tasks: List[Tuple[int, int]], n_cores: int, initargs: tuple,
               verbose: bool):
    """Yield (task, result, error) for every task, in completion order."""
    global _worker_params
    if n_cores <= 1:
        _init_decode_worker(*initargs)
        try:
            for task in tasks:
                try:
                    yield task, _decode_task(task), None
                except Exception as e:
                    yield task, None, e
        finally:
            _worker_params = None
        return

    if verbose:
        print(f"  Initializing {n_cores} worker processes...")
        sys.stdout.flush()

    with ProcessPoolExecutor(
        max_workers=n_cores,
        initializer=_init_decode_worker,
        initargs=initargs
    ) as executor:
        futures = {executor.submit(_decode_task, task): task for task in tasks}
        for future in as_completed(futures):
            try:
                yield futures[future], future.result(), None
            except Exception as e:
                yield futures[future], None, e


def classify_cells(counts: np.ndarray, cells: Sequence[CellInfo],
                   samples: Dict[str, SampleInfo], good: GoodBinSet,
                   n_cores: int = 1,
                   expected_changes: float = DEFAULT_EXPECTED_CHANGES,
                   zero_rate: float = DEFAULT_ZERO_RATE,
                   chrom_names: Optional[List[str]] = None,
                   verbose: bool = True) -> Tuple[np.ndarray, Dict[int, str]]:
    """
    Assign a strand state to every good bin of every cell.

    Emission models are validated per cell before any decoding starts; a
    cell whose sample is degenerate is reported as failed and skipped.
    Decoding runs one task per (cell, chromosome). A failing task fails its
    cell only: that cell's labels are reset to EXCLUDED and other cells are
    unaffected.

    Args:
        counts: (n_cells, n_bins, 2) crick/watson counts
        cells: Cell info aligned with counts
        samples: Fitted samples keyed by name
        good: Good-bin set and its chromosome map
        n_cores: Worker processes (<= 0 uses all CPUs, 1 runs in-process)
        expected_changes: Expected strand-state changes per cell genome-wide

    Returns:
        labels: (n_cells, n_bins) int8 state codes, EXCLUDED outside good bins
        failures: cell index -> error message
    """
    if n_cores <= 0:
        n_cores = os.cpu_count() or 1

    start_time = time.time()
    n_cells, n_bins = counts.shape[0], counts.shape[1]
    labels = np.full((n_cells, n_bins), EXCLUDED, dtype=np.int8)
    failures: Dict[int, str] = {}
    transmat = transition_matrix(len(good), expected_changes)

    # Fail early, per cell, on broken emission parameters
    cell_params: Dict[int, Tuple[float, float]] = {}
    for i, cell in enumerate(cells):
        sample = samples[cell.sample_name]
        try:
            build_cell_emissions(cell, sample, zero_rate)
        except ConfigurationError as e:
            failures[i] = str(e)
            if verbose:
                print(f"[Warning] Skipping cell {cell.name}: {e}")
            continue
        cell_params[i] = (cell.median_bin_count, sample.p)

    chroms = []
    for chrom in range(good.n_chroms):
        if len(good.chrom_indices(chrom)) == 0:
            name = chrom_names[chrom] if chrom_names else str(chrom)
            warnings.warn(f"No good bins on chromosome {name}", DegenerateInputWarning)
        else:
            chroms.append(chrom)

    tasks = [(i, chrom) for i in sorted(cell_params) for chrom in chroms]
    if verbose:
        print(f"Decoding {len(cell_params)} cells x {len(chroms)} chromosomes "
              f"({len(tasks)} tasks) with {n_cores} cores...")
        sys.stdout.flush()

    completed = 0
    initargs = (counts, good, transmat, cell_params, zero_rate)
    for (i, chrom), result, error in _run_tasks(tasks, n_cores, initargs, verbose):
        completed += 1
        if error is not None:
            name = chrom_names[chrom] if chrom_names else str(chrom)
            failures.setdefault(i, f"Decoding failed on chromosome {name}: {error}")
            if verbose:
                print(f"\nError decoding cell {cells[i].name}, chromosome {name}: {error}")
            continue
        _, _, path = result
        labels[i, good.chrom_indices(chrom)] = path

        if verbose:
            elapsed = time.time() - start_time
            print(f"\r  Tasks: {completed}/{len(tasks)} | {elapsed:.1f}s", end='')
            sys.stdout.flush()

    if verbose and tasks:
        print()  # Newline after progress

    for i in failures:
        labels[i, :] = EXCLUDED

    return labels, failures
