"""
StrandHMM HMM module

Provides:
1. The 3-state strand-state HMM (CC, WC, WW) with uniform start
   probabilities and an analytically set, symmetric transition matrix
2. Numba-compiled Viterbi decoding in log space

Parameters are never re-estimated from data: transitions come from the
expected number of strand-state changes per cell and emissions from the
per-sample negative-binomial fit.
"""

import numpy as np
from numba import jit
from typing import Optional, Sequence, Tuple

from strandhmm.core.distributions import EmissionModel

STATES = ('CC', 'WC', 'WW')
CC, WC, WW = 0, 1, 2
EXCLUDED = -1

# Expected number of strand-state changes (SCE-like events) per cell genome-wide
DEFAULT_EXPECTED_CHANGES = 10.0


@jit(nopython=True, cache=False)
def _viterbi_numba(log_startprob, log_transmat, log_emit):
    """
    Numba-compiled Viterbi for a K-state HMM with precomputed emissions.

    Ties are resolved towards the lower state index, both when choosing
    the predecessor and when choosing the final state.

    Args:
        log_startprob: (K,) log start probabilities
        log_transmat: (K, K) log transition matrix
        log_emit: (T, K) log emission probability of each observation per state

    Returns:
        path: Most likely state sequence (int8)
        log_prob: Log probability of path
    """
    T = log_emit.shape[0]
    K = log_emit.shape[1]

    score = np.empty((T, K))
    backpointer = np.zeros((T, K), dtype=np.int8)

    for k in range(K):
        score[0, k] = log_startprob[k] + log_emit[0, k]

    for t in range(1, T):
        for j in range(K):
            best = score[t - 1, 0] + log_transmat[0, j]
            best_i = 0
            for i in range(1, K):
                cand = score[t - 1, i] + log_transmat[i, j]
                if cand > best:
                    best = cand
                    best_i = i
            score[t, j] = best + log_emit[t, j]
            backpointer[t, j] = best_i

    path = np.zeros(T, dtype=np.int8)
    log_prob = score[T - 1, 0]
    last = 0
    for k in range(1, K):
        if score[T - 1, k] > log_prob:
            log_prob = score[T - 1, k]
            last = k
    path[T - 1] = last

    for t in range(T - 2, -1, -1):
        path[t] = backpointer[t + 1, path[t + 1]]

    return path, log_prob


def transition_matrix(n_good_bins: int,
                      expected_changes: float = DEFAULT_EXPECTED_CHANGES,
                      n_states: int = len(STATES)) -> np.ndarray:
    """
    Symmetric transition matrix for a given number of decodable bins.

    p_trans = expected_changes / n_good_bins on every off-diagonal entry,
    1 - (n_states - 1) * p_trans on the diagonal. When there are too few
    bins for that to be a valid matrix, p_trans is capped at 1 / n_states.
    """
    if expected_changes < 0:
        raise ValueError(f"expected_changes must be non-negative, got {expected_changes}")
    if n_good_bins <= 0:
        p_trans = 1.0 / n_states
    else:
        p_trans = min(expected_changes / n_good_bins, 1.0 / n_states)

    transmat = np.full((n_states, n_states), p_trans)
    np.fill_diagonal(transmat, 1.0 - (n_states - 1) * p_trans)
    return transmat


class StrandStateHMM:
    """
    3-state HMM over per-bin (crick, watson) counts.

    States:
        0: CC (both homologs Crick)
        1: WC (one homolog of each)
        2: WW (both homologs Watson)

    This implementation uses log probabilities throughout for numerical stability.
    """

    def __init__(self, transmat: Optional[np.ndarray] = None,
                 emissions: Optional[Sequence[EmissionModel]] = None):
        self.n_states = len(STATES)
        self.states = STATES
        self.startprob_ = np.full(self.n_states, 1.0 / self.n_states)
        self.transmat_ = transmat
        self.emissions = list(emissions) if emissions is not None else None

        self._log_startprob: Optional[np.ndarray] = None
        self._log_transmat: Optional[np.ndarray] = None

    def set_emissions(self, emissions: Sequence[EmissionModel]) -> None:
        if len(emissions) != self.n_states:
            raise ValueError(f"Expected {self.n_states} emission models, got {len(emissions)}")
        self.emissions = list(emissions)

    def _compute_log_probs(self):
        """Convert probabilities to log space."""
        if self.transmat_ is None or self.emissions is None:
            raise ValueError("Transition matrix and emissions must be set before decoding")
        with np.errstate(divide='ignore'):  # log(0) -> -inf for forbidden transitions
            self._log_startprob = np.log(self.startprob_)
            self._log_transmat = np.log(np.asarray(self.transmat_, dtype=np.float64))

    def log_emissions(self, obs: np.ndarray) -> np.ndarray:
        """
        Log emission probabilities of each observation under each state.

        Args:
            obs: (T, 2) crick/watson counts

        Returns:
            (T, n_states) array
        """
        obs = np.asarray(obs).reshape(-1, 2)
        log_emit = np.empty((obs.shape[0], self.n_states))
        for k, model in enumerate(self.emissions):
            log_emit[:, k] = model.log_prob(obs)
        return log_emit

    def decode(self, obs: np.ndarray) -> Tuple[np.ndarray, float]:
        """
        Viterbi decoding.

        Returns:
            path: Most likely state sequence, shape (T,)
            log_prob: Log probability of the path (0.0 for an empty sequence)
        """
        self._compute_log_probs()
        obs = np.asarray(obs).reshape(-1, 2)
        if len(obs) == 0:
            return np.zeros(0, dtype=np.int8), 0.0

        log_emit = self.log_emissions(obs)
        return _viterbi_numba(self._log_startprob, self._log_transmat, log_emit)

    def predict(self, obs: np.ndarray) -> np.ndarray:
        """
        Predict most likely state sequence using Viterbi algorithm.

        Args:
            obs: (T, 2) crick/watson counts

        Returns:
            State sequence, shape (T,)
        """
        path, _ = self.decode(obs)
        return path
