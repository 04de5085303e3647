"""
Unit tests for the StrandHMM HMM module.

Tests cover:
- Transition matrix construction
- Viterbi correctness against brute force
- Tie-breaking and determinism
- Decoding of clear strand-state blocks
"""
import itertools

import numpy as np
import pytest

from strandhmm.core.distributions import strand_state_emissions
from strandhmm.core.hmm import (
    CC, STATES, WC, WW,
    StrandStateHMM,
    _viterbi_numba,
    transition_matrix,
)


@pytest.fixture
def block_hmm():
    return StrandStateHMM(transition_matrix(100), strand_state_emissions(100, 0.5))


class TestTransitionMatrix:

    def test_expected_changes(self):
        T = transition_matrix(100, expected_changes=10)
        np.testing.assert_allclose(np.diag(T), 0.8)
        assert T[0, 1] == pytest.approx(0.1)
        assert T[2, 0] == pytest.approx(0.1)
        np.testing.assert_allclose(T.sum(axis=1), 1.0)

    def test_symmetric(self):
        T = transition_matrix(12345)
        np.testing.assert_allclose(T, T.T)

    @pytest.mark.parametrize("n_bins", [0, 5, 20])
    def test_few_bins_is_uniform(self, n_bins):
        np.testing.assert_allclose(transition_matrix(n_bins), np.full((3, 3), 1 / 3))

    def test_negative_expected_changes(self):
        with pytest.raises(ValueError):
            transition_matrix(100, expected_changes=-1)


class TestViterbiKernel:

    def _path_score(self, path, log_start, log_trans, log_emit):
        score = log_start[path[0]] + log_emit[0, path[0]]
        for t in range(1, len(path)):
            score += log_trans[path[t - 1], path[t]] + log_emit[t, path[t]]
        return score

    def test_matches_brute_force(self):
        rng = np.random.default_rng(0)
        log_emit = np.log(rng.uniform(0.01, 1.0, size=(5, 3)))
        log_start = np.log(np.full(3, 1 / 3))
        log_trans = np.log(transition_matrix(10, expected_changes=2))

        best = max(itertools.product(range(3), repeat=5),
                   key=lambda p: self._path_score(p, log_start, log_trans, log_emit))

        path, log_prob = _viterbi_numba(log_start, log_trans, log_emit)
        assert tuple(path) == best
        assert log_prob == pytest.approx(self._path_score(best, log_start, log_trans, log_emit))

    def test_ties_prefer_lower_state(self):
        log_emit = np.zeros((6, 3))
        log_start = np.log(np.full(3, 1 / 3))
        log_trans = np.log(transition_matrix(100))
        path, _ = _viterbi_numba(log_start, log_trans, log_emit)
        np.testing.assert_array_equal(path, np.zeros(6, dtype=np.int8))

    def test_single_observation(self):
        log_emit = np.log(np.array([[0.1, 0.2, 0.7]]))
        path, log_prob = _viterbi_numba(np.log(np.full(3, 1 / 3)),
                                        np.log(transition_matrix(100)), log_emit)
        assert list(path) == [WW]
        assert log_prob == pytest.approx(np.log(0.7 / 3))


class TestStrandStateHMM:

    def test_states(self):
        model = StrandStateHMM()
        assert model.states == ('CC', 'WC', 'WW')
        assert STATES[CC] == 'CC' and STATES[WC] == 'WC' and STATES[WW] == 'WW'
        np.testing.assert_allclose(model.startprob_, 1 / 3)

    def test_requires_parameters(self):
        with pytest.raises(ValueError):
            StrandStateHMM().predict(np.array([[1, 1]]))

    def test_set_emissions_length(self):
        model = StrandStateHMM(transition_matrix(100))
        with pytest.raises(ValueError):
            model.set_emissions(strand_state_emissions(100, 0.5)[:2])

    def test_empty_sequence(self, block_hmm):
        path, log_prob = block_hmm.decode(np.zeros((0, 2), dtype=int))
        assert len(path) == 0
        assert log_prob == 0.0

    def test_log_emissions_shape(self, block_hmm):
        log_emit = block_hmm.log_emissions(np.array([[0, 50], [50, 0], [25, 25]]))
        assert log_emit.shape == (3, 3)
        assert np.argmax(log_emit[0]) == WW
        assert np.argmax(log_emit[1]) == CC
        assert np.argmax(log_emit[2]) == WC

    def test_decodes_blocks(self, block_hmm):
        obs = np.array([[0, 50]] * 5 + [[25, 25]] * 5 + [[50, 0]] * 5)
        path = block_hmm.predict(obs)
        np.testing.assert_array_equal(path, [WW] * 5 + [WC] * 5 + [CC] * 5)

    def test_log_probability_finite(self, block_hmm):
        obs = np.array([[0, 50]] * 10)
        _, log_prob = block_hmm.decode(obs)
        assert np.isfinite(log_prob)
        assert log_prob < 0

    def test_deterministic(self, block_hmm):
        obs = np.array([[3, 40], [20, 22], [0, 51], [48, 1]] * 5)
        np.testing.assert_array_equal(block_hmm.predict(obs), block_hmm.predict(obs))
