"""
Negative-binomial emission models for the strand-state HMM.

Each state emits a (crick, watson) count pair. Channels are modelled as
conditionally independent given the state, so the joint probability is the
product of one negative binomial per channel. The EmissionModel interface
only promises a joint log-probability over channel vectors, so correlated
emission models can be added without touching the HMM.
"""

import math
from abc import ABC, abstractmethod
from typing import List, Sequence

import numpy as np
from scipy.stats import nbinom

from strandhmm.core.errors import ConfigurationError

# Expected rate in the channel that should carry no reads (CC watson, WW crick).
# Fixed placeholder, not estimated from data.
DEFAULT_ZERO_RATE = 0.5


class NegativeBinomial:
    """
    Negative binomial NB(p, r) over non-negative integers.

    P(k) = Gamma(k + r) / (Gamma(r) k!) * p^r * (1 - p)^k,
    with mean r (1 - p) / p. ``r`` may be any positive real.
    """

    def __init__(self, p: float, r: float):
        if not (math.isfinite(p) and 0.0 < p < 1.0):
            raise ConfigurationError(f"Negative binomial p must be in (0, 1), got {p}")
        if not (math.isfinite(r) and r > 0.0):
            raise ConfigurationError(f"Negative binomial r must be positive, got {r}")
        self.p = float(p)
        self.r = float(r)

    @property
    def mean(self) -> float:
        return self.r * (1.0 - self.p) / self.p

    @property
    def variance(self) -> float:
        return self.mean / self.p

    def log_pmf(self, k) -> np.ndarray:
        return nbinom.logpmf(k, self.r, self.p)

    def pmf(self, k) -> np.ndarray:
        return nbinom.pmf(k, self.r, self.p)

    def __repr__(self) -> str:
        return f"NegativeBinomial(p={self.p:.4g}, r={self.r:.4g})"


class EmissionModel(ABC):
    """Joint probability of a vector of channel observations."""

    @property
    @abstractmethod
    def n_channels(self) -> int:
        ...

    @abstractmethod
    def log_prob(self, obs: np.ndarray) -> np.ndarray:
        """
        Args:
            obs: (T, n_channels) integer observations

        Returns:
            (T,) log probabilities
        """

    def prob(self, obs: np.ndarray) -> np.ndarray:
        return np.exp(self.log_prob(obs))


class IndependentChannels(EmissionModel):
    """Product of independent per-channel marginals."""

    def __init__(self, marginals: Sequence[NegativeBinomial]):
        if not marginals:
            raise ConfigurationError("At least one channel distribution is required")
        self.marginals: List[NegativeBinomial] = list(marginals)

    @property
    def n_channels(self) -> int:
        return len(self.marginals)

    def log_prob(self, obs: np.ndarray) -> np.ndarray:
        obs = np.atleast_2d(np.asarray(obs))
        if obs.shape[1] != self.n_channels:
            raise ValueError(f"Expected {self.n_channels} channels, got {obs.shape[1]}")
        total = np.zeros(obs.shape[0], dtype=np.float64)
        for channel, dist in enumerate(self.marginals):
            total += dist.log_pmf(obs[:, channel])
        return total

    def __repr__(self) -> str:
        return f"IndependentChannels({self.marginals!r})"


def strand_state_emissions(median_bin_count: float, p: float,
                           zero_rate: float = DEFAULT_ZERO_RATE) -> List[IndependentChannels]:
    """
    Build the CC, WC and WW emission models for one cell.

    Channels are ordered (crick, watson). With baseline rate
    n = (M / 2) p / (1 - p), a WC bin expects M/2 reads per strand and the
    present strand of a CC or WW bin expects M reads.

    Args:
        median_bin_count: Median crick+watson count per bin for the cell (M)
        p: Dispersion parameter of the cell's sample
        zero_rate: Rate of the absent channel in CC/WW

    Returns:
        [CC, WC, WW] emission models
    """
    if not (math.isfinite(p) and 0.0 < p < 1.0):
        raise ConfigurationError(f"Dispersion parameter p must be in (0, 1), got {p}")
    if not (math.isfinite(median_bin_count) and median_bin_count > 0):
        raise ConfigurationError(f"Median bin count must be positive, got {median_bin_count}")

    n = median_bin_count / 2.0 * p / (1.0 - p)
    return [
        IndependentChannels([NegativeBinomial(p, 2 * n), NegativeBinomial(p, zero_rate)]),  # CC
        IndependentChannels([NegativeBinomial(p, n), NegativeBinomial(p, n)]),              # WC
        IndependentChannels([NegativeBinomial(p, zero_rate), NegativeBinomial(p, 2 * n)]),  # WW
    ]
