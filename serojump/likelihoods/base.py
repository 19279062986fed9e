"""
Base likelihood class for per-individual biomarker models.
"""

import math
from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

import numpy as np

from .observation import Observation

if TYPE_CHECKING:
    from ..samplers.config import GlobalConfig
    from ..samplers.state import LatentState


LOG_2PI = math.log(2.0 * math.pi)


def gaussian_log_density(residuals: np.ndarray, sd: float) -> float:
    """Sum of Gaussian log-densities of ``residuals`` with standard deviation ``sd``."""
    residuals = np.asarray(residuals, dtype=float)
    var = sd * sd
    return float(-0.5 * np.sum(residuals * residuals) / var
                 - 0.5 * residuals.size * (LOG_2PI + math.log(var)))


def gaussian_log_kernel(x: float, mean: float, sd: float) -> float:
    """Unnormalized Gaussian log-prior kernel ``-0.5 * ((x - mean) / sd) ** 2``."""
    z = (x - mean) / sd
    return -0.5 * z * z


class Likelihood(ABC):
    """
    Abstract base class for all likelihoods in SeroJump.

    A likelihood scores one individual's latent state against that
    individual's observations. :meth:`evaluate` returns the unnormalized
    log-posterior (log-likelihood of the data plus log-prior of the state)
    that the accept/reject step compares.

    Implementations must never raise for numerical degeneracy: an
    impossible state scores ``-inf``.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or self.__class__.__name__

    @abstractmethod
    def theory(self, observation: Observation, state: 'LatentState') -> np.ndarray:
        """
        Predicted biomarker value at each of the observation's sampling times.

        Returns
        -------
        np.ndarray
            Theory vector matching ``observation.values``.
        """

    @abstractmethod
    def log_prior(self, state: 'LatentState', config: 'GlobalConfig') -> float:
        """Log-prior of ``state`` (may be ``-inf``)."""

    def log_likelihood(self, observation: Observation, state: 'LatentState',
                       config: 'GlobalConfig') -> float:
        """Gaussian log-likelihood of the observed values given ``state``."""
        residuals = observation.values - self.theory(observation, state)
        return gaussian_log_density(residuals, config.observation_sd)

    def evaluate(self, observation: Observation, state: 'LatentState',
                 config: 'GlobalConfig') -> float:
        """
        Compute the log-posterior of ``state``.

        This is the main method called by the sampler.
        """
        prior = self.log_prior(state, config)
        if prior == -math.inf or math.isnan(prior):
            return -math.inf
        value = self.log_likelihood(observation, state, config) + prior
        return value if not math.isnan(value) else -math.inf

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
