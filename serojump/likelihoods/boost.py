"""
Permanent-boost antibody kinetics.

Each infection adds a fixed, permanent boost to the individual's baseline
level. A measurement taken at time ``t`` therefore sees every infection
that happened strictly before ``t``.
"""

import math

import numpy as np

from .base import Likelihood, gaussian_log_kernel
from .observation import Observation


class PermanentBoostLikelihood(Likelihood):
    """
    Log-posterior of the permanent-boost model.

    The predicted value at time ``t`` is ``baseline + boost * n(t)`` where
    ``n(t)`` counts infection times strictly before ``t``. The prior is the
    sum of Gaussian kernels on ``baseline`` and ``boost`` and a Poisson-form
    term ``k log(lam) - lam`` on the number of infections ``k``, with
    ``lam = 2 * infection_rate``.

    Examples
    --------
    >>> model = PermanentBoostLikelihood()
    >>> model.evaluate(obs, state, config)  # doctest: +SKIP
    """

    def theory(self, observation: Observation, state) -> np.ndarray:
        infection_times = np.asarray(state.infection_times, dtype=float)
        # side='left' counts times strictly less than each sampling time
        n_before = np.searchsorted(infection_times, observation.times, side='left')
        return state.baseline + state.boost * n_before

    def log_prior(self, state, config) -> float:
        if not state.boost > 0:
            return -math.inf

        prior = gaussian_log_kernel(state.baseline, config.baseline_mean, config.baseline_sd)
        prior += gaussian_log_kernel(state.boost, config.target_boost, config.boost_sd)
        return prior + self.log_count_prior(len(state.infection_times), config.poisson_rate)

    @staticmethod
    def log_count_prior(k: int, lam: float) -> float:
        """Poisson-form log-prior on the infection count (no factorial term)."""
        if lam <= 0:
            return 0.0 if k == 0 else -math.inf
        return k * math.log(lam) - lam
