"""Small synthetic cohorts shared by the test modules."""

import numpy as np

from serojump.likelihoods import Observation

SAMPLING_TIMES = [0.0, 6.0, 12.0]
TRUE_INFECTION_TIMES = [2.0, 4.0, 5.5, 8.0, 10.0]


def make_observations(baseline=2.0, boost=1.5, noise_sd=0.05, seed=2024,
                      infection_times=TRUE_INFECTION_TIMES, times=SAMPLING_TIMES):
    """One individual per infection time, each boosted once before the last sample."""
    rng = np.random.default_rng(seed)
    times = np.asarray(times, dtype=float)
    observations = []
    for i, t_inf in enumerate(infection_times):
        values = baseline + boost * (t_inf < times) + rng.normal(0.0, noise_sd, times.size)
        observations.append(Observation(f"ID{i + 1}", times, values))
    return observations
