"""
Likelihoods for SeroJump.

Observations of individuals and the models that score latent states
against them.
"""

from .observation import Observation, InvalidDataset, validate_observations
from .base import Likelihood, gaussian_log_density, gaussian_log_kernel
from .boost import PermanentBoostLikelihood

__all__ = [
    'Observation',
    'InvalidDataset',
    'validate_observations',
    'Likelihood',
    'gaussian_log_density',
    'gaussian_log_kernel',
    'PermanentBoostLikelihood',
]
