"""
SeroJump: reversible-jump MCMC inference of infection histories.

SeroJump infers, from noisy longitudinal biomarker (antibody titre)
measurements per individual, the unknown number and timing of infection
events using a reversible-jump MCMC sampler with multi-chain convergence
diagnostics.
"""

__version__ = "0.1.0"

from . import likelihoods
from . import samplers

from .likelihoods import Observation, InvalidDataset
from .samplers import (
    GlobalConfig,
    InvalidConfig,
    start_run,
    step,
    diagnostics,
    summary,
    cancel,
    run_rjmcmc,
    print_summary,
)

__all__ = [
    "likelihoods",
    "samplers",
    "Observation",
    "InvalidDataset",
    "GlobalConfig",
    "InvalidConfig",
    "start_run",
    "step",
    "diagnostics",
    "summary",
    "cancel",
    "run_rjmcmc",
    "print_summary",
]
