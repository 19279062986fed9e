#!/usr/bin/env python3
"""
Run Configuration for SeroJump RJ-MCMC.

This module provides the study-wide configuration shared read-only by every
chain: model hyperparameters (priors and measurement noise) and the
sampling schedule (chains, steps, burn-in, thinning).
"""

import math
from dataclasses import dataclass, asdict, fields
from typing import Dict, Any, Optional

from .constants import (
    DEFAULT_INFECTION_RATE, DEFAULT_STUDY_DURATION,
    DEFAULT_BASELINE_MEAN, DEFAULT_BASELINE_SD,
    DEFAULT_TARGET_BOOST, DEFAULT_BOOST_SD, DEFAULT_OBSERVATION_SD,
    DEFAULT_TOTAL_STEPS, DEFAULT_BURN_IN, DEFAULT_THINNING,
    POISSON_RATE_MULTIPLIER,
)
from .multicore import get_optimal_chain_count


class InvalidConfig(ValueError):
    """Raised when a :class:`GlobalConfig` cannot drive a run."""


@dataclass(frozen=True)
class GlobalConfig:
    """
    Study-wide model and sampler configuration.

    The configuration is immutable so that it can be shared by all chains
    (and worker threads) of a run without copying.

    Parameters
    ----------
    infection_rate : float
        Prior probability of infection in [0, 1]. Sets the Poisson prior
        on the infection count and the prior odds of birth/death moves.
    study_duration : float
        Length T of the study; infection times live in [0, T].
    baseline_mean, baseline_sd : float
        Gaussian prior on the individual baseline level.
    target_boost, boost_sd : float
        Gaussian prior on the (positive) boost added by each infection.
    observation_sd : float
        Measurement noise standard deviation.
    n_chains : int, optional
        Number of independent chains. If None, chosen from ``total_steps``
        (4 chains, 2 for long runs).
    total_steps : int
        Number of global iterations, burn-in included.
    burn_in : int
        Iterations discarded before samples are retained.
    thinning : int
        Keep every ``thinning``-th post-burn-in iteration.

    Examples
    --------
    >>> config = GlobalConfig(infection_rate=0.5, total_steps=3000, burn_in=500)
    >>> config.num_chains
    4
    >>> GlobalConfig.from_dict({'study_duration': 24, 'thinning': 5}).study_duration
    24.0
    """

    infection_rate: float = DEFAULT_INFECTION_RATE
    study_duration: float = DEFAULT_STUDY_DURATION
    baseline_mean: float = DEFAULT_BASELINE_MEAN
    baseline_sd: float = DEFAULT_BASELINE_SD
    target_boost: float = DEFAULT_TARGET_BOOST
    boost_sd: float = DEFAULT_BOOST_SD
    observation_sd: float = DEFAULT_OBSERVATION_SD
    n_chains: Optional[int] = None
    total_steps: int = DEFAULT_TOTAL_STEPS
    burn_in: int = DEFAULT_BURN_IN
    thinning: int = DEFAULT_THINNING

    def __post_init__(self):
        """Normalize numeric types and validate."""
        for name in ('infection_rate', 'study_duration', 'baseline_mean',
                     'baseline_sd', 'target_boost', 'boost_sd', 'observation_sd'):
            object.__setattr__(self, name, self._as_float(name, getattr(self, name)))
        for name in ('total_steps', 'burn_in', 'thinning'):
            object.__setattr__(self, name, self._as_int(name, getattr(self, name)))
        if self.n_chains is not None:
            object.__setattr__(self, 'n_chains', self._as_int('n_chains', self.n_chains))

        self.validate()

    @staticmethod
    def _as_float(name: str, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError):
            raise InvalidConfig(f"'{name}' must be a number, got {value!r}")

    @staticmethod
    def _as_int(name: str, value: Any) -> int:
        try:
            is_integer = not isinstance(value, bool) and float(value).is_integer()
        except (TypeError, ValueError):
            is_integer = False
        if not is_integer:
            raise InvalidConfig(f"'{name}' must be an integer, got {value!r}")
        return int(value)

    def validate(self) -> None:
        """
        Validate the configuration.

        Raises
        ------
        InvalidConfig
            If any value would make the run undefined.
        """
        self._validate_model()
        self._validate_schedule()

    def _validate_model(self):
        """Validate model hyperparameters."""
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, float) and not math.isfinite(value):
                raise InvalidConfig(f"'{f.name}' must be finite, got {value}")

        if self.study_duration <= 0:
            raise InvalidConfig(
                f"study_duration must be positive, got {self.study_duration}"
            )
        if not 0.0 <= self.infection_rate <= 1.0:
            raise InvalidConfig(
                f"infection_rate must lie in [0, 1], got {self.infection_rate}"
            )
        for name in ('baseline_sd', 'boost_sd', 'observation_sd'):
            if getattr(self, name) <= 0:
                raise InvalidConfig(f"{name} must be positive, got {getattr(self, name)}")

    def _validate_schedule(self):
        """Validate chain count, step count, burn-in and thinning."""
        if self.total_steps <= 0:
            raise InvalidConfig(f"total_steps must be positive, got {self.total_steps}")
        if self.burn_in < 0:
            raise InvalidConfig(f"burn_in must be non-negative, got {self.burn_in}")
        if self.burn_in >= self.total_steps:
            raise InvalidConfig(
                f"burn_in ({self.burn_in}) must be smaller than "
                f"total_steps ({self.total_steps})"
            )
        if self.thinning < 1:
            raise InvalidConfig(f"thinning must be at least 1, got {self.thinning}")
        if self.n_chains is not None and self.n_chains < 1:
            raise InvalidConfig(f"n_chains must be at least 1, got {self.n_chains}")

    @property
    def num_chains(self) -> int:
        """Chain count actually used by a run."""
        if self.n_chains is not None:
            return self.n_chains
        return get_optimal_chain_count(self.total_steps)

    @property
    def poisson_rate(self) -> float:
        """Expected number of infections per individual (lambda)."""
        return self.infection_rate * POISSON_RATE_MULTIPLIER

    @property
    def sampling_steps(self) -> int:
        """Number of post-burn-in iterations."""
        return self.total_steps - self.burn_in

    @property
    def draws_per_chain(self) -> int:
        """Thinned draws each chain retains per individual over a full run."""
        return -(-self.sampling_steps // self.thinning)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GlobalConfig':
        """
        Create a GlobalConfig from a dictionary.

        Unknown keys are rejected so that typos do not silently fall back
        to defaults.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise InvalidConfig(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**data)
