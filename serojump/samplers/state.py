#!/usr/bin/env python3
"""
Sampler State for SeroJump RJ-MCMC.

Latent states of individuals, the per-chain state that owns them together
with the retained posterior draws, and the immutable snapshots handed to
diagnostics and aggregation.
"""

import math
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .constants import DIAGNOSTIC_PARAMETERS


@dataclass
class LatentState:
    """
    Latent state of one individual in one chain.

    Attributes
    ----------
    baseline : float
        Pre-infection biomarker level.
    boost : float
        Increase per infection; strictly positive for any accepted state.
    infection_times : tuple of float
        Sorted infection times within ``[0, study_duration]``.
    log_likelihood : float
        Cached log-posterior of this state.
    infection_probability : float
        1.0 if the state carries any infection, else 0.0.
    """

    baseline: float
    boost: float
    infection_times: Tuple[float, ...] = ()
    log_likelihood: float = -math.inf
    infection_probability: float = 0.0

    @property
    def n_infections(self) -> int:
        return len(self.infection_times)

    @property
    def first_infection_time(self) -> Optional[float]:
        return self.infection_times[0] if self.infection_times else None

    def copy(self, **changes) -> 'LatentState':
        """Return a clone, optionally with some fields replaced."""
        if 'infection_times' in changes:
            changes['infection_times'] = tuple(float(t) for t in changes['infection_times'])
        return replace(self, **changes)


class ChainPhase(Enum):
    """Lifecycle of a chain."""

    UNINITIALIZED = 'uninitialized'
    BURNING_IN = 'burning_in'
    SAMPLING = 'sampling'
    COMPLETED = 'completed'


def _frozen(values, dtype=float) -> np.ndarray:
    arr = np.array(values, dtype=dtype)
    arr.flags.writeable = False
    return arr


@dataclass(frozen=True, eq=False)
class ChainSnapshot:
    """
    Read-only view of a chain's retained draws at one point in time.

    Per-individual draws are keyed by individual id. Each retained draw
    ``j`` of every individual was taken at iteration ``draw_iterations[j]``.
    """

    chain_id: int
    iteration: int
    phase: ChainPhase
    individual_ids: Tuple[Hashable, ...]
    baseline: Mapping[Hashable, np.ndarray]
    boost: Mapping[Hashable, np.ndarray]
    infection_probability: Mapping[Hashable, np.ndarray]
    first_infection_times: Mapping[Hashable, np.ndarray]
    infection_times: np.ndarray
    infection_count: np.ndarray
    draw_iterations: np.ndarray
    n_proposed: int
    n_accepted: int
    move_counts: Mapping[str, Tuple[int, int]]

    @property
    def n_draws(self) -> int:
        return int(self.draw_iterations.size)

    @property
    def acceptance_rate(self) -> float:
        return self.n_accepted / self.n_proposed if self.n_proposed else 0.0

    def parameter_trace(self, name: str) -> np.ndarray:
        """
        Scalar trace of a diagnostic parameter.

        ``baseline`` and ``boost`` are flattened iteration-major (all
        individuals of draw 0, then of draw 1, ...); ``infection_count`` is
        the per-iteration study-wide count.
        """
        if name == 'infection_count':
            return self.infection_count
        if name not in ('baseline', 'boost'):
            raise KeyError(f"Unknown parameter '{name}', expected one of {DIAGNOSTIC_PARAMETERS}")

        draws = getattr(self, name)
        if not self.individual_ids or self.n_draws == 0:
            return np.zeros(0)
        # (n_draws, n_individuals) raveled row-major is iteration-major order
        return np.column_stack([draws[i] for i in self.individual_ids]).ravel()

    def per_individual(self, name: str) -> np.ndarray:
        """Draws of ``baseline``, ``boost`` or ``infection_probability`` as (n_individuals, n_draws)."""
        draws = getattr(self, name)
        if not self.individual_ids:
            return np.zeros((0, 0))
        return np.vstack([draws[i] for i in self.individual_ids])


class ChainState:
    """
    Mutable state owned by exactly one chain.

    Holds the current latent state of every individual, the retained
    posterior draws and the proposal/acceptance counters.
    """

    def __init__(self, chain_id: int, individual_ids: Sequence[Hashable]):
        self.chain_id = chain_id
        self.individual_ids = tuple(individual_ids)
        self.states: Dict[Hashable, LatentState] = {}
        self.phase = ChainPhase.UNINITIALIZED
        self.iteration = 0

        self.baseline_draws: Dict[Hashable, List[float]] = {i: [] for i in self.individual_ids}
        self.boost_draws: Dict[Hashable, List[float]] = {i: [] for i in self.individual_ids}
        self.probability_draws: Dict[Hashable, List[float]] = {i: [] for i in self.individual_ids}
        self.first_infection_draws: Dict[Hashable, List[float]] = {i: [] for i in self.individual_ids}
        self.infection_time_draws: List[float] = []
        self.infection_count_draws: List[int] = []
        self.draw_iterations: List[int] = []

        self.n_proposed = 0
        self.n_accepted = 0
        self.move_counts: Dict[str, List[int]] = {}

    def record_move(self, move: str, accepted: bool) -> None:
        counts = self.move_counts.setdefault(move, [0, 0])
        counts[0] += 1
        self.n_proposed += 1
        if accepted:
            counts[1] += 1
            self.n_accepted += 1

    def record_draw(self, iteration: int) -> None:
        """Append the current state of every individual to the retained draws."""
        for ind in self.individual_ids:
            state = self.states[ind]
            self.baseline_draws[ind].append(state.baseline)
            self.boost_draws[ind].append(state.boost)
            self.probability_draws[ind].append(state.infection_probability)
            if state.n_infections:
                self.first_infection_draws[ind].append(state.first_infection_time)
                self.infection_time_draws.extend(state.infection_times)
        self.draw_iterations.append(iteration)

    def record_infection_count(self) -> None:
        self.infection_count_draws.append(
            sum(1 for state in self.states.values() if state.n_infections > 0)
        )

    def snapshot(self) -> ChainSnapshot:
        def freeze_map(draws):
            return MappingProxyType({ind: _frozen(draws[ind]) for ind in self.individual_ids})

        return ChainSnapshot(
            chain_id=self.chain_id,
            iteration=self.iteration,
            phase=self.phase,
            individual_ids=self.individual_ids,
            baseline=freeze_map(self.baseline_draws),
            boost=freeze_map(self.boost_draws),
            infection_probability=freeze_map(self.probability_draws),
            first_infection_times=freeze_map(self.first_infection_draws),
            infection_times=_frozen(self.infection_time_draws),
            infection_count=_frozen(self.infection_count_draws, dtype=float),
            draw_iterations=_frozen(self.draw_iterations, dtype=int),
            n_proposed=self.n_proposed,
            n_accepted=self.n_accepted,
            move_counts=MappingProxyType(
                {move: tuple(counts) for move, counts in self.move_counts.items()}
            ),
        )
