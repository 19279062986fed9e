#!/usr/bin/env python3
"""
Reversible-jump Proposals for SeroJump.

One uniform draw selects between a within-model parameter move, the
dimension-changing birth and death moves and a timing move. Each proposal
carries the log correction (Jacobian and prior odds) that the accept/reject
step adds to the log-posterior difference.
"""

import math
from bisect import insort
from dataclasses import dataclass
from enum import Enum

import numpy as np

from .config import GlobalConfig
from .constants import (
    PARAMETER_MOVE_CUTOFF, DEATH_MOVE_CUTOFF, BIRTH_MOVE_CUTOFF,
    BASELINE_STEP, BOOST_STEP, TIMING_STEP, BOOST_FLOOR,
    PRIOR_ODDS_EPSILON,
)
from .state import LatentState


class MoveKind(Enum):
    PARAMETER = 'parameter'
    DEATH = 'death'
    BIRTH = 'birth'
    TIMING = 'timing'
    NO_OP = 'no_op'


@dataclass(frozen=True)
class Proposal:
    """A candidate state, its log correction and the move that produced it."""

    candidate: LatentState
    log_jacobian: float
    move: MoveKind


def log_prior_odds(infection_rate: float) -> float:
    """
    ``log(r / (1 - r))`` with ``r`` clamped away from 0 and 1.

    The clamp keeps birth and death corrections finite at the boundary
    rates 0 and 1.
    """
    r = min(max(infection_rate, PRIOR_ODDS_EPSILON), 1.0 - PRIOR_ODDS_EPSILON)
    return math.log(r) - math.log1p(-r)


def death_log_jacobian(k: int, config: GlobalConfig) -> float:
    """Correction for removing one of ``k`` infection times."""
    return math.log(k) + math.log(config.study_duration) - log_prior_odds(config.infection_rate)


def birth_log_jacobian(k: int, config: GlobalConfig) -> float:
    """Correction for adding an infection time to a state holding ``k``."""
    return -math.log(k + 1) - math.log(config.study_duration) - log_prior_odds(config.infection_rate)


class ProposalEngine:
    """
    Propose candidate latent states.

    The engine is stateless; all randomness comes from the generator passed
    to :meth:`propose`, so a fixed generator state reproduces the proposal.

    Examples
    --------
    >>> engine = ProposalEngine()
    >>> rng = np.random.default_rng(0)
    >>> proposal = engine.propose(state, config, rng)  # doctest: +SKIP
    >>> proposal.move
    <MoveKind.PARAMETER: 'parameter'>
    """

    def propose(self, current: LatentState, config: GlobalConfig,
                rng: np.random.Generator) -> Proposal:
        u = rng.random()
        k = current.n_infections

        if u < PARAMETER_MOVE_CUTOFF:
            return self.parameter_move(current, rng)
        if u < DEATH_MOVE_CUTOFF:
            if k > 0:
                return self.death_move(current, config, rng)
            return self.no_op(current)
        if u < BIRTH_MOVE_CUTOFF:
            return self.birth_move(current, config, rng)
        if k > 0:
            return self.timing_move(current, config, rng)
        return self.no_op(current)

    def parameter_move(self, current: LatentState, rng: np.random.Generator) -> Proposal:
        baseline = current.baseline + rng.uniform(-BASELINE_STEP, BASELINE_STEP)
        boost = max(BOOST_FLOOR, current.boost + rng.uniform(-BOOST_STEP, BOOST_STEP))
        return Proposal(current.copy(baseline=baseline, boost=boost), 0.0, MoveKind.PARAMETER)

    def death_move(self, current: LatentState, config: GlobalConfig,
                   rng: np.random.Generator) -> Proposal:
        k = current.n_infections
        index = int(rng.integers(k))
        times = current.infection_times[:index] + current.infection_times[index + 1:]
        return Proposal(
            current.copy(infection_times=times),
            death_log_jacobian(k, config),
            MoveKind.DEATH,
        )

    def birth_move(self, current: LatentState, config: GlobalConfig,
                   rng: np.random.Generator) -> Proposal:
        k = current.n_infections
        new_time = float(rng.uniform(0.0, config.study_duration))
        if new_time in current.infection_times:
            return self.no_op(current)
        times = list(current.infection_times)
        insort(times, new_time)
        return Proposal(
            current.copy(infection_times=times),
            birth_log_jacobian(k, config),
            MoveKind.BIRTH,
        )

    def timing_move(self, current: LatentState, config: GlobalConfig,
                    rng: np.random.Generator) -> Proposal:
        times = list(current.infection_times)
        index = int(rng.integers(len(times)))
        shifted = times[index] + rng.uniform(-TIMING_STEP, TIMING_STEP)
        shifted = min(max(float(shifted), 0.0), config.study_duration)
        # Clamping can land on a neighbour at 0 or T; times stay distinct
        if shifted in times[:index] + times[index + 1:]:
            return self.no_op(current)
        times[index] = shifted
        times.sort()
        return Proposal(current.copy(infection_times=times), 0.0, MoveKind.TIMING)

    def no_op(self, current: LatentState) -> Proposal:
        return Proposal(current.copy(), 0.0, MoveKind.NO_OP)
