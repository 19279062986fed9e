"""
Reversible-jump MCMC chains for SeroJump.

This module holds the sampling loop itself:

- :func:`metropolis_hastings_step` accepts or rejects one proposal
- :class:`ChainRunner` drives one chain through burn-in and sampling
- :class:`ChainPool` runs several independent chains in lockstep

Each chain owns its latent states, its sample buffers and its
``numpy.random.Generator``; nothing mutable is shared between chains, so
running them on worker threads gives the same draws as running them one
after another.
"""

import math
import threading
import time
from dataclasses import dataclass
from typing import Dict, Hashable, List, Optional, Sequence, Tuple

import numpy as np

from ..likelihoods import Likelihood, Observation, PermanentBoostLikelihood
from .config import GlobalConfig
from .constants import INIT_BASELINE_SPREAD, INIT_BOOST_SPREAD, RNG_SEED_MODULO
from .multicore import ChainExecutor, detect_chain_method
from .proposals import Proposal, ProposalEngine
from .state import ChainPhase, ChainSnapshot, ChainState, LatentState


@dataclass(frozen=True)
class StepOutcome:
    """Result of one accept/reject decision."""

    state: LatentState
    accepted: bool
    log_ratio: float


def metropolis_hastings_step(current: LatentState, proposal: Proposal,
                             observation: Observation, config: GlobalConfig,
                             likelihood: Likelihood,
                             rng: np.random.Generator) -> StepOutcome:
    """
    Accept or reject ``proposal`` against ``current``.

    Both log-posteriors are evaluated afresh. The uniform ``u'`` is always
    drawn from ``rng`` so that every step consumes the same number of draws.
    A candidate scoring ``-inf`` (or a NaN ratio) is rejected.

    Returns
    -------
    StepOutcome
        The kept state (a new record with refreshed log-likelihood and
        infection probability), whether the candidate was accepted, and the
        log acceptance ratio.
    """
    candidate_ll = likelihood.evaluate(observation, proposal.candidate, config)
    current_ll = likelihood.evaluate(observation, current, config)
    u = rng.random()

    if candidate_ll == -math.inf:
        log_ratio = -math.inf
        accepted = False
    else:
        log_ratio = proposal.log_jacobian + candidate_ll - current_ll
        if math.isnan(log_ratio):
            accepted = False
        else:
            log_u = math.log(u) if u > 0.0 else -math.inf
            accepted = log_u < log_ratio

    kept, kept_ll = (proposal.candidate, candidate_ll) if accepted else (current, current_ll)
    state = kept.copy(
        log_likelihood=kept_ll,
        infection_probability=1.0 if kept.n_infections > 0 else 0.0,
    )
    return StepOutcome(state, accepted, log_ratio)


class ChainRunner:
    """
    One reversible-jump chain.

    Phases run ``UNINITIALIZED -> BURNING_IN -> SAMPLING -> COMPLETED``.
    Iteration ``i`` (0-based) is a sampling iteration when
    ``i >= burn_in``; its draws are retained when
    ``(i - burn_in) % thinning == 0``.

    Parameters
    ----------
    chain_id : int
        Index of the chain within its pool.
    config : GlobalConfig
        Shared, read-only run configuration.
    rng : numpy.random.Generator
        The chain's private random stream.
    likelihood : Likelihood, optional
        Model scoring latent states; defaults to :class:`PermanentBoostLikelihood`.
    proposals : ProposalEngine, optional
        Proposal generator; defaults to a new :class:`ProposalEngine`.
    """

    def __init__(self, chain_id: int, config: GlobalConfig, rng: np.random.Generator,
                 likelihood: Optional[Likelihood] = None,
                 proposals: Optional[ProposalEngine] = None):
        self.chain_id = chain_id
        self.config = config
        self.rng = rng
        self.likelihood = likelihood or PermanentBoostLikelihood()
        self.proposals = proposals or ProposalEngine()
        self.observations: Tuple[Observation, ...] = ()
        self.chain = ChainState(chain_id, ())

    @property
    def phase(self) -> ChainPhase:
        return self.chain.phase

    @property
    def iteration(self) -> int:
        return self.chain.iteration

    def initialize(self, observations: Sequence[Observation]) -> None:
        """Create the initial latent state of every individual."""
        if self.chain.phase is not ChainPhase.UNINITIALIZED:
            raise RuntimeError(f"Chain {self.chain_id} is already initialized")

        self.observations = tuple(observations)
        self.chain = ChainState(self.chain_id, [obs.individual_id for obs in self.observations])

        half_baseline = INIT_BASELINE_SPREAD / 2
        half_boost = INIT_BOOST_SPREAD / 2
        for obs in self.observations:
            state = LatentState(
                baseline=self.config.baseline_mean + self.rng.uniform(-half_baseline, half_baseline),
                boost=self.config.target_boost + self.rng.uniform(-half_boost, half_boost),
            )
            self.chain.states[obs.individual_id] = state.copy(
                log_likelihood=self.likelihood.evaluate(obs, state, self.config)
            )

        self.chain.phase = self._phase_for(0)

    def _phase_for(self, iteration: int) -> ChainPhase:
        if iteration >= self.config.total_steps:
            return ChainPhase.COMPLETED
        if iteration >= self.config.burn_in:
            return ChainPhase.SAMPLING
        return ChainPhase.BURNING_IN

    def advance(self) -> int:
        """
        Run one iteration: update every individual once.

        Returns
        -------
        int
            Number of accepted proposals in this iteration.

        Raises
        ------
        RuntimeError
            If the chain is not initialized or already completed.
        """
        if self.chain.phase is ChainPhase.UNINITIALIZED:
            raise RuntimeError(f"Chain {self.chain_id} has not been initialized")
        if self.chain.phase is ChainPhase.COMPLETED:
            raise RuntimeError(f"Chain {self.chain_id} is completed")

        n_accepted = 0
        for obs in self.observations:
            current = self.chain.states[obs.individual_id]
            proposal = self.proposals.propose(current, self.config, self.rng)
            outcome = metropolis_hastings_step(
                current, proposal, obs, self.config, self.likelihood, self.rng
            )
            self.chain.states[obs.individual_id] = outcome.state
            self.chain.record_move(proposal.move.value, outcome.accepted)
            n_accepted += outcome.accepted

        i = self.chain.iteration
        burn_in = self.config.burn_in
        if i >= burn_in:
            self.chain.record_infection_count()
            if (i - burn_in) % self.config.thinning == 0:
                self.chain.record_draw(i)

        self.chain.iteration = i + 1
        self.chain.phase = self._phase_for(self.chain.iteration)
        return n_accepted

    def complete(self) -> None:
        """Stop the chain; further :meth:`advance` calls raise."""
        self.chain.phase = ChainPhase.COMPLETED

    def snapshot(self) -> ChainSnapshot:
        return self.chain.snapshot()


class ChainPool:
    """
    Independent chains advanced through synchronized global steps.

    Every chain gets its own generator spawned from one
    ``numpy.random.SeedSequence``, so a fixed seed reproduces all draws.

    Parameters
    ----------
    observations : sequence of Observation
        Validated dataset.
    config : GlobalConfig
        Run configuration.
    seed : int, optional
        Root seed. If None, derived from the current time.
    chain_method : str, optional
        'sequential' or 'parallel'; auto-detected if None.
    likelihood : Likelihood, optional
        Model shared (read-only) by all chains.

    Examples
    --------
    >>> pool = ChainPool(observations, GlobalConfig(total_steps=100, burn_in=20), seed=1)
    >>> while not pool.is_complete:
    ...     pool.step()
    >>> snapshots = pool.snapshots()
    """

    def __init__(self, observations: Sequence[Observation], config: GlobalConfig,
                 seed: Optional[int] = None, chain_method: Optional[str] = None,
                 likelihood: Optional[Likelihood] = None):
        if seed is None:
            seed = int(time.time() * 1000) % RNG_SEED_MODULO
        self.seed = seed
        self.config = config
        self.observations = tuple(observations)
        self.num_chains = config.num_chains
        self.chain_method = detect_chain_method(chain_method, self.num_chains)

        likelihood = likelihood or PermanentBoostLikelihood()
        proposals = ProposalEngine()
        seeds = np.random.SeedSequence(seed).spawn(self.num_chains)
        self.runners: List[ChainRunner] = [
            ChainRunner(chain_id, config, np.random.default_rng(child),
                        likelihood=likelihood, proposals=proposals)
            for chain_id, child in enumerate(seeds)
        ]
        for runner in self.runners:
            runner.initialize(self.observations)

        self.executor = ChainExecutor(self.chain_method, self.num_chains)
        self._cancel_event = threading.Event()
        self.cancelled = False

    @property
    def iteration(self) -> int:
        return min(runner.iteration for runner in self.runners)

    @property
    def phase(self) -> ChainPhase:
        return self.runners[0].phase

    @property
    def is_complete(self) -> bool:
        return all(runner.phase is ChainPhase.COMPLETED for runner in self.runners)

    @property
    def acceptance_rate(self) -> float:
        """Overall acceptance rate across chains."""
        proposed = sum(runner.chain.n_proposed for runner in self.runners)
        accepted = sum(runner.chain.n_accepted for runner in self.runners)
        return accepted / proposed if proposed else 0.0

    def step(self) -> bool:
        """
        Advance every chain by one iteration.

        Returns
        -------
        bool
            True if the chains advanced, False if the run was cancelled.

        Raises
        ------
        RuntimeError
            If the chains are already completed.
        """
        if self._cancel_event.is_set():
            if not self.cancelled:
                for runner in self.runners:
                    runner.complete()
                self.cancelled = True
                self.close()
            return False
        if self.is_complete:
            raise RuntimeError("All chains are completed")

        self.executor.map(ChainRunner.advance, self.runners)
        if self.is_complete:
            self.close()
        return True

    def cancel(self) -> None:
        """Request a cooperative stop before the next iteration."""
        self._cancel_event.set()

    def close(self) -> None:
        self.executor.shutdown()

    def latest_states(self) -> Dict[Hashable, Tuple[LatentState, ...]]:
        """Current state of every individual, one entry per chain."""
        return {
            obs.individual_id: tuple(
                runner.chain.states[obs.individual_id].copy() for runner in self.runners
            )
            for obs in self.observations
        }

    def snapshots(self) -> List[ChainSnapshot]:
        return [runner.snapshot() for runner in self.runners]

    def pooled_samples(self, snapshots: Optional[Sequence[ChainSnapshot]] = None) -> Dict[str, object]:
        """
        Merge the retained draws of all chains.

        Returns
        -------
        dict
            ``baseline``, ``boost``, ``infection_probability`` and
            ``first_infection_times`` map individual ids to concatenated
            arrays; ``infection_times`` and ``infection_count`` are flat arrays.
        """
        return pool_snapshots(snapshots if snapshots is not None else self.snapshots())


def pool_snapshots(snapshots: Sequence[ChainSnapshot]) -> Dict[str, object]:
    """Concatenate draws across chain snapshots (chain order)."""
    if not snapshots:
        return {
            'baseline': {}, 'boost': {}, 'infection_probability': {},
            'first_infection_times': {},
            'infection_times': np.zeros(0), 'infection_count': np.zeros(0),
        }

    individual_ids = snapshots[0].individual_ids
    pooled = {}
    for name in ('baseline', 'boost', 'infection_probability', 'first_infection_times'):
        pooled[name] = {
            ind: np.concatenate([getattr(snap, name)[ind] for snap in snapshots])
            for ind in individual_ids
        }
    pooled['infection_times'] = np.concatenate([snap.infection_times for snap in snapshots])
    pooled['infection_count'] = np.concatenate([snap.infection_count for snap in snapshots])
    return pooled
