#!/usr/bin/env python3
"""
Posterior Aggregation for SeroJump.

Reduces read-only chain snapshots to plain summary records: per-individual
infection probabilities and timing intervals, the study-wide infection
count posterior, and per-parameter diagnostics with HPD intervals.
"""

import math
from collections import Counter
from dataclasses import dataclass, asdict
from typing import Any, Dict, Hashable, Optional, Sequence, Tuple

import arviz as az
import numpy as np
from numpyro.diagnostics import hpdi

from .constants import (
    COUNT_INTERVAL_LOWER,
    COUNT_INTERVAL_UPPER,
    DIAGNOSTIC_PARAMETERS,
    HPDI_PROB,
)
from .core import pool_snapshots
from .convergence import ConvergenceDiagnostics
from .state import ChainSnapshot


def empirical_quantile(sorted_values: np.ndarray, q: float) -> float:
    """Order statistic ``sorted[floor(n * q)]`` (clamped to the last element)."""
    n = len(sorted_values)
    return float(sorted_values[min(int(math.floor(n * q)), n - 1)])


@dataclass(frozen=True)
class TimingInterval:
    """Five-number summary of first-infection-time draws."""

    minimum: float
    q1: float
    median: float
    q3: float
    maximum: float
    n_draws: int

    @classmethod
    def from_draws(cls, draws: np.ndarray) -> Optional['TimingInterval']:
        if len(draws) == 0:
            return None
        s = np.sort(np.asarray(draws, dtype=float))
        return cls(
            minimum=float(s[0]),
            q1=empirical_quantile(s, 0.25),
            median=empirical_quantile(s, 0.5),
            q3=empirical_quantile(s, 0.75),
            maximum=float(s[-1]),
            n_draws=int(s.size),
        )


@dataclass(frozen=True)
class IndividualSummary:
    individual_id: Hashable
    infection_probability: float
    n_draws: int
    timing: Optional[TimingInterval]


@dataclass(frozen=True)
class ParameterSummary:
    rhat: float
    ess: float
    mean: float
    sd: float
    hpdi_lower: float
    hpdi_upper: float


@dataclass(frozen=True)
class InfectionCountSummary:
    """Posterior of the study-wide number of infected individuals."""

    mean: float
    lower: float
    upper: float
    frequencies: Dict[int, int]
    n_draws: int


@dataclass(frozen=True)
class PosteriorSummary:
    """
    Posterior summary of a run, computed from the draws accumulated so far.

    Attributes
    ----------
    iteration : int
        Global iteration the summary was computed at.
    acceptance_rate : float
        Overall acceptance rate across chains.
    n_chains : int
        Number of chains pooled.
    individuals : dict
        Individual id -> :class:`IndividualSummary`, in dataset order.
    parameters : dict
        Parameter name -> :class:`ParameterSummary`.
    infection_count : InfectionCountSummary
        Study-wide infection count posterior.
    chain_means : tuple of dict
        Per-chain parameter means.
    stability_index : tuple of tuple
        Per-chain stability index of the baseline trace.
    """

    iteration: int
    acceptance_rate: float
    n_chains: int
    individuals: Dict[Hashable, IndividualSummary]
    parameters: Dict[str, ParameterSummary]
    infection_count: InfectionCountSummary
    chain_means: Tuple[Dict[str, float], ...]
    stability_index: Tuple[Tuple[float, ...], ...]

    def diagnostics(self) -> Dict[str, Dict[str, float]]:
        """``{parameter: {rhat, ess, mean, sd}}`` view of the parameter summaries."""
        return {
            name: {'rhat': p.rhat, 'ess': p.ess, 'mean': p.mean, 'sd': p.sd}
            for name, p in self.parameters.items()
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert to plain nested dictionaries and lists."""
        return {
            'iteration': self.iteration,
            'acceptance_rate': self.acceptance_rate,
            'n_chains': self.n_chains,
            'individuals': {ind: asdict(s) for ind, s in self.individuals.items()},
            'parameters': {name: asdict(p) for name, p in self.parameters.items()},
            'infection_count': asdict(self.infection_count),
            'chain_means': [dict(m) for m in self.chain_means],
            'stability_index': [list(s) for s in self.stability_index],
        }


class ResultAggregator:
    """
    Build :class:`PosteriorSummary` records from chain snapshots.

    The aggregator only reads snapshots; it never touches live chains.
    """

    def __init__(self, hpdi_prob: float = HPDI_PROB):
        self.hpdi_prob = hpdi_prob

    def infection_probabilities(self, pooled: Dict[str, Any]) -> Dict[Hashable, float]:
        """Mean of the pooled 0/1 infection draws per individual (NaN without draws)."""
        return {
            ind: float(np.mean(draws)) if draws.size else math.nan
            for ind, draws in pooled['infection_probability'].items()
        }

    def infection_count_summary(self, counts: np.ndarray) -> InfectionCountSummary:
        counts = np.asarray(counts)
        if counts.size == 0:
            return InfectionCountSummary(math.nan, math.nan, math.nan, {}, 0)
        s = np.sort(counts)
        frequencies = Counter(int(c) for c in s)
        return InfectionCountSummary(
            mean=float(np.mean(s)),
            lower=empirical_quantile(s, COUNT_INTERVAL_LOWER),
            upper=empirical_quantile(s, COUNT_INTERVAL_UPPER),
            frequencies=dict(sorted(frequencies.items())),
            n_draws=int(s.size),
        )

    def parameter_summaries(self, snapshots: Sequence[ChainSnapshot]) -> Dict[str, ParameterSummary]:
        diagnostics = ConvergenceDiagnostics.summarize(snapshots)
        summaries = {}
        for name in DIAGNOSTIC_PARAMETERS:
            traces = [snap.parameter_trace(name) for snap in snapshots]
            pooled = np.concatenate(traces) if traces else np.zeros(0)
            if pooled.size:
                lower, upper = hpdi(pooled, prob=self.hpdi_prob)
                lower, upper = float(lower), float(upper)
            else:
                lower = upper = math.nan
            summaries[name] = ParameterSummary(
                hpdi_lower=lower, hpdi_upper=upper, **diagnostics[name]
            )
        return summaries

    def summarize(self, snapshots: Sequence[ChainSnapshot],
                  iteration: Optional[int] = None,
                  acceptance_rate: Optional[float] = None) -> PosteriorSummary:
        """
        Summarize the draws held by ``snapshots``.

        Parameters
        ----------
        snapshots : sequence of ChainSnapshot
            One snapshot per chain.
        iteration : int, optional
            Iteration to report; defaults to the smallest chain iteration.
        acceptance_rate : float, optional
            Rate to report; defaults to the rate pooled over the snapshots.
        """
        pooled = pool_snapshots(snapshots)
        if iteration is None:
            iteration = min((snap.iteration for snap in snapshots), default=0)
        if acceptance_rate is None:
            proposed = sum(snap.n_proposed for snap in snapshots)
            accepted = sum(snap.n_accepted for snap in snapshots)
            acceptance_rate = accepted / proposed if proposed else 0.0

        probabilities = self.infection_probabilities(pooled)
        individuals = {
            ind: IndividualSummary(
                individual_id=ind,
                infection_probability=probabilities[ind],
                n_draws=int(pooled['infection_probability'][ind].size),
                timing=TimingInterval.from_draws(pooled['first_infection_times'][ind]),
            )
            for ind in pooled['infection_probability']
        }

        return PosteriorSummary(
            iteration=iteration,
            acceptance_rate=acceptance_rate,
            n_chains=len(snapshots),
            individuals=individuals,
            parameters=self.parameter_summaries(snapshots),
            infection_count=self.infection_count_summary(pooled['infection_count']),
            chain_means=tuple(ConvergenceDiagnostics.chain_means(snapshots)),
            stability_index=tuple(
                tuple(ConvergenceDiagnostics.stability_index(snap.parameter_trace('baseline')).tolist())
                for snap in snapshots
            ),
        )

    def to_arviz(self, snapshots: Sequence[ChainSnapshot]) -> az.InferenceData:
        """
        Convert retained draws to ArviZ InferenceData.

        ``baseline``, ``boost`` and ``infection_probability`` have dims
        ``(chain, draw, individual)``; ``infection_count`` holds the count
        at each retained draw, dims ``(chain, draw)``. Chains are truncated
        to the shortest one.
        """
        if not snapshots:
            raise ValueError("No chain snapshots to convert")

        n_draws = min(snap.n_draws for snap in snapshots)
        individual_ids = list(snapshots[0].individual_ids)

        posterior: Dict[str, np.ndarray] = {}
        for name in ('baseline', 'boost', 'infection_probability'):
            # (n_individuals, n_draws) per chain -> (chain, draw, individual)
            posterior[name] = np.stack([
                snap.per_individual(name)[:, :n_draws].T for snap in snapshots
            ])
        posterior['infection_count'] = np.stack([
            self._counts_at_draws(snap)[:n_draws] for snap in snapshots
        ])

        coords = {'individual': [str(ind) for ind in individual_ids]}
        dims = {name: ['individual'] for name in ('baseline', 'boost', 'infection_probability')}
        return az.from_dict(posterior=posterior, coords=coords, dims=dims)

    @staticmethod
    def _counts_at_draws(snap: ChainSnapshot) -> np.ndarray:
        if snap.n_draws == 0:
            return np.zeros(0)
        # Counts are recorded from the first sampling iteration onwards
        offsets = snap.draw_iterations - snap.draw_iterations[0]
        return snap.infection_count[offsets]

