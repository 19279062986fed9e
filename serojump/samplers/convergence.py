#!/usr/bin/env python3
"""
Convergence Diagnostics for SeroJump RJ-MCMC.

Gelman-Rubin Rhat across chains, autocorrelation-based effective sample
size on pooled draws, and a windowed stability index over the baseline
trace. Undefined diagnostics are reported as NaN, never raised.
"""

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np
from numpyro.diagnostics import gelman_rubin

from .constants import (
    DIAGNOSTIC_PARAMETERS,
    ESS_MAX_LAG,
    MIN_EFFECTIVE_SAMPLE_SIZE,
    RHAT_CONVERGENCE_THRESHOLD,
    STABILITY_MIN_WINDOW,
    STABILITY_STRIDE,
    STABILITY_WINDOW,
)
from .state import ChainSnapshot


class ConvergenceDiagnostics:
    """
    Diagnostic computations over read-only chain snapshots.

    All methods are static; the class only groups them, the way
    ``DiagnosticsTools`` groups trace utilities.
    """

    @staticmethod
    def rhat(chain_samples: Sequence[np.ndarray]) -> float:
        """
        Gelman-Rubin potential scale reduction factor.

        Chains are truncated to the shortest one before comparison.

        Parameters
        ----------
        chain_samples : sequence of 1D arrays
            One trace of a scalar parameter per chain.

        Returns
        -------
        float
            ``numpyro.diagnostics.gelman_rubin`` of the matched traces, or NaN with fewer than 2 chains, fewer
            than 2 matched samples, or zero within-chain variance.
        """
        m = len(chain_samples)
        if m < 2:
            return math.nan
        n = min(len(chain) for chain in chain_samples)
        if n < 2:
            return math.nan

        x = np.stack([np.asarray(chain, dtype=float)[:n] for chain in chain_samples])
        within = float(np.mean(np.var(x, axis=1, ddof=1)))
        if within == 0.0 or not math.isfinite(within):
            return math.nan

        return float(gelman_rubin(x))

    @staticmethod
    def autocorrelation(x: np.ndarray, max_lag: int) -> np.ndarray:
        """Lag 1..max_lag autocorrelations normalized by the ddof=1 variance."""
        x = np.asarray(x, dtype=float)
        n = x.size
        centered = x - np.mean(x)
        var = np.var(x, ddof=1)
        return np.array([
            np.dot(centered[:n - lag], centered[lag:]) / ((n - lag) * var)
            for lag in range(1, max_lag + 1)
        ])

    @staticmethod
    def ess(pooled: np.ndarray) -> float:
        """
        Effective sample size of a pooled trace.

        Sums lag autocorrelations for ``lag = 1..min(100, n // 4)``,
        up to and including the first non-positive value. The result is
        floored to a whole number of samples.
        """
        x = np.asarray(pooled, dtype=float).reshape(-1)
        n = x.size
        if n < 2:
            return math.nan
        var = float(np.var(x, ddof=1))
        if var == 0.0 or not math.isfinite(var):
            return math.nan

        rho_sum = 0.0
        for rho in ConvergenceDiagnostics.autocorrelation(x, min(ESS_MAX_LAG, n // 4)):
            rho_sum += rho
            if rho <= 0:
                break
        denominator = 1.0 + 2.0 * rho_sum
        if denominator <= 0:
            return 0.0
        return float(max(0, math.floor(n / denominator)))

    @staticmethod
    def stability_index(trace: np.ndarray) -> np.ndarray:
        """
        Windowed stability index of a trace.

        Every ``STABILITY_STRIDE`` samples, the last ``STABILITY_WINDOW``
        samples give ``-2 log(var) + 2 log(window_len)`` (population
        variance). Non-finite values become NaN.
        """
        x = np.asarray(trace, dtype=float).reshape(-1)
        values = []
        for end in range(STABILITY_STRIDE, x.size, STABILITY_STRIDE):
            window = x[max(0, end - STABILITY_WINDOW):end]
            if window.size < STABILITY_MIN_WINDOW:
                continue
            var = float(np.var(window))
            with np.errstate(divide='ignore'):
                value = -2.0 * np.log(var) + 2.0 * math.log(window.size)
            values.append(value if math.isfinite(value) else math.nan)
        return np.array(values, dtype=float)

    @staticmethod
    def chain_means(snapshots: Sequence[ChainSnapshot]) -> List[Dict[str, float]]:
        """Per chain, the mean of each diagnostic parameter (NaN without draws)."""
        result = []
        for snap in snapshots:
            means = {}
            for name in DIAGNOSTIC_PARAMETERS:
                trace = snap.parameter_trace(name)
                means[name] = float(np.mean(trace)) if trace.size else math.nan
            result.append(means)
        return result

    @staticmethod
    def summarize(snapshots: Sequence[ChainSnapshot]) -> Dict[str, Dict[str, float]]:
        """
        Rhat, ESS, mean and SD for every diagnostic parameter.

        Returns
        -------
        dict
            ``{parameter: {'rhat', 'ess', 'mean', 'sd'}}``; NaN where undefined.
        """
        diagnostics = {}
        for name in DIAGNOSTIC_PARAMETERS:
            traces = [snap.parameter_trace(name) for snap in snapshots]
            pooled = np.concatenate(traces) if traces else np.zeros(0)
            diagnostics[name] = {
                'rhat': ConvergenceDiagnostics.rhat(traces),
                'ess': ConvergenceDiagnostics.ess(pooled),
                'mean': float(np.mean(pooled)) if pooled.size else math.nan,
                'sd': float(np.std(pooled, ddof=1)) if pooled.size > 1 else math.nan,
            }
        return diagnostics

    @staticmethod
    def check_convergence(diagnostics: Dict[str, Dict[str, float]],
                          rhat_threshold: float = RHAT_CONVERGENCE_THRESHOLD,
                          ess_threshold: float = MIN_EFFECTIVE_SAMPLE_SIZE
                          ) -> Tuple[bool, List[str]]:
        """
        Check diagnostics against convergence thresholds.

        Undefined (NaN) values count as not converged.

        Returns
        -------
        tuple
            ``(converged, issues)`` with one message per failed check.
        """
        issues = []
        for name, stats in diagnostics.items():
            rhat = stats.get('rhat', math.nan)
            ess = stats.get('ess', math.nan)
            if not math.isfinite(rhat):
                issues.append(f"{name}: R-hat undefined")
            elif rhat >= rhat_threshold:
                issues.append(f"{name}: R-hat = {rhat:.3f} >= {rhat_threshold}")
            if not math.isfinite(ess):
                issues.append(f"{name}: ESS undefined")
            elif ess < ess_threshold:
                issues.append(f"{name}: ESS = {ess:.0f} < {ess_threshold}")
        return not issues, issues
