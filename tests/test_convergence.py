#!/usr/bin/env python3
"""
Test suite for SeroJump convergence diagnostics.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest
from numpyro.diagnostics import gelman_rubin

# Add SeroJump to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serojump.samplers.config import GlobalConfig
from serojump.samplers.convergence import ConvergenceDiagnostics
from serojump.samplers.core import ChainPool

from synthetic import make_observations


class TestRhat:
    """Test the Gelman-Rubin statistic."""

    def test_identical_chains(self):
        x = np.random.default_rng(0).normal(size=200)
        rhat = ConvergenceDiagnostics.rhat([x, x, x, x])
        assert math.isfinite(rhat)
        # B = 0, so only the (n - 1) / n term remains
        assert rhat == pytest.approx(math.sqrt(199 / 200))
        assert rhat == pytest.approx(1.0, abs=0.01)

    def test_agrees_with_numpyro(self):
        rng = np.random.default_rng(1)
        chains = rng.normal(size=(4, 300)) + np.array([[0.0], [0.1], [-0.2], [0.3]])
        ours = ConvergenceDiagnostics.rhat(list(chains))
        assert ours == pytest.approx(float(gelman_rubin(chains)), rel=1e-10)

    def test_uses_numpyro_on_matched_traces(self):
        rng = np.random.default_rng(14)
        a, b, c = rng.normal(size=80), rng.normal(size=50) + 0.5, rng.normal(size=65)
        expected = float(gelman_rubin(np.stack([a[:50], b, c[:50]])))
        assert ConvergenceDiagnostics.rhat([a, b, c]) == expected

    def test_truncates_to_shortest_chain(self):
        rng = np.random.default_rng(2)
        a, b = rng.normal(size=100), rng.normal(size=60)
        assert ConvergenceDiagnostics.rhat([a, b]) == pytest.approx(
            ConvergenceDiagnostics.rhat([a[:60], b])
        )

    def test_separated_chains_have_large_rhat(self):
        rng = np.random.default_rng(3)
        chains = [rng.normal(size=100), rng.normal(size=100) + 10.0]
        assert ConvergenceDiagnostics.rhat(chains) > 2.0

    @pytest.mark.parametrize("chains", [
        [np.arange(10.0)],
        [np.array([1.0]), np.array([2.0])],
        [np.ones(20), np.ones(20)],
        [],
    ])
    def test_undefined_is_nan(self, chains):
        assert math.isnan(ConvergenceDiagnostics.rhat(chains))


class TestEffectiveSampleSize:
    """Test the autocorrelation-based ESS."""

    def test_iid_draws(self):
        n = 4000
        x = np.random.default_rng(4).normal(size=n)
        ess = ConvergenceDiagnostics.ess(x)
        assert ess == pytest.approx(n, rel=0.15)
        assert ess == math.floor(ess)

    def test_correlated_draws_have_smaller_ess(self):
        rng = np.random.default_rng(5)
        n = 2000
        x = np.empty(n)
        x[0] = 0.0
        for i in range(1, n):
            x[i] = 0.9 * x[i - 1] + rng.normal()
        assert ConvergenceDiagnostics.ess(x) < n / 5

    def test_first_non_positive_lag_is_included(self):
        # Alternating sequence: lag-1 autocorrelation is -0.99, so n / (1 - 1.98) < 0
        x = np.tile([1.0, -1.0], 50)
        assert ConvergenceDiagnostics.ess(x) == 0.0

    def test_sum_includes_terminating_lag(self):
        rng = np.random.default_rng(12)
        x = rng.normal(size=400)
        rhos = ConvergenceDiagnostics.autocorrelation(x, 100)
        rho_sum = 0.0
        for rho in rhos:
            rho_sum += rho
            if rho <= 0:
                break
        expected = max(0, math.floor(400 / (1 + 2 * rho_sum)))
        assert ConvergenceDiagnostics.ess(x) == expected

    def test_result_is_floored(self):
        rng = np.random.default_rng(13)
        x = np.cumsum(rng.normal(size=300))
        ess = ConvergenceDiagnostics.ess(x)
        assert ess == math.floor(ess)
        assert 0 <= ess < 300

    @pytest.mark.parametrize("x", [np.array([]), np.array([1.0]), np.full(50, 3.0)])
    def test_undefined_is_nan(self, x):
        assert math.isnan(ConvergenceDiagnostics.ess(x))


class TestStabilityIndex:
    """Test the windowed stability index."""

    def test_window_positions(self):
        x = np.random.default_rng(6).normal(size=100)
        values = ConvergenceDiagnostics.stability_index(x)
        # Windows end at 10, 20, ..., 90
        assert values.size == 9
        window = x[40:90]
        expected = -2.0 * np.log(np.var(window)) + 2.0 * np.log(50)
        assert values[-1] == pytest.approx(expected)
        first = -2.0 * np.log(np.var(x[:10])) + 2.0 * np.log(10)
        assert values[0] == pytest.approx(first)

    def test_constant_window_is_nan(self):
        values = ConvergenceDiagnostics.stability_index(np.ones(30))
        assert values.size == 2
        assert np.all(np.isnan(values))

    def test_short_trace(self):
        assert ConvergenceDiagnostics.stability_index(np.ones(10)).size == 0


class TestSummaries:
    """Test diagnostics computed from chain snapshots."""

    def setup_method(self):
        config = GlobalConfig(infection_rate=0.5, total_steps=300, burn_in=100,
                              thinning=2, n_chains=2)
        self.pool = ChainPool(make_observations(), config, seed=8, chain_method='sequential')

    def run(self):
        while not self.pool.is_complete:
            self.pool.step()
        return self.pool.snapshots()

    def test_summarize_keys(self):
        diagnostics = ConvergenceDiagnostics.summarize(self.run())
        assert set(diagnostics) == {'baseline', 'boost', 'infection_count'}
        for stats in diagnostics.values():
            assert set(stats) == {'rhat', 'ess', 'mean', 'sd'}
        assert math.isfinite(diagnostics['baseline']['rhat'])
        assert diagnostics['baseline']['ess'] > 0

    def test_before_sampling_everything_is_nan(self):
        self.pool.step()
        diagnostics = ConvergenceDiagnostics.summarize(self.pool.snapshots())
        for stats in diagnostics.values():
            assert all(math.isnan(v) for v in stats.values())

    def test_chain_means(self):
        means = ConvergenceDiagnostics.chain_means(self.run())
        assert len(means) == 2
        for chain in means:
            assert 1.0 < chain['baseline'] < 3.5
            assert 0 <= chain['infection_count'] <= 5

    def test_check_convergence(self):
        good = {'x': {'rhat': 1.01, 'ess': 500.0}}
        converged, issues = ConvergenceDiagnostics.check_convergence(good)
        assert converged and issues == []

        bad = {'x': {'rhat': 1.3, 'ess': 20.0}, 'y': {'rhat': math.nan, 'ess': math.nan}}
        converged, issues = ConvergenceDiagnostics.check_convergence(bad)
        assert not converged
        assert len(issues) == 4


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
