#!/usr/bin/env python3
"""
Test suite for SeroJump observations and likelihoods.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

# Add SeroJump to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serojump.likelihoods import (
    InvalidDataset,
    Observation,
    PermanentBoostLikelihood,
    gaussian_log_density,
    validate_observations,
)
from serojump.samplers.config import GlobalConfig
from serojump.samplers.state import LatentState


class TestObservation:
    """Test Observation construction and validation."""

    def test_arrays_are_read_only(self):
        obs = Observation("A", [0, 6, 12], [2.0, 3.5, 3.5])
        assert obs.times.dtype == np.float64
        assert obs.n_measurements == 3
        with pytest.raises(ValueError):
            obs.values[0] = 10.0

    def test_from_pairs(self):
        obs = Observation.from_pairs("A", [(0.0, 2.0), (6.0, 3.5)])
        assert obs.pairs() == [(0.0, 2.0), (6.0, 3.5)]

    def test_rejects_empty(self):
        with pytest.raises(InvalidDataset, match="no measurements"):
            Observation("A", [], [])

    def test_rejects_mismatched_lengths(self):
        with pytest.raises(InvalidDataset):
            Observation("A", [0, 1], [2.0])

    def test_rejects_non_increasing_times(self):
        with pytest.raises(InvalidDataset, match="strictly increasing"):
            Observation("A", [0, 6, 6], [1, 2, 3])

    def test_rejects_non_finite(self):
        with pytest.raises(InvalidDataset):
            Observation("A", [0, 6], [1.0, np.nan])

    def test_invalid_dataset_is_value_error(self):
        assert issubclass(InvalidDataset, ValueError)

    def test_validate_observations(self):
        a = Observation("A", [0], [1.0])
        b = Observation("B", [0], [1.0])
        assert validate_observations([a, b]) == (a, b)

        with pytest.raises(InvalidDataset, match="At least one"):
            validate_observations([])
        with pytest.raises(InvalidDataset, match="Duplicate"):
            validate_observations([a, Observation("A", [1], [2.0])])
        with pytest.raises(InvalidDataset, match="Expected Observation"):
            validate_observations([{"id": "A"}])


class TestPermanentBoostLikelihood:
    """Test the permanent-boost log-posterior."""

    def setup_method(self):
        self.config = GlobalConfig(
            infection_rate=0.5, study_duration=12.0,
            baseline_mean=2.0, baseline_sd=0.3,
            target_boost=1.5, boost_sd=0.2, observation_sd=0.1,
        )
        self.obs = Observation("A", [0.0, 6.0, 12.0], [2.0, 3.5, 3.5])
        self.model = PermanentBoostLikelihood()

    def test_theory_counts_infections_strictly_before(self):
        state = LatentState(baseline=2.0, boost=1.5, infection_times=(0.0, 6.0))
        # t=0 sees nothing, t=6 sees the infection at 0 only, t=12 sees both
        np.testing.assert_allclose(self.model.theory(self.obs, state), [2.0, 3.5, 5.0])

    def test_exact_value(self):
        state = LatentState(baseline=2.1, boost=1.4, infection_times=(3.0,))
        predicted = np.array([2.1, 3.5, 3.5])
        residuals = self.obs.values - predicted
        expected = (
            np.sum(-0.5 * residuals ** 2 / 0.01 - 0.5 * np.log(2 * np.pi * 0.01))
            - 0.5 * ((2.1 - 2.0) / 0.3) ** 2
            - 0.5 * ((1.4 - 1.5) / 0.2) ** 2
            + 1 * math.log(1.0) - 1.0
        )
        assert self.model.evaluate(self.obs, state, self.config) == pytest.approx(expected)

    def test_perfect_fit_beats_no_infection(self):
        infected = LatentState(baseline=2.0, boost=1.5, infection_times=(3.0,))
        healthy = LatentState(baseline=2.0, boost=1.5)
        assert (self.model.evaluate(self.obs, infected, self.config)
                > self.model.evaluate(self.obs, healthy, self.config))

    @pytest.mark.parametrize("boost", [0.0, -0.5])
    def test_non_positive_boost_is_minus_inf(self, boost):
        state = LatentState(baseline=2.0, boost=boost, infection_times=(3.0,))
        assert self.model.evaluate(self.obs, state, self.config) == -math.inf

    def test_zero_rate_forbids_infections(self):
        config = GlobalConfig(infection_rate=0.0)
        infected = LatentState(baseline=2.0, boost=1.5, infection_times=(3.0,))
        healthy = LatentState(baseline=2.0, boost=1.5)
        assert self.model.evaluate(self.obs, infected, config) == -math.inf
        assert math.isfinite(self.model.evaluate(self.obs, healthy, config))

    def test_count_prior(self):
        assert PermanentBoostLikelihood.log_count_prior(0, 0.0) == 0.0
        assert PermanentBoostLikelihood.log_count_prior(2, 0.0) == -math.inf
        assert PermanentBoostLikelihood.log_count_prior(3, 2.0) == pytest.approx(3 * math.log(2.0) - 2.0)

    def test_gaussian_log_density(self):
        value = gaussian_log_density(np.array([0.0, 1.0]), 1.0)
        assert value == pytest.approx(-0.5 - math.log(2 * math.pi))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
