#!/usr/bin/env python3
"""
Test suite for SeroJump reversible-jump proposals.
"""

import math
import sys
from pathlib import Path

import numpy as np
import pytest

# Add SeroJump to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from serojump.samplers.config import GlobalConfig
from serojump.samplers.proposals import (
    MoveKind,
    ProposalEngine,
    birth_log_jacobian,
    death_log_jacobian,
    log_prior_odds,
)
from serojump.samplers.state import LatentState


class ScriptedRNG:
    """Generator stand-in returning scripted draws."""

    def __init__(self, randoms, uniforms=(), integers=()):
        self._randoms = list(randoms)
        self._uniforms = list(uniforms)
        self._integers = list(integers)

    def random(self):
        return self._randoms.pop(0)

    def uniform(self, low, high):
        fraction = self._uniforms.pop(0)
        return low + fraction * (high - low)

    def integers(self, n):
        value = self._integers.pop(0)
        assert 0 <= value < n
        return value


class TestMoveSelection:
    """Test which move a uniform draw selects."""

    def setup_method(self):
        self.config = GlobalConfig(infection_rate=0.5, study_duration=12.0)
        self.engine = ProposalEngine()
        self.empty = LatentState(baseline=2.0, boost=1.5)
        self.infected = LatentState(baseline=2.0, boost=1.5, infection_times=(2.0, 7.0))

    def test_parameter_move(self):
        rng = ScriptedRNG([0.1], uniforms=[1.0, 0.0])
        proposal = self.engine.propose(self.infected, self.config, rng)
        assert proposal.move is MoveKind.PARAMETER
        assert proposal.log_jacobian == 0.0
        assert proposal.candidate.baseline == pytest.approx(2.05)
        assert proposal.candidate.boost == pytest.approx(1.4)
        assert proposal.candidate.infection_times == self.infected.infection_times

    def test_boost_is_floor_clamped(self):
        state = LatentState(baseline=2.0, boost=0.12)
        rng = ScriptedRNG([0.0], uniforms=[0.5, 0.0])
        proposal = self.engine.propose(state, self.config, rng)
        assert proposal.candidate.boost == pytest.approx(0.1)

    def test_death_move(self):
        rng = ScriptedRNG([0.4], integers=[0])
        proposal = self.engine.propose(self.infected, self.config, rng)
        assert proposal.move is MoveKind.DEATH
        assert proposal.candidate.infection_times == (7.0,)
        assert proposal.log_jacobian == pytest.approx(math.log(2) + math.log(12.0))

    def test_birth_move_inserts_sorted(self):
        rng = ScriptedRNG([0.6], uniforms=[0.25])
        proposal = self.engine.propose(self.infected, self.config, rng)
        assert proposal.move is MoveKind.BIRTH
        assert proposal.candidate.infection_times == (2.0, 3.0, 7.0)
        assert proposal.log_jacobian == pytest.approx(-math.log(3) - math.log(12.0))

    def test_timing_move_clamps_and_sorts(self):
        rng = ScriptedRNG([0.9], uniforms=[0.0], integers=[0])
        state = LatentState(baseline=2.0, boost=1.5, infection_times=(0.5, 1.2))
        proposal = self.engine.propose(state, self.config, rng)
        assert proposal.move is MoveKind.TIMING
        assert proposal.log_jacobian == 0.0
        assert proposal.candidate.infection_times == (0.0, 1.2)

        rng = ScriptedRNG([0.9], uniforms=[1.0], integers=[0])
        proposal = self.engine.propose(state, self.config, rng)
        assert proposal.candidate.infection_times == (1.2, 1.5)

    def test_clamped_collision_becomes_no_op(self):
        state = LatentState(baseline=2.0, boost=1.5, infection_times=(0.0, 0.5))
        rng = ScriptedRNG([0.9], uniforms=[0.0], integers=[1])
        proposal = self.engine.propose(state, self.config, rng)
        assert proposal.move is MoveKind.NO_OP
        assert proposal.candidate.infection_times == (0.0, 0.5)

    @pytest.mark.parametrize("u", [0.3, 0.45, 0.7, 0.99])
    def test_no_op_without_infections(self, u):
        rng = ScriptedRNG([u])
        proposal = self.engine.propose(self.empty, self.config, rng)
        assert proposal.move is MoveKind.NO_OP
        assert proposal.log_jacobian == 0.0
        assert proposal.candidate == self.empty
        assert proposal.candidate is not self.empty

    def test_candidate_is_a_clone(self):
        rng = ScriptedRNG([0.6], uniforms=[0.5])
        proposal = self.engine.propose(self.infected, self.config, rng)
        assert self.infected.infection_times == (2.0, 7.0)
        assert proposal.candidate is not self.infected


class TestJacobians:
    """Test birth/death corrections."""

    def test_death_formula(self):
        config = GlobalConfig(infection_rate=0.3, study_duration=12.0)
        expected = math.log(3) + math.log(12.0) + math.log(0.7 / 0.3)
        assert death_log_jacobian(3, config) == pytest.approx(expected)

    def test_birth_formula(self):
        config = GlobalConfig(infection_rate=0.3, study_duration=12.0)
        expected = -math.log(3) - math.log(12.0) - math.log(0.3 / 0.7)
        assert birth_log_jacobian(2, config) == pytest.approx(expected)

    def test_birth_and_death_are_inverse_at_even_odds(self):
        config = GlobalConfig(infection_rate=0.5, study_duration=24.0)
        for k in range(0, 5):
            assert birth_log_jacobian(k, config) == pytest.approx(-death_log_jacobian(k + 1, config))

    def test_both_moves_carry_the_odds_term(self):
        config = GlobalConfig(infection_rate=0.4, study_duration=24.0)
        odds = log_prior_odds(0.4)
        for k in range(0, 5):
            total = birth_log_jacobian(k, config) + death_log_jacobian(k + 1, config)
            assert total == pytest.approx(-2 * odds)

    @pytest.mark.parametrize("rate", [0.0, 1.0])
    def test_boundary_rates_are_finite(self, rate):
        config = GlobalConfig(infection_rate=rate)
        assert math.isfinite(birth_log_jacobian(0, config))
        assert math.isfinite(death_log_jacobian(1, config))

    def test_prior_odds_sign(self):
        assert log_prior_odds(0.5) == pytest.approx(0.0)
        assert log_prior_odds(1.0) > 10
        assert log_prior_odds(0.0) < -10


class TestProposalInvariants:
    """Test invariants over many random proposals."""

    def test_times_sorted_bounded_and_boost_positive(self):
        config = GlobalConfig(infection_rate=0.5, study_duration=12.0)
        engine = ProposalEngine()
        rng = np.random.default_rng(7)
        state = LatentState(baseline=2.0, boost=0.15)
        moves = set()
        for _ in range(3000):
            proposal = engine.propose(state, config, rng)
            candidate = proposal.candidate
            times = np.array(candidate.infection_times)
            assert np.all(np.diff(times) > 0)
            assert np.all((times >= 0.0) & (times <= config.study_duration))
            assert candidate.boost >= 0.1
            moves.add(proposal.move)
            # Random walk through the proposals, capped to keep k small
            if candidate.n_infections <= 6:
                state = candidate
        assert moves == set(MoveKind)

    def test_same_seed_same_proposal(self):
        config = GlobalConfig()
        state = LatentState(baseline=2.0, boost=1.5, infection_times=(4.0,))
        a = ProposalEngine().propose(state, config, np.random.default_rng(11))
        b = ProposalEngine().propose(state, config, np.random.default_rng(11))
        assert a == b


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
