#!/usr/bin/env python3
"""
Configuration Constants for SeroJump Samplers

Centralizes all configuration constants to eliminate hardcoding.
"""

# ========== Model Defaults ==========

DEFAULT_INFECTION_RATE = 0.3
DEFAULT_STUDY_DURATION = 12.0
DEFAULT_BASELINE_MEAN = 2.0
DEFAULT_BASELINE_SD = 0.3
DEFAULT_TARGET_BOOST = 1.5
DEFAULT_BOOST_SD = 0.2
DEFAULT_OBSERVATION_SD = 0.1

# Expected infections per individual over the study = rate * multiplier
POISSON_RATE_MULTIPLIER = 2.0

# ========== MCMC Sampling Defaults ==========

# Default number of global iterations (burn-in included)
DEFAULT_TOTAL_STEPS = 2000

# Default burn-in iterations
DEFAULT_BURN_IN = 500

# Keep every N-th post-burn-in iteration
DEFAULT_THINNING = 10

# Default number of independent chains
DEFAULT_NUM_CHAINS = 4

# Chain count used for long runs to bound total work
LONG_RUN_NUM_CHAINS = 2

# Runs longer than this use LONG_RUN_NUM_CHAINS
LONG_RUN_STEP_THRESHOLD = 5000

# Runs longer than this emit a duration warning
LARGE_RUN_WARNING_STEPS = 10000

# ========== Proposal Tuning ==========

# Cumulative move-selection boundaries on u ~ U(0, 1)
PARAMETER_MOVE_CUTOFF = 0.3
DEATH_MOVE_CUTOFF = 0.5
BIRTH_MOVE_CUTOFF = 0.7

# Random-walk half widths (uniform steps)
BASELINE_STEP = 0.05
BOOST_STEP = 0.1
TIMING_STEP = 1.0

# Proposed boosts are floor-clamped to this value
BOOST_FLOOR = 0.1

# Prior odds r / (1 - r) are evaluated with r clamped to [eps, 1 - eps]
PRIOR_ODDS_EPSILON = 1e-6

# ========== Initialization ==========

# Initial states are drawn uniformly within +/- half of these widths
INIT_BASELINE_SPREAD = 0.2
INIT_BOOST_SPREAD = 0.1

# ========== Random Number Generation ==========

# RNG seed modulo for 32-bit compatibility
RNG_SEED_MODULO = 2**32

# ========== Diagnostics ==========

# R-hat convergence threshold
RHAT_CONVERGENCE_THRESHOLD = 1.1

# Minimum effective sample size
MIN_EFFECTIVE_SAMPLE_SIZE = 100

# Autocorrelation lags used by the ESS estimate
ESS_MAX_LAG = 100

# Stability index window
STABILITY_STRIDE = 10
STABILITY_WINDOW = 50
STABILITY_MIN_WINDOW = 10

# Probability mass of reported HPD intervals
HPDI_PROB = 0.95

# Infection-count credible interval
COUNT_INTERVAL_LOWER = 0.025
COUNT_INTERVAL_UPPER = 0.975

# Parameters reported by the diagnostics
DIAGNOSTIC_PARAMETERS = ("baseline", "boost", "infection_count")

# ========== Multi-core ==========

# Use threads for chains when at least this many CPU cores are available
MIN_CORES_FOR_PARALLEL = 2

# Cap on worker threads
MAX_CHAIN_WORKERS = 8
