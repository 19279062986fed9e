"""SeroJump RJ-MCMC sampling package with lazy attribute loading."""

from __future__ import annotations

import importlib
from typing import Any

_MODULE_ALIASES = {
    "config": "serojump.samplers.config",
    "state": "serojump.samplers.state",
    "proposals": "serojump.samplers.proposals",
    "core": "serojump.samplers.core",
    "multicore": "serojump.samplers.multicore",
    "convergence": "serojump.samplers.convergence",
    "results": "serojump.samplers.results",
    "rjmcmc": "serojump.samplers.rjmcmc",
}

_ATTRIBUTE_MAP = {
    # Configuration
    "GlobalConfig": ("serojump.samplers.config", "GlobalConfig"),
    "InvalidConfig": ("serojump.samplers.config", "InvalidConfig"),
    # State
    "LatentState": ("serojump.samplers.state", "LatentState"),
    "ChainPhase": ("serojump.samplers.state", "ChainPhase"),
    "ChainState": ("serojump.samplers.state", "ChainState"),
    "ChainSnapshot": ("serojump.samplers.state", "ChainSnapshot"),
    # Proposals
    "MoveKind": ("serojump.samplers.proposals", "MoveKind"),
    "Proposal": ("serojump.samplers.proposals", "Proposal"),
    "ProposalEngine": ("serojump.samplers.proposals", "ProposalEngine"),
    # Chains
    "ChainRunner": ("serojump.samplers.core", "ChainRunner"),
    "ChainPool": ("serojump.samplers.core", "ChainPool"),
    "metropolis_hastings_step": ("serojump.samplers.core", "metropolis_hastings_step"),
    # Diagnostics and results
    "ConvergenceDiagnostics": ("serojump.samplers.convergence", "ConvergenceDiagnostics"),
    "ResultAggregator": ("serojump.samplers.results", "ResultAggregator"),
    "PosteriorSummary": ("serojump.samplers.results", "PosteriorSummary"),
    # Run interface
    "RunHandle": ("serojump.samplers.rjmcmc", "RunHandle"),
    "StepReport": ("serojump.samplers.rjmcmc", "StepReport"),
    "start_run": ("serojump.samplers.rjmcmc", "start_run"),
    "step": ("serojump.samplers.rjmcmc", "step"),
    "diagnostics": ("serojump.samplers.rjmcmc", "diagnostics"),
    "summary": ("serojump.samplers.rjmcmc", "summary"),
    "cancel": ("serojump.samplers.rjmcmc", "cancel"),
    "to_arviz": ("serojump.samplers.rjmcmc", "to_arviz"),
    "run_rjmcmc": ("serojump.samplers.rjmcmc", "run_rjmcmc"),
    "print_summary": ("serojump.samplers.rjmcmc", "print_summary"),
    # Multi-core
    "get_optimal_chain_count": ("serojump.samplers.multicore", "get_optimal_chain_count"),
    "check_multicore_status": ("serojump.samplers.multicore", "check_multicore_status"),
}

__all__ = list(_MODULE_ALIASES.keys()) + list(_ATTRIBUTE_MAP.keys())


def __getattr__(name: str) -> Any:  # pragma: no cover - simple trampoline
    if name in _ATTRIBUTE_MAP:
        module_name, attr = _ATTRIBUTE_MAP[name]
        module = importlib.import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        return value
    if name in _MODULE_ALIASES:
        module = importlib.import_module(_MODULE_ALIASES[name])
        globals()[name] = module
        return module
    raise AttributeError(f"module 'serojump.samplers' has no attribute '{name}'")


def __dir__() -> list[str]:  # pragma: no cover - trivial helper
    return sorted(list(__all__) + [k for k in globals().keys() if not k.startswith("_")])
