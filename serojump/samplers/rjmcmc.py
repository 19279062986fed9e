"""
Run-level interface of the SeroJump sampler.

Callers own the loop: :func:`start_run` validates the inputs and builds the
chains, :func:`step` advances every chain by one global iteration, and
:func:`diagnostics` / :func:`summary` reduce the draws accumulated so far.
:func:`run_rjmcmc` drives a run to completion with a rich progress display.

Example
-------
>>> handle = start_run(observations, GlobalConfig(total_steps=3000, burn_in=500), seed=42)
>>> while not handle.is_complete:
...     report = step(handle)
>>> result = summary(handle)
>>> result.individuals['ID1'].infection_probability
"""

import time
import warnings
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Hashable, Mapping, Optional, Sequence, Tuple, Union

import arviz as az
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeRemainingColumn
from rich.table import Table

from ..likelihoods import Likelihood, Observation, validate_observations
from .config import GlobalConfig, InvalidConfig
from .constants import LARGE_RUN_WARNING_STEPS
from .core import ChainPool
from .convergence import ConvergenceDiagnostics
from .results import PosteriorSummary, ResultAggregator
from .state import ChainPhase, LatentState


@dataclass(frozen=True)
class StepReport:
    """
    Progress of a run after one call to :func:`step`.

    ``latest_states`` maps each individual id to clones of its current
    latent state, one per chain.
    """

    iteration: int
    acceptance_rate: float
    latest_states: Mapping[Hashable, Tuple[LatentState, ...]]
    phase: ChainPhase
    cancelled: bool


class RunHandle:
    """Opaque handle to a started run."""

    def __init__(self, pool: ChainPool, config: GlobalConfig,
                 progress_callback: Optional[Callable[[StepReport], Any]] = None):
        self.pool = pool
        self.config = config
        self.progress_callback = progress_callback
        self.aggregator = ResultAggregator()

    @property
    def seed(self) -> int:
        return self.pool.seed

    @property
    def iteration(self) -> int:
        return self.pool.iteration

    @property
    def phase(self) -> ChainPhase:
        return self.pool.phase

    @property
    def is_complete(self) -> bool:
        return self.pool.is_complete

    @property
    def cancelled(self) -> bool:
        return self.pool.cancelled

    def close(self) -> None:
        """Release the worker threads of the run; the draws stay readable."""
        self.pool.close()

    def __enter__(self) -> 'RunHandle':
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return (f"RunHandle(chains={self.pool.num_chains}, iteration={self.iteration}/"
                f"{self.config.total_steps}, phase={self.phase.value})")


def _coerce_config(config: Union[GlobalConfig, Dict[str, Any], None]) -> GlobalConfig:
    if config is None:
        return GlobalConfig()
    if isinstance(config, GlobalConfig):
        config.validate()
        return config
    if isinstance(config, dict):
        return GlobalConfig.from_dict(config)
    raise InvalidConfig(f"Expected GlobalConfig or dict, got {type(config).__name__}")


def start_run(observations: Sequence[Observation],
              config: Union[GlobalConfig, Dict[str, Any], None] = None,
              seed: Optional[int] = None,
              chain_method: Optional[str] = None,
              progress_callback: Optional[Callable[[StepReport], Any]] = None,
              likelihood: Optional[Likelihood] = None) -> RunHandle:
    """
    Validate inputs and initialize every chain.

    Parameters
    ----------
    observations : sequence of Observation
        One entry per individual.
    config : GlobalConfig or dict, optional
        Run configuration; defaults to ``GlobalConfig()``.
    seed : int, optional
        Root seed of all chains. If None, derived from the current time.
    chain_method : str, optional
        'sequential' or 'parallel'; auto-detected if None.
    progress_callback : callable, optional
        Called with the :class:`StepReport` of every step.
    likelihood : Likelihood, optional
        Model; defaults to the permanent-boost likelihood.

    Raises
    ------
    InvalidDataset
        If the observations cannot be sampled.
    InvalidConfig
        If the configuration is invalid.
    """
    observations = validate_observations(observations)
    config = _coerce_config(config)

    if config.total_steps > LARGE_RUN_WARNING_STEPS:
        warnings.warn(
            f"total_steps={config.total_steps} exceeds {LARGE_RUN_WARNING_STEPS}; "
            f"the run may take a long time",
            UserWarning,
        )

    pool = ChainPool(observations, config, seed=seed, chain_method=chain_method,
                     likelihood=likelihood)
    return RunHandle(pool, config, progress_callback)


def step(handle: RunHandle) -> StepReport:
    """
    Advance all chains by one global iteration.

    After :func:`cancel`, the chains are completed instead and the report
    has ``cancelled=True``.

    Raises
    ------
    RuntimeError
        If the run has already completed.
    """
    handle.pool.step()
    report = StepReport(
        iteration=handle.pool.iteration,
        acceptance_rate=handle.pool.acceptance_rate,
        latest_states=handle.pool.latest_states(),
        phase=handle.pool.phase,
        cancelled=handle.pool.cancelled,
    )
    if handle.progress_callback is not None:
        handle.progress_callback(report)
    return report


def diagnostics(handle: RunHandle) -> Dict[str, Dict[str, float]]:
    """``{parameter: {rhat, ess, mean, sd}}`` over the draws retained so far."""
    return ConvergenceDiagnostics.summarize(handle.pool.snapshots())


def summary(handle: RunHandle) -> PosteriorSummary:
    """Posterior summary of the draws retained so far."""
    return handle.aggregator.summarize(
        handle.pool.snapshots(),
        iteration=handle.pool.iteration,
        acceptance_rate=handle.pool.acceptance_rate,
    )


def cancel(handle: RunHandle) -> None:
    """Request a cooperative stop before the next iteration."""
    handle.pool.cancel()


def to_arviz(handle: RunHandle) -> az.InferenceData:
    """Retained draws of every chain as ArviZ InferenceData."""
    return handle.aggregator.to_arviz(handle.pool.snapshots())


def run_rjmcmc(observations: Sequence[Observation],
               config: Union[GlobalConfig, Dict[str, Any], None] = None,
               seed: Optional[int] = None,
               chain_method: Optional[str] = None,
               verbose: bool = True,
               progress_bar: bool = True,
               progress_callback: Optional[Callable[[StepReport], Any]] = None,
               console: Optional[Console] = None) -> RunHandle:
    """
    Run the sampler to completion.

    Parameters are those of :func:`start_run`, plus:

    verbose : bool
        Print the configuration, timing and a convergence check.
    progress_bar : bool
        Show a rich progress bar (only when ``verbose``).
    console : rich.console.Console, optional
        Console to print to.

    Returns
    -------
    RunHandle
        The completed run; pass it to :func:`summary` or :func:`diagnostics`.
    """
    handle = start_run(observations, config, seed=seed, chain_method=chain_method,
                       progress_callback=progress_callback)
    console = console or (Console() if verbose else None)

    if verbose:
        _print_config(handle, console)

    start_time = time.time()
    start_datetime = datetime.now()
    if verbose:
        console.print(f"[bold]RJ-MCMC Started:[/bold] {start_datetime.strftime('%Y-%m-%d %H:%M:%S')}")

    total = handle.config.total_steps
    with handle:
        if progress_bar and verbose:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                BarColumn(),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeRemainingColumn(),
                console=console,
            ) as progress:
                task = progress.add_task(
                    f"Running RJ-MCMC ({handle.pool.num_chains} chains)", total=total
                )
                while not handle.is_complete:
                    report = step(handle)
                    progress.update(task, completed=report.iteration)
        else:
            while not handle.is_complete:
                step(handle)

    run_time = time.time() - start_time
    if verbose:
        _print_completion(handle, console, run_time)
    return handle


def _print_config(handle: RunHandle, console: Console) -> None:
    config = handle.config
    config_panel = Panel.fit(
        f"[cyan]Individuals:[/cyan] {len(handle.pool.observations)}\n"
        f"[cyan]Chains:[/cyan] {handle.pool.num_chains}\n"
        f"[cyan]Steps:[/cyan] {config.total_steps}\n"
        f"[cyan]Burn-in:[/cyan] {config.burn_in}\n"
        f"[cyan]Thinning:[/cyan] {config.thinning}\n"
        f"[cyan]Infection rate:[/cyan] {config.infection_rate}\n"
        f"[cyan]Method:[/cyan] {handle.pool.chain_method}\n"
        f"[cyan]Seed:[/cyan] {handle.seed}",
        title="RJ-MCMC Configuration",
        border_style="blue",
    )
    console.print(config_panel)


def _print_completion(handle: RunHandle, console: Console, run_time: float) -> None:
    if handle.cancelled:
        console.print(f"\n[yellow]⚠ RJ-MCMC cancelled at iteration {handle.iteration}[/yellow]")
    else:
        console.print(f"\n[green]✓ RJ-MCMC completed in {run_time:.2f} seconds[/green]")
    console.print(f"[bold]Acceptance rate:[/bold] {handle.pool.acceptance_rate:.3f}")

    converged, issues = ConvergenceDiagnostics.check_convergence(diagnostics(handle))
    if converged:
        console.print("[green]✓ All parameters converged[/green]")
    else:
        console.print(f"[yellow]⚠ Convergence issues: {escape('; '.join(issues))}[/yellow]")


def _format_rhat(rhat: float) -> str:
    if rhat != rhat:
        return "[dim]nan[/dim]"
    if rhat < 1.01:
        return f"[green]{rhat:.3f}[/green]"
    if rhat < 1.1:
        return f"[yellow]{rhat:.3f}[/yellow]"
    return f"[red]{rhat:.3f}[/red]"


def print_summary(result: PosteriorSummary, console: Optional[Console] = None) -> None:
    """
    Print a summary of the posterior with rich tables.

    Parameters
    ----------
    result : PosteriorSummary
        Output of :func:`summary`.
    console : rich.console.Console, optional
        Console to print to.
    """
    console = console or Console()

    individuals = Table(title="Posterior Infection Probability")
    individuals.add_column("Individual", style="cyan", no_wrap=True)
    individuals.add_column("P(infected)", justify="right")
    individuals.add_column("Draws", justify="right")
    individuals.add_column("First infection (min, Q1, median, Q3, max)", justify="center")
    for ind, s in result.individuals.items():
        if s.timing is None:
            timing = "-"
        else:
            t = s.timing
            timing = escape(f"[{t.minimum:.2f}, {t.q1:.2f}, {t.median:.2f}, "
                            f"{t.q3:.2f}, {t.maximum:.2f}]")
        individuals.add_row(str(ind), f"{s.infection_probability:.3f}", str(s.n_draws), timing)
    console.print(individuals)

    parameters = Table(title="Convergence Diagnostics")
    parameters.add_column("Parameter", style="cyan", no_wrap=True)
    parameters.add_column("Mean", justify="right")
    parameters.add_column("Std", justify="right")
    parameters.add_column("95% HPDI", justify="center")
    parameters.add_column("n_eff", justify="right")
    parameters.add_column("r_hat", justify="right")
    for name, p in result.parameters.items():
        parameters.add_row(
            name,
            f"{p.mean:.4f}",
            f"{p.sd:.4f}",
            escape(f"[{p.hpdi_lower:.4f}, {p.hpdi_upper:.4f}]"),
            f"{p.ess:.0f}" if p.ess == p.ess else "nan",
            _format_rhat(p.rhat),
        )
    console.print(parameters)

    count = result.infection_count
    console.print(Panel.fit(
        f"[cyan]Mean:[/cyan] {count.mean:.2f}\n"
        f"[cyan]95% interval:[/cyan] {escape(f'[{count.lower:.0f}, {count.upper:.0f}]')}\n"
        f"[cyan]Draws:[/cyan] {count.n_draws}\n"
        f"[cyan]Iteration:[/cyan] {result.iteration}\n"
        f"[cyan]Acceptance rate:[/cyan] {result.acceptance_rate:.3f}",
        title="Study-wide Infections",
        border_style="blue",
    ))
