#!/usr/bin/env python3
"""
Multi-core Utilities for SeroJump

Chain-count selection, chain-method detection and thread-pool execution of
independent chains.
"""

import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence, TypeVar

from .constants import (
    DEFAULT_NUM_CHAINS,
    LONG_RUN_NUM_CHAINS,
    LONG_RUN_STEP_THRESHOLD,
    MIN_CORES_FOR_PARALLEL,
    MAX_CHAIN_WORKERS,
)

T = TypeVar('T')
R = TypeVar('R')

CHAIN_METHODS = ('sequential', 'parallel')


def get_optimal_chain_count(total_steps: int) -> int:
    """
    Get the number of chains for a run of ``total_steps`` iterations.

    Long runs use fewer chains to bound the total amount of work.

    Examples
    --------
    >>> get_optimal_chain_count(2000)
    4
    >>> get_optimal_chain_count(8000)
    2
    """
    if total_steps > LONG_RUN_STEP_THRESHOLD:
        return LONG_RUN_NUM_CHAINS
    return DEFAULT_NUM_CHAINS


def detect_chain_method(chain_method: Optional[str], num_chains: int) -> str:
    """
    Detect how chains should be executed.

    Parameters
    ----------
    chain_method : str, optional
        User-specified method ('sequential' or 'parallel'); auto-detect if None.
    num_chains : int
        Number of chains in the run.

    Returns
    -------
    str
        Actual chain method to use.
    """
    if chain_method is not None:
        if chain_method not in CHAIN_METHODS:
            raise ValueError(
                f"Unknown chain_method '{chain_method}', expected one of {CHAIN_METHODS}"
            )
        return chain_method

    cpu_count = os.cpu_count() or 1
    if num_chains > 1 and cpu_count >= MIN_CORES_FOR_PARALLEL:
        return 'parallel'
    return 'sequential'


def get_worker_count(num_chains: int) -> int:
    """Number of worker threads for ``num_chains`` chains."""
    cpu_count = os.cpu_count() or 1
    return max(1, min(num_chains, cpu_count, MAX_CHAIN_WORKERS))


class ChainExecutor:
    """
    Apply a function to every chain, sequentially or on a thread pool.

    Results are returned in chain order whichever method is used. The
    executor owns its thread pool; call :meth:`shutdown` (or use it as a
    context manager) to release the workers.
    """

    def __init__(self, method: str, num_chains: int):
        if method not in CHAIN_METHODS:
            raise ValueError(
                f"Unknown chain_method '{method}', expected one of {CHAIN_METHODS}"
            )
        self.method = method
        self.num_workers = get_worker_count(num_chains) if method == 'parallel' else 1
        self._pool = None

    def map(self, fn: Callable[[T], R], items: Sequence[T]) -> List[R]:
        if self.method == 'sequential' or len(items) <= 1:
            return [fn(item) for item in items]

        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self.num_workers,
                thread_name_prefix='serojump-chain',
            )
        # Executor.map re-raises the first worker exception in the caller
        return list(self._pool.map(fn, items))

    @property
    def is_running(self) -> bool:
        """True while worker threads are alive."""
        return self._pool is not None

    def shutdown(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self) -> 'ChainExecutor':
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


def check_multicore_status(num_chains: Optional[int] = None) -> dict:
    """
    Check current multi-core configuration status.

    Returns
    -------
    dict
        System cores, recommended chain method and worker count.
    """
    num_chains = num_chains or DEFAULT_NUM_CHAINS
    method = detect_chain_method(None, num_chains)
    return {
        'system_cores': os.cpu_count(),
        'num_chains': num_chains,
        'chain_method': method,
        'num_workers': get_worker_count(num_chains) if method == 'parallel' else 1,
        'multicore_enabled': method == 'parallel',
    }