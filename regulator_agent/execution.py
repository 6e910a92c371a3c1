"""
Execution Context

Explicit parallel-execution settings threaded through the ensemble. Solver
fits are independent, so they can run sequentially (default), in a thread or
process pool, or on any caller-supplied executor exposing ``submit``.
"""

import logging
from concurrent.futures import ProcessPoolExecutor, ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from .exceptions import SolverRuntimeError
from .solver import Solver

logger = logging.getLogger(__name__)

BACKENDS = ('sequential', 'thread', 'process')

SolverOutcome = Tuple[Optional[pd.DataFrame], Optional[SolverRuntimeError]]


def run_solver(solver: Solver) -> SolverOutcome:
    """Fit one solver, returning runtime failures instead of raising them."""
    try:
        return solver.fit(), None
    except SolverRuntimeError as e:
        return None, e


@dataclass
class ExecutionContext:
    """How solver fits are dispatched"""

    backend: str = 'sequential'
    max_workers: Optional[int] = None
    executor: Optional[Any] = None

    def __post_init__(self):
        """Validate execution settings"""
        if self.executor is None and self.backend not in BACKENDS:
            raise ValueError(f"backend must be one of {BACKENDS}, got '{self.backend}'")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ValueError("max_workers must be positive")
        if self.executor is not None and not hasattr(self.executor, 'submit'):
            raise ValueError("executor must expose a submit(fn, *args) method")

    def run(self, solvers: Dict[str, Solver]) -> Dict[str, SolverOutcome]:
        """Fit every solver and wait for all of them to finish or fail."""
        if self.executor is not None:
            futures = {name: self.executor.submit(run_solver, solver) for name, solver in solvers.items()}
            return {name: future.result() for name, future in futures.items()}

        if self.backend == 'sequential' or len(solvers) <= 1:
            return {name: run_solver(solver) for name, solver in solvers.items()}

        pool_class = ThreadPoolExecutor if self.backend == 'thread' else ProcessPoolExecutor
        outcomes = {}
        with pool_class(max_workers=self.max_workers) as pool:
            futures = {pool.submit(run_solver, solver): name for name, solver in solvers.items()}
            for future in as_completed(futures):
                name = futures[future]
                outcomes[name] = future.result()
                logger.debug(f"Solver '{name}' finished on {self.backend} backend")
        return outcomes
