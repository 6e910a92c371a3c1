"""
Ensemble Solver - Consensus Regulator Ranking

Runs a configurable set of base solvers over the same target and candidate
regulators, normalizes their heterogeneous scores onto a common percentile
scale and reduces them to one consensus ranking.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd

from .config.settings import get_ensemble_config, get_solver_config, load_config
from .exceptions import AllSolversFailedError, SolverRuntimeError
from .execution import ExecutionContext
from .reduction import ConsensusReduction, get_reduction, normalize_scores
from .solver import Solver, resolve_candidates, resolve_regulator_weights, validate_expression_matrix
from .solvers import canonical_solver_id, get_solver_class

logger = logging.getLogger(__name__)


@dataclass
class SolverFailure:
    """Record of one solver that could not contribute (fully or partly)."""
    solver: str
    error_type: str
    message: str
    regulators: List[str] = field(default_factory=list)

    @classmethod
    def from_error(cls, solver: str, error: SolverRuntimeError) -> 'SolverFailure':
        return cls(
            solver=solver,
            error_type=type(error).__name__,
            message=str(error),
            regulators=list(error.regulators)
        )


@dataclass
class EnsembleResult:
    """Merged, normalized and ranked output of an ensemble run."""
    target_gene: str
    table: pd.DataFrame
    solvers: List[str]
    failures: List[SolverFailure] = field(default_factory=list)
    solver_tables: Dict[str, pd.DataFrame] = field(default_factory=dict)

    @property
    def warnings(self) -> List[str]:
        return [f"{f.solver}: {f.error_type}: {f.message}" for f in self.failures]

    def top(self, n: int = 10) -> pd.DataFrame:
        return self.table.head(n)

    def summary(self, n: int = 10) -> Dict[str, Any]:
        """Summary of the run for reporting."""
        return {
            'target_gene': self.target_gene,
            'solvers': list(self.solvers),
            'failed_solvers': [f.solver for f in self.failures],
            'regulator_count': len(self.table),
            'top_regulators': self.table.index[:n].tolist(),
            'warnings': self.warnings
        }


def combine_score_tables(tables: Dict[str, pd.DataFrame],
                         reduction: Optional[ConsensusReduction] = None) -> pd.DataFrame:
    """Merge per-solver Score Tables into one ranked table.

    Rows are the union of the regulators scored by any solver. For each solver
    the raw score and its normalized percentile rank (``<solver>_norm``) are
    kept; NaN marks a regulator that solver did not score. Columns are handled
    in sorted solver order so the caller's solver order never matters.
    """
    if not tables:
        raise ValueError("No score tables to combine")
    reduction = get_reduction(reduction)

    solver_ids = sorted(tables)
    genes = sorted(set().union(*(tables[sid].index for sid in solver_ids)))

    raw = pd.DataFrame({sid: tables[sid]['score'] for sid in solver_ids}).reindex(genes)
    normalized = pd.DataFrame(
        {sid: normalize_scores(tables[sid]['score']) for sid in solver_ids}
    ).reindex(genes)

    columns = {}
    for sid in solver_ids:
        columns[sid] = raw[sid]
        columns[f"{sid}_norm"] = normalized[sid]
    result = pd.DataFrame(columns, index=pd.Index(genes, name='gene'))

    result['consensus'] = reduction.reduce(normalized).reindex(genes).to_numpy(dtype=float)
    result['n_solvers'] = normalized.notna().sum(axis=1).to_numpy()
    result['concordance'] = (1.0 - (normalized.max(axis=1) - normalized.min(axis=1))).to_numpy()

    result = (result.reset_index()
              .sort_values(['consensus', 'n_solvers', 'gene'],
                           ascending=[False, False, True], kind='mergesort')
              .set_index('gene'))
    result['rank'] = np.arange(1, len(result) + 1)
    return result


class EnsembleSolver:
    """Consensus ranking of candidate regulators from several base solvers."""

    def __init__(self,
                 mtx_assay: pd.DataFrame,
                 target_gene: str,
                 candidate_regulators: Sequence[str],
                 solvers: Optional[Sequence[str]] = None,
                 solver_params: Optional[Dict[str, Dict[str, Any]]] = None,
                 regulator_weights=None,
                 seed: Optional[int] = None,
                 reduction=None,
                 context: Optional[ExecutionContext] = None,
                 config: Optional[Dict[str, Any]] = None,
                 keep_solver_tables: bool = False,
                 quiet: bool = True):
        """Validate the request once and construct every selected solver."""
        self.config = config if config is not None else load_config()
        ensemble_config = get_ensemble_config(self.config)

        validate_expression_matrix(mtx_assay)
        if isinstance(candidate_regulators, str):
            candidate_regulators = [candidate_regulators]
        candidate_regulators = list(candidate_regulators)
        self.mtx_assay = mtx_assay
        self.target_gene = target_gene
        self.regulators = resolve_candidates(mtx_assay, target_gene, candidate_regulators)
        self.regulator_weights = resolve_regulator_weights(
            self.regulators, regulator_weights, candidate_regulators
        )

        requested = solvers if solvers is not None else ensemble_config['solvers']
        if isinstance(requested, str):
            requested = [requested]
        self.solver_ids = list(dict.fromkeys(canonical_solver_id(name) for name in requested))
        if not self.solver_ids:
            raise ValueError("At least one solver must be selected")

        overrides = {}
        for name, params in (solver_params or {}).items():
            sid = canonical_solver_id(name)
            if sid not in self.solver_ids:
                logger.warning(f"Parameters given for solver '{sid}' which is not selected; ignoring")
                continue
            overrides[sid] = dict(params or {})

        self.seed = seed if seed is not None else ensemble_config['random_state']
        self.reduction = get_reduction(reduction if reduction is not None else ensemble_config['reduction'])
        self.context = context if context is not None else ExecutionContext(
            backend=ensemble_config['backend'],
            max_workers=ensemble_config['max_workers']
        )
        self.keep_solver_tables = keep_solver_tables
        self.quiet = quiet

        self.solvers: Dict[str, Solver] = {
            sid: self._build_solver(sid, overrides.get(sid, {})) for sid in self.solver_ids
        }

        logger.info(f"Initialized EnsembleSolver for {target_gene}: {len(self.regulators)} regulators, "
                    f"solvers {self.solver_ids}, backend {self.context.backend}")

    def _build_solver(self, solver_id: str, overrides: Dict[str, Any]) -> Solver:
        params = get_solver_config(solver_id, self.config)
        params.update(overrides)
        seed = params.pop('seed', self.seed)
        solver_class = get_solver_class(solver_id)
        return solver_class(
            self.mtx_assay,
            self.target_gene,
            self.regulators,
            regulator_weights=self.regulator_weights.to_dict(),
            seed=seed,
            quiet=self.quiet,
            **params
        )

    def get_solver(self, solver_id: str) -> Solver:
        return self.solvers[canonical_solver_id(solver_id)]

    def __repr__(self) -> str:
        n_rows, n_cols = self.mtx_assay.shape
        return (f"EnsembleSolver with mtx_assay ({n_rows}, {n_cols}), target_gene {self.target_gene}, "
                f"{len(self.regulators)} candidate regulators, solvers {','.join(self.solver_ids)}")

    def fit(self) -> EnsembleResult:
        """Run every solver, then merge whatever succeeded into one ranking."""
        outcomes = self.context.run(self.solvers)

        tables: Dict[str, pd.DataFrame] = {}
        failures: List[SolverFailure] = []
        for sid in sorted(outcomes):
            table, error = outcomes[sid]
            if error is None:
                tables[sid] = table
                continue

            failures.append(SolverFailure.from_error(sid, error))
            affected = error.regulators if error.regulators else self.regulators
            logger.warning(f"Solver '{sid}' failed for {len(affected)} regulator(s) "
                           f"{affected[:10]}: {type(error).__name__}: {error}")
            if error.partial is not None and len(error.partial) > 0:
                tables[sid] = error.partial

        if not tables:
            logger.error(f"All {len(failures)} solvers failed for target {self.target_gene}")
            raise AllSolversFailedError(failures)

        table = combine_score_tables(tables, self.reduction)
        logger.info(f"Ensemble ranking complete for {self.target_gene}: {len(tables)} of "
                    f"{len(self.solver_ids)} solvers contributed, top regulator {table.index[0]}")

        return EnsembleResult(
            target_gene=self.target_gene,
            table=table,
            solvers=sorted(tables),
            failures=failures,
            solver_tables=dict(tables) if self.keep_solver_tables else {}
        )

    def run(self) -> EnsembleResult:
        return self.fit()


def rank_regulators(mtx_assay: pd.DataFrame,
                    target_gene: str,
                    candidate_regulators: Sequence[str],
                    solvers: Optional[Sequence[str]] = None,
                    **kwargs) -> EnsembleResult:
    """Construct an EnsembleSolver and fit it in one call."""
    return EnsembleSolver(mtx_assay, target_gene, candidate_regulators,
                          solvers=solvers, **kwargs).fit()
