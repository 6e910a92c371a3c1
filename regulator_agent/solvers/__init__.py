"""
Base Solvers

Registry of every regulator-scoring strategy, keyed by solver identifier.
"""

from typing import Dict, List, Type

from ..exceptions import UnknownSolverError
from ..solver import Solver
from .bayes_spike import BayesSpikeSolver
from .correlation import PearsonSolver, SpearmanSolver
from .elastic_net import ElasticNetSolver, LassoSolver, RidgeSolver
from .lasso_pv import LassoPVSolver
from .random_forest import RandomForestSolver
from .sqrt_lasso import SqrtLassoSolver

SOLVER_REGISTRY: Dict[str, Type[Solver]] = {
    cls.SOLVER_ID: cls for cls in (
        ElasticNetSolver,
        LassoSolver,
        RidgeSolver,
        SqrtLassoSolver,
        LassoPVSolver,
        RandomForestSolver,
        PearsonSolver,
        SpearmanSolver,
        BayesSpikeSolver,
    )
}

SOLVER_ALIASES = {
    'elasticnet': 'elastic-net',
    'sqrtlasso': 'sqrt-lasso',
    'lassopv': 'p-value-lasso',
    'lasso-pv': 'p-value-lasso',
    'pvalue-lasso': 'p-value-lasso',
    'randomforest': 'random-forest',
    'rf': 'random-forest',
    'bayesspike': 'bayes-spike-slab',
    'bayes-spike': 'bayes-spike-slab',
}


def canonical_solver_id(name: str) -> str:
    """Normalise a solver identifier; raises UnknownSolverError if it is not registered."""
    key = str(name).strip().lower().replace('_', '-')
    key = SOLVER_ALIASES.get(key, key)
    if key not in SOLVER_REGISTRY:
        raise UnknownSolverError(
            f"Unknown solver '{name}'. Known solvers: {', '.join(available_solvers())}"
        )
    return key


def get_solver_class(name: str) -> Type[Solver]:
    return SOLVER_REGISTRY[canonical_solver_id(name)]


def available_solvers() -> List[str]:
    return sorted(SOLVER_REGISTRY)


__all__ = [
    'SOLVER_REGISTRY',
    'canonical_solver_id',
    'get_solver_class',
    'available_solvers',
    'ElasticNetSolver',
    'LassoSolver',
    'RidgeSolver',
    'SqrtLassoSolver',
    'LassoPVSolver',
    'RandomForestSolver',
    'PearsonSolver',
    'SpearmanSolver',
    'BayesSpikeSolver',
]
