"""
Regulator Ensemble Agent

Ranks candidate transcription factors of a target gene by running several
regression and association solvers over an expression matrix and merging
their scores into one consensus ranking.
"""

__version__ = "1.0.0"

from .exceptions import (
    RegulatorAgentError,
    InvalidMatrixError,
    InvalidTargetError,
    InvalidCandidateSetError,
    UnknownSolverError,
    InsufficientDataError,
    NumericalDegeneracyError,
    AllSolversFailedError
)
from .solver import Solver
from .solvers import (
    ElasticNetSolver,
    LassoSolver,
    RidgeSolver,
    SqrtLassoSolver,
    LassoPVSolver,
    RandomForestSolver,
    PearsonSolver,
    SpearmanSolver,
    BayesSpikeSolver,
    available_solvers,
    get_solver_class
)
from .execution import ExecutionContext
from .reduction import MeanRankReduction, PCAReduction, MetaModelReduction, normalize_scores
from .ensemble import EnsembleSolver, EnsembleResult, SolverFailure, combine_score_tables, rank_regulators
from .filters import CandidateFilter, CandidateListFilter, VarianceFilter, apply_filters

__all__ = [
    'RegulatorAgentError',
    'InvalidMatrixError',
    'InvalidTargetError',
    'InvalidCandidateSetError',
    'UnknownSolverError',
    'InsufficientDataError',
    'NumericalDegeneracyError',
    'AllSolversFailedError',
    'Solver',
    'ElasticNetSolver',
    'LassoSolver',
    'RidgeSolver',
    'SqrtLassoSolver',
    'LassoPVSolver',
    'RandomForestSolver',
    'PearsonSolver',
    'SpearmanSolver',
    'BayesSpikeSolver',
    'available_solvers',
    'get_solver_class',
    'ExecutionContext',
    'MeanRankReduction',
    'PCAReduction',
    'MetaModelReduction',
    'normalize_scores',
    'EnsembleSolver',
    'EnsembleResult',
    'SolverFailure',
    'combine_score_tables',
    'rank_regulators',
    'CandidateFilter',
    'CandidateListFilter',
    'VarianceFilter',
    'apply_filters'
]
