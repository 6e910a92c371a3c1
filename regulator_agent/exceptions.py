"""
Regulator Agent Exceptions

Error taxonomy shared by the solvers and the ensemble combiner.

Request errors (bad target, empty candidate set, unknown solver) abort the
whole call. Runtime errors (too few samples, degenerate fits) are raised by a
single solver and are degraded to an absent column by the ensemble.
"""

from typing import Any, List, Optional


class RegulatorAgentError(Exception):
    """Base exception for regulator inference errors"""
    pass


class InvalidMatrixError(RegulatorAgentError, ValueError):
    """Custom exception for malformed expression matrices"""
    pass


class InvalidTargetError(RegulatorAgentError):
    """Target gene is not a row of the expression matrix"""
    pass


class InvalidCandidateSetError(RegulatorAgentError):
    """No usable candidate regulator remains after intersection"""
    pass


class UnknownSolverError(RegulatorAgentError):
    """Solver identifier does not resolve to a known solver"""
    pass


class SolverRuntimeError(RegulatorAgentError):
    """Failure of one solver during fit; the ensemble degrades it to absent."""

    def __init__(self, message: str,
                 solver: Optional[str] = None,
                 regulators: Optional[List[str]] = None,
                 partial: Optional[Any] = None):
        super().__init__(message)
        self.solver = solver
        self.regulators = list(regulators) if regulators else []
        # Score table for the regulators that could still be scored
        self.partial = partial


class InsufficientDataError(SolverRuntimeError):
    """Too few samples for the chosen method"""
    pass


class NumericalDegeneracyError(SolverRuntimeError):
    """Singular fit, non-convergence or zero-variance input"""
    pass


class AllSolversFailedError(RegulatorAgentError):
    """Every selected solver failed; carries each underlying cause."""

    def __init__(self, failures: List[Any]):
        self.failures = list(failures)
        causes = "; ".join(
            f"{f.solver}: {f.error_type}: {f.message}" for f in self.failures
        )
        super().__init__(f"All {len(self.failures)} solvers failed ({causes})")
