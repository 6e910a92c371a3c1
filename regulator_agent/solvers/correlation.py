"""
Correlation Solvers

Pearson and Spearman correlation of each candidate regulator with the target,
with two-sided p-values.
"""

import logging
from typing import Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..exceptions import NumericalDegeneracyError
from ..solver import Solver

logger = logging.getLogger(__name__)


class CorrelationSolver(Solver):
    """Shared logic for the correlation solvers."""

    SOLVER_ID = 'correlation'

    def _correlate(self, x: np.ndarray, y: np.ndarray) -> Tuple[float, float]:
        raise NotImplementedError

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        yv = y.to_numpy(dtype=float)

        degenerate = []
        rows = {}
        for name in X.columns:
            xv = X[name].to_numpy(dtype=float)
            if np.ptp(xv) == 0:
                degenerate.append(name)
                continue
            coefficient, p_value = self._correlate(xv, yv)
            rows[name] = (float(coefficient), float(p_value))

        table = pd.DataFrame.from_dict(rows, orient='index', columns=['score', 'p_value'])

        if degenerate:
            raise NumericalDegeneracyError(
                f"{type(self).__name__}: zero-variance regulators {degenerate[:10]}",
                regulators=degenerate,
                partial=table if rows else None
            )
        return table


class PearsonSolver(CorrelationSolver):
    """Pearson product-moment correlation."""

    SOLVER_ID = 'pearson'

    def _correlate(self, x, y):
        return stats.pearsonr(x, y)


class SpearmanSolver(CorrelationSolver):
    """Spearman rank correlation."""

    SOLVER_ID = 'spearman'

    def _correlate(self, x, y):
        return stats.spearmanr(x, y)
