"""
Square-Root Lasso Solver

Minimises ||y - Xb|| / sqrt(n) + lambda * ||b||_1 through the scaled-lasso
fixed point: a lasso fit at penalty lambda * sigma alternated with the
residual scale update sigma = ||y - Xb|| / sqrt(n).
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.linear_model import Lasso

from ..exceptions import NumericalDegeneracyError
from ..solver import Solver, gene_correlations, score_frame, standardize

logger = logging.getLogger(__name__)


def pivotal_lambda(n_samples: int, n_regulators: int, level: float = 0.05, c: float = 1.1) -> float:
    """Data-independent penalty c * Phi^-1(1 - level / 2p) / sqrt(n)."""
    return float(c * stats.norm.ppf(1 - level / (2 * n_regulators)) / np.sqrt(n_samples))


class SqrtLassoSolver(Solver):
    """Square-root lasso; the noise level never has to be estimated up front."""

    SOLVER_ID = 'sqrt-lasso'

    def __init__(self, mtx_assay, target_gene, candidate_regulators,
                 regulator_weights=None, seed=None, quiet=True, *,
                 lambda_: Optional[float] = None,
                 max_iter: int = 100,
                 tol: float = 1e-5,
                 lasso_max_iter: int = 10000):
        if lambda_ is not None and lambda_ < 0:
            raise ValueError(f"lambda_ must be non-negative, got {lambda_}")
        if max_iter < 1:
            raise ValueError("max_iter must be positive")

        self.lambda_ = None if lambda_ is None else float(lambda_)
        self.max_iter = int(max_iter)
        self.tol = float(tol)
        self.lasso_max_iter = int(lasso_max_iter)

        super().__init__(mtx_assay, target_gene, candidate_regulators,
                         regulator_weights=regulator_weights, seed=seed, quiet=quiet)

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        weights = self.regulator_weights.to_numpy()
        Xs, ys = standardize(X, y)
        Xw = Xs / weights
        n, p = Xw.shape

        lam = self.lambda_ if self.lambda_ is not None else pivotal_lambda(n, p)

        sigma = float(np.std(ys))
        model = Lasso(alpha=lam * sigma, max_iter=self.lasso_max_iter, tol=1e-8, warm_start=True)
        for iteration in range(1, self.max_iter + 1):
            model.set_params(alpha=lam * sigma)
            model.fit(Xw, ys)
            if model.n_iter_ >= self.lasso_max_iter:
                raise NumericalDegeneracyError(
                    f"Inner lasso did not converge at iteration {iteration}",
                    regulators=self.regulators
                )

            residual = ys - model.predict(Xw)
            new_sigma = float(np.linalg.norm(residual) / np.sqrt(n))
            if new_sigma <= 1e-10:
                raise NumericalDegeneracyError(
                    f"Residual scale collapsed to zero (lambda = {lam:.4g} is too small)",
                    regulators=self.regulators
                )

            delta = abs(new_sigma - sigma)
            sigma = new_sigma
            if delta <= self.tol * sigma:
                break
        else:
            raise NumericalDegeneracyError(
                f"Scaled-lasso iterations did not converge within {self.max_iter} steps",
                regulators=self.regulators
            )

        self._log(f"SqrtLassoSolver converged after {iteration} iterations, sigma = {sigma:.4f}")
        beta = np.asarray(model.coef_, dtype=float) / weights

        return score_frame(
            self.regulators, beta,
            gene_cor=gene_correlations(X, y).to_numpy(),
            **{'lambda': lam, 'sigma': sigma}
        )
