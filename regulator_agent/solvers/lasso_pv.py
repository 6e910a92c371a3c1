"""
P-Value Lasso Solver

Assigns each regulator an empirical p-value from the penalty at which it
enters the lasso path, compared with entry penalties reached when the target
is permuted.
"""

import logging

import numpy as np
import pandas as pd
from sklearn.linear_model import Lasso, lasso_path

from ..exceptions import NumericalDegeneracyError
from ..solver import Solver, gene_correlations, score_frame, standardize

logger = logging.getLogger(__name__)


def entry_penalties(X: np.ndarray, y: np.ndarray, alphas: np.ndarray, max_iter: int = 10000) -> np.ndarray:
    """Largest penalty on a descending grid at which each column is active (0 if never)."""
    _, coefs, _ = lasso_path(X, y, alphas=alphas, max_iter=max_iter)
    active = np.abs(coefs) > 0
    first = np.argmax(active, axis=1)
    return np.where(active.any(axis=1), alphas[first], 0.0)


class LassoPVSolver(Solver):
    """Lasso with permutation p-values for every candidate regulator."""

    SOLVER_ID = 'p-value-lasso'
    MIN_SAMPLES = 4
    STOCHASTIC = True

    def __init__(self, mtx_assay, target_gene, candidate_regulators,
                 regulator_weights=None, seed=None, quiet=True, *,
                 n_permutations: int = 100,
                 n_alphas: int = 100,
                 max_iter: int = 10000):
        if n_permutations < 1:
            raise ValueError("n_permutations must be positive")
        if n_alphas < 2:
            raise ValueError("n_alphas must be at least 2")

        self.n_permutations = int(n_permutations)
        self.n_alphas = int(n_alphas)
        self.max_iter = int(max_iter)

        super().__init__(mtx_assay, target_gene, candidate_regulators,
                         regulator_weights=regulator_weights, seed=seed, quiet=quiet)

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        weights = self.regulator_weights.to_numpy()
        Xs, ys = standardize(X, y)
        Xw = Xs / weights
        n = Xw.shape[0]

        rng = np.random.default_rng(self.seed)
        permuted = [rng.permutation(ys) for _ in range(self.n_permutations)]

        # One shared grid so observed and null entry penalties are comparable
        alpha_max = max(np.max(np.abs(Xw.T @ target)) / n for target in [ys] + permuted)
        if alpha_max <= 0:
            raise NumericalDegeneracyError(
                "No candidate regulator varies across samples",
                regulators=self.regulators
            )
        alphas = np.geomspace(alpha_max, alpha_max * 1e-3, self.n_alphas)

        observed = entry_penalties(Xw, ys, alphas, self.max_iter)
        null = np.vstack([entry_penalties(Xw, target, alphas, self.max_iter) for target in permuted])

        exceed = (null >= observed).sum(axis=0)
        p_values = (1 + exceed) / (1 + self.n_permutations)

        lam = float(np.median(null.max(axis=1)))
        if lam <= 0:
            raise NumericalDegeneracyError(
                "Null entry penalty is zero; permuted targets never activate a regulator",
                regulators=self.regulators
            )
        self._log(f"LassoPVSolver null penalty = {lam:.5f} from {self.n_permutations} permutations")

        model = Lasso(alpha=lam, max_iter=self.max_iter)
        model.fit(Xw, ys)
        if model.n_iter_ >= self.max_iter:
            raise NumericalDegeneracyError(
                f"Lasso did not converge within {self.max_iter} iterations",
                regulators=self.regulators
            )
        beta = np.asarray(model.coef_, dtype=float) / weights

        return score_frame(
            self.regulators, beta,
            p_value=p_values,
            gene_cor=gene_correlations(X, y).to_numpy(),
            **{'lambda': lam}
        )
