"""
Elastic-Net Solvers

Penalised linear regression of the target on its candidate regulators along
the ridge/lasso continuum. When no penalty strength is supplied, one is
selected either by permutation testing or by cross-validation and reported
in the ``lambda`` column.
"""

import logging
from typing import Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.linear_model import ElasticNet, ElasticNetCV, Ridge, RidgeCV
from sklearn.model_selection import KFold

from ..exceptions import NumericalDegeneracyError
from ..solver import Solver, gene_correlations, score_frame, standardize

logger = logging.getLogger(__name__)

LAMBDA_SELECTION_METHODS = ('permutation', 'cv')


class ElasticNetSolver(Solver):
    """Elastic-net regression; score is the magnitude of the fitted coefficient."""

    SOLVER_ID = 'elastic-net'
    DEFAULT_ALPHA = 0.5
    SIGNED_SCORE = False

    def __init__(self, mtx_assay, target_gene, candidate_regulators,
                 regulator_weights=None, seed=None, quiet=True, *,
                 alpha: Optional[float] = None,
                 lambda_: Optional[float] = None,
                 lambda_selection: str = 'permutation',
                 n_permutations: int = 50,
                 keep_metrics: bool = False,
                 max_iter: int = 10000):
        alpha = self.DEFAULT_ALPHA if alpha is None else float(alpha)
        if not 0 <= alpha <= 1:
            raise ValueError(f"alpha must be between 0 and 1, got {alpha}")
        if lambda_ is not None and lambda_ < 0:
            raise ValueError(f"lambda_ must be non-negative, got {lambda_}")
        if lambda_selection not in LAMBDA_SELECTION_METHODS:
            raise ValueError(
                f"lambda_selection must be one of {LAMBDA_SELECTION_METHODS}, got '{lambda_selection}'"
            )
        if n_permutations < 1:
            raise ValueError("n_permutations must be positive")

        self.alpha = alpha
        self.lambda_ = None if lambda_ is None else float(lambda_)
        self.lambda_selection = lambda_selection
        self.n_permutations = int(n_permutations)
        self.keep_metrics = keep_metrics
        self.max_iter = int(max_iter)

        super().__init__(mtx_assay, target_gene, candidate_regulators,
                         regulator_weights=regulator_weights, seed=seed, quiet=quiet)

    def _requires_seed(self) -> bool:
        return self.lambda_ is None and self.lambda_selection == 'permutation'

    def __repr__(self) -> str:
        return f"{super().__repr__()}, alpha = {self.alpha:f}"

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        weights = self.regulator_weights.to_numpy()
        Xs, ys = standardize(X, y)
        # Penalty factors: shrinking column j by w_j scales its L1 penalty by w_j
        Xw = Xs / weights

        if self.lambda_ is not None:
            lam = self.lambda_
        elif self.lambda_selection == 'permutation':
            lam = self._permutation_lambda(Xw, ys)
        else:
            lam = self._cv_lambda(Xw, ys)
        self._log(f"{type(self).__name__} using lambda = {lam:.5f}, alpha = {self.alpha}")

        coef, r_squared = self._fit_penalized(Xw, ys, lam)
        beta = coef / weights

        aux = {
            'beta': beta,
            'gene_cor': gene_correlations(X, y).to_numpy(),
        }
        if self.keep_metrics or self.lambda_ is None:
            aux['lambda'] = lam
        if self.keep_metrics:
            aux['alpha'] = self.alpha
            aux['r_squared'] = r_squared

        return score_frame(self.regulators, np.abs(beta), **aux)

    def _permutation_lambda(self, Xw: np.ndarray, ys: np.ndarray) -> float:
        """Mean + sd of the smallest penalty that zeroes every coefficient under permuted targets."""
        rng = np.random.default_rng(self.seed)
        n = Xw.shape[0]
        alpha_perm = self.alpha if self.alpha > 0 else 0.1

        lambdas = np.empty(self.n_permutations)
        for i in range(self.n_permutations):
            y_perm = rng.permutation(ys)
            y_perm = y_perm - y_perm.mean()
            lambdas[i] = np.max(np.abs(Xw.T @ y_perm)) / (n * alpha_perm)

        spread = lambdas.std(ddof=1) if self.n_permutations > 1 else 0.0
        lam = float(lambdas.mean() + spread)
        if lam <= 0:
            raise NumericalDegeneracyError(
                "Permutation lambda is zero: no candidate regulator varies across samples",
                regulators=self.regulators
            )
        return lam

    def _cv_lambda(self, Xw: np.ndarray, ys: np.ndarray) -> float:
        n = Xw.shape[0]
        folds = KFold(n_splits=min(5, n))

        if self.alpha == 0:
            grid = np.logspace(-3, 3, 50)
            # Default R^2 scoring is undefined on single-sample folds
            model = RidgeCV(alphas=grid * n, cv=folds, scoring='neg_mean_squared_error')
            model.fit(Xw, ys)
            return float(model.alpha_ / n)

        model = ElasticNetCV(l1_ratio=self.alpha, cv=folds, max_iter=self.max_iter)
        model.fit(Xw, ys)
        return float(model.alpha_)

    def _fit_penalized(self, Xw: np.ndarray, ys: np.ndarray, lam: float) -> Tuple[np.ndarray, float]:
        n = Xw.shape[0]
        if self.alpha == 0:
            # ElasticNet with l1_ratio=0 is ridge with penalty n * lambda
            model = Ridge(alpha=n * lam)
            model.fit(Xw, ys)
        else:
            model = ElasticNet(alpha=lam, l1_ratio=self.alpha, max_iter=self.max_iter)
            model.fit(Xw, ys)
            if model.n_iter_ >= self.max_iter:
                raise NumericalDegeneracyError(
                    f"Elastic net did not converge within {self.max_iter} iterations (lambda = {lam:.5g})",
                    regulators=self.regulators
                )
        return np.asarray(model.coef_, dtype=float), float(model.score(Xw, ys))


class LassoSolver(ElasticNetSolver):
    """Lasso-leaning elastic net (alpha = 0.9 by default)."""

    SOLVER_ID = 'lasso'
    DEFAULT_ALPHA = 0.9


class RidgeSolver(ElasticNetSolver):
    """Ridge regression: the alpha = 0 end of the elastic-net family."""

    SOLVER_ID = 'ridge'
    DEFAULT_ALPHA = 0.0

    def __init__(self, mtx_assay, target_gene, candidate_regulators,
                 regulator_weights=None, seed=None, quiet=True, **params):
        if params.get('alpha') not in (None, 0):
            raise ValueError("RidgeSolver has a fixed alpha of 0")
        params['alpha'] = 0.0
        super().__init__(mtx_assay, target_gene, candidate_regulators,
                         regulator_weights=regulator_weights, seed=seed, quiet=quiet, **params)
