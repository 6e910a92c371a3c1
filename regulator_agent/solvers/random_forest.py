"""
Random Forest Solver

Regulator importance as the mean decrease in node impurity of a random forest
regressing the target on its candidate regulators.
"""

import logging
from typing import Optional, Union

import pandas as pd
from sklearn.ensemble import RandomForestRegressor
from sklearn.inspection import permutation_importance as sk_permutation_importance

from ..solver import Solver, gene_correlations, score_frame

logger = logging.getLogger(__name__)


class RandomForestSolver(Solver):
    """Random-forest importance; seeded, with n_jobs as the parallel knob."""

    SOLVER_ID = 'random-forest'
    MIN_SAMPLES = 8
    STOCHASTIC = True
    SIGNED_SCORE = False

    def __init__(self, mtx_assay, target_gene, candidate_regulators,
                 regulator_weights=None, seed=None, quiet=True, *,
                 n_estimators: int = 500,
                 max_features: Union[float, int, str] = 1 / 3,
                 min_samples_leaf: int = 1,
                 n_jobs: Optional[int] = None,
                 permutation_importance: bool = False,
                 n_repeats: int = 10):
        if n_estimators < 1:
            raise ValueError("n_estimators must be positive")

        self.n_estimators = int(n_estimators)
        self.max_features = max_features
        self.min_samples_leaf = min_samples_leaf
        self.n_jobs = n_jobs
        self.permutation_importance = permutation_importance
        self.n_repeats = int(n_repeats)

        # Weights are accepted for contract compatibility; trees are not penalised
        super().__init__(mtx_assay, target_gene, candidate_regulators,
                         regulator_weights=regulator_weights, seed=seed, quiet=quiet)

    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        model = RandomForestRegressor(
            n_estimators=self.n_estimators,
            max_features=self.max_features,
            min_samples_leaf=self.min_samples_leaf,
            random_state=self.seed,
            n_jobs=self.n_jobs
        )
        Xv = X.to_numpy(dtype=float)
        yv = y.to_numpy(dtype=float)
        model.fit(Xv, yv)

        aux = {'gene_cor': gene_correlations(X, y).to_numpy()}
        if self.permutation_importance:
            result = sk_permutation_importance(
                model, Xv, yv,
                n_repeats=self.n_repeats,
                random_state=self.seed,
                n_jobs=self.n_jobs
            )
            aux['perm_importance'] = result.importances_mean

        return score_frame(self.regulators, model.feature_importances_, **aux)
