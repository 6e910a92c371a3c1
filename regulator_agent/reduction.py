"""
Score Normalization and Consensus Reductions

Per-solver scores live on different scales (correlations in [-1, 1],
unbounded coefficients, non-negative importances). Each column is turned into
a percentile rank of its magnitude, then a pluggable reduction collapses the
normalized columns into one consensus score per regulator.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import List, Optional, Union

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA

logger = logging.getLogger(__name__)


def normalize_scores(scores: pd.Series) -> pd.Series:
    """Percentile rank of |score| in (0, 1]; the strongest regulator gets 1."""
    return scores.abs().rank(method='average', pct=True)


class ConsensusReduction(ABC):
    """Collapse normalized per-solver columns into one consensus score."""

    name = 'reduction'

    @abstractmethod
    def reduce(self, normalized: pd.DataFrame) -> pd.Series:
        """Return one score per row; NaN cells mark solvers that did not score the row."""
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MeanRankReduction(ConsensusReduction):
    """Mean of the available normalized ranks (missing columns are not penalised)."""

    name = 'mean_rank'

    def reduce(self, normalized: pd.DataFrame) -> pd.Series:
        return normalized.mean(axis=1, skipna=True)


class PCAReduction(ConsensusReduction):
    """First principal component of the mean-imputed normalized columns, scaled to [0, 1]."""

    name = 'pca'

    def reduce(self, normalized: pd.DataFrame) -> pd.Series:
        if normalized.shape[1] < 2 or normalized.shape[0] < 2:
            logger.debug("PCA reduction needs two solvers and two regulators; using mean rank")
            return MeanRankReduction().reduce(normalized)

        filled = normalized.fillna(normalized.mean())
        pca = PCA(n_components=1, svd_solver='full')
        component = pca.fit_transform(filled.to_numpy(dtype=float))[:, 0]
        # Columns all point towards "more important", so orient loadings positively
        if pca.components_[0].sum() < 0:
            component = -component

        spread = component.max() - component.min()
        if spread <= 0:
            scaled = np.ones_like(component)
        else:
            scaled = (component - component.min()) / spread
        logger.debug(f"PCA reduction explained variance ratio: {pca.explained_variance_ratio_[0]:.3f}")
        return pd.Series(scaled, index=normalized.index)


class MetaModelReduction(ConsensusReduction):
    """Consensus from a regression model trained on the normalized solver columns."""

    name = 'meta_model'

    def __init__(self, model, fill_value: float = 0.5, solver_order: Optional[List[str]] = None):
        self.model = model
        self.fill_value = fill_value
        self.solver_order = list(solver_order) if solver_order else None

    def _design(self, normalized: pd.DataFrame) -> np.ndarray:
        columns = self.solver_order or sorted(normalized.columns)
        return normalized.reindex(columns=columns).fillna(self.fill_value).to_numpy(dtype=float)

    def fit(self, normalized: pd.DataFrame, labels: Union[pd.Series, Mapping]) -> 'MetaModelReduction':
        """Train the meta-model on regulators with known labels."""
        labels = pd.Series(labels, dtype=float) if isinstance(labels, Mapping) else labels.astype(float)
        labels = labels.reindex(normalized.index).dropna()
        if labels.empty:
            raise ValueError("No labelled regulators overlap the normalized score table")

        self.solver_order = sorted(normalized.columns)
        self.model.fit(self._design(normalized.loc[labels.index]), labels.to_numpy())
        logger.info(f"Trained meta-model on {len(labels)} regulators, {len(self.solver_order)} solvers")
        return self

    def reduce(self, normalized: pd.DataFrame) -> pd.Series:
        predictions = self.model.predict(self._design(normalized))
        return pd.Series(np.asarray(predictions, dtype=float).ravel(), index=normalized.index)

    def __repr__(self) -> str:
        return f"MetaModelReduction(model={self.model!r})"


REDUCTIONS = {
    'mean_rank': MeanRankReduction,
    'mean': MeanRankReduction,
    'pca': PCAReduction,
}


def get_reduction(reduction=None) -> ConsensusReduction:
    """Resolve a reduction instance or name (default mean of normalized ranks)."""
    if reduction is None:
        return MeanRankReduction()
    if isinstance(reduction, str):
        key = reduction.strip().lower().replace('-', '_')
        if key not in REDUCTIONS:
            raise ValueError(f"Unknown reduction '{reduction}'. Known reductions: {sorted(REDUCTIONS)}")
        return REDUCTIONS[key]()
    if hasattr(reduction, 'reduce'):
        return reduction
    raise TypeError(f"Reduction must be a name or expose reduce(), got {type(reduction).__name__}")
