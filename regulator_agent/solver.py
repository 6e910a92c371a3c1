"""
Solver Base Class

Common contract for every regulator-scoring strategy: input validation,
candidate resolution, the fit() entry point and the Score Table shape.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from .exceptions import (
    InvalidCandidateSetError,
    InvalidMatrixError,
    InvalidTargetError,
    InsufficientDataError,
    NumericalDegeneracyError,
    SolverRuntimeError,
)

logger = logging.getLogger(__name__)

WeightSpec = Optional[Union[Mapping, Sequence[float]]]


def validate_expression_matrix(mtx_assay: pd.DataFrame) -> None:
    """Check that the matrix is a numeric, finite table with unique row names."""
    if not isinstance(mtx_assay, pd.DataFrame):
        raise InvalidMatrixError(
            f"Expression matrix must be a pandas DataFrame, got {type(mtx_assay).__name__}"
        )
    if mtx_assay.shape[0] == 0 or mtx_assay.shape[1] == 0:
        raise InvalidMatrixError(f"Expression matrix is empty: shape {mtx_assay.shape}")

    if not mtx_assay.index.is_unique:
        duplicated = mtx_assay.index[mtx_assay.index.duplicated()].unique().tolist()
        raise InvalidMatrixError(f"Duplicated row names in expression matrix: {duplicated[:5]}")

    non_numeric = [col for col in mtx_assay.columns
                   if not pd.api.types.is_numeric_dtype(mtx_assay[col])]
    if non_numeric:
        raise InvalidMatrixError(f"Non-numeric sample columns: {non_numeric[:5]}")

    if not np.all(np.isfinite(mtx_assay.to_numpy(dtype=float))):
        raise InvalidMatrixError("Expression matrix contains NaN or infinite values")


def resolve_candidates(mtx_assay: pd.DataFrame,
                       target_gene: str,
                       candidate_regulators: Sequence[str]) -> List[str]:
    """Drop the target and unknown names from the candidates, keeping order."""
    if target_gene not in mtx_assay.index:
        raise InvalidTargetError(f"Target gene '{target_gene}' not found in expression matrix")

    if isinstance(candidate_regulators, str):
        candidate_regulators = [candidate_regulators]
    candidate_regulators = list(candidate_regulators)

    present = set(mtx_assay.index)
    resolved = []
    seen = set()
    for name in candidate_regulators:
        if name == target_gene or name in seen or name not in present:
            continue
        seen.add(name)
        resolved.append(name)

    if not resolved:
        raise InvalidCandidateSetError(
            f"No candidate regulators of '{target_gene}' remain after intersection "
            f"with the expression matrix"
        )

    dropped = len(candidate_regulators) - len(resolved)
    if dropped:
        logger.debug(f"Dropped {dropped} candidates (target, duplicates or absent from matrix)")

    return resolved


def resolve_regulator_weights(regulators: List[str],
                              regulator_weights: WeightSpec = None,
                              candidate_regulators: Optional[Sequence[str]] = None) -> pd.Series:
    """Align regulator weights with the resolved regulators (default weight 1)."""
    if regulator_weights is None:
        lookup = {}
    elif isinstance(regulator_weights, (Mapping, pd.Series)):
        lookup = dict(regulator_weights.items())
    else:
        weights = list(regulator_weights)
        names = list(candidate_regulators) if candidate_regulators is not None else regulators
        if len(weights) != len(names):
            raise ValueError(
                f"Got {len(weights)} regulator weights for {len(names)} candidate regulators"
            )
        lookup = dict(zip(names, weights))

    series = pd.Series([float(lookup.get(name, 1.0)) for name in regulators],
                       index=pd.Index(regulators, name='gene'), dtype=float)

    values = series.to_numpy()
    if not np.all(np.isfinite(values)) or np.any(values <= 0):
        bad = series[~(np.isfinite(values) & (values > 0))].index.tolist()
        raise ValueError(f"Regulator weights must be positive and finite: {bad[:5]}")

    return series


def standardize(X: pd.DataFrame, y: pd.Series) -> Tuple[np.ndarray, np.ndarray]:
    """Scale regulators to unit variance and the target to zero mean, unit variance."""
    Xs = StandardScaler().fit_transform(X.to_numpy(dtype=float))
    yv = y.to_numpy(dtype=float)
    ys = (yv - yv.mean()) / yv.std()
    return Xs, ys


def gene_correlations(X: pd.DataFrame, y: pd.Series) -> pd.Series:
    """Pearson correlation of each regulator with the target (NaN for constant rows)."""
    xc = X.to_numpy(dtype=float) - X.to_numpy(dtype=float).mean(axis=0)
    yc = y.to_numpy(dtype=float) - y.to_numpy(dtype=float).mean()
    with np.errstate(invalid='ignore', divide='ignore'):
        r = (xc.T @ yc) / np.sqrt((xc ** 2).sum(axis=0) * (yc ** 2).sum())
    return pd.Series(r, index=X.columns)


class Solver(ABC):
    """Abstract regulator-scoring strategy.

    Subclasses implement ``_fit(X, y)`` which receives float copies of the
    regulator matrix (samples x regulators) and the target vector, and returns
    a DataFrame indexed by regulator with a ``score`` column plus any
    auxiliary statistics.
    """

    SOLVER_ID = 'solver'
    MIN_SAMPLES = 3
    STOCHASTIC = False
    SIGNED_SCORE = True

    def __init__(self,
                 mtx_assay: pd.DataFrame,
                 target_gene: str,
                 candidate_regulators: Sequence[str],
                 regulator_weights: WeightSpec = None,
                 seed: Optional[int] = None,
                 quiet: bool = True):
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
        self.seed = seed
        self.quiet = quiet

        if self._requires_seed() and seed is None:
            raise ValueError(f"{type(self).__name__} is stochastic and requires an explicit seed")

    def _requires_seed(self) -> bool:
        return self.STOCHASTIC

    def _log(self, message: str) -> None:
        logger.log(logging.DEBUG if self.quiet else logging.INFO, message)

    def get_assay_data(self) -> pd.DataFrame:
        return self.mtx_assay

    def get_target(self) -> str:
        return self.target_gene

    def get_regulators(self) -> List[str]:
        return list(self.regulators)

    def get_regulator_weights(self) -> pd.Series:
        return self.regulator_weights.copy()

    def __repr__(self) -> str:
        regulator_string = ",".join(self.regulators[:10])
        if len(self.regulators) > 10:
            regulator_string += "..."
        n_rows, n_cols = self.mtx_assay.shape
        return (f"{type(self).__name__} with mtx_assay ({n_rows}, {n_cols}), "
                f"target_gene {self.target_gene}, {len(self.regulators)} candidate "
                f"regulators {regulator_string}")

    def fit(self) -> pd.DataFrame:
        """Score every candidate regulator and return a fresh Score Table."""
        n_samples = self.mtx_assay.shape[1]
        if n_samples < self.MIN_SAMPLES:
            raise InsufficientDataError(
                f"{type(self).__name__} requires at least {self.MIN_SAMPLES} samples, got {n_samples}",
                solver=self.SOLVER_ID,
                regulators=self.regulators
            )

        X = self.mtx_assay.loc[self.regulators].T.astype(float).copy()
        y = self.mtx_assay.loc[self.target_gene].astype(float).copy()

        if np.ptp(y.to_numpy()) == 0:
            raise NumericalDegeneracyError(
                f"Target gene '{self.target_gene}' has zero variance",
                solver=self.SOLVER_ID,
                regulators=self.regulators
            )

        self._log(f"Fitting {type(self).__name__}: {len(self.regulators)} regulators, "
                  f"{n_samples} samples, target {self.target_gene}")

        try:
            raw = self._fit(X, y)
        except SolverRuntimeError as e:
            if e.solver is None:
                e.solver = self.SOLVER_ID
            if e.partial is not None:
                expected = [name for name in self.regulators if name not in set(e.regulators)]
                e.partial = self._finalize(e.partial, expected)
            raise
        except (np.linalg.LinAlgError, FloatingPointError) as e:
            raise NumericalDegeneracyError(
                f"{type(self).__name__} fit is numerically degenerate: {e}",
                solver=self.SOLVER_ID,
                regulators=self.regulators
            ) from e

        table = self._finalize(raw, self.regulators)
        self._log(f"{type(self).__name__} top regulator: {table.index[0]} "
                  f"(score {table['score'].iloc[0]:.4f})")
        return table

    def run(self) -> pd.DataFrame:
        return self.fit()

    def _finalize(self, raw: pd.DataFrame, expected: List[str]) -> pd.DataFrame:
        """Order the columns, sort by score magnitude and attach ranks."""
        if 'score' not in raw.columns:
            raise RuntimeError(f"{type(self).__name__} produced no 'score' column")
        if set(raw.index) != set(expected) or len(raw.index) != len(expected):
            raise RuntimeError(
                f"{type(self).__name__} must score exactly one row per regulator"
            )

        columns = ['score'] + [col for col in raw.columns if col not in ('score', 'rank')]
        table = raw[columns].copy()
        table.index = pd.Index(table.index, name='gene')

        table = table.sort_index()
        magnitude = table['score'].abs()
        table = table.loc[magnitude.sort_values(ascending=False, kind='mergesort').index]
        table['rank'] = np.arange(1, len(table) + 1)
        return table

    @abstractmethod
    def _fit(self, X: pd.DataFrame, y: pd.Series) -> pd.DataFrame:
        """Fit the technique and return per-regulator scores."""
        pass


def score_frame(regulators, score, **aux) -> pd.DataFrame:
    """Build a raw score frame from aligned arrays."""
    data: Dict[str, np.ndarray] = {'score': np.asarray(score, dtype=float)}
    for name, values in aux.items():
        data[name] = values
    return pd.DataFrame(data, index=pd.Index(list(regulators), name='gene'))
