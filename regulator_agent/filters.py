"""
Candidate Filters

A candidate filter narrows the universe of possible regulators before any
solver runs. Filters backed by biological evidence (footprints, open
chromatin, GO membership) live outside this package and only need to honour
the CandidateFilter contract.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Sequence

import pandas as pd

from .exceptions import InvalidTargetError

logger = logging.getLogger(__name__)


class CandidateFilter(ABC):
    """Return a possibly-reduced list of candidate regulator names."""

    @abstractmethod
    def get_candidates(self, mtx_assay: pd.DataFrame) -> List[str]:
        pass


class CandidateListFilter(CandidateFilter):
    """Fixed candidate list intersected with the matrix rows."""

    def __init__(self, candidates: Sequence[str]):
        self.candidates = list(dict.fromkeys(candidates))

    def get_candidates(self, mtx_assay: pd.DataFrame) -> List[str]:
        present = set(mtx_assay.index)
        kept = [name for name in self.candidates if name in present]
        logger.debug(f"CandidateListFilter kept {len(kept)} of {len(self.candidates)} candidates")
        return kept


class VarianceFilter(CandidateFilter):
    """Keep rows whose variance is within (1 +/- var_size) of the target's variance."""

    def __init__(self, target_gene: str, var_size: float = 0.5):
        if not 0 < var_size <= 1:
            raise ValueError(f"var_size must be in (0, 1], got {var_size}")
        self.target_gene = target_gene
        self.var_size = var_size

    def get_candidates(self, mtx_assay: pd.DataFrame) -> List[str]:
        if self.target_gene not in mtx_assay.index:
            raise InvalidTargetError(f"Target gene '{self.target_gene}' not found in expression matrix")

        variances = mtx_assay.var(axis=1)
        target_var = variances[self.target_gene]
        lower = (1 - self.var_size) * target_var
        upper = (1 + self.var_size) * target_var

        keep = variances[(variances > lower) & (variances < upper)].index
        kept = [name for name in keep if name != self.target_gene]
        logger.info(f"VarianceFilter kept {len(kept)} of {len(variances) - 1} genes "
                    f"(target variance {target_var:.4f}, var_size {self.var_size})")
        return kept


def apply_filters(filters: Sequence[CandidateFilter], mtx_assay: pd.DataFrame) -> List[str]:
    """Intersection of several filters' candidates, in the first filter's order."""
    if not filters:
        raise ValueError("At least one filter is required")

    candidates = filters[0].get_candidates(mtx_assay)
    for candidate_filter in filters[1:]:
        allowed = set(candidate_filter.get_candidates(mtx_assay))
        candidates = [name for name in candidates if name in allowed]
    return candidates
