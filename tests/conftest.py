import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def expression_matrix():
    """40-sample matrix where TARGET is driven by TF1 (strongly) and TF2 (negatively)."""
    rng = np.random.default_rng(7)
    n_samples = 40
    samples = [f"S{i + 1}" for i in range(n_samples)]

    tfs = {f"TF{i}": rng.normal(size=n_samples) for i in range(1, 9)}
    target = 3.0 * tfs["TF1"] - 2.0 * tfs["TF2"] + rng.normal(scale=0.5, size=n_samples)

    rows = dict(tfs)
    rows["TARGET"] = target
    return pd.DataFrame(rows, index=samples).T


@pytest.fixture
def small_matrix():
    """Five samples: G2 tracks G1 closely, G3 is uncorrelated with G1."""
    return pd.DataFrame(
        {
            "S1": [1.0, 1.1, 2.0],
            "S2": [2.0, 2.3, -1.0],
            "S3": [3.0, 2.8, 0.0],
            "S4": [4.0, 4.4, -1.0],
            "S5": [5.0, 4.9, 2.0],
        },
        index=["G1", "G2", "G3"],
    )


@pytest.fixture
def candidates():
    return [f"TF{i}" for i in range(1, 9)]


@pytest.fixture
def fast_params():
    """Solver parameters that keep the test suite quick."""
    return {
        "elastic-net": {"n_permutations": 20},
        "lasso": {"n_permutations": 20},
        "ridge": {"n_permutations": 20},
        "sqrt-lasso": {},
        "p-value-lasso": {"n_permutations": 30},
        "random-forest": {"n_estimators": 50},
        "pearson": {},
        "spearman": {},
        "bayes-spike-slab": {"n_iter": 300, "burn_in": 100},
    }
