import logging
from concurrent.futures import Future

import numpy as np
import pandas as pd
import pytest
from sklearn.linear_model import LinearRegression

from regulator_agent import (
    AllSolversFailedError,
    EnsembleSolver,
    ExecutionContext,
    InvalidCandidateSetError,
    InvalidTargetError,
    MetaModelReduction,
    PCAReduction,
    UnknownSolverError,
    combine_score_tables,
    normalize_scores,
    rank_regulators,
)
from regulator_agent.reduction import get_reduction


def _table(scores):
    return pd.DataFrame({"score": pd.Series(scores, dtype=float)}).rename_axis("gene")


def test_correlated_regulator_ranks_first(small_matrix):
    result = EnsembleSolver(small_matrix, "G1", ["G2", "G3"], solvers=["pearson", "spearman"]).fit()

    assert list(result.table.index) == ["G2", "G3"]
    assert result.table.loc["G2", "consensus"] > result.table.loc["G3", "consensus"]
    assert result.solvers == ["pearson", "spearman"]
    assert result.failures == []


def test_failed_solver_degrades_to_absent(small_matrix, caplog):
    with caplog.at_level(logging.WARNING):
        result = EnsembleSolver(
            small_matrix, "G1", ["G2", "G3"],
            solvers=["random-forest", "pearson"],
            solver_params={"random-forest": {"n_estimators": 20}},
            seed=1
        ).fit()

    assert result.solvers == ["pearson"]
    assert [f.solver for f in result.failures] == ["random-forest"]
    assert result.failures[0].error_type == "InsufficientDataError"
    assert "random-forest" not in result.table.columns
    assert result.table.index[0] == "G2"
    assert "random-forest" in caplog.text
    assert result.warnings and "InsufficientDataError" in result.warnings[0]


def test_all_solvers_failing_raises_aggregate(small_matrix):
    mtx = small_matrix.copy()
    mtx.loc["G1"] = 2.0

    with pytest.raises(AllSolversFailedError) as excinfo:
        EnsembleSolver(mtx, "G1", ["G2", "G3"], solvers=["random-forest", "pearson"], seed=1).fit()

    failures = {f.solver: f.error_type for f in excinfo.value.failures}
    assert failures == {"pearson": "NumericalDegeneracyError", "random-forest": "InsufficientDataError"}
    assert "pearson" in str(excinfo.value) and "random-forest" in str(excinfo.value)


def test_union_of_regulators_with_absent_markers(expression_matrix, candidates):
    mtx = pd.concat([
        expression_matrix,
        pd.DataFrame([[1.0] * expression_matrix.shape[1]], index=["CONST"], columns=expression_matrix.columns)
    ])

    result = EnsembleSolver(
        mtx, "TARGET", candidates + ["CONST"],
        solvers=["pearson", "lasso"],
        solver_params={"lasso": {"lambda_": 0.05}},
        keep_solver_tables=True
    ).fit()
    table = result.table

    assert set(table.index) == set(candidates) | {"CONST"}
    assert np.isnan(table.loc["CONST", "pearson"])
    assert np.isnan(table.loc["CONST", "pearson_norm"])
    assert not np.isnan(table.loc["CONST", "lasso"])
    assert table.loc["CONST", "n_solvers"] == 1
    assert table.loc["TF1", "n_solvers"] == 2
    assert result.failures[0].regulators == ["CONST"]
    assert "CONST" not in result.solver_tables["pearson"].index


def test_combine_union_and_tie_breaks():
    tables = {
        "a": _table({"P": 2.0, "Q": 1.0}),
        "b": _table({"P": 3.0}),
        "c": _table({"S": 7.0}),
        "d": _table({"R": -4.0}),
    }
    table = combine_score_tables(tables)

    assert list(table.index) == ["P", "R", "S", "Q"]
    assert list(table["rank"]) == [1, 2, 3, 4]
    assert table.loc["P", "n_solvers"] == 2
    assert table.loc["P", "concordance"] == pytest.approx(1.0)
    assert np.isnan(table.loc["Q", "b"])
    assert table.loc["Q", "consensus"] == pytest.approx(0.5)


def test_normalized_columns_are_monotonic_percentiles(expression_matrix, candidates):
    result = EnsembleSolver(
        expression_matrix, "TARGET", candidates,
        solvers=["pearson", "spearman", "ridge"],
        solver_params={"ridge": {"lambda_": 0.1}}
    ).fit()

    for sid in result.solvers:
        column = result.table[[sid, f"{sid}_norm"]].dropna()
        assert column[f"{sid}_norm"].between(0, 1, inclusive="right").all()
        ordered = column.assign(magnitude=column[sid].abs()).sort_values("magnitude")
        assert ordered[f"{sid}_norm"].is_monotonic_increasing


def test_normalize_scores_uses_magnitude():
    normalized = normalize_scores(pd.Series({"A": -0.9, "B": 0.1, "C": 0.5, "D": 0.0}))

    assert normalized["A"] == 1.0
    assert normalized["D"] == 0.25
    assert (normalized > 0).all()


def test_solver_order_does_not_change_ranking(expression_matrix, candidates):
    params = {"lasso": {"lambda_": 0.1}}
    forward = EnsembleSolver(expression_matrix, "TARGET", candidates,
                             solvers=["pearson", "spearman", "lasso"], solver_params=params).fit()
    backward = EnsembleSolver(expression_matrix, "TARGET", candidates,
                              solvers=["lasso", "spearman", "pearson"], solver_params=params).fit()

    pd.testing.assert_frame_equal(forward.table, backward.table)


def test_stochastic_ensemble_is_reproducible(expression_matrix, candidates, fast_params):
    solvers = ["random-forest", "bayes-spike-slab", "p-value-lasso"]
    params = {sid: fast_params[sid] for sid in solvers}

    first = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=solvers,
                           solver_params=params, seed=21).fit()
    second = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=solvers,
                            solver_params=params, seed=21).fit()

    pd.testing.assert_frame_equal(first.table, second.table)
    assert first.table.index[0] == "TF1"


def test_full_ensemble_ranks_driver_first(expression_matrix, candidates, fast_params):
    result = rank_regulators(expression_matrix, "TARGET", candidates,
                             solvers=list(fast_params), solver_params=fast_params, seed=4)

    assert result.table.index[0] == "TF1"
    assert result.table.index[1] == "TF2"
    assert len(result.solvers) == len(fast_params)
    assert result.summary()["top_regulators"][:2] == ["TF1", "TF2"]


@pytest.mark.parametrize("backend", ["thread", "process"])
def test_parallel_backends_match_sequential(expression_matrix, candidates, backend):
    solvers = ["pearson", "spearman", "lasso"]
    params = {"lasso": {"lambda_": 0.1}}
    sequential = EnsembleSolver(expression_matrix, "TARGET", candidates,
                                solvers=solvers, solver_params=params).fit()
    parallel = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=solvers,
                              solver_params=params,
                              context=ExecutionContext(backend=backend, max_workers=2)).fit()

    pd.testing.assert_frame_equal(sequential.table, parallel.table)


def test_caller_supplied_executor(small_matrix):
    class ImmediateExecutor:
        def __init__(self):
            self.calls = 0

        def submit(self, fn, *args):
            self.calls += 1
            future = Future()
            future.set_result(fn(*args))
            return future

    executor = ImmediateExecutor()
    result = EnsembleSolver(small_matrix, "G1", ["G2", "G3"], solvers=["pearson", "spearman"],
                            context=ExecutionContext(executor=executor)).fit()

    assert executor.calls == 2
    assert result.table.index[0] == "G2"


def test_execution_context_validation():
    with pytest.raises(ValueError):
        ExecutionContext(backend="gpu")
    with pytest.raises(ValueError):
        ExecutionContext(backend="thread", max_workers=0)


def test_request_errors_abort_before_fitting(small_matrix):
    with pytest.raises(UnknownSolverError):
        EnsembleSolver(small_matrix, "G1", ["G2"], solvers=["pearson", "magic"])
    with pytest.raises(UnknownSolverError):
        EnsembleSolver(small_matrix, "G1", ["G2"], solvers=["pearson"], solver_params={"magic": {}})
    with pytest.raises(InvalidTargetError):
        EnsembleSolver(small_matrix, "G9", ["G2"], solvers=["pearson"])
    with pytest.raises(InvalidCandidateSetError):
        EnsembleSolver(small_matrix, "G1", ["G1", "X"], solvers=["pearson"])
    with pytest.raises(TypeError):
        EnsembleSolver(small_matrix, "G1", ["G2"], solvers=["pearson"],
                       solver_params={"pearson": {"no_such_param": 1}})


def test_default_solvers_come_from_config(expression_matrix, candidates):
    config = {"ensemble": {"solvers": ["pearson", "spearman"]}}
    ensemble = EnsembleSolver(expression_matrix, "TARGET", candidates, config=config)

    assert ensemble.solver_ids == ["pearson", "spearman"]
    assert "EnsembleSolver" in repr(ensemble)


def test_per_solver_seed_override(expression_matrix, candidates):
    ensemble = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=["random-forest"],
                              solver_params={"random-forest": {"seed": 99, "n_estimators": 10}}, seed=1)

    assert ensemble.get_solver("random_forest").seed == 99


def test_pca_reduction(expression_matrix, candidates):
    result = EnsembleSolver(expression_matrix, "TARGET", candidates,
                            solvers=["pearson", "spearman"], reduction="pca").fit()

    assert result.table["consensus"].between(0, 1).all()
    assert result.table.index[0] == "TF1"
    assert isinstance(get_reduction("pca"), PCAReduction)
    with pytest.raises(ValueError):
        get_reduction("median_of_medians")


def test_meta_model_reduction(expression_matrix, candidates):
    base = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=["pearson", "spearman"]).fit()
    normalized = base.table[["pearson_norm", "spearman_norm"]]
    normalized.columns = ["pearson", "spearman"]

    labels = {"TF1": 1.0, "TF2": 1.0, "TF5": 0.0, "TF6": 0.0, "TF7": 0.0}
    meta = MetaModelReduction(LinearRegression(positive=True)).fit(normalized, labels)
    result = EnsembleSolver(expression_matrix, "TARGET", candidates,
                            solvers=["pearson", "spearman"], reduction=meta).fit()

    assert meta.solver_order == ["pearson", "spearman"]
    assert result.table.index[0] == "TF1"


def test_one_shot_candidate_iterable(small_matrix):
    result = EnsembleSolver(small_matrix, "G1", iter(["G2", "G3"]), solvers=["pearson"],
                            regulator_weights=[1.0, 2.0]).fit()

    assert sorted(result.table.index) == ["G2", "G3"]


def test_cv_lambda_selection_on_thread_backend(expression_matrix, candidates):
    solvers = ["lasso", "ridge", "elastic-net"]
    params = {sid: {"lambda_selection": "cv"} for sid in solvers}
    sequential = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=solvers,
                                solver_params=params, keep_solver_tables=True).fit()
    threaded = EnsembleSolver(expression_matrix, "TARGET", candidates, solvers=solvers,
                              solver_params=params, keep_solver_tables=True,
                              context=ExecutionContext(backend="thread", max_workers=3)).fit()

    pd.testing.assert_frame_equal(sequential.table, threaded.table)
    for sid in solvers:
        assert threaded.solver_tables[sid]["lambda"].iloc[0] > 0
