from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import pytest

from wear_cv.data import DUTY_CATEGORIES, DataSchema, make_synthetic_wear_data, prepare_dataset
from wear_cv.errors import ConfigurationError
from wear_cv.explain import aggregate_importance, importance_frame, permutation_importance, permuted_batch
from wear_cv.folds import repeated_grouped_folds
from wear_cv.modeling import FitResult, LinearModel, NullModel

SCHEMA = DataSchema(features=("load", "hours", "duty_type", "noise_0"))


def _toy_data(n_groups: int = 12, rows: int = 6, seed: int = 0) -> pd.DataFrame:
    frame = make_synthetic_wear_data(n_groups, rows, seed=seed, noise_features=1)
    return prepare_dataset(frame, SCHEMA)


def _folds(data: pd.DataFrame, k: int = 3, n: int = 2, seed: int = 0):
    return repeated_grouped_folds(
        data[SCHEMA.group_col].to_numpy(),
        data[SCHEMA.strata_col].to_numpy(),
        k,
        n,
        seed=seed,
    )


@dataclass
class _CountingPredictor:
    calls: list[int] = field(default_factory=list)

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        self.calls.append(len(rows))
        return rows["load"].to_numpy(dtype=float)


@dataclass
class _CountingFitter:
    predictors: list[_CountingPredictor] = field(default_factory=list)

    def fit(self, train: pd.DataFrame) -> FitResult:
        predictor = _CountingPredictor()
        self.predictors.append(predictor)
        return FitResult(predictor)


def test_one_result_per_unit_feature_permutation() -> None:
    data = _toy_data()
    folds = _folds(data, k=3, n=2)

    results = permutation_importance(
        data, LinearModel(SCHEMA), folds, ["load", "noise_0"], schema=SCHEMA, n_perms=4, seed=1
    )
    frame = importance_frame(results)

    assert len(results) == 2 * 3 * 2 * 4
    assert frame.groupby(["repeat", "fold", "feature"]).size().eq(4).all()
    assert sorted(frame["permutation"].unique().tolist()) == [1, 2, 3, 4]
    np.testing.assert_allclose(frame["rmse_delta"], frame["permuted_rmse"] - frame["baseline_rmse"])
    np.testing.assert_allclose(frame["mse_delta"], frame["permuted_mse"] - frame["baseline_mse"])


def test_permuted_batch_shuffles_one_column_within_copies() -> None:
    data = _toy_data()
    rows = data.iloc[:10][list(SCHEMA.features)].reset_index(drop=True)
    rng = np.random.default_rng(0)

    batch = permuted_batch(rows, "duty_type", 3, rng)

    assert len(batch) == 30
    assert isinstance(batch["duty_type"].dtype, pd.CategoricalDtype)
    assert list(batch["duty_type"].cat.categories) == list(DUTY_CATEGORIES)
    for i in range(3):
        block = batch.iloc[10 * i : 10 * (i + 1)].reset_index(drop=True)
        pd.testing.assert_frame_equal(block.drop(columns="duty_type"), rows.drop(columns="duty_type"))
        assert sorted(block["duty_type"].astype(str)) == sorted(rows["duty_type"].astype(str))


def test_all_permutations_scored_in_one_predict_call() -> None:
    data = _toy_data()
    folds = _folds(data, k=3, n=1)
    fitter = _CountingFitter()

    permutation_importance(
        data, fitter, folds, ["load", "hours"], schema=SCHEMA, n_perms=5, seed=0
    )

    assert len(fitter.predictors) == 3
    for fs in folds.fold_sets:
        for fold_id, predictor in zip(sorted(fs.folds), fitter.predictors):
            n_test = len(fs.test_idx(fold_id))
            # baseline, then one batched call per feature
            assert predictor.calls == [n_test, 5 * n_test, 5 * n_test]


def test_same_seed_same_importances() -> None:
    data = _toy_data()
    folds = _folds(data)

    a = permutation_importance(data, LinearModel(SCHEMA), folds, schema=SCHEMA, n_perms=3, seed=5)
    b = permutation_importance(data, LinearModel(SCHEMA), folds, schema=SCHEMA, n_perms=3, seed=5)
    threaded = permutation_importance(
        data, LinearModel(SCHEMA), folds, schema=SCHEMA, n_perms=3, seed=5, n_jobs=2
    )

    pd.testing.assert_frame_equal(importance_frame(a), importance_frame(b))
    pd.testing.assert_frame_equal(importance_frame(a), importance_frame(threaded))


def test_null_model_has_no_important_features() -> None:
    data = _toy_data()
    results = permutation_importance(
        data, NullModel(SCHEMA), _folds(data), schema=SCHEMA, n_perms=3, seed=0
    )
    frame = importance_frame(results)
    assert (frame["rmse_delta"] == 0.0).all()

    summary = aggregate_importance(results)
    assert summary["p_value"].isna().all()


def test_unrelated_feature_has_near_zero_importance() -> None:
    data = _toy_data(n_groups=20, rows=10, seed=4)
    folds = _folds(data, k=5, n=4, seed=4)

    results = permutation_importance(
        data, LinearModel(SCHEMA), folds, schema=SCHEMA, n_perms=10, seed=4
    )
    summary = aggregate_importance(results).set_index("feature")

    noise = summary.loc["noise_0", "rmse_delta_mean"]
    assert abs(noise) < 0.01
    for informative in ("load", "hours", "duty_type"):
        assert summary.loc[informative, "rmse_delta_mean"] > 10 * abs(noise)
    assert summary.loc["noise_0", "rank"] == len(SCHEMA.features)


def test_aggregate_ranks_by_mean_delta() -> None:
    frame = pd.DataFrame(
        {
            "repeat": [1, 1, 1, 1, 1],
            "fold": [1, 1, 1, 1, 1],
            "feature": ["a", "a", "b", "b", "c"],
            "permutation": [1, 2, 1, 2, 1],
            "baseline_rmse": [1.0] * 5,
            "permuted_rmse": [1.2, 1.4, 1.5, 1.7, 1.0],
            "rmse_delta": [0.2, 0.4, 0.5, 0.7, 0.0],
            "baseline_mse": [1.0] * 5,
            "permuted_mse": [1.44, 1.96, 2.25, 2.89, 1.0],
            "mse_delta": [0.44, 0.96, 1.25, 1.89, 0.0],
        }
    )

    summary = aggregate_importance(frame)

    assert summary["feature"].tolist() == ["b", "a", "c"]
    assert summary["rank"].tolist() == [1, 2, 3]
    assert summary.loc[0, "rmse_delta_mean"] == pytest.approx(0.6)
    assert summary.loc[0, "rmse_delta_sd"] == pytest.approx(np.std([0.5, 0.7], ddof=1))
    assert summary.loc[2, "rmse_delta_sd"] == 0.0
    assert np.isnan(summary.loc[2, "p_value"])


def test_invalid_requests() -> None:
    data = _toy_data()
    folds = _folds(data)
    with pytest.raises(ConfigurationError, match="unknown"):
        permutation_importance(data, NullModel(SCHEMA), folds, ["vibration"], schema=SCHEMA, seed=0)
    with pytest.raises(ConfigurationError, match="n_perms"):
        permutation_importance(data, NullModel(SCHEMA), folds, schema=SCHEMA, n_perms=0, seed=0)
