"""Cross-validated permutation feature importance.

For each (repeat, fold) unit the fitter is trained on the training rows
exactly as the evaluation harness does, and every candidate feature is
shuffled ``n_perms`` times *within the test rows only*. The increase in
RMSE/MSE over the unshuffled baseline is the feature's importance for that
draw.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Iterable, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from scipy.stats import ttest_1samp

from ..data import DataSchema
from ..errors import ConfigurationError
from ..evaluation import check_cancelled, fit_fold, predict_rows
from ..folds import OuterFold, RepeatedFoldSet, iter_outer_folds
from ..modeling.base import ModelFitter

logger = logging.getLogger(__name__)

IMPORTANCE_COLUMNS = [
    "repeat",
    "fold",
    "feature",
    "permutation",
    "baseline_rmse",
    "permuted_rmse",
    "rmse_delta",
    "baseline_mse",
    "permuted_mse",
    "mse_delta",
]


@dataclass(frozen=True)
class ImportanceResult:
    repeat: int
    fold: int
    feature: str
    permutation: int
    baseline_rmse: float
    permuted_rmse: float
    rmse_delta: float
    baseline_mse: float
    permuted_mse: float
    mse_delta: float


def _mse(actual: np.ndarray, predicted: np.ndarray) -> float:
    return float(np.mean((actual - predicted) ** 2))


def permuted_batch(
    rows: pd.DataFrame, feature: str, n_perms: int, rng: np.random.Generator
) -> pd.DataFrame:
    """Stack ``n_perms`` copies of ``rows``, shuffling ``feature`` within each copy.

    Every other column is repeated unchanged, so one predict call scores all
    permutations. Copy ``i`` occupies rows ``i*len(rows):(i+1)*len(rows)``.
    """
    values = rows[feature].to_numpy()
    shuffled = np.concatenate([rng.permutation(values) for _ in range(n_perms)])
    batch = pd.concat([rows] * n_perms, ignore_index=True)
    batch[feature] = pd.Series(shuffled, dtype=rows[feature].dtype)
    return batch


def _importance_unit(
    data: pd.DataFrame,
    fitter: ModelFitter,
    outer: OuterFold,
    features: Sequence[str],
    schema: DataSchema,
    n_perms: int,
    entropy: int,
    cancel: threading.Event | None,
) -> list[ImportanceResult]:
    check_cancelled(cancel, outer)

    fitted = fit_fold(data, fitter, outer)
    test = data.iloc[outer.test_idx]
    test_x = test[list(schema.features)].reset_index(drop=True)
    actual = test[schema.target].to_numpy(dtype=float)

    baseline = predict_rows(fitted.predictor, test_x, outer)
    base_mse = _mse(actual, baseline)
    base_rmse = float(np.sqrt(base_mse))

    results: list[ImportanceResult] = []
    for feature in features:
        # one stream per (repeat, fold, feature); independent of scheduling
        rng = np.random.default_rng(
            [entropy, outer.repeat_id, outer.fold_id, schema.features.index(feature)]
        )
        batch = permuted_batch(test_x, feature, n_perms, rng)
        predicted = predict_rows(fitted.predictor, batch, outer).reshape(n_perms, len(test_x))

        for perm_id, pred in enumerate(predicted, start=1):
            perm_mse = _mse(actual, pred)
            perm_rmse = float(np.sqrt(perm_mse))
            results.append(
                ImportanceResult(
                    repeat=outer.repeat_id,
                    fold=outer.fold_id,
                    feature=feature,
                    permutation=perm_id,
                    baseline_rmse=base_rmse,
                    permuted_rmse=perm_rmse,
                    rmse_delta=perm_rmse - base_rmse,
                    baseline_mse=base_mse,
                    permuted_mse=perm_mse,
                    mse_delta=perm_mse - base_mse,
                )
            )

    logger.info(
        "Permutation importance repeat=%s fold=%s: %d features x %d permutations",
        outer.repeat_id,
        outer.fold_id,
        len(features),
        n_perms,
    )
    return results


def permutation_importance(
    data: pd.DataFrame,
    fitter: ModelFitter,
    folds: RepeatedFoldSet,
    features: Sequence[str] | None = None,
    *,
    schema: DataSchema,
    n_perms: int = 5,
    seed: int | None = None,
    n_jobs: int = 1,
    cancel: threading.Event | None = None,
) -> list[ImportanceResult]:
    """One ``ImportanceResult`` per (repeat, fold, feature, permutation)."""
    features = list(schema.features) if features is None else list(features)
    unknown = [f for f in features if f not in schema.features]
    if unknown:
        raise ConfigurationError(f"unknown importance features: {unknown}")
    if n_perms < 1:
        raise ConfigurationError(f"n_perms must be at least 1, got {n_perms}")
    if folds.n_rows != len(data):
        raise ConfigurationError(f"folds cover {folds.n_rows} rows but data has {len(data)}")

    entropy = seed if seed is not None else int(np.random.SeedSequence().entropy)
    logger.info(
        "Permutation importance over %d units, %d features, %d permutations (seed=%s)",
        len(folds),
        len(features),
        n_perms,
        seed,
    )

    units = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_importance_unit)(data, fitter, outer, features, schema, n_perms, entropy, cancel)
        for outer in iter_outer_folds(folds)
    )
    return [r for unit in units for r in unit]


def importance_frame(results: Iterable[ImportanceResult]) -> pd.DataFrame:
    return pd.DataFrame([r.__dict__ for r in results], columns=IMPORTANCE_COLUMNS)


def _p_value(deltas: np.ndarray) -> float:
    if len(deltas) < 2 or np.ptp(deltas) == 0.0:
        return float("nan")
    return float(ttest_1samp(deltas, 0.0).pvalue)


def aggregate_importance(results: Iterable[ImportanceResult] | pd.DataFrame) -> pd.DataFrame:
    """Mean/sd of the deltas per feature, ranked by mean RMSE increase.

    ``p_value`` is a one-sample t-test of ``rmse_delta`` against zero; a
    feature the model does not rely on should not come out significant.
    """
    frame = results if isinstance(results, pd.DataFrame) else importance_frame(results)

    agg = (
        frame.groupby("feature", as_index=False)
        .agg(
            rmse_delta_mean=("rmse_delta", "mean"),
            rmse_delta_sd=("rmse_delta", "std"),
            mse_delta_mean=("mse_delta", "mean"),
            mse_delta_sd=("mse_delta", "std"),
            n=("rmse_delta", "count"),
        )
        .fillna({"rmse_delta_sd": 0.0, "mse_delta_sd": 0.0})
    )
    p_values = {
        feature: _p_value(g["rmse_delta"].to_numpy(dtype=float))
        for feature, g in frame.groupby("feature")
    }
    agg["p_value"] = agg["feature"].map(p_values)

    agg = agg.sort_values(["rmse_delta_mean", "feature"], ascending=[False, True])
    agg = agg.reset_index(drop=True)
    agg["rank"] = np.arange(1, len(agg) + 1)
    return agg
