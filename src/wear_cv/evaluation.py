"""Train/test a model fitter across every (repeat, fold) unit."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .data import DataSchema
from .errors import ConfigurationError, EvaluationCancelled, FitError, PredictError
from .folds import OuterFold, RepeatedFoldSet, iter_outer_folds
from .modeling.base import FitResult, ModelFitter, Predictor

logger = logging.getLogger(__name__)

EVALUATION_COLUMNS = ["repeat", "fold", "group", "row", "actual", "predicted", "error"]


@dataclass(frozen=True)
class EvaluationResult:
    repeat: int
    fold: int
    group: Any
    row: int
    actual: float
    predicted: float
    error: float


@dataclass(frozen=True)
class FoldDiagnostics:
    repeat: int
    fold: int
    n_train: int
    n_test: int
    seconds: float
    diagnostics: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvaluationRun:
    results: tuple[EvaluationResult, ...]
    diagnostics: tuple[FoldDiagnostics, ...]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([r.__dict__ for r in self.results], columns=EVALUATION_COLUMNS)

    def diagnostics_frame(self) -> pd.DataFrame:
        rows = []
        for d in self.diagnostics:
            row = {
                "repeat": d.repeat,
                "fold": d.fold,
                "n_train": d.n_train,
                "n_test": d.n_test,
                "seconds": d.seconds,
            }
            for key, value in d.diagnostics.items():
                row[key] = json.dumps(value, sort_keys=True) if isinstance(value, (dict, list)) else value
            rows.append(row)
        return pd.DataFrame(rows)


def check_cancelled(cancel: threading.Event | None, outer: OuterFold) -> None:
    if cancel is not None and cancel.is_set():
        raise EvaluationCancelled(
            f"cancelled before repeat={outer.repeat_id} fold={outer.fold_id}"
        )


def fit_fold(data: pd.DataFrame, fitter: ModelFitter, outer: OuterFold) -> FitResult:
    """Fit on every row outside ``outer``'s test fold.

    Any failure inside the fitter is re-raised as ``FitError`` carrying the
    unit's coordinates.
    """
    train = data.iloc[outer.train_idx]
    try:
        return fitter.fit(train)
    except Exception as exc:
        raise FitError(outer.repeat_id, outer.fold_id, str(exc)) from exc


def predict_rows(predictor: Predictor, rows: pd.DataFrame, outer: OuterFold) -> np.ndarray:
    try:
        predicted = np.asarray(predictor.predict(rows), dtype=float).reshape(-1)
    except Exception as exc:
        raise PredictError(outer.repeat_id, outer.fold_id, str(exc)) from exc
    if len(predicted) != len(rows):
        raise PredictError(
            outer.repeat_id,
            outer.fold_id,
            f"expected {len(rows)} predictions, got {len(predicted)}",
        )
    return predicted


def _evaluate_unit(
    data: pd.DataFrame,
    fitter: ModelFitter,
    outer: OuterFold,
    schema: DataSchema,
    cancel: threading.Event | None,
) -> tuple[list[EvaluationResult], FoldDiagnostics]:
    check_cancelled(cancel, outer)
    t0 = time.time()

    fitted = fit_fold(data, fitter, outer)
    test = data.iloc[outer.test_idx]
    predicted = predict_rows(fitted.predictor, test[list(schema.features)], outer)
    actual = test[schema.target].to_numpy(dtype=float)
    groups = test[schema.group_col].to_numpy()

    results = [
        EvaluationResult(
            repeat=outer.repeat_id,
            fold=outer.fold_id,
            group=groups[i],
            row=int(row),
            actual=float(actual[i]),
            predicted=float(predicted[i]),
            error=float(actual[i] - predicted[i]),
        )
        for i, row in enumerate(outer.test_idx)
    ]
    diag = FoldDiagnostics(
        repeat=outer.repeat_id,
        fold=outer.fold_id,
        n_train=len(outer.train_idx),
        n_test=len(outer.test_idx),
        seconds=float(time.time() - t0),
        diagnostics=dict(fitted.diagnostics),
    )
    logger.info(
        "Evaluated repeat=%s fold=%s train=%d test=%d",
        outer.repeat_id,
        outer.fold_id,
        diag.n_train,
        diag.n_test,
    )
    return results, diag


def evaluate_model(
    data: pd.DataFrame,
    fitter: ModelFitter,
    folds: RepeatedFoldSet,
    *,
    schema: DataSchema,
    n_jobs: int = 1,
    cancel: threading.Event | None = None,
) -> EvaluationRun:
    """Run ``fitter`` over every (repeat, fold) unit of ``folds``.

    Returns one ``EvaluationResult`` per test row per unit, so every row of
    ``data`` appears exactly once per repeat. Units run on joblib worker
    threads when ``n_jobs != 1``; output order is (repeat, fold, row)
    regardless.
    """
    if folds.n_rows != len(data):
        raise ConfigurationError(f"folds cover {folds.n_rows} rows but data has {len(data)}")

    t_all = time.time()
    units = Parallel(n_jobs=n_jobs, prefer="threads")(
        delayed(_evaluate_unit)(data, fitter, outer, schema, cancel)
        for outer in iter_outer_folds(folds)
    )

    results: list[EvaluationResult] = []
    diagnostics: list[FoldDiagnostics] = []
    for unit_results, diag in units:
        results.extend(unit_results)
        diagnostics.append(diag)

    logger.info(
        "Evaluation finished: %d units, %d predictions in %.1fs",
        len(diagnostics),
        len(results),
        time.time() - t_all,
    )
    return EvaluationRun(results=tuple(results), diagnostics=tuple(diagnostics))
