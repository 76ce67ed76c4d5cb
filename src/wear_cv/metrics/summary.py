"""Per-fold RMSE / R² and their distribution across folds."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Iterable

import numpy as np
import pandas as pd

from ..errors import ConfigurationError, DegenerateVarianceError
from ..evaluation import EVALUATION_COLUMNS, EvaluationResult

FOLD_KEYS = ["repeat", "fold"]


@dataclass(frozen=True)
class ErrorSummary:
    rmse_mean: float
    rmse_med: float
    rmse_sd: float
    r2_mean: float
    r2_med: float
    r2_sd: float
    n_folds: int

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


def _as_frame(results: Iterable[EvaluationResult] | pd.DataFrame) -> pd.DataFrame:
    if isinstance(results, pd.DataFrame):
        return results
    return pd.DataFrame([r.__dict__ for r in results], columns=EVALUATION_COLUMNS)


def _fold_scores(repeat: int, fold: int, actual: np.ndarray, error: np.ndarray) -> dict:
    n = len(actual)
    sse = float(np.sum(error**2))
    var = float(np.var(actual, ddof=1)) if n > 1 else 0.0
    if n < 2 or var == 0.0:
        raise DegenerateVarianceError(repeat, fold, n)
    return {
        "repeat": repeat,
        "fold": fold,
        "n": n,
        "rmse": float(np.sqrt(sse / n)),
        # (n - 1) * sample variance, i.e. the total sum of squares
        "r2": 1.0 - sse / ((n - 1) * var),
    }


def fold_errors(results: Iterable[EvaluationResult] | pd.DataFrame) -> pd.DataFrame:
    """RMSE and R² for every (repeat, fold) group of evaluation results.

    Raises ``DegenerateVarianceError`` for a fold whose actual values are all
    identical, where R² has no meaning.
    """
    frame = _as_frame(results)
    rows = [
        _fold_scores(
            int(repeat),
            int(fold),
            g["actual"].to_numpy(dtype=float),
            g["error"].to_numpy(dtype=float),
        )
        for (repeat, fold), g in frame.groupby(FOLD_KEYS, sort=True)
    ]
    return pd.DataFrame(rows, columns=["repeat", "fold", "n", "rmse", "r2"])


def _sd(values: pd.Series) -> float:
    sd = values.std()
    return 0.0 if pd.isna(sd) else float(sd)


def summarize_errors(results: Iterable[EvaluationResult] | pd.DataFrame) -> ErrorSummary:
    per_fold = fold_errors(results)
    return summarize_fold_errors(per_fold)


def summarize_fold_errors(per_fold: pd.DataFrame) -> ErrorSummary:
    if per_fold.empty:
        raise ConfigurationError("no folds to summarize")
    return ErrorSummary(
        rmse_mean=float(per_fold["rmse"].mean()),
        rmse_med=float(per_fold["rmse"].median()),
        rmse_sd=_sd(per_fold["rmse"]),
        r2_mean=float(per_fold["r2"].mean()),
        r2_med=float(per_fold["r2"].median()),
        r2_sd=_sd(per_fold["r2"]),
        n_folds=int(len(per_fold)),
    )
