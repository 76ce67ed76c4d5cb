from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np
import pandas as pd
from sklearn.model_selection import GroupKFold, ParameterGrid

from ..errors import ConfigurationError
from .hpo_sobol import suggest_configs as sobol_suggest_configs
from .xgboost_wrapper import predict_values, train_xgb_regressor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HPOResult:
    best_params: dict[str, Any]
    best_score: float
    model: object


def _validate_grid(param_grid: dict[str, Iterable[Any]]) -> None:
    if not param_grid:
        raise ConfigurationError("param_grid must be non-empty")
    if not list(ParameterGrid(param_grid)):
        raise ConfigurationError("param_grid must yield at least one candidate")


def _evaluate_params(
    X: pd.DataFrame,
    y: pd.Series,
    groups: np.ndarray,
    *,
    params: dict[str, Any],
    inner_folds: int,
    seed: int,
) -> float:
    """Mean inner-CV RMSE of one candidate; groups never straddle a split."""
    n_splits = min(inner_folds, len(np.unique(groups)))
    if n_splits < 2:
        raise ConfigurationError("inner tuning needs at least two groups in the training fold")

    splitter = GroupKFold(n_splits=n_splits)
    scores: list[float] = []
    for fold_id, (train_idx, test_idx) in enumerate(splitter.split(X, y, groups)):
        model = train_xgb_regressor(
            X.iloc[train_idx],
            y.iloc[train_idx],
            params=params,
            random_state=seed + fold_id,
        )
        pred = predict_values(model, X.iloc[test_idx])
        resid = y.iloc[test_idx].to_numpy(dtype=float) - pred
        scores.append(float(np.sqrt(np.mean(resid**2))))

    return float(np.mean(scores))


def select_best_params(
    X: pd.DataFrame,
    y: pd.Series,
    groups: np.ndarray,
    *,
    param_grid: dict[str, Iterable[Any]] | None,
    inner_folds: int,
    seed: int,
    base_params: dict[str, Any] | None = None,
    optimizer: str = "grid",
    budget: int | None = None,
    param_space: dict[str, dict[str, Any]] | None = None,
) -> tuple[dict[str, Any], float]:
    """
    Select the hyperparameters with the lowest inner grouped-CV RMSE.

    optimizer:
      - "grid": iterate ParameterGrid(param_grid)
      - "sobol": sample candidates from param_space using Sobol (budget required)
    """
    optimizer = optimizer.lower().strip()

    if optimizer == "grid":
        _validate_grid(param_grid or {})
        candidates: list[dict[str, Any]] = list(ParameterGrid(param_grid))
    elif optimizer == "sobol":
        if budget is None:
            raise ConfigurationError("budget must be provided for optimizer='sobol'")
        if not param_space:
            raise ConfigurationError("param_space must be provided for optimizer='sobol'")
        candidates = sobol_suggest_configs(param_space, budget=budget, seed=seed)
    else:
        raise ConfigurationError(f"Unknown optimizer: {optimizer}")

    best_score: float | None = None
    best_params: dict[str, Any] | None = None

    for candidate in candidates:
        merged = dict(base_params or {})
        merged.update(candidate)

        score = _evaluate_params(
            X,
            y,
            groups,
            params=merged,
            inner_folds=inner_folds,
            seed=seed,
        )
        logger.debug("candidate %s inner RMSE=%.4f", merged, score)

        if best_score is None or score < best_score:
            best_score = score
            best_params = merged

    if best_score is None or best_params is None:
        raise ConfigurationError("No valid hyperparameter candidates")

    return best_params, float(best_score)


def tune_and_train(
    X: pd.DataFrame,
    y: pd.Series,
    groups: np.ndarray,
    *,
    param_grid: dict[str, Iterable[Any]] | None,
    inner_folds: int,
    seed: int,
    base_params: dict[str, Any] | None = None,
    optimizer: str = "grid",
    budget: int | None = None,
    param_space: dict[str, dict[str, Any]] | None = None,
) -> HPOResult:
    best_params, best_score = select_best_params(
        X,
        y,
        groups,
        param_grid=param_grid,
        inner_folds=inner_folds,
        seed=seed,
        base_params=base_params,
        optimizer=optimizer,
        budget=budget,
        param_space=param_space,
    )

    model = train_xgb_regressor(X, y, params=best_params, random_state=seed)

    return HPOResult(
        best_params=best_params,
        best_score=best_score,
        model=model,
    )
