"""Concrete fitters: a mean baseline, ordinary least squares and a tuned
gradient-boosted ensemble.

Each fitter takes a training frame with the schema's columns and returns a
``FitResult``; whatever it decided internally (chosen hyperparameters,
encoded width) comes back in ``FitResult.diagnostics``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression
from sklearn.pipeline import Pipeline, make_pipeline
from sklearn.preprocessing import StandardScaler

from ..data import DataSchema
from ..errors import ConfigurationError
from .base import FitResult, ModelFitter
from .encoding import encode_features
from .hpo_utils import tune_and_train

DEFAULT_PARAM_GRID: dict[str, list[Any]] = {
    "n_estimators": [100, 300],
    "max_depth": [2, 4],
    "learning_rate": [0.05, 0.1],
}


@dataclass(frozen=True)
class MeanPredictor:
    value: float

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        return np.full(len(rows), self.value, dtype=float)


@dataclass(frozen=True)
class EncodedPredictor:
    schema: DataSchema
    model: Any

    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        X = encode_features(rows, self.schema)
        return np.asarray(self.model.predict(X.to_numpy(dtype=float)), dtype=float)


@dataclass(frozen=True)
class NullModel:
    """Always predicts the training-target mean."""

    schema: DataSchema

    def fit(self, train: pd.DataFrame) -> FitResult:
        mean = float(train[self.schema.target].mean())
        return FitResult(MeanPredictor(mean), {"train_mean": mean})


@dataclass(frozen=True)
class LinearModel:
    schema: DataSchema

    def fit(self, train: pd.DataFrame) -> FitResult:
        X = encode_features(train, self.schema)
        y = train[self.schema.target].to_numpy(dtype=float)
        pipe: Pipeline = make_pipeline(StandardScaler(), LinearRegression())
        pipe.fit(X.to_numpy(dtype=float), y)
        return FitResult(EncodedPredictor(self.schema, pipe), {"n_columns": X.shape[1]})


@dataclass(frozen=True)
class EnsembleModel:
    """XGBoost regressor tuned by grouped inner CV on the training fold."""

    schema: DataSchema
    param_grid: dict[str, list[Any]] = field(default_factory=lambda: dict(DEFAULT_PARAM_GRID))
    inner_folds: int = 3
    seed: int = 0
    optimizer: str = "grid"
    budget: int | None = None
    param_space: dict[str, dict[str, Any]] | None = None
    base_params: dict[str, Any] | None = None

    def fit(self, train: pd.DataFrame) -> FitResult:
        X = encode_features(train, self.schema)
        y = train[self.schema.target].astype(float)
        groups = train[self.schema.group_col].to_numpy()

        hpo = tune_and_train(
            X,
            y,
            groups,
            param_grid=self.param_grid,
            inner_folds=self.inner_folds,
            seed=self.seed,
            base_params=self.base_params,
            optimizer=self.optimizer,
            budget=self.budget,
            param_space=self.param_space,
        )
        return FitResult(
            EncodedPredictor(self.schema, hpo.model),
            {"best_params": hpo.best_params, "best_score": hpo.best_score},
        )


def build_model(
    name: str,
    schema: DataSchema,
    params: dict[str, Any] | None = None,
    seed: int = 0,
) -> ModelFitter:
    params = dict(params or {})
    name = name.lower().strip()
    if name == "null":
        return NullModel(schema)
    if name == "linear":
        return LinearModel(schema)
    if name == "ensemble":
        try:
            return EnsembleModel(schema, seed=seed, **params)
        except TypeError as exc:
            raise ConfigurationError(f"invalid ensemble model params: {exc}") from exc
    raise ConfigurationError(f"Unknown model: {name!r} (expected null, linear or ensemble)")
