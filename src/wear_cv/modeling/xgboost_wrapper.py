"""Thin helpers around xgboost's scikit-learn regressor."""

from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd
import xgboost as xgb


def make_xgb_params(params: dict[str, Any] | None, random_seed: int) -> dict[str, Any]:
    base: dict[str, Any] = dict(
        objective="reg:squarederror",
        booster="gbtree",
        random_state=random_seed,
        n_jobs=1,
        verbosity=0,
    )
    base.update(params or {})
    return base


def train_xgb_regressor(
    X: pd.DataFrame,
    y: pd.Series,
    *,
    params: dict[str, Any] | None = None,
    random_state: int = 0,
) -> xgb.XGBRegressor:
    model = xgb.XGBRegressor(**make_xgb_params(params, random_seed=random_state))
    model.fit(X.to_numpy(dtype=float), np.asarray(y, dtype=float))
    return model


def predict_values(model: xgb.XGBRegressor, X: pd.DataFrame) -> np.ndarray:
    return np.asarray(model.predict(X.to_numpy(dtype=float)), dtype=float)
