"""Fit/predict contract consumed by the evaluation harness."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import numpy as np
import pandas as pd


@runtime_checkable
class Predictor(Protocol):
    def predict(self, rows: pd.DataFrame) -> np.ndarray:
        """Return one prediction per row, in row order."""
        ...


@dataclass(frozen=True)
class FitResult:
    """A fitted predictor plus whatever the fitter chose while tuning."""

    predictor: Predictor
    diagnostics: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ModelFitter(Protocol):
    def fit(self, train: pd.DataFrame) -> FitResult:
        ...
