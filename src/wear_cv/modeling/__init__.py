"""Model-fitting capabilities for the evaluation harness."""

from .base import FitResult, ModelFitter, Predictor
from .encoding import encode_features
from .models import EnsembleModel, LinearModel, NullModel, build_model

__all__ = [
    "EnsembleModel",
    "FitResult",
    "LinearModel",
    "ModelFitter",
    "NullModel",
    "Predictor",
    "build_model",
    "encode_features",
]
