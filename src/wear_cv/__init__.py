"""Grouped repeated cross-validation and permutation importance for wear-rate models."""

from .errors import (
    ConfigurationError,
    DegenerateVarianceError,
    EvaluationCancelled,
    FitError,
    PredictError,
    WearCVError,
)
from .evaluation import EvaluationResult, EvaluationRun, evaluate_model
from .explain import ImportanceResult, aggregate_importance, permutation_importance
from .folds import FoldSet, RepeatedFoldSet, grouped_folds, repeated_grouped_folds
from .metrics import ErrorSummary, fold_errors, summarize_errors

__version__ = "0.1.0"

__all__ = [
    "ConfigurationError",
    "DegenerateVarianceError",
    "ErrorSummary",
    "EvaluationCancelled",
    "EvaluationResult",
    "EvaluationRun",
    "FitError",
    "FoldSet",
    "ImportanceResult",
    "PredictError",
    "RepeatedFoldSet",
    "WearCVError",
    "aggregate_importance",
    "evaluate_model",
    "fold_errors",
    "grouped_folds",
    "permutation_importance",
    "repeated_grouped_folds",
    "summarize_errors",
]
