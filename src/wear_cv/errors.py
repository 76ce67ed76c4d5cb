"""Exception types raised by the cross-validation core."""

from __future__ import annotations


class WearCVError(Exception):
    """Base class for all errors raised by wear_cv."""


class ConfigurationError(WearCVError, ValueError):
    """Invalid configuration or an unsatisfiable fold constraint."""

    def __init__(self, message: str, *, category: str | None = None) -> None:
        super().__init__(message)
        self.category = category


class _FoldError(WearCVError):
    action = "run"

    def __init__(self, repeat: int, fold: int, message: str | None = None) -> None:
        self.repeat = repeat
        self.fold = fold
        detail = f": {message}" if message else ""
        super().__init__(f"{self.action} failed at repeat={repeat} fold={fold}{detail}")


class FitError(_FoldError):
    action = "fit"


class PredictError(_FoldError):
    action = "predict"


class DegenerateVarianceError(WearCVError, ArithmeticError):
    """R² is undefined because the fold's targets have no spread."""

    def __init__(self, repeat: int, fold: int, n: int) -> None:
        self.repeat = repeat
        self.fold = fold
        self.n = n
        super().__init__(
            f"R2 undefined at repeat={repeat} fold={fold}: "
            f"test targets (n={n}) have zero sample variance"
        )


class EvaluationCancelled(WearCVError):
    """Raised between units once cancellation has been requested."""
