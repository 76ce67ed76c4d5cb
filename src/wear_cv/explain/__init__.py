from .pfi import (
    ImportanceResult,
    aggregate_importance,
    importance_frame,
    permutation_importance,
    permuted_batch,
)

__all__ = [
    "ImportanceResult",
    "aggregate_importance",
    "importance_frame",
    "permutation_importance",
    "permuted_batch",
]
