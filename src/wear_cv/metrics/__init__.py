from .results_io import write_frame_csv, write_json
from .summary import ErrorSummary, fold_errors, summarize_errors, summarize_fold_errors

__all__ = [
    "ErrorSummary",
    "fold_errors",
    "summarize_errors",
    "summarize_fold_errors",
    "write_frame_csv",
    "write_json",
]
