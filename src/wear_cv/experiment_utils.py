"""Run bookkeeping: logging setup, run ids, seeding and metadata."""

from __future__ import annotations

import logging
import platform
import random
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import numpy as np

LOG_FORMAT = "%(asctime)s %(levelname)s [run=%(run_id)s seed=%(seed)s] %(name)s: %(message)s"


class _RunContextFilter(logging.Filter):
    def __init__(self, run_id: str, seed: int | None) -> None:
        super().__init__()
        self.run_id = run_id
        self.seed = seed

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = self.run_id
        record.seed = self.seed
        return True


def configure_logging(
    *,
    run_id: str,
    seed: int | None,
    log_file: str | Path | None = None,
    level: int = logging.INFO,
    force: bool = False,
    logger_name: str = "wear_cv",
) -> logging.Logger:
    """Attach stream (and optional file) handlers tagged with run id and seed."""
    logger = logging.getLogger(logger_name)
    if logger.handlers and not force:
        return logger

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT)
    context = _RunContextFilter(run_id, seed)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(context)
        logger.addHandler(handler)

    logger.setLevel(level)
    logger.propagate = False
    return logger


def generate_run_id(prefix: str = "run") -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    return f"{prefix}-{stamp}-{uuid.uuid4().hex[:6]}"


def set_global_seed(seed: int) -> None:
    random.seed(seed)
    np.random.seed(seed)


def create_run_metadata(
    *, run_id: str, seed: int | None, extra: dict[str, Any] | None = None
) -> dict[str, Any]:
    import joblib
    import pandas
    import sklearn
    import xgboost

    metadata: dict[str, Any] = {
        "run_id": run_id,
        "seed": seed,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "python": platform.python_version(),
        "versions": {
            "numpy": np.__version__,
            "pandas": pandas.__version__,
            "scikit-learn": sklearn.__version__,
            "xgboost": xgboost.__version__,
            "joblib": joblib.__version__,
        },
    }
    if extra:
        metadata.update(extra)
    return metadata
