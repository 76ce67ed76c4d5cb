from __future__ import annotations

import json
import logging
from pathlib import Path

import pandas as pd
import pytest

from wear_cv.config import config_from_dict
from wear_cv.data import DataSchema, make_synthetic_wear_data, prepare_dataset
from wear_cv.experiment_utils import configure_logging, generate_run_id
from wear_cv.single_run import run_experiment, run_from_config


def test_run_experiment_in_memory() -> None:
    config = config_from_dict(
        {
            "data": {"features": ["load", "hours", "duty_type", "noise_0"]},
            "cv": {"k": 3, "n": 2, "seed": 1},
            "model": {"name": "linear"},
            "importance": {"n_perms": 2},
        }
    )
    data = prepare_dataset(make_synthetic_wear_data(9, 4, seed=1), config.schema)

    result = run_experiment(data, config)

    assert len(result.evaluation.results) == 2 * len(data)
    assert len(result.fold_metrics) == 6
    assert result.summary.n_folds == 6
    assert len(result.importance) == 2 * 3 * 4 * 2
    assert set(result.importance_summary["feature"]) == {"load", "hours", "duty_type", "noise_0"}


def test_configure_logging_writes_run_file(tmp_path: Path) -> None:
    run_id = generate_run_id(prefix="test")
    log_file = tmp_path / "run.log"

    logger = configure_logging(
        run_id=run_id, seed=3, log_file=log_file, force=True, logger_name="wear_cv.test"
    )
    logger.info("hello")
    for handler in logger.handlers:
        handler.flush()

    assert run_id.startswith("test-")
    text = log_file.read_text(encoding="utf-8")
    assert "hello" in text
    assert f"run={run_id}" in text

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


@pytest.mark.slow
def test_run_from_config_writes_artifacts(tmp_path: Path) -> None:
    data_path = tmp_path / "wear.csv"
    make_synthetic_wear_data(10, 5, seed=0).to_csv(data_path, index=False)
    config_path = tmp_path / "run.yaml"
    config_path.write_text(
        "data:\n"
        "  path: wear.csv\n"
        "cv: {k: 5, n: 2, seed: 0}\n"
        "model:\n"
        "  name: ensemble\n"
        "  params:\n"
        "    inner_folds: 2\n"
        "    param_grid: {n_estimators: [20], max_depth: [2, 3]}\n"
        "importance: {n_perms: 2}\n",
        encoding="utf-8",
    )

    artifacts = run_from_config(config_path, output_dir=tmp_path / "results")

    for name in (
        "evaluation.csv",
        "fold_metrics.csv",
        "diagnostics.csv",
        "folds.csv",
        "error_summary.json",
        "importance.csv",
        "importance_summary.csv",
        "run_metadata.json",
        "run.log",
    ):
        assert (artifacts.results_dir / name).exists(), name

    evaluation = pd.read_csv(artifacts.results_path)
    assert len(evaluation) == 2 * 50
    summary = json.loads(artifacts.summary_path.read_text(encoding="utf-8"))
    assert {"rmse_mean", "r2_mean"} <= set(summary)
    diagnostics = pd.read_csv(artifacts.results_dir / "diagnostics.csv")
    assert "best_params" in diagnostics.columns

    # leave the package logger as other tests expect it
    for handler in list(logging.getLogger("wear_cv").handlers):
        logging.getLogger("wear_cv").removeHandler(handler)
        handler.close()
