"""End-to-end run: folds -> evaluation -> error summary -> permutation importance."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path

import pandas as pd

from .config import RunConfig, load_config
from .data import load_wear_data
from .errors import ConfigurationError
from .evaluation import EvaluationRun, evaluate_model
from .experiment_utils import (
    configure_logging,
    create_run_metadata,
    generate_run_id,
    set_global_seed,
)
from .explain import ImportanceResult, aggregate_importance, importance_frame, permutation_importance
from .folds import RepeatedFoldSet, fold_assignment_frame, repeated_grouped_folds
from .metrics import ErrorSummary, fold_errors, summarize_fold_errors, write_frame_csv, write_json
from .modeling import build_model

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExperimentResult:
    folds: RepeatedFoldSet
    evaluation: EvaluationRun
    fold_metrics: pd.DataFrame
    summary: ErrorSummary
    importance: list[ImportanceResult]
    importance_summary: pd.DataFrame | None


@dataclass(frozen=True)
class RunArtifacts:
    run_id: str
    results_dir: Path
    results_path: Path
    summary_path: Path
    importance_path: Path | None


def run_experiment(
    data: pd.DataFrame,
    config: RunConfig,
    *,
    cancel: threading.Event | None = None,
) -> ExperimentResult:
    schema = config.schema
    cv = config.cv

    folds = repeated_grouped_folds(
        data[schema.group_col].to_numpy(),
        data[schema.strata_col].to_numpy(),
        cv.k,
        cv.n,
        seed=cv.seed,
        max_attempts=cv.max_attempts,
        n_jobs=config.n_jobs,
    )
    fitter = build_model(config.model.name, schema, config.model.params, seed=cv.seed)

    logger.info("[stage] Evaluating %s model over %d units", config.model.name, len(folds))
    evaluation = evaluate_model(
        data, fitter, folds, schema=schema, n_jobs=config.n_jobs, cancel=cancel
    )
    per_fold = fold_errors(evaluation.to_frame())
    summary = summarize_fold_errors(per_fold)
    logger.info(
        "RMSE mean=%.4f med=%.4f sd=%.4f | R2 mean=%.4f med=%.4f sd=%.4f",
        summary.rmse_mean,
        summary.rmse_med,
        summary.rmse_sd,
        summary.r2_mean,
        summary.r2_med,
        summary.r2_sd,
    )

    importance: list[ImportanceResult] = []
    importance_summary = None
    if config.importance.enabled:
        logger.info("[stage] Permutation importance")
        importance = permutation_importance(
            data,
            fitter,
            folds,
            config.importance_features,
            schema=schema,
            n_perms=config.importance.n_perms,
            seed=cv.seed,
            n_jobs=config.n_jobs,
            cancel=cancel,
        )
        importance_summary = aggregate_importance(importance)
        top = importance_summary.iloc[0]
        logger.info("Most important feature: %s (mean rmse_delta=%.4f)", top["feature"], top["rmse_delta_mean"])

    return ExperimentResult(
        folds=folds,
        evaluation=evaluation,
        fold_metrics=per_fold,
        summary=summary,
        importance=importance,
        importance_summary=importance_summary,
    )


def run_from_config(config_path: str | Path, output_dir: str | Path | None = None) -> RunArtifacts:
    config = load_config(config_path)
    if config.data_path is None:
        raise ConfigurationError("data.path is required to run from a config file")

    set_global_seed(config.cv.seed)
    run_id = generate_run_id(prefix=f"wear-{config.model.name}")
    results_dir = Path(output_dir or config.output_dir) / run_id
    results_dir.mkdir(parents=True, exist_ok=True)

    configure_logging(
        run_id=run_id,
        seed=config.cv.seed,
        log_file=results_dir / "run.log",
        force=True,
    )

    t0 = time.time()
    data = load_wear_data(config.data_path, config.schema)
    result = run_experiment(data, config)

    results_path = write_frame_csv(results_dir / "evaluation.csv", result.evaluation.to_frame())
    write_frame_csv(results_dir / "fold_metrics.csv", result.fold_metrics)
    write_frame_csv(results_dir / "diagnostics.csv", result.evaluation.diagnostics_frame())
    write_frame_csv(results_dir / "folds.csv", fold_assignment_frame(result.folds))
    summary_path = write_json(results_dir / "error_summary.json", result.summary.to_dict())

    importance_path = None
    if result.importance_summary is not None:
        importance_path = write_frame_csv(
            results_dir / "importance.csv", importance_frame(result.importance)
        )
        write_frame_csv(results_dir / "importance_summary.csv", result.importance_summary)

    metadata = create_run_metadata(
        run_id=run_id,
        seed=config.cv.seed,
        extra={
            "config_path": str(config_path),
            "k": config.cv.k,
            "n": config.cv.n,
            "max_attempts": config.cv.max_attempts,
            "model": config.model.name,
            "model_params": config.model.params,
            "n_perms": config.importance.n_perms,
            "importance_features": list(config.importance_features),
            "n_rows": len(data),
            "seconds": round(time.time() - t0, 3),
        },
    )
    write_json(results_dir / "run_metadata.json", metadata)

    logger.info("Results written to %s", results_dir)
    return RunArtifacts(
        run_id=run_id,
        results_dir=results_dir,
        results_path=results_path,
        summary_path=summary_path,
        importance_path=importance_path,
    )
