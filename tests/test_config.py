from __future__ import annotations

from pathlib import Path

import pytest

from wear_cv.config import config_from_dict, load_config
from wear_cv.data import DUTY_CATEGORIES, make_synthetic_wear_data, prepare_dataset
from wear_cv.errors import ConfigurationError
from wear_cv.single_run import run_experiment


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "run.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
data:
  path: wear.csv
  features: [load, hours, duty_type]
cv:
  k: 5
  n: 20
  seed: 7
model:
  name: ensemble
  params: {inner_folds: 2}
importance:
  n_perms: 3
  features: [load]
n_jobs: 2
""",
    )
    config = load_config(path)

    assert config.data_path == tmp_path / "wear.csv"
    assert (config.cv.k, config.cv.n, config.cv.seed) == (5, 20, 7)
    assert config.model.name == "ensemble"
    assert config.model.params == {"inner_folds": 2}
    assert config.importance.n_perms == 3
    assert config.importance_features == ("load",)
    assert config.schema.categorical["duty_type"] == DUTY_CATEGORIES
    assert config.n_jobs == 2


def test_defaults() -> None:
    config = config_from_dict({})

    assert config.data_path is None
    assert (config.cv.k, config.cv.n, config.cv.max_attempts) == (10, 100, 1000)
    assert config.importance.n_perms == 5
    assert config.importance_features == config.schema.features
    assert config.model.name == "linear"


@pytest.mark.parametrize(
    "raw, message",
    [
        ({"cv": {"k": 1}}, "cv.k"),
        ({"cv": {"n": 0}}, "cv.n"),
        ({"cv": {"folds": 5}}, "unknown keys"),
        ({"cv": {"seed": -1}}, "cv.seed"),
        ({"cv": {"seed": "abc"}}, "cv.seed"),
        ({"importance": {"n_perms": 0}}, "n_perms"),
        ({"importance": {"features": ["vibration"]}}, "importance.features"),
        ({"data": {"features": []}}, "at least one feature"),
        ({"n_jobs": 0}, "n_jobs"),
        ({"plots": True}, "top-level"),
    ],
)
def test_invalid_config(raw: dict, message: str) -> None:
    with pytest.raises(ConfigurationError, match=message):
        config_from_dict(raw)


def _site_config() -> dict:
    return {
        "data": {
            "strata_col": "site",
            "features": ["load", "hours", "duty_type"],
            "categorical": {"site": ["a", "b"]},
        },
        "cv": {"k": 3, "n": 2, "seed": 0},
        "importance": {"n_perms": 2},
    }


def test_other_strata_column_keeps_duty_type_categorical() -> None:
    config = config_from_dict(_site_config())

    assert config.schema.strata_col == "site"
    assert config.schema.categorical["site"] == ("a", "b")
    assert config.schema.categorical["duty_type"] == DUTY_CATEGORIES
    assert config.schema.numeric_features == ["load", "hours"]
    assert config.schema.categorical_features == ["duty_type"]


def test_strata_column_without_categories_uses_duty_types() -> None:
    config = config_from_dict({"data": {"strata_col": "duty_class"}})

    assert config.schema.categorical["duty_class"] == DUTY_CATEGORIES
    assert config.schema.categorical["duty_type"] == DUTY_CATEGORIES


def test_run_with_other_strata_column() -> None:
    config = config_from_dict(_site_config())
    frame = make_synthetic_wear_data(12, 5, seed=0)
    frame["site"] = frame["unit_id"].map(lambda u: "b" if int(u[1:]) % 3 == 0 else "a")
    data = prepare_dataset(frame, config.schema)

    result = run_experiment(data, config)

    assert len(result.evaluation.results) == 2 * len(data)
    assert result.summary.n_folds == 6
    assert set(result.importance_summary["feature"]) == {"load", "hours", "duty_type"}
