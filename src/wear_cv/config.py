"""YAML run configuration.

Example::

    data:
      path: data/wear.csv
      group_col: unit_id
      strata_col: duty_type
      target: wear_rate
      features: [load, hours, duty_type]
    cv: {k: 10, n: 100, seed: 42}
    model: {name: ensemble, params: {inner_folds: 3}}
    importance: {n_perms: 5, features: [load, hours]}
    n_jobs: 4
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from .data import DUTY_CATEGORIES, DataSchema
from .errors import ConfigurationError
from .folds import DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class CVConfig:
    k: int = 10
    n: int = 100
    seed: int = 42
    max_attempts: int = DEFAULT_MAX_ATTEMPTS


@dataclass(frozen=True)
class ImportanceConfig:
    enabled: bool = True
    n_perms: int = 5
    features: tuple[str, ...] | None = None


@dataclass(frozen=True)
class ModelConfig:
    name: str = "linear"
    params: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RunConfig:
    data_path: Path | None
    schema: DataSchema = field(default_factory=DataSchema)
    cv: CVConfig = field(default_factory=CVConfig)
    model: ModelConfig = field(default_factory=ModelConfig)
    importance: ImportanceConfig = field(default_factory=ImportanceConfig)
    n_jobs: int = 1
    output_dir: Path = Path("results")

    @property
    def importance_features(self) -> tuple[str, ...]:
        return self.importance.features or tuple(self.schema.features)


_TOP_KEYS = {"data", "cv", "model", "importance", "n_jobs", "output_dir"}
_DATA_KEYS = {"path", "group_col", "strata_col", "target", "features", "categorical"}


def _section(raw: Mapping[str, Any], name: str, allowed: set[str]) -> dict[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"config section {name!r} must be a mapping")
    unknown = sorted(set(section) - allowed)
    if unknown:
        raise ConfigurationError(f"unknown keys in {name!r}: {unknown}")
    return dict(section)


def _positive(name: str, value: Any, minimum: int = 1) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigurationError(f"{name} must be an integer >= {minimum}, got {value!r}")
    return value


def _schema_from(data: dict[str, Any]) -> DataSchema:
    defaults = DataSchema()
    strata_col = data.get("strata_col", defaults.strata_col)
    categorical = dict(defaults.categorical)
    for name, categories in (data.get("categorical") or {}).items():
        categorical[name] = tuple(str(c) for c in categories)
    categorical.setdefault(strata_col, DUTY_CATEGORIES)

    features = tuple(data.get("features", defaults.features))
    if not features:
        raise ConfigurationError("data.features must list at least one feature")

    return DataSchema(
        group_col=data.get("group_col", defaults.group_col),
        strata_col=strata_col,
        target=data.get("target", defaults.target),
        features=features,
        categorical=categorical,
    )


def config_from_dict(raw: Mapping[str, Any], *, base_dir: Path | None = None) -> RunConfig:
    unknown = sorted(set(raw) - _TOP_KEYS)
    if unknown:
        raise ConfigurationError(f"unknown top-level config keys: {unknown}")

    data = _section(raw, "data", _DATA_KEYS)
    cv_raw = _section(raw, "cv", {"k", "n", "seed", "max_attempts"})
    model_raw = _section(raw, "model", {"name", "params"})
    imp_raw = _section(raw, "importance", {"enabled", "n_perms", "features"})

    schema = _schema_from(data)

    cv = CVConfig(**cv_raw)
    _positive("cv.k", cv.k, minimum=2)
    _positive("cv.n", cv.n)
    _positive("cv.max_attempts", cv.max_attempts)
    _positive("cv.seed", cv.seed, minimum=0)

    features = imp_raw.get("features")
    importance = ImportanceConfig(
        enabled=bool(imp_raw.get("enabled", True)),
        n_perms=_positive("importance.n_perms", imp_raw.get("n_perms", 5)),
        features=tuple(features) if features else None,
    )
    missing = [f for f in importance.features or () if f not in schema.features]
    if missing:
        raise ConfigurationError(f"importance.features not in data.features: {missing}")

    model = ModelConfig(
        name=str(model_raw.get("name", "linear")),
        params=dict(model_raw.get("params") or {}),
    )

    data_path = data.get("path")
    if data_path is not None:
        data_path = Path(data_path)
        if base_dir is not None and not data_path.is_absolute():
            data_path = base_dir / data_path

    n_jobs = raw.get("n_jobs", 1)
    if isinstance(n_jobs, bool) or not isinstance(n_jobs, int) or n_jobs == 0:
        raise ConfigurationError(f"n_jobs must be a non-zero integer, got {n_jobs!r}")

    return RunConfig(
        data_path=data_path,
        schema=schema,
        cv=cv,
        model=model,
        importance=importance,
        n_jobs=n_jobs,
        output_dir=Path(raw.get("output_dir", "results")),
    )


def load_config(path: str | Path) -> RunConfig:
    path = Path(path)
    with path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ConfigurationError(f"{path} must contain a YAML mapping")
    return config_from_dict(raw, base_dir=path.parent)
