"""Wear-rate dataset schema and loaders."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Mapping

import numpy as np
import pandas as pd

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


class DutyType(str, Enum):
    """Equipment duty type, in canonical (increasing severity) order."""

    LIGHT = "light"
    MEDIUM = "medium"
    HEAVY = "heavy"
    SEVERE = "severe"


DUTY_CATEGORIES: tuple[str, ...] = tuple(d.value for d in DutyType)


@dataclass(frozen=True)
class DataSchema:
    group_col: str = "unit_id"
    strata_col: str = "duty_type"
    target: str = "wear_rate"
    features: tuple[str, ...] = ("load", "hours", "duty_type")
    categorical: Mapping[str, tuple[str, ...]] = field(
        default_factory=lambda: {"duty_type": DUTY_CATEGORIES}
    )

    @property
    def columns(self) -> list[str]:
        cols = [self.group_col, self.strata_col, self.target]
        cols.extend(f for f in self.features if f not in cols)
        return cols

    @property
    def numeric_features(self) -> list[str]:
        return [f for f in self.features if f not in self.categorical]

    @property
    def categorical_features(self) -> list[str]:
        return [f for f in self.features if f in self.categorical]


def _require_columns(frame: pd.DataFrame, required: list[str]) -> None:
    missing = [c for c in required if c not in frame.columns]
    if missing:
        raise ConfigurationError(f"dataset is missing required columns: {missing}")


def _as_categorical(values: pd.Series, categories: tuple[str, ...], name: str) -> pd.Series:
    as_str = values.astype(str)
    unknown = sorted(set(as_str.unique()) - set(categories))
    if unknown:
        raise ConfigurationError(
            f"column {name!r} has values outside {list(categories)}: {unknown}"
        )
    return pd.Series(
        pd.Categorical(as_str, categories=list(categories), ordered=False),
        index=values.index,
        name=name,
    )


def prepare_dataset(frame: pd.DataFrame, schema: DataSchema) -> pd.DataFrame:
    """Validate a raw frame and restrict it to the columns the models need.

    Categorical columns are cast to ``pd.Categorical`` with the schema's
    canonical categories so encodings never depend on which values a fold
    happens to contain. The returned frame has a fresh RangeIndex; row
    position is the row index used by the fold generator.
    """
    cols = schema.columns
    _require_columns(frame, cols)
    out = frame.loc[:, cols].copy().reset_index(drop=True)

    if not pd.api.types.is_numeric_dtype(out[schema.target]):
        raise ConfigurationError(f"target column {schema.target!r} must be numeric")
    if out[schema.target].isna().any():
        raise ConfigurationError(f"target column {schema.target!r} has missing values")

    for name, categories in schema.categorical.items():
        if name in out.columns:
            out[name] = _as_categorical(out[name], tuple(categories), name)

    return out


def load_wear_data(path: str | Path, schema: DataSchema) -> pd.DataFrame:
    path = Path(path)
    logger.info("Loading wear data from %s", path)
    raw = pd.read_csv(path)
    data = prepare_dataset(raw, schema)
    logger.info(
        "Loaded %d rows, %d groups, target=%s",
        len(data),
        data[schema.group_col].nunique(),
        schema.target,
    )
    return data


def make_synthetic_wear_data(
    n_groups: int,
    rows_per_group: int,
    *,
    seed: int = 0,
    noise_features: int = 1,
    duty_types: tuple[str, ...] = (DutyType.LIGHT.value, DutyType.HEAVY.value),
    noise_sd: float = 0.1,
) -> pd.DataFrame:
    """Generate a small wear-rate dataset.

    Wear rate depends on ``load``, ``hours`` and the duty type. The
    ``noise_*`` columns are drawn independently of the target. Duty types
    are dealt to units cyclically, so each one covers several units.
    """
    rng = np.random.default_rng(seed)
    severity = {d: i for i, d in enumerate(DUTY_CATEGORIES)}

    rows: list[dict] = []
    for g in range(n_groups):
        duty = duty_types[g % len(duty_types)]
        unit_effect = rng.normal(0.0, 0.05)
        for _ in range(rows_per_group):
            load = rng.uniform(0.5, 1.5)
            hours = rng.uniform(10.0, 100.0)
            wear = 0.8 * load + 0.01 * hours + 0.3 * severity[duty] + unit_effect
            row = {
                "unit_id": f"U{g:03d}",
                "duty_type": duty,
                "wear_rate": wear + rng.normal(0.0, noise_sd),
                "load": load,
                "hours": hours,
            }
            for j in range(noise_features):
                row[f"noise_{j}"] = rng.normal()
            rows.append(row)

    frame = pd.DataFrame(rows)
    frame["duty_type"] = pd.Categorical(frame["duty_type"], categories=list(DUTY_CATEGORIES))
    return frame
