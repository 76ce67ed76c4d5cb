"""Quasi-random hyperparameter candidates from a Sobol sequence."""

from __future__ import annotations

import math
from typing import Any

from scipy.stats import qmc

from ..errors import ConfigurationError


def _scale_unit(u: float, spec: dict[str, Any]) -> Any:
    kind = spec["type"]
    if kind == "float":
        low, high = float(spec["low"]), float(spec["high"])
        if spec.get("log", False):
            return float(math.exp(math.log(low) + u * (math.log(high) - math.log(low))))
        return float(low + u * (high - low))

    if kind == "int":
        low, high = int(spec["low"]), int(spec["high"])
        return min(high, int(low + math.floor(u * (high - low + 1))))

    if kind == "cat":
        choices = list(spec["choices"])
        return choices[min(int(u * len(choices)), len(choices) - 1)]

    raise ConfigurationError(f"unknown parameter type {kind!r}")


def suggest_configs(
    param_space: dict[str, dict[str, Any]], budget: int, seed: int
) -> list[dict[str, Any]]:
    """Return ``budget`` parameter dicts covering ``param_space`` evenly."""
    if not param_space:
        raise ConfigurationError("param_space must be non-empty for sobol search")
    if budget < 1:
        raise ConfigurationError(f"budget must be positive, got {budget}")

    names = list(param_space)
    sampler = qmc.Sobol(d=len(names), scramble=True, seed=seed)
    points = sampler.random_base2(m=max(0, math.ceil(math.log2(budget))))[:budget]

    return [
        {name: _scale_unit(float(u), param_space[name]) for name, u in zip(names, row)}
        for row in points
    ]
