"""Fold-safe feature encoding."""

from __future__ import annotations

import pandas as pd

from ..data import DataSchema


def encode_features(frame: pd.DataFrame, schema: DataSchema) -> pd.DataFrame:
    """One-hot encode categoricals against their canonical categories.

    Because the categories are fixed by the schema rather than inferred from
    the rows at hand, a train fold and a test fold always produce the same
    columns in the same order, even when a category is absent from one of
    them.
    """
    parts = [frame[schema.numeric_features].astype(float)]
    for name in schema.categorical_features:
        categories = list(schema.categorical[name])
        col = pd.Categorical(frame[name].astype(str), categories=categories)
        dummies = pd.get_dummies(col, prefix=name, drop_first=False).astype(float)
        dummies.index = frame.index
        parts.append(dummies)
    return pd.concat(parts, axis=1)
