"""Dataset schema, loading and synthetic generation utilities."""

from .wear import (
    DUTY_CATEGORIES,
    DataSchema,
    DutyType,
    load_wear_data,
    make_synthetic_wear_data,
    prepare_dataset,
)

__all__ = [
    "DUTY_CATEGORIES",
    "DataSchema",
    "DutyType",
    "load_wear_data",
    "make_synthetic_wear_data",
    "prepare_dataset",
]
