"""Data loading module for the empirical reference table."""

from .loaders import (
    load_reference_data,
    load_attribute_mapping,
    get_trait_columns,
    get_preference_columns,
    get_attribute_columns,
    complete_cases,
    create_synthetic_reference_data
)

__all__ = [
    "load_reference_data",
    "load_attribute_mapping",
    "get_trait_columns",
    "get_preference_columns",
    "get_attribute_columns",
    "complete_cases",
    "create_synthetic_reference_data"
]
