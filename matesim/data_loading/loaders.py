"""
Data loading functions for the mate-choice pipeline.

This module handles loading the empirical reference table from CSV and the
attribute mapping from YAML. Generation of synthetic agents is handled by
the population module.
"""

import logging
from pathlib import Path
from typing import Dict, List, Any

import numpy as np
import pandas as pd
import yaml

logger = logging.getLogger(__name__)


def load_reference_data(filepath: str, delimiter: str = ",") -> pd.DataFrame:
    """
    Load the empirical reference table from CSV.

    The reference table should contain:
    - A binary sex column (0 = male, 1 = female)
    - 16 trait self-ratings and 16 ideal-partner ratings
    - Each row represents one respondent

    Args:
        filepath: Path to the reference CSV file
        delimiter: Field delimiter (default: comma)

    Returns:
        DataFrame with raw reference data

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Reference data file not found: {filepath}")

    logger.info(f"Loading reference data from {filepath} (delimiter: {repr(delimiter)})")
    df = pd.read_csv(filepath, sep=delimiter)

    if df.empty:
        raise ValueError(f"Reference data file is empty: {filepath}")

    logger.info(f"Loaded {len(df)} rows with {len(df.columns)} columns")
    return df


def load_attribute_mapping(filepath: str) -> Dict[str, Any]:
    """
    Load the attribute mapping from YAML.

    The mapping file specifies:
    - The rating scale shared by traits and preferences
    - Column prefixes for trait and preference columns
    - The ordered list of rated dimensions

    Args:
        filepath: Path to the mapping YAML file

    Returns:
        Dictionary with mapping configuration:
        {
            "scale": {"min": 1, "max": 10},
            "prefixes": {"trait": "trait_", "preference": "pref_"},
            "dimensions": ["ambition", "attractiveness", ...]
        }

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the mapping is invalid or incomplete
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Attribute mapping file not found: {filepath}")

    logger.info(f"Loading attribute mapping from {filepath}")
    with open(filepath, "r") as f:
        mapping = yaml.safe_load(f)

    _validate_attribute_mapping(mapping)

    logger.info(f"Loaded mapping for {len(mapping['dimensions'])} dimensions")
    return mapping


def _validate_attribute_mapping(mapping: Dict[str, Any]) -> None:
    """
    Validate the attribute mapping.

    Raises:
        ValueError: If validation fails
    """
    if not isinstance(mapping, dict):
        raise ValueError("Attribute mapping must be a YAML mapping")

    if "scale" not in mapping:
        raise ValueError("Attribute mapping missing 'scale' configuration")

    scale = mapping["scale"]
    if "min" not in scale or "max" not in scale:
        raise ValueError("Attribute mapping scale needs 'min' and 'max'")
    if scale["min"] >= scale["max"]:
        raise ValueError(f"Invalid scale: min={scale['min']} >= max={scale['max']}")

    if "dimensions" not in mapping:
        raise ValueError("Attribute mapping missing 'dimensions' list")

    dimensions = mapping["dimensions"]
    if not isinstance(dimensions, list) or len(dimensions) == 0:
        raise ValueError("Attribute mapping 'dimensions' must be a non-empty list")

    duplicates = {d for d in dimensions if dimensions.count(d) > 1}
    if duplicates:
        raise ValueError(f"Attribute mapping has duplicate dimensions: {duplicates}")

    mapping.setdefault("prefixes", {})
    mapping["prefixes"].setdefault("trait", "trait_")
    mapping["prefixes"].setdefault("preference", "pref_")


def get_trait_columns(mapping: Dict[str, Any]) -> List[str]:
    """Trait column names in dimension order."""
    prefix = mapping.get("prefixes", {}).get("trait", "trait_")
    return [f"{prefix}{d}" for d in mapping["dimensions"]]


def get_preference_columns(mapping: Dict[str, Any]) -> List[str]:
    """Preference column names in dimension order."""
    prefix = mapping.get("prefixes", {}).get("preference", "pref_")
    return [f"{prefix}{d}" for d in mapping["dimensions"]]


def get_attribute_columns(mapping: Dict[str, Any]) -> List[str]:
    """All attribute columns: traits first, then preferences."""
    return get_trait_columns(mapping) + get_preference_columns(mapping)


def validate_reference_columns(
    df: pd.DataFrame,
    mapping: Dict[str, Any],
    sex_column: str = "sex"
) -> List[str]:
    """
    Validate that all mapped attribute columns exist in the DataFrame.

    Args:
        df: Reference DataFrame
        mapping: Attribute mapping dictionary
        sex_column: Name of the binary sex column

    Returns:
        List of missing column names (empty if all present)
    """
    required_columns = [sex_column] + get_attribute_columns(mapping)
    return [c for c in required_columns if c not in df.columns]


def complete_cases(
    df: pd.DataFrame,
    mapping: Dict[str, Any],
    sex_column: str = "sex"
) -> pd.DataFrame:
    """
    Restrict the reference table to rows with no missing values.

    Args:
        df: Reference DataFrame
        mapping: Attribute mapping dictionary
        sex_column: Name of the binary sex column

    Returns:
        DataFrame with the sex column and the 32 attribute columns only

    Raises:
        ValueError: If required columns are missing or no complete rows remain
    """
    missing = validate_reference_columns(df, mapping, sex_column)
    if missing:
        raise ValueError(f"Missing reference columns in data: {missing}")

    columns = [sex_column] + get_attribute_columns(mapping)
    df_complete = df[columns].dropna().reset_index(drop=True)

    n_dropped = len(df) - len(df_complete)
    if n_dropped > 0:
        logger.warning(f"Dropped {n_dropped} incomplete reference rows "
                       f"({n_dropped / len(df):.1%})")

    if df_complete.empty:
        raise ValueError("No complete-case rows in reference data")

    invalid_sex = set(df_complete[sex_column].unique()) - {0, 1}
    if invalid_sex:
        raise ValueError(f"Sex column must be binary (0/1), found values: {invalid_sex}")

    df_complete[sex_column] = df_complete[sex_column].astype(int)
    return df_complete


def create_synthetic_reference_data(
    mapping: Dict[str, Any],
    n_samples: int = 1000,
    random_seed: int = 42,
    sex_column: str = "sex"
) -> pd.DataFrame:
    """
    Create a synthetic reference table for demonstration when real data is unavailable.

    Ratings share a latent "overall level" factor per respondent, so traits
    and preferences are positively correlated, and are rounded to the
    integer rating scale.

    Args:
        mapping: Attribute mapping dictionary
        n_samples: Number of respondents (split evenly by sex)
        random_seed: Random seed
        sex_column: Name of the sex column

    Returns:
        Complete-case reference DataFrame
    """
    rng = np.random.RandomState(random_seed)
    scale_min = mapping["scale"]["min"]
    scale_max = mapping["scale"]["max"]
    d = len(mapping["dimensions"])

    midpoint = (scale_min + scale_max) / 2
    spread = (scale_max - scale_min) / 6

    sex = np.arange(n_samples) % 2
    level = rng.normal(0, 1, size=(n_samples, 1))

    traits = midpoint + spread * (0.6 * level + 0.8 * rng.normal(0, 1, size=(n_samples, d)))
    prefs = midpoint + spread * (0.5 * level + 0.7 * rng.normal(0, 1, size=(n_samples, d)) + 1.0)

    # Sex-specific shift in the first half of the preference dimensions
    prefs[:, : d // 2] += 0.5 * spread * (2 * sex[:, None] - 1)

    values = np.clip(np.rint(np.hstack([traits, prefs])), scale_min, scale_max)

    df = pd.DataFrame(values, columns=get_attribute_columns(mapping))
    df.insert(0, sex_column, sex)

    logger.info(f"Created synthetic reference data: {n_samples} samples")
    return df
