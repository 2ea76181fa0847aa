"""
Configuration loading and validation.

This module handles loading of YAML configuration files and
validates that all required fields are present.
"""

import logging
from pathlib import Path
from typing import Dict, Any, List

import yaml

logger = logging.getLogger(__name__)

KNOWN_STRATEGIES = ("random", "gsa", "ram")


def load_config(filepath: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        filepath: Path to the YAML configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
    """
    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {filepath}")

    logger.info(f"Loading configuration from {filepath}")
    with open(filepath, "r") as f:
        config = yaml.safe_load(f)

    if config is None:
        raise ValueError(f"Configuration file is empty: {filepath}")

    return config


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate configuration and return list of warnings/errors.

    Args:
        config: Configuration dictionary

    Returns:
        List of warning/error messages (empty if valid)
    """
    issues = []

    required_sections = ["global", "data", "population", "attraction", "matching", "trials"]

    for section in required_sections:
        if section not in config:
            issues.append(f"Missing required section: {section}")
        elif config[section] is None:
            issues.append(f"Empty section: {section} (defaults apply)")

    # An empty YAML section loads as None
    if "data" in config:
        data = config["data"] or {}
        if "path" not in (data.get("reference") or {}):
            issues.append("Missing data.reference.path")
        if "mapping_file" not in data:
            issues.append("Missing data.mapping_file")

    if "population" in config:
        pool_size = (config["population"] or {}).get("pool_size", 100)
        if not isinstance(pool_size, int) or pool_size < 1:
            issues.append(f"population.pool_size must be a positive integer, got {pool_size}")

    if "attraction" in config:
        scale_max = (config["attraction"] or {}).get("scale_max", 10)
        if scale_max <= 0:
            issues.append(f"attraction.scale_max must be positive, got {scale_max}")

    if "matching" in config:
        matching = config["matching"] or {}
        strategy = matching.get("strategy", "gsa")
        if strategy not in KNOWN_STRATEGIES:
            issues.append(f"Unknown matching strategy: {strategy}")

        ram = matching.get("ram") or {}
        if ram.get("rounds", 100) < 1:
            issues.append(f"matching.ram.rounds must be >= 1, got {ram.get('rounds')}")
        if ram.get("budget", 10.0) <= 0:
            issues.append(f"matching.ram.budget must be positive, got {ram.get('budget')}")

        proposer = (matching.get("gsa") or {}).get("proposer", "male")
        if proposer not in ("male", "female"):
            issues.append(f"matching.gsa.proposer must be 'male' or 'female', got {proposer}")

    if "trials" in config:
        trials = config["trials"] or {}
        n_trials = trials.get("n_trials", 1)
        if not isinstance(n_trials, int) or n_trials < 1:
            issues.append(f"trials.n_trials must be a positive integer, got {n_trials}")
        n_jobs = trials.get("n_jobs", 1)
        if not isinstance(n_jobs, int) or n_jobs == 0:
            issues.append(f"trials.n_jobs must be a non-zero integer, got {n_jobs}")

    # Check random seed is set
    if "global" in config:
        if "random_seed" not in (config["global"] or {}):
            issues.append("Missing global.random_seed (required for reproducibility)")

    return issues


def get_config_value(config: Dict[str, Any], path: str, default: Any = None) -> Any:
    """
    Get a nested configuration value using dot notation.

    Args:
        config: Configuration dictionary
        path: Dot-separated path (e.g., "matching.ram.rounds")
        default: Default value if path doesn't exist

    Returns:
        Configuration value or default
    """
    keys = path.split(".")
    value = config
    for key in keys:
        if isinstance(value, dict) and key in value:
            value = value[key]
        else:
            return default
    return value


def set_config_value(config: Dict[str, Any], path: str, value: Any) -> None:
    """
    Set a nested configuration value using dot notation.

    Missing or empty intermediate sections are created as needed.

    Args:
        config: Configuration dictionary (modified in place)
        path: Dot-separated path (e.g., "matching.strategy")
        value: Value to store

    Raises:
        ValueError: If an intermediate key holds a non-mapping value
    """
    *parents, leaf = path.split(".")
    section = config
    for key in parents:
        if section.get(key) is None:
            section[key] = {}
        section = section[key]
        if not isinstance(section, dict):
            raise ValueError(f"Cannot set {path}: '{key}' is not a section")
    section[leaf] = value
