"""
Main runner for the mate-choice simulation.

Usage:
    python -m matesim.run --config configs/config.yaml

The runner performs the following steps:
1. Load and validate configuration
2. Load the reference table and attribute mapping
3. Run the configured number of trials with the selected strategy
4. Report matching diagnostics
5. Optionally write per-trial pairing tables and reports
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
from datetime import datetime
import json

import numpy as np
import pandas as pd
import yaml

from . import __version__

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from config."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)


def load_inputs(config: Dict[str, Any]) -> Tuple[pd.DataFrame, Dict[str, Any]]:
    """
    Load the attribute mapping and complete-case reference table.

    Falls back to a synthetic reference table when the data file is missing.
    """
    from .configs import get_config_value
    from .data_loading import (
        load_reference_data,
        load_attribute_mapping,
        complete_cases,
        create_synthetic_reference_data
    )

    mapping_file = get_config_value(config, "data.mapping_file")
    reference_path = get_config_value(config, "data.reference.path")
    if mapping_file is None or reference_path is None:
        raise ValueError("Config must set data.mapping_file and data.reference.path")
    sex_column = get_config_value(config, "data.reference.sex_column", "sex")

    mapping = load_attribute_mapping(mapping_file)
    n_dimensions = get_config_value(config, "attraction.n_dimensions")
    if n_dimensions is not None and n_dimensions != len(mapping["dimensions"]):
        raise ValueError(f"attraction.n_dimensions is {n_dimensions} but the attribute mapping "
                         f"lists {len(mapping['dimensions'])} dimensions")

    try:
        df = load_reference_data(reference_path,
                                 delimiter=get_config_value(config, "data.reference.delimiter", ","))
    except FileNotFoundError as e:
        logger.error(f"Reference data not found: {e}")
        logger.info("Creating synthetic reference data for demonstration...")
        df = create_synthetic_reference_data(
            mapping,
            random_seed=get_config_value(config, "global.random_seed", 42),
            sex_column=sex_column
        )

    reference = complete_cases(df, mapping, sex_column=sex_column)
    logger.info(f"Reference table: {len(reference)} complete cases "
                f"({int((reference[sex_column] == 0).sum())} male, "
                f"{int((reference[sex_column] == 1).sum())} female)")
    return reference, mapping


def run_simulation(
    config_path: str,
    strategy: Optional[str] = None,
    seed: Optional[int] = None,
    n_trials: Optional[int] = None,
    output_dir: Optional[str] = None
) -> Dict[str, Any]:
    """
    Run the configured trials.

    Args:
        config_path: Path to the configuration YAML file
        strategy: Override matching.strategy
        seed: Override global.random_seed
        n_trials: Override trials.n_trials
        output_dir: If provided, write pairing tables and reports here

    Returns:
        Dictionary with run metadata and per-trial reports
    """
    from .configs import load_config, validate_config, get_config_value, set_config_value
    from .trial import run_trials

    # =========================================================================
    # 1. Load and validate configuration
    # =========================================================================
    logger.info("=" * 60)
    logger.info("MATE-CHOICE SIMULATION")
    logger.info("=" * 60)

    config = load_config(config_path)

    # Command-line values override the file and are saved with the config
    overrides = {
        "matching.strategy": strategy,
        "global.random_seed": seed,
        "trials.n_trials": n_trials,
    }
    for path, value in overrides.items():
        if value is not None:
            logger.info(f"Override: {path} = {value}")
            set_config_value(config, path, value)

    issues = validate_config(config)
    if issues:
        for issue in issues:
            logger.warning(f"Config issue: {issue}")

    setup_logging(get_config_value(config, "global.log_level", "INFO"))

    strategy = get_config_value(config, "matching.strategy", "gsa")
    base_seed = get_config_value(config, "global.random_seed", 42)

    # =========================================================================
    # 2. Load data
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("STEP 1: Loading Data")
    logger.info("=" * 60)

    reference, mapping = load_inputs(config)

    # =========================================================================
    # 3. Run trials
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info(f"STEP 2: Running Trials (strategy={strategy})")
    logger.info("=" * 60)

    results = run_trials(reference, mapping, config, strategy=strategy, base_seed=base_seed)

    # =========================================================================
    # 4. Diagnostics
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("STEP 3: Matching Diagnostics")
    logger.info("=" * 60)

    reports = [result.report() for result in results]
    for result, report in zip(results, reports):
        logger.info(f"\nTrial seed={result.seed}\n" + report.summary())

    mean_attraction = np.nanmean([(r.attraction_a_mean + r.attraction_b_mean) / 2 for r in reports])
    logger.info(f"\nMean attraction to assigned partner across trials: {mean_attraction:.4f}")

    metadata = {
        "version": __version__,
        "run_timestamp": datetime.now().isoformat(),
        "config_path": config_path,
        "strategy": strategy,
        "seeds_used": [r.seed for r in results],
        "reference_rows": len(reference),
    }

    # =========================================================================
    # 5. Save outputs
    # =========================================================================
    if output_dir:
        _save_outputs(Path(output_dir), results, reports, config, metadata)

    logger.info("\n" + "=" * 60)
    logger.info("SIMULATION COMPLETE")
    logger.info("=" * 60)

    return {
        "success": True,
        "metadata": metadata,
        "reports": [r.to_dict() for r in reports],
        "results": results
    }


def _save_outputs(output_dir: Path, results, reports, config, metadata) -> None:
    """Write pairing tables, reports, metadata and the config used."""
    tables_dir = output_dir / "pairings"
    reports_dir = output_dir / "reports"
    tables_dir.mkdir(parents=True, exist_ok=True)
    reports_dir.mkdir(parents=True, exist_ok=True)

    for result, report in zip(results, reports):
        stem = f"{result.strategy}_seed_{result.seed}"
        result.to_frame().to_csv(tables_dir / f"{stem}.csv", index=False)
        report.save(str(reports_dir / f"{stem}.json"))

    with open(output_dir / "metadata.json", "w") as f:
        json.dump(metadata, f, indent=2)
    with open(output_dir / "config_used.yaml", "w") as f:
        yaml.safe_dump(config, f, sort_keys=False)

    logger.info(f"Saved {len(results)} pairing table(s) to {tables_dir}")


def main():
    """Main entry point for the simulation."""
    parser = argparse.ArgumentParser(
        description="Run the mate-choice matching simulation"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/config.yaml",
        help="Path to configuration file"
    )
    parser.add_argument(
        "--strategy",
        type=str,
        choices=["random", "gsa", "ram"],
        default=None,
        help="Matching strategy (overrides config)"
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Base random seed (overrides config)"
    )
    parser.add_argument(
        "--trials",
        type=int,
        default=None,
        help="Number of independent trials (overrides config)"
    )
    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for pairing tables and reports"
    )

    args = parser.parse_args()

    try:
        result = run_simulation(args.config, strategy=args.strategy, seed=args.seed,
                                n_trials=args.trials, output_dir=args.output_dir)
        if result["success"]:
            logger.info("\nSimulation completed successfully!")
            return 0
        else:
            logger.error("\nSimulation failed!")
            return 1
    except Exception as e:
        logger.exception(f"Simulation failed with error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
