"""
Smoke test for the simulation.

This script validates that:
1. The reference table and attribute mapping load (or fall back to synthetic data)
2. Generated pools reproduce the reference correlation structure
3. All three strategies pair the same pools into valid one-to-one pairings
4. Partner similarity between strategies can be computed

Usage:
    python scripts/smoke_test.py
"""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import logging
import numpy as np

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def run_smoke_test():
    """Run smoke tests on generation and matching."""

    logger.info("=" * 60)
    logger.info("SMOKE TEST: Generation and Matching")
    logger.info("=" * 60)

    # Import modules
    from matesim.configs import load_config
    from matesim.population import PopulationGenerator, MALE
    from matesim.run import load_inputs
    from matesim.trial import compare_strategies

    # Load config
    config_path = project_root / "configs" / "config.yaml"
    logger.info(f"Loading config from {config_path}")
    config = load_config(str(config_path))
    config["data"]["reference"]["path"] = str(project_root / config["data"]["reference"]["path"])
    config["data"]["mapping_file"] = str(project_root / config["data"]["mapping_file"])

    results = {"generation": {}, "matching": {}}

    # =========================================================================
    # Test population generation
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 1: Population Generation")
    logger.info("=" * 60)

    try:
        reference, mapping = load_inputs(config)
        results["generation"]["rows"] = len(reference)

        generator = PopulationGenerator(reference, mapping, random_seed=0)
        values = generator.sample_attributes(5000)
        generated = np.corrcoef(values, rowvar=False)
        max_error = float(np.abs(generated - generator.correlation).max())

        logger.info(f"  Reference rows: {len(reference):,}")
        logger.info(f"  Correlation rank: {generator.rank} of {len(generator.attribute_columns)}")
        logger.info(f"  Max correlation error (n=5000): {max_error:.4f}")
        logger.info(f"  Value range: [{values.min():.2f}, {values.max():.2f}]")

        results["generation"]["status"] = "PASSED" if max_error < 0.2 else "FAILED - correlation drift"

    except Exception as e:
        logger.error(f"  GENERATION TEST FAILED: {e}")
        results["generation"]["status"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # Test matching strategies
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("TEST 2: Matching Strategies")
    logger.info("=" * 60)

    try:
        trials = compare_strategies(reference, mapping, config, seed=1)

        for name, trial in trials.items():
            report = trial.report()
            logger.info(f"  {name}: {report.n_pairs} pairs, "
                        f"{report.n_blocking_pairs} blocking pairs, "
                        f"mean attraction {report.attraction_a_mean:.3f} / {report.attraction_b_mean:.3f}")

        if not trials["gsa"].report().is_stable:
            raise RuntimeError("Deferred acceptance produced blocking pairs")

        scorer = trials["gsa"].similarity_scorer()
        comparison = scorer.compare_pairings(trials["ram"].pairing, trials["gsa"].pairing)
        logger.info(f"  ram vs gsa partner similarity: {comparison['similarity'].mean():.3f}")

        male_partner = trials["gsa"].to_frame().query("sex == @MALE")["modelguess"]
        logger.info(f"  Male agents with a partner: {male_partner.notna().sum()}/{len(male_partner)}")

        results["matching"]["status"] = "PASSED"

    except Exception as e:
        logger.error(f"  MATCHING TEST FAILED: {e}")
        results["matching"]["status"] = f"FAILED - {e}"
        import traceback
        traceback.print_exc()

    # =========================================================================
    # Summary
    # =========================================================================
    logger.info("\n" + "=" * 60)
    logger.info("SMOKE TEST SUMMARY")
    logger.info("=" * 60)

    all_passed = True
    for stage, result in results.items():
        status = result.get("status", "NOT RUN")
        logger.info(f"  {stage.upper()}: {status}")
        if status != "PASSED":
            all_passed = False

    if all_passed:
        logger.info("\n  ALL TESTS PASSED")
        return 0
    else:
        logger.error("\n  SOME TESTS FAILED")
        return 1


if __name__ == "__main__":
    sys.exit(run_smoke_test())
