"""
Single-trial execution.

A trial generates one male and one female pool from the reference table,
resolves a pairing with the selected strategy, and returns everything as
an immutable TrialResult. Trials share no mutable state, so repeated
experiments run them in parallel and combine the returned results.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .attraction import AttractionModel
from .configs import get_config_value
from .evaluation import MatchingReport, create_matching_report
from .matching import Pairing, create_strategy
from .population import Agent, Pool, PopulationConfig, generate_pools
from .similarity import SimilarityScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrialResult:
    """
    Outcome of one trial.

    Attributes:
        strategy: Name of the matching strategy
        seed: Seed the trial was generated from
        male_pool: Male agents
        female_pool: Female agents
        pairing: Validated pairing between the two pools
        attraction_model: Attraction model the trial was configured with
    """
    strategy: str
    seed: int
    male_pool: Pool
    female_pool: Pool
    pairing: Pairing
    attraction_model: AttractionModel = field(default_factory=AttractionModel)

    @property
    def pools(self) -> List[Pool]:
        return [self.male_pool, self.female_pool]

    def agents(self) -> List[Agent]:
        """All agents with their assigned partner attached."""
        partners = self.pairing.partners
        return [
            agent.with_partner(partners.get(agent.pin))
            for pool in self.pools
            for agent in pool
        ]

    def to_frame(self) -> pd.DataFrame:
        """
        Pairing table: one row per agent with PIN, sex, the 32 attributes and
        the assigned partner PIN (modelguess, <NA> if unmatched).
        """
        partners = self.pairing.partners
        df = pd.concat(
            [pool.to_frame(partners) for pool in self.pools],
            ignore_index=True
        )
        df.insert(0, "trial_seed", self.seed)
        df.insert(1, "strategy", self.strategy)
        return df

    def report(self, attraction_model: Optional[AttractionModel] = None) -> MatchingReport:
        """Matching diagnostics for this trial, scored with its own attraction model by default."""
        attraction_model = attraction_model or self.attraction_model
        a_rates_b, b_rates_a = attraction_model.rate_both(self.male_pool, self.female_pool)
        return create_matching_report(
            self.pairing, self.male_pool, self.female_pool, a_rates_b, b_rates_a
        )

    def similarity_scorer(self) -> SimilarityScorer:
        """Partner-similarity scorer over this trial's pools on its rating scale."""
        return SimilarityScorer(self.pools, scale_max=self.attraction_model.scale_max)


def _generate_trial_pools(reference, mapping, config, seed):
    population = PopulationConfig.from_config(config)
    population.validate()
    return generate_pools(
        reference, mapping,
        n=population.pool_size,
        n_female=population.n_female,
        random_seed=seed,
        sex_column=population.sex_column,
        sex_specific=population.sex_specific_reference
    )


def match_pools(
    male_pool: Pool,
    female_pool: Pool,
    config: Dict[str, Any],
    strategy: str,
    seed: int
) -> TrialResult:
    """
    Resolve a pairing between two existing pools.

    Args:
        male_pool: Male agents
        female_pool: Female agents
        config: Main configuration dictionary
        strategy: Strategy name
        seed: Seed for the strategy's random draws

    Returns:
        TrialResult
    """
    matcher = create_strategy(strategy, config, random_seed=seed)
    pairing = matcher.match(male_pool, female_pool)
    return TrialResult(
        strategy=strategy,
        seed=seed,
        male_pool=male_pool,
        female_pool=female_pool,
        pairing=pairing,
        attraction_model=AttractionModel.from_config(config)
    )


def run_trial(
    reference: pd.DataFrame,
    mapping: Dict[str, Any],
    config: Dict[str, Any],
    strategy: Optional[str] = None,
    seed: int = 42
) -> TrialResult:
    """
    Run one trial: generate pools, then match them.

    Args:
        reference: Complete-case reference table
        mapping: Attribute mapping dictionary
        config: Main configuration dictionary
        strategy: Strategy name (defaults to matching.strategy from config)
        seed: Trial seed; pools and strategy draws derive from it

    Returns:
        TrialResult
    """
    strategy = strategy or get_config_value(config, "matching.strategy", "gsa")
    male_pool, female_pool = _generate_trial_pools(reference, mapping, config, seed)
    return match_pools(male_pool, female_pool, config, strategy, seed)


def compare_strategies(
    reference: pd.DataFrame,
    mapping: Dict[str, Any],
    config: Dict[str, Any],
    strategies: Sequence[str] = ("random", "gsa", "ram"),
    seed: int = 42
) -> Dict[str, TrialResult]:
    """
    Match the same pair of pools under several strategies.

    Returns:
        Strategy name -> TrialResult, all sharing the same pools
    """
    male_pool, female_pool = _generate_trial_pools(reference, mapping, config, seed)
    return {
        name: match_pools(male_pool, female_pool, config, name, seed)
        for name in strategies
    }


def run_trials(
    reference: pd.DataFrame,
    mapping: Dict[str, Any],
    config: Dict[str, Any],
    strategy: Optional[str] = None,
    n_trials: Optional[int] = None,
    base_seed: Optional[int] = None,
    n_jobs: Optional[int] = None
) -> List[TrialResult]:
    """
    Run independent trials, in parallel when n_jobs != 1.

    Trial k uses seed base_seed + k.

    Args:
        reference: Complete-case reference table
        mapping: Attribute mapping dictionary
        config: Main configuration dictionary
        strategy: Strategy name (defaults to config)
        n_trials: Number of trials (defaults to trials.n_trials)
        base_seed: First trial seed (defaults to global.random_seed)
        n_jobs: joblib worker count (defaults to trials.n_jobs)

    Returns:
        List of TrialResult in trial order
    """
    if n_trials is None:
        n_trials = get_config_value(config, "trials.n_trials", 1)
    if n_jobs is None:
        n_jobs = get_config_value(config, "trials.n_jobs", 1)
    if base_seed is None:
        base_seed = get_config_value(config, "global.random_seed", 42)
    if n_trials < 1:
        raise ValueError(f"n_trials must be >= 1, got {n_trials}")

    logger.info(f"Running {n_trials} trial(s) with n_jobs={n_jobs}")
    results = Parallel(n_jobs=n_jobs)(
        delayed(run_trial)(reference, mapping, config, strategy, base_seed + k)
        for k in range(n_trials)
    )

    n_pairs = [len(r.pairing) for r in results]
    logger.info(f"Completed {len(results)} trial(s): {np.mean(n_pairs):.1f} pairs on average")
    return list(results)
