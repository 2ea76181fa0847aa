"""
Strategy selection.

Maps the configured strategy name onto one of the three mate-choice
protocols. Each protocol receives only the inputs it uses: the random
baseline gets no attraction model.
"""

import logging
from typing import Dict, Any, Optional

from ..attraction.model import AttractionModel
from ..configs.loader import get_config_value
from ..population.agents import MALE, FEMALE
from .base import MatchingStrategy
from .random_match import RandomMatch
from .deferred_acceptance import DeferredAcceptanceMatch
from .resource_allocation import ResourceAllocationMatch, ResourceAllocationConfig

logger = logging.getLogger(__name__)

STRATEGIES = {
    RandomMatch.name: RandomMatch,
    DeferredAcceptanceMatch.name: DeferredAcceptanceMatch,
    ResourceAllocationMatch.name: ResourceAllocationMatch,
}


def create_strategy(
    name: str,
    config: Optional[Dict[str, Any]] = None,
    random_seed: Optional[int] = None
) -> MatchingStrategy:
    """
    Factory function to create a matching strategy from config.

    Args:
        name: Strategy name ("random", "gsa" or "ram")
        config: Main configuration dictionary
        random_seed: Seed for the strategy's random draws

    Returns:
        Configured MatchingStrategy instance

    Raises:
        ValueError: If the strategy name is unknown
    """
    config = config or {}
    if name not in STRATEGIES:
        raise ValueError(f"Unknown matching strategy: {name} (expected one of {sorted(STRATEGIES)})")

    if name == RandomMatch.name:
        return RandomMatch(random_seed=random_seed)

    attraction_model = AttractionModel.from_config(config)

    if name == DeferredAcceptanceMatch.name:
        proposer = get_config_value(config, "matching.gsa.proposer", "male")
        proposer_sex = FEMALE if proposer == "female" else MALE
        return DeferredAcceptanceMatch(attraction_model, proposer_sex=proposer_sex,
                                       random_seed=random_seed)

    ram_config = ResourceAllocationConfig.from_config(config)
    logger.debug(f"Resource allocation with rounds={ram_config.rounds}, budget={ram_config.budget}")
    return ResourceAllocationMatch(attraction_model, config=ram_config, random_seed=random_seed)
