"""Matching module: random, deferred-acceptance and resource-allocation strategies."""

from .base import (
    MatchingStrategy,
    AttractionMatchingStrategy,
    MatchingInvariantError,
    Pairing
)
from .random_match import RandomMatch
from .deferred_acceptance import DeferredAcceptanceMatch, deferred_acceptance
from .resource_allocation import (
    ResourceAllocationMatch,
    ResourceAllocationConfig,
    iter_investment_rounds,
    run_investment
)
from .factory import STRATEGIES, create_strategy

__all__ = [
    "MatchingStrategy",
    "AttractionMatchingStrategy",
    "MatchingInvariantError",
    "Pairing",
    "RandomMatch",
    "DeferredAcceptanceMatch",
    "ResourceAllocationMatch",
    "ResourceAllocationConfig",
    "deferred_acceptance",
    "iter_investment_rounds",
    "run_investment",
    "STRATEGIES",
    "create_strategy"
]
