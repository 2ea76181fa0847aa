"""Population module: agents, pools and the synthetic population generator."""

from .agents import Agent, Pool, MALE, FEMALE, SEX_LABELS
from .generator import (
    PopulationGenerator,
    PopulationConfig,
    generate_pools,
    pivoted_cholesky,
    reference_correlation
)

__all__ = [
    "Agent",
    "Pool",
    "MALE",
    "FEMALE",
    "SEX_LABELS",
    "PopulationGenerator",
    "PopulationConfig",
    "generate_pools",
    "pivoted_cholesky",
    "reference_correlation"
]
