"""
Resource allocation matching ("ram").

Iterative mutual-investment protocol modelling repeated courtship signalling.
Every agent splits a fixed budget across the current singles of the other
side in proportion to attraction. Each round an agent's investment in a
candidate is multiplied by what that candidate invested back in the
previous round, then rows are renormalised to the budget:

    a'[i, j] = budget * a[i, j] * b[j, i] / sum_k(a[i, k] * b[k, i])
    b'[j, i] = budget * b[j, i] * a[i, j] / sum_k(b[j, k] * a[k, j])

The share a[i, j] grows in a round exactly when b[j, i] is at least the
a-weighted mean of what i receives, sum_k(a[i, k] * b[k, i]) / budget.
So an investment never shrinks while its target is the agent's largest
investor (b[j, i] = max_k b[k, i] > 0), and the same holds for b[j, i]
with a[i, j] = max_l a[l, j] > 0. Being each other's top choice is not
enough: if someone else invests more in i than j does, a[i, j] can fall
for a round even though j is i's favourite.

After a fixed number of rounds each agent's top choice is the candidate
receiving its largest investment; two agents pair when each is the other's
top choice. Paired agents leave and the process reruns on the remaining
singles.

Termination:
- One single left on each side: they pair with each other
- A pass that forms no mutual pair force-pairs the singles with the largest
  mutual investment a[i, j] * b[j, i] (ties: lowest row, then lowest column)
- Every pass therefore removes at least one agent from each side
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Iterator, List, Optional, Tuple
import json

import numpy as np

from ..attraction.model import AttractionModel
from ..configs.loader import get_config_value
from .base import AttractionMatchingStrategy, IndexPairs, check_attraction_shapes

logger = logging.getLogger(__name__)


@dataclass
class ResourceAllocationConfig:
    """
    Configuration for the resource allocation protocol.

    Attributes:
        rounds: Investment rounds per pass
        budget: Investment budget per agent
    """
    rounds: int = 100
    budget: float = 10.0

    def validate(self) -> None:
        """Validate configuration values."""
        if self.rounds < 1:
            raise ValueError(f"rounds must be >= 1, got {self.rounds}")
        if self.budget <= 0:
            raise ValueError(f"budget must be positive, got {self.budget}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "ResourceAllocationConfig":
        """Create from main config dictionary."""
        return cls(
            rounds=get_config_value(config, "matching.ram.rounds", 100),
            budget=get_config_value(config, "matching.ram.budget", 10.0)
        )

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved resource allocation config to {filepath}")


def normalize_rows(matrix: np.ndarray, budget: float) -> np.ndarray:
    """
    Scale every row to sum to the budget.

    Rows summing to zero become all-zero rows instead of NaN.

    Args:
        matrix: Non-negative matrix
        budget: Target row sum

    Returns:
        Row-normalised matrix
    """
    totals = matrix.sum(axis=1, keepdims=True)
    shares = np.divide(matrix, totals, out=np.zeros_like(matrix, dtype=float), where=totals > 0)
    return budget * shares


def initial_investment(attraction: np.ndarray, budget: float) -> np.ndarray:
    """Investment rows proportional to attraction toward current singles."""
    return normalize_rows(np.asarray(attraction, dtype=float), budget)


def iter_investment_rounds(
    invest_a: np.ndarray,
    invest_b: np.ndarray,
    rounds: int,
    budget: float
) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
    """
    Run the reciprocal investment dynamic.

    Both sides update synchronously: round k reads only round k-1 values.

    Args:
        invest_a: Investment of A-side agents in B-side agents (n_a x n_b)
        invest_b: Investment of B-side agents in A-side agents (n_b x n_a)
        rounds: Number of rounds
        budget: Per-agent budget

    Yields:
        (invest_a, invest_b) after each round
    """
    for _ in range(rounds):
        reciprocal = invest_a * invest_b.T
        invest_a, invest_b = normalize_rows(reciprocal, budget), normalize_rows(reciprocal.T, budget)
        yield invest_a, invest_b


def run_investment(
    a_rates_b: np.ndarray,
    b_rates_a: np.ndarray,
    rounds: int = 100,
    budget: float = 10.0
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Final investment matrices after the given number of rounds.

    Returns:
        (invest_a, invest_b) with shapes (n_a x n_b) and (n_b x n_a)
    """
    invest_a = initial_investment(a_rates_b, budget)
    invest_b = initial_investment(b_rates_a, budget)
    for invest_a, invest_b in iter_investment_rounds(invest_a, invest_b, rounds, budget):
        pass
    return invest_a, invest_b


def top_choices(investment: np.ndarray, random_state: np.random.RandomState) -> np.ndarray:
    """
    Each agent's most-invested candidate.

    Ties among maxima (including all-zero rows) are broken by a uniform
    random draw.

    Returns:
        Candidate index per row
    """
    choices = np.empty(investment.shape[0], dtype=int)
    row_max = investment.max(axis=1)
    for i, row in enumerate(investment):
        tied = np.flatnonzero(row == row_max[i])
        choices[i] = tied[0] if len(tied) == 1 else random_state.choice(tied)
    return choices


def mutual_choices(choice_a: np.ndarray, choice_b: np.ndarray) -> IndexPairs:
    """Pairs (i, j) where i chose j and j chose i."""
    return [(i, int(j)) for i, j in enumerate(choice_a) if choice_b[j] == i]


def strongest_mutual_investment(invest_a: np.ndarray, invest_b: np.ndarray) -> Tuple[int, int]:
    """Index pair with the largest a[i, j] * b[j, i], first in row-major order on ties."""
    mutual = invest_a * invest_b.T
    i, j = np.unravel_index(np.argmax(mutual), mutual.shape)
    return int(i), int(j)


class ResourceAllocationMatch(AttractionMatchingStrategy):
    """
    Mutual-investment matching.

    Attributes:
        config: ResourceAllocationConfig with rounds and budget
    """

    name = "ram"

    def __init__(
        self,
        attraction_model: Optional[AttractionModel] = None,
        config: Optional[ResourceAllocationConfig] = None,
        random_seed: Optional[int] = None
    ):
        super().__init__(attraction_model, random_seed)
        self.config = config or ResourceAllocationConfig()
        self.config.validate()

    def assign(self, a_rates_b: np.ndarray, b_rates_a: np.ndarray) -> IndexPairs:
        """
        Resolve pairs by repeated investment passes over the remaining singles.

        Args:
            a_rates_b: Attraction of A-side raters to B-side candidates (n_a x n_b)
            b_rates_a: Attraction of B-side raters to A-side candidates (n_b x n_a)

        Returns:
            List of (a_index, b_index) pairs, min(n_a, n_b) of them
        """
        n_a, n_b = check_attraction_shapes(a_rates_b, b_rates_a)
        singles_a = list(range(n_a))
        singles_b = list(range(n_b))
        pairs: List[Tuple[int, int]] = []
        n_passes = 0
        n_forced = 0

        while singles_a and singles_b:
            if len(singles_a) == 1 and len(singles_b) == 1:
                pairs.append((singles_a[0], singles_b[0]))
                break

            n_passes += 1
            invest_a, invest_b = run_investment(
                a_rates_b[np.ix_(singles_a, singles_b)],
                b_rates_a[np.ix_(singles_b, singles_a)],
                rounds=self.config.rounds,
                budget=self.config.budget
            )

            formed = mutual_choices(
                top_choices(invest_a, self.random_state),
                top_choices(invest_b, self.random_state)
            )
            if not formed:
                formed = [strongest_mutual_investment(invest_a, invest_b)]
                n_forced += 1
                logger.debug(f"Pass {n_passes}: no mutual top choice among "
                             f"{len(singles_a)} x {len(singles_b)} singles, forcing {formed[0]}")

            pairs.extend((singles_a[i], singles_b[j]) for i, j in formed)

            paired_a = {i for i, _ in formed}
            paired_b = {j for _, j in formed}
            singles_a = [a for k, a in enumerate(singles_a) if k not in paired_a]
            singles_b = [b for k, b in enumerate(singles_b) if k not in paired_b]

        self.diagnostics["passes"] = n_passes
        self.diagnostics["forced_pairs"] = n_forced
        logger.debug(f"Resource allocation: {len(pairs)} pairs in {n_passes} passes "
                     f"({n_forced} forced)")
        return sorted(pairs)
