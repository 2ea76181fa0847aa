"""
Diagnostics for matching outcomes.

Matching strategies are compared on:
1. Coverage (matched vs unmatched agents)
2. Attraction each partner holds for the other
3. Stability (number of blocking pairs)
4. Assortment (correlation of partners' mean trait levels)

These are per-trial descriptive statistics; significance testing across
trials belongs to the external experiment layer.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Tuple
import json

import numpy as np
from scipy.stats import pearsonr

from ..matching.base import Pairing
from ..population.agents import Pool

logger = logging.getLogger(__name__)


@dataclass
class MatchingReport:
    """
    Evaluation report for one pairing.

    Attraction statistics are on the [0, 10] attraction scale, taken over
    matched pairs in both directions (A toward B and B toward A).
    """
    strategy: str
    n_pairs: int
    n_unmatched: int
    attraction_a_mean: float
    attraction_b_mean: float
    attraction_std: float
    n_blocking_pairs: int
    partner_trait_correlation: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_stable(self) -> bool:
        return self.n_blocking_pairs == 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "n_pairs": int(self.n_pairs),
            "n_unmatched": int(self.n_unmatched),
            "attraction_a_mean": float(self.attraction_a_mean),
            "attraction_b_mean": float(self.attraction_b_mean),
            "attraction_std": float(self.attraction_std),
            "n_blocking_pairs": int(self.n_blocking_pairs),
            "is_stable": bool(self.is_stable),
            "partner_trait_correlation": float(self.partner_trait_correlation),
            "metadata": self.metadata
        }

    def save(self, filepath: str) -> None:
        """Save report to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved matching report to {filepath}")

    def summary(self) -> str:
        """Generate text summary of the report."""
        lines = [
            f"Matching Report: {self.strategy}",
            "=" * 50,
            "",
            f"  Pairs:      {self.n_pairs}",
            f"  Unmatched:  {self.n_unmatched}",
            "",
            "Attraction to assigned partner:",
            f"  Pool A mean: {self.attraction_a_mean:.4f}",
            f"  Pool B mean: {self.attraction_b_mean:.4f}",
            f"  Std:         {self.attraction_std:.4f}",
            "",
            "Stability:",
            f"  Blocking pairs: {self.n_blocking_pairs}",
            f"  Is stable:      {self.is_stable}",
            "",
            f"Partner trait correlation: {self.partner_trait_correlation:.4f}",
        ]
        return "\n".join(lines)


def pair_indices(pairing: Pairing, pool_a: Pool, pool_b: Pool) -> List[Tuple[int, int]]:
    """Convert a pairing's PIN pairs to (row in pool A, row in pool B)."""
    return [(pool_a.index_of(pin_a), pool_b.index_of(pin_b)) for pin_a, pin_b in pairing.pairs]


def mutual_attraction_scores(
    index_pairs: List[Tuple[int, int]],
    a_rates_b: np.ndarray,
    b_rates_a: np.ndarray
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Attraction within each pair, in both directions.

    Returns:
        Tuple of (a_to_b, b_to_a) arrays, one entry per pair
    """
    if not index_pairs:
        return np.array([]), np.array([])
    rows_a, rows_b = (np.array(x) for x in zip(*index_pairs))
    return a_rates_b[rows_a, rows_b], b_rates_a[rows_b, rows_a]


def count_blocking_pairs(
    index_pairs: List[Tuple[int, int]],
    a_rates_b: np.ndarray,
    b_rates_a: np.ndarray
) -> int:
    """
    Count pairs (i, j) not matched together who both strictly prefer each other.

    An unmatched agent prefers any candidate to staying single.

    Args:
        index_pairs: (row in A, row in B) pairs of the matching
        a_rates_b: Attraction of A toward B (n_a x n_b)
        b_rates_a: Attraction of B toward A (n_b x n_a)

    Returns:
        Number of blocking pairs
    """
    n_a, n_b = a_rates_b.shape
    current_a = np.full(n_a, -np.inf)
    current_b = np.full(n_b, -np.inf)

    for i, j in index_pairs:
        current_a[i] = a_rates_b[i, j]
        current_b[j] = b_rates_a[j, i]

    a_prefers = a_rates_b > current_a[:, None]
    b_prefers = b_rates_a.T > current_b[None, :]
    blocking = a_prefers & b_prefers
    return int(blocking.sum())


def partner_trait_correlation(
    index_pairs: List[Tuple[int, int]],
    pool_a: Pool,
    pool_b: Pool
) -> float:
    """
    Pearson correlation of partners' mean trait ratings.

    Returns NaN when fewer than three pairs exist or a side has no variance.
    """
    if len(index_pairs) < 3:
        return float("nan")

    rows_a, rows_b = (np.array(x) for x in zip(*index_pairs))
    level_a = pool_a.traits[rows_a].mean(axis=1)
    level_b = pool_b.traits[rows_b].mean(axis=1)
    if np.ptp(level_a) == 0 or np.ptp(level_b) == 0:
        return float("nan")

    correlation, _ = pearsonr(level_a, level_b)
    return float(correlation)


def create_matching_report(
    pairing: Pairing,
    pool_a: Pool,
    pool_b: Pool,
    a_rates_b: np.ndarray,
    b_rates_a: np.ndarray
) -> MatchingReport:
    """
    Create a complete matching report.

    Args:
        pairing: Pairing between pool_a and pool_b
        pool_a: Pool whose PINs are pairing.pins_a
        pool_b: Pool whose PINs are pairing.pins_b
        a_rates_b: Attraction of A toward B
        b_rates_a: Attraction of B toward A

    Returns:
        MatchingReport instance
    """
    index_pairs = pair_indices(pairing, pool_a, pool_b)
    a_to_b, b_to_a = mutual_attraction_scores(index_pairs, a_rates_b, b_rates_a)
    both = np.concatenate([a_to_b, b_to_a])

    return MatchingReport(
        strategy=pairing.strategy,
        n_pairs=len(pairing),
        n_unmatched=len(pairing.unmatched),
        attraction_a_mean=float(a_to_b.mean()) if len(a_to_b) else float("nan"),
        attraction_b_mean=float(b_to_a.mean()) if len(b_to_a) else float("nan"),
        attraction_std=float(both.std()) if len(both) else float("nan"),
        n_blocking_pairs=count_blocking_pairs(index_pairs, a_rates_b, b_rates_a),
        partner_trait_correlation=partner_trait_correlation(index_pairs, pool_a, pool_b),
        metadata=dict(pairing.metadata)
    )
