"""
Common matching contract.

Every strategy takes two opposite-sex pools and returns a Pairing: a
symmetric PIN -> partner PIN mapping that is a bijection over matched agents.
Strategies work on row indices internally (``assign``); ``match`` converts
index pairs to PINs and validates the result.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional, Tuple, Iterable, Set

import numpy as np
import pandas as pd

from ..attraction.model import AttractionModel
from ..population.agents import Pool

logger = logging.getLogger(__name__)

IndexPairs = List[Tuple[int, int]]


class MatchingInvariantError(RuntimeError):
    """A strategy produced a pairing that is not a bijection over matched agents."""


@dataclass
class Pairing:
    """
    One-to-one partner assignment between two pools.

    Attributes:
        strategy: Name of the strategy that produced the pairing
        pins_a: PINs of pool A in pool order
        pins_b: PINs of pool B in pool order
        pairs: (pin_a, pin_b) couples
        metadata: Strategy diagnostics (proposal counts, fallback pairs, ...)
    """
    strategy: str
    pins_a: Tuple[int, ...]
    pins_b: Tuple[int, ...]
    pairs: List[Tuple[int, int]]
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        self.pins_a = tuple(int(p) for p in self.pins_a)
        self.pins_b = tuple(int(p) for p in self.pins_b)
        self.pairs = [(int(a), int(b)) for a, b in self.pairs]
        self._partners = self._build_partner_map()

    def _build_partner_map(self) -> Dict[int, int]:
        """Check the bijection invariant and build the symmetric mapping."""
        side_a = set(self.pins_a)
        side_b = set(self.pins_b)
        if side_a & side_b:
            raise MatchingInvariantError(
                f"Pools share PINs: {sorted(side_a & side_b)[:10]}"
            )

        partners: Dict[int, int] = {}
        for pin_a, pin_b in self.pairs:
            if pin_a not in side_a or pin_b not in side_b:
                raise MatchingInvariantError(
                    f"Pair ({pin_a}, {pin_b}) does not join pool A to pool B"
                )
            for pin in (pin_a, pin_b):
                if pin in partners:
                    raise MatchingInvariantError(
                        f"PIN {pin} assigned twice ({partners[pin]} and another partner)"
                    )
            partners[pin_a] = pin_b
            partners[pin_b] = pin_a

        expected = min(len(self.pins_a), len(self.pins_b))
        if len(self.pairs) != expected:
            raise MatchingInvariantError(
                f"{self.strategy}: {len(self.pairs)} pairs formed, expected {expected}"
            )
        return partners

    def __len__(self) -> int:
        return len(self.pairs)

    def partner(self, pin: Optional[int]) -> Optional[int]:
        """Partner PIN, or None for unmatched or unknown agents."""
        if pin is None:
            return None
        return self._partners.get(int(pin))

    @property
    def partners(self) -> Dict[int, Optional[int]]:
        """PIN -> partner PIN for every agent of both pools (None if unmatched)."""
        return {pin: self._partners.get(pin) for pin in self.pins_a + self.pins_b}

    @property
    def unmatched(self) -> Set[int]:
        return {pin for pin in self.pins_a + self.pins_b if pin not in self._partners}

    def to_frame(self) -> pd.DataFrame:
        """Pairs as a DataFrame with columns pin_a, pin_b."""
        return pd.DataFrame(self.pairs, columns=["pin_a", "pin_b"])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "strategy": self.strategy,
            "n_pairs": len(self.pairs),
            "n_unmatched": len(self.unmatched),
            "pairs": [list(p) for p in self.pairs],
            "metadata": self.metadata
        }


class MatchingStrategy(ABC):
    """
    Base class for mate-choice protocols.

    Subclasses implement ``_assign_pools`` on row indices and may record
    diagnostics in ``self.diagnostics`` during a call.
    """

    name = "base"

    def __init__(self, random_seed: Optional[int] = None):
        self.random_state = np.random.RandomState(random_seed)
        self.diagnostics: Dict[str, Any] = {}

    def match(self, pool_a: Pool, pool_b: Pool) -> Pairing:
        """
        Pair agents of pool A with agents of pool B.

        Args:
            pool_a: First pool
            pool_b: Second pool (opposite sex)

        Returns:
            Validated Pairing

        Raises:
            ValueError: If both pools have the same sex
            MatchingInvariantError: If the strategy broke the bijection invariant
        """
        if pool_a.sex == pool_b.sex:
            raise ValueError("Matching requires two opposite-sex pools")

        self.diagnostics = {}
        index_pairs = self._assign_pools(pool_a, pool_b)
        pairs = index_pairs_to_pins(index_pairs, pool_a, pool_b)

        pairing = Pairing(
            strategy=self.name,
            pins_a=pool_a.pins,
            pins_b=pool_b.pins,
            pairs=pairs,
            metadata=dict(self.diagnostics)
        )
        logger.info(f"{self.name}: {len(pairing)} pairs from pools of "
                    f"{len(pool_a)} and {len(pool_b)}, {len(pairing.unmatched)} unmatched")
        return pairing

    @abstractmethod
    def _assign_pools(self, pool_a: Pool, pool_b: Pool) -> IndexPairs:
        """Return (row in pool A, row in pool B) pairs."""


class AttractionMatchingStrategy(MatchingStrategy):
    """Base for strategies that need both attraction matrices."""

    def __init__(
        self,
        attraction_model: Optional[AttractionModel] = None,
        random_seed: Optional[int] = None
    ):
        super().__init__(random_seed)
        self.attraction_model = attraction_model or AttractionModel()

    def _assign_pools(self, pool_a: Pool, pool_b: Pool) -> IndexPairs:
        a_rates_b, b_rates_a = self.attraction_model.rate_both(pool_a, pool_b)
        return self.assign(a_rates_b, b_rates_a)

    @abstractmethod
    def assign(self, a_rates_b: np.ndarray, b_rates_a: np.ndarray) -> IndexPairs:
        """
        Resolve a matching from attraction matrices.

        Args:
            a_rates_b: Attraction of A-side raters to B-side candidates (n_a x n_b)
            b_rates_a: Attraction of B-side raters to A-side candidates (n_b x n_a)

        Returns:
            List of (a_index, b_index) pairs
        """


def check_attraction_shapes(a_rates_b: np.ndarray, b_rates_a: np.ndarray) -> Tuple[int, int]:
    """Validate that the two attraction matrices describe the same two pools."""
    if a_rates_b.ndim != 2 or b_rates_a.ndim != 2:
        raise ValueError("Attraction matrices must be 2-dimensional")
    n_a, n_b = a_rates_b.shape
    if b_rates_a.shape != (n_b, n_a):
        raise ValueError(
            f"Attraction shapes disagree: {a_rates_b.shape} vs {b_rates_a.shape}"
        )
    return n_a, n_b


def index_pairs_to_pins(pairs: Iterable[Tuple[int, int]], pool_a: Pool, pool_b: Pool) -> List[Tuple[int, int]]:
    """Convert (row, row) pairs to (PIN, PIN) pairs."""
    return [(int(pool_a.pins[i]), int(pool_b.pins[j])) for i, j in pairs]
