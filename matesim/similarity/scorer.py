"""
Partner similarity scoring.

Scores how alike two specific agents' trait profiles are, using the same
bounded distance transform as the attraction model, rescaled to [0, 1].
The external aggregation layer uses it to compare the partner one strategy
assigned to an agent with the partner another strategy (or the real data)
assigned.

If either reference is absent (typically because the agent is unmatched)
the scorer returns NO_COMPARISON rather than 0, so callers can tell
"not similar" apart from "not applicable".
"""

import logging
from enum import Enum
from typing import Dict, Optional, Union, Sequence

import numpy as np
import pandas as pd

from ..attraction.model import mate_value, DEFAULT_SCALE_MAX
from ..matching.base import Pairing
from ..population.agents import Pool

logger = logging.getLogger(__name__)


class Comparison(Enum):
    """Outcome marker for comparisons that cannot be made."""
    NOT_APPLICABLE = "not_applicable"


NO_COMPARISON = Comparison.NOT_APPLICABLE

SimilarityScore = Union[float, Comparison]


class SimilarityScorer:
    """
    Trait-profile similarity between agents of one trial.

    Attributes:
        pools: Pools whose agents can be referenced by PIN
        scale_max: Top of the rating scale
    """

    def __init__(self, pools: Sequence[Pool], scale_max: float = DEFAULT_SCALE_MAX):
        self.pools = list(pools)
        self.scale_max = scale_max

        self._traits: Dict[int, np.ndarray] = {}
        for pool in self.pools:
            for pin, traits in zip(pool.pins, pool.traits):
                pin = int(pin)
                if pin in self._traits:
                    raise ValueError(f"PIN {pin} appears in more than one pool")
                self._traits[pin] = traits

    def traits_of(self, pin: Optional[int]) -> Optional[np.ndarray]:
        """Trait vector for a PIN, or None if the PIN is absent."""
        if pin is None:
            return None
        return self._traits.get(int(pin))

    def score(self, pin_a: Optional[int], pin_b: Optional[int]) -> SimilarityScore:
        """
        Similarity of two agents' trait vectors.

        Args:
            pin_a: First agent PIN (None if unmatched)
            pin_b: Second agent PIN (None if unmatched)

        Returns:
            Similarity in [0, 1], or NO_COMPARISON if either agent is absent
        """
        traits_a = self.traits_of(pin_a)
        traits_b = self.traits_of(pin_b)
        if traits_a is None or traits_b is None:
            return NO_COMPARISON

        value = mate_value(traits_a, traits_b, scale_max=self.scale_max)
        return float(value) / self.scale_max

    def partner_similarity(self, pin: int, model: Pairing, reference: Pairing) -> SimilarityScore:
        """
        Similarity between the partners two pairings assign to one agent.

        Args:
            pin: Agent whose partners are compared
            model: Pairing under evaluation
            reference: Pairing to compare against

        Returns:
            Similarity in [0, 1], or NO_COMPARISON if either partner is missing
        """
        return self.score(model.partner(pin), reference.partner(pin))

    def compare_pairings(self, model: Pairing, reference: Pairing) -> pd.DataFrame:
        """
        Per-agent partner similarity between two pairings of the same pools.

        Args:
            model: Pairing under evaluation
            reference: Pairing to compare against

        Returns:
            DataFrame with one row per agent: pin, model and reference strategy
            and partner, comparable flag and similarity (NaN where not comparable)
        """
        rows = []
        for pin in model.pins_a + model.pins_b:
            result = self.partner_similarity(pin, model, reference)
            comparable = result is not NO_COMPARISON
            rows.append({
                "pin": pin,
                "model_strategy": model.strategy,
                "reference_strategy": reference.strategy,
                "model_partner": model.partner(pin),
                "reference_partner": reference.partner(pin),
                "comparable": comparable,
                "similarity": result if comparable else np.nan
            })

        df = pd.DataFrame(rows)
        for col in ("model_partner", "reference_partner"):
            df[col] = df[col].astype("Int64")

        n_comparable = int(df["comparable"].sum()) if len(df) else 0
        logger.info(f"Compared {model.strategy} vs {reference.strategy}: "
                    f"{n_comparable}/{len(df)} agents comparable")
        return df
