"""
Uniform random pairing (null model).

Pairs pool A against a random permutation of pool B. No attraction is
computed. When the pools differ in size, the surplus of the larger pool
stays unmatched.
"""

import logging

import numpy as np

from ..population.agents import Pool
from .base import MatchingStrategy, IndexPairs

logger = logging.getLogger(__name__)


class RandomMatch(MatchingStrategy):
    """Baseline strategy: uniformly random one-to-one pairing."""

    name = "random"

    def assign(self, n_a: int, n_b: int) -> IndexPairs:
        """
        Draw a uniformly random pairing.

        Args:
            n_a: Size of pool A
            n_b: Size of pool B

        Returns:
            List of (a_index, b_index) pairs, min(n_a, n_b) of them
        """
        n_pairs = min(n_a, n_b)
        a_indices = np.sort(self.random_state.permutation(n_a)[:n_pairs])
        b_indices = self.random_state.permutation(n_b)[:n_pairs]
        return [(int(i), int(j)) for i, j in zip(a_indices, b_indices)]

    def _assign_pools(self, pool_a: Pool, pool_b: Pool) -> IndexPairs:
        return self.assign(len(pool_a), len(pool_b))
