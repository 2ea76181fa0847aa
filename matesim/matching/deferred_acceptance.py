"""
Deferred-acceptance stable matching ("gsa").

Classical proposer-optimal Gale-Shapley procedure. Proposers work down
their ranking of candidates; a candidate holds the best proposal seen so
far (by its own attraction scores) and rejects the rest. The result is
stable: no proposer and candidate both strictly prefer each other to their
assigned partners.

Tie-breaks:
- A proposer ranks candidates by descending attraction, equal scores by
  ascending candidate index
- A candidate keeps its current partner when a new proposer scores equal
- Free proposers are served first-in first-out, starting in index order

The procedure mutates provisional assignments with every proposal and runs
single-threaded.
"""

import logging
from collections import deque
from typing import Optional, List

import numpy as np

from ..attraction.model import AttractionModel
from ..population.agents import Pool, MALE, FEMALE, SEX_LABELS
from .base import AttractionMatchingStrategy, IndexPairs, check_attraction_shapes

logger = logging.getLogger(__name__)


def preference_order(scores: np.ndarray) -> np.ndarray:
    """
    Rank candidates per rater, best first.

    Args:
        scores: Attraction matrix (n_raters x n_candidates)

    Returns:
        Candidate indices per row, by descending score then ascending index
    """
    return np.argsort(-scores, axis=1, kind="stable")


def deferred_acceptance(
    proposer_scores: np.ndarray,
    candidate_scores: np.ndarray
) -> List[Optional[int]]:
    """
    Run deferred acceptance with proposers proposing.

    Args:
        proposer_scores: Attraction of proposers to candidates (n_p x n_c)
        candidate_scores: Attraction of candidates to proposers (n_c x n_p)

    Returns:
        For each proposer, the index of the assigned candidate or None
    """
    n_proposers, n_candidates = check_attraction_shapes(proposer_scores, candidate_scores)
    rankings = preference_order(proposer_scores)

    # Candidates are proposed to in ranking order, so the number of proposals
    # made equals the number of candidates who have rejected (or hold) him.
    n_proposed = np.zeros(n_proposers, dtype=int)
    held_by = np.full(n_candidates, -1, dtype=int)
    free = deque(range(n_proposers))

    while free:
        proposer = free.popleft()
        if n_proposed[proposer] >= n_candidates:
            # Rejected by everyone: exits unmatched
            continue

        candidate = rankings[proposer, n_proposed[proposer]]
        n_proposed[proposer] += 1
        incumbent = held_by[candidate]

        if incumbent < 0:
            held_by[candidate] = proposer
        elif candidate_scores[candidate, proposer] > candidate_scores[candidate, incumbent]:
            held_by[candidate] = proposer
            free.append(incumbent)
        else:
            free.append(proposer)

    assignment: List[Optional[int]] = [None] * n_proposers
    for candidate, proposer in enumerate(held_by):
        if proposer >= 0:
            assignment[proposer] = candidate

    logger.debug(f"Deferred acceptance finished after {int(n_proposed.sum())} proposals")
    return assignment


class DeferredAcceptanceMatch(AttractionMatchingStrategy):
    """
    Proposer-optimal stable matching.

    Attributes:
        proposer_sex: Sex of the proposing side (default male)
    """

    name = "gsa"

    def __init__(
        self,
        attraction_model: Optional[AttractionModel] = None,
        proposer_sex: int = MALE,
        random_seed: Optional[int] = None
    ):
        super().__init__(attraction_model, random_seed)
        if proposer_sex not in (MALE, FEMALE):
            raise ValueError(f"proposer_sex must be 0 or 1, got {proposer_sex}")
        self.proposer_sex = proposer_sex

    def assign(self, a_rates_b: np.ndarray, b_rates_a: np.ndarray) -> IndexPairs:
        """Deferred acceptance with pool A proposing."""
        assignment = deferred_acceptance(a_rates_b, b_rates_a)
        return [(i, j) for i, j in enumerate(assignment) if j is not None]

    def _assign_pools(self, pool_a: Pool, pool_b: Pool) -> IndexPairs:
        a_rates_b, b_rates_a = self.attraction_model.rate_both(pool_a, pool_b)

        if pool_a.sex == self.proposer_sex:
            pairs = self.assign(a_rates_b, b_rates_a)
        else:
            reversed_pairs = self.assign(b_rates_a, a_rates_b)
            pairs = sorted((i, j) for j, i in reversed_pairs)

        self.diagnostics["proposer"] = SEX_LABELS[self.proposer_sex]
        return pairs
