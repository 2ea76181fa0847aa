"""Evaluation module for matching diagnostics."""

from .metrics import (
    MatchingReport,
    create_matching_report,
    count_blocking_pairs,
    mutual_attraction_scores,
    partner_trait_correlation,
    pair_indices
)

__all__ = [
    "MatchingReport",
    "create_matching_report",
    "count_blocking_pairs",
    "mutual_attraction_scores",
    "partner_trait_correlation",
    "pair_indices"
]
