"""Similarity module for comparing assigned partners."""

from .scorer import SimilarityScorer, Comparison, NO_COMPARISON

__all__ = ["SimilarityScorer", "Comparison", "NO_COMPARISON"]
