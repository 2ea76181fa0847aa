"""Attraction module for pairwise mate-value scoring."""

from .model import (
    AttractionModel,
    attraction_matrix,
    mate_value,
    distance_to_score,
    max_distance
)

__all__ = [
    "AttractionModel",
    "attraction_matrix",
    "mate_value",
    "distance_to_score",
    "max_distance"
]
