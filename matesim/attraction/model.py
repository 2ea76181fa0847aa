"""
Attraction (mate value) scoring.

A rater's attraction to a candidate is a bounded transform of the Euclidean
distance between the rater's ideal-preference vector and the candidate's
trait vector:

    max_dist = sqrt(n_dimensions * scale_max^2)
    score = scale_max * (max_dist - distance) / max_dist

With a 10-point scale and 16 dimensions max_dist = 40. Identical vectors
score 10; vectors at opposite scale extremes on every dimension score 0.

Attraction is directional: pool A rating pool B uses A's preferences and
B's traits, so one matrix is built per rating direction.
"""

import logging
from typing import Tuple

import numpy as np
from scipy.spatial.distance import cdist

from ..configs.loader import get_config_value
from ..population.agents import Pool

logger = logging.getLogger(__name__)

DEFAULT_SCALE_MAX = 10.0
DEFAULT_N_DIMENSIONS = 16


def max_distance(n_dimensions: int = DEFAULT_N_DIMENSIONS,
                 scale_max: float = DEFAULT_SCALE_MAX) -> float:
    """Largest possible Euclidean distance on the rating scale."""
    return float(np.sqrt(n_dimensions * scale_max ** 2))


def distance_to_score(
    distances: np.ndarray,
    n_dimensions: int = DEFAULT_N_DIMENSIONS,
    scale_max: float = DEFAULT_SCALE_MAX
) -> np.ndarray:
    """
    Map Euclidean distances onto the [0, scale_max] attraction scale.

    Args:
        distances: Array of distances (any shape)
        n_dimensions: Number of rated dimensions
        scale_max: Top of the rating scale

    Returns:
        Scores of the same shape, clipped to [0, scale_max]
    """
    max_dist = max_distance(n_dimensions, scale_max)
    scores = scale_max * (max_dist - np.asarray(distances, dtype=float)) / max_dist
    return np.clip(scores, 0.0, scale_max)


def mate_value(
    ideal: np.ndarray,
    traits: np.ndarray,
    scale_max: float = DEFAULT_SCALE_MAX
) -> np.ndarray:
    """
    Score candidates against one rater's ideal vector.

    Args:
        ideal: Rater's preference vector (d,)
        traits: Candidate trait vectors (n x d) or a single vector (d,)

    Returns:
        Attraction scores (n,), or a scalar array for a single candidate
    """
    ideal = np.asarray(ideal, dtype=float)
    traits = np.asarray(traits, dtype=float)
    distances = np.linalg.norm(traits - ideal, axis=-1)
    return distance_to_score(distances, n_dimensions=ideal.shape[-1], scale_max=scale_max)


def attraction_matrix(
    preferences: np.ndarray,
    traits: np.ndarray,
    scale_max: float = DEFAULT_SCALE_MAX
) -> np.ndarray:
    """
    Attraction of every rater toward every candidate.

    Args:
        preferences: Rater preference vectors (n_raters x d)
        traits: Candidate trait vectors (n_candidates x d)
        scale_max: Top of the rating scale

    Returns:
        Attraction matrix (n_raters x n_candidates) with values in [0, scale_max]
    """
    preferences = np.atleast_2d(np.asarray(preferences, dtype=float))
    traits = np.atleast_2d(np.asarray(traits, dtype=float))

    if preferences.shape[1] != traits.shape[1]:
        raise ValueError(
            f"Dimension mismatch: preferences have {preferences.shape[1]}, "
            f"traits have {traits.shape[1]}"
        )

    distances = cdist(preferences, traits, metric="euclidean")
    return distance_to_score(distances, n_dimensions=preferences.shape[1], scale_max=scale_max)


class AttractionModel:
    """
    Attraction scoring between two pools.

    Attributes:
        scale_max: Top of the rating scale (default 10)
    """

    def __init__(self, scale_max: float = DEFAULT_SCALE_MAX):
        if scale_max <= 0:
            raise ValueError(f"scale_max must be positive, got {scale_max}")
        self.scale_max = scale_max

    @classmethod
    def from_config(cls, config: dict) -> "AttractionModel":
        """Create from main config dictionary."""
        return cls(scale_max=get_config_value(config, "attraction.scale_max", DEFAULT_SCALE_MAX))

    def rate(self, raters: Pool, candidates: Pool) -> np.ndarray:
        """Attraction of each rater in one pool toward each candidate in the other."""
        return attraction_matrix(raters.preferences, candidates.traits, self.scale_max)

    def rate_both(self, pool_a: Pool, pool_b: Pool) -> Tuple[np.ndarray, np.ndarray]:
        """
        Attraction matrices in both rating directions.

        Returns:
            Tuple of (a_rates_b, b_rates_a) with shapes (n_a x n_b) and (n_b x n_a)
        """
        a_rates_b = self.rate(pool_a, pool_b)
        b_rates_a = self.rate(pool_b, pool_a)
        logger.debug(f"Attraction matrices: {a_rates_b.shape} and {b_rates_a.shape}, "
                     f"mean {a_rates_b.mean():.3f} / {b_rates_a.mean():.3f}")
        return a_rates_b, b_rates_a
