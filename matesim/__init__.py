"""
Mate-Choice Simulation Pipeline

This package generates synthetic populations of agents with correlated
trait/preference profiles, scores mutual attraction between two opposite-sex
pools, and resolves a one-to-one partner assignment under one of three
mate-choice protocols.

Key Design Decisions:
- Synthetic agents are bootstrapped per attribute, then re-correlated with a
  pivoted Cholesky factor of the reference correlation matrix
- Attraction is a bounded transform of preference-to-trait Euclidean distance
- Matching strategies share one interface (random, gsa, ram)
- Each trial is a pure function of (reference data, config, seed)
"""

__version__ = "1.0.0"
