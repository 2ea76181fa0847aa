"""
Synthetic population generation.

This module produces pools of synthetic agents whose joint trait/preference
distribution approximates the covariance structure of an empirical
reference sample.

Algorithm:
    1. Bootstrap each attribute independently (keeps marginals, breaks correlation)
    2. Standardize each resampled attribute
    3. Correlation matrix R of the reference table
    4. Pivoted Cholesky factor F with F @ F.T ~= R (rank-tolerant)
    5. Y = Z @ F.T imposes the reference correlation structure
    6. Rescale to the reference mean and standard deviation
    7. Clip to the reference [min, max] per attribute

Key Design Decisions:
- The factorization never aborts: a near-singular or indefinite correlation
  matrix yields a reduced-rank factor
- Constant reference attributes are treated as uncorrelated with everything
- Reproducible given a random seed
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any, Optional, Tuple
import json

import numpy as np
import pandas as pd
from scipy.linalg import lapack
from sklearn.preprocessing import StandardScaler

from ..configs.loader import get_config_value
from ..data_loading.loaders import get_attribute_columns
from .agents import Pool, MALE, FEMALE, SEX_LABELS

logger = logging.getLogger(__name__)


@dataclass
class PopulationConfig:
    """
    Configuration for per-trial pool generation.

    Attributes:
        pool_size: Male pool size (and female pool size unless n_female is set)
        n_female: Female pool size, None for equal pools
        sex_specific_reference: Fit each sex on that sex's reference rows
        sex_column: Name of the binary sex column in the reference table
    """
    pool_size: int = 100
    n_female: Optional[int] = None
    sex_specific_reference: bool = True
    sex_column: str = "sex"

    def validate(self) -> None:
        """Validate configuration values."""
        if self.pool_size < 1:
            raise ValueError(f"pool_size must be >= 1, got {self.pool_size}")
        if self.n_female is not None and self.n_female < 1:
            raise ValueError(f"n_female must be >= 1, got {self.n_female}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "PopulationConfig":
        """Create from main config dictionary."""
        return cls(
            pool_size=get_config_value(config, "population.pool_size", 100),
            n_female=get_config_value(config, "population.n_female"),
            sex_specific_reference=get_config_value(config, "population.sex_specific_reference", True),
            sex_column=get_config_value(config, "data.reference.sex_column", "sex")
        )

    def save(self, filepath: str) -> None:
        """Save to JSON file."""
        with open(filepath, "w") as f:
            json.dump(self.to_dict(), f, indent=2)
        logger.info(f"Saved population config to {filepath}")


def reference_correlation(values: np.ndarray) -> np.ndarray:
    """
    Correlation matrix of the reference attributes.

    Columns with zero variance have undefined correlations; they are set to
    zero off the diagonal so the matrix stays usable.

    Args:
        values: Reference attribute matrix (N x p)

    Returns:
        Correlation matrix (p x p) with unit diagonal
    """
    corr = pd.DataFrame(values).corr().to_numpy()
    corr = np.nan_to_num(corr, nan=0.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def pivoted_cholesky(matrix: np.ndarray, tol: float = -1.0) -> Tuple[np.ndarray, int]:
    """
    Rank-revealing Cholesky factorization with complete pivoting.

    LAPACK ``?pstrf`` computes ``P.T @ A @ P = L @ L.T`` and stops at the
    numerical rank instead of failing on a non-positive pivot. The pivot is
    folded back in, so the returned factor satisfies ``F @ F.T ~= A`` in the
    original attribute order. Columns beyond the rank are zero.

    Args:
        matrix: Symmetric matrix (p x p)
        tol: Pivot tolerance; negative uses the LAPACK default
             (p * eps * max(diag(A)))

    Returns:
        Tuple of (factor, rank)

    Raises:
        ValueError: If LAPACK reports an illegal argument
    """
    a = np.array(matrix, dtype=float, copy=True)
    if a.ndim != 2 or a.shape[0] != a.shape[1]:
        raise ValueError(f"Expected a square matrix, got shape {a.shape}")

    c, piv, rank, info = lapack.dpstrf(a, tol=tol, lower=1)
    if info < 0:
        raise ValueError(f"dpstrf: illegal value in argument {-info}")
    if info > 0:
        logger.warning(f"Correlation matrix is rank deficient: rank {rank} of {a.shape[0]}")

    lower = np.tril(c)
    lower[:, rank:] = 0.0

    factor = np.zeros_like(lower)
    factor[piv - 1, :] = lower
    return factor, int(rank)


class PopulationGenerator:
    """
    Generator for synthetic agent pools.

    The generator is fitted to one complete-case reference table (typically
    the respondents of one sex) and draws any number of pools from it.

    Attributes:
        attribute_columns: 16 trait columns followed by 16 preference columns
        n_dimensions: Number of rated dimensions (half the attributes)
        means, stds, mins, maxs: Per-attribute reference statistics
        correlation: Reference correlation matrix
        factor: Pivoted Cholesky factor of the correlation matrix
        rank: Numerical rank of the correlation matrix
        random_state: Numpy RandomState for reproducibility
    """

    def __init__(
        self,
        reference: pd.DataFrame,
        mapping: Dict[str, Any],
        random_seed: Optional[int] = None,
        tol: float = -1.0
    ):
        """
        Fit the generator to a reference table.

        Args:
            reference: Complete-case reference table
            mapping: Attribute mapping from load_attribute_mapping()
            random_seed: Random seed for reproducibility
            tol: Pivot tolerance for the Cholesky factorization

        Raises:
            ValueError: If attribute columns are missing or contain missing values
        """
        self.mapping = mapping
        self.dimensions = list(mapping["dimensions"])
        self.n_dimensions = len(self.dimensions)
        self.attribute_columns = get_attribute_columns(mapping)

        missing = [c for c in self.attribute_columns if c not in reference.columns]
        if missing:
            raise ValueError(f"Missing attribute columns in reference data: {missing}")

        values = reference[self.attribute_columns]
        if values.isna().any().any():
            raise ValueError("Reference data must be complete-case (no missing values)")
        if len(values) == 0:
            raise ValueError("Reference data has no rows")

        self.reference = values.to_numpy(dtype=float)
        self.means = values.mean().to_numpy(dtype=float)
        self.stds = values.std().fillna(0.0).to_numpy(dtype=float)
        self.mins = values.min().to_numpy(dtype=float)
        self.maxs = values.max().to_numpy(dtype=float)

        self.correlation = reference_correlation(self.reference)
        self.factor, self.rank = pivoted_cholesky(self.correlation, tol=tol)
        self.random_state = np.random.RandomState(random_seed)

        logger.info(f"Fitted population generator on {len(self.reference)} reference rows, "
                    f"{len(self.attribute_columns)} attributes (rank {self.rank})")

    def sample_attributes(self, n: int) -> np.ndarray:
        """
        Draw n synthetic attribute rows.

        Args:
            n: Number of rows

        Returns:
            Attribute matrix (n x 2d), traits first, then preferences
        """
        if n < 1:
            raise ValueError(f"Pool size must be >= 1, got {n}")

        n_ref, n_attr = self.reference.shape

        # Independent bootstrap per attribute
        rows = self.random_state.randint(0, n_ref, size=(n, n_attr))
        resampled = self.reference[rows, np.arange(n_attr)]

        standardized = StandardScaler().fit_transform(resampled)
        correlated = standardized @ self.factor.T
        rescaled = correlated * self.stds + self.means

        return np.clip(rescaled, self.mins, self.maxs)

    def generate(self, n: int, sex: int, pin_start: int = 1) -> Pool:
        """
        Generate a pool of n synthetic agents.

        Args:
            n: Pool size
            sex: Sex label for every agent in the pool
            pin_start: First PIN; agents get consecutive PINs

        Returns:
            Pool of n agents
        """
        attributes = self.sample_attributes(n)
        d = self.n_dimensions

        pool = Pool(
            sex=sex,
            pins=np.arange(pin_start, pin_start + n),
            traits=attributes[:, :d],
            preferences=attributes[:, d:],
            dimensions=self.dimensions
        )
        logger.debug(f"Generated {SEX_LABELS[sex]} pool: {n} agents, "
                     f"PINs {pin_start}..{pin_start + n - 1}")
        return pool


def generate_pools(
    reference: pd.DataFrame,
    mapping: Dict[str, Any],
    n: int,
    random_seed: Optional[int] = None,
    sex_column: str = "sex",
    sex_specific: bool = True,
    n_female: Optional[int] = None
) -> Tuple[Pool, Pool]:
    """
    Generate one male and one female pool for a single trial.

    PINs are unique across both pools: males get 1..n_male and females
    continue from there.

    Args:
        reference: Complete-case reference table with a sex column
        mapping: Attribute mapping dictionary
        n: Male pool size (and female pool size unless n_female is given)
        random_seed: Random seed for reproducibility
        sex_column: Name of the binary sex column
        sex_specific: Fit each sex's generator on that sex's reference rows
        n_female: Female pool size, defaults to n

    Returns:
        Tuple of (male_pool, female_pool)
    """
    n_female = n if n_female is None else n_female
    rng = np.random.RandomState(random_seed)

    pools = {}
    pin_start = 1
    for sex, size in ((MALE, n), (FEMALE, n_female)):
        if sex_specific:
            subset = reference[reference[sex_column] == sex]
            if subset.empty:
                raise ValueError(f"No {SEX_LABELS[sex]} rows in reference data")
        else:
            subset = reference

        generator = PopulationGenerator(
            subset, mapping, random_seed=rng.randint(0, 2**31 - 1)
        )
        pools[sex] = generator.generate(size, sex, pin_start=pin_start)
        pin_start += size

    return pools[MALE], pools[FEMALE]
