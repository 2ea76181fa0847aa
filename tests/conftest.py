"""Shared fixtures for the test-suite."""

from pathlib import Path

import numpy as np
import pytest

from matesim.data_loading import load_attribute_mapping, create_synthetic_reference_data
from matesim.population import Pool, MALE, FEMALE

PROJECT_ROOT = Path(__file__).parent.parent


def _random_pool(sex, n, pin_start=1, seed=0, d=16):
    """Pool with uniform random ratings on the 1-10 scale."""
    rng = np.random.RandomState(seed)
    return Pool(
        sex=sex,
        pins=np.arange(pin_start, pin_start + n),
        traits=rng.uniform(1, 10, size=(n, d)),
        preferences=rng.uniform(1, 10, size=(n, d)),
    )


@pytest.fixture(scope="session")
def mapping():
    return load_attribute_mapping(str(PROJECT_ROOT / "configs" / "attribute_mapping.yaml"))


@pytest.fixture(scope="session")
def reference(mapping):
    return create_synthetic_reference_data(mapping, n_samples=2000, random_seed=7)


@pytest.fixture
def config():
    return {
        "global": {"random_seed": 42, "log_level": "INFO"},
        "data": {
            "reference": {"path": "data/reference.csv", "sex_column": "sex"},
            "mapping_file": str(PROJECT_ROOT / "configs" / "attribute_mapping.yaml"),
        },
        "population": {"pool_size": 12, "sex_specific_reference": True},
        "attraction": {"scale_max": 10, "n_dimensions": 16},
        "matching": {"strategy": "gsa", "gsa": {"proposer": "male"},
                     "ram": {"rounds": 100, "budget": 10.0}},
        "trials": {"n_trials": 2, "n_jobs": 1},
    }


@pytest.fixture
def make_pool():
    return _random_pool


@pytest.fixture
def pools():
    return _random_pool(MALE, 8, pin_start=1, seed=1), _random_pool(FEMALE, 8, pin_start=9, seed=2)
