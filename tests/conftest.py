import matplotlib

matplotlib.use("Agg")

import numpy as np
import pytest

from selection_stability import simulate_dataset


@pytest.fixture
def rng():
    return np.random.default_rng(0)


@pytest.fixture(scope="module")
def sim_data():
    """n=100, p=10, only x1..x4 active."""
    return simulate_dataset(n_obs=100, n_features=10, n_informative=4,
                            noise=1.0, random_state=7)
