# src/selection_stability/simulate.py
# Synthetic regression data with a known set of active predictors
from __future__ import annotations
import logging

import numpy as np
import pandas as pd
from sklearn.datasets import make_regression

logger = logging.getLogger(__name__)


def simulate_dataset(
    n_obs: int = 100,
    n_features: int = 10,
    n_informative: int = 4,
    noise: float = 1.0,
    random_state: int | np.random.Generator | None = None,
):
    """
    Gaussian predictors where only the first `n_informative` columns enter y.

    Returns
    -------
    (df, beta) : (pd.DataFrame, pd.Series)
        `df` holds columns ``x1..xp`` and ``y``; `beta` the true slopes.
    """
    if not 0 <= n_informative <= n_features:
        raise ValueError(
            f"n_informative={n_informative} must lie in [0, n_features={n_features}]."
        )
    if isinstance(random_state, np.random.Generator):
        random_state = int(random_state.integers(0, 2**31 - 1))

    # shuffle=False keeps the informative columns first
    X, y, coef = make_regression(
        n_samples=n_obs,
        n_features=n_features,
        n_informative=n_informative,
        noise=noise,
        shuffle=False,
        coef=True,
        random_state=random_state,
    )

    names = [f"x{j + 1}" for j in range(n_features)]
    df = pd.DataFrame(X, columns=names)
    df["y"] = y
    beta = pd.Series(coef, index=names, name="beta")

    logger.debug("simulated %d x %d design, active: %s",
                 n_obs, n_features, list(beta[beta != 0].index))
    return df, beta
