from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import pandas as pd
import statsmodels.api as sm
from joblib import Parallel, delayed
from scipy import stats
from tqdm import tqdm

from .errors import (
    DegenerateDesign,
    InsufficientPredictors,
    InsufficientResamples,
    InvalidDimension,
)
from .report import plot_stability

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------------
# Validation helpers
# ----------------------------------------------------------------------
def _check_resamples(n_boot: int) -> None:
    if n_boot < 2:
        raise InsufficientResamples(n_boot)


def _check_level(level: float) -> None:
    if not 0 < level < 1:
        raise ValueError(f"level must lie in (0, 1), got {level}.")


def _check_dimension(d, n_features: int) -> None:
    if isinstance(d, bool) or not isinstance(d, (int, np.integer)):
        raise InvalidDimension(d, n_features)
    if not 0 < d < n_features:
        raise InvalidDimension(d, n_features)


def _prepare_design(X, y=None, target: str | None = None,
                    feature_names: Sequence[str] | None = None):
    """Split the input into a float design matrix, a response and predictor names."""
    if isinstance(X, pd.DataFrame):
        if target is not None:
            if y is not None:
                raise ValueError("pass either `y` or a `target` column, not both.")
            if target not in X.columns:
                raise ValueError(f"target '{target}' not in dataframe columns.")
            y = X[target]
            X = X.drop(columns=[target])
        non_numeric = [c for c in X.columns if not pd.api.types.is_numeric_dtype(X[c])]
        if non_numeric:
            raise ValueError(f"non-numeric predictor columns: {non_numeric}")
        names = [str(c) for c in X.columns]
        X = X.to_numpy(dtype=float)
    else:
        X = np.asarray(X, dtype=float)
        if X.ndim != 2:
            raise ValueError(f"X must be 2-dimensional, got shape {X.shape}.")
        if feature_names is None:
            names = [f"x{j + 1}" for j in range(X.shape[1])]
        else:
            names = [str(c) for c in feature_names]
            if len(names) != X.shape[1]:
                raise ValueError(
                    f"got {len(names)} feature names for {X.shape[1]} columns."
                )

    if y is None:
        raise ValueError("response is missing: pass `y` or a `target` column.")
    y = np.asarray(y, dtype=float).ravel()

    n_obs, n_features = X.shape
    if len(y) != n_obs:
        raise ValueError(f"X has {n_obs} rows but y has {len(y)} values.")
    if len(set(names)) != len(names):
        raise ValueError("predictor names must be unique.")
    if n_features < 2:
        raise InsufficientPredictors(n_features)
    if not (np.isfinite(X).all() and np.isfinite(y).all()):
        raise DegenerateDesign("X or y contains NaN/inf.")

    # intercept + p slopes, and at least one residual degree of freedom
    if n_obs <= n_features + 1:
        raise DegenerateDesign(
            f"{n_obs} observations cannot support {n_features + 1} coefficients."
        )
    design = sm.add_constant(X, has_constant="add")
    rank = np.linalg.matrix_rank(design)
    if rank < design.shape[1]:
        raise DegenerateDesign(
            f"design matrix with intercept has rank {rank} < {design.shape[1]}; "
            "predictors are collinear or constant."
        )
    return X, y, names


# ----------------------------------------------------------------------
# Steps 1-3: weights and weighted fits
# ----------------------------------------------------------------------
def draw_weights(n_boot: int, n_obs: int, rng: np.random.Generator) -> np.ndarray:
    """B x n matrix of i.i.d. exponential(rate=1) observation weights."""
    _check_resamples(n_boot)
    return rng.exponential(scale=1.0, size=(n_boot, n_obs))


def _wls(design: np.ndarray, y: np.ndarray, w: np.ndarray):
    res = sm.WLS(y, design, weights=w).fit()
    # residuals at rounding level: the standard errors are noise
    if res.ssr <= np.finfo(float).eps * np.sum(w * y ** 2):
        raise DegenerateDesign("response is fitted exactly; t-statistics are undefined.")
    abs_t = np.abs(np.asarray(res.tvalues, dtype=float))
    if not np.isfinite(abs_t).all():
        raise DegenerateDesign("weighted fit produced non-finite t-statistics.")
    return np.asarray(res.params, dtype=float), abs_t


def fit_weighted_ols(X, y, weights):
    """
    Fit y ~ 1 + X by weighted least squares.

    Returns
    -------
    (coef, abs_t) : tuple of np.ndarray, each of length p + 1
        Intercept first, then one entry per column of `X`.
    """
    design = sm.add_constant(np.asarray(X, dtype=float), has_constant="add")
    return _wls(design, np.asarray(y, dtype=float), np.asarray(weights, dtype=float))


def bootstrap_fits(X: np.ndarray, y: np.ndarray, weights: np.ndarray,
                   n_jobs: int = 1, progress: bool = False):
    """Run one weighted fit per weight row; the intercept column is dropped."""
    design = sm.add_constant(X, has_constant="add")
    rows = tqdm(weights, desc="Bootstrap WLS", disable=not progress)

    if n_jobs == 1:
        fits = [_wls(design, y, w) for w in rows]
    else:
        fits = Parallel(n_jobs=n_jobs, prefer="threads")(
            delayed(_wls)(design, y, w) for w in rows
        )

    coef = np.vstack([c for c, _ in fits])
    abs_t = np.vstack([t for _, t in fits])
    return coef[:, 1:], abs_t[:, 1:]


# ----------------------------------------------------------------------
# Steps 4-5: ranking and inclusion
# ----------------------------------------------------------------------
def rank_predictors(abs_t) -> np.ndarray:
    """
    Rank predictors within each resample by descending |t|.

    Rank 1 is the strongest evidence. Ties share the average of the ranks
    they span (e.g. two predictors tied for first both get 1.5), so a row
    is a permutation of 1..p only when its |t| values are distinct.
    """
    abs_t = np.atleast_2d(np.asarray(abs_t, dtype=float))
    return stats.rankdata(-abs_t, method="average", axis=1)


def inclusion_matrix(ranks, d: int) -> np.ndarray:
    ranks = np.atleast_2d(np.asarray(ranks, dtype=float))
    _check_dimension(d, ranks.shape[1])
    return ranks <= d


# ----------------------------------------------------------------------
# Steps 6-10: stability, pseudo-values, variance, intervals
# ----------------------------------------------------------------------
def stability_score(inclusion, d: int):
    """
    Stability of the size-`d` selection across resamples.

    Parameters
    ----------
    inclusion : array-like of bool, shape (n_boot, p)
        True where a predictor is among the top `d` of a resample.
    d : int
        Model size, 0 < d < p.

    Returns
    -------
    (phi, p_hat) : (float, np.ndarray)
        The stability score and the per-predictor inclusion proportions.
        phi <= 1, with equality iff every proportion is 0 or 1.
    """
    inclusion = np.atleast_2d(np.asarray(inclusion, dtype=bool))
    n_boot, n_features = inclusion.shape
    _check_resamples(n_boot)
    _check_dimension(d, n_features)

    p_hat = inclusion.mean(axis=0)
    spread = n_boot / (n_boot - 1) * np.sum(p_hat * (1.0 - p_hat))
    phi = 1.0 - spread / (d * (1.0 - d / n_features))
    return float(phi), p_hat


def pseudo_values(inclusion, p_hat, phi: float, d: int) -> np.ndarray:
    """Per-resample pseudo-values rho(b, d) used for the variance of phi."""
    inclusion = np.atleast_2d(np.asarray(inclusion, dtype=float))
    n_features = inclusion.shape[1]
    _check_dimension(d, n_features)

    frac = d / n_features
    # row-wise sum so identical selections give identical pseudo-values
    overlap = (inclusion * np.asarray(p_hat, dtype=float)).sum(axis=1) / n_features
    rho = overlap - frac ** 2 + phi / 2.0 * (2 * frac ** 2 - 2 * frac + 1)
    return rho / (frac * (1.0 - frac))


def stability_variance(rho) -> np.ndarray:
    """
    4 / B^2 times the squared deviations of rho around its mean, per column.

    A column whose pseudo-values are all equal has variance exactly 0.
    """
    rho = np.asarray(rho, dtype=float)
    n_boot = rho.shape[0]
    _check_resamples(n_boot)
    # shift by the first row so constant columns are exact zeros
    shifted = rho - rho[0]
    return 4.0 / n_boot ** 2 * np.sum((shifted - shifted.mean(axis=0)) ** 2, axis=0)


def confidence_interval(phi, variance, level: float = 0.95):
    """Normal interval phi +/- z * sqrt(variance); z ~= 1.96 at the 95% level."""
    _check_level(level)
    z = stats.norm.ppf(0.5 + level / 2.0)
    half = z * np.sqrt(np.asarray(variance, dtype=float))
    phi = np.asarray(phi, dtype=float)
    return phi - half, phi + half


def pairwise_statistic(phi, variance) -> np.ndarray:
    """
    t(k) = (phi[k+1] - phi[k]) / sqrt(var[k+1] + var[k]) for consecutive entries.

    Entries where both variances are zero are +/-inf (or NaN when the scores
    are also equal).
    """
    phi = np.asarray(phi, dtype=float)
    variance = np.asarray(variance, dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.diff(phi) / np.sqrt(variance[1:] + variance[:-1])


# ----------------------------------------------------------------------
# Result container
# ----------------------------------------------------------------------
@dataclass
class StabilityResult:
    """
    Output of :func:`bootstrap_stability`.

    Per-dimension objects are indexed by the model size ``d``; per-resample
    objects by the resample number; per-predictor objects by column name.
    """

    stability: pd.Series
    ci: pd.DataFrame
    pairwise: pd.Series
    variance: pd.Series
    pseudo_values: pd.DataFrame
    inclusion_proportions: pd.DataFrame
    coefficients: pd.DataFrame
    abs_t: pd.DataFrame
    ranks: pd.DataFrame
    weights: np.ndarray
    level: float = 0.95

    @property
    def n_boot(self) -> int:
        return int(self.weights.shape[0])

    @property
    def predictors(self) -> list[str]:
        return list(self.coefficients.columns)

    @property
    def dims(self) -> list[int]:
        return [int(d) for d in self.stability.index]

    def table(self) -> pd.DataFrame:
        """Confidence-interval table, one row per model size."""
        return pd.DataFrame({
            "stability": self.stability,
            "lower": self.ci.loc["lower"],
            "upper": self.ci.loc["upper"],
            "variance": self.variance,
        })

    def summary(self) -> dict:
        best = int(self.stability.idxmax())
        return {
            "n_boot": self.n_boot,
            "n_predictors": len(self.predictors),
            "level": float(self.level),
            "most_stable_d": best,
            "most_stable_score": float(self.stability.loc[best]),
            "stability": {int(d): float(v) for d, v in self.stability.items()},
        }


# ----------------------------------------------------------------------
# Full pipeline
# ----------------------------------------------------------------------
def bootstrap_stability(
    X,
    y=None,
    *,
    target: str | None = None,
    feature_names: Sequence[str] | None = None,
    n_boot: int = 100,
    dims: Sequence[int] | None = None,
    random_state: int | np.random.Generator | None = None,
    level: float = 0.95,
    n_jobs: int = 1,
    progress: bool = False,
    plot_path: str | None = None,
    save_table_csv: str | None = None,
    save_pseudo_csv: str | None = None,
) -> StabilityResult:
    """
    Bootstrap selection stability of |t|-ranked predictors in linear regression.

    Workflow
    --------
    1. Draw a (n_boot, n) matrix of exponential(1) observation weights.
    2. For each weight row, fit y ~ 1 + X by weighted least squares and
       record the coefficients and |t|; drop the intercept.
    3. Rank predictors within each resample by descending |t| (average ranks
       for ties).
    4. For every model size d, mark the top-d predictors of each resample and
       compute the stability score, the pseudo-values, the variance and a
       normal confidence interval.
    5. Compare consecutive model sizes with a pairwise t-statistic.

    Parameters
    ----------
    X : pd.DataFrame or array-like, shape (n, p)
        Predictors. A DataFrame may also hold the response (see `target`).
    y : array-like, optional
        Response; required unless `target` names a column of `X`.
    target : str, optional
        Response column of a DataFrame `X`.
    feature_names : sequence of str, optional
        Names for the columns of an array `X`; default ``x1..xp``.
    n_boot : int, default=100
        Number of resamples (>= 2).
    dims : sequence of int, optional
        Model sizes to evaluate, each in (0, p). Default ``1..p-1``.
    random_state : int, np.random.Generator or None
        Source of the bootstrap weights. Global numpy state is never touched.
    level : float, default=0.95
        Coverage of the confidence interval.
    n_jobs : int, default=1
        Parallel fits through joblib threads when != 1.
    progress : bool, default=False
        Show a tqdm progress bar over the fits.
    plot_path, save_table_csv, save_pseudo_csv : str or None
        Optional exports: score-vs-dimension plot, CI table, pseudo-values.

    Returns
    -------
    StabilityResult
    """
    # ------------------------------------------------------------------
    # 1) Validate inputs and model sizes
    # ------------------------------------------------------------------
    X, y, names = _prepare_design(X, y, target=target, feature_names=feature_names)
    n_obs, n_features = X.shape
    _check_resamples(n_boot)
    _check_level(level)

    if dims is None:
        dims = list(range(1, n_features))
    else:
        dims = list(dims)
        if not dims:
            raise ValueError("dims must contain at least one model size.")
        for d in dims:
            _check_dimension(d, n_features)
        dims = sorted({int(d) for d in dims})

    rng = np.random.default_rng(random_state)

    logger.info("Running %d weighted resamples on %d predictors (%d observations)...",
                n_boot, n_features, n_obs)

    # ------------------------------------------------------------------
    # 2) Weights and weighted fits
    # ------------------------------------------------------------------
    weights = draw_weights(n_boot, n_obs, rng)
    coef, abs_t = bootstrap_fits(X, y, weights, n_jobs=n_jobs, progress=progress)

    # ------------------------------------------------------------------
    # 3) Ranks
    # ------------------------------------------------------------------
    ranks = rank_predictors(abs_t)
    n_tied = sum(len(np.unique(row)) < n_features for row in abs_t)
    if n_tied:
        logger.warning("%d resamples have tied |t|; average ranks used.", n_tied)

    # ------------------------------------------------------------------
    # 4) Per-dimension stability, pseudo-values and variance
    # ------------------------------------------------------------------
    phi = np.empty(len(dims), dtype=float)
    rho = np.empty((n_boot, len(dims)), dtype=float)
    p_hats = np.empty((len(dims), n_features), dtype=float)

    for k, d in enumerate(dims):
        inclusion = inclusion_matrix(ranks, d)
        phi[k], p_hats[k] = stability_score(inclusion, d)
        rho[:, k] = pseudo_values(inclusion, p_hats[k], phi[k], d)

    variance = stability_variance(rho)

    # ------------------------------------------------------------------
    # 5) Intervals and pairwise statistics
    # ------------------------------------------------------------------
    lower, upper = confidence_interval(phi, variance, level=level)
    pairwise = pairwise_statistic(phi, variance)

    logger.debug("stability by d: %s", dict(zip(dims, np.round(phi, 4))))

    # ------------------------------------------------------------------
    # 6) Pack labelled outputs
    # ------------------------------------------------------------------
    dim_index = pd.Index(dims, name="d")
    boot_index = pd.RangeIndex(n_boot, name="resample")
    pred_cols = pd.Index(names, name="predictor")

    result = StabilityResult(
        stability=pd.Series(phi, index=dim_index, name="stability"),
        ci=pd.DataFrame([lower, upper], index=["lower", "upper"], columns=dim_index),
        pairwise=pd.Series(
            pairwise,
            index=pd.Index([f"{a}->{b}" for a, b in zip(dims[:-1], dims[1:])],
                           name="step"),
            name="t",
        ),
        variance=pd.Series(variance, index=dim_index, name="variance"),
        pseudo_values=pd.DataFrame(rho, index=boot_index, columns=dim_index),
        inclusion_proportions=pd.DataFrame(p_hats, index=dim_index, columns=pred_cols),
        coefficients=pd.DataFrame(coef, index=boot_index, columns=pred_cols),
        abs_t=pd.DataFrame(abs_t, index=boot_index, columns=pred_cols),
        ranks=pd.DataFrame(ranks, index=boot_index, columns=pred_cols),
        weights=weights,
        level=level,
    )

    # ------------------------------------------------------------------
    # 7) Optional exports
    # ------------------------------------------------------------------
    if save_table_csv:
        result.table().to_csv(save_table_csv, index_label="d")
    if save_pseudo_csv:
        result.pseudo_values.to_csv(save_pseudo_csv, index_label="resample")
    if plot_path:
        plot_stability(result, path=plot_path)

    return result
