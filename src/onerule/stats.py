"""Thin wrappers around the statistical routines used for binning and evaluation.

Quantiles come from numpy, 1-D k-means and logistic regression from
scikit-learn, the chi-squared and exact binomial tests from scipy. Each
wrapper pins the numeric contract the rest of the package relies on.
"""

from __future__ import annotations

import warnings
from typing import Final, NamedTuple

import numpy as np
from loguru import logger
from scipy.stats import binomtest, chi2_contingency
from sklearn.cluster import KMeans
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import LogisticRegression

_UNPENALIZED_C: Final[float] = 1e8  # Inverse regularization strength; large enough to approximate maximum likelihood.
_LOGREG_MAX_ITER: Final[int] = 1000


class ChiSquaredTest(NamedTuple):
    """Pearson's chi-squared test of independence.

    Attributes:
        statistic (float): The chi-squared statistic.
        dof (int): Degrees of freedom.
        p_value (float): Upper-tail probability of the statistic.
    """

    statistic: float
    dof: int
    p_value: float


def quantile(values: np.ndarray, probabilities: np.ndarray) -> np.ndarray:
    """Return empirical quantiles with linear interpolation between order statistics.

    Args:
        values (np.ndarray): 1-D float array without NaN.
        probabilities (np.ndarray): Probabilities in `[0, 1]`.

    Returns:
        np.ndarray: One quantile per probability.
    """
    return np.quantile(values, probabilities, method="linear")


def kmeans_1d(values: np.ndarray, initial_centers: np.ndarray) -> np.ndarray:
    """Run 1-D k-means from fixed initial centers.

    Seeding from caller-supplied centers with a single initialization makes
    the result a deterministic function of the input.

    Args:
        values (np.ndarray): 1-D float array without NaN.
        initial_centers (np.ndarray): Starting centers, one per cluster.

    Returns:
        np.ndarray: Final cluster centers, in cluster order (not sorted).
    """
    kmeans = KMeans(
        n_clusters=len(initial_centers),
        init=np.asarray(initial_centers, dtype=np.float64).reshape(-1, 1),
        n_init=1,
    )
    kmeans.fit(np.asarray(values, dtype=np.float64).reshape(-1, 1))
    return kmeans.cluster_centers_.ravel()


def logistic_decision_boundary(values: np.ndarray, is_positive: np.ndarray) -> float | None:
    """Fit a binary logistic regression and return the `x` where the fitted probability is 0.5.

    The column is standardized before fitting and the boundary mapped back to
    the original scale.

    Args:
        values (np.ndarray): 1-D float array, the single predictor.
        is_positive (np.ndarray): 1-D boolean array, the binary response.

    Returns:
        float | None: The decision boundary, or `None` when the fit does not
            converge, fails, or yields a zero or non-finite slope.
    """
    center = float(np.mean(values))
    scale = float(np.std(values))
    if scale == 0.0 or np.all(is_positive) or not np.any(is_positive):
        return None

    standardized = ((values - center) / scale).reshape(-1, 1)
    model = LogisticRegression(C=_UNPENALIZED_C, max_iter=_LOGREG_MAX_ITER)
    with warnings.catch_warnings():
        warnings.simplefilter("error", ConvergenceWarning)
        try:
            model.fit(standardized, is_positive.astype(np.int8))
        except (ConvergenceWarning, ValueError) as exc:
            logger.debug("Logistic fit failed", reason=str(exc), n_samples=len(values))
            return None

    slope = float(model.coef_[0, 0])
    intercept = float(model.intercept_[0])
    if slope == 0.0 or not np.isfinite(slope) or not np.isfinite(intercept):
        return None
    return center + scale * (-intercept / slope)


def chi_squared_test(counts: np.ndarray) -> ChiSquaredTest | None:
    """Run Pearson's chi-squared test of independence on a contingency table.

    A continuity correction is applied to 2x2 tables.

    Args:
        counts (np.ndarray): 2-D count matrix.

    Returns:
        ChiSquaredTest | None: The test, or `None` when it cannot be computed
            (fewer than two rows or columns, or a zero expected frequency).
    """
    counts = np.asarray(counts)
    if counts.ndim != 2 or min(counts.shape) < 2:
        return None
    try:
        result = chi2_contingency(counts)
    except ValueError as exc:
        logger.debug("Chi-squared test failed", reason=str(exc), shape=counts.shape)
        return None
    if not np.isfinite(result.pvalue):
        return None
    return ChiSquaredTest(statistic=float(result.statistic), dof=int(result.dof), p_value=float(result.pvalue))


def binomial_test_greater(successes: int, trials: int, probability: float) -> float:
    """Return the one-sided exact binomial p-value for a success rate above `probability`.

    Args:
        successes (int): Number of successes.
        trials (int): Number of trials; must be positive.
        probability (float): Hypothesized success probability in `[0, 1]`.

    Returns:
        float: `P(X >= successes)` for `X ~ Binomial(trials, probability)`.
    """
    return float(binomtest(successes, trials, p=probability, alternative="greater").pvalue)
