"""Supervised (optimal) binning: cut points aligned with the classes of a categorical target.

Three strategies are available:

- ``"naive"``: midpoints between the sorted class means.
- ``"logreg"``: decision boundaries of pairwise logistic regressions between
  classes that are adjacent in class-mean order.
- ``"infogain"``: greedy entropy-based splitting, the criterion used by most
  decision-tree learners.

The number of bins never exceeds the number of target classes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from itertools import combinations
from typing import Final

import numpy as np
import polars as pl
from loguru import logger

from onerule.binning import BinnedColumn, cut_series
from onerule.columns import (
    classify_column,
    factor_codes,
    interval_labels,
    is_factor,
    missing_mask,
    numeric_values,
    observed_levels,
    to_factor,
)
from onerule.config import MissingPolicy, OptimalBinMethod, get_settings
from onerule.diagnostics import record_issue
from onerule.exceptions import UsageError
from onerule.models import BinBoundaries, DataQualityIssue
from onerule.stats import logistic_decision_boundary

_GAIN_TOLERANCE: Final[float] = 1e-12  # Gains closer than this are treated as equal.


@dataclass(frozen=True)
class OptimalCut:
    """Cut points found by `optimal_cut`.

    Attributes:
        boundaries (BinBoundaries): The cut points and interval labels.
        issues (list[DataQualityIssue]): Degenerate cases met on the way.
    """

    boundaries: BinBoundaries
    issues: list[DataQualityIssue] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def optimal_cut(
    values: np.ndarray,
    target: pl.Series,
    method: OptimalBinMethod | None = None,
    *,
    name: str = "",
) -> OptimalCut:
    """Compute cut points of a numeric column that best separate the classes of `target`.

    Args:
        values (np.ndarray): 1-D float array without missing values.
        target (pl.Series): Categorical target of the same length without
            nulls. Only levels that occur are considered classes.
        method (OptimalBinMethod | None): `"logreg"`, `"infogain"` or `"naive"`;
            defaults to `OneRSettings.optbin_method`.
        name (str): Column name used in issue messages.

    Returns:
        OptimalCut: At most `K - 1` strictly increasing cut points for `K` classes.

    Raises:
        UsageError: If lengths differ, values are missing, the method is
            unknown, or fewer than two classes occur.
    """
    method = get_settings().optbin_method if method is None else method
    values = np.asarray(values, dtype=np.float64)
    codes, class_names = _class_codes(target)
    _validate_optimal_cut_inputs(values, codes, class_names, method)

    issues: list[DataQualityIssue] = []
    n_classes = len(class_names)
    if method == "naive":
        candidates = _naive_cut_points(values, codes, n_classes)
    elif method == "logreg":
        candidates = _logreg_cut_points(values, codes, class_names, issues=issues, name=name)
    else:
        candidates = _infogain_cut_points(values, codes, n_classes, issues=issues, name=name)

    cut_points = _collapse_empty_bins(values, np.unique(candidates), issues=issues, name=name)
    logger.debug("Optimal cut points computed", column=name, method=method, cut_points=cut_points.tolist())
    boundaries = BinBoundaries(
        cut_points=cut_points.tolist(),
        labels=interval_labels(cut_points.tolist(), values),
        method=method,
    )
    return OptimalCut(boundaries=boundaries, issues=issues)


def optbin_series(
    series: pl.Series,
    target: pl.Series,
    method: OptimalBinMethod | None = None,
    missing: MissingPolicy | None = None,
) -> BinnedColumn:
    """Discretize one column with cut points aligned to the classes of `target`.

    Numeric columns with more distinct values than there are classes are cut
    by `optimal_cut`; all other columns get one level per distinct value.

    Args:
        series (pl.Series): The column to discretize.
        target (pl.Series): Categorical target of the same length.
        method (OptimalBinMethod | None): Supervised binning strategy.
        missing (MissingPolicy | None): `"omit"` drops rows where either the
            column or the target is missing; `"keep"` maps missing entries to
            an `"NA"` level (which then also counts as a target class).

    Returns:
        BinnedColumn: The discretized column, its cut points and any issues.

    Raises:
        UsageError: If `series` and `target` differ in length or fewer than
            two target classes remain.
    """
    missing = get_settings().missing if missing is None else missing
    if series.len() != target.len():
        raise UsageError(f"column has {series.len()} rows but target has {target.len()}")

    issues: list[DataQualityIssue] = []
    mask = missing_mask(series)
    target_mask = missing_mask(target)
    if missing == "omit" and (mask | target_mask).any():
        dropped = mask | target_mask
        record_issue(
            issues,
            "missing_rows_removed",
            f"{int(dropped.sum())} instance(s) removed due to missing values",
            count=int(dropped.sum()),
            columns=[series.name],
        )
        series = series.filter(pl.Series(~dropped))
        target = target.filter(pl.Series(~dropped))
        mask = np.zeros(series.len(), dtype=bool)
    keep_missing = missing == "keep"
    target = to_factor(target, keep_missing=keep_missing)

    n_classes = len(observed_levels(target))
    if n_classes <= 1:
        raise UsageError("number of target levels must be bigger than 1")
    if classify_column(series.dtype) != "numeric":
        return BinnedColumn(series=to_factor(series, keep_missing=keep_missing), issues=issues)

    present = numeric_values(series)[~mask]
    if np.unique(present).size <= n_classes:
        return BinnedColumn(series=to_factor(series, keep_missing=keep_missing), issues=issues)

    result = optimal_cut(present, target.filter(pl.Series(~mask)), method, name=series.name)
    return BinnedColumn(
        series=cut_series(series, result.boundaries, keep_missing=keep_missing),
        boundaries=result.boundaries,
        issues=[*issues, *result.issues],
    )


# ---------------------------------------------------------------------------
# Private helpers -- naive
# ---------------------------------------------------------------------------


def _class_means(values: np.ndarray, codes: np.ndarray, n_classes: int) -> np.ndarray:
    """Return the mean of `values` within each class."""
    sums = np.bincount(codes, weights=values, minlength=n_classes)
    counts = np.bincount(codes, minlength=n_classes)
    return sums / counts


def _naive_cut_points(values: np.ndarray, codes: np.ndarray, n_classes: int) -> np.ndarray:
    """Return the midpoints between adjacent sorted class means.

    Works well only when the class distributions are roughly normal and do
    not overlap much.
    """
    means = np.sort(_class_means(values, codes, n_classes))
    return (means[:-1] + means[1:]) / 2


# ---------------------------------------------------------------------------
# Private helpers -- logreg
# ---------------------------------------------------------------------------


def _logreg_cut_points(
    values: np.ndarray,
    codes: np.ndarray,
    class_names: list[str],
    *,
    issues: list[DataQualityIssue],
    name: str,
) -> np.ndarray:
    """Return one logistic decision boundary per gap between classes adjacent in mean order.

    Every pair of classes gets its own fit. For the gap between adjacent
    classes `a` and `b`, the boundary of the pair `(a, b)` is used when it lies
    within the observed range of those two classes. Otherwise the boundary of
    any other pair straddling the gap that lies between the means of `a` and
    `b` is used (the one nearest to their midpoint), and failing that the
    midpoint itself.
    """
    n_classes = len(class_names)
    means = _class_means(values, codes, n_classes)
    order = np.argsort(means, kind="stable")
    rank = np.empty(n_classes, dtype=np.int64)
    rank[order] = np.arange(n_classes)

    pair_boundaries: dict[tuple[int, int], float | None] = {}
    for first, second in combinations(range(n_classes), 2):
        in_pair = (codes == first) | (codes == second)
        pair_boundaries[first, second] = logistic_decision_boundary(values[in_pair], codes[in_pair] == second)
        logger.debug(
            "Pairwise logistic boundary",
            column=name,
            classes=(class_names[first], class_names[second]),
            boundary=pair_boundaries[first, second],
        )

    cut_points: list[float] = []
    for position in range(n_classes - 1):
        lower_class, upper_class = int(order[position]), int(order[position + 1])
        own = pair_boundaries[min(lower_class, upper_class), max(lower_class, upper_class)]
        pair_values = values[(codes == lower_class) | (codes == upper_class)]
        if own is not None and pair_values.min() <= own <= pair_values.max():
            cut_points.append(own)
            continue

        lower_mean, upper_mean = means[lower_class], means[upper_class]
        midpoint = (lower_mean + upper_mean) / 2
        substitutes = [
            boundary
            for (first, second), boundary in pair_boundaries.items()
            if boundary is not None
            and min(rank[first], rank[second]) <= position < max(rank[first], rank[second])
            and lower_mean <= boundary <= upper_mean
        ]
        if substitutes:
            cut_points.append(min(substitutes, key=lambda boundary: abs(boundary - midpoint)))
            continue

        record_issue(
            issues,
            "logreg_fallback",
            f"Logistic boundary between '{class_names[lower_class]}' and '{class_names[upper_class]}' "
            f"of '{name}' unavailable; using the midpoint of the class means",
            count=1,
            columns=[name],
        )
        cut_points.append(midpoint)
    return np.asarray(cut_points, dtype=np.float64)


# ---------------------------------------------------------------------------
# Private helpers -- infogain
# ---------------------------------------------------------------------------


def _entropy_rows(distributions: np.ndarray) -> np.ndarray:
    """Return the entropy (bits) of every row of a count matrix."""
    totals = distributions.sum(axis=1, keepdims=True)
    with np.errstate(invalid="ignore", divide="ignore"):
        shares = np.where(totals > 0, distributions / totals, 0.0)
    clipped = np.clip(shares, np.finfo(np.float64).eps, 1.0)
    return -np.sum(shares * np.log2(clipped), axis=1)


def _best_split(counts: np.ndarray) -> tuple[float, int] | None:
    """Find the split of a run of distinct values with the highest information gain.

    Args:
        counts (np.ndarray): `(n_distinct, n_classes)` class counts per sorted distinct value.

    Returns:
        tuple[float, int] | None: `(gain, split_index)` where the left part is
            `counts[:split_index]`, or `None` if the run cannot be split.
    """
    if counts.shape[0] < 2:
        return None
    total = counts.sum(axis=0)
    left = np.cumsum(counts, axis=0)[:-1]
    right = total - left
    left_size = left.sum(axis=1)
    right_size = right.sum(axis=1)
    size = float(total.sum())
    children = (left_size * _entropy_rows(left) + right_size * _entropy_rows(right)) / size
    gains = _entropy_rows(total.reshape(1, -1))[0] - children
    best = int(np.flatnonzero(gains >= gains.max() - _GAIN_TOLERANCE)[0])
    return float(gains[best]), best + 1


def _infogain_cut_points(
    values: np.ndarray,
    codes: np.ndarray,
    n_classes: int,
    *,
    issues: list[DataQualityIssue],
    name: str,
) -> np.ndarray:
    """Greedily split bins at the point of highest information gain until there is one bin per class.

    Candidate cut points are the midpoints between consecutive distinct
    values. Gains of splits in different bins are compared on the scale of
    the whole column (weighted by bin size); equal gains go to the lower cut
    point. Splitting stops early when no split has positive gain.
    """
    distinct, inverse = np.unique(values, return_inverse=True)
    counts = np.zeros((distinct.size, n_classes), dtype=np.float64)
    np.add.at(counts, (inverse, codes), 1.0)
    total = float(counts.sum())

    segments: list[tuple[int, int]] = [(0, distinct.size)]
    cut_points: list[float] = []
    while len(segments) < n_classes:
        best: tuple[float, float, int, int] | None = None
        for segment_index, (start, stop) in enumerate(segments):
            split = _best_split(counts[start:stop])
            if split is None:
                continue
            gain, offset = split
            weighted_gain = gain * counts[start:stop].sum() / total
            cut_point = (distinct[start + offset - 1] + distinct[start + offset]) / 2
            if (
                best is None
                or weighted_gain > best[0] + _GAIN_TOLERANCE
                or (abs(weighted_gain - best[0]) <= _GAIN_TOLERANCE and cut_point < best[1])
            ):
                best = (weighted_gain, cut_point, segment_index, start + offset)

        if best is None or best[0] <= _GAIN_TOLERANCE:
            record_issue(
                issues,
                "infogain_early_stop",
                f"No split with positive information gain left for '{name}'; stopped at {len(segments)} bin(s)",
                count=len(segments),
                columns=[name],
            )
            break

        _, cut_point, segment_index, split_at = best
        start, stop = segments[segment_index]
        segments[segment_index : segment_index + 1] = [(start, split_at), (split_at, stop)]
        cut_points.append(cut_point)
    return np.sort(np.asarray(cut_points, dtype=np.float64))


# ---------------------------------------------------------------------------
# Private helpers -- shared
# ---------------------------------------------------------------------------


def _collapse_empty_bins(
    values: np.ndarray,
    cut_points: np.ndarray,
    *,
    issues: list[DataQualityIssue],
    name: str,
) -> np.ndarray:
    """Remove cut points until every bin holds at least one value.

    An empty bin is merged into its upper neighbour by dropping its upper cut
    point; an empty last bin drops its lower cut point.
    """
    cut_points = np.asarray(cut_points, dtype=np.float64)
    removed = 0
    while cut_points.size:
        occupancy = np.bincount(np.searchsorted(cut_points, values, side="left"), minlength=cut_points.size + 1)
        empty = np.flatnonzero(occupancy == 0)
        if empty.size == 0:
            break
        cut_points = np.delete(cut_points, min(int(empty[0]), cut_points.size - 1))
        removed += 1
    if removed:
        record_issue(
            issues,
            "empty_bins_collapsed",
            f"{removed} empty bin(s) of '{name}' collapsed into their neighbours",
            count=removed,
            columns=[name],
        )
    return cut_points


def _class_codes(target: pl.Series) -> tuple[np.ndarray, list[str]]:
    """Encode a categorical target as class indices over its observed levels.

    Args:
        target (pl.Series): Categorical target (any dtype accepted by `to_factor`).

    Returns:
        tuple[np.ndarray, list[str]]: Class index per row, and the class names.
    """
    factor = target if is_factor(target) else to_factor(target, keep_missing=False)
    used = observed_levels(factor)
    if target.null_count() > 0:
        raise UsageError("target contains missing values")
    factor = factor.cast(pl.String).cast(pl.Enum(used))
    return factor_codes(factor), used


def _validate_optimal_cut_inputs(
    values: np.ndarray,
    codes: np.ndarray,
    class_names: list[str],
    method: str,
) -> None:
    """Raise `UsageError` for inputs `optimal_cut` cannot work with.

    Args:
        values (np.ndarray): The numeric column.
        codes (np.ndarray): Class index per row.
        class_names (list[str]): Observed classes.
        method (str): Requested strategy.

    Raises:
        UsageError: On a length mismatch, missing values, an unknown method,
            or fewer than two classes.
    """
    if method not in {"logreg", "infogain", "naive"}:
        raise UsageError(f"Unknown optimal binning method {method!r}; expected 'logreg', 'infogain' or 'naive'")
    if values.ndim != 1 or values.size != codes.size:
        raise UsageError(f"values has {values.size} entries but target has {codes.size}")
    if np.isnan(values).any():
        raise UsageError("values contain missing entries; remove them before computing cut points")
    if len(class_names) <= 1:
        raise UsageError("number of target levels must be bigger than 1")
