"""Unsupervised binning of numeric columns: equal length, equal content and 1-D clusters."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

import numpy as np
import polars as pl
from loguru import logger

from onerule.columns import (
    MISSING_LABEL,
    classify_column,
    encode_levels,
    interval_labels,
    missing_mask,
    numeric_values,
    to_factor,
)
from onerule.config import BinMethod, MissingPolicy, get_settings
from onerule.diagnostics import record_issue
from onerule.exceptions import UsageError
from onerule.models import BinBoundaries, DataQualityIssue
from onerule.stats import kmeans_1d, quantile


@dataclass(frozen=True)
class BinnedColumn:
    """A column turned into a categorical variable.

    Attributes:
        series (pl.Series): The Enum series. Shorter than the input when rows
            with missing values were omitted.
        boundaries (BinBoundaries | None): The cut points, or `None` when the
            column was converted level-per-value instead of cut into intervals.
        issues (list[DataQualityIssue]): Issues raised while binning.
    """

    series: pl.Series
    boundaries: BinBoundaries | None = None
    issues: list[DataQualityIssue] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Public interface -- Cut points
# ---------------------------------------------------------------------------


def equal_length_cut_points(values: np.ndarray, nbins: int) -> np.ndarray:
    """Split the observed range into `nbins` intervals of equal width.

    Args:
        values (np.ndarray): Non-missing values.
        nbins (int): Number of intervals.

    Returns:
        np.ndarray: The `nbins - 1` interior cut points.
    """
    low, high = float(np.min(values)), float(np.max(values))
    return low + (high - low) * np.arange(1, nbins) / nbins


def equal_content_cut_points(values: np.ndarray, nbins: int) -> np.ndarray:
    """Place cut points at the `i / nbins` quantiles so that every bin holds the same share of rows.

    Args:
        values (np.ndarray): Non-missing values.
        nbins (int): Number of intervals.

    Returns:
        np.ndarray: The `nbins - 1` quantiles, possibly with duplicates.
    """
    return quantile(values, np.arange(1, nbins) / nbins)


def cluster_cut_points(values: np.ndarray, nbins: int) -> np.ndarray:
    """Place cut points halfway between the centers of a 1-D k-means clustering.

    The clustering starts from `nbins` centers spread evenly over the observed
    range, so repeated calls on the same data give the same cut points
    (Jenks-style natural breaks without random seeding).

    Args:
        values (np.ndarray): Non-missing values.
        nbins (int): Number of clusters.

    Returns:
        np.ndarray: The `nbins - 1` midpoints between adjacent sorted centers.
    """
    initial_centers = np.linspace(np.min(values), np.max(values), nbins)
    centers = np.sort(kmeans_1d(values, initial_centers))
    return (centers[:-1] + centers[1:]) / 2


_CUT_POINT_METHODS: dict[str, Callable[[np.ndarray, int], np.ndarray]] = {
    "length": equal_length_cut_points,
    "content": equal_content_cut_points,
    "clusters": cluster_cut_points,
}


# ---------------------------------------------------------------------------
# Public interface -- Applying cut points
# ---------------------------------------------------------------------------


def apply_boundaries(values: np.ndarray, boundaries: BinBoundaries) -> list[str | None]:
    """Map every value to the label of its bin, `None` for missing values.

    Args:
        values (np.ndarray): 1-D float array, NaN for missing.
        boundaries (BinBoundaries): The bins to map into.

    Returns:
        list[str | None]: One label per value.
    """
    indices = boundaries.assign(values)
    return [None if index < 0 else boundaries.labels[index] for index in indices]


def cut_series(series: pl.Series, boundaries: BinBoundaries, *, keep_missing: bool) -> pl.Series:
    """Cut a numeric series into the Enum levels defined by `boundaries`.

    Args:
        series (pl.Series): Numeric series.
        boundaries (BinBoundaries): Cut points and labels.
        keep_missing (bool): Map missing values to the `"NA"` level.

    Returns:
        pl.Series: Enum series whose levels are `boundaries.labels` (plus `"NA"`).
    """
    text = pl.Series(series.name, apply_boundaries(numeric_values(series), boundaries), dtype=pl.String)
    return encode_levels(text, boundaries.labels, keep_missing=keep_missing)


# ---------------------------------------------------------------------------
# Public interface -- Binner
# ---------------------------------------------------------------------------


def bin_series(
    series: pl.Series,
    nbins: int | None = None,
    labels: Sequence[str] | None = None,
    method: BinMethod | None = None,
    missing: MissingPolicy | None = None,
) -> BinnedColumn:
    """Discretize one column into a categorical variable.

    Numeric columns with more than `nbins` distinct values are cut into
    intervals; other numeric columns get one level per distinct value;
    non-numeric columns are converted to factors as they are.

    Args:
        series (pl.Series): The column to discretize.
        nbins (int | None): Number of bins; defaults to `OneRSettings.nbins`.
        labels (Sequence[str] | None): Explicit bin labels, one per bin.
        method (BinMethod | None): `"length"` (equal width), `"content"`
            (equal frequency) or `"clusters"` (1-D k-means); defaults to
            `OneRSettings.bin_method`.
        missing (MissingPolicy | None): `"omit"` removes missing entries (with a
            warning); `"keep"` maps them to an extra `"NA"` level. Defaults to
            `OneRSettings.missing`.

    Returns:
        BinnedColumn: The discretized column, its cut points and any issues.

    Raises:
        UsageError: If `nbins <= 1`, if `labels` does not have `nbins` unique
            entries, or if duplicate quantiles leave fewer bins than labels.
    """
    settings = get_settings()
    nbins = settings.nbins if nbins is None else nbins
    method = settings.bin_method if method is None else method
    missing = settings.missing if missing is None else missing
    _validate_bin_arguments(nbins, labels, method)

    issues: list[DataQualityIssue] = []
    mask = missing_mask(series)
    if missing == "omit" and mask.any():
        record_issue(
            issues,
            "missing_rows_removed",
            f"{int(mask.sum())} instance(s) removed due to missing values",
            count=int(mask.sum()),
            columns=[series.name],
        )
        series = series.filter(pl.Series(~mask))
        mask = np.zeros(series.len(), dtype=bool)
    keep_missing = missing == "keep"

    if classify_column(series.dtype) != "numeric":
        return BinnedColumn(series=to_factor(series, keep_missing=keep_missing), issues=issues)

    present = numeric_values(series)[~mask]
    if np.unique(present).size <= nbins:
        return BinnedColumn(series=to_factor(series, keep_missing=keep_missing), issues=issues)

    boundaries = compute_boundaries(present, nbins, method=method, labels=labels, issues=issues, name=series.name)
    logger.debug("Column binned", column=series.name, method=method, cut_points=boundaries.cut_points)
    return BinnedColumn(
        series=cut_series(series, boundaries, keep_missing=keep_missing),
        boundaries=boundaries,
        issues=issues,
    )


def compute_boundaries(
    values: np.ndarray,
    nbins: int,
    *,
    method: BinMethod,
    labels: Sequence[str] | None,
    issues: list[DataQualityIssue],
    name: str = "",
) -> BinBoundaries:
    """Compute deduplicated cut points and bin labels for non-missing numeric values.

    Args:
        values (np.ndarray): Non-missing values with more than `nbins` distinct entries.
        nbins (int): Requested number of bins.
        method (BinMethod): Cut-point strategy.
        labels (Sequence[str] | None): Explicit labels, or `None` for interval labels.
        issues (list[DataQualityIssue]): Accumulator for degenerate-case issues.
        name (str): Column name used in issue messages.

    Returns:
        BinBoundaries: The validated boundaries.

    Raises:
        UsageError: If duplicate cut points leave fewer bins than explicit labels.
    """
    raw_cut_points = _CUT_POINT_METHODS[method](values, nbins)
    cut_points = np.unique(raw_cut_points)
    if cut_points.size < raw_cut_points.size:
        record_issue(
            issues,
            "duplicate_cut_points",
            f"Duplicate cut points reduced the number of bins of '{name}' to {cut_points.size + 1}",
            count=int(raw_cut_points.size - cut_points.size),
            columns=[name],
        )
    if labels is not None and len(labels) != cut_points.size + 1:
        raise UsageError(f"number of intervals ({cut_points.size + 1}) and labels ({len(labels)}) differ")
    bin_labels = list(labels) if labels is not None else interval_labels(cut_points.tolist(), values)
    return BinBoundaries(cut_points=cut_points.tolist(), labels=bin_labels, method=method)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _validate_bin_arguments(nbins: int, labels: Sequence[str] | None, method: str) -> None:
    """Raise `UsageError` for an invalid bin count, label vector or method.

    Args:
        nbins (int): Requested number of bins.
        labels (Sequence[str] | None): Explicit labels, if any.
        method (str): Requested binning method.

    Raises:
        UsageError: If `nbins <= 1`, `labels` has the wrong length or repeats,
            or `method` is unknown.
    """
    if nbins <= 1:
        raise UsageError(f"nbins must be bigger than 1, got {nbins}")
    if method not in _CUT_POINT_METHODS:
        raise UsageError(f"Unknown binning method {method!r}; expected one of {sorted(_CUT_POINT_METHODS)}")
    if labels is None:
        return
    if len(labels) != nbins:
        raise UsageError(f"number of 'nbins' ({nbins}) and 'labels' ({len(labels)}) differ")
    if len(set(labels)) != len(labels):
        raise UsageError(f"labels must be unique, got {list(labels)}")
    if MISSING_LABEL in labels:
        raise UsageError(f"'{MISSING_LABEL}' is reserved for missing values and cannot be used as a label")
