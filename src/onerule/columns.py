"""Column handling: kind classification, factor conversion, missing values and labels."""

from __future__ import annotations

from collections.abc import Sequence
from itertools import pairwise
from typing import Final, Literal

import numpy as np
import polars as pl

from onerule.exceptions import ColumnsNotFoundError, UsageError

type ColumnKind = Literal["numeric", "categorical"]

MISSING_LABEL: Final[str] = "NA"

_NUMBER_SIGNIFICANT_DIGITS: Final[int] = 15
_LABEL_MIN_DIGITS: Final[int] = 3
_LABEL_MAX_DIGITS: Final[int] = 17  # Enough to tell any two distinct doubles apart.
_RANGE_WIDENING: Final[float] = 1e-3  # Outer interval labels extend the observed range by 0.1% of its span.

# ---------------------------------------------------------------------------
# Public interface -- Column kind
# ---------------------------------------------------------------------------


def classify_column(dtype: pl.DataType) -> ColumnKind:
    """Classify a Polars dtype as numeric or categorical.

    Integer, float and decimal columns are numeric. Strings, Categorical, Enum,
    Boolean and temporal columns are categorical and are turned into factors
    through their text representation.

    Args:
        dtype (pl.DataType): The Polars data type of the column.

    Returns:
        ColumnKind: `"numeric"` or `"categorical"`.

    Raises:
        UsageError: If the dtype is nested or an opaque Python object.
    """
    if dtype.is_numeric():
        return "numeric"
    if dtype.is_nested() or dtype == pl.Object:
        raise UsageError(f"Unsupported column dtype: {dtype}")
    return "categorical"


def is_factor(series: pl.Series) -> bool:
    """Return `True` if `series` is already a categorical variable (an Enum)."""
    return isinstance(series.dtype, pl.Enum)


# ---------------------------------------------------------------------------
# Public interface -- Missing values and numeric access
# ---------------------------------------------------------------------------


def missing_mask(series: pl.Series) -> np.ndarray:
    """Return a boolean mask of missing entries: nulls, and NaN in float columns.

    Args:
        series (pl.Series): The column to inspect.

    Returns:
        np.ndarray: 1-D boolean array, `True` where the value is missing.
    """
    mask = series.is_null().to_numpy()
    if series.dtype.is_float():
        mask = mask | series.is_nan().fill_null(value=False).to_numpy()
    return mask


def numeric_values(series: pl.Series) -> np.ndarray:
    """Return a numeric column as a float64 array with NaN for missing values."""
    return series.cast(pl.Float64).fill_null(np.nan).to_numpy()


def format_number(value: float) -> str:
    """Render a number as a level label, e.g. `1.0` -> `"1"` and `0.25` -> `"0.25"`."""
    return f"{value + 0.0:.{_NUMBER_SIGNIFICANT_DIGITS}g}"  # + 0.0 folds -0.0 into 0.0


# ---------------------------------------------------------------------------
# Public interface -- Factors
# ---------------------------------------------------------------------------


def to_factor(series: pl.Series, *, keep_missing: bool) -> pl.Series:
    """Convert any supported column into a categorical variable, one level per distinct value.

    Level order: an existing Enum keeps its categories; numeric values are
    sorted numerically; everything else is sorted by its text.

    Args:
        series (pl.Series): The column to convert.
        keep_missing (bool): Map missing values to an extra `"NA"` level
            appended last. When `False`, missing values stay null.

    Returns:
        pl.Series: An Enum series with the same name and length.
    """
    if is_factor(series):
        levels = factor_levels(series)
        text = series.cast(pl.String)
    elif classify_column(series.dtype) == "numeric":
        values = numeric_values(series)
        distinct = np.unique(values[~np.isnan(values)])
        levels = list(dict.fromkeys(format_number(value) for value in distinct))
        text = pl.Series(
            series.name,
            [None if np.isnan(value) else format_number(value) for value in values],
            dtype=pl.String,
        )
    else:
        text = series.cast(pl.String)
        levels = sorted(text.drop_nulls().unique().to_list())
    return encode_levels(text, levels, keep_missing=keep_missing)


def encode_levels(text: pl.Series, levels: Sequence[str], *, keep_missing: bool) -> pl.Series:
    """Cast a String series to an Enum with the given ordered levels.

    Args:
        text (pl.Series): String series whose non-null values all belong to `levels`.
        levels (Sequence[str]): Ordered, unique levels.
        keep_missing (bool): Replace nulls with the `"NA"` level (appended when absent).

    Returns:
        pl.Series: The Enum series.
    """
    levels = list(levels)
    if keep_missing and text.null_count() > 0:
        if MISSING_LABEL not in levels:
            levels.append(MISSING_LABEL)
        text = text.fill_null(MISSING_LABEL)
    return text.cast(pl.Enum(levels))


def factor_levels(series: pl.Series) -> list[str]:
    """Return the ordered levels of an Enum series."""
    return series.dtype.categories.to_list()


def factor_codes(series: pl.Series) -> np.ndarray:
    """Return the level index of every entry of a null-free Enum series."""
    return series.to_physical().to_numpy().astype(np.int64)


def observed_levels(series: pl.Series) -> list[str]:
    """Return the levels of an Enum series that occur at least once, in level order."""
    levels = factor_levels(series)
    if series.len() == 0:
        return []
    present = np.unique(series.drop_nulls().to_physical().to_numpy())
    return [levels[code] for code in present]


def drop_unused_levels(series: pl.Series) -> tuple[pl.Series, bool]:
    """Re-level an Enum series to the levels it actually uses.

    Args:
        series (pl.Series): An Enum series.

    Returns:
        tuple[pl.Series, bool]: The re-levelled series and whether any level was dropped.
    """
    levels = factor_levels(series)
    used = observed_levels(series)
    if len(used) == len(levels):
        return series, False
    return series.cast(pl.String).cast(pl.Enum(used)), True


# ---------------------------------------------------------------------------
# Public interface -- Interval labels
# ---------------------------------------------------------------------------


def interval_labels(cut_points: Sequence[float], values: np.ndarray) -> list[str]:
    """Build unique `(a,b]` labels for the bins defined by `cut_points`.

    The outer edges are the observed range of `values`, widened by 0.1% of
    its span on each side. Labels use 3 significant digits, increased until
    every label is distinct.

    Args:
        cut_points (Sequence[float]): Strictly increasing interior cut points.
        values (np.ndarray): Non-missing values the cut points were computed from.

    Returns:
        list[str]: `len(cut_points) + 1` distinct labels.
    """
    low, high = float(np.min(values)), float(np.max(values))
    span = high - low
    edges = [low - _RANGE_WIDENING * span, *cut_points, high + _RANGE_WIDENING * span]
    labels: list[str] = []
    for digits in range(_LABEL_MIN_DIGITS, _LABEL_MAX_DIGITS + 1):
        labels = [f"({left:.{digits}g},{right:.{digits}g}]" for left, right in pairwise(edges)]
        if len(set(labels)) == len(labels):
            break
    return labels


# ---------------------------------------------------------------------------
# Public interface -- Validation
# ---------------------------------------------------------------------------


def validate_columns(columns: Sequence[str], df_columns: Sequence[str]) -> None:
    """Validate that columns exist in the DataFrame.

    Args:
        columns (Sequence[str]): Column names to validate.
        df_columns (Sequence[str]): Column names present in the DataFrame.

    Raises:
        ColumnsNotFoundError: If any columns do not exist in the DataFrame.
    """
    missing_columns = set(columns) - set(df_columns)
    if missing_columns:
        raise ColumnsNotFoundError(
            missing_columns=sorted(missing_columns),
            available_columns=list(df_columns),
        )
