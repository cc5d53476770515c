"""Dataset-level preprocessing: discretizing every column of a table for rule learning."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal

import numpy as np
import polars as pl
from loguru import logger

from onerule import columns
from onerule.binning import bin_series
from onerule.config import BinMethod, MissingPolicy, OptimalBinMethod, get_settings
from onerule.diagnostics import record_issue
from onerule.exceptions import UsageError
from onerule.models import BinBoundaries, DataQualityIssue
from onerule.optimal import optbin_series

type Strategy = Literal["bin", "optbin"]


@dataclass(frozen=True)
class DiscretizedTable:
    """A table whose columns are all categorical variables, target last.

    Attributes:
        data (pl.DataFrame): Enum columns; the last one is the target.
        boundaries (dict[str, BinBoundaries]): Cut points of every numeric
            column that was cut into intervals, keyed by column name.
        issues (list[DataQualityIssue]): Data-quality issues raised while
            discretizing.
    """

    data: pl.DataFrame
    boundaries: dict[str, BinBoundaries] = field(default_factory=dict)
    issues: list[DataQualityIssue] = field(default_factory=list)

    @property
    def target(self) -> str:
        """Name of the target column."""
        return self.data.columns[-1]

    @property
    def features(self) -> list[str]:
        """Names of the candidate feature columns, in column order."""
        return self.data.columns[:-1]


# ---------------------------------------------------------------------------
# Public interface -- Discretizing tables
# ---------------------------------------------------------------------------


def bin_table(
    df: pl.DataFrame,
    nbins: int | None = None,
    labels: Sequence[str] | None = None,
    method: BinMethod | None = None,
    missing: MissingPolicy | None = None,
    target: str | None = None,
) -> DiscretizedTable:
    """Discretize every feature of a table with unsupervised binning.

    Args:
        df (pl.DataFrame): At least two columns.
        nbins (int | None): Number of bins per numeric feature.
        labels (Sequence[str] | None): Explicit bin labels shared by all cut features.
        method (BinMethod | None): `"length"`, `"content"` or `"clusters"`.
        missing (MissingPolicy | None): `"omit"` removes every row with a
            missing value in any column (one warning with the count);
            `"keep"` turns missing entries into an `"NA"` level.
        target (str | None): Target column; defaults to the last column.

    Returns:
        DiscretizedTable: The discretized table with the target moved last.

    Raises:
        UsageError: If `df` is not a DataFrame with at least two columns, the
            target column does not exist, or the binning arguments are invalid.
    """
    df, target, missing, issues = _prepare_frame(df, target, missing)
    target_series = _factorize_target(df[target], missing=missing, issues=issues)

    binned: list[pl.Series] = []
    boundaries: dict[str, BinBoundaries] = {}
    for name in df.columns[:-1]:
        result = bin_series(df[name], nbins=nbins, labels=labels, method=method, missing=missing)
        binned.append(result.series)
        issues.extend(result.issues)
        if result.boundaries is not None:
            boundaries[name] = result.boundaries

    return _finish(pl.DataFrame([*binned, target_series]), boundaries, issues)


def optbin_table(
    df: pl.DataFrame,
    target: str | None = None,
    method: OptimalBinMethod | None = None,
    missing: MissingPolicy | None = None,
) -> DiscretizedTable:
    """Discretize every feature of a table with cut points aligned to the target classes.

    Numeric features with more distinct values than there are target classes
    are cut into at most one bin per class; all other features get one level
    per distinct value.

    Args:
        df (pl.DataFrame): At least two columns.
        target (str | None): Target column; defaults to the last column.
        method (OptimalBinMethod | None): `"logreg"`, `"infogain"` or `"naive"`.
        missing (MissingPolicy | None): Missing-value policy, as in `bin_table`.

    Returns:
        DiscretizedTable: The discretized table with the target moved last.

    Raises:
        UsageError: If `df` is not a DataFrame with at least two columns, the
            target column does not exist, or fewer than two target classes occur.
    """
    df, target, missing, issues = _prepare_frame(df, target, missing)
    target_series = _factorize_target(df[target], missing=missing, issues=issues)
    target_series, dropped = columns.drop_unused_levels(target_series)
    if dropped:
        record_issue(
            issues,
            "unused_levels_dropped",
            f"Unused levels of target '{target}' dropped",
            columns=[target],
        )
    if len(columns.factor_levels(target_series)) < 2:
        raise UsageError("number of target levels must be bigger than 1")

    binned: list[pl.Series] = []
    boundaries: dict[str, BinBoundaries] = {}
    for name in df.columns[:-1]:
        result = optbin_series(df[name], target_series, method=method, missing=missing)
        binned.append(result.series)
        issues.extend(result.issues)
        if result.boundaries is not None:
            boundaries[name] = result.boundaries

    return _finish(pl.DataFrame([*binned, target_series]), boundaries, issues)


def preprocess(
    df: pl.DataFrame,
    target: str | None = None,
    strategy: Strategy = "bin",
    *,
    nbins: int | None = None,
    labels: Sequence[str] | None = None,
    method: BinMethod | OptimalBinMethod | None = None,
    missing: MissingPolicy | None = None,
) -> DiscretizedTable:
    """Discretize a table for rule learning with the chosen numeric strategy.

    Args:
        df (pl.DataFrame): The raw table.
        target (str | None): Target column; defaults to the last column.
        strategy (Strategy): `"bin"` for unsupervised binning (`bin_table`) or
            `"optbin"` for supervised binning (`optbin_table`).
        nbins (int | None): Number of bins; `"bin"` only.
        labels (Sequence[str] | None): Explicit bin labels; `"bin"` only.
        method (BinMethod | OptimalBinMethod | None): Method of the chosen strategy.
        missing (MissingPolicy | None): Missing-value policy.

    Returns:
        DiscretizedTable: The discretized table with the target moved last.

    Raises:
        UsageError: If `strategy` is unknown or an argument does not apply to it.
    """
    if strategy == "bin":
        return bin_table(
            df,
            nbins=nbins,
            labels=labels,
            method=method,  # type: ignore[arg-type]
            missing=missing,
            target=target,
        )
    if strategy == "optbin":
        if nbins is not None or labels is not None:
            raise UsageError("'nbins' and 'labels' do not apply to optimal binning")
        return optbin_table(df, target=target, method=method, missing=missing)  # type: ignore[arg-type]
    raise UsageError(f"Unknown strategy {strategy!r}; expected 'bin' or 'optbin'")


# ---------------------------------------------------------------------------
# Public interface -- Level housekeeping
# ---------------------------------------------------------------------------


def drop_unused_levels(df: pl.DataFrame) -> tuple[pl.DataFrame, list[str]]:
    """Re-level every Enum column of `df` to the levels that actually occur.

    Args:
        df (pl.DataFrame): Any DataFrame; non-Enum columns are left alone.

    Returns:
        tuple[pl.DataFrame, list[str]]: The re-levelled frame and the names of
            the columns that lost at least one level.
    """
    affected: list[str] = []
    replaced: list[pl.Series] = []
    for series in df.get_columns():
        if columns.is_factor(series):
            series, dropped = columns.drop_unused_levels(series)
            if dropped:
                affected.append(series.name)
        replaced.append(series)
    if not affected:
        return df, affected
    return pl.DataFrame(replaced), affected


def maxlevels(
    df: pl.DataFrame,
    maxlevels: int | None = None,
    missing: MissingPolicy | None = None,
) -> pl.DataFrame:
    """Remove categorical columns with more than `maxlevels` levels.

    Such columns (IDs, names, free text) tend to give a perfect but useless
    one-level-per-row rule. Numeric columns are left alone.

    Args:
        df (pl.DataFrame): The table to filter.
        maxlevels (int | None): Largest number of levels to keep; defaults to
            `OneRSettings.maxlevels`.
        missing (MissingPolicy | None): With `"keep"` a missing value counts
            as an extra level.

    Returns:
        pl.DataFrame: `df` without the high-cardinality columns.

    Raises:
        UsageError: If `df` is not a DataFrame or `maxlevels <= 2`.
    """
    settings = get_settings()
    maxlevels = settings.maxlevels if maxlevels is None else maxlevels
    missing = settings.missing if missing is None else missing
    if not isinstance(df, pl.DataFrame):
        raise UsageError(f"data must be a polars DataFrame, got {type(df).__name__}")
    if maxlevels <= 2:
        raise UsageError(f"maxlevels must be bigger than 2, got {maxlevels}")

    removed = [
        series.name
        for series in df.get_columns()
        if columns.classify_column(series.dtype) == "categorical"
        and len(columns.factor_levels(columns.to_factor(series, keep_missing=missing == "keep"))) > maxlevels
    ]
    if removed:
        logger.info("High-cardinality columns removed", columns=removed, maxlevels=maxlevels)
    return df.drop(removed)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _prepare_frame(
    df: pl.DataFrame,
    target: str | None,
    missing: MissingPolicy | None,
) -> tuple[pl.DataFrame, str, MissingPolicy, list[DataQualityIssue]]:
    """Validate a raw table, move the target last and apply the row-omission policy.

    Args:
        df (pl.DataFrame): The raw table.
        target (str | None): Target column, or `None` for the last column.
        missing (MissingPolicy | None): Missing-value policy, or `None` for the default.

    Returns:
        tuple[pl.DataFrame, str, MissingPolicy, list[DataQualityIssue]]: The
            reordered (and, under `"omit"`, filtered) frame, the target name,
            the resolved policy and the issues recorded so far.

    Raises:
        UsageError: If `df` is not a DataFrame with at least two columns.
        ColumnsNotFoundError: If `target` is not a column of `df`.
    """
    if not isinstance(df, pl.DataFrame):
        raise UsageError(f"data must be a polars DataFrame, got {type(df).__name__}")
    if df.width < 2:
        raise UsageError("data must have at least two columns")
    missing = get_settings().missing if missing is None else missing
    target = df.columns[-1] if target is None else target
    columns.validate_columns([target], df.columns)
    df = df.select([*(name for name in df.columns if name != target), target])

    issues: list[DataQualityIssue] = []
    if missing == "omit":
        dropped = np.zeros(df.height, dtype=bool)
        for series in df.get_columns():
            dropped |= columns.missing_mask(series)
        if dropped.any():
            record_issue(
                issues,
                "missing_rows_removed",
                f"{int(dropped.sum())} instance(s) removed due to missing values",
                count=int(dropped.sum()),
                columns=[series.name for series in df.get_columns() if columns.missing_mask(series).any()],
            )
            df = df.filter(pl.Series(~dropped))
    return df, target, missing, issues


def _factorize_target(series: pl.Series, *, missing: MissingPolicy, issues: list[DataQualityIssue]) -> pl.Series:
    """Turn the target into a categorical variable, never cutting it into intervals."""
    if columns.classify_column(series.dtype) == "numeric":
        record_issue(
            issues,
            "numeric_target_coerced",
            f"Target '{series.name}' is numeric and was converted to one class per distinct value",
            columns=[series.name],
        )
    return columns.to_factor(series, keep_missing=missing == "keep")


def _finish(
    df: pl.DataFrame,
    boundaries: dict[str, BinBoundaries],
    issues: list[DataQualityIssue],
) -> DiscretizedTable:
    """Drop unused levels, recording which columns were affected, and wrap the result."""
    df, affected = drop_unused_levels(df)
    if affected:
        record_issue(
            issues,
            "unused_levels_dropped",
            f"Unused factor levels dropped in {len(affected)} column(s)",
            count=len(affected),
            columns=affected,
        )
    logger.debug("Table discretized", rows=df.height, columns=df.columns, cut_columns=sorted(boundaries))
    return DiscretizedTable(data=df, boundaries=boundaries, issues=issues)
