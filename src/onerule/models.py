"""Pydantic result models: bin boundaries, data-quality issues, OneR models and evaluations."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Literal

import numpy as np
import polars as pl
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator

from onerule.stats import ChiSquaredTest, chi_squared_test

# ---------------------------------------------------------------------------
# Public type aliases
# ---------------------------------------------------------------------------

type IssueKind = Literal[
    "missing_rows_removed",
    "unused_levels_dropped",
    "numeric_target_coerced",
    "chisq_fallback",
    "duplicate_cut_points",
    "empty_bins_collapsed",
    "logreg_fallback",
    "infogain_early_stop",
]

type IssueSeverity = Literal["warning", "degenerate"]

type CutMethod = Literal["length", "content", "clusters", "logreg", "infogain", "naive"]

_WARNING_KINDS: frozenset[str] = frozenset({
    "missing_rows_removed",
    "unused_levels_dropped",
    "numeric_target_coerced",
    "chisq_fallback",
})

# ---------------------------------------------------------------------------
# Public models
# ---------------------------------------------------------------------------


class DataQualityIssue(BaseModel):
    """A non-fatal condition met while binning, learning or predicting.

    Issues with `"warning"` severity describe something the caller most likely
    wants to know about (rows removed, levels dropped, a numeric target turned
    into classes). Issues with `"degenerate"` severity describe an internal
    fallback that kept the computation going, e.g. duplicate quantiles
    reducing the number of bins.

    Attributes:
        kind (IssueKind): Machine-readable category of the issue.
        message (str): Human-readable description.
        count (int | None): Number of affected rows or items, when meaningful.
        columns (list[str]): Names of the affected columns, when meaningful.
    """

    model_config = ConfigDict(frozen=True)

    kind: IssueKind = Field(description="Machine-readable category of the issue.")
    message: str = Field(description="Human-readable description of the issue.")
    count: int | None = Field(default=None, ge=0, description="Number of affected rows or items.")
    columns: list[str] = Field(default_factory=list, description="Names of the affected columns.")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def severity(self) -> IssueSeverity:
        """Return `"warning"` for caller-facing issues and `"degenerate"` for internal fallbacks.

        Returns:
            IssueSeverity: The severity derived from `kind`.
        """
        return "warning" if self.kind in _WARNING_KINDS else "degenerate"


class BinBoundaries(BaseModel):
    """Cut points partitioning the real line into right-closed intervals.

    With cut points `c1 < c2 < ... < c(k-1)` the bins are
    `(-inf, c1], (c1, c2], ..., (c(k-1), inf)`, so values outside the range
    seen at training time fall into the nearest outer bin.

    Attributes:
        cut_points (list[float]): Strictly increasing interior cut points.
        labels (list[str]): One unique label per bin, `len(cut_points) + 1` entries.
        method (CutMethod): The binning method that produced the cut points.

    Examples:
        >>> boundaries = BinBoundaries(cut_points=[2.5], labels=["low", "high"], method="naive")
        >>> boundaries.assign(np.array([1.0, 2.5, 9.0])).tolist()
        [0, 0, 1]
    """

    model_config = ConfigDict(frozen=True)

    cut_points: list[float] = Field(description="Strictly increasing interior cut points.")
    labels: list[str] = Field(description="One unique label per bin.")
    method: CutMethod = Field(description="Binning method that produced the cut points.")

    @field_validator("cut_points", mode="after")
    @classmethod
    def _validate_strictly_increasing(cls, value: list[float]) -> list[float]:
        """Validate that cut points are finite and strictly increasing.

        Args:
            value (list[float]): The cut points to validate.

        Returns:
            list[float]: The validated cut points, unchanged.

        Raises:
            ValueError: If any cut point is non-finite or the sequence is not strictly increasing.
        """
        if not all(math.isfinite(point) for point in value):
            raise ValueError("cut_points must be finite")
        if any(right <= left for left, right in zip(value, value[1:], strict=False)):
            raise ValueError(f"cut_points must be strictly increasing, got {value}")
        return value

    @model_validator(mode="after")
    def _validate_labels(self) -> BinBoundaries:
        """Validate that there is exactly one unique label per bin.

        Returns:
            BinBoundaries: The validated model instance.

        Raises:
            ValueError: If the label count differs from the bin count or labels repeat.
        """
        if len(self.labels) != len(self.cut_points) + 1:
            raise ValueError(f"expected {len(self.cut_points) + 1} labels, got {len(self.labels)}")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError(f"labels must be unique, got {self.labels}")
        return self

    @property
    def nbins(self) -> int:
        """Number of bins described by these boundaries."""
        return len(self.labels)

    def assign(self, values: np.ndarray) -> np.ndarray:
        """Return the bin index of every value, `-1` for NaN.

        Args:
            values (np.ndarray): 1-D float array.

        Returns:
            np.ndarray: Integer bin indices in `[0, nbins)`, or `-1` for missing values.
        """
        values = np.asarray(values, dtype=np.float64)
        indices = np.searchsorted(np.asarray(self.cut_points, dtype=np.float64), values, side="left")
        return np.where(np.isnan(values), -1, indices)


class ContingencyTable(BaseModel):
    """Feature-by-target count matrix.

    Attributes:
        feature_levels (list[str]): Row labels, one per feature level.
        target_levels (list[str]): Column labels, one per target level.
        counts (list[list[int]]): `counts[i][j]` is the number of rows with
            feature level `i` and target level `j`.
    """

    model_config = ConfigDict(frozen=True)

    feature_levels: list[str]
    target_levels: list[str]
    counts: list[list[int]]

    @model_validator(mode="after")
    def _validate_shape(self) -> ContingencyTable:
        """Validate that `counts` has one row per feature level and one column per target level.

        Returns:
            ContingencyTable: The validated model instance.

        Raises:
            ValueError: If the matrix shape does not match the level lists.
        """
        if len(self.counts) != len(self.feature_levels):
            raise ValueError(f"counts has {len(self.counts)} rows, expected {len(self.feature_levels)}")
        if any(len(row) != len(self.target_levels) for row in self.counts):
            raise ValueError(f"every counts row must have {len(self.target_levels)} entries")
        return self

    def to_numpy(self) -> np.ndarray:
        """Return the counts as a 2-D integer array."""
        return np.asarray(self.counts, dtype=np.int64).reshape(len(self.feature_levels), len(self.target_levels))

    def proportions(self) -> dict[str, list[float]]:
        """Return the target distribution within each feature level.

        Returns:
            dict[str, list[float]]: Maps each feature level to the proportions
                of the target levels (in `target_levels` order). Levels without
                observations map to all-NaN rows.
        """
        table = self.to_numpy().astype(np.float64)
        totals = table.sum(axis=1, keepdims=True)
        with np.errstate(invalid="ignore", divide="ignore"):
            shares = table / totals
        return {level: shares[i].tolist() for i, level in enumerate(self.feature_levels)}

    def to_frame(self, feature_name: str = "feature") -> pl.DataFrame:
        """Render the table as a DataFrame with one column per target level.

        Args:
            feature_name (str): Name of the leading column holding the feature
                levels; suffixed with `_` when it equals a target level.

        Returns:
            pl.DataFrame: The counts, one row per feature level.
        """
        table = self.to_numpy()
        columns = [pl.Series(_free_name(feature_name, self.target_levels), self.feature_levels, dtype=pl.String)]
        columns.extend(
            pl.Series(level, table[:, j], dtype=pl.Int64) for j, level in enumerate(self.target_levels)
        )
        return pl.DataFrame(columns)


class FeatureRank(BaseModel):
    """One row of the verbose attribute ranking produced by `one_r`.

    Attributes:
        rank (int): Rank by accuracy; equally accurate attributes share the lowest rank.
        feature (str): Attribute name.
        accuracy (float): Training accuracy of the attribute's majority-vote rules.
        chosen (bool): Whether this attribute became the model's feature.
    """

    model_config = ConfigDict(frozen=True)

    rank: int = Field(ge=1)
    feature: str
    accuracy: float = Field(ge=0.0, le=1.0)
    chosen: bool = False


class OneRModel(BaseModel):
    """A trained one-rule classifier.

    The model predicts the target from a single feature: every level of that
    feature maps to the target level that was most frequent for it at training
    time. If the feature was numeric, `boundaries` holds the training-time cut
    points so that new numeric values can be placed in the same bins.

    Attributes:
        target (str): Name of the target column.
        feature (str): Name of the chosen feature column.
        rules (dict[str, str]): Maps each training-time feature level to its
            majority target level.
        correct_instances (int): Training rows classified correctly by `rules`.
        total_instances (int): Training rows used.
        contingency_table (ContingencyTable): Feature-by-target counts of the
            chosen feature.
        boundaries (BinBoundaries | None): Cut points of the feature, if it was
            cut into intervals.
        ties_method (str): Tie-break policy used to choose the feature.
        feature_ranking (list[FeatureRank] | None): Every attribute with its
            accuracy, present when the model was learned with `verbose=True`.
        issues (list[DataQualityIssue]): Data-quality issues raised on the way.
    """

    model_config = ConfigDict(frozen=True)

    target: str
    feature: str
    rules: dict[str, str]
    correct_instances: int = Field(ge=0)
    total_instances: int = Field(ge=1)
    contingency_table: ContingencyTable
    boundaries: BinBoundaries | None = None
    ties_method: Literal["first", "chisq"] = "first"
    feature_ranking: list[FeatureRank] | None = None
    issues: list[DataQualityIssue] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_consistency(self) -> OneRModel:
        """Validate instance counts and rule keys against the contingency table.

        Returns:
            OneRModel: The validated model instance.

        Raises:
            ValueError: If more instances are correct than exist, or a rule refers
                to a level absent from the contingency table.
        """
        if self.correct_instances > self.total_instances:
            raise ValueError(
                f"correct_instances ({self.correct_instances}) exceeds total_instances ({self.total_instances})"
            )
        unknown_feature_levels = set(self.rules) - set(self.contingency_table.feature_levels)
        unknown_target_levels = set(self.rules.values()) - set(self.contingency_table.target_levels)
        if unknown_feature_levels or unknown_target_levels:
            raise ValueError(
                f"rules refer to levels missing from the contingency table: "
                f"{sorted(unknown_feature_levels | unknown_target_levels)}"
            )
        return self

    @property
    def accuracy(self) -> float:
        """Training accuracy, `correct_instances / total_instances`."""
        return self.correct_instances / self.total_instances

    def chi_squared_test(self) -> ChiSquaredTest | None:
        """Test the chosen feature and the target for independence.

        Returns:
            ChiSquaredTest | None: The test result, or `None` when the table is
                degenerate (a single feature or target level).
        """
        return chi_squared_test(self.contingency_table.to_numpy())


class EvaluationResult(BaseModel):
    """Performance of a set of predictions against the actual classes.

    Attributes:
        labels (list[str]): Union of predicted and actual classes, sorted; row and
            column order of the confusion matrix.
        confusion_matrix (list[list[int]]): Absolute counts, rows are
            predictions and columns are actual classes.
        correct_instances (int): Number of correct predictions.
        total_instances (int): Number of predictions.
        accuracy (float): `correct_instances / total_instances`.
        error_rate (float): `1 - accuracy`.
        base_rate (float): Accuracy of always predicting the most frequent actual class.
        error_rate_reduction (float): `(accuracy - base_rate) / (1 - base_rate)`.
            Negative when the predictions are worse than the base rate; NaN when
            the base rate is 1.
        p_value (float): One-sided exact binomial test p-value for the accuracy
            exceeding the base rate.
    """

    model_config = ConfigDict(frozen=True)

    labels: list[str]
    confusion_matrix: list[list[int]]
    correct_instances: int = Field(ge=0)
    total_instances: int = Field(ge=1)
    accuracy: float = Field(ge=0.0, le=1.0)
    error_rate: float = Field(ge=0.0, le=1.0)
    base_rate: float = Field(ge=0.0, le=1.0)
    error_rate_reduction: float
    p_value: float = Field(ge=0.0, le=1.0)

    @property
    def confusion_matrix_relative(self) -> list[list[float]]:
        """Confusion matrix as proportions of all predictions."""
        return (np.asarray(self.confusion_matrix, dtype=np.float64) / self.total_instances).tolist()

    def to_frame(self, *, relative: bool = False, margins: bool = True) -> pl.DataFrame:
        """Render the confusion matrix as a DataFrame.

        Args:
            relative (bool): Show proportions instead of counts.
            margins (bool): Append a `Sum` column and a `Sum` row.

        Returns:
            pl.DataFrame: A `Prediction` column followed by one column per actual
                class. A class named like a header gets its header suffixed with `_`.
        """
        matrix = np.asarray(self.confusion_matrix, dtype=np.float64)
        if relative:
            matrix = matrix / self.total_instances
        row_labels = list(self.labels)
        col_labels = list(self.labels)
        if margins:
            margin = _free_name("Sum", self.labels)
            matrix = np.column_stack([matrix, matrix.sum(axis=1)])
            matrix = np.vstack([matrix, matrix.sum(axis=0)])
            row_labels.append(margin)
            col_labels.append(margin)
        dtype = pl.Float64 if relative else pl.Int64
        columns = [pl.Series(_free_name("Prediction", col_labels), row_labels, dtype=pl.String)]
        columns.extend(
            pl.Series(label, matrix[:, j], dtype=pl.Float64).cast(dtype) for j, label in enumerate(col_labels)
        )
        return pl.DataFrame(columns)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _free_name(name: str, taken: Sequence[str]) -> str:
    """Return `name`, with underscores appended until it is not in `taken`."""
    while name in taken:
        name += "_"
    return name
