"""Tests for column handling: kind classification, factor conversion, missing values and labels."""

from __future__ import annotations

import datetime
import warnings

import numpy as np
import polars as pl
import pytest
from pytest_check import check

from onerule.columns import (
    MISSING_LABEL,
    classify_column,
    drop_unused_levels,
    factor_codes,
    factor_levels,
    format_number,
    interval_labels,
    missing_mask,
    observed_levels,
    to_factor,
    validate_columns,
)
from onerule.exceptions import ColumnsNotFoundError, UsageError


class TestClassifyColumn:
    """Tests for classify_column: numeric versus categorical dtypes."""

    @pytest.mark.parametrize(
        "dtype",
        [pl.Int8, pl.Int32, pl.Int64, pl.UInt16, pl.Float32, pl.Float64],
    )
    def test_numeric_types_return_numeric(self, dtype: pl.DataType) -> None:
        """Integer and float dtypes should classify as 'numeric'.

        Args:
            dtype (pl.DataType): A Polars numeric dtype to classify.
        """
        # Act
        kind = classify_column(dtype)

        # Assert
        assert kind == "numeric"

    @pytest.mark.parametrize(
        "dtype",
        [pl.String, pl.Categorical, pl.Enum(["a", "b"]), pl.Boolean, pl.Date, pl.Datetime("us")],
    )
    def test_text_like_types_return_categorical(self, dtype: pl.DataType) -> None:
        """Strings, booleans, enums and temporal dtypes should classify as 'categorical'.

        Args:
            dtype (pl.DataType): A Polars non-numeric dtype to classify.
        """
        # Act
        kind = classify_column(dtype)

        # Assert
        assert kind == "categorical"

    def test_nested_type_raises_usage_error(self) -> None:
        """List columns cannot be turned into a categorical variable."""
        with pytest.raises(UsageError, match="Unsupported column dtype"):
            classify_column(pl.List(pl.Int64))


class TestMissingMask:
    """Tests for missing_mask: nulls and float NaN."""

    def test_float_nan_and_null_are_missing(self) -> None:
        """Both null and NaN count as missing in a float column."""
        # Arrange
        series = pl.Series("x", [1.0, None, float("nan"), 4.0])

        # Act
        mask = missing_mask(series)

        # Assert
        assert mask.tolist() == [False, True, True, False]

    def test_string_nulls_are_missing(self) -> None:
        """Nulls in a string column are missing; empty strings are not."""
        # Act
        mask = missing_mask(pl.Series("s", ["a", None, ""]))

        # Assert
        assert mask.tolist() == [False, True, False]


class TestFormatNumber:
    """Tests for format_number: rendering numeric values as level labels."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1.0, "1"), (0.25, "0.25"), (-3.5, "-3.5"), (-0.0, "0"), (1e20, "1e+20")],
    )
    def test_renders_shortest_form(self, value: float, expected: str) -> None:
        """Whole numbers drop the decimal point and negative zero folds into zero.

        Args:
            value (float): The value to render.
            expected (str): The expected label.
        """
        assert format_number(value) == expected


class TestToFactor:
    """Tests for to_factor: converting columns into Enum series."""

    def test_numeric_levels_sorted_numerically(self) -> None:
        """Numeric levels follow numeric order, not text order."""
        # Arrange
        series = pl.Series("x", [10, 2, 1, 2])

        # Act
        factor = to_factor(series, keep_missing=False)

        # Assert
        with check:
            assert factor_levels(factor) == ["1", "2", "10"]
        with check:
            assert factor.cast(pl.String).to_list() == ["10", "2", "1", "2"]

    def test_string_levels_sorted_lexically(self) -> None:
        """String levels are sorted by their text."""
        # Act
        factor = to_factor(pl.Series("s", ["pear", "apple", "fig"]), keep_missing=False)

        # Assert
        assert factor_levels(factor) == ["apple", "fig", "pear"]

    def test_existing_enum_order_is_kept(self) -> None:
        """An Enum keeps its declared level order, including unused levels."""
        # Arrange
        series = pl.Series("size", ["large", "small"], dtype=pl.Enum(["small", "medium", "large"]))

        # Act
        factor = to_factor(series, keep_missing=False)

        # Assert
        assert factor_levels(factor) == ["small", "medium", "large"]

    def test_keep_missing_appends_na_level_last(self) -> None:
        """Missing values become an 'NA' level appended after all other levels."""
        # Act
        factor = to_factor(pl.Series("s", ["b", None, "a"]), keep_missing=True)

        # Assert
        with check:
            assert factor_levels(factor) == ["a", "b", MISSING_LABEL]
        with check:
            assert factor.null_count() == 0

    def test_omit_missing_keeps_nulls(self) -> None:
        """Without keep_missing, nulls stay null and no 'NA' level exists."""
        # Act
        factor = to_factor(pl.Series("s", ["b", None, "a"]), keep_missing=False)

        # Assert
        with check:
            assert factor_levels(factor) == ["a", "b"]
        with check:
            assert factor.null_count() == 1

    def test_boolean_and_date_columns_become_text_levels(self) -> None:
        """Booleans and dates are factorized through their text representation."""
        # Act
        booleans = to_factor(pl.Series("b", [True, False, True]), keep_missing=False)
        dates = to_factor(
            pl.Series("d", [datetime.date(2024, 2, 1), datetime.date(2024, 1, 1)]),
            keep_missing=False,
        )

        # Assert
        with check:
            assert factor_levels(booleans) == ["false", "true"]
        with check:
            assert factor_levels(dates) == ["2024-01-01", "2024-02-01"]


class TestLevelHelpers:
    """Tests for factor_codes, observed_levels and drop_unused_levels."""

    def test_codes_follow_level_order(self) -> None:
        """Codes are indices into the level list."""
        # Arrange
        factor = pl.Series("s", ["b", "a", "c"], dtype=pl.Enum(["c", "b", "a"]))

        # Act
        codes = factor_codes(factor)

        # Assert
        assert codes.tolist() == [1, 2, 0]

    def test_factor_levels_read_from_enum_dtype(self) -> None:
        """Levels come back in Enum order, including unused ones, without deprecation warnings."""
        # Arrange
        factor = pl.Series("s", ["b"], dtype=pl.Enum(["c", "b", "a"]))

        # Act
        with warnings.catch_warnings():
            warnings.simplefilter("error", DeprecationWarning)
            levels = factor_levels(factor)

        # Assert
        assert levels == ["c", "b", "a"]

    def test_drop_unused_levels_keeps_order_of_used_levels(self) -> None:
        """Unused levels are removed and the remaining levels keep their relative order."""
        # Arrange
        factor = pl.Series("s", ["c", "a", "c"], dtype=pl.Enum(["a", "b", "c"]))

        # Act
        dropped, changed = drop_unused_levels(factor)

        # Assert
        with check:
            assert changed is True
        with check:
            assert factor_levels(dropped) == ["a", "c"]
        with check:
            assert observed_levels(factor) == ["a", "c"]

    def test_drop_unused_levels_noop_when_all_used(self) -> None:
        """A fully used Enum is returned unchanged."""
        # Arrange
        factor = pl.Series("s", ["a", "b"], dtype=pl.Enum(["a", "b"]))

        # Act
        dropped, changed = drop_unused_levels(factor)

        # Assert
        with check:
            assert changed is False
        with check:
            assert dropped.equals(factor)


class TestIntervalLabels:
    """Tests for interval_labels: right-closed interval labels."""

    def test_outer_edges_widen_observed_range(self) -> None:
        """Outer edges extend the observed range by 0.1% of its span."""
        # Act
        labels = interval_labels([4.0, 7.0], np.array([1.0, 5.0, 11.0]))

        # Assert
        assert labels == ["(0.99,4]", "(4,7]", "(7,11]"]

    def test_precision_increases_until_unique(self) -> None:
        """Cut points that coincide at 3 significant digits get more digits."""
        # Act
        labels = interval_labels([1.0001, 1.0002], np.array([1.0, 1.00015, 1.0003]))

        # Assert
        with check:
            assert len(set(labels)) == 3
        with check:
            assert all(label.startswith("(") and label.endswith("]") for label in labels)


class TestValidateColumns:
    """Tests for validate_columns."""

    def test_missing_column_raises(self) -> None:
        """Absent columns raise ColumnsNotFoundError carrying the available names."""
        with pytest.raises(ColumnsNotFoundError) as exc_info:
            validate_columns(["target"], ["a", "b"])

        with check:
            assert exc_info.value.missing_columns == ["target"]
        with check:
            assert exc_info.value.available_columns == ["a", "b"]
