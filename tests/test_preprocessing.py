"""Tests for table-level preprocessing: bin_table, optbin_table, preprocess and level housekeeping."""

from __future__ import annotations

import numpy as np
import polars as pl
import pytest
from pytest_check import check

from onerule.columns import MISSING_LABEL, factor_levels, is_factor
from onerule.exceptions import ColumnsNotFoundError, DataQualityWarning, UsageError
from onerule.preprocessing import (
    DiscretizedTable,
    bin_table,
    drop_unused_levels,
    maxlevels,
    optbin_table,
    preprocess,
)


class TestBinTable:
    """Tests for bin_table: discretizing every feature with unsupervised binning."""

    def test_every_column_becomes_a_factor_with_target_last(self) -> None:
        """All columns are Enums; a named target is moved to the last position."""
        # Arrange
        df = _make_iris_like_frame().select("species", "petal_length", "colour")

        # Act
        table = bin_table(df, nbins=3, target="species")

        # Assert
        with check:
            assert table.data.columns == ["petal_length", "colour", "species"]
        with check:
            assert all(is_factor(series) for series in table.data.get_columns())
        with check:
            assert table.target == "species"
        with check:
            assert table.features == ["petal_length", "colour"]

    def test_numeric_features_record_boundaries(self) -> None:
        """Numeric features cut into intervals keep their cut points; others do not."""
        # Act
        table = bin_table(_make_iris_like_frame(), nbins=3, method="length")

        # Assert
        with check:
            assert set(table.boundaries) == {"petal_length"}
        with check:
            assert table.boundaries["petal_length"].nbins == 3
        with check:
            assert factor_levels(table.data["petal_length"]) == table.boundaries["petal_length"].labels

    def test_target_is_never_binned(self) -> None:
        """A numeric target gets one class per distinct value and a warning."""
        # Arrange
        df = pl.DataFrame({"x": ["a", "b", "a", "b", "c", "c", "a"], "y": [1, 2, 3, 4, 5, 6, 7]})

        # Act
        with pytest.warns(DataQualityWarning, match="numeric"):
            table = bin_table(df, nbins=2)

        # Assert
        with check:
            assert factor_levels(table.data["y"]) == ["1", "2", "3", "4", "5", "6", "7"]
        with check:
            assert [issue.kind for issue in table.issues] == ["numeric_target_coerced"]

    def test_omit_removes_rows_missing_in_any_column_once(self) -> None:
        """Rows with a missing value in any column are removed up front with a single issue."""
        # Arrange
        df = pl.DataFrame({
            "height": [1.0, None, 3.0, 4.0, 5.0, 6.0, 7.0],
            "colour": ["red", "blue", None, "red", "blue", "red", "blue"],
            "label": ["a", "a", "b", "b", "a", "b", None],
        })

        # Act
        with pytest.warns(DataQualityWarning, match="3 instance"):
            table = bin_table(df, nbins=2, missing="omit")

        # Assert
        missing_issues = [issue for issue in table.issues if issue.kind == "missing_rows_removed"]
        with check:
            assert table.data.height == 4
        with check:
            assert len(missing_issues) == 1
        with check:
            assert missing_issues[0].count == 3
        with check:
            assert missing_issues[0].columns == ["height", "colour", "label"]

    def test_keep_maps_missing_values_to_na_level(self) -> None:
        """With the keep policy no row is removed and missing entries become 'NA'."""
        # Arrange
        df = pl.DataFrame({
            "colour": ["red", None, "blue", "red"],
            "label": ["a", "b", None, "a"],
        })

        # Act
        table = bin_table(df, missing="keep")

        # Assert
        with check:
            assert table.data.height == 4
        with check:
            assert factor_levels(table.data["colour"]) == ["blue", "red", MISSING_LABEL]
        with check:
            assert factor_levels(table.data["label"]) == ["a", "b", MISSING_LABEL]
        with check:
            assert table.issues == []

    def test_unused_enum_levels_are_dropped_with_warning(self) -> None:
        """Declared but unused Enum levels are removed and the affected columns reported."""
        # Arrange
        df = pl.DataFrame({
            "size": pl.Series(["small", "large", "small"], dtype=pl.Enum(["small", "medium", "large"])),
            "label": ["a", "b", "a"],
        })

        # Act
        with pytest.warns(DataQualityWarning, match="Unused factor levels"):
            table = bin_table(df)

        # Assert
        with check:
            assert factor_levels(table.data["size"]) == ["small", "large"]
        with check:
            assert table.issues[-1].kind == "unused_levels_dropped"
        with check:
            assert table.issues[-1].columns == ["size"]

    @pytest.mark.parametrize(
        ("df", "error", "match"),
        [
            (pl.DataFrame({"y": ["a", "b"]}), UsageError, "at least two columns"),
            (pl.DataFrame({"x": [1, 2], "y": ["a", "b"]}).to_dict(), UsageError, "polars DataFrame"),
        ],
        ids=["single-column", "not-a-frame"],
    )
    def test_invalid_tables_raise(self, df: object, error: type[Exception], match: str) -> None:
        """Tables bin_table cannot work with raise UsageError.

        Args:
            df (object): The invalid input.
            error (type[Exception]): Expected exception type.
            match (str): Expected fragment of the error message.
        """
        with pytest.raises(error, match=match):
            bin_table(df)  # type: ignore[arg-type]

    def test_unknown_target_raises_columns_not_found(self) -> None:
        """Naming a target that is not a column raises ColumnsNotFoundError."""
        with pytest.raises(ColumnsNotFoundError) as exc_info:
            bin_table(_make_iris_like_frame(), target="genus")

        assert exc_info.value.missing_columns == ["genus"]


class TestOptbinTable:
    """Tests for optbin_table: supervised binning of every feature."""

    def test_numeric_feature_cut_into_at_most_one_bin_per_class(self) -> None:
        """Numeric features get at most K bins for a K-class target."""
        # Act
        table = optbin_table(_make_iris_like_frame(), method="naive")

        # Assert
        with check:
            assert set(table.boundaries) == {"petal_length"}
        with check:
            assert len(factor_levels(table.data["petal_length"])) <= 3
        with check:
            assert table.boundaries["petal_length"].method == "naive"

    def test_single_class_target_raises(self) -> None:
        """Supervised binning needs at least two target classes."""
        # Arrange
        df = pl.DataFrame({"x": [1.0, 2.0, 3.0], "y": ["a", "a", "a"]})

        # Act & Assert
        with pytest.raises(UsageError, match="bigger than 1"):
            optbin_table(df)

    def test_unused_target_levels_dropped_before_counting_classes(self) -> None:
        """A declared but unused target level is dropped with a warning and is not a class."""
        # Arrange
        df = pl.DataFrame({
            "x": [1.0, 2.0, 3.0, 7.0, 8.0, 9.0],
            "y": pl.Series(["a", "a", "a", "b", "b", "b"], dtype=pl.Enum(["a", "b", "c"])),
        })

        # Act
        with pytest.warns(DataQualityWarning, match="Unused levels of target"):
            table = optbin_table(df, method="naive")

        # Assert
        with check:
            assert factor_levels(table.data["y"]) == ["a", "b"]
        with check:
            assert table.boundaries["x"].cut_points == pytest.approx([5.0])


class TestPreprocess:
    """Tests for preprocess: strategy dispatch."""

    def test_bin_strategy_matches_bin_table(self) -> None:
        """The 'bin' strategy gives the same result as bin_table."""
        # Arrange
        df = _make_iris_like_frame()

        # Act
        table = preprocess(df, strategy="bin", nbins=3)

        # Assert
        assert table.data.equals(bin_table(df, nbins=3).data)

    def test_optbin_strategy_matches_optbin_table(self) -> None:
        """The 'optbin' strategy gives the same result as optbin_table."""
        # Arrange
        df = _make_iris_like_frame()

        # Act
        table = preprocess(df, strategy="optbin", method="infogain")

        # Assert
        with check:
            assert isinstance(table, DiscretizedTable)
        with check:
            assert table.data.equals(optbin_table(df, method="infogain").data)

    def test_unknown_strategy_raises(self) -> None:
        """Strategies other than 'bin' and 'optbin' are rejected."""
        with pytest.raises(UsageError, match="Unknown strategy"):
            preprocess(_make_iris_like_frame(), strategy="tree")  # type: ignore[arg-type]

    def test_nbins_with_optbin_raises(self) -> None:
        """The bin count is fixed by the number of classes under optimal binning."""
        with pytest.raises(UsageError, match="do not apply"):
            preprocess(_make_iris_like_frame(), strategy="optbin", nbins=4)


class TestDropUnusedLevels:
    """Tests for the table-level drop_unused_levels."""

    def test_reports_affected_columns_only(self) -> None:
        """Only Enum columns that lost a level are reported; other columns are untouched."""
        # Arrange
        df = pl.DataFrame({
            "a": pl.Series(["x", "y"], dtype=pl.Enum(["x", "y", "z"])),
            "b": pl.Series(["p", "q"], dtype=pl.Enum(["p", "q"])),
            "c": [1.0, 2.0],
        })

        # Act
        result, affected = drop_unused_levels(df)

        # Assert
        with check:
            assert affected == ["a"]
        with check:
            assert factor_levels(result["a"]) == ["x", "y"]
        with check:
            assert result["c"].to_list() == [1.0, 2.0]


class TestMaxlevels:
    """Tests for maxlevels: removing high-cardinality categorical columns."""

    def test_removes_identifier_like_columns(self) -> None:
        """Categorical columns with more levels than allowed are removed; numeric columns stay."""
        # Arrange
        df = pl.DataFrame({
            "customer_id": [f"C-{i:03d}" for i in range(30)],
            "segment": ["retail", "business", "public"] * 10,
            "spend": np.linspace(10.0, 300.0, 30),
            "churned": ["yes", "no"] * 15,
        })

        # Act
        result = maxlevels(df, maxlevels=20)

        # Assert
        assert result.columns == ["segment", "spend", "churned"]

    def test_keep_counts_missing_as_a_level(self) -> None:
        """With the keep policy a missing value adds one level to the count."""
        # Arrange
        df = pl.DataFrame({"grade": ["a", "b", "c", None], "y": ["p", "q", "p", "q"]})

        # Act
        kept = maxlevels(df, maxlevels=3, missing="omit")
        removed = maxlevels(df, maxlevels=3, missing="keep")

        # Assert
        with check:
            assert kept.columns == ["grade", "y"]
        with check:
            assert removed.columns == ["y"]

    def test_maxlevels_at_most_two_raises(self) -> None:
        """A ceiling of two or fewer levels is rejected."""
        with pytest.raises(UsageError, match="bigger than 2"):
            maxlevels(_make_iris_like_frame(), maxlevels=2)


def _make_iris_like_frame() -> pl.DataFrame:
    """Return a small three-class table with one numeric and one categorical feature."""
    return pl.DataFrame({
        "petal_length": [1.4, 1.3, 1.5, 1.7, 4.5, 4.7, 3.9, 4.0, 6.0, 5.9, 5.1, 6.6],
        "colour": ["white", "white", "pink", "white", "blue", "blue", "pink", "blue", "blue", "purple", "pink", "blue"],
        "species": ["setosa"] * 4 + ["versicolor"] * 4 + ["virginica"] * 4,
    })
