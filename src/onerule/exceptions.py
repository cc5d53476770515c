"""Custom exceptions and warnings for onerule.

Usage errors (subclass ValueError) abort the current call with no partial result:
- UsageError: Base class for every caller mistake. Catch this to handle any of them.
- ColumnsNotFoundError: Raised when requested columns do not exist in a DataFrame.
- MissingValuesError: Raised when missing values appear where they are not allowed.

Data-quality warnings (subclass UserWarning) never abort:
- DataQualityWarning: Emitted for removed rows, dropped levels, a coerced numeric
  target, or a chi-squared tie-break that fell back to the leftmost attribute.
"""

from __future__ import annotations


class UsageError(ValueError):
    """Raised when a function is called with arguments it cannot work with.

    Examples are fewer than two columns, fewer than two target levels, a bin
    count of one or less, or a label vector whose length differs from the
    number of bins.
    """


class ColumnsNotFoundError(UsageError):
    """Raised when requested columns do not exist in a DataFrame.

    Attributes:
        missing_columns (list[str]): Column names that were not found.
        available_columns (list[str]): Column names present in the DataFrame.

    Examples:
        >>> err = ColumnsNotFoundError(
        ...     missing_columns=["petal_width"],
        ...     available_columns=["sepal_length", "species"],
        ... )
        >>> err.missing_columns
        ['petal_width']
    """

    missing_columns: list[str]
    available_columns: list[str]

    def __init__(
        self,
        missing_columns: list[str],
        available_columns: list[str],
    ) -> None:
        """Initialize ColumnsNotFoundError.

        Args:
            missing_columns (list[str]): Column names not found in the DataFrame.
            available_columns (list[str]): Column names present in the DataFrame.
        """
        super().__init__(f"Columns not found in DataFrame: {sorted(missing_columns)}")
        self.missing_columns = missing_columns
        self.available_columns = available_columns


class MissingValuesError(UsageError):
    """Raised when an input contains missing values where none are allowed.

    Attributes:
        name (str): Name of the offending input, e.g. `"prediction"`.
        missing_count (int): Number of missing entries found.
    """

    name: str
    missing_count: int

    def __init__(self, name: str, missing_count: int) -> None:
        """Initialize MissingValuesError.

        Args:
            name (str): Name of the offending input.
            missing_count (int): Number of missing entries found.
        """
        super().__init__(f"{name} contains {missing_count} missing value(s)")
        self.name = name
        self.missing_count = missing_count


class DataQualityWarning(UserWarning):
    """Non-fatal signal about the data that was silently repaired.

    The same information is always recorded as a `DataQualityIssue` on the
    returned result, so callers can assert on it without capturing warnings.
    """
