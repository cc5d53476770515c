"""Applying a OneR model to new data, and scoring predictions against actual classes."""

from __future__ import annotations

import math
from collections.abc import Sequence
from typing import Final, Literal

import numpy as np
import polars as pl
from loguru import logger

from onerule import columns
from onerule.binning import apply_boundaries
from onerule.exceptions import ColumnsNotFoundError, MissingValuesError, UsageError
from onerule.models import EvaluationResult, OneRModel
from onerule.stats import binomial_test_greater

type PredictionType = Literal["class", "prob"]

UNSEEN_LABEL: Final[str] = "UNSEEN"

# ---------------------------------------------------------------------------
# Public interface -- Prediction
# ---------------------------------------------------------------------------


def predict(
    model: OneRModel,
    newdata: pl.DataFrame,
    type: PredictionType = "class",  # noqa: A002
) -> pl.Series | pl.DataFrame:
    """Predict the target for every row of `newdata`.

    Numeric values of a feature that was cut into intervals at training time
    are placed with the stored cut points, so values outside the training
    range fall into the outer bins. Levels without a training-time rule are
    unseen: they get `"UNSEEN"` as class and an all-null probability row.

    Args:
        model (OneRModel): The trained model.
        newdata (pl.DataFrame): Any table holding the model's feature column.
        type (PredictionType): `"class"` for labels, `"prob"` for the class
            distribution of each row's level.

    Returns:
        pl.Series | pl.DataFrame: With `"class"`, a String series named after
            the target. With `"prob"`, one Float64 column per target level.

    Raises:
        UsageError: If `newdata` is not a DataFrame or `type` is unknown.
        ColumnsNotFoundError: If the feature column is absent from `newdata`.
    """
    if not isinstance(newdata, pl.DataFrame):
        raise UsageError(f"newdata must be a polars DataFrame, got {newdata.__class__.__name__}")
    if type not in {"class", "prob"}:
        raise UsageError(f"Unknown prediction type {type!r}; expected 'class' or 'prob'")
    if model.feature not in newdata.columns:
        raise ColumnsNotFoundError(missing_columns=[model.feature], available_columns=newdata.columns)

    levels = _feature_levels(newdata[model.feature], model)
    unseen = sum(level not in model.rules for level in levels)
    logger.debug("Prediction", feature=model.feature, rows=len(levels), unseen=unseen, type=type)

    if type == "class":
        return pl.Series(model.target, [model.rules.get(level, UNSEEN_LABEL) for level in levels], dtype=pl.String)

    proportions = model.contingency_table.proportions()
    missing_row = [None] * len(model.contingency_table.target_levels)
    rows = [proportions[level] if level in model.rules else missing_row for level in levels]
    return pl.DataFrame(
        [
            pl.Series(target_level, [row[j] for row in rows], dtype=pl.Float64)
            for j, target_level in enumerate(model.contingency_table.target_levels)
        ]
    )


# ---------------------------------------------------------------------------
# Public interface -- Evaluation
# ---------------------------------------------------------------------------


def eval_model(
    prediction: pl.Series | Sequence[object],
    actual: pl.Series | pl.DataFrame | Sequence[object],
) -> EvaluationResult:
    """Compare predicted with actual classes.

    The confusion matrix is built over the sorted union of predicted and
    actual classes, so a class occurring on one side only gets a zero row or
    column. The error-rate reduction is measured against always predicting the
    most frequent actual class and is negative when the predictions are worse
    than that.

    Args:
        prediction (pl.Series | Sequence[object]): Predicted classes, e.g. from `predict`.
        actual (pl.Series | pl.DataFrame | Sequence[object]): Actual classes;
            for a DataFrame the last column is used. Missing values become
            the class `"NA"`.

    Returns:
        EvaluationResult: Confusion matrix and performance figures.

    Raises:
        MissingValuesError: If `prediction` contains missing values.
        UsageError: If the inputs differ in length or are empty.

    Examples:
        >>> result = eval_model(["A", "A", "B", "B", "B", "B"], ["A", "A", "B", "B", "B", "A"])
        >>> round(result.accuracy, 3)
        0.833
    """
    predicted = prediction if isinstance(prediction, pl.Series) else pl.Series("prediction", list(prediction))
    if isinstance(actual, pl.DataFrame):
        actual = actual[actual.columns[-1]]
    elif not isinstance(actual, pl.Series):
        actual = pl.Series("actual", list(actual))

    missing_count = int(columns.missing_mask(predicted).sum())
    if missing_count:
        raise MissingValuesError(name="prediction", missing_count=missing_count)
    if predicted.len() != actual.len():
        raise UsageError(f"prediction has {predicted.len()} entries but actual has {actual.len()}")
    if predicted.len() == 0:
        raise UsageError("prediction and actual are empty")

    predicted_labels = _as_labels(predicted)
    actual_labels = _as_labels(actual)
    labels = sorted(set(predicted_labels) | set(actual_labels))
    index = {label: i for i, label in enumerate(labels)}
    matrix = np.zeros((len(labels), len(labels)), dtype=np.int64)
    np.add.at(
        matrix,
        (
            np.array([index[label] for label in predicted_labels]),
            np.array([index[label] for label in actual_labels]),
        ),
        1,
    )

    total = len(predicted_labels)
    correct = int(np.trace(matrix))
    accuracy = correct / total
    base_rate = float(matrix.sum(axis=0).max()) / total
    error_rate_reduction = math.nan if base_rate == 1.0 else (accuracy - base_rate) / (1.0 - base_rate)
    result = EvaluationResult(
        labels=labels,
        confusion_matrix=matrix.tolist(),
        correct_instances=correct,
        total_instances=total,
        accuracy=accuracy,
        error_rate=1.0 - accuracy,
        base_rate=base_rate,
        error_rate_reduction=error_rate_reduction,
        p_value=binomial_test_greater(correct, total, base_rate),
    )
    logger.info(
        "Model evaluated",
        accuracy=round(result.accuracy, 4),
        base_rate=round(result.base_rate, 4),
        p_value=result.p_value,
    )
    return result


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _feature_levels(series: pl.Series, model: OneRModel) -> list[str]:
    """Render every value of the feature column as the level label it had at training time.

    Args:
        series (pl.Series): The feature column of the new data.
        model (OneRModel): The trained model.

    Returns:
        list[str]: One level label per row; missing values map to `"NA"`.
    """
    if columns.classify_column(series.dtype) == "numeric":
        values = columns.numeric_values(series)
        if model.boundaries is not None:
            labels = apply_boundaries(values, model.boundaries)
        else:
            labels = [None if np.isnan(value) else columns.format_number(value) for value in values]
    else:
        labels = series.cast(pl.String).to_list()
    return [columns.MISSING_LABEL if label is None else label for label in labels]


def _as_labels(series: pl.Series) -> list[str]:
    """Render a class column as text labels, `"NA"` for missing values."""
    if columns.classify_column(series.dtype) == "numeric":
        return [
            columns.MISSING_LABEL if np.isnan(value) else columns.format_number(value)
            for value in columns.numeric_values(series)
        ]
    return series.cast(pl.String).fill_null(columns.MISSING_LABEL).to_list()
