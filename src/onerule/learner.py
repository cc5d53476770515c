"""The OneR learner: pick the single attribute whose majority-vote rules classify best."""

from __future__ import annotations

from typing import NamedTuple

import numpy as np
import polars as pl
from loguru import logger

from onerule import columns
from onerule.config import TiesMethod, get_settings
from onerule.diagnostics import record_issue
from onerule.exceptions import UsageError
from onerule.logging import DIAGNOSTIC_LEVEL
from onerule.models import ContingencyTable, DataQualityIssue, FeatureRank, OneRModel
from onerule.preprocessing import DiscretizedTable, bin_table, drop_unused_levels
from onerule.stats import chi_squared_test


class _FeatureScore(NamedTuple):
    """Majority-vote outcome of one candidate attribute.

    Attributes:
        name (str): Attribute name.
        counts (np.ndarray): `(n_feature_levels, n_target_levels)` counts.
        correct (int): Rows whose actual class equals their level's majority class.
    """

    name: str
    counts: np.ndarray
    correct: int


# ---------------------------------------------------------------------------
# Public interface
# ---------------------------------------------------------------------------


def one_r(
    data: DiscretizedTable | pl.DataFrame,
    ties_method: TiesMethod | None = None,
    *,
    verbose: bool = False,
) -> OneRModel:
    """Learn a one-rule classifier.

    Every attribute is scored by how many training rows its majority-vote
    rules classify correctly, and the best one becomes the model. Within a
    level, equally frequent classes resolve to the one that comes first in
    the target's level order.

    Args:
        data (DiscretizedTable | pl.DataFrame): A discretized table (target
            last), or a raw DataFrame which is first discretized by
            `bin_table` with default settings.
        ties_method (TiesMethod | None): `"first"` picks the leftmost of
            equally accurate attributes; `"chisq"` picks the one with the
            smallest chi-squared p-value. Defaults to `OneRSettings.ties_method`.
        verbose (bool): Store the ranking of all attributes on the model and
            log it at the DIAGNOSTIC level.

    Returns:
        OneRModel: The trained model.

    Raises:
        UsageError: If the table has fewer than two columns, no rows, fewer
            than two target levels, or `ties_method` is unknown.

    Examples:
        >>> df = pl.DataFrame({"x": [1, 1, 1, 2, 2, 2], "y": ["A", "A", "B", "B", "B", "B"]})
        >>> model = one_r(df)
        >>> model.rules
        {'1': 'A', '2': 'B'}
        >>> model.correct_instances, model.total_instances
        (5, 6)
    """
    ties_method = get_settings().ties_method if ties_method is None else ties_method
    if ties_method not in {"first", "chisq"}:
        raise UsageError(f"Unknown ties_method {ties_method!r}; expected 'first' or 'chisq'")
    if isinstance(data, pl.DataFrame):
        data = bin_table(data)
    elif not isinstance(data, DiscretizedTable):
        raise UsageError(f"data must be a DiscretizedTable or a polars DataFrame, got {type(data).__name__}")

    df = data.data
    if df.width < 2:
        raise UsageError("data must have at least two columns")
    if df.height == 0:
        raise UsageError("data contains no instances")

    issues: list[DataQualityIssue] = list(data.issues)
    df = pl.DataFrame([_as_factor(series) for series in df.get_columns()])
    df, affected = drop_unused_levels(df)
    if affected:
        record_issue(
            issues,
            "unused_levels_dropped",
            f"Unused factor levels dropped in {len(affected)} column(s)",
            count=len(affected),
            columns=affected,
        )

    target = df[df.columns[-1]]
    target_levels = columns.factor_levels(target)
    if len(target_levels) < 2:
        raise UsageError("number of target levels must be bigger than 1")
    target_codes = columns.factor_codes(target)

    scores = [_score_feature(df[name], target_codes, len(target_levels)) for name in df.columns[:-1]]
    winner = _select_feature(scores, ties_method, issues=issues)

    feature_levels = columns.factor_levels(df[winner.name])
    majority = winner.counts.argmax(axis=1)
    observed = winner.counts.sum(axis=1) > 0
    model = OneRModel(
        target=target.name,
        feature=winner.name,
        rules={feature_levels[i]: target_levels[majority[i]] for i in np.flatnonzero(observed)},
        correct_instances=winner.correct,
        total_instances=df.height,
        contingency_table=ContingencyTable(
            feature_levels=feature_levels,
            target_levels=target_levels,
            counts=winner.counts.tolist(),
        ),
        boundaries=data.boundaries.get(winner.name),
        ties_method=ties_method,
        feature_ranking=_rank_features(scores, winner.name, df.height) if verbose else None,
        issues=issues,
    )
    logger.info(
        "OneR model learned",
        feature=model.feature,
        correct=model.correct_instances,
        total=model.total_instances,
    )
    return model


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _as_factor(series: pl.Series) -> pl.Series:
    """Return `series` as a null-free Enum, mapping missing values to the `"NA"` level."""
    if columns.is_factor(series) and series.null_count() == 0:
        return series
    return columns.to_factor(series, keep_missing=True)


def _score_feature(feature: pl.Series, target_codes: np.ndarray, n_target_levels: int) -> _FeatureScore:
    """Build the contingency table of one attribute and count its correct majority votes.

    Args:
        feature (pl.Series): Null-free Enum attribute.
        target_codes (np.ndarray): Target level index per row.
        n_target_levels (int): Number of target levels.

    Returns:
        _FeatureScore: The counts and the number of correctly classified rows.
    """
    counts = np.zeros((len(columns.factor_levels(feature)), n_target_levels), dtype=np.int64)
    np.add.at(counts, (columns.factor_codes(feature), target_codes), 1)
    return _FeatureScore(name=feature.name, counts=counts, correct=int(counts.max(axis=1).sum()))


def _select_feature(
    scores: list[_FeatureScore],
    ties_method: TiesMethod,
    *,
    issues: list[DataQualityIssue],
) -> _FeatureScore:
    """Pick the attribute with the most correct rows, breaking ties by `ties_method`.

    Args:
        scores (list[_FeatureScore]): One score per attribute, in column order.
        ties_method (TiesMethod): `"first"` or `"chisq"`.
        issues (list[DataQualityIssue]): Accumulator for the chi-squared fallback issue.

    Returns:
        _FeatureScore: The winning attribute.
    """
    best = max(score.correct for score in scores)
    tied = [score for score in scores if score.correct == best]
    if len(tied) == 1 or ties_method == "first":
        return tied[0]

    p_values = []
    for score in tied:
        test = chi_squared_test(score.counts)
        p_values.append(np.inf if test is None else test.p_value)
        logger.debug("Chi-squared tie-break", feature=score.name, p_value=p_values[-1])
    if np.all(np.isinf(p_values)):
        record_issue(
            issues,
            "chisq_fallback",
            f"Chi-squared test undefined for all {len(tied)} tied attributes; using the leftmost one",
            count=len(tied),
            columns=[score.name for score in tied],
        )
        return tied[0]
    return tied[int(np.argmin(p_values))]


def _rank_features(scores: list[_FeatureScore], chosen: str, total: int) -> list[FeatureRank]:
    """Rank all attributes by accuracy and log the ranking.

    Equally accurate attributes keep their column order and share the lowest rank.
    """
    ordered = sorted(scores, key=lambda score: -score.correct)
    ranking = [
        FeatureRank(
            rank=1 + sum(other.correct > score.correct for other in scores),
            feature=score.name,
            accuracy=score.correct / total,
            chosen=score.name == chosen,
        )
        for score in ordered
    ]
    for row in ranking:
        logger.log(
            DIAGNOSTIC_LEVEL,
            "Attribute ranking",
            rank=row.rank,
            feature=row.feature,
            accuracy=round(row.accuracy, 4),
            chosen=row.chosen,
        )
    return ranking
