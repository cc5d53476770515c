"""onerule: One-rule classification with unsupervised and optimal binning."""

from loguru import logger

from onerule.binning import BinnedColumn, bin_series
from onerule.config import OneRSettings, get_settings
from onerule.exceptions import (
    ColumnsNotFoundError,
    DataQualityWarning,
    MissingValuesError,
    UsageError,
)
from onerule.learner import one_r
from onerule.logging import PACKAGE_NAME, enable_logging
from onerule.models import (
    BinBoundaries,
    ContingencyTable,
    DataQualityIssue,
    EvaluationResult,
    FeatureRank,
    OneRModel,
)
from onerule.optimal import OptimalCut, optbin_series, optimal_cut
from onerule.prediction import UNSEEN_LABEL, eval_model, predict
from onerule.preprocessing import (
    DiscretizedTable,
    bin_table,
    drop_unused_levels,
    maxlevels,
    optbin_table,
    preprocess,
)

logger.disable(PACKAGE_NAME)  # noqa: RUF067 - Disable logging for the onerule module by default

__all__ = [
    "UNSEEN_LABEL",
    "BinBoundaries",
    "BinnedColumn",
    "ColumnsNotFoundError",
    "ContingencyTable",
    "DataQualityIssue",
    "DataQualityWarning",
    "DiscretizedTable",
    "EvaluationResult",
    "FeatureRank",
    "MissingValuesError",
    "OneRModel",
    "OneRSettings",
    "OptimalCut",
    "UsageError",
    "bin_series",
    "bin_table",
    "drop_unused_levels",
    "enable_logging",
    "eval_model",
    "get_settings",
    "maxlevels",
    "one_r",
    "optbin_series",
    "optbin_table",
    "optimal_cut",
    "predict",
    "preprocess",
]
