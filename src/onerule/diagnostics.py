"""Recording of data-quality issues: attached to results, logged, and warned about."""

from __future__ import annotations

import warnings
from collections.abc import Iterable

from loguru import logger

from onerule.exceptions import DataQualityWarning
from onerule.models import DataQualityIssue, IssueKind


def record_issue(
    issues: list[DataQualityIssue],
    kind: IssueKind,
    message: str,
    *,
    count: int | None = None,
    columns: Iterable[str] = (),
) -> DataQualityIssue:
    """Append a new issue to `issues` and make it observable.

    Warning-severity issues are logged at WARNING and emitted as a
    `DataQualityWarning`; degenerate issues are logged at DEBUG only.

    Args:
        issues (list[DataQualityIssue]): Accumulator the issue is appended to.
        kind (IssueKind): Category of the issue.
        message (str): Human-readable description. Must not contain braces.
        count (int | None): Number of affected rows or items.
        columns (Iterable[str]): Names of the affected columns.

    Returns:
        DataQualityIssue: The recorded issue.
    """
    issue = DataQualityIssue(kind=kind, message=message, count=count, columns=list(columns))
    issues.append(issue)
    if issue.severity == "warning":
        logger.warning(message, kind=kind, count=count, columns=issue.columns)
        warnings.warn(message, DataQualityWarning, stacklevel=3)
    else:
        logger.debug(message, kind=kind, count=count, columns=issue.columns)
    return issue
