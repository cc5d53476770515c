"""Opt-in loguru logging for onerule.

The package logs through loguru but stays silent until a caller runs
``enable_logging()``. Records are emitted at four levels:

- DEBUG: cut points, pairwise logistic fits, tie-break p-values.
- INFO: a model was learned, an evaluation was computed.
- DIAGNOSTIC (25): the verbose attribute ranking of ``one_r``.
- WARNING: every data-quality issue (rows removed, levels dropped, ...).

Note:
    Importing this module removes loguru's default stderr handler (ID 0) so
    that records are not printed twice once ``enable_logging()`` adds its own
    handler. Handlers configured before importing onerule may have taken ID 0;
    the removal is then skipped. Add application handlers after the import to
    be safe.
"""

from __future__ import annotations

import contextlib
import sys
import threading
import warnings
from pathlib import Path
from typing import TYPE_CHECKING, ClassVar, Final, Literal, TextIO

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

DIAGNOSTIC_LEVEL: Final[str] = "DIAGNOSTIC"
DIAGNOSTIC_LEVEL_NUMBER: Final[int] = 25  # between INFO (20) and WARNING (30)

type LogLevel = Literal["TRACE", "DEBUG", "INFO", "DIAGNOSTIC", "WARNING", "ERROR", "CRITICAL"]

type LogFormat = Literal["short", "full"]

_PREFIX: Final[str] = "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <10}</level> | "
_SUFFIX: Final[str] = " - <level>{message}</level> {extra}"
_FORMATS: Final[dict[str, str]] = {
    "short": _PREFIX + "<cyan>{function}</cyan>" + _SUFFIX,
    "full": _PREFIX + "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan>" + _SUFFIX,
}

with contextlib.suppress(ValueError):
    logger.remove(0)


def _register_diagnostic_level() -> None:
    """Add the DIAGNOSTIC level to loguru unless it is already known.

    loguru cannot renumber an existing level, so a DIAGNOSTIC level registered
    elsewhere with another number only triggers a UserWarning.
    """
    try:
        registered = logger.level(DIAGNOSTIC_LEVEL)
    except ValueError:
        logger.level(DIAGNOSTIC_LEVEL, no=DIAGNOSTIC_LEVEL_NUMBER, icon="📊")
        return
    if registered.no != DIAGNOSTIC_LEVEL_NUMBER:
        warnings.warn(
            f"DIAGNOSTIC level already registered with numeric value {registered.no},"
            f" expected {DIAGNOSTIC_LEVEL_NUMBER}",
            stacklevel=2,
        )


_register_diagnostic_level()


class LoggingHandle:
    """One active onerule log handler.

    Each `enable_logging()` call returns its own handle. Handles are counted
    across the process; once the last one is disabled, the package logger is
    switched off again.

    Examples:
        >>> with enable_logging(level="DIAGNOSTIC"):  # doctest: +SKIP
        ...     model = one_r(df, verbose=True)

        >>> handle = enable_logging(level="DEBUG")  # doctest: +SKIP
        >>> table = optbin_table(df)  # doctest: +SKIP
        >>> handle.disable()  # doctest: +SKIP
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        """Track the loguru handler `handler_id` as active.

        Args:
            handler_id (int): ID returned by `logger.add()`.
        """
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    @classmethod
    def get_active_handle_count(cls) -> int:
        """Return how many handles are currently enabled."""
        with cls._lock:
            return len(cls._active_ids)

    def disable(self) -> None:
        """Remove this handle's handler; calling it again does nothing.

        Disabling the last active handle also calls `logger.disable("onerule")`,
        which silences onerule records for handlers added outside this module.
        """
        with LoggingHandle._lock:
            if self.handler_id is None:
                return
            LoggingHandle._active_ids.discard(self.handler_id)
            with contextlib.suppress(ValueError):
                logger.remove(self.handler_id)
            self.handler_id = None
            if not LoggingHandle._active_ids:
                logger.disable(PACKAGE_NAME)

    def __enter__(self) -> LoggingHandle:
        """Enter the context manager.

        Returns:
            LoggingHandle: This handle.
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Leave the context manager and disable this handle.

        Exceptions raised inside the block propagate unchanged.

        Args:
            exc_type (type[BaseException] | None): The exception type, if raised.
            exc_val (BaseException | None): The exception instance, if raised.
            exc_tb (TracebackType | None): The traceback, if raised.
        """
        self.disable()


def enable_logging(
    *,
    level: LogLevel = "WARNING",
    log_format: LogFormat = "short",
    sink: TextIO | str | Path | None = None,
) -> LoggingHandle:
    """Start emitting onerule log records.

    The default WARNING level shows every data-quality issue. Use
    "DIAGNOSTIC" to add the verbose attribute rankings, or "DEBUG" to follow
    cut-point computation and pairwise logistic fits.

    Args:
        level (LogLevel): Minimum level to emit.
        log_format (LogFormat): "short" names the function only; "full" adds
            module and line number.
        sink (TextIO | str | Path | None): Stream or file path receiving the
            records; defaults to the current `sys.stderr`.

    Returns:
        LoggingHandle: Handle that removes the handler again, directly or as
            a context manager.
    """
    logger.enable(PACKAGE_NAME)
    handler_id = logger.add(
        sys.stderr if sink is None else sink,
        level=level,
        filter=_is_onerule_record,
        format=_FORMATS[log_format],
    )
    return LoggingHandle(handler_id)


def _is_onerule_record(record: Record) -> bool:
    """Return True for records logged from inside the onerule package."""
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
