"""Logging utilities for cartree.

Library code logs through loguru's ``logger``; the package is disabled at
import time (see ``cartree/__init__.py``) so nothing is emitted unless the
caller opts in with ``enable_logging()``.

Tree builders log node counts and depth at DEBUG level, estimators log each
fit at INFO level.
"""

from __future__ import annotations

import contextlib
import sys
import threading
from typing import TYPE_CHECKING, ClassVar, Final, Literal

from loguru import logger

if TYPE_CHECKING:
    from types import TracebackType

    from loguru import Record

PACKAGE_NAME: Final[str] = __name__.split(".")[0]

LogLevel = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LogFormat = Literal["short", "full"]

_SHORT_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{function}</cyan> - "
    "<level>{message}</level>"
)
_FULL_FORMAT: Final[str] = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)


class LoggingHandle:
    """Handle for an enabled cartree log handler.

    Removes its handler on ``disable()`` or when used as a context manager.
    When the last active handle is disabled the cartree logger is disabled
    again.

    Examples:
        >>> with enable_logging(level="DEBUG"):  # doctest: +SKIP
        ...     DecisionTreeClassifier().fit(X, y)
    """

    _active_ids: ClassVar[set[int]] = set()
    _lock: ClassVar[threading.Lock] = threading.Lock()

    def __init__(self, handler_id: int) -> None:
        self.handler_id: int | None = handler_id
        with LoggingHandle._lock:
            LoggingHandle._active_ids.add(handler_id)

    def disable(self) -> None:
        """Remove the handler; disable cartree logging if it was the last one."""
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
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.disable()

    @classmethod
    def get_active_handle_count(cls) -> int:
        with cls._lock:
            return len(cls._active_ids)


def enable_logging(
    *,
    level: LogLevel = "INFO",
    log_format: LogFormat = "short",
    sink=sys.stderr,
) -> LoggingHandle:
    """Enable cartree logging.

    Args:
        level (LogLevel): Minimum level to display. "INFO" shows one line per
            fit; "DEBUG" adds tree growth statistics.
        log_format (LogFormat): "short" shows the function name only, "full"
            adds module and line number.
        sink: Where records are written. Defaults to ``sys.stderr``.

    Returns:
        LoggingHandle: Handle that removes the handler when disabled.
    """
    logger.enable(PACKAGE_NAME)
    format_str = _SHORT_FORMAT if log_format == "short" else _FULL_FORMAT
    handler_id = logger.add(
        sink,
        level=level,
        filter=_is_cartree_record,
        format=format_str,
    )
    return LoggingHandle(handler_id)


def _is_cartree_record(record: Record) -> bool:
    name = record["name"]
    return name is not None and name.startswith(PACKAGE_NAME)
