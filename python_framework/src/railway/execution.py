"""
Execution contexts — separate WHAT (the Result-returning computation) from HOW
it runs (logging, timing, exception containment).

    ctx = LoggingExecutionContext(operation="RepositoryRefresh")
    result = ctx.execute(lambda: refresh_repositories(profiles, policies))

A context never lets an exception escape: whatever the computation raises is
turned into a TECHNICAL_ERROR failure, so a periodic job survives a bad run.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Protocol, TypeVar, runtime_checkable

from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result

T = TypeVar("T")
logger = logging.getLogger("railway.execution")


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with execute(computation) -> Result satisfies this protocol."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        """Execute a Result-returning computation within this context."""
        ...


class NoOpExecutionContext:
    """Passthrough execution context — runs the computation as is."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs entry, exit, duration, and result state.

    Wraps another context (decorator pattern) to add observability.

        ctx = LoggingExecutionContext(operation="PolicySetReload")
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
        log_level: int = logging.INFO,
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation
        self._log_level = log_level

    @property
    def operation(self) -> str:
        return self._operation

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        logger.log(self._log_level, "[%s] Starting execution", self._operation)
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            elapsed = time.monotonic() - start
            logger.error(
                "[%s] Execution failed after %.3fs: %s",
                self._operation,
                elapsed,
                e,
            )
            return Failure(
                FailureDescription(
                    ErrorCode.TECHNICAL_ERROR,
                    f"Execution failed: {e}",
                    e,
                )
            )

        elapsed = time.monotonic() - start
        state = "SUCCESS" if result.is_success() else "FAILURE"
        logger.log(
            self._log_level,
            "[%s] Completed in %.3fs — %s",
            self._operation,
            elapsed,
            state,
        )
        return result
