"""
Railway-Oriented Programming (ROP) helpers.

Explicit, composable error handling at I/O boundaries:

    from railway import Result, ErrorCode

    def reload() -> Result[PolicySet]:
        return Result.from_computation(
            builder.build,
            ErrorCode.CONFIGURATION_ERROR,
            "Failed to reload policy set",
        )

    reload().peek(swap_snapshot).peek_failure(log_failure)
"""

from railway.result import Result, Success, Failure
from railway.failure import ErrorCode, FailureDescription
from railway.execution import (
    ExecutionContext,
    NoOpExecutionContext,
    LoggingExecutionContext,
)
from railway.assertions import ResultAssertions

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]

__version__ = "1.0.0"
