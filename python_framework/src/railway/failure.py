"""
Failure description — structured error information for the failure track.

An ErrorCode enum plus an immutable FailureDescription carrying the message,
the originating exception (if any) and a UTC timestamp.

The codes are grouped by who has to act on them: the caller (bad input,
unknown resource) or the operator (configuration, policy files, trust
material, infrastructure).
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique
from typing import Optional


@unique
class ErrorCode(Enum):
    """Structured error codes for the failure track."""

    # --- Caller errors ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Invalid input format, missing fields, type mismatches."""

    NOT_FOUND = "NOT_FOUND"
    """Referenced resource doesn't exist."""

    # --- Operator errors ---
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    """Missing or unreadable directories/files, invalid settings."""

    PARSE_ERROR = "PARSE_ERROR"
    """A policy or profile file violates its grammar."""

    TRUST_ERROR = "TRUST_ERROR"
    """Trust material is missing for an otherwise valid request."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Infrastructure issues."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.PARSE_ERROR, "Unsupported key")
    >>> desc.code
    <ErrorCode.PARSE_ERROR: 'PARSE_ERROR'>
    >>> desc.message
    'Unsupported key'
    """

    code: ErrorCode
    message: str
    exception: Optional[BaseException] = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"

    def full_stack_trace(self) -> str:
        """Message followed by the formatted exception chain, if there is one."""
        if self.exception is None:
            return self.message
        tb = "".join(
            traceback.format_exception(
                type(self.exception), self.exception, self.exception.__traceback__
            )
        )
        return f"{self.message}\n{tb}"
