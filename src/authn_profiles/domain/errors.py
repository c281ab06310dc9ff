"""
Error taxonomy for authentication profile evaluation.

Three families, kept apart on purpose because callers react differently:

  InvalidConfigurationError — trust-anchor directory, info files or settings are
                              unusable. Fatal at construction/reload time.
  ParseError                — a VO-CA-AP or info file breaks its grammar.
                              A reload keeps the previous policy set.
  AuthenticationProfileError — a CA subject is not covered by any loaded profile.
                              Never a Deny: the request cannot be evaluated.

`error_code_for` maps each family onto the railway ErrorCode used on the
Result track of the reload boundaries.
"""

from __future__ import annotations

from railway import ErrorCode


class AuthnProfilesError(Exception):
    """Base class for every error raised by this package."""


class InvalidConfigurationError(AuthnProfilesError, ValueError):
    """A directory, file, pattern or setting is missing, unreadable or invalid."""


class ParseError(AuthnProfilesError, ValueError):
    """A policy or profile file does not follow its grammar."""


class AuthenticationProfileError(AuthnProfilesError, RuntimeError):
    """No loaded authentication profile covers the given CA subject."""

    def __init__(self, message: str, principal: str | None = None) -> None:
        super().__init__(message)
        self.principal = principal


def error_code_for(exc: Exception) -> ErrorCode | None:
    """Classify an exception for the Result failure track (None = use the default)."""
    match exc:
        case ParseError():
            return ErrorCode.PARSE_ERROR
        case InvalidConfigurationError():
            return ErrorCode.CONFIGURATION_ERROR
        case AuthenticationProfileError():
            return ErrorCode.TRUST_ERROR
        case OSError():
            return ErrorCode.CONFIGURATION_ERROR
        case _:
            return None
