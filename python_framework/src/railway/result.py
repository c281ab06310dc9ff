"""
Result monad — the core of Railway-Oriented Programming.

A Result[T] is either Success(value: T) or Failure(error: FailureDescription).
Operations at an I/O boundary return Result instead of raising, and failures
propagate automatically through .flat_map() short-circuiting.

    ┌───────────┐   flat_map    ┌───────────┐
    │  reload   │──Success──────│  reload   │──→ Result[T]
    │ profiles  │               │ policies  │
    └─────┬─────┘               └─────┬─────┘
          │ Failure                   │ Failure
          └───────────────────────────┴──→ Result[T]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar

from railway.failure import ErrorCode, FailureDescription

T = TypeVar("T")
U = TypeVar("U")
R = TypeVar("R")


class Result(Generic[T]):
    """
    Railway-Oriented Programming Result monad.

    Two possible states:
      - Success(value: T)  — the happy path
      - Failure(error: FailureDescription) — the error track

    Usage:
        >>> result = Result.success(42).map(lambda x: x * 2)
        >>> result.value()
        84

        >>> result = Result.failure(ErrorCode.PARSE_ERROR, "bad input")
        >>> result.map(lambda x: x * 2).is_failure()
        True
    """

    # ──────────────────────── Introspection ────────────────────────

    def is_success(self) -> bool:
        return isinstance(self, Success)

    def is_failure(self) -> bool:
        return isinstance(self, Failure)

    def value(self) -> T:
        """Extract the success value. Raises ValueError if called on a Failure."""
        match self:
            case Success(v):
                return v
            case Failure(err):
                raise ValueError(f"Cannot get value from a Failure: {err.message}")
        raise TypeError("unreachable")  # pragma: no cover

    def error(self) -> FailureDescription:
        """Extract the failure description. Raises ValueError if called on a Success."""
        match self:
            case Failure(err):
                return err
            case Success(v):
                raise ValueError(f"Cannot get error from a Success: {v}")
        raise TypeError("unreachable")  # pragma: no cover

    # ──────────────────────── Core Transformations ────────────────────────

    def either(
        self,
        on_success: Callable[[T], R],
        on_failure: Callable[[FailureDescription], R],
    ) -> R:
        """Apply one of two functions depending on the state."""
        match self:
            case Success(v):
                return on_success(v)
            case Failure(err):
                return on_failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def map(self, mapper: Callable[[T], U]) -> Result[U]:
        """Transform the success value. Short-circuits on failure."""
        match self:
            case Success(v):
                return Success(mapper(v))
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    def flat_map(self, mapper: Callable[[T], Result[U]]) -> Result[U]:
        """
        Chain a Result-returning function. Short-circuits on failure.

            profiles.reload().flat_map(lambda _: policies.reload())
        """
        match self:
            case Success(v):
                return mapper(v)
            case Failure(err):
                return Failure(err)
        raise TypeError("unreachable")  # pragma: no cover

    # ──────────────────────── Side Effects ────────────────────────

    def peek(self, action: Callable[[T], Any]) -> Result[T]:
        """Execute a side effect on the success value without altering the Result."""
        match self:
            case Success(v):
                action(v)
        return self

    def peek_failure(self, action: Callable[[FailureDescription], Any]) -> Result[T]:
        """Execute a side effect on failure without altering the Result."""
        match self:
            case Failure(err):
                action(err)
        return self

    def get_or_else(self, default: T) -> T:
        """Extract value or return a default on failure."""
        match self:
            case Success(v):
                return v
            case _:
                return default

    # ──────────────────────── Static Factories ────────────────────────

    @staticmethod
    def success(value: T) -> Result[T]:
        return Success(value)

    @staticmethod
    def failure_from(error: FailureDescription) -> Result[T]:
        return Failure(error)

    @staticmethod
    def failure(
        code: ErrorCode,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> Result[T]:
        """
        Create a failed Result with error code, message, and optional exception.

            Result.failure(ErrorCode.PARSE_ERROR, "Unsupported key in VO-CA-AP file: /")
        """
        return Failure(FailureDescription(code=code, message=message, exception=exception))

    @staticmethod
    def from_computation(
        computation: Callable[[], T],
        error_code: ErrorCode,
        error_message: str,
        classify: Optional[Callable[[Exception], ErrorCode]] = None,
    ) -> Result[T]:
        """
        Create a Result from a computation that may raise.

        The exception is kept on the FailureDescription and its text is appended
        to error_message. When `classify` is given it picks the ErrorCode from
        the exception, falling back to `error_code` for anything it returns None for.

            Result.from_computation(
                builder.build,
                ErrorCode.CONFIGURATION_ERROR,
                "Failed to reload policy set",
                classify=error_code_for,
            )
        """
        try:
            return Result.success(computation())
        except Exception as e:
            code = (classify(e) if classify is not None else None) or error_code
            return Result.failure(code, f"{error_message}: {e}", e)

    # ──────────────────────── Dunder methods ────────────────────────

    def __bool__(self) -> bool:
        """Allow truthiness check: `if result: ...` succeeds only on Success."""
        return self.is_success()

    def __repr__(self) -> str:
        match self:
            case Success(v):
                return f"Success({v!r})"
            case Failure(err):
                return f"Failure({err.code.value}: {err.message!r})"
        raise TypeError("unreachable")  # pragma: no cover

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Result):
            return NotImplemented
        match (self, other):
            case (Success(a), Success(b)):
                return a == b
            case (Failure(a), Failure(b)):
                return a.code == b.code and a.message == b.message
            case _:
                return False


@dataclass(frozen=True, slots=True)
class Success(Result[T]):
    """The success track — wraps a value of type T."""

    _value: T

    def __init__(self, value: T) -> None:
        if value is None:
            raise TypeError("Success value must not be None")
        object.__setattr__(self, "_value", value)

    def __repr__(self) -> str:
        return f"Success({self._value!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Success):
            return self._value == other._value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Success", self._value))


# Enable structural pattern matching: case Success(value)
Success.__match_args__ = ("_value",)


@dataclass(frozen=True, slots=True)
class Failure(Result[T]):
    """The failure track — wraps a FailureDescription."""

    _error: FailureDescription

    def __init__(self, error: FailureDescription) -> None:
        if error is None:
            raise TypeError("Failure error must not be None")
        object.__setattr__(self, "_error", error)

    def __repr__(self) -> str:
        return f"Failure({self._error.code.value}: {self._error.message!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Failure):
            return (
                self._error.code == other._error.code
                and self._error.message == other._error.message
            )
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("Failure", self._error.code, self._error.message))


# Enable structural pattern matching: case Failure(error)
Failure.__match_args__ = ("_error",)
