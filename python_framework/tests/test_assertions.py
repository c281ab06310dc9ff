"""Tests for ResultAssertions test helper."""

import pytest

from railway import ErrorCode, Result, ResultAssertions


class TestAssertSuccess:
    def test_passes_on_success(self):
        value = ResultAssertions.assert_success(Result.success(42))
        assert value == 42

    def test_fails_on_failure_with_clear_message(self):
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "Name is required")
        with pytest.raises(AssertionError, match="Expected Success but got Failure"):
            ResultAssertions.assert_success(result)

    def test_custom_message(self):
        result = Result.failure(ErrorCode.NOT_FOUND, "x")
        with pytest.raises(AssertionError, match="custom context"):
            ResultAssertions.assert_success(result, "custom context")


class TestAssertFailure:
    def test_passes_on_failure(self):
        error = ResultAssertions.assert_failure(
            Result.failure(ErrorCode.NOT_FOUND, "missing")
        )
        assert error.code == ErrorCode.NOT_FOUND

    def test_checks_error_code(self):
        error = ResultAssertions.assert_failure(
            Result.failure(ErrorCode.PARSE_ERROR, "bad"),
            ErrorCode.PARSE_ERROR,
        )
        assert error.message == "bad"

    def test_fails_on_wrong_error_code(self):
        result = Result.failure(ErrorCode.NOT_FOUND, "x")
        with pytest.raises(AssertionError, match="Expected error code PARSE_ERROR"):
            ResultAssertions.assert_failure(result, ErrorCode.PARSE_ERROR)

    def test_fails_on_success(self):
        with pytest.raises(AssertionError, match="Expected Failure but got Success"):
            ResultAssertions.assert_failure(Result.success(42))


class TestAssertFailureMessage:
    def test_contains_substring(self):
        result = Result.failure(ErrorCode.PARSE_ERROR, "Unsupported key in VO-CA-AP file: /")
        ResultAssertions.assert_failure_message_contains(result, "unsupported key")

    def test_case_insensitive(self):
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "NAME IS REQUIRED")
        ResultAssertions.assert_failure_message_contains(result, "name")

    def test_fails_when_not_contained(self):
        result = Result.failure(ErrorCode.VALIDATION_ERROR, "Age is required")
        with pytest.raises(AssertionError, match="Expected failure message to contain"):
            ResultAssertions.assert_failure_message_contains(result, "name")
