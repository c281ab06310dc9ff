"""Tests for FailureDescription and ErrorCode."""

import pytest

from railway import ErrorCode, FailureDescription


class TestErrorCode:
    def test_all_7_error_codes_exist(self):
        codes = list(ErrorCode)
        assert len(codes) == 7

    def test_operator_error_codes(self):
        operator_codes = {
            ErrorCode.CONFIGURATION_ERROR,
            ErrorCode.PARSE_ERROR,
            ErrorCode.TRUST_ERROR,
            ErrorCode.TECHNICAL_ERROR,
            ErrorCode.UNKNOWN_ERROR,
        }
        assert len(operator_codes) == 5

    def test_error_code_values_match_names(self):
        for code in ErrorCode:
            assert code.value == code.name


class TestFailureDescription:
    def test_creation_with_code_and_message(self):
        desc = FailureDescription(ErrorCode.PARSE_ERROR, "Unsupported key")
        assert desc.code == ErrorCode.PARSE_ERROR
        assert desc.message == "Unsupported key"
        assert desc.exception is None
        assert desc.timestamp is not None

    def test_creation_with_exception(self):
        ex = OSError("disk")
        desc = FailureDescription(ErrorCode.CONFIGURATION_ERROR, "read failed", ex)
        assert desc.exception is ex

    def test_immutability(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "test")
        with pytest.raises(AttributeError):
            desc.message = "changed"  # type: ignore

    def test_timestamp_is_utc(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "test")
        assert desc.timestamp.tzinfo is not None

    def test_str(self):
        desc = FailureDescription(ErrorCode.TRUST_ERROR, "unknown CA")
        assert str(desc) == "TRUST_ERROR: unknown CA"

    def test_full_stack_trace_without_exception(self):
        desc = FailureDescription(ErrorCode.VALIDATION_ERROR, "just a message")
        assert desc.full_stack_trace() == "just a message"

    def test_full_stack_trace_with_exception(self):
        try:
            raise ValueError("boom")
        except ValueError as e:
            desc = FailureDescription(ErrorCode.PARSE_ERROR, "parse failed", e)
            trace = desc.full_stack_trace()
            assert "parse failed" in trace
            assert "ValueError" in trace
            assert "boom" in trace
