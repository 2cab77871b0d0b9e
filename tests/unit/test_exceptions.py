"""Unit tests for error types and categories."""

from donation_matrix.utils.exceptions import (
    ErrorCode,
    MatrixConsistencyError,
    MatrixError,
    MatrixNotFoundError,
    MatrixValidationError,
    NoEligibleReceiverError,
    is_caller_error,
    is_soft_error,
)


class TestErrorCodes:
    """Test default and explicit error codes."""

    def test_explicit_code_kept(self):
        error = MatrixValidationError(
            "already advanced", code=ErrorCode.ALREADY_ADVANCED
        )
        assert error.code == ErrorCode.ALREADY_ADVANCED
        assert error.message == "already advanced"
        assert str(error) == "already advanced"

    def test_default_codes(self):
        assert MatrixNotFoundError("x").code == ErrorCode.PARTICIPANT_NOT_FOUND
        assert MatrixConsistencyError("x").code == ErrorCode.CONSISTENCY_VIOLATION
        assert NoEligibleReceiverError("x").code == ErrorCode.NO_ELIGIBLE_RECEIVER

    def test_to_dict(self):
        error = MatrixValidationError(
            "gap in positions", code=ErrorCode.NON_SEQUENTIAL_ORDER
        )
        assert error.to_dict() == {
            "error": "non_sequential_order",
            "message": "gap in positions",
        }

    def test_hierarchy(self):
        for cls in (
            MatrixValidationError,
            MatrixNotFoundError,
            MatrixConsistencyError,
            NoEligibleReceiverError,
        ):
            assert issubclass(cls, MatrixError)


class TestErrorCategories:
    """Test how errors are handled by category."""

    def test_soft_errors(self):
        assert is_soft_error(NoEligibleReceiverError("no receiver"))
        assert not is_soft_error(MatrixValidationError("bad"))

    def test_caller_errors(self):
        assert is_caller_error(MatrixValidationError("bad"))
        assert is_caller_error(MatrixNotFoundError("missing"))
        assert not is_caller_error(MatrixConsistencyError("broken"))
        assert not is_caller_error(ValueError("other"))
