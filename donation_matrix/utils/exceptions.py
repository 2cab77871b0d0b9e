"""
Exception handling utilities.

Defines categorized exception types for proper error handling. Every error
carries a machine-readable ``code`` so callers can tell them apart.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """Machine-readable error kinds."""

    # Validation (caller-correctable)
    INVALID_LEVEL = "invalid_level"
    INVALID_UPGRADE_SEQUENCE = "invalid_upgrade_sequence"
    ALREADY_ADVANCED = "already_advanced"
    LEVEL_NOT_COMPLETED = "level_not_completed"
    EARLIER_PARTICIPANT_PENDING = "earlier_participant_pending"
    QUEUE_SIZE_MISMATCH = "queue_size_mismatch"
    NON_SEQUENTIAL_ORDER = "non_sequential_order"
    DUPLICATE_POSITION = "duplicate_position"
    PARTICIPANT_ALREADY_QUEUED = "participant_already_queued"
    NOT_IN_SAME_QUEUE = "not_in_same_queue"
    INVALID_POSITION = "invalid_position"
    INVALID_AMOUNT = "invalid_amount"
    INVALID_PARAMETER = "invalid_parameter"
    DONATION_NOT_PENDING = "donation_not_pending"
    INVALID_STATUS_TRANSITION = "invalid_status_transition"
    NOT_DONATION_PARTY = "not_donation_party"
    LEVEL_DECREASE = "level_decrease"

    # Not found
    PARTICIPANT_NOT_FOUND = "participant_not_found"
    SLOT_NOT_FOUND = "slot_not_found"
    DONATION_NOT_FOUND = "donation_not_found"

    # Engine-internal
    NO_ELIGIBLE_RECEIVER = "no_eligible_receiver"
    CONSISTENCY_VIOLATION = "consistency_violation"


class MatrixError(Exception):
    """Base class for all engine errors."""

    default_code = ErrorCode.CONSISTENCY_VIOLATION

    def __init__(self, message: str, code: ErrorCode | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code

    def to_dict(self) -> dict[str, str]:
        """Serialize for the outer layer."""
        return {"error": self.code.value, "message": self.message}


class MatrixValidationError(MatrixError):
    """Raised when the caller asked for something the rules forbid."""

    default_code = ErrorCode.INVALID_LEVEL


class MatrixNotFoundError(MatrixError):
    """Raised when a referenced participant, slot or donation is absent."""

    default_code = ErrorCode.PARTICIPANT_NOT_FOUND


class MatrixConsistencyError(MatrixError):
    """Raised when stored state contradicts the engine's invariants."""

    default_code = ErrorCode.CONSISTENCY_VIOLATION


class NoEligibleReceiverError(MatrixError):
    """Soft error: no slot can receive a generated donation."""

    default_code = ErrorCode.NO_ELIGIBLE_RECEIVER


# Exception categories based on handling strategy

# Must log but the triggering operation continues
SOFT_ERRORS = (
    NoEligibleReceiverError,
)

# Must raise to the caller
CALLER_ERRORS = (
    MatrixValidationError,
    MatrixNotFoundError,
)


def is_soft_error(exc: Exception) -> bool:
    """
    Check if exception is non-fatal for the triggering operation.

    Args:
        exc: Exception to check

    Returns:
        True if exception is only logged
    """
    return isinstance(exc, SOFT_ERRORS)


def is_caller_error(exc: Exception) -> bool:
    """
    Check if exception must be surfaced to the caller.

    Args:
        exc: Exception to check

    Returns:
        True if exception is caller-correctable
    """
    return isinstance(exc, CALLER_ERRORS)
