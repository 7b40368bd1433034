"""Error taxonomy and classification for appointment engine operations."""

from enum import Enum, StrEnum

from pydantic import BaseModel


class ErrorSeverity(Enum):
    """Severity levels for errors."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorCode(StrEnum):
    """Error codes for specific error conditions."""

    # Ownership errors
    CUSTOMER_NOT_FOUND = "CUSTOMER_NOT_FOUND"
    HELPER_NOT_FOUND = "HELPER_NOT_FOUND"

    # Validation errors
    INVALID_DATE = "INVALID_DATE"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"

    # Lookup errors
    APPOINTMENT_NOT_FOUND = "APPOINTMENT_NOT_FOUND"
    APPOINTMENT_CONFLICT = "APPOINTMENT_CONFLICT"
    CHECKLIST_ITEM_NOT_FOUND = "CHECKLIST_ITEM_NOT_FOUND"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"

    # Generic errors
    UNEXPECTED = "UNEXPECTED"


class EngineError(Exception):
    """Base class for errors surfaced to callers with a specific code."""

    code: ErrorCode = ErrorCode.UNEXPECTED
    status_code: int = 500


class CustomerNotFoundError(EngineError):
    """Customer does not exist in the caller's tenant."""

    code = ErrorCode.CUSTOMER_NOT_FOUND
    status_code = 404


class HelperNotFoundError(EngineError):
    """Helper is neither a member of the caller's team nor the owner."""

    code = ErrorCode.HELPER_NOT_FOUND
    status_code = 404


class InvalidDateError(EngineError):
    """Date string cannot be parsed into a calendar day."""

    code = ErrorCode.INVALID_DATE
    status_code = 400


class AppointmentNotFoundError(EngineError):
    """Appointment id does not resolve within the caller's tenant."""

    code = ErrorCode.APPOINTMENT_NOT_FOUND
    status_code = 404


class AppointmentConflictError(EngineError):
    """Another active appointment already holds this customer, day, and start time."""

    code = ErrorCode.APPOINTMENT_CONFLICT
    status_code = 409


class ChecklistItemNotFoundError(EngineError):
    """Checklist item does not belong to the given appointment."""

    code = ErrorCode.CHECKLIST_ITEM_NOT_FOUND
    status_code = 404


class TransactionNotFoundError(EngineError):
    """Ledger entry does not resolve within the caller's tenant."""

    code = ErrorCode.TRANSACTION_NOT_FOUND
    status_code = 404


class InvalidStateTransitionError(EngineError):
    """Requested status change is not allowed from the current status."""

    code = ErrorCode.INVALID_STATE_TRANSITION
    status_code = 409


class ErrorResponse(BaseModel):
    """Structured error response with user-friendly messaging."""

    code: str
    message: str
    suggestion: str
    severity: ErrorSeverity


_RESPONSES: dict[ErrorCode, tuple[str, str, ErrorSeverity]] = {
    ErrorCode.CUSTOMER_NOT_FOUND: (
        "Customer not found.",
        "Check that the customer belongs to your account.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.HELPER_NOT_FOUND: (
        "Helper not found in your team.",
        "Assign a member of your team or yourself.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.INVALID_DATE: (
        "Invalid date.",
        "Use the yyyy-mm-dd format.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.APPOINTMENT_NOT_FOUND: (
        "Appointment not found.",
        "Refresh the agenda and try again.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.APPOINTMENT_CONFLICT: (
        "This customer already has an appointment at that time.",
        "Pick another day or start time, or edit the existing appointment.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.CHECKLIST_ITEM_NOT_FOUND: (
        "Checklist item not found.",
        "Reload the appointment to see its current checklist.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.TRANSACTION_NOT_FOUND: (
        "Transaction not found.",
        "Refresh the ledger and try again.",
        ErrorSeverity.LOW,
    ),
    ErrorCode.INVALID_STATE_TRANSITION: (
        "This action cannot be performed in the current state.",
        "Check the appointment status and try again.",
        ErrorSeverity.LOW,
    ),
}


def classify_error_with_response(exception: Exception) -> ErrorResponse:
    """Classify an error and return a structured response with recovery suggestions.

    Engine errors keep their specific code; anything else is reported as
    UNEXPECTED without leaking the underlying message.

    Args:
        exception: The exception raised during execution

    Returns:
        ErrorResponse with code, message, suggestion, and severity
    """
    if isinstance(exception, EngineError) and exception.code in _RESPONSES:
        message, suggestion, severity = _RESPONSES[exception.code]
        return ErrorResponse(
            code=exception.code,
            message=message,
            suggestion=suggestion,
            severity=severity,
        )

    return ErrorResponse(
        code=ErrorCode.UNEXPECTED,
        message="An unexpected error occurred.",
        suggestion="Please try again later. If the problem persists, contact support.",
        severity=ErrorSeverity.MEDIUM,
    )
