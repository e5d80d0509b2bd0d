"""Custom application exceptions."""

from typing import Any
from uuid import UUID


class AppException(Exception):
    """Base application exception."""

    code = "ApplicationError"

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        code: str | None = None,
    ):
        """Initialize exception with message and status code."""
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        if code is not None:
            self.code = code
        super().__init__(self.message)


class NotFoundException(AppException):
    """Resource not found exception."""

    code = "NotFound"

    def __init__(self, message: str = "Resource not found", code: str | None = None):
        """Initialize with 404 status code."""
        super().__init__(message, status_code=404, code=code)


class ForbiddenException(AppException):
    """Forbidden access exception."""

    code = "Forbidden"

    def __init__(self, message: str = "Forbidden", code: str | None = None):
        """Initialize with 403 status code."""
        super().__init__(message, status_code=403, code=code)


class BadRequestException(AppException):
    """Bad request exception."""

    code = "BadRequest"

    def __init__(self, message: str = "Bad request", details: dict[str, Any] | None = None):
        """Initialize with 400 status code."""
        super().__init__(message, status_code=400, details=details)


class ConflictException(AppException):
    """Conflict exception."""

    code = "Conflict"

    def __init__(self, message: str = "Conflict", details: dict[str, Any] | None = None):
        """Initialize with 409 status code."""
        super().__init__(message, status_code=409, details=details)


class ValidationException(AppException):
    """Validation error exception."""

    code = "ValidationError"

    def __init__(self, message: str = "Validation error", details: dict[str, Any] | None = None):
        """Initialize with 422 status code."""
        super().__init__(message, status_code=422, details=details)


class ServiceUnavailableException(AppException):
    """Temporary failure of a backing service."""

    code = "ServiceUnavailable"

    def __init__(self, message: str = "Service temporarily unavailable"):
        """Initialize with 503 status code."""
        super().__init__(message, status_code=503)


# Scheduling errors


class SlotRejectedError(BadRequestException):
    """Requested slot violates the booking window rules."""


class InvalidIntervalError(SlotRejectedError):
    """End time is not strictly after start time."""

    code = "InvalidInterval"

    def __init__(self, message: str = "End time must be after start time"):
        super().__init__(message)


class PastBookingError(SlotRejectedError):
    """Start time lies before now."""

    code = "PastBooking"

    def __init__(self, message: str = "Cannot schedule appointments in the past"):
        super().__init__(message)


class BookingTooFarOutError(SlotRejectedError):
    """Start time lies beyond the booking horizon."""

    code = "BookingTooFarOut"

    def __init__(self, horizon_days: int):
        self.horizon_days = horizon_days
        super().__init__(
            f"Cannot schedule appointments more than {horizon_days} days in advance",
        )
        self.details = {"horizon_days": horizon_days}


class SchedulingConflictError(ConflictException):
    """Provider already holds an overlapping non-terminal appointment."""

    code = "SchedulingConflict"

    def __init__(self, conflicting_appointment_id: UUID | None):
        self.conflicting_appointment_id = conflicting_appointment_id
        super().__init__(
            "Provider has a conflicting appointment at this time",
            details={
                "conflicting_appointment_id": (
                    str(conflicting_appointment_id) if conflicting_appointment_id else None
                ),
            },
        )


class IllegalStatusTransitionError(ConflictException):
    """Requested status is not reachable from the current status."""

    code = "IllegalStatusTransition"

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Cannot change status from {current_status} to {requested_status}",
            details={
                "current_status": current_status,
                "requested_status": requested_status,
            },
        )


class ProviderNotEligibleError(ValidationException):
    """Provider has not cleared license or background verification."""

    code = "ProviderNotEligible"

    def __init__(self, provider_id: UUID, missing: list[str]):
        self.provider_id = provider_id
        self.missing = missing
        super().__init__(
            "Provider is not verified",
            details={"provider_id": str(provider_id), "missing": missing},
        )


class TransientPersistenceError(ServiceUnavailableException):
    """Persistence layer failed; nothing was applied and the call may be retried."""

    code = "TransientPersistenceError"

    def __init__(self, message: str = "Storage temporarily unavailable, please retry"):
        super().__init__(message)
