"""
Scheduling Errors

Domain exceptions raised by the availability and booking engine. Each one
carries a stable machine-readable ``code`` and a human-readable message;
the HTTP layer maps the class to a status code.
"""

from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for all scheduling domain errors."""

    code = "scheduling_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Convert to error response body."""
        return {"error": self.code, "detail": self.message}


class InvalidArgument(SchedulingError):
    """Malformed input the caller can correct."""

    code = "invalid_argument"


class InvalidTransition(InvalidArgument):
    """Appointment status change not allowed by the state machine."""

    code = "invalid_transition"


class NotFound(SchedulingError):
    """Unknown business, professional, service, appointment or exception."""

    code = "not_found"


class BusinessClosed(SchedulingError):
    """Requested time falls outside working hours or on a blocked day."""

    code = "business_closed"


class SlotConflict(SchedulingError):
    """Requested interval overlaps an existing appointment."""

    code = "slot_conflict"


class NoProfessionalAvailable(SchedulingError):
    """Auto-allocation found no free professional."""

    code = "no_professional_available"


class ExceptionConflict(SchedulingError):
    """A new schedule exception overlaps booked appointments."""

    code = "exception_conflict"

    def __init__(self, message: str, conflicts: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.conflicts = conflicts or []

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["conflicts"] = self.conflicts
        return body


class AmbiguousTimezone(SchedulingError):
    """A timestamp's offset cannot be determined without guessing."""

    code = "ambiguous_timezone"
