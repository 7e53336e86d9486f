"""
Scheduling Module

Availability and conflict-resolution engine: slot grid, overlap detection,
timezone normalization, professional allocation and race-safe booking.

Usage:
    from agenda.core.scheduling import (
        AvailabilityEngine,
        BookingCommitter,
        BookingRequest,
    )

    engine = AvailabilityEngine(catalog, schedules, exceptions, appointments)
    day = await engine.availability(business, professional_id, "2025-03-10", 30)
    print([s.to_dict() for s in day.available_slots])
"""

# Errors
from agenda.core.scheduling.errors import (
    AmbiguousTimezone,
    BusinessClosed,
    ExceptionConflict,
    InvalidArgument,
    InvalidTransition,
    NoProfessionalAvailable,
    NotFound,
    SchedulingError,
    SlotConflict,
)

# Types
from agenda.core.scheduling.types import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    Business,
    DayAvailability,
    ExceptionType,
    Professional,
    RecurringBreak,
    ScheduleException,
    Service,
    Slot,
    WorkingWindow,
)

# Time and intervals
from agenda.core.scheduling.time_normalizer import (
    CivilInstant,
    Clock,
    FixedClock,
    SystemClock,
    TimeNormalizer,
)
from agenda.core.scheduling.conflicts import overlaps
from agenda.core.scheduling.slots import GRID_MINUTES, generate, resample
from agenda.core.scheduling.status import can_transition, is_occupying

# Engine
from agenda.core.scheduling.availability import AvailabilityEngine
from agenda.core.scheduling.allocator import ProfessionalAllocator
from agenda.core.scheduling.booking import BookingCommitter
from agenda.core.scheduling.exception_service import ScheduleExceptionService

__all__ = [
    # Errors
    "AmbiguousTimezone",
    "BusinessClosed",
    "ExceptionConflict",
    "InvalidArgument",
    "InvalidTransition",
    "NoProfessionalAvailable",
    "NotFound",
    "SchedulingError",
    "SlotConflict",
    # Types
    "Appointment",
    "AppointmentStatus",
    "BookingRequest",
    "Business",
    "DayAvailability",
    "ExceptionType",
    "Professional",
    "RecurringBreak",
    "ScheduleException",
    "Service",
    "Slot",
    "WorkingWindow",
    # Time and intervals
    "CivilInstant",
    "Clock",
    "FixedClock",
    "SystemClock",
    "TimeNormalizer",
    "overlaps",
    "GRID_MINUTES",
    "generate",
    "resample",
    "can_transition",
    "is_occupying",
    # Engine
    "AvailabilityEngine",
    "ProfessionalAllocator",
    "BookingCommitter",
    "ScheduleExceptionService",
]
