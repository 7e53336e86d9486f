"""
Scheduling Types

Typed records passed between the repositories and the scheduling engine.
Every record validates its own invariants on construction and raises
``InvalidArgument`` when they do not hold.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from agenda.core.scheduling.errors import InvalidArgument


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""
    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class ExceptionType(str, Enum):
    """Schedule exception type enumeration."""
    BLOCK = "BLOCK"
    DAY_OFF = "DAY_OFF"


def _require_aware(value: datetime, name: str) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise InvalidArgument(f"{name} must carry a UTC offset")


@dataclass(frozen=True)
class Business:
    """Tenant as seen by the engine."""

    id: UUID
    name: str
    slug: str
    timezone: str
    is_active: bool = True


@dataclass(frozen=True)
class Professional:
    """Bookable professional belonging to a business."""

    id: UUID
    business_id: UUID
    name: str
    is_active: bool = True


@dataclass(frozen=True)
class Service:
    """Catalog service with its duration and price."""

    id: UUID
    business_id: UUID
    name: str
    duration_minutes: int
    price: Decimal = Decimal("0")

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise InvalidArgument(f"Service duration must be positive: {self.name}")


@dataclass(frozen=True)
class RecurringBreak:
    """Recurring sub-interval excluded from a working window, e.g. lunch."""

    start_time: time
    end_time: time
    schedule_id: Optional[UUID] = None

    def __post_init__(self):
        if self.start_time >= self.end_time:
            raise InvalidArgument("Break start must be before its end")


@dataclass(frozen=True)
class WorkingWindow:
    """Recurring working hours for one weekday (0 = Sunday)."""

    day_of_week: int
    start_time: time
    end_time: time
    is_working: bool = True
    professional_id: Optional[UUID] = None
    breaks: tuple[RecurringBreak, ...] = ()
    id: Optional[UUID] = None

    def __post_init__(self):
        if not 0 <= self.day_of_week <= 6:
            raise InvalidArgument(f"Invalid day of week: {self.day_of_week}")
        if self.is_working and self.start_time >= self.end_time:
            raise InvalidArgument("Working window start must be before its end")


@dataclass(frozen=True)
class ScheduleException:
    """One-off absolute range (block or day off) for a professional."""

    professional_id: UUID
    start: datetime
    end: datetime
    type: ExceptionType
    reason: Optional[str] = None
    id: Optional[UUID] = None

    def __post_init__(self):
        _require_aware(self.start, "Exception start")
        _require_aware(self.end, "Exception end")
        if self.start >= self.end:
            raise InvalidArgument("Exception start must be before its end")

    @property
    def label(self) -> str:
        """Reason shown to clients for slots this exception removes."""
        if self.reason:
            return self.reason
        return "Day off" if self.type == ExceptionType.DAY_OFF else "Blocked"

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "id": str(self.id) if self.id else None,
            "professionalId": str(self.professional_id),
            "startDatetime": self.start.isoformat(),
            "endDatetime": self.end.isoformat(),
            "type": self.type.value,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class Appointment:
    """Booked appointment; ``starts_at`` is an aware UTC instant."""

    id: UUID
    business_id: UUID
    professional_id: Optional[UUID]
    starts_at: datetime
    duration_minutes: int
    status: AppointmentStatus
    client_name: str = ""
    client_phone: str = ""
    client_email: Optional[str] = None
    notes: Optional[str] = None
    total_price: Decimal = Decimal("0")
    service_ids: tuple[UUID, ...] = ()
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        _require_aware(self.starts_at, "Appointment start")
        if self.duration_minutes <= 0:
            raise InvalidArgument("Appointment duration must be positive")

    @property
    def ends_at(self) -> datetime:
        return self.starts_at + timedelta(minutes=self.duration_minutes)

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "id": str(self.id),
            "professionalId": str(self.professional_id) if self.professional_id else None,
            "dateTime": self.starts_at.isoformat(),
            "duration": self.duration_minutes,
            "totalPrice": str(self.total_price),
            "status": self.status.value,
            "serviceIds": [str(s) for s in self.service_ids],
            "clientName": self.client_name,
        }


@dataclass(frozen=True)
class BookingRequest:
    """Input to a booking commit."""

    business_id: UUID
    service_ids: tuple[UUID, ...]
    starts_at: object
    client_name: str
    client_phone: str
    professional_id: Optional[UUID] = None
    client_email: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class Slot:
    """Candidate start time on the booking grid."""

    time: time
    available: bool
    reason: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"time": self.time.strftime("%H:%M"), "available": self.available}
        if self.reason:
            result["reason"] = self.reason
        return result


@dataclass
class DayAvailability:
    """Availability of one professional on one business-local date."""

    date: date
    day_of_week: int
    professional_id: UUID
    professional_name: str
    working_hours: Optional[tuple[time, time]]
    slots: list[Slot] = field(default_factory=list)
    message: str = ""

    @property
    def available_slots(self) -> list[Slot]:
        return [s for s in self.slots if s.available]

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        working_hours = None
        if self.working_hours is not None:
            start, end = self.working_hours
            working_hours = {
                "startTime": start.strftime("%H:%M"),
                "endTime": end.strftime("%H:%M"),
            }
        return {
            "date": self.date.isoformat(),
            "dayOfWeek": self.day_of_week,
            "professionalId": str(self.professional_id),
            "professionalName": self.professional_name,
            "workingHours": working_hours,
            "slots": [s.to_dict() for s in self.slots],
            "message": self.message,
        }
