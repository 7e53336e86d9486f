"""
Repository Interfaces

Persistence contracts consumed by the scheduling engine. SQLAlchemy
implementations live in ``agenda.repositories``; tests use in-memory fakes.

All datetimes crossing these interfaces are aware UTC instants.
"""

from datetime import datetime
from typing import Any, Optional, Protocol, Sequence
from uuid import UUID

from agenda.core.scheduling.types import (
    Appointment,
    AppointmentStatus,
    Business,
    Professional,
    ScheduleException,
    Service,
    WorkingWindow,
)


class CatalogRepository(Protocol):
    """Read-only lookup of tenants, professionals and services."""

    async def get_business(self, business_id: UUID) -> Optional[Business]: ...

    async def get_business_by_slug(self, slug: str) -> Optional[Business]: ...

    async def get_professional(
        self, business_id: UUID, professional_id: UUID
    ) -> Optional[Professional]: ...

    async def list_professionals(
        self, business_id: UUID, active_only: bool = True
    ) -> list[Professional]: ...

    async def get_services(
        self, business_id: UUID, service_ids: Sequence[UUID]
    ) -> dict[UUID, Service]: ...


class ScheduleRepository(Protocol):
    """Recurring working windows and their breaks."""

    async def get_window(
        self,
        business_id: UUID,
        professional_id: Optional[UUID],
        day_of_week: int,
    ) -> Optional[WorkingWindow]:
        """Window for a weekday; ``professional_id=None`` reads opening hours."""
        ...


class ExceptionRepository(Protocol):
    """Ad-hoc blocks and days off."""

    async def list_between(
        self, professional_id: UUID, start: datetime, end: datetime
    ) -> list[ScheduleException]: ...

    async def get(
        self, business_id: UUID, exception_id: UUID
    ) -> Optional[ScheduleException]: ...

    async def add(self, exception: ScheduleException) -> ScheduleException: ...

    async def remove(self, exception_id: UUID) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class AppointmentRepository(Protocol):
    """Appointment store owning the atomic re-check-and-insert."""

    async def lock_professional(self, professional_id: UUID) -> None:
        """Serialize writers for one professional until commit/rollback."""
        ...

    async def list_occupying(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> list[Appointment]:
        """Calendar-occupying appointments that may touch ``[start, end)``."""
        ...

    async def get(self, business_id: UUID, appointment_id: UUID) -> Optional[Appointment]: ...

    async def add(self, appointment: Appointment) -> Appointment:
        """Insert with occupancy buckets; raises ``SlotConflict`` on a taken bucket."""
        ...

    async def set_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        at: datetime,
    ) -> Appointment: ...

    async def move(self, appointment_id: UUID, starts_at: datetime) -> Appointment: ...

    async def remove(self, appointment_id: UUID) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class Notifier(Protocol):
    """Fire-and-forget sink for appointment lifecycle events."""

    def dispatch(self, event: str, payload: dict[str, Any]) -> Any:
        """Schedule delivery; must return without waiting on the network."""
        ...
