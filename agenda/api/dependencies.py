"""
API Dependencies

Wires request-scoped repositories into the scheduling services and
resolves the tenant for management endpoints.
"""

from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.config import settings
from agenda.core.scheduling import (
    AvailabilityEngine,
    BookingCommitter,
    Business,
    Clock,
    NotFound,
    ScheduleExceptionService,
    SystemClock,
)
from agenda.infra.database import get_db
from agenda.infra.notifications import NotificationDispatcher, get_notification_dispatcher
from agenda.repositories.appointments import SqlAppointmentRepository
from agenda.repositories.catalog import SqlCatalogRepository
from agenda.repositories.exceptions import SqlExceptionRepository
from agenda.repositories.schedule import SqlScheduleRepository


def get_clock() -> Clock:
    """Clock feeding "now" into the engine."""
    return SystemClock()


def get_notifier() -> NotificationDispatcher:
    return get_notification_dispatcher()


def get_catalog(db: AsyncSession = Depends(get_db)) -> SqlCatalogRepository:
    return SqlCatalogRepository(db)


def get_availability_engine(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AvailabilityEngine:
    return AvailabilityEngine(
        catalog=SqlCatalogRepository(db),
        schedules=SqlScheduleRepository(db),
        exceptions=SqlExceptionRepository(db),
        appointments=SqlAppointmentRepository(db),
        clock=clock,
        granularity_minutes=settings.slot_granularity_minutes,
    )


def get_booking_committer(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> BookingCommitter:
    return BookingCommitter(
        catalog=SqlCatalogRepository(db),
        schedules=SqlScheduleRepository(db),
        exceptions=SqlExceptionRepository(db),
        appointments=SqlAppointmentRepository(db),
        notifier=notifier,
        clock=clock,
        granularity_minutes=settings.slot_granularity_minutes,
    )


def get_exception_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> ScheduleExceptionService:
    return ScheduleExceptionService(
        catalog=SqlCatalogRepository(db),
        exceptions=SqlExceptionRepository(db),
        appointments=SqlAppointmentRepository(db),
        clock=clock,
    )


def get_tenant_id(x_tenant_id: UUID = Header(..., alias="X-Tenant-ID")) -> UUID:
    """Tenant for management endpoints, set by the upstream gateway."""
    return x_tenant_id


async def get_tenant(
    tenant_id: UUID = Depends(get_tenant_id),
    catalog: SqlCatalogRepository = Depends(get_catalog),
) -> Business:
    business = await catalog.get_business(tenant_id)
    if business is None or not business.is_active:
        raise NotFound("Business not found")
    return business


async def get_business_by_slug(
    slug: str,
    catalog: SqlCatalogRepository = Depends(get_catalog),
) -> Business:
    business = await catalog.get_business_by_slug(slug)
    if business is None or not business.is_active:
        raise NotFound("Business not found")
    return business
