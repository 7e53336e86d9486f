"""
Appointment Repository

SQLAlchemy persistence for appointments and their occupancy buckets.

Every occupying appointment owns one ``appointment_slots`` row per
5-minute bucket it covers. Two writers claiming the same bucket collide on
the table's primary key; the collision is reported as ``SlotConflict``.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.scheduling.errors import NotFound, SlotConflict
from agenda.core.scheduling.slots import GRID_MINUTES
from agenda.core.scheduling.status import OCCUPYING_STATUSES, is_occupying
from agenda.core.scheduling.time_normalizer import from_storage, to_storage
from agenda.core.scheduling.types import Appointment, AppointmentStatus
from agenda.models import database as orm

logger = logging.getLogger(__name__)

# PostgreSQL serialization failure and deadlock
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def occupancy_buckets(
    starts_at: datetime,
    duration_minutes: int,
    granularity_minutes: int = GRID_MINUTES,
) -> list[datetime]:
    """Bucket starts covering ``[starts_at, starts_at + duration)``."""
    bucket = starts_at.replace(second=0, microsecond=0)
    bucket -= timedelta(minutes=bucket.minute % granularity_minutes)
    end = starts_at + timedelta(minutes=duration_minutes)
    step = timedelta(minutes=granularity_minutes)

    buckets = []
    while bucket < end:
        buckets.append(bucket)
        bucket += step
    return buckets


def _is_bucket_collision(error: DBAPIError) -> bool:
    if isinstance(error, IntegrityError):
        return "appointment_slots" in str(error.orig)
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    return sqlstate in RETRYABLE_SQLSTATES


def _appointment(row: orm.Appointment) -> Appointment:
    return Appointment(
        id=row.id,
        business_id=row.business_id,
        professional_id=row.professional_id,
        starts_at=from_storage(row.starts_at),
        duration_minutes=row.duration_minutes,
        status=row.status,
        client_name=row.client_name,
        client_phone=row.client_phone,
        client_email=row.client_email,
        notes=row.notes,
        total_price=row.total_price,
        service_ids=tuple(s.service_id for s in row.services),
        cancelled_at=from_storage(row.cancelled_at) if row.cancelled_at else None,
        completed_at=from_storage(row.completed_at) if row.completed_at else None,
    )


class SqlAppointmentRepository:
    """Appointment store backed by an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def lock_professional(self, professional_id: UUID) -> None:
        """SELECT ... FOR UPDATE on the professional row (no-op on SQLite)."""
        result = await self.session.execute(
            select(orm.Professional.id)
            .where(orm.Professional.id == professional_id)
            .with_for_update()
        )
        if result.scalar_one_or_none() is None:
            raise NotFound("Professional not found")

    async def list_occupying(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> list[Appointment]:
        query = (
            select(orm.Appointment)
            .where(
                orm.Appointment.professional_id == professional_id,
                orm.Appointment.status.in_(list(OCCUPYING_STATUSES)),
                orm.Appointment.starts_at < to_storage(end),
                orm.Appointment.ends_at > to_storage(start),
            )
            .order_by(orm.Appointment.starts_at)
        )
        if exclude_id is not None:
            query = query.where(orm.Appointment.id != exclude_id)

        result = await self.session.execute(query)
        return [_appointment(row) for row in result.scalars().all()]

    async def get(self, business_id: UUID, appointment_id: UUID) -> Optional[Appointment]:
        row = await self._get_row(business_id, appointment_id)
        return _appointment(row) if row else None

    async def add(self, appointment: Appointment) -> Appointment:
        starts_at = to_storage(appointment.starts_at)
        row = orm.Appointment(
            id=appointment.id,
            business_id=appointment.business_id,
            professional_id=appointment.professional_id,
            client_name=appointment.client_name,
            client_phone=appointment.client_phone,
            client_email=appointment.client_email,
            notes=appointment.notes,
            starts_at=starts_at,
            ends_at=starts_at + timedelta(minutes=appointment.duration_minutes),
            duration_minutes=appointment.duration_minutes,
            total_price=appointment.total_price,
            status=appointment.status,
            services=[
                orm.AppointmentService(position=i, service_id=service_id)
                for i, service_id in enumerate(appointment.service_ids)
            ],
        )
        if is_occupying(appointment.status) and appointment.professional_id is not None:
            row.slots = self._slots_for(
                appointment.professional_id, starts_at, appointment.duration_minutes
            )

        self.session.add(row)
        await self._flush_claiming_buckets(appointment.professional_id, starts_at)
        return _appointment(row)

    async def set_status(
        self,
        appointment_id: UUID,
        status: AppointmentStatus,
        at: datetime,
    ) -> Appointment:
        row = await self._require_row(appointment_id)
        row.status = status
        if status == AppointmentStatus.CANCELLED:
            row.cancelled_at = to_storage(at)
        elif status == AppointmentStatus.COMPLETED:
            row.completed_at = to_storage(at)

        if not is_occupying(status):
            row.slots.clear()

        await self.session.flush()
        return _appointment(row)

    async def move(self, appointment_id: UUID, starts_at: datetime) -> Appointment:
        row = await self._require_row(appointment_id)
        new_start = to_storage(starts_at)

        row.slots.clear()
        await self.session.flush()

        row.starts_at = new_start
        row.ends_at = new_start + timedelta(minutes=row.duration_minutes)
        if row.professional_id is not None:
            row.slots = self._slots_for(row.professional_id, new_start, row.duration_minutes)

        await self._flush_claiming_buckets(row.professional_id, new_start)
        return _appointment(row)

    async def remove(self, appointment_id: UUID) -> None:
        row = await self._require_row(appointment_id)
        await self.session.delete(row)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _get_row(self, business_id: UUID, appointment_id: UUID) -> Optional[orm.Appointment]:
        result = await self.session.execute(
            select(orm.Appointment).where(
                orm.Appointment.id == appointment_id,
                orm.Appointment.business_id == business_id,
            )
        )
        return result.scalar_one_or_none()

    async def _require_row(self, appointment_id: UUID) -> orm.Appointment:
        row = await self.session.get(orm.Appointment, appointment_id)
        if row is None:
            raise NotFound("Appointment not found")
        return row

    @staticmethod
    def _slots_for(
        professional_id: UUID,
        starts_at: datetime,
        duration_minutes: int,
    ) -> list[orm.AppointmentSlot]:
        return [
            orm.AppointmentSlot(professional_id=professional_id, bucket_start=bucket)
            for bucket in occupancy_buckets(starts_at, duration_minutes)
        ]

    async def _flush_claiming_buckets(
        self,
        professional_id: Optional[UUID],
        starts_at: datetime,
    ) -> None:
        try:
            await self.session.flush()
        except DBAPIError as e:
            if not _is_bucket_collision(e):
                raise
            logger.warning(
                f"Occupancy collision | Professional: {professional_id} | "
                f"Start: {starts_at.isoformat()}"
            )
            raise SlotConflict("The requested time is no longer available") from e
