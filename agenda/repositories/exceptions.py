"""
Exception Repository

SQLAlchemy persistence for schedule exceptions (blocks and days off).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.scheduling.time_normalizer import from_storage, to_storage
from agenda.core.scheduling.types import ScheduleException
from agenda.models import database as orm


def _exception(row: orm.ScheduleException) -> ScheduleException:
    return ScheduleException(
        id=row.id,
        professional_id=row.professional_id,
        start=from_storage(row.start_datetime),
        end=from_storage(row.end_datetime),
        type=row.type,
        reason=row.reason,
    )


class SqlExceptionRepository:
    """Schedule exceptions for professionals."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_between(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
    ) -> list[ScheduleException]:
        """Exceptions intersecting ``[start, end)``, ordered by start."""
        result = await self.session.execute(
            select(orm.ScheduleException)
            .where(
                orm.ScheduleException.professional_id == professional_id,
                orm.ScheduleException.start_datetime < to_storage(end),
                orm.ScheduleException.end_datetime > to_storage(start),
            )
            .order_by(orm.ScheduleException.start_datetime)
        )
        return [_exception(row) for row in result.scalars().all()]

    async def get(self, business_id: UUID, exception_id: UUID) -> Optional[ScheduleException]:
        """Exception by id, only when its professional belongs to the tenant."""
        result = await self.session.execute(
            select(orm.ScheduleException)
            .join(orm.Professional, orm.Professional.id == orm.ScheduleException.professional_id)
            .where(
                orm.ScheduleException.id == exception_id,
                orm.Professional.business_id == business_id,
            )
        )
        row = result.scalar_one_or_none()
        return _exception(row) if row else None

    async def add(self, exception: ScheduleException) -> ScheduleException:
        row = orm.ScheduleException(
            id=exception.id or uuid4(),
            professional_id=exception.professional_id,
            start_datetime=to_storage(exception.start),
            end_datetime=to_storage(exception.end),
            type=exception.type,
            reason=exception.reason,
        )
        self.session.add(row)
        await self.session.flush()
        return _exception(row)

    async def remove(self, exception_id: UUID) -> None:
        await self.session.execute(
            delete(orm.ScheduleException).where(orm.ScheduleException.id == exception_id)
        )

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
