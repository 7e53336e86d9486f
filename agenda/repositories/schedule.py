"""
Schedule Repository

Reads recurring working windows and their breaks.
"""

from typing import Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from agenda.core.scheduling.types import RecurringBreak, WorkingWindow
from agenda.models import database as orm


def _window(row: orm.WorkingWindow) -> WorkingWindow:
    return WorkingWindow(
        id=row.id,
        professional_id=row.professional_id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        is_working=row.is_working,
        breaks=tuple(
            RecurringBreak(
                start_time=b.start_time,
                end_time=b.end_time,
                schedule_id=row.id,
            )
            for b in row.breaks
        ),
    )


class SqlScheduleRepository:
    """Working windows; ``professional_id=None`` selects business opening hours."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_window(
        self,
        business_id: UUID,
        professional_id: Optional[UUID],
        day_of_week: int,
    ) -> Optional[WorkingWindow]:
        query = select(orm.WorkingWindow).where(
            orm.WorkingWindow.business_id == business_id,
            orm.WorkingWindow.day_of_week == day_of_week,
        )
        if professional_id is None:
            query = query.where(orm.WorkingWindow.professional_id.is_(None))
        else:
            query = query.where(orm.WorkingWindow.professional_id == professional_id)

        result = await self.session.execute(query)
        row = result.scalars().first()
        return _window(row) if row else None
