"""
Schedule Exception Management

Lists, creates and deletes blocks and days off for a professional.
Creation refuses ranges that would strand booked appointments.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Optional, Union
from uuid import UUID

from agenda.core.scheduling.conflicts import find_conflicts
from agenda.core.scheduling.errors import ExceptionConflict, InvalidArgument, NotFound
from agenda.core.scheduling.ports import (
    AppointmentRepository,
    CatalogRepository,
    ExceptionRepository,
)
from agenda.core.scheduling.status import is_occupying
from agenda.core.scheduling.time_normalizer import (
    CivilInstant,
    Clock,
    SystemClock,
    TimeNormalizer,
    parse_date,
)
from agenda.core.scheduling.types import (
    Business,
    ExceptionType,
    Professional,
    ScheduleException,
)

logger = logging.getLogger(__name__)


def _is_date_only(value: Any) -> bool:
    if isinstance(value, datetime):
        return False
    if isinstance(value, date):
        return True
    return isinstance(value, str) and len(value.strip()) == 10


class ScheduleExceptionService:
    """Management surface for ScheduleException records."""

    def __init__(
        self,
        catalog: CatalogRepository,
        exceptions: ExceptionRepository,
        appointments: AppointmentRepository,
        clock: Optional[Clock] = None,
    ):
        self.catalog = catalog
        self.exceptions = exceptions
        self.appointments = appointments
        self.clock = clock or SystemClock()

    async def list(
        self,
        business: Business,
        professional_id: UUID,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[ScheduleException]:
        """Exceptions intersecting the business-local dates ``start_date..end_date``."""
        first = parse_date(start_date)
        last = parse_date(end_date)
        if last < first:
            raise InvalidArgument("End date must not be before start date")

        professional = await self._get_professional(business, professional_id)
        normalizer = TimeNormalizer(business.timezone, self.clock)
        range_start, _ = normalizer.day_bounds(first)
        _, range_end = normalizer.day_bounds(last)

        found = await self.exceptions.list_between(professional.id, range_start, range_end)
        return sorted(found, key=lambda e: e.start)

    async def create(
        self,
        business: Business,
        professional_id: UUID,
        start: Any,
        end: Any,
        type: Any,
        reason: Optional[str] = None,
    ) -> ScheduleException:
        """Create a block or day off.

        Date-only bounds are whole business-local days: a date-only ``end``
        is inclusive and extends to the following midnight.

        Raises:
            InvalidArgument: Bad type, inverted range or range in the past
            NotFound: Unknown professional
            ExceptionConflict: Occupying appointments overlap the range
        """
        try:
            exception_type = ExceptionType(type)
        except ValueError:
            raise InvalidArgument("Type must be BLOCK or DAY_OFF")

        professional = await self._get_professional(business, professional_id)
        normalizer = TimeNormalizer(business.timezone, self.clock)
        start_at = normalizer.normalize(start)
        end_at = self._normalize_end(normalizer, end)

        if end_at.instant <= start_at.instant:
            raise InvalidArgument("End must be after start")
        if end_at.instant <= self.clock.now():
            raise InvalidArgument("Cannot create an exception in the past")

        booked = await self.appointments.list_occupying(
            professional.id, start_at.instant, end_at.instant
        )
        clashes = find_conflicts(
            start_at.instant,
            end_at.instant,
            [a for a in booked if is_occupying(a.status)],
            lambda a: (a.starts_at, a.ends_at),
        )
        if clashes:
            raise ExceptionConflict(
                f"{len(clashes)} appointment(s) already booked in this period",
                conflicts=[
                    {
                        "id": str(a.id),
                        "dateTime": a.starts_at.isoformat(),
                        "duration": a.duration_minutes,
                        "clientName": a.client_name,
                        "status": a.status.value,
                    }
                    for a in clashes
                ],
            )

        exception = ScheduleException(
            professional_id=professional.id,
            start=start_at.instant,
            end=end_at.instant,
            type=exception_type,
            reason=(reason or "").strip() or None,
        )
        try:
            created = await self.exceptions.add(exception)
            await self.exceptions.commit()
        except Exception:
            await self.exceptions.rollback()
            raise

        logger.info(
            f"Schedule exception created | Professional: {professional.id} | "
            f"Type: {exception_type.value} | {start_at.instant.isoformat()} -> "
            f"{end_at.instant.isoformat()}"
        )
        return created

    async def delete(self, business_id: UUID, exception_id: UUID) -> None:
        """Delete an exception owned by the tenant."""
        exception = await self.exceptions.get(business_id, exception_id)
        if exception is None:
            raise NotFound("Schedule exception not found")

        try:
            await self.exceptions.remove(exception_id)
            await self.exceptions.commit()
        except Exception:
            await self.exceptions.rollback()
            raise

        logger.info(f"Schedule exception deleted | Exception: {exception_id}")

    async def _get_professional(self, business: Business, professional_id: UUID) -> Professional:
        professional = await self.catalog.get_professional(business.id, professional_id)
        if professional is None:
            raise NotFound("Professional not found")
        return professional

    @staticmethod
    def _normalize_end(normalizer: TimeNormalizer, value: Any) -> CivilInstant:
        if _is_date_only(value):
            next_day = parse_date(value.strip() if isinstance(value, str) else value)
            return normalizer.normalize(next_day + timedelta(days=1))
        return normalizer.normalize(value)
