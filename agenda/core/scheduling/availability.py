"""
Availability Engine

Merges a professional's working window, recurring breaks, schedule
exceptions and booked appointments into the list of start times that can
hold a service of the requested duration.

Grid points are labelled with the business-local wall clock, but every
comparison runs on absolute instants so that DST transition days agree
with the commit path. Every overlap test goes through ``conflicts.overlaps``.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union
from uuid import UUID

from agenda.core.scheduling.conflicts import Interval, contains_point, first_conflict
from agenda.core.scheduling.errors import AmbiguousTimezone, InvalidArgument, NotFound
from agenda.core.scheduling.ports import (
    AppointmentRepository,
    CatalogRepository,
    ExceptionRepository,
    ScheduleRepository,
)
from agenda.core.scheduling.slots import GRID_MINUTES, generate
from agenda.core.scheduling.status import is_occupying
from agenda.core.scheduling.time_normalizer import (
    Clock,
    TimeNormalizer,
    day_of_week,
    parse_date,
)
from agenda.core.scheduling.types import (
    Business,
    DayAvailability,
    ExceptionType,
    Slot,
)

logger = logging.getLogger(__name__)

BOOKED_REASON = "Booked"
BREAK_REASON = "Break"
OUTSIDE_HOURS_REASON = "Exceeds working hours"


class AvailabilityEngine:
    """
    Computes bookable start times for one professional and day.

    Queries take no locks: the result is a snapshot and every booking is
    re-validated at commit time.
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        schedules: ScheduleRepository,
        exceptions: ExceptionRepository,
        appointments: AppointmentRepository,
        clock: Optional[Clock] = None,
        granularity_minutes: int = GRID_MINUTES,
    ):
        self.catalog = catalog
        self.schedules = schedules
        self.exceptions = exceptions
        self.appointments = appointments
        self.clock = clock
        self.granularity_minutes = granularity_minutes

    async def availability(
        self,
        business: Business,
        professional_id: UUID,
        day: Union[date, str],
        service_duration_minutes: int = 30,
        exclude_appointment_id: Optional[UUID] = None,
    ) -> DayAvailability:
        """Compute availability for a professional on a business-local date.

        Args:
            business: Tenant owning the professional (supplies the timezone)
            professional_id: Professional to inspect
            day: Business-local date (``date`` or "YYYY-MM-DD")
            service_duration_minutes: Length the slot must accommodate
            exclude_appointment_id: Appointment of this business to ignore,
                used when rescheduling

        Returns:
            DayAvailability with slots in ascending order

        Raises:
            InvalidArgument: Malformed date or non-positive duration
            NotFound: Unknown or inactive professional, or an excluded
                appointment that does not belong to the business
        """
        if (
            isinstance(service_duration_minutes, bool)
            or not isinstance(service_duration_minutes, int)
            or service_duration_minutes <= 0
        ):
            raise InvalidArgument("Service duration must be a positive number of minutes")

        target = parse_date(day)
        professional = await self.catalog.get_professional(business.id, professional_id)
        if professional is None or not professional.is_active:
            raise NotFound("Professional not found")

        if exclude_appointment_id is not None:
            excluded = await self.appointments.get(business.id, exclude_appointment_id)
            if excluded is None:
                raise NotFound("Appointment not found")

        normalizer = TimeNormalizer(business.timezone, self.clock)
        weekday = day_of_week(target)
        result = DayAvailability(
            date=target,
            day_of_week=weekday,
            professional_id=professional.id,
            professional_name=professional.name,
            working_hours=None,
        )

        window = await self.schedules.get_window(business.id, professional.id, weekday)
        if window is None or not window.is_working:
            result.message = "Professional is not working this day"
            return result

        window_start, window_end = normalizer.local_span(
            target, window.start_time, window.end_time
        )

        day_start, day_end = normalizer.day_bounds(target)
        exceptions = await self.exceptions.list_between(professional.id, day_start, day_end)
        exception_intervals = []
        for exc in exceptions:
            if (
                exc.type == ExceptionType.DAY_OFF
                and exc.start <= window_start
                and exc.end >= window_end
            ):
                result.message = (
                    f"Day off: {exc.reason}" if exc.reason else "Professional has the day off"
                )
                return result
            exception_intervals.append(Interval(exc.start, exc.end, exc.label))

        result.working_hours = (window.start_time, window.end_time)

        today = normalizer.today()
        if target < today:
            result.message = "Date is in the past"
            return result
        now = normalizer.now().instant

        break_intervals = [
            Interval(*normalizer.local_span(target, b.start_time, b.end_time), BREAK_REASON)
            for b in window.breaks
        ]

        appointments = await self.appointments.list_occupying(
            professional.id, day_start, day_end, exclude_id=exclude_appointment_id
        )
        booked = [
            Interval(appt.starts_at, appt.ends_at, BOOKED_REASON)
            for appt in appointments
            if is_occupying(appt.status) and appt.id != exclude_appointment_id
        ]

        step = timedelta(minutes=self.granularity_minutes)
        duration = timedelta(minutes=service_duration_minutes)
        blockers = break_intervals + exception_intervals + booked

        for point in generate(window.start_time, window.end_time, self.granularity_minutes):
            try:
                start = normalizer.from_local(target, point).instant
            except AmbiguousTimezone:
                # Skipped or repeated by a DST transition
                continue
            if start <= now:
                continue

            if any(contains_point(b.start, b.end, start) for b in break_intervals):
                continue
            if any(contains_point(e.start, e.end, start) for e in exception_intervals):
                continue

            occupied = first_conflict(start, start + step, booked)
            if occupied is not None:
                result.slots.append(Slot(point, False, occupied.reason))
                continue

            reason = self._duration_fit(start, start + duration, window_end, blockers, step)
            result.slots.append(Slot(point, reason is None, reason))

        available = len(result.available_slots)
        result.message = (
            f"{available} available slots" if available else "No available slots for this date"
        )
        logger.debug(
            f"Availability computed | Professional: {professional.id} | "
            f"Date: {target} | Duration: {service_duration_minutes} | Available: {available}"
        )
        return result

    @staticmethod
    def _duration_fit(
        start: datetime,
        end: datetime,
        window_end: datetime,
        blockers: list[Interval],
        step: timedelta,
    ) -> Optional[str]:
        """Return why ``[start, end)`` cannot be booked, or None if it fits."""
        cursor = start
        while cursor < end:
            sub_end = min(cursor + step, end)
            hit = first_conflict(cursor, sub_end, blockers)
            if hit is not None:
                return hit.reason
            cursor += step

        if end > window_end:
            return OUTSIDE_HOURS_REASON
        return None
