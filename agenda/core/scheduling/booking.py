"""
Booking Committer

Validates a requested slot against current state and persists it. The
re-check and the insert run as one unit: the professional row is locked,
occupying appointments are re-read, and the store's bucket uniqueness
rejects anything that slipped through.

Also owns the inverse paths (status changes, rescheduling, deletion) so
occupancy state always moves together with the appointment record.
"""

import logging
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import UUID, uuid4

from agenda.core.scheduling.allocator import ProfessionalAllocator
from agenda.core.scheduling.conflicts import find_conflicts, overlaps
from agenda.core.scheduling.errors import (
    BusinessClosed,
    InvalidArgument,
    InvalidTransition,
    NoProfessionalAvailable,
    NotFound,
    SlotConflict,
)
from agenda.core.scheduling.ports import (
    AppointmentRepository,
    CatalogRepository,
    ExceptionRepository,
    Notifier,
    ScheduleRepository,
)
from agenda.core.scheduling.slots import GRID_MINUTES
from agenda.core.scheduling.status import can_transition, is_occupying
from agenda.core.scheduling.time_normalizer import (
    CivilInstant,
    Clock,
    SystemClock,
    TimeNormalizer,
    day_of_week,
)
from agenda.core.scheduling.types import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    Business,
    Professional,
    Service,
)

logger = logging.getLogger(__name__)

INITIAL_STATUS = AppointmentStatus.CONFIRMED


class BookingCommitter:
    """
    Commits bookings and applies their later lifecycle changes.

    Usage:
        committer = BookingCommitter(catalog, schedules, exceptions, appointments)
        appointment = await committer.commit(request)
    """

    def __init__(
        self,
        catalog: CatalogRepository,
        schedules: ScheduleRepository,
        exceptions: ExceptionRepository,
        appointments: AppointmentRepository,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
        granularity_minutes: int = GRID_MINUTES,
    ):
        self.catalog = catalog
        self.schedules = schedules
        self.exceptions = exceptions
        self.appointments = appointments
        self.notifier = notifier
        self.clock = clock or SystemClock()
        self.granularity_minutes = granularity_minutes
        self.allocator = ProfessionalAllocator(appointments)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self, request: BookingRequest) -> Appointment:
        """Validate and persist a new appointment.

        Args:
            request: Booking input; ``professional_id=None`` auto-allocates

        Returns:
            The persisted appointment with its resolved professional

        Raises:
            InvalidArgument: Missing client fields, past or off-grid start
            AmbiguousTimezone: Start has no UTC offset
            NotFound: Unknown business, professional or service
            BusinessClosed: Outside working hours, on a break or exception
            NoProfessionalAvailable: Auto-allocation found nobody free
            SlotConflict: The interval was taken before the insert
        """
        business = await self._get_business(request.business_id)

        if not (request.client_name or "").strip() or not (request.client_phone or "").strip():
            raise InvalidArgument("Client name and phone are required")
        if not request.service_ids:
            raise InvalidArgument("At least one service is required")

        normalizer = TimeNormalizer(business.timezone, self.clock)
        start = normalizer.normalize_instant(request.starts_at)
        self._ensure_bookable_start(start)

        services = await self._resolve_services(business, request.service_ids)
        duration = sum(s.duration_minutes for s in services)
        total_price = sum((s.price for s in services), Decimal("0"))
        end = normalizer.from_instant(start.instant + timedelta(minutes=duration))

        if request.professional_id is not None:
            professional = await self._get_professional(business, request.professional_id)
            await self._ensure_open(business, professional.id, start, end)
        else:
            await self._ensure_open(business, None, start, end)
            professional = await self._allocate(business, start, end)

        appointment = Appointment(
            id=uuid4(),
            business_id=business.id,
            professional_id=professional.id,
            starts_at=start.instant,
            duration_minutes=duration,
            status=INITIAL_STATUS,
            client_name=request.client_name.strip(),
            client_phone=request.client_phone.strip(),
            client_email=request.client_email,
            notes=request.notes,
            total_price=total_price,
            service_ids=tuple(s.id for s in services),
        )

        try:
            await self.appointments.lock_professional(professional.id)
            await self._recheck(professional.id, start.instant, end.instant)
            created = await self.appointments.add(appointment)
            await self.appointments.commit()
        except Exception:
            await self.appointments.rollback()
            raise

        logger.info(
            f"Appointment booked | Business: {business.id} | "
            f"Professional: {professional.id} | Start: {start.instant.isoformat()} | "
            f"Duration: {duration}"
        )
        self._notify("appointment.created", created)
        return created

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def transition(
        self,
        business_id: UUID,
        appointment_id: UUID,
        new_status: Any,
    ) -> Appointment:
        """Move an appointment to a new status."""
        try:
            target = AppointmentStatus(new_status)
        except ValueError:
            raise InvalidArgument(f"Unknown appointment status: {new_status}")

        current = await self._get_appointment(business_id, appointment_id)
        if not can_transition(current.status, target):
            raise InvalidTransition(
                f"Cannot change status from {current.status.value} to {target.value}"
            )

        try:
            updated = await self.appointments.set_status(current.id, target, self.clock.now())
            await self.appointments.commit()
        except Exception:
            await self.appointments.rollback()
            raise

        logger.info(
            f"Appointment status changed | Appointment: {current.id} | "
            f"{current.status.value} -> {target.value}"
        )
        if target == AppointmentStatus.CANCELLED:
            self._notify("appointment.cancelled", updated)
        else:
            self._notify("appointment.status_changed", updated)
        return updated

    async def reschedule(
        self,
        business_id: UUID,
        appointment_id: UUID,
        new_start: Any,
    ) -> Appointment:
        """Move an active appointment to a new start, keeping its professional."""
        current = await self._get_appointment(business_id, appointment_id)
        if not is_occupying(current.status):
            raise InvalidArgument("Only active appointments can be rescheduled")
        if current.professional_id is None:
            raise InvalidArgument("Appointment has no professional assigned")

        business = await self._get_business(business_id)
        normalizer = TimeNormalizer(business.timezone, self.clock)
        start = normalizer.normalize_instant(new_start)
        self._ensure_bookable_start(start)
        end = normalizer.from_instant(start.instant + timedelta(minutes=current.duration_minutes))

        await self._ensure_open(business, current.professional_id, start, end)

        try:
            await self.appointments.lock_professional(current.professional_id)
            await self._recheck(
                current.professional_id, start.instant, end.instant, exclude_id=current.id
            )
            moved = await self.appointments.move(current.id, start.instant)
            await self.appointments.commit()
        except Exception:
            await self.appointments.rollback()
            raise

        logger.info(
            f"Appointment rescheduled | Appointment: {current.id} | "
            f"From: {current.starts_at.isoformat()} | To: {start.instant.isoformat()}"
        )
        self._notify("appointment.rescheduled", moved)
        return moved

    async def delete(self, business_id: UUID, appointment_id: UUID) -> Appointment:
        """Delete an appointment together with its occupancy.

        Returns:
            The deleted appointment as it was before removal
        """
        current = await self._get_appointment(business_id, appointment_id)

        try:
            await self.appointments.remove(current.id)
            await self.appointments.commit()
        except Exception:
            await self.appointments.rollback()
            raise

        logger.info(f"Appointment deleted | Appointment: {current.id} | Status: {current.status.value}")
        self._notify("appointment.deleted", current)
        return current

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def _ensure_bookable_start(self, start: CivilInstant) -> None:
        if start.instant <= self.clock.now():
            raise InvalidArgument("Cannot book an appointment in the past")

        local = start.local
        if local.minute % self.granularity_minutes or local.second or local.microsecond:
            raise InvalidArgument(
                f"Start time must fall on the {self.granularity_minutes}-minute grid"
            )

    async def _ensure_open(
        self,
        business: Business,
        professional_id: Optional[UUID],
        start: CivilInstant,
        end: CivilInstant,
    ) -> None:
        """Raise BusinessClosed unless ``[start, end)`` fits the working window.

        ``professional_id=None`` checks the business opening hours.
        """
        who = "Professional" if professional_id else "Business"
        window = await self.schedules.get_window(
            business.id, professional_id, day_of_week(start.date)
        )
        if window is None or not window.is_working:
            raise BusinessClosed(f"{who} is closed on this day")

        normalizer = TimeNormalizer(business.timezone, self.clock)
        window_start, window_end = normalizer.local_span(
            start.date, window.start_time, window.end_time
        )
        if not window_start <= start.instant < window_end:
            raise BusinessClosed(
                f"{who} is closed at this time "
                f"(open {window.start_time:%H:%M}-{window.end_time:%H:%M})"
            )
        if end.instant > window_end:
            raise BusinessClosed(
                f"Service would end after closing time ({window.end_time:%H:%M})"
            )

        for brk in window.breaks:
            if overlaps(
                start.instant,
                end.instant,
                *normalizer.local_span(start.date, brk.start_time, brk.end_time),
            ):
                raise BusinessClosed(
                    f"Requested time overlaps a break "
                    f"({brk.start_time:%H:%M}-{brk.end_time:%H:%M})"
                )

        if professional_id is None:
            return

        exceptions = await self.exceptions.list_between(
            professional_id, start.instant, end.instant
        )
        blocking = find_conflicts(
            start.instant, end.instant, exceptions, lambda e: (e.start, e.end)
        )
        if blocking:
            raise BusinessClosed(f"Professional unavailable: {blocking[0].label}")

    async def _is_eligible(
        self,
        business: Business,
        professional: Professional,
        start: CivilInstant,
        end: CivilInstant,
    ) -> bool:
        try:
            await self._ensure_open(business, professional.id, start, end)
        except BusinessClosed as e:
            logger.debug(f"Candidate skipped | Professional: {professional.id} | {e.message}")
            return False
        return True

    async def _allocate(
        self,
        business: Business,
        start: CivilInstant,
        end: CivilInstant,
    ) -> Professional:
        candidates = await self.catalog.list_professionals(business.id, active_only=True)
        eligible = [c for c in candidates if await self._is_eligible(business, c, start, end)]

        chosen = await self.allocator.allocate(eligible, start.instant, end.instant)
        if chosen is None:
            raise NoProfessionalAvailable("All professionals are unavailable at this time")
        return chosen

    async def _recheck(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> None:
        existing = await self.appointments.list_occupying(
            professional_id, start, end, exclude_id=exclude_id
        )
        clashes = find_conflicts(
            start,
            end,
            [a for a in existing if is_occupying(a.status) and a.id != exclude_id],
            lambda a: (a.starts_at, a.ends_at),
        )
        if clashes:
            logger.info(
                f"Slot conflict | Professional: {professional_id} | "
                f"Start: {start.isoformat()} | Clashes: {len(clashes)}"
            )
            raise SlotConflict("The requested time is no longer available")

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _get_business(self, business_id: UUID) -> Business:
        business = await self.catalog.get_business(business_id)
        if business is None or not business.is_active:
            raise NotFound("Business not found")
        return business

    async def _get_professional(self, business: Business, professional_id: UUID) -> Professional:
        professional = await self.catalog.get_professional(business.id, professional_id)
        if professional is None or not professional.is_active:
            raise NotFound("Professional not found")
        return professional

    async def _get_appointment(self, business_id: UUID, appointment_id: UUID) -> Appointment:
        appointment = await self.appointments.get(business_id, appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found")
        return appointment

    async def _resolve_services(
        self,
        business: Business,
        service_ids: Sequence[UUID],
    ) -> list[Service]:
        found = await self.catalog.get_services(business.id, service_ids)
        missing = [str(sid) for sid in service_ids if sid not in found]
        if missing:
            raise NotFound(f"Service not found: {', '.join(missing)}")
        return [found[sid] for sid in service_ids]

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def _notify(self, event: str, appointment: Appointment) -> None:
        if self.notifier is None:
            return

        payload = appointment.to_dict()
        payload.update({
            "businessId": str(appointment.business_id),
            "clientPhone": appointment.client_phone,
            "clientEmail": appointment.client_email,
        })
        try:
            self.notifier.dispatch(event, payload)
        except Exception as e:
            logger.error(f"Notification dispatch failed | Event: {event} | Error: {e}")
