"""In-memory repositories and collaborators for engine tests."""

import asyncio
from collections import defaultdict
from dataclasses import replace
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Optional, Sequence
from uuid import UUID, uuid4

from agenda.core.scheduling import (
    Appointment,
    AppointmentStatus,
    Business,
    NotFound,
    Professional,
    RecurringBreak,
    ScheduleException,
    Service,
    SlotConflict,
    WorkingWindow,
    is_occupying,
    overlaps,
)

TZ = "America/Sao_Paulo"  # UTC-3, no DST
BRT = timezone(timedelta(hours=-3))


def brt(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware datetime in the test business timezone."""
    return datetime(year, month, day, hour, minute, tzinfo=BRT)


def buckets_for(starts_at: datetime, duration_minutes: int) -> list[datetime]:
    bucket = starts_at.replace(second=0, microsecond=0)
    bucket -= timedelta(minutes=bucket.minute % 5)
    end = starts_at + timedelta(minutes=duration_minutes)
    out = []
    while bucket < end:
        out.append(bucket)
        bucket += timedelta(minutes=5)
    return out


class InMemoryCatalog:
    def __init__(self):
        self.businesses: dict[UUID, Business] = {}
        self.professionals: dict[UUID, Professional] = {}
        self.services: dict[UUID, Service] = {}

    def add_business(self, slug: str = "studio", tz: str = TZ, is_active: bool = True) -> Business:
        business = Business(id=uuid4(), name=slug.title(), slug=slug, timezone=tz, is_active=is_active)
        self.businesses[business.id] = business
        return business

    def add_professional(self, business: Business, name: str, is_active: bool = True) -> Professional:
        professional = Professional(
            id=uuid4(), business_id=business.id, name=name, is_active=is_active
        )
        self.professionals[professional.id] = professional
        return professional

    def add_service(
        self,
        business: Business,
        name: str,
        duration_minutes: int,
        price: str = "50.00",
    ) -> Service:
        service = Service(
            id=uuid4(),
            business_id=business.id,
            name=name,
            duration_minutes=duration_minutes,
            price=Decimal(price),
        )
        self.services[service.id] = service
        return service

    async def get_business(self, business_id: UUID) -> Optional[Business]:
        return self.businesses.get(business_id)

    async def get_business_by_slug(self, slug: str) -> Optional[Business]:
        return next((b for b in self.businesses.values() if b.slug == slug), None)

    async def get_professional(self, business_id: UUID, professional_id: UUID) -> Optional[Professional]:
        professional = self.professionals.get(professional_id)
        if professional is None or professional.business_id != business_id:
            return None
        return professional

    async def list_professionals(self, business_id: UUID, active_only: bool = True) -> list[Professional]:
        found = [
            p for p in self.professionals.values()
            if p.business_id == business_id and (p.is_active or not active_only)
        ]
        # Reverse insertion order
        return list(reversed(found))

    async def get_services(self, business_id: UUID, service_ids: Sequence[UUID]) -> dict[UUID, Service]:
        return {
            sid: self.services[sid]
            for sid in service_ids
            if sid in self.services and self.services[sid].business_id == business_id
        }


class InMemorySchedules:
    def __init__(self):
        self.windows: dict[tuple, WorkingWindow] = {}

    def set_hours(
        self,
        business: Business,
        professional: Optional[Professional],
        start: time,
        end: time,
        days: Sequence[int] = range(7),
        breaks: Sequence[tuple[time, time]] = (),
        is_working: bool = True,
    ) -> None:
        professional_id = professional.id if professional else None
        for day in days:
            self.windows[(business.id, professional_id, day)] = WorkingWindow(
                day_of_week=day,
                start_time=start,
                end_time=end,
                is_working=is_working,
                professional_id=professional_id,
                breaks=tuple(RecurringBreak(s, e) for s, e in breaks),
            )

    async def get_window(
        self,
        business_id: UUID,
        professional_id: Optional[UUID],
        day_of_week: int,
    ) -> Optional[WorkingWindow]:
        return self.windows.get((business_id, professional_id, day_of_week))


class InMemoryStore:
    """Committed state shared by every unit of work."""

    def __init__(self):
        self.appointments: dict[UUID, Appointment] = {}
        self.exceptions: dict[UUID, ScheduleException] = {}
        # (professional_id, bucket_start) -> appointment id, staged claims included
        self.buckets: dict[tuple, UUID] = {}
        self.locks: dict[UUID, asyncio.Lock] = defaultdict(asyncio.Lock)


class InMemoryExceptions:
    def __init__(self, store: InMemoryStore, catalog: InMemoryCatalog):
        self.store = store
        self.catalog = catalog

    def seed(self, exception: ScheduleException) -> ScheduleException:
        exception = replace(exception, id=exception.id or uuid4())
        self.store.exceptions[exception.id] = exception
        return exception

    async def list_between(self, professional_id: UUID, start: datetime, end: datetime) -> list[ScheduleException]:
        return sorted(
            (
                e for e in self.store.exceptions.values()
                if e.professional_id == professional_id and overlaps(e.start, e.end, start, end)
            ),
            key=lambda e: e.start,
        )

    async def get(self, business_id: UUID, exception_id: UUID) -> Optional[ScheduleException]:
        exception = self.store.exceptions.get(exception_id)
        if exception is None:
            return None
        professional = self.catalog.professionals.get(exception.professional_id)
        if professional is None or professional.business_id != business_id:
            return None
        return exception

    async def add(self, exception: ScheduleException) -> ScheduleException:
        return self.seed(exception)

    async def remove(self, exception_id: UUID) -> None:
        self.store.exceptions.pop(exception_id, None)

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass


class InMemoryAppointments:
    """
    One unit of work over the shared store.

    Bucket claims are visible to other units as soon as they are staged,
    like rows under a unique index; the appointment itself only becomes
    visible on commit.
    """

    def __init__(self, store: InMemoryStore, use_locks: bool = True, yield_on_read: bool = False):
        self.store = store
        self.use_locks = use_locks
        self.yield_on_read = yield_on_read
        self._held: list[asyncio.Lock] = []
        self._staged: list[Appointment] = []
        self.commits = 0
        self.rollbacks = 0

    def seed(self, appointment: Appointment) -> Appointment:
        self.store.appointments[appointment.id] = appointment
        if is_occupying(appointment.status) and appointment.professional_id:
            for bucket in buckets_for(appointment.starts_at, appointment.duration_minutes):
                self.store.buckets[(appointment.professional_id, bucket)] = appointment.id
        return appointment

    async def lock_professional(self, professional_id: UUID) -> None:
        if not self.use_locks:
            return
        lock = self.store.locks[professional_id]
        if lock not in self._held:
            await lock.acquire()
            self._held.append(lock)

    async def list_occupying(
        self,
        professional_id: UUID,
        start: datetime,
        end: datetime,
        exclude_id: Optional[UUID] = None,
    ) -> list[Appointment]:
        if self.yield_on_read:
            await asyncio.sleep(0)
        return sorted(
            (
                a for a in self.store.appointments.values()
                if a.professional_id == professional_id
                and is_occupying(a.status)
                and a.id != exclude_id
                and overlaps(a.starts_at, a.ends_at, start, end)
            ),
            key=lambda a: a.starts_at,
        )

    async def get(self, business_id: UUID, appointment_id: UUID) -> Optional[Appointment]:
        appointment = self.store.appointments.get(appointment_id)
        if appointment is None or appointment.business_id != business_id:
            return None
        return appointment

    async def add(self, appointment: Appointment) -> Appointment:
        self._claim(appointment)
        self._staged.append(appointment)
        return appointment

    async def set_status(self, appointment_id: UUID, status: AppointmentStatus, at: datetime) -> Appointment:
        current = self._require(appointment_id)
        updated = replace(
            current,
            status=status,
            cancelled_at=at if status == AppointmentStatus.CANCELLED else current.cancelled_at,
            completed_at=at if status == AppointmentStatus.COMPLETED else current.completed_at,
        )
        self.store.appointments[appointment_id] = updated
        if not is_occupying(status):
            self._release(appointment_id)
        return updated

    async def move(self, appointment_id: UUID, starts_at: datetime) -> Appointment:
        current = self._require(appointment_id)
        self._release(appointment_id)
        moved = replace(current, starts_at=starts_at)
        self._claim(moved)
        self.store.appointments[appointment_id] = moved
        return moved

    async def remove(self, appointment_id: UUID) -> None:
        self._require(appointment_id)
        self._release(appointment_id)
        del self.store.appointments[appointment_id]

    async def commit(self) -> None:
        for appointment in self._staged:
            self.store.appointments[appointment.id] = appointment
        self._staged.clear()
        self.commits += 1
        self._unlock()

    async def rollback(self) -> None:
        for appointment in self._staged:
            self._release(appointment.id)
        self._staged.clear()
        self.rollbacks += 1
        self._unlock()

    def occupied_buckets(self, professional_id: UUID) -> list[datetime]:
        return sorted(b for (p, b) in self.store.buckets if p == professional_id)

    def _claim(self, appointment: Appointment) -> None:
        keys = [
            (appointment.professional_id, b)
            for b in buckets_for(appointment.starts_at, appointment.duration_minutes)
        ]
        if any(self.store.buckets.get(k, appointment.id) != appointment.id for k in keys):
            raise SlotConflict("The requested time is no longer available")
        for key in keys:
            self.store.buckets[key] = appointment.id

    def _release(self, appointment_id: UUID) -> None:
        for key in [k for k, v in self.store.buckets.items() if v == appointment_id]:
            del self.store.buckets[key]

    def _require(self, appointment_id: UUID) -> Appointment:
        appointment = self.store.appointments.get(appointment_id)
        if appointment is None:
            raise NotFound("Appointment not found")
        return appointment

    def _unlock(self) -> None:
        for lock in self._held:
            lock.release()
        self._held.clear()


class RecordingNotifier:
    def __init__(self):
        self.events: list[tuple[str, dict]] = []

    def dispatch(self, event: str, payload: dict) -> None:
        self.events.append((event, payload))


class FailingNotifier:
    def dispatch(self, event: str, payload: dict) -> None:
        raise RuntimeError("webhook down")


def make_appointment(
    business: Business,
    professional: Professional,
    starts_at: datetime,
    duration_minutes: int = 30,
    status: AppointmentStatus = AppointmentStatus.CONFIRMED,
    client_name: str = "Client",
) -> Appointment:
    return Appointment(
        id=uuid4(),
        business_id=business.id,
        professional_id=professional.id,
        starts_at=starts_at.astimezone(timezone.utc),
        duration_minutes=duration_minutes,
        status=status,
        client_name=client_name,
        client_phone="+5511999990000",
    )
