"""Tests for the SQLAlchemy repositories and the occupancy guard."""

from datetime import datetime, time
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from agenda.core.scheduling import (
    AppointmentStatus,
    AvailabilityEngine,
    BookingCommitter,
    BookingRequest,
    ExceptionType,
    ScheduleExceptionService,
    SlotConflict,
)
from agenda.models import database as orm
from agenda.repositories.appointments import SqlAppointmentRepository, occupancy_buckets
from agenda.repositories.catalog import SqlCatalogRepository
from agenda.repositories.exceptions import SqlExceptionRepository
from agenda.repositories.schedule import SqlScheduleRepository
from tests.fakes import brt


def make_committer(session, clock):
    return BookingCommitter(
        catalog=SqlCatalogRepository(session),
        schedules=SqlScheduleRepository(session),
        exceptions=SqlExceptionRepository(session),
        appointments=SqlAppointmentRepository(session),
        clock=clock,
    )


def make_engine(session, clock):
    return AvailabilityEngine(
        catalog=SqlCatalogRepository(session),
        schedules=SqlScheduleRepository(session),
        exceptions=SqlExceptionRepository(session),
        appointments=SqlAppointmentRepository(session),
        clock=clock,
    )


def booking(seeded, starts_at, professional_id=None, service_ids=None):
    return BookingRequest(
        business_id=seeded.business_id,
        professional_id=professional_id,
        service_ids=tuple(service_ids or (seeded.haircut_id,)),
        starts_at=starts_at,
        client_name="Maria",
        client_phone="+5511988887777",
    )


async def count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar_one()


class TestOccupancyBuckets:
    def test_aligned(self):
        buckets = occupancy_buckets(datetime(2025, 3, 11, 13, 0), 15)
        assert buckets == [
            datetime(2025, 3, 11, 13, 0),
            datetime(2025, 3, 11, 13, 5),
            datetime(2025, 3, 11, 13, 10),
        ]

    def test_partial_bucket_counts(self):
        assert len(occupancy_buckets(datetime(2025, 3, 11, 13, 0), 12)) == 3


class TestSqlCatalogAndSchedule:
    """Test read-side mapping."""

    @pytest.mark.asyncio
    async def test_catalog_lookups(self, session_factory, seeded):
        async with session_factory() as session:
            catalog = SqlCatalogRepository(session)

            business = await catalog.get_business_by_slug("studio")
            assert business.id == seeded.business_id
            assert business.timezone == "America/Sao_Paulo"

            professionals = await catalog.list_professionals(seeded.business_id)
            assert [p.name for p in professionals] == ["Ana", "Bruno"]

            services = await catalog.get_services(
                seeded.business_id, [seeded.haircut_id, seeded.fringe_id]
            )
            assert services[seeded.fringe_id].duration_minutes == 15

            assert await catalog.get_business_by_slug("missing") is None

    @pytest.mark.asyncio
    async def test_window_with_breaks(self, session_factory, seeded):
        async with session_factory() as session:
            schedules = SqlScheduleRepository(session)

            window = await schedules.get_window(seeded.business_id, seeded.bruno_id, 2)
            assert (window.start_time, window.end_time) == (time(9, 0), time(18, 0))
            assert [(b.start_time, b.end_time) for b in window.breaks] == [(time(12, 0), time(13, 0))]

            opening = await schedules.get_window(seeded.business_id, None, 2)
            assert opening.professional_id is None
            assert opening.start_time == time(8, 0)


class TestSqlBooking:
    """Test the commit path against the real schema."""

    @pytest.mark.asyncio
    async def test_commit_persists_appointment_and_buckets(self, session_factory, seeded, clock):
        async with session_factory() as session:
            appointment = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )

        async with session_factory() as session:
            row = await session.get(orm.Appointment, appointment.id)
            assert row.starts_at == datetime(2025, 3, 11, 13, 0)
            assert row.ends_at == datetime(2025, 3, 11, 13, 30)
            assert row.status == AppointmentStatus.CONFIRMED
            assert [s.service_id for s in row.services] == [seeded.haircut_id]
            assert sorted(s.bucket_start for s in row.slots) == occupancy_buckets(
                datetime(2025, 3, 11, 13, 0), 30
            )

    @pytest.mark.asyncio
    async def test_bucket_collision_is_slot_conflict(self, session_factory, seeded, clock):
        """A writer that missed the overlap re-check still hits the bucket key."""
        async with session_factory() as session:
            await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id, [seeded.fringe_id])
            )

        async with session_factory() as session:
            committer = make_committer(session, clock)
            with patch.object(
                committer.appointments, "list_occupying", AsyncMock(return_value=[])
            ):
                with pytest.raises(SlotConflict):
                    await committer.commit(
                        booking(seeded, "2025-03-11T10:10:00-03:00", seeded.ana_id, [seeded.fringe_id])
                    )

        async with session_factory() as session:
            assert await count(session, orm.Appointment) == 1
            assert await count(session, orm.AppointmentSlot) == 3

    @pytest.mark.asyncio
    async def test_auto_allocation_skips_busy(self, session_factory, seeded, clock):
        async with session_factory() as session:
            first = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00")
            )
        async with session_factory() as session:
            second = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00")
            )

        assert first.professional_id == seeded.ana_id
        assert second.professional_id == seeded.bruno_id

    @pytest.mark.asyncio
    async def test_cancel_releases_buckets(self, session_factory, seeded, clock):
        async with session_factory() as session:
            appointment = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )

        async with session_factory() as session:
            cancelled = await make_committer(session, clock).transition(
                seeded.business_id, appointment.id, "CANCELLED"
            )
            assert cancelled.cancelled_at == clock.now()

        async with session_factory() as session:
            assert await count(session, orm.AppointmentSlot) == 0
            rebooked = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )
            assert rebooked.id != appointment.id

    @pytest.mark.asyncio
    async def test_reschedule_moves_buckets(self, session_factory, seeded, clock):
        async with session_factory() as session:
            appointment = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )

        async with session_factory() as session:
            await make_committer(session, clock).reschedule(
                seeded.business_id, appointment.id, "2025-03-11T10:15:00-03:00"
            )

        async with session_factory() as session:
            row = await session.get(orm.Appointment, appointment.id)
            assert row.starts_at == datetime(2025, 3, 11, 13, 15)
            assert min(s.bucket_start for s in row.slots) == datetime(2025, 3, 11, 13, 15)
            assert len(row.slots) == 6

    @pytest.mark.asyncio
    async def test_delete_cascades(self, session_factory, seeded, clock):
        async with session_factory() as session:
            appointment = await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )

        async with session_factory() as session:
            await make_committer(session, clock).delete(seeded.business_id, appointment.id)

        async with session_factory() as session:
            assert await count(session, orm.Appointment) == 0
            assert await count(session, orm.AppointmentSlot) == 0
            assert await count(session, orm.AppointmentService) == 0


class TestSqlAvailabilityAndExceptions:
    """Test the read path and exception management end to end."""

    @pytest.mark.asyncio
    async def test_availability_sees_committed_booking(self, session_factory, seeded, clock):
        async with session_factory() as session:
            await make_committer(session, clock).commit(
                booking(seeded, "2025-03-11T10:00:00-03:00", seeded.ana_id)
            )

        async with session_factory() as session:
            catalog = SqlCatalogRepository(session)
            business = await catalog.get_business(seeded.business_id)
            day = await make_engine(session, clock).availability(
                business, seeded.ana_id, "2025-03-11", 30
            )

        slots = {s.time: s for s in day.slots}
        assert slots[time(9, 30)].available
        assert not slots[time(9, 35)].available
        assert slots[time(10, 30)].available

    @pytest.mark.asyncio
    async def test_exception_round_trip(self, session_factory, seeded, clock):
        async with session_factory() as session:
            catalog = SqlCatalogRepository(session)
            business = await catalog.get_business(seeded.business_id)
            service = ScheduleExceptionService(
                catalog,
                SqlExceptionRepository(session),
                SqlAppointmentRepository(session),
                clock=clock,
            )
            created = await service.create(
                business, seeded.bruno_id, "2025-03-11T14:00:00-03:00",
                "2025-03-11T15:00:00-03:00", "BLOCK", "Training",
            )

        async with session_factory() as session:
            repo = SqlExceptionRepository(session)
            found = await repo.list_between(
                seeded.bruno_id, brt(2025, 3, 11), brt(2025, 3, 12)
            )
            assert [e.id for e in found] == [created.id]
            assert found[0].start == brt(2025, 3, 11, 14, 0)
            assert found[0].type == ExceptionType.BLOCK

            other_tenant = await repo.get(uuid4(), created.id)
            assert other_tenant is None

            await repo.remove(created.id)
            await repo.commit()

        async with session_factory() as session:
            assert await count(session, orm.ScheduleException) == 0
