"""Shared fixtures for engine unit tests."""

from datetime import time

import pytest

from agenda.core.scheduling import (
    AvailabilityEngine,
    BookingCommitter,
    FixedClock,
    ScheduleExceptionService,
)
from tests.fakes import (
    InMemoryAppointments,
    InMemoryCatalog,
    InMemoryExceptions,
    InMemorySchedules,
    InMemoryStore,
    RecordingNotifier,
    brt,
)


@pytest.fixture
def clock():
    """Monday 2025-03-10, 08:00 business time."""
    return FixedClock(brt(2025, 3, 10, 8, 0))


@pytest.fixture
def catalog():
    return InMemoryCatalog()


@pytest.fixture
def schedules():
    return InMemorySchedules()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def exception_repo(store, catalog):
    return InMemoryExceptions(store, catalog)


@pytest.fixture
def appointment_repo(store):
    return InMemoryAppointments(store)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def business(catalog):
    return catalog.add_business("studio")


@pytest.fixture
def professional(catalog, schedules, business):
    """Works 09:00-12:00 every day; the business opens 08:00-18:00."""
    pro = catalog.add_professional(business, "Ana")
    schedules.set_hours(business, pro, time(9, 0), time(12, 0))
    schedules.set_hours(business, None, time(8, 0), time(18, 0))
    return pro


@pytest.fixture
def haircut(catalog, business):
    return catalog.add_service(business, "Haircut", 30, "50.00")


@pytest.fixture
def engine(catalog, schedules, exception_repo, appointment_repo, clock):
    return AvailabilityEngine(catalog, schedules, exception_repo, appointment_repo, clock=clock)


@pytest.fixture
def committer(catalog, schedules, exception_repo, appointment_repo, notifier, clock):
    return BookingCommitter(
        catalog, schedules, exception_repo, appointment_repo, notifier=notifier, clock=clock
    )


@pytest.fixture
def exception_service(catalog, exception_repo, appointment_repo, clock):
    return ScheduleExceptionService(catalog, exception_repo, appointment_repo, clock=clock)
